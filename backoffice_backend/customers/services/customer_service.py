# customers/services/customer_service.py

"""
CUSTOMER RESOLUTION

Order entry identifies customers by what the cashier typed, not by id:
- (name, phone) match first
- then name alone, oldest customer first
- a name-only match whose phone differs gets the new phone backfilled
- otherwise a new customer is created

Anonymous sales ("Walk-in Customer" or a blank name) have no customer.
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from customers.models import Customer
from customers.services.exceptions import CustomerNotFoundError


logger = logging.getLogger("customers")

WALK_IN_CUSTOMER = "Walk-in Customer"


def _clean(v) -> str:
    return (v or "").strip()


@transaction.atomic
def find_or_create_customer(*, name, phone=None, branch=None) -> Customer | None:
    name = _clean(name)
    phone = _clean(phone)

    if not name or name == WALK_IN_CUSTOMER:
        return None

    if phone:
        match = (
            Customer.objects.filter(name=name, phone=phone)
            .order_by("created_at")
            .first()
        )
        if match is not None:
            return match

    match = Customer.objects.filter(name=name).order_by("created_at").first()
    if match is not None:
        if phone and match.phone != phone:
            match.phone = phone
            match.save(update_fields=["phone"])
            logger.info(
                "Customer phone backfilled",
                extra={"customer_id": str(match.id)},
            )
        return match

    customer = Customer.objects.create(
        name=name,
        phone=phone,
        branch=branch,
    )
    logger.info(
        "Customer created from order entry",
        extra={"customer_id": str(customer.id), "branch_id": getattr(branch, "id", None)},
    )
    return customer


def get_customer(*, customer_id) -> Customer:
    try:
        return Customer.objects.get(id=customer_id)
    except (Customer.DoesNotExist, ValidationError, ValueError) as exc:
        raise CustomerNotFoundError("Customer not found") from exc
