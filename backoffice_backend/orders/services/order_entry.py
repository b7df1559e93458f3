# orders/services/order_entry.py

"""
ORDER ENTRY

Thin creation path for orders that matter to the due ledger:
- create_order: POS / web checkout result (items live elsewhere)
- create_due_entry: a manual "add due" from the due management screen

Both run in ONE transaction: customer resolution, order number, ledger
fields and the insert commit together.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from customers.services import find_or_create_customer, get_customer
from orders.models import Order
from orders.services.exceptions import OrderFinancialsError
from orders.services.financials import compute_total, initial_financials
from orders.services.money import ZERO, money
from orders.services.sequence import next_order_number


logger = logging.getLogger("orders")


@transaction.atomic
def create_order(
    *,
    subtotal,
    payment_status: str = Order.PAYMENT_PENDING,
    discount=None,
    discount_type: str = Order.DISCOUNT_AMOUNT,
    due_amount=None,
    paid_amount=None,
    customer_name: str = "",
    customer_phone: str = "",
    branch=None,
    order_source: str = Order.SOURCE_POS,
    status: str = Order.STATUS_COMPLETED,
    payment_method: str = "",
    notes: str = "",
    created_by=None,
    created_at=None,
) -> Order:
    total = compute_total(
        subtotal=subtotal, discount=discount, discount_type=discount_type
    )

    ledger = initial_financials(
        payment_status=payment_status,
        total=total,
        due_amount=due_amount,
        paid_amount=paid_amount,
    )

    customer = find_or_create_customer(
        name=customer_name,
        phone=customer_phone,
        branch=branch,
    )

    order = Order(
        order_number=next_order_number(),
        customer=customer,
        customer_name=(customer_name or "").strip(),
        customer_phone=(customer_phone or "").strip(),
        branch=branch,
        order_source=order_source,
        subtotal=money(subtotal),
        discount=money(discount),
        discount_type=discount_type,
        status=status,
        payment_method=(payment_method or "").strip(),
        notes=notes or "",
        created_by=created_by,
        created_at=created_at or timezone.now(),
        **ledger,
    )
    order.save()

    logger.info(
        "Order created",
        extra={
            "order_id": str(order.id),
            "order_number": order.order_number,
            "payment_status": order.payment_status,
            "customer_id": str(order.customer_id) if order.customer_id else None,
        },
    )
    return order


@transaction.atomic
def create_due_entry(
    *,
    customer_id,
    amount,
    description: str = "",
    branch=None,
    created_at=None,
    created_by=None,
) -> Order:
    """
    Record money a customer owes without a POS sale behind it.

    The entry is a completed order from "due-management" with status "due",
    so FIFO allocation and the ledger treat it like any other debt.
    """
    amt = money(amount)
    if amt <= ZERO:
        raise OrderFinancialsError("Due amount must be > 0")

    customer = get_customer(customer_id=customer_id)

    order = Order(
        order_number=next_order_number(),
        customer=customer,
        customer_name=customer.name,
        customer_phone=customer.phone,
        branch=branch if branch is not None else customer.branch,
        order_source=Order.SOURCE_DUE_MANAGEMENT,
        subtotal=amt,
        status=Order.STATUS_COMPLETED,
        notes=description or "",
        created_by=created_by,
        created_at=created_at or timezone.now(),
        **initial_financials(payment_status=Order.PAYMENT_DUE, total=amt),
    )
    order.save()

    logger.info(
        "Due entry recorded",
        extra={
            "order_id": str(order.id),
            "customer_id": str(customer.id),
            "amount": str(amt),
        },
    )
    return order
