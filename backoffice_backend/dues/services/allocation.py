# dues/services/allocation.py

"""
PAYMENT ALLOCATION ENGINE (AUTHORITATIVE)

One payment -> zero or more allocations -> order paid_amount / payment_status.

RULES:
- One transaction per payment: payment row, allocation rows and order updates
  commit together or not at all
- Every target order is locked (SELECT ... FOR UPDATE) before its paid_amount
  is read
- An allocation may not exceed the order's remaining owed amount
- An allocation may only target the paying customer's orders
- An allocation may only target orders that are still due or partial
- sum(allocations) <= amount; the rest is stored as unapplied_amount (credit)
- Allocations are applied in the order given

FIFO (default when no allocations are passed):
- customer's due/partial orders, oldest first (created_at, then order number)
- each gets min(remaining payment, what it still owes)
- stop when the payment is used up; later orders are not touched
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.db.models.functions import Length
from django.utils import timezone

from customers.models import Customer
from dues.models import DuePayment, DuePaymentAllocation
from dues.services.exceptions import (
    AllocationExceedsOwedError,
    LedgerConsistencyError,
    LedgerError,
    LedgerNotFoundError,
    LedgerValidationError,
)
from orders.models import Order
from orders.services.exceptions import OrderFinancialsError
from orders.services.financials import (
    apply_payment,
    outstanding_amount,
    remaining_owed,
    reverse_payment,
)
from orders.services.money import ZERO, money


logger = logging.getLogger("dues")


# ============================================================
# INPUT NORMALIZATION
# ============================================================

def _amount(v, *, field: str = "amount") -> Decimal:
    try:
        amt = money(v)
    except ValueError as exc:
        raise LedgerValidationError(f"{field} is not a valid amount") from exc
    if amt <= ZERO:
        raise LedgerValidationError(f"{field} must be > 0")
    return amt


def _uuid(v, *, field: str) -> uuid.UUID:
    if isinstance(v, uuid.UUID):
        return v
    try:
        return uuid.UUID(str(v))
    except (TypeError, ValueError, AttributeError) as exc:
        raise LedgerValidationError(f"{field} is not a valid id") from exc


def _normalize_allocations(allocations) -> list[dict]:
    """
    [{order_id, amount}, ...] -> validated list. Raises before any write.
    """
    if not isinstance(allocations, (list, tuple)):
        raise LedgerValidationError("allocations must be a list")

    out = []
    for i, entry in enumerate(allocations):
        if not isinstance(entry, dict):
            raise LedgerValidationError(f"allocations[{i}] must be an object")
        if entry.get("order_id") in (None, ""):
            raise LedgerValidationError(f"allocations[{i}].order_id is required")
        if entry.get("amount") in (None, ""):
            raise LedgerValidationError(f"allocations[{i}].amount is required")

        out.append(
            {
                "order_id": _uuid(entry["order_id"], field=f"allocations[{i}].order_id"),
                "amount": _amount(entry["amount"], field=f"allocations[{i}].amount"),
            }
        )
    return out


def _require_customer(customer_id: uuid.UUID) -> None:
    """
    A customer exists if it has a row, or if orders reference it
    (placeholder customers created before customer rows existed).
    """
    if Customer.objects.filter(id=customer_id).exists():
        return
    if Order.objects.filter(customer_id=customer_id).exists():
        return
    raise LedgerNotFoundError("Customer not found")


def _lock_order(order_id) -> Order:
    try:
        return Order.objects.select_for_update().get(id=order_id)
    except Order.DoesNotExist as exc:
        raise LedgerNotFoundError(f"Order not found: {order_id}") from exc


# ============================================================
# FIFO
# ============================================================

def open_orders_queryset(*, customer_id, branch_id=None):
    """
    Customer's due/partial orders, oldest debt first.

    Order numbers are numeric strings, so length-then-value keeps "10" after "9".
    """
    qs = Order.objects.filter(
        customer_id=customer_id,
        payment_status__in=Order.OPEN_PAYMENT_STATUSES,
    )
    if branch_id:
        qs = qs.filter(Q(branch_id=branch_id) | Q(branch__isnull=True))

    return qs.order_by("created_at", Length("order_number"), "order_number")


def build_fifo_allocations(*, customer_id, amount, branch_id=None, lock: bool = False) -> list[dict]:
    """
    Walk open orders oldest-first and spend `amount` on them.

    Returns [{order_id, order_number, amount}] (only orders that receive money).
    lock=True takes row locks; record_payment uses that inside its transaction.
    """
    customer_id = _uuid(customer_id, field="customer_id")
    remaining = _amount(amount)

    qs = open_orders_queryset(customer_id=customer_id, branch_id=branch_id)
    if lock:
        qs = qs.select_for_update()

    allocations = []
    for order in qs:
        if remaining <= ZERO:
            break

        owed_here = min(outstanding_amount(order), remaining_owed(order))
        if owed_here <= ZERO:
            continue

        take = min(remaining, owed_here)
        allocations.append(
            {
                "order_id": order.id,
                "order_number": order.order_number,
                "amount": take,
            }
        )
        remaining -= take

    return allocations


# ============================================================
# RECORD PAYMENT
# ============================================================

@transaction.atomic
def record_payment(
    *,
    customer_id,
    amount,
    payment_method: str,
    payment_date=None,
    allocations=None,
    reference: str = "",
    note: str = "",
    payment_slips=None,
    branch=None,
    recorded_by=None,
) -> DuePayment:
    """
    Record a payment and apply it to orders.

    allocations=None -> FIFO over the customer's open orders.
    allocations=[]   -> nothing applied; the whole amount becomes credit.
    """
    amt = _amount(amount)
    method = (payment_method or "").strip().lower()
    if not method:
        raise LedgerValidationError("payment_method is required")

    customer_id = _uuid(customer_id, field="customer_id")

    if payment_slips is None:
        payment_slips = []
    if not isinstance(payment_slips, list):
        raise LedgerValidationError("payment_slips must be a list")

    explicit = allocations is not None
    plan = _normalize_allocations(allocations) if explicit else None

    if plan is not None:
        planned = sum((a["amount"] for a in plan), ZERO)
        if planned > amt:
            raise LedgerValidationError(
                f"Allocations total {planned} exceeds payment amount {amt}"
            )

    _require_customer(customer_id)

    if plan is None:
        plan = build_fifo_allocations(customer_id=customer_id, amount=amt, lock=True)

    logger.info(
        "Recording due payment",
        extra={
            "customer_id": str(customer_id),
            "amount": str(amt),
            "payment_method": method,
            "allocation_count": len(plan),
            "mode": "explicit" if explicit else "fifo",
        },
    )

    payment = DuePayment.objects.create(
        customer_id=customer_id,
        amount=amt,
        payment_method=method,
        payment_date=payment_date or timezone.now(),
        reference=(reference or "").strip(),
        note=note or "",
        payment_slips=payment_slips,
        branch=branch,
        recorded_by=recorded_by,
    )

    applied = ZERO
    for entry in plan:
        order = _lock_order(entry["order_id"])

        if order.customer_id != customer_id:
            logger.warning(
                "Allocation rejected: order belongs to another customer",
                extra={"order_id": str(order.id), "customer_id": str(customer_id)},
            )
            raise LedgerConsistencyError(
                f"Order {order.order_number} does not belong to this customer"
            )

        if order.payment_status not in Order.OPEN_PAYMENT_STATUSES:
            logger.warning(
                "Allocation rejected: order is not open",
                extra={"order_id": str(order.id), "payment_status": order.payment_status},
            )
            raise LedgerConsistencyError(
                f"Order {order.order_number} is not due "
                f"(payment status: {order.payment_status})"
            )

        alloc_amount = entry["amount"]
        owed_left = remaining_owed(order)
        if alloc_amount > owed_left:
            logger.warning(
                "Allocation rejected: exceeds remaining owed",
                extra={
                    "order_id": str(order.id),
                    "allocation": str(alloc_amount),
                    "remaining_owed": str(owed_left),
                },
            )
            raise AllocationExceedsOwedError(
                f"Allocation {alloc_amount} exceeds remaining owed {owed_left} "
                f"on order {order.order_number}"
            )

        DuePaymentAllocation.objects.create(
            payment=payment,
            order=order,
            amount=alloc_amount,
        )

        try:
            apply_payment(order, alloc_amount)
        except OrderFinancialsError as exc:
            raise LedgerConsistencyError(str(exc)) from exc

        applied += alloc_amount

    unapplied = amt - applied
    if unapplied != ZERO:
        payment.unapplied_amount = unapplied
        payment.save(update_fields=["unapplied_amount"])

    logger.info(
        "Due payment recorded",
        extra={
            "payment_id": str(payment.id),
            "applied": str(applied),
            "unapplied": str(unapplied),
        },
    )
    return payment


# ============================================================
# CORRECTIONS
# ============================================================

_EDITABLE_FIELDS = ("payment_method", "payment_date", "reference", "note", "payment_slips")


def get_due_payment(*, payment_id) -> DuePayment:
    payment_id = _uuid(payment_id, field="payment_id")
    try:
        return DuePayment.objects.get(id=payment_id)
    except DuePayment.DoesNotExist as exc:
        raise LedgerNotFoundError("Payment not found") from exc


@transaction.atomic
def update_due_payment(
    *,
    payment_id,
    payment_method=None,
    payment_date=None,
    reference=None,
    note=None,
    payment_slips=None,
) -> DuePayment:
    """
    Administrative correction of descriptive fields.
    Allocations and order balances are never touched.
    """
    payment_id = _uuid(payment_id, field="payment_id")
    try:
        payment = DuePayment.objects.select_for_update().get(id=payment_id)
    except DuePayment.DoesNotExist as exc:
        raise LedgerNotFoundError("Payment not found") from exc

    changes = {
        "payment_method": payment_method,
        "payment_date": payment_date,
        "reference": reference,
        "note": note,
        "payment_slips": payment_slips,
    }

    if payment_method is not None and not str(payment_method).strip():
        raise LedgerValidationError("payment_method cannot be blank")
    if payment_slips is not None and not isinstance(payment_slips, list):
        raise LedgerValidationError("payment_slips must be a list")

    updated = []
    for field in _EDITABLE_FIELDS:
        value = changes[field]
        if value is None:
            continue
        setattr(payment, field, value)
        updated.append(field)

    if updated:
        payment.save(update_fields=updated)
        logger.info(
            "Due payment updated",
            extra={"payment_id": str(payment.id), "fields": updated},
        )

    return payment


@transaction.atomic
def delete_due_payment(*, payment_id) -> dict:
    """
    Delete a payment and its allocations (allocations first).

    With DUE_PAYMENT_DELETE_REVERSES_ALLOCATIONS on, each allocated order is
    locked and its paid_amount reduced by the allocation, status re-derived
    (an order with nothing paid left goes back to "due"). With it off, order
    balances are left exactly as they were.
    """
    payment_id = _uuid(payment_id, field="payment_id")
    try:
        payment = DuePayment.objects.select_for_update().get(id=payment_id)
    except DuePayment.DoesNotExist as exc:
        raise LedgerNotFoundError("Payment not found") from exc

    allocations = list(payment.allocations.all().order_by("created_at", "id"))
    reverse = getattr(settings, "DUE_PAYMENT_DELETE_REVERSES_ALLOCATIONS", True)

    reversed_orders = 0
    if reverse:
        for alloc in allocations:
            order = _lock_order(alloc.order_id)
            try:
                reverse_payment(order, alloc.amount)
            except OrderFinancialsError as exc:
                logger.error(
                    "Allocation reversal failed",
                    extra={"payment_id": str(payment.id), "order_id": str(order.id)},
                )
                raise LedgerConsistencyError(str(exc)) from exc
            reversed_orders += 1

    allocation_count = len(allocations)
    payment.allocations.all().delete()
    payment.delete()

    logger.info(
        "Due payment deleted",
        extra={
            "payment_id": str(payment_id),
            "allocations_deleted": allocation_count,
            "orders_reversed": reversed_orders,
        },
    )
    return {
        "payment_id": payment_id,
        "allocations_deleted": allocation_count,
        "orders_reversed": reversed_orders,
    }


def bulk_delete_due_payments(*, ids) -> dict:
    """
    Delete many payments; each one in its own transaction.
    Failures are collected, not raised.
    """
    deleted = 0
    errors = []

    for raw_id in ids or []:
        try:
            delete_due_payment(payment_id=raw_id)
        except LedgerError as exc:
            errors.append({"id": str(raw_id), "error": str(exc)})
            continue
        deleted += 1

    if errors:
        logger.warning(
            "Bulk payment delete finished with errors",
            extra={"deleted_count": deleted, "error_count": len(errors)},
        )

    return {"deleted_count": deleted, "errors": errors}


# ============================================================
# READS
# ============================================================

def list_due_payments(
    *,
    customer_id=None,
    branch_id=None,
    date_from=None,
    date_to=None,
    limit=None,
    offset=0,
):
    """
    Payments newest first. branch_id includes unassigned payments.
    The API pages the queryset itself; limit/offset are for direct callers.
    """
    qs = DuePayment.objects.select_related("branch", "recorded_by").prefetch_related(
        "allocations__order"
    )

    if customer_id:
        qs = qs.filter(customer_id=_uuid(customer_id, field="customer_id"))
    if branch_id:
        branch_id = _uuid(branch_id, field="branch_id")
        qs = qs.filter(Q(branch_id=branch_id) | Q(branch__isnull=True))
    if date_from:
        qs = qs.filter(payment_date__gte=date_from)
    if date_to:
        qs = qs.filter(payment_date__lte=date_to)

    qs = qs.order_by("-payment_date", "-created_at")

    start = max(int(offset or 0), 0)
    if limit is not None:
        return qs[start : start + max(int(limit), 0)]
    if start:
        return qs[start:]
    return qs


def list_allocations(*, payment_id=None, order_id=None):
    qs = DuePaymentAllocation.objects.select_related("order", "payment")

    if payment_id:
        qs = qs.filter(payment_id=_uuid(payment_id, field="payment_id"))
    if order_id:
        qs = qs.filter(order_id=_uuid(order_id, field="order_id"))

    return qs.order_by("created_at", "id")
