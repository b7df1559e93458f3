# orders/services/financials.py

"""
ORDER FINANCIAL STATE

Keeps total / due_amount / paid_amount / payment_status consistent.

RULES:
- owed = due_amount if set, else total
- paid >= owed  -> paid
- paid > 0      -> partial
- otherwise     -> status unchanged
- 0 <= paid_amount <= owed, always

The allocation engine calls apply_payment / reverse_payment on rows it has
already locked. Nothing here commits by itself except update_order_totals.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.db import transaction

from orders.models import Order
from orders.services.exceptions import OrderFinancialsError, OrderNotFoundError
from orders.services.money import ZERO, money


logger = logging.getLogger("orders")

HUNDRED = Decimal("100")

VALID_PAYMENT_STATUSES = {choice for choice, _ in Order.PAYMENT_STATUS_CHOICES}


# ============================================================
# PURE HELPERS
# ============================================================

def owed_amount(order) -> Decimal:
    if order.due_amount is None:
        return money(order.total)
    return money(order.due_amount)


def outstanding_amount(order) -> Decimal:
    """total - paid: what the customer still owes on the invoice face value."""
    return money(order.total) - money(order.paid_amount)


def remaining_owed(order) -> Decimal:
    """owed - paid: the ceiling for any further allocation."""
    return owed_amount(order) - money(order.paid_amount)


def derive_payment_status(*, paid_amount, owed, current_status: str) -> str:
    paid = money(paid_amount)
    if paid >= money(owed):
        return Order.PAYMENT_PAID
    if paid > ZERO:
        return Order.PAYMENT_PARTIAL
    return current_status


def compute_total(*, subtotal, discount=None, discount_type=Order.DISCOUNT_AMOUNT) -> Decimal:
    sub = money(subtotal)
    disc = money(discount)

    if sub < ZERO:
        raise OrderFinancialsError("subtotal cannot be negative")
    if disc < ZERO:
        raise OrderFinancialsError("discount cannot be negative")

    if discount_type == Order.DISCOUNT_PERCENTAGE:
        if disc > HUNDRED:
            raise OrderFinancialsError("percentage discount cannot exceed 100")
        total = sub - money(sub * disc / HUNDRED)
    elif discount_type == Order.DISCOUNT_AMOUNT:
        if disc > sub:
            raise OrderFinancialsError("discount cannot exceed subtotal")
        total = sub - disc
    else:
        raise OrderFinancialsError(f"Unknown discount_type: {discount_type}")

    return money(total)


# ============================================================
# CREATION
# ============================================================

def initial_financials(
    *, payment_status: str, total, due_amount=None, paid_amount=None
) -> dict:
    """
    Ledger fields for a new order.

    - due:     due_amount = total, paid_amount = 0
    - partial: caller's due_amount / paid_amount kept as given
               (paid defaults to 0; a missing due_amount stays NULL)
    - paid / pending: ledger fields left at their defaults
    """
    if payment_status not in VALID_PAYMENT_STATUSES:
        raise OrderFinancialsError(f"Unknown payment_status: {payment_status}")

    total = money(total)
    if total < ZERO:
        raise OrderFinancialsError("total cannot be negative")

    fields = {"payment_status": payment_status, "total": total}

    if payment_status == Order.PAYMENT_DUE:
        fields["due_amount"] = total
        fields["paid_amount"] = ZERO
        return fields

    if payment_status == Order.PAYMENT_PARTIAL:
        due = None if due_amount is None else money(due_amount)
        paid = money(paid_amount)
        owed = total if due is None else due

        if due is not None and due < ZERO:
            raise OrderFinancialsError("due_amount cannot be negative")
        if paid < ZERO:
            raise OrderFinancialsError("paid_amount cannot be negative")
        if paid > owed:
            raise OrderFinancialsError(
                f"paid_amount {paid} exceeds owed amount {owed}"
            )

        fields["due_amount"] = due
        fields["paid_amount"] = paid
        return fields

    return fields


# ============================================================
# MUTATION (caller holds the row lock)
# ============================================================

def apply_payment(order: Order, amount) -> Order:
    amt = money(amount)
    if amt <= ZERO:
        raise OrderFinancialsError("Allocation amount must be > 0")

    remaining = remaining_owed(order)
    if amt > remaining:
        raise OrderFinancialsError(
            f"Allocation {amt} exceeds remaining owed {remaining} on order {order.order_number}"
        )

    order.paid_amount = money(order.paid_amount) + amt
    order.payment_status = derive_payment_status(
        paid_amount=order.paid_amount,
        owed=owed_amount(order),
        current_status=order.payment_status,
    )
    order.save(update_fields=["paid_amount", "payment_status", "updated_at"])
    return order


def reverse_payment(order: Order, amount) -> Order:
    """
    Undo an allocation. A fully reversed order goes back to "due" since the
    derivation rule alone would leave it "partial"/"paid".
    """
    amt = money(amount)
    paid = money(order.paid_amount)
    if amt > paid:
        raise OrderFinancialsError(
            f"Cannot reverse {amt}; order {order.order_number} only has {paid} paid"
        )

    order.paid_amount = paid - amt
    if order.paid_amount > ZERO:
        order.payment_status = derive_payment_status(
            paid_amount=order.paid_amount,
            owed=owed_amount(order),
            current_status=order.payment_status,
        )
    else:
        order.payment_status = Order.PAYMENT_DUE

    order.save(update_fields=["paid_amount", "payment_status", "updated_at"])
    return order


# ============================================================
# ADMINISTRATIVE EDIT
# ============================================================

@transaction.atomic
def update_order_totals(
    *, order_id, subtotal, discount=None, discount_type=Order.DISCOUNT_AMOUNT
) -> Order:
    """
    Recompute total after a correction.

    Recorded payments are NOT reconciled: paid_amount and payment_status stay
    as they are. An edit that would push paid_amount above the owed amount is
    refused.
    """
    try:
        order = Order.objects.select_for_update().get(id=order_id)
    except Order.DoesNotExist as exc:
        raise OrderNotFoundError("Order not found") from exc

    new_total = compute_total(
        subtotal=subtotal, discount=discount, discount_type=discount_type
    )

    new_owed = new_total if order.due_amount is None else money(order.due_amount)
    if money(order.paid_amount) > new_owed:
        logger.warning(
            "Order total edit refused: paid above owed",
            extra={
                "order_id": str(order.id),
                "paid_amount": str(order.paid_amount),
                "new_total": str(new_total),
            },
        )
        raise OrderFinancialsError(
            f"New total {new_total} is below the {order.paid_amount} already paid"
        )

    order.subtotal = money(subtotal)
    order.discount = money(discount)
    order.discount_type = discount_type
    order.total = new_total
    order.save(
        update_fields=["subtotal", "discount", "discount_type", "total", "updated_at"]
    )

    logger.info(
        "Order totals updated",
        extra={"order_id": str(order.id), "total": str(new_total)},
    )
    return order
