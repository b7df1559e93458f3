from .financials import (
    derive_payment_status,
    initial_financials,
    outstanding_amount,
    owed_amount,
    remaining_owed,
    update_order_totals,
)
from .order_entry import create_due_entry, create_order
from .sequence import next_order_number

__all__ = [
    "derive_payment_status",
    "initial_financials",
    "outstanding_amount",
    "owed_amount",
    "remaining_owed",
    "update_order_totals",
    "create_due_entry",
    "create_order",
    "next_order_number",
]
