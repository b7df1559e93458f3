from .allocation import (
    build_fifo_allocations,
    bulk_delete_due_payments,
    delete_due_payment,
    get_due_payment,
    list_allocations,
    list_due_payments,
    record_payment,
    update_due_payment,
)
from .ledger import (
    get_all_customers_due_summary,
    get_customer_due_summary,
    get_customer_transactions,
    get_customers_due_summary_stats,
)

__all__ = [
    "build_fifo_allocations",
    "bulk_delete_due_payments",
    "delete_due_payment",
    "get_due_payment",
    "list_allocations",
    "list_due_payments",
    "record_payment",
    "update_due_payment",
    "get_all_customers_due_summary",
    "get_customer_due_summary",
    "get_customer_transactions",
    "get_customers_due_summary_stats",
]
