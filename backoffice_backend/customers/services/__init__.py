from .customer_service import WALK_IN_CUSTOMER, find_or_create_customer, get_customer

__all__ = [
    "WALK_IN_CUSTOMER",
    "find_or_create_customer",
    "get_customer",
]
