# orders/services/exceptions.py

"""
ORDER SERVICE ERRORS
"""


class OrderServiceError(Exception):
    """Base exception for order services."""


class SequenceError(OrderServiceError):
    """Raised when an order number cannot be allocated."""


class OrderFinancialsError(OrderServiceError):
    """Raised when an order's ledger fields would become inconsistent."""


class OrderNotFoundError(OrderServiceError):
    """Raised when an order id does not resolve to a row."""
