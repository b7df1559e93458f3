# customers/services/exceptions.py

"""
CUSTOMER SERVICE ERRORS
"""


class CustomerServiceError(Exception):
    """Base exception for customer service failures."""


class CustomerNotFoundError(CustomerServiceError):
    """Raised when a customer id does not resolve to a row."""
