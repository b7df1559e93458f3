# dues/services/exceptions.py

"""
DUE LEDGER SERVICE ERRORS

Every ledger error aborts the whole operation; the API layer maps them:
- LedgerValidationError  -> 400
- LedgerNotFoundError    -> 404
- LedgerConsistencyError -> 409
"""


class LedgerError(Exception):
    """Base exception for due ledger failures."""


class LedgerValidationError(LedgerError):
    """Bad input (non-positive amount, missing allocation fields). Nothing written."""


class LedgerNotFoundError(LedgerError):
    """Payment, order or customer id does not exist."""


class LedgerConsistencyError(LedgerError):
    """The operation would break a ledger invariant."""


class AllocationExceedsOwedError(LedgerConsistencyError):
    """An allocation is larger than the order's remaining owed amount."""
