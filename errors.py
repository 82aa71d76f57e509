"""
errors.py
Ledger exceptions (validation, lookups, check-in refusals, store failures).
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for everything the ledger raises on purpose."""


class ValidationError(LedgerError):
    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or [message]


class NotFoundError(LedgerError):
    def __init__(self, collection: str, record_id: str):
        super().__init__(f"No record {record_id!r} in {collection}.")
        self.collection = collection
        self.record_id = record_id


PAYMENT_INCOMPLETE = "payment_incomplete"
SUBSCRIPTION_INACTIVE = "subscription_inactive"

_BLOCK_MESSAGES = {
    PAYMENT_INCOMPLETE: "Cannot check in: member has an incomplete payment.",
    SUBSCRIPTION_INACTIVE: "Cannot check in: member subscription is overdue.",
}


class CheckInBlocked(LedgerError):
    def __init__(self, reason: str):
        super().__init__(_BLOCK_MESSAGES.get(reason, f"Cannot check in: {reason}."))
        self.reason = reason


class StoreError(LedgerError):
    """The record store failed; the original exception is chained."""
