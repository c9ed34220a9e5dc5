"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the finance domain models used by ``recurring_finance``.
"""

from .finance import (
    Base,
    RfBankAccount,
    RfCategory,
    RfPendingDuplicate,
    RfRecurringTransaction,
    RfTag,
    RfTransaction,
)

__all__ = [
    "Base",
    "RfBankAccount",
    "RfCategory",
    "RfPendingDuplicate",
    "RfRecurringTransaction",
    "RfTag",
    "RfTransaction",
]
