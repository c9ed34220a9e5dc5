"""db: shared database library (SQLAlchemy).

Public exports
--------------
- ``Base`` and ``metadata`` for schema creation
- ORM models in ``db.models.finance`` (re-exported for convenience)
- Engine/session helpers in ``db.client``
"""

from __future__ import annotations

from .models.finance import (
    Base,
    RfBankAccount,
    RfCategory,
    RfPendingDuplicate,
    RfRecurringTransaction,
    RfTag,
    RfTransaction,
)

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "RfBankAccount",
    "RfCategory",
    "RfPendingDuplicate",
    "RfRecurringTransaction",
    "RfTag",
    "RfTransaction",
]
