"""Public API interfaces and orchestration for the ``recurring_finance`` package.

The pure engine functions (:func:`generate_occurrences`,
:func:`next_execution_date`) are re-exported unchanged. Everything that needs
stored data opens its own ``session_scope`` and accepts ``database_url=``;
when omitted the ``DATABASE_URL`` environment variable is used.

Thresholds default to :meth:`EngineSettings.from_env`, so ``RF_*`` overrides
apply to every call made through this module.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal

from .detector import detect_pattern_for_transaction as _detect_for_transaction
from .detector import detect_patterns as _detect_patterns
from .models import (
    DuplicateChoice,
    DuplicateConflict,
    MaterializationResult,
    PendingDuplicate,
    RecurringDefinition,
    RecurringPatternCandidate,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from .resolution import TransactionStore
from .resolution import resolve_duplicate as _resolve_duplicate
from .schedule import generate_occurrences, next_execution_date  # noqa: F401  (re-export)
from .settings import EngineSettings

# DB and persistence imports are local within functions so the pure engine
# can be used without a configured database.


def _settings(settings: EngineSettings | None) -> EngineSettings:
    return settings if settings is not None else EngineSettings.from_env()


def detect_patterns(
    user_id: int,
    *,
    start: date | None = None,
    end: date | None = None,
    database_url: str | None = None,
    settings: EngineSettings | None = None,
) -> list[RecurringPatternCandidate]:
    """Detect recurring patterns in a user's stored history (optionally bounded)."""

    from db.client import session_scope

    from .persistence import load_user_transactions

    with session_scope(database_url=database_url) as session:
        history = load_user_transactions(session, user_id=user_id, start=start, end=end)
    return _detect_patterns(history, settings=_settings(settings))


def detect_pattern_for_transaction(
    transaction: Transaction | int,
    *,
    history: Iterable[Transaction] | None = None,
    database_url: str | None = None,
    settings: EngineSettings | None = None,
) -> RecurringPatternCandidate:
    """Single-transaction detection.

    ``transaction`` is either a snapshot or a stored transaction id. Unless
    ``history`` is given, the owner's full stored history is loaded.
    """

    if isinstance(transaction, Transaction) and history is not None:
        return _detect_for_transaction(transaction, history, settings=_settings(settings))

    from db.client import session_scope

    from .persistence import load_transaction, load_user_transactions

    with session_scope(database_url=database_url) as session:
        tx = (
            transaction
            if isinstance(transaction, Transaction)
            else load_transaction(session, transaction)
        )
        rows = (
            list(history)
            if history is not None
            else load_user_transactions(session, user_id=tx.user_id)
        )
    return _detect_for_transaction(tx, rows, settings=_settings(settings))


def find_duplicate_candidate(
    amount: Decimal | float | str,
    type: TransactionType | str,
    execution_date: date | datetime | None,
    user_id: int,
    *,
    database_url: str | None = None,
    settings: EngineSettings | None = None,
) -> Transaction | None:
    from db.client import session_scope

    from .duplicates import find_duplicate_candidate as _find

    with session_scope(database_url=database_url) as session:
        return _find(
            session,
            amount=amount,
            type=type,
            execution_date=execution_date,
            user_id=user_id,
            settings=_settings(settings),
        )


def resolve_duplicate(
    existing: Transaction,
    incoming: TransactionDraft,
    choice: DuplicateChoice | str | None = None,
    *,
    store: TransactionStore | None = None,
    database_url: str | None = None,
) -> Transaction | DuplicateConflict:
    """Apply ``choice`` to a probable duplicate.

    With an explicit ``store`` nothing else is touched; otherwise the stored
    transactions are updated in a fresh session.
    """

    if store is not None:
        return _resolve_duplicate(existing, incoming, choice, store=store)

    from db.client import session_scope

    from .persistence import SqlTransactionStore

    with session_scope(database_url=database_url) as session:
        return _resolve_duplicate(
            existing, incoming, choice, store=SqlTransactionStore(session)
        )


def materialize_due(
    today: date | datetime | None = None,
    *,
    database_url: str | None = None,
    settings: EngineSettings | None = None,
) -> list[MaterializationResult]:
    """Materialize every due ``SCHEDULED`` definition as of ``today`` (default: now)."""

    from db.client import session_scope

    from .models import as_date
    from .workflows.materialize import materialize_due_definitions

    when = as_date(today) if today is not None else date.today()
    with session_scope(database_url=database_url) as session:
        return materialize_due_definitions(session, today=when, settings=_settings(settings))


def list_pending_duplicates(
    user_id: int, *, database_url: str | None = None
) -> list[PendingDuplicate]:
    """Unresolved parked duplicates owned by ``user_id``, oldest first."""

    from db.client import session_scope

    from .duplicates import list_pending_duplicates as _list_pending

    with session_scope(database_url=database_url) as session:
        return _list_pending(session, user_id=user_id)


def resolve_pending_duplicate(
    pending_id: int,
    choice: DuplicateChoice | str | None,
    *,
    user_id: int,
    database_url: str | None = None,
) -> Transaction | DuplicateConflict:
    from db.client import session_scope

    from .duplicates import resolve_pending_duplicate as _resolve_pending

    with session_scope(database_url=database_url) as session:
        return _resolve_pending(
            session, pending_id=pending_id, user_id=user_id, choice=choice
        )


def save_definition(
    definition: RecurringDefinition,
    *,
    category: str | None = None,
    bank_account: str | None = None,
    database_url: str | None = None,
) -> RecurringDefinition:
    """Store a confirmed definition so ``materialize_due`` picks it up.

    ``category`` and ``bank_account`` are names; missing rows are created for
    the definition's owner.
    """

    from db.client import session_scope

    from .persistence import save_definition as _save

    with session_scope(database_url=database_url) as session:
        return _save(session, definition, category=category, bank_account=bank_account)


__all__ = [
    "detect_patterns",
    "detect_pattern_for_transaction",
    "generate_occurrences",
    "next_execution_date",
    "find_duplicate_candidate",
    "resolve_duplicate",
    "materialize_due",
    "list_pending_duplicates",
    "resolve_pending_duplicate",
    "save_definition",
]
