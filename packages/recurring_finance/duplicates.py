"""Duplicate lookup and pending-duplicate helpers.

This module exposes the storage-facing half of duplicate handling; the
decision logic itself lives in ``resolution.py`` and is storage agnostic.

Public surface:
- ``is_duplicate_match``: pure predicate for one candidate row.
- ``find_duplicate_candidate``: most recently created probable duplicate of an
  incoming amount/type/date for a user, or ``None``.
- ``record_pending_duplicate`` / ``list_pending_duplicates``: park an incoming
  row that collided with an existing one until a user decides.
- ``resolve_pending_duplicate``: apply a ``DuplicateChoice`` to a parked row
  and mark it resolved (commit at caller).

Screening is check-then-act and therefore racy under concurrent writers for
the same user; an occasional missed duplicate is user-correctable.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal

from db.models.finance import RfPendingDuplicate, RfTransaction
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .logging_setup import get_logger
from .models import (
    DuplicateChoice,
    DuplicateConflict,
    PendingDuplicate,
    Transaction,
    TransactionDraft,
    TransactionType,
    as_date,
)
from .persistence import SqlTransactionStore, transaction_from_row
from .resolution import parse_choice, resolve_duplicate
from .settings import DEFAULT_SETTINGS, EngineSettings

logger = get_logger("recurring_finance.duplicates")

# Closed set of origins recorded with a pending duplicate
_ALLOWED_SOURCES: set[str] = {"recurring", "csv_import", "api"}


def is_duplicate_match(
    candidate: Transaction,
    *,
    amount: Decimal,
    type: TransactionType,
    execution_date: date,
    window_days: int = DEFAULT_SETTINGS.duplicate_window_days,
    tolerance: Decimal = DEFAULT_SETTINGS.duplicate_amount_tolerance,
) -> bool:
    """Same type, date within ``±window_days`` and amount within ``tolerance``."""

    if candidate.type != type or candidate.execution_date is None:
        return False
    if abs((candidate.execution_date - execution_date).days) > window_days:
        return False
    return abs(Decimal(str(candidate.amount)) - Decimal(str(amount))) <= tolerance


def find_duplicate_candidate(
    session: Session,
    *,
    amount: Decimal | float | str,
    type: TransactionType | str,
    execution_date: date | datetime | None,
    user_id: int,
    exclude_recurring_id: int | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> Transaction | None:
    """Return the most recently created probable duplicate, if any.

    The type and date window are filtered in SQL; the cent tolerance is
    applied in ``Decimal`` afterwards because SQLite compares ``NUMERIC``
    columns as floats, where ``100.01 - 100.00`` exceeds ``0.01``. The incoming
    amount is compared as given, without rounding to cents.
    Rows generated by ``exclude_recurring_id`` are ignored so a definition
    never collides with its own earlier occurrences.
    """

    if execution_date is None:
        raise ValueError("Execution date is required for duplicate detection.")
    when = as_date(execution_date)
    tx_type = TransactionType(type)
    window = timedelta(days=settings.duplicate_window_days)

    stmt = (
        select(RfTransaction)
        .options(selectinload(RfTransaction.tags))
        .where(RfTransaction.user_id == user_id)
        .where(RfTransaction.type == tx_type.value)
        .where(RfTransaction.execution_date.between(when - window, when + window))
        .order_by(RfTransaction.created_at.desc(), RfTransaction.id.desc())
    )
    if exclude_recurring_id is not None:
        stmt = stmt.where(
            RfTransaction.recurring_transaction_id.is_(None)
            | (RfTransaction.recurring_transaction_id != exclude_recurring_id)
        )
    wanted = Decimal(str(amount))
    for row in session.execute(stmt).scalars():
        candidate = transaction_from_row(row)
        if is_duplicate_match(
            candidate,
            amount=wanted,
            type=tx_type,
            execution_date=when,
            window_days=settings.duplicate_window_days,
            tolerance=settings.duplicate_amount_tolerance,
        ):
            return candidate
    return None


def _snapshot(tx: Transaction) -> dict[str, object]:
    return {
        "id": tx.id,
        "description": tx.description,
        "amount": f"{tx.amount:.2f}",
        "type": str(tx.type),
        "execution_date": tx.execution_date.isoformat() if tx.execution_date else None,
    }


def record_pending_duplicate(
    session: Session,
    *,
    existing: Transaction,
    incoming: TransactionDraft,
    source: str,
    source_reference: str | None = None,
) -> int:
    """Persist ``incoming`` as awaiting a decision against ``existing``; return its id."""

    if source not in _ALLOWED_SOURCES:
        raise ValueError(
            f"Unsupported pending duplicate source: {source!r}. "
            f"Allowed: {sorted(_ALLOWED_SOURCES)}"
        )
    row = RfPendingDuplicate(
        user_id=incoming.user_id,
        existing_transaction_id=existing.id,
        existing_transaction_data=_snapshot(existing),
        new_transaction_data=incoming.to_json(),
        source=source,
        source_reference=source_reference,
        resolved=False,
    )
    session.add(row)
    session.flush()
    logger.info(
        "pending duplicate %s recorded: incoming %r on %s collides with transaction %s",
        row.id,
        incoming.description,
        incoming.execution_date.isoformat(),
        existing.id,
    )
    return row.id


def _existing_from_snapshot(
    row: RfPendingDuplicate, *, message: str = "Duplicate transaction detected"
) -> DuplicateConflict:
    data = row.existing_transaction_data or {}
    incoming_type = (row.new_transaction_data or {}).get("type")
    return DuplicateConflict(
        transaction_id=row.existing_transaction_id,
        description=str(data.get("description") or ""),
        amount=Decimal(str(data.get("amount") or "0")),
        execution_date=(
            date.fromisoformat(data["execution_date"]) if data.get("execution_date") else None
        ),
        type=TransactionType(data.get("type") or incoming_type),
        message=message,
    )


def _pending_from_row(row: RfPendingDuplicate) -> PendingDuplicate:
    return PendingDuplicate(
        id=row.id,
        user_id=row.user_id,
        existing=_existing_from_snapshot(row),
        incoming=TransactionDraft.from_json(row.new_transaction_data),
        source=row.source,
        source_reference=row.source_reference,
        created_at=row.created_at,
    )


def list_pending_duplicates(session: Session, *, user_id: int) -> list[PendingDuplicate]:
    """A user's unresolved parked duplicates, oldest first."""

    stmt = (
        select(RfPendingDuplicate)
        .where(RfPendingDuplicate.user_id == user_id)
        .where(RfPendingDuplicate.resolved.is_(False))
        .order_by(RfPendingDuplicate.created_at.asc(), RfPendingDuplicate.id.asc())
    )
    return [_pending_from_row(r) for r in session.execute(stmt).scalars().all()]


def parked_dates(session: Session, *, source_reference: str) -> set[date]:
    """Execution dates of incoming rows ever parked under ``source_reference``.

    Resolved rows count too: a decision once made is not asked again.
    """

    rows = session.execute(
        select(RfPendingDuplicate.new_transaction_data).where(
            RfPendingDuplicate.source_reference == source_reference
        )
    ).scalars()
    return {
        date.fromisoformat(data["execution_date"])
        for data in rows
        if data and data.get("execution_date")
    }


def resolve_pending_duplicate(
    session: Session,
    *,
    pending_id: int,
    user_id: int,
    choice: DuplicateChoice | str | None,
) -> Transaction | DuplicateConflict:
    """Apply ``choice`` to one of ``user_id``'s parked duplicates.

    Without a choice the row stays unresolved and a ``DuplicateConflict`` is
    returned. When the existing transaction has since been deleted, only
    ``USE_NEW`` and ``MAINTAIN_BOTH`` are meaningful and both create the
    incoming row. Another user's row is reported as not found.
    """

    row = session.execute(
        select(RfPendingDuplicate)
        .where(RfPendingDuplicate.id == pending_id)
        .where(RfPendingDuplicate.user_id == user_id)
    ).scalar_one_or_none()
    if row is None:
        raise LookupError(f"pending duplicate {pending_id} not found")
    if row.resolved:
        raise ValueError(f"pending duplicate {pending_id} is already resolved")

    incoming = TransactionDraft.from_json(row.new_transaction_data)
    store = SqlTransactionStore(session)
    existing_row = (
        session.get(RfTransaction, row.existing_transaction_id)
        if row.existing_transaction_id is not None
        else None
    )

    decided = parse_choice(choice)
    if existing_row is None:
        if decided is None:
            return replace(
                _existing_from_snapshot(row, message="Existing transaction no longer exists"),
                transaction_id=None,
            )
        if decided is DuplicateChoice.KEEP_EXISTING:
            raise ValueError("No existing transaction to keep")
        result: Transaction | DuplicateConflict = store.create(incoming)
    else:
        result = resolve_duplicate(
            transaction_from_row(existing_row), incoming, decided, store=store
        )

    if not isinstance(result, DuplicateConflict):
        row.resolved = True
        session.flush()
        logger.info("pending duplicate %s resolved with %s", pending_id, decided)
    return result


__all__ = [
    "is_duplicate_match",
    "find_duplicate_candidate",
    "record_pending_duplicate",
    "list_pending_duplicates",
    "parked_dates",
    "resolve_pending_duplicate",
]
