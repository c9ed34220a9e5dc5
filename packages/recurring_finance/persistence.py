# ruff: noqa: I001
"""Persistence integration for recurring_finance.

Functions here read snapshots from and write rows to the shared database owned
by ``libs/db``. They rely on the SQLAlchemy ORM models in ``db.models.finance``
and a session provided by ``db.client``; committing is always the caller's
job (normally via ``session_scope``).

Scope:
- Load a user's transactions as immutable ``Transaction`` snapshots.
- Load/save ``RecurringDefinition`` rows.
- ``SqlTransactionStore``: the store used by duplicate resolution.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from db.models.finance import RfRecurringTransaction, RfTransaction
from .lookups import get_or_create_bank_account, get_or_create_category, resolve_tags
from .models import (
    RecurrenceSource,
    RecurrenceStatus,
    RecurringDefinition,
    Transaction,
    TransactionDraft,
    TransactionStatus,
    TransactionType,
)


def to_amount(raw: Decimal | float | int | str) -> Decimal:
    """Quantize to cents the way the ``Numeric(…, 2)`` columns store amounts."""

    return Decimal(str(raw)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def transaction_from_row(row: RfTransaction) -> Transaction:
    return Transaction(
        id=row.id,
        description=row.description,
        amount=to_amount(row.amount),
        type=TransactionType(row.type),
        execution_date=row.execution_date,
        user_id=row.user_id,
        status=TransactionStatus(row.status),
        source=row.source,
        created_at=row.created_at,
        category_id=row.category_id,
        bank_account_id=row.bank_account_id,
        recurring_id=row.recurring_transaction_id,
        tag_names=tuple(t.name for t in row.tags),
    )


def load_user_transactions(
    session: Session,
    *,
    user_id: int,
    start: date | None = None,
    end: date | None = None,
) -> list[Transaction]:
    """A user's transactions ordered by execution date (then id), optionally bounded."""

    stmt = (
        select(RfTransaction)
        .options(selectinload(RfTransaction.tags))
        .where(RfTransaction.user_id == user_id)
        .order_by(RfTransaction.execution_date.asc(), RfTransaction.id.asc())
    )
    if start is not None:
        stmt = stmt.where(RfTransaction.execution_date >= start)
    if end is not None:
        stmt = stmt.where(RfTransaction.execution_date <= end)
    return [transaction_from_row(r) for r in session.execute(stmt).scalars().all()]


def load_transaction(session: Session, transaction_id: int) -> Transaction:
    row = session.get(RfTransaction, transaction_id)
    if row is None:
        raise LookupError(f"transaction {transaction_id} not found")
    return transaction_from_row(row)


def _apply_draft(session: Session, row: RfTransaction, draft: TransactionDraft) -> None:
    row.user_id = draft.user_id
    row.description = draft.description
    row.amount = to_amount(draft.amount)
    row.type = str(draft.type)
    row.status = str(draft.status)
    row.execution_date = draft.execution_date
    row.source = draft.source
    row.category_id = draft.category_id
    row.bank_account_id = draft.bank_account_id
    row.recurring_transaction_id = draft.recurring_id
    row.tags = resolve_tags(session, user_id=draft.user_id, names=draft.tag_names)


def insert_transaction(session: Session, draft: TransactionDraft) -> Transaction:
    row = RfTransaction()
    _apply_draft(session, row, draft)
    session.add(row)
    session.flush()
    session.refresh(row)
    return transaction_from_row(row)


class SqlTransactionStore:
    """Transaction store backed by an open session (caller commits)."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, draft: TransactionDraft) -> Transaction:
        return insert_transaction(self.session, draft)

    def replace(self, existing: Transaction, draft: TransactionDraft) -> Transaction:
        if existing.id is None:
            raise ValueError("cannot replace a transaction that has no id")
        row = self.session.get(RfTransaction, existing.id)
        if row is None:
            raise LookupError(f"transaction {existing.id} not found")
        _apply_draft(self.session, row, draft)
        self.session.flush()
        self.session.refresh(row)
        return transaction_from_row(row)


# ---------------------------------------------------------------------------
# Recurring definitions
# ---------------------------------------------------------------------------


def definition_from_row(row: RfRecurringTransaction) -> RecurringDefinition:
    return RecurringDefinition(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        description=row.description,
        amount=to_amount(row.amount),
        type=TransactionType(row.type),
        frequency_type=row.frequency_type,
        frequency_every_n=row.frequency_every_n,
        start_date=row.start_date,
        end_date=row.end_date,
        occurrences=row.occurrences,
        status=RecurrenceStatus(row.status),
        user_confirmed=row.user_confirmed,
        source=RecurrenceSource(row.source),
        next_occurrence=row.next_occurrence,
        day_of_month=row.day_of_month,
        day_of_week=row.day_of_week,
        month=row.month,
        category_id=row.category_id,
        bank_account_id=row.bank_account_id,
        tag_names=tuple(t.name for t in row.tags),
    )


def load_definition(session: Session, recurring_id: int) -> RecurringDefinition:
    row = session.get(RfRecurringTransaction, recurring_id)
    if row is None:
        raise LookupError(f"recurring transaction {recurring_id} not found")
    return definition_from_row(row)


def load_due_definitions(session: Session, *, today: date) -> list[RecurringDefinition]:
    """``SCHEDULED`` definitions whose next occurrence is unset or on/before ``today``."""

    stmt = (
        select(RfRecurringTransaction)
        .options(selectinload(RfRecurringTransaction.tags))
        .where(RfRecurringTransaction.status == RecurrenceStatus.SCHEDULED.value)
        .where(
            RfRecurringTransaction.next_occurrence.is_(None)
            | (RfRecurringTransaction.next_occurrence <= today)
        )
        .order_by(RfRecurringTransaction.id.asc())
    )
    return [definition_from_row(r) for r in session.execute(stmt).scalars().all()]


def save_definition(
    session: Session,
    definition: RecurringDefinition,
    *,
    category: str | None = None,
    bank_account: str | None = None,
) -> RecurringDefinition:
    """Insert (``id is None``) or update a definition and return the stored state.

    ``category`` and ``bank_account`` name the owner's lookup rows; missing
    ones are created and their ids replace the definition's own.
    """

    if definition.user_id is None:
        raise ValueError("recurring definition requires a user_id to be stored")

    category_id = definition.category_id
    if category is not None:
        found_category, _ = get_or_create_category(
            session, user_id=definition.user_id, name=category
        )
        category_id = found_category.id
    bank_account_id = definition.bank_account_id
    if bank_account is not None:
        found_account, _ = get_or_create_bank_account(
            session, user_id=definition.user_id, name=bank_account
        )
        bank_account_id = found_account.id

    if definition.id is None:
        row = RfRecurringTransaction()
        session.add(row)
    else:
        found = session.get(RfRecurringTransaction, definition.id)
        if found is None:
            raise LookupError(f"recurring transaction {definition.id} not found")
        row = found

    row.user_id = definition.user_id
    row.name = definition.name
    row.description = definition.description
    row.amount = to_amount(definition.amount)
    row.type = str(definition.type)
    row.status = str(definition.status)
    row.frequency_type = str(definition.frequency_type)
    row.frequency_every_n = definition.frequency_every_n
    row.occurrences = definition.occurrences
    row.start_date = definition.start_date
    row.end_date = definition.end_date
    row.next_occurrence = definition.next_occurrence
    row.day_of_month = definition.day_of_month
    row.day_of_week = definition.day_of_week
    row.month = definition.month
    row.user_confirmed = definition.user_confirmed
    row.source = str(definition.source)
    row.category_id = category_id
    row.bank_account_id = bank_account_id
    row.tags = resolve_tags(session, user_id=definition.user_id, names=definition.tag_names)
    session.flush()
    session.refresh(row)
    return definition_from_row(row)


def materialized_dates(session: Session, *, recurring_id: int) -> set[date]:
    """Execution dates already stored for a definition."""

    rows = session.execute(
        select(RfTransaction.execution_date).where(
            RfTransaction.recurring_transaction_id == recurring_id
        )
    ).scalars()
    return {d for d in rows if d is not None}


def promote_due_pending(session: Session, *, recurring_id: int, today: date) -> int:
    """Flip a definition's stored ``pending`` rows dated on or before ``today`` to executed."""

    rows = session.execute(
        select(RfTransaction)
        .where(RfTransaction.recurring_transaction_id == recurring_id)
        .where(RfTransaction.status == TransactionStatus.PENDING.value)
        .where(RfTransaction.execution_date <= today)
    ).scalars().all()
    for row in rows:
        row.status = TransactionStatus.EXECUTED.value
    if rows:
        session.flush()
    return len(rows)


__all__ = [
    "to_amount",
    "transaction_from_row",
    "load_user_transactions",
    "load_transaction",
    "insert_transaction",
    "SqlTransactionStore",
    "definition_from_row",
    "load_definition",
    "load_due_definitions",
    "save_definition",
    "materialized_dates",
    "promote_due_pending",
]
