"""DB helpers for tests: bootstrap a temporary SQLite DB and seed rows."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from db.client import create_schema, session_scope
from db.models.finance import RfRecurringTransaction, RfTransaction
from sqlalchemy import inspect


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    create_schema(database_url=url)
    _assert_schema_created(url)
    return url


def add_transaction(
    database_url: str,
    *,
    description: str,
    amount: str | Decimal,
    execution_date: date,
    user_id: int = 1,
    type: str = "expense",
    status: str = "executed",
    source: str = "manual",
    created_at: datetime | None = None,
    recurring_transaction_id: int | None = None,
) -> int:
    """Insert one transaction row and return its id."""

    with session_scope(database_url=database_url) as session:
        row = RfTransaction(
            user_id=user_id,
            description=description,
            amount=Decimal(str(amount)),
            type=type,
            status=status,
            execution_date=execution_date,
            source=source,
            recurring_transaction_id=recurring_transaction_id,
        )
        if created_at is not None:
            row.created_at = created_at
        session.add(row)
        session.flush()
        return row.id


def add_recurring(
    database_url: str,
    *,
    name: str,
    amount: str | Decimal,
    frequency_type: str,
    start_date: date,
    user_id: int = 1,
    type: str = "expense",
    frequency_every_n: int = 1,
    end_date: date | None = None,
    occurrences: int | None = None,
    status: str = "SCHEDULED",
    next_occurrence: date | None = None,
) -> int:
    """Insert one recurring definition row and return its id."""

    with session_scope(database_url=database_url) as session:
        row = RfRecurringTransaction(
            user_id=user_id,
            name=name,
            amount=Decimal(str(amount)),
            type=type,
            status=status,
            frequency_type=frequency_type,
            frequency_every_n=frequency_every_n,
            start_date=start_date,
            end_date=end_date,
            occurrences=occurrences,
            next_occurrence=next_occurrence,
            source="MANUAL",
        )
        session.add(row)
        session.flush()
        return row.id


def _assert_schema_created(database_url: str) -> None:
    """Quick sanity check that every ORM table exists in the new database."""

    from db import Base

    with session_scope(database_url=database_url) as session:
        got = set(inspect(session.get_bind()).get_table_names())
    missing = set(Base.metadata.tables) - got
    assert not missing, f"schema not created: missing={sorted(missing)}"
