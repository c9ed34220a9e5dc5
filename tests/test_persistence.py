from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from db.client import session_scope
from db.models.finance import RfBankAccount, RfCategory

from recurring_finance.models import (
    FrequencyType,
    RecurrenceStatus,
    RecurringDefinition,
    TransactionDraft,
    TransactionType,
)
from recurring_finance.persistence import (
    SqlTransactionStore,
    load_definition,
    load_due_definitions,
    load_transaction,
    load_user_transactions,
    save_definition,
    to_amount,
)
from tests.helpers.db import add_recurring, add_transaction, bootstrap_sqlite_db


def test_to_amount_rounds_half_up_to_cents():
    assert to_amount("10.005") == Decimal("10.01")
    assert to_amount(3) == Decimal("3.00")
    assert to_amount(0.1) == Decimal("0.10")


def test_load_user_transactions_is_ordered_and_bounded(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    b = add_transaction(url, description="B", amount="2", execution_date=date(2024, 2, 1))
    a = add_transaction(url, description="A", amount="1", execution_date=date(2024, 1, 1))
    c = add_transaction(url, description="C", amount="3", execution_date=date(2024, 2, 1))
    add_transaction(url, description="X", amount="9", execution_date=date(2024, 1, 5), user_id=2)

    with session_scope(database_url=url) as session:
        rows = load_user_transactions(session, user_id=1)
        assert [t.id for t in rows] == [a, b, c]
        bounded = load_user_transactions(session, user_id=1, start=date(2024, 1, 15))
        assert [t.id for t in bounded] == [b, c]
        assert load_user_transactions(session, user_id=1, end=date(2024, 1, 1))[0].id == a


def test_load_transaction_missing(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    with session_scope(database_url=url) as session, pytest.raises(LookupError):
        load_transaction(session, 42)


def test_store_create_and_replace(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    draft = TransactionDraft(
        description="Gym",
        amount=Decimal("40.00"),
        type=TransactionType.EXPENSE,
        execution_date=date(2024, 3, 1),
        user_id=1,
        tag_names=("health", "fixed"),
    )
    with session_scope(database_url=url) as session:
        store = SqlTransactionStore(session)
        created = store.create(draft)
        assert created.id is not None
        assert created.tag_names == ("health", "fixed")

        updated = store.replace(
            created,
            TransactionDraft(
                description="City Gym",
                amount=Decimal("42.50"),
                type=TransactionType.EXPENSE,
                execution_date=date(2024, 3, 2),
                user_id=1,
            ),
        )
    assert updated.id == created.id
    assert updated.description == "City Gym"
    assert updated.amount == Decimal("42.50")
    assert updated.tag_names == ()


def test_save_definition_round_trip(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    definition = RecurringDefinition(
        user_id=1,
        name="Rent",
        amount=Decimal("1200"),
        type=TransactionType.EXPENSE,
        frequency_type=FrequencyType.MONTHLY,
        start_date=date(2024, 1, 31),
        day_of_month=31,
        tag_names=("housing",),
    )
    with session_scope(database_url=url) as session:
        stored = save_definition(session, definition)
    assert stored.id is not None

    with session_scope(database_url=url) as session:
        loaded = load_definition(session, stored.id)
        assert loaded.amount == Decimal("1200.00")
        assert loaded.day_of_month == 31
        assert loaded.tag_names == ("housing",)
        assert loaded.status is RecurrenceStatus.SCHEDULED

        paused = save_definition(session, loaded.model_copy(update={"status": "PAUSED"}))
        assert paused.id == stored.id
        assert paused.status is RecurrenceStatus.PAUSED


def test_save_definition_finds_or_creates_category_and_account(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    definition = RecurringDefinition(
        user_id=1,
        name="Rent",
        amount=Decimal("1200"),
        type=TransactionType.EXPENSE,
        frequency_type=FrequencyType.MONTHLY,
        start_date=date(2024, 1, 1),
    )
    with session_scope(database_url=url) as session:
        first = save_definition(session, definition, category="Housing", bank_account="Checking")
        second = save_definition(
            session,
            definition.model_copy(update={"name": "Storage"}),
            category=" Housing ",
            bank_account="Savings",
        )
        assert session.query(RfCategory).count() == 1
        accounts = {a.name: a.id for a in session.query(RfBankAccount).all()}

    assert first.category_id is not None
    assert second.category_id == first.category_id
    assert first.bank_account_id == accounts["Checking"]
    assert second.bank_account_id == accounts["Savings"]

    with session_scope(database_url=url) as session:
        # Without names the ids carried by the definition are kept
        kept = save_definition(session, first.model_copy(update={"name": "Rent (flat)"}))
    assert (kept.category_id, kept.bank_account_id) == (first.category_id, accounts["Checking"])


def test_save_definition_rejects_blank_category(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    definition = RecurringDefinition(
        user_id=1,
        amount=Decimal("1"),
        type=TransactionType.EXPENSE,
        frequency_type=FrequencyType.DAILY,
        start_date=date(2024, 1, 1),
    )
    with session_scope(database_url=url) as session, pytest.raises(ValueError, match="name"):
        save_definition(session, definition, category="   ")


def test_save_definition_requires_user(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    definition = RecurringDefinition(
        amount=Decimal("1"),
        type=TransactionType.EXPENSE,
        frequency_type=FrequencyType.DAILY,
        start_date=date(2024, 1, 1),
    )
    with session_scope(database_url=url) as session, pytest.raises(ValueError):
        save_definition(session, definition)


def test_load_due_definitions(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    unset = add_recurring(
        url, name="A", amount="1", frequency_type="daily", start_date=date(2024, 1, 1)
    )
    due = add_recurring(
        url,
        name="B",
        amount="1",
        frequency_type="daily",
        start_date=date(2024, 1, 1),
        next_occurrence=date(2024, 3, 1),
    )
    add_recurring(
        url,
        name="C",
        amount="1",
        frequency_type="daily",
        start_date=date(2024, 1, 1),
        next_occurrence=date(2024, 3, 2),
    )
    add_recurring(
        url,
        name="D",
        amount="1",
        frequency_type="daily",
        start_date=date(2024, 1, 1),
        status="CANCELLED",
    )
    with session_scope(database_url=url) as session:
        assert [d.id for d in load_due_definitions(session, today=date(2024, 3, 1))] == [unset, due]
