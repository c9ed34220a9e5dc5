from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


# SQLite only autoincrements INTEGER primary keys; Postgres keeps BIGINT.
_PK = BigInteger().with_variant(Integer, "sqlite")


# ---------------------------
# Reference: lookups owned by a user
# ---------------------------


class RfCategory(Base):
    __tablename__ = "rf_categories"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_rf_categories_user_name"),)


class RfTag(Base):
    __tablename__ = "rf_tags"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_rf_tags_user_name"),)


class RfBankAccount(Base):
    __tablename__ = "rf_bank_accounts"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_rf_bank_accounts_user_name"),
    )


rf_transaction_tags = Table(
    "rf_transaction_tags",
    Base.metadata,
    Column(
        "transaction_id",
        ForeignKey("rf_transactions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("tag_id", ForeignKey("rf_tags.id", ondelete="CASCADE"), primary_key=True),
)

rf_recurring_transaction_tags = Table(
    "rf_recurring_transaction_tags",
    Base.metadata,
    Column(
        "recurring_transaction_id",
        ForeignKey("rf_recurring_transactions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("tag_id", ForeignKey("rf_tags.id", ondelete="CASCADE"), primary_key=True),
)


# ---------------------------
# Core: rf_recurring_transactions
# ---------------------------


class RfRecurringTransaction(Base):
    __tablename__ = "rf_recurring_transactions"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    name: Mapped[str] = mapped_column(
        String(255), nullable=False, server_default="Untitled Transaction"
    )
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="SCHEDULED")
    frequency_type: Mapped[str] = mapped_column(String(16), nullable=False)
    frequency_every_n: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    occurrences: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # Date of the next occurrence still to be materialized; NULL once completed.
    next_occurrence: Mapped[date | None] = mapped_column(Date, nullable=True)
    day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    day_of_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    user_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="0")
    source: Mapped[str] = mapped_column(String(50), nullable=False, server_default="MANUAL")
    category_id: Mapped[int | None] = mapped_column(
        ForeignKey("rf_categories.id"), nullable=True
    )
    bank_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("rf_bank_accounts.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    tags: Mapped[list[RfTag]] = relationship(
        secondary=rf_recurring_transaction_tags, order_by="RfTag.id"
    )

    __table_args__ = (
        CheckConstraint("type in ('income','expense')", name="ck_rf_rt_type"),
        CheckConstraint(
            "status in ('SCHEDULED','PAUSED','COMPLETED','CANCELLED')",
            name="ck_rf_rt_status",
        ),
        CheckConstraint(
            "frequency_type in ('daily','weekly','monthly','yearly')",
            name="ck_rf_rt_frequency_type",
        ),
        CheckConstraint("frequency_every_n >= 1", name="ck_rf_rt_every_n"),
        CheckConstraint("source in ('MANUAL','PATTERN_DETECTOR')", name="ck_rf_rt_source"),
    )


# ---------------------------
# Core: rf_transactions
# ---------------------------


class RfTransaction(Base):
    __tablename__ = "rf_transactions"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # Signed; the sign and ``type`` both encode direction.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, server_default="expense")
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="executed")
    execution_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False, server_default="manual")
    category_id: Mapped[int | None] = mapped_column(
        ForeignKey("rf_categories.id"), nullable=True
    )
    bank_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("rf_bank_accounts.id"), nullable=True
    )
    recurring_transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("rf_recurring_transactions.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    tags: Mapped[list[RfTag]] = relationship(secondary=rf_transaction_tags, order_by="RfTag.id")

    __table_args__ = (
        CheckConstraint("type in ('income','expense')", name="ck_rf_tx_type"),
        CheckConstraint("status in ('executed','pending')", name="ck_rf_tx_status"),
        CheckConstraint(
            "source in ('manual','recurring','import','api')", name="ck_rf_tx_source"
        ),
    )


# ---------------------------
# Workflow: rf_pending_duplicates
# ---------------------------


class RfPendingDuplicate(Base):
    __tablename__ = "rf_pending_duplicates"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    existing_transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("rf_transactions.id", ondelete="SET NULL"), nullable=True
    )
    # Snapshot of the existing row at detection time; survives its deletion.
    existing_transaction_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    new_transaction_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    source_reference: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "source in ('recurring','csv_import','api')", name="ck_rf_pending_dup_source"
        ),
    )


__all__ = [
    "Base",
    "RfCategory",
    "RfTag",
    "RfBankAccount",
    "RfRecurringTransaction",
    "RfTransaction",
    "RfPendingDuplicate",
    "rf_transaction_tags",
    "rf_recurring_transaction_tags",
]
