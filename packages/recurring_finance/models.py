"""Data models for ``recurring_finance``.

Domain records read by the engine (``Transaction``) are frozen dataclasses:
the engine never mutates a snapshot it was handed. ``RecurringDefinition`` is
a pydantic model because it is the boundary where user- or detector-supplied
rules enter the system; invalid frequencies, intervals and caps are rejected
at construction time instead of surfacing later as a generator that never
advances.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------


class TransactionType(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"


class TransactionStatus(StrEnum):
    EXECUTED = "executed"
    PENDING = "pending"


class FrequencyType(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class RecurrenceStatus(StrEnum):
    SCHEDULED = "SCHEDULED"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class RecurrenceSource(StrEnum):
    MANUAL = "MANUAL"
    PATTERN_DETECTOR = "PATTERN_DETECTOR"


class DuplicateChoice(StrEnum):
    """User decision for a probable duplicate. ``None`` means undecided."""

    USE_NEW = "USE_NEW"
    KEEP_EXISTING = "KEEP_EXISTING"
    MAINTAIN_BOTH = "MAINTAIN_BOTH"


def as_date(value: date | datetime) -> date:
    """Strip the time-of-day from ``value`` (``date`` passes through)."""

    if isinstance(value, datetime):
        return value.date()
    return value


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TransactionDraft:
    """Transaction data not yet stored: incoming imports and generated rows."""

    description: str
    amount: Decimal
    type: TransactionType
    execution_date: date
    user_id: int
    status: TransactionStatus = TransactionStatus.EXECUTED
    source: str = "manual"
    category_id: int | None = None
    bank_account_id: int | None = None
    recurring_id: int | None = None
    tag_names: tuple[str, ...] = ()

    def to_json(self) -> dict[str, Any]:
        """JSON-friendly mapping (used for pending-duplicate payloads)."""

        return {
            "description": self.description,
            "amount": f"{self.amount:.2f}",
            "type": str(self.type),
            "execution_date": self.execution_date.isoformat(),
            "user_id": self.user_id,
            "status": str(self.status),
            "source": self.source,
            "category_id": self.category_id,
            "bank_account_id": self.bank_account_id,
            "recurring_id": self.recurring_id,
            "tag_names": list(self.tag_names),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> TransactionDraft:
        return cls(
            description=str(data["description"]),
            amount=Decimal(str(data["amount"])),
            type=TransactionType(data["type"]),
            execution_date=date.fromisoformat(str(data["execution_date"])),
            user_id=int(data["user_id"]),
            status=TransactionStatus(data.get("status") or TransactionStatus.EXECUTED),
            source=str(data.get("source") or "manual"),
            category_id=data.get("category_id"),
            bank_account_id=data.get("bank_account_id"),
            recurring_id=data.get("recurring_id"),
            tag_names=tuple(data.get("tag_names") or ()),
        )


@dataclass(frozen=True, slots=True)
class Transaction:
    """A recorded transaction as seen by the engine (read-only snapshot)."""

    id: int | None
    description: str
    amount: Decimal
    type: TransactionType
    execution_date: date | None
    user_id: int
    status: TransactionStatus = TransactionStatus.EXECUTED
    source: str = "manual"
    created_at: datetime | None = None
    category_id: int | None = None
    bank_account_id: int | None = None
    recurring_id: int | None = None
    tag_names: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Detection results
# ---------------------------------------------------------------------------


class FrequencyClassification(NamedTuple):
    """Label and regularity score for a list of day gaps."""

    frequency: FrequencyType
    confidence: float
    mean_gap: float
    std_dev: float


@dataclass(frozen=True, slots=True)
class RecurringPatternCandidate:
    """Detection-time (never persisted) result for one payee cluster.

    ``similar_transactions`` is populated only for clusters that kept at least
    the minimum cluster size after amount filtering and were classified.
    """

    similar_transactions: tuple[Transaction, ...]
    is_recurring: bool
    suggested_frequency: FrequencyType | None = None
    confidence: float | None = None

    @classmethod
    def not_recurring(cls) -> RecurringPatternCandidate:
        return cls(similar_transactions=(), is_recurring=False)


# ---------------------------------------------------------------------------
# Recurring definitions
# ---------------------------------------------------------------------------

_FREQUENCY_UNITS: dict[FrequencyType, tuple[str, str]] = {
    FrequencyType.DAILY: ("day", "days"),
    FrequencyType.WEEKLY: ("week", "weeks"),
    FrequencyType.MONTHLY: ("month", "months"),
    FrequencyType.YEARLY: ("year", "years"),
}


class RecurringDefinition(BaseModel):
    """A confirmed or candidate recurring rule.

    Generation only proceeds while ``status`` is ``SCHEDULED``. Dates passed as
    ``datetime`` are normalized to date-only.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    id: int | None = None
    user_id: int | None = None
    name: str = "Untitled Transaction"
    description: str | None = None
    amount: Decimal
    type: TransactionType
    frequency_type: FrequencyType
    frequency_every_n: int = Field(default=1, ge=1)
    start_date: date
    end_date: date | None = None
    occurrences: int | None = Field(default=None, ge=1)
    status: RecurrenceStatus = RecurrenceStatus.SCHEDULED
    user_confirmed: bool = False
    source: RecurrenceSource = RecurrenceSource.MANUAL
    next_occurrence: date | None = None
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    # Python convention: Monday == 0 ... Sunday == 6
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    month: int | None = Field(default=None, ge=1, le=12)
    category_id: int | None = None
    bank_account_id: int | None = None
    tag_names: tuple[str, ...] = ()

    @field_validator("start_date", "end_date", "next_occurrence", mode="before")
    @classmethod
    def _strip_time(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return v.date()
        return v

    @field_validator("name")
    @classmethod
    def _name_fits(cls, v: str) -> str:
        v = v[:255]
        return v or "Untitled Transaction"

    @model_validator(mode="after")
    def _month_needs_day(self) -> RecurringDefinition:
        if self.month is not None and self.day_of_month is None:
            raise ValueError("month hint requires day_of_month")
        return self

    @property
    def frequency_label(self) -> str:
        singular, plural = _FREQUENCY_UNITS[self.frequency_type]
        if self.frequency_every_n > 1:
            return f"Every {self.frequency_every_n} {plural}"
        return f"Every {singular}"


# ---------------------------------------------------------------------------
# Schedule generation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Occurrence:
    """One concrete calendar instance generated from a definition."""

    description: str
    amount: Decimal
    type: TransactionType
    execution_date: date
    status: TransactionStatus
    recurring_id: int | None = None
    category_id: int | None = None
    bank_account_id: int | None = None
    tag_names: tuple[str, ...] = ()

    def to_draft(self, *, user_id: int) -> TransactionDraft:
        return TransactionDraft(
            description=self.description,
            amount=self.amount,
            type=self.type,
            execution_date=self.execution_date,
            user_id=user_id,
            status=self.status,
            source="recurring",
            category_id=self.category_id,
            bank_account_id=self.bank_account_id,
            recurring_id=self.recurring_id,
            tag_names=self.tag_names,
        )


class StopReason(StrEnum):
    """Why the executed walk of a generation run ended."""

    INACTIVE = "inactive"
    TODAY = "today"
    END_DATE = "end_date"
    OCCURRENCES = "occurrences"


@dataclass(frozen=True, slots=True)
class GenerationReport:
    """Structured result of one generation run."""

    definition_id: int | None
    occurrences: tuple[Occurrence, ...]
    stop_reason: StopReason
    next_date: date | None = None

    @property
    def executed(self) -> tuple[Occurrence, ...]:
        return tuple(o for o in self.occurrences if o.status is TransactionStatus.EXECUTED)

    @property
    def pending(self) -> Occurrence | None:
        for o in self.occurrences:
            if o.status is TransactionStatus.PENDING:
                return o
        return None

    @property
    def exhausted(self) -> bool:
        """True when the definition can never produce another occurrence."""

        return self.stop_reason in (StopReason.END_DATE, StopReason.OCCURRENCES) and (
            self.pending is None
        )


# ---------------------------------------------------------------------------
# Duplicate resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DuplicateConflict:
    """Caller-facing signal that a decision is needed before proceeding."""

    transaction_id: int | None
    description: str
    amount: Decimal
    execution_date: date | None
    type: TransactionType
    message: str = "Duplicate transaction detected"

    @classmethod
    def for_transaction(cls, tx: Transaction) -> DuplicateConflict:
        return cls(
            transaction_id=tx.id,
            description=tx.description,
            amount=tx.amount,
            execution_date=tx.execution_date,
            type=tx.type,
        )


@dataclass(frozen=True, slots=True)
class MaterializationResult:
    """Outcome of storing one definition's generated occurrences."""

    definition_id: int | None
    created: list[Transaction] = field(default_factory=list)
    pending_duplicate_ids: list[int] = field(default_factory=list)
    skipped_existing: int = 0
    completed: bool = False


@dataclass(frozen=True, slots=True)
class PendingDuplicate:
    """An incoming transaction parked until its owner picks a ``DuplicateChoice``.

    ``existing`` is the colliding transaction as it looked when the incoming
    one was parked; the row itself may have changed or been deleted since.
    """

    id: int
    user_id: int
    existing: DuplicateConflict
    incoming: TransactionDraft
    source: str
    source_reference: str | None = None
    created_at: datetime | None = None


__all__ = [
    "TransactionType",
    "TransactionStatus",
    "FrequencyType",
    "RecurrenceStatus",
    "RecurrenceSource",
    "DuplicateChoice",
    "as_date",
    "TransactionDraft",
    "Transaction",
    "FrequencyClassification",
    "RecurringPatternCandidate",
    "RecurringDefinition",
    "Occurrence",
    "StopReason",
    "GenerationReport",
    "DuplicateConflict",
    "MaterializationResult",
    "PendingDuplicate",
]
