"""Deterministic occurrence calendar for a recurring definition.

Step ``k`` is always computed from the anchor (``start_date + k * N units``)
rather than by chaining single steps, so a monthly rule started on the 31st
lands on Jan 31, Feb 29, Mar 31, ... : days past the end of a shorter month
clamp to its last day without drifting later occurrences.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta

from .models import (
    FrequencyType,
    GenerationReport,
    Occurrence,
    RecurrenceStatus,
    RecurringDefinition,
    StopReason,
    TransactionStatus,
    as_date,
)


def _offset(frequency: FrequencyType, units: int) -> timedelta | relativedelta:
    match frequency:
        case FrequencyType.DAILY:
            return timedelta(days=units)
        case FrequencyType.WEEKLY:
            return timedelta(weeks=units)
        case FrequencyType.MONTHLY:
            return relativedelta(months=units)
        case FrequencyType.YEARLY:
            return relativedelta(years=units)
    raise ValueError(f"unsupported frequency type: {frequency!r}")


def step_date(anchor: date, definition: RecurringDefinition, k: int) -> date:
    """Date of the ``k``-th occurrence (``k == 0`` is the anchor itself)."""

    return anchor + _offset(definition.frequency_type, k * definition.frequency_every_n)


def _occurrence(
    definition: RecurringDefinition, when: date, status: TransactionStatus
) -> Occurrence:
    return Occurrence(
        description=definition.name,
        amount=definition.amount,
        type=definition.type,
        execution_date=when,
        status=status,
        recurring_id=definition.id,
        category_id=definition.category_id,
        bank_account_id=definition.bank_account_id,
        tag_names=definition.tag_names,
    )


def generate_occurrences(
    definition: RecurringDefinition, today: date | datetime
) -> GenerationReport:
    """Materialize executed occurrences up to ``today`` plus the next pending one.

    Walks from ``start_date`` emitting one ``executed`` occurrence per step
    while the date is on or before ``today``, within ``end_date`` and under
    the ``occurrences`` cap. Afterwards exactly one ``pending`` occurrence is
    emitted at the next date unless the cap is reached or the date falls past
    ``end_date``. Non-``SCHEDULED`` definitions yield an empty report.
    """

    if definition.status is not RecurrenceStatus.SCHEDULED:
        return GenerationReport(definition.id, (), StopReason.INACTIVE)

    today_d = as_date(today)
    start = as_date(definition.start_date)
    end = as_date(definition.end_date) if definition.end_date is not None else None
    cap = definition.occurrences

    emitted: list[Occurrence] = []
    count = 0
    current = start
    while True:
        if cap is not None and count >= cap:
            reason = StopReason.OCCURRENCES
            break
        if end is not None and current > end:
            reason = StopReason.END_DATE
            break
        if current > today_d:
            reason = StopReason.TODAY
            break
        emitted.append(_occurrence(definition, current, TransactionStatus.EXECUTED))
        count += 1
        current = step_date(start, definition, count)

    next_date: date | None = None
    if (cap is None or count < cap) and (end is None or current <= end):
        emitted.append(_occurrence(definition, current, TransactionStatus.PENDING))
        next_date = current

    return GenerationReport(definition.id, tuple(emitted), reason, next_date)


def next_execution_date(from_date: date | datetime, definition: RecurringDefinition) -> date:
    """Next execution date after ``from_date`` for ``definition``.

    A stored ``next_occurrence`` later than ``from_date`` wins. Otherwise one
    step of ``frequency_every_n`` units is taken from ``from_date``, honoring
    the optional day hints:

    - weekly + ``day_of_week``: the next such weekday; a full step when
      ``from_date`` already falls on it.
    - monthly + ``day_of_month``: that day in the target month, clamped.
    - yearly + ``month`` and ``day_of_month``: that calendar day in the
      target year, clamped.
    """

    base = as_date(from_date)
    if definition.next_occurrence is not None and definition.next_occurrence > base:
        return definition.next_occurrence

    n = definition.frequency_every_n
    match definition.frequency_type:
        case FrequencyType.WEEKLY if definition.day_of_week is not None:
            days_ahead = (definition.day_of_week - base.weekday()) % 7
            if days_ahead == 0:
                return base + timedelta(weeks=n)
            return base + timedelta(days=days_ahead)
        case FrequencyType.MONTHLY if definition.day_of_month is not None:
            # relativedelta clamps an absolute ``day`` to the month's length
            return base + relativedelta(months=n, day=definition.day_of_month)
        case FrequencyType.YEARLY if definition.month is not None:
            return base + relativedelta(
                years=n, month=definition.month, day=definition.day_of_month
            )
        case _:
            return base + _offset(definition.frequency_type, n)


__all__ = ["generate_occurrences", "next_execution_date", "step_date"]
