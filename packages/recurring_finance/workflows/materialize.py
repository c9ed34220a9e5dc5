"""Store generated occurrences for due recurring definitions.

Given a definition and "today", generation yields executed occurrences up to
today plus one pending occurrence. Each occurrence not yet stored or parked for
the definition is screened against the user's other transactions: clean ones
are inserted, collisions are parked as pending duplicates for a user decision.
Pending rows stored by an earlier run are promoted once their date has come.
Finally the definition's ``next_occurrence`` is advanced, or the definition is
marked ``COMPLETED`` once its end date or occurrence cap is exhausted.

All writes go through the caller's session; commit at caller.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from ..duplicates import find_duplicate_candidate, parked_dates, record_pending_duplicate
from ..logging_setup import get_logger
from ..models import (
    MaterializationResult,
    RecurrenceStatus,
    RecurringDefinition,
    Transaction,
)
from ..persistence import (
    insert_transaction,
    load_due_definitions,
    materialized_dates,
    promote_due_pending,
    save_definition,
)
from ..schedule import generate_occurrences
from ..settings import DEFAULT_SETTINGS, EngineSettings

logger = get_logger("recurring_finance.workflows.materialize")


def materialize_definition(
    session: Session,
    definition: RecurringDefinition,
    *,
    today: date,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> MaterializationResult:
    if definition.id is None or definition.user_id is None:
        raise ValueError("only stored definitions (with id and user_id) can be materialized")

    report = generate_occurrences(definition, today)
    promote_due_pending(session, recurring_id=definition.id, today=today)
    reference = f"recurring:{definition.id}"
    already = materialized_dates(session, recurring_id=definition.id)
    already |= parked_dates(session, source_reference=reference)

    created: list[Transaction] = []
    pending_ids: list[int] = []
    skipped = 0
    for occ in report.occurrences:
        if occ.execution_date in already:
            skipped += 1
            continue
        draft = occ.to_draft(user_id=definition.user_id)
        candidate = find_duplicate_candidate(
            session,
            amount=draft.amount,
            type=draft.type,
            execution_date=draft.execution_date,
            user_id=definition.user_id,
            exclude_recurring_id=definition.id,
            settings=settings,
        )
        if candidate is None:
            created.append(insert_transaction(session, draft))
            continue
        pending_ids.append(
            record_pending_duplicate(
                session,
                existing=candidate,
                incoming=draft,
                source="recurring",
                source_reference=reference,
            )
        )

    if report.exhausted:
        updated = definition.model_copy(
            update={"status": RecurrenceStatus.COMPLETED, "next_occurrence": None}
        )
    else:
        updated = definition.model_copy(update={"next_occurrence": report.next_date})
    if updated != definition:
        save_definition(session, updated)

    logger.info(
        "definition %s: %d created, %d pending duplicate(s), %d already stored%s",
        definition.id,
        len(created),
        len(pending_ids),
        skipped,
        " (completed)" if report.exhausted else "",
    )
    return MaterializationResult(
        definition_id=definition.id,
        created=created,
        pending_duplicate_ids=pending_ids,
        skipped_existing=skipped,
        completed=report.exhausted,
    )


def materialize_due_definitions(
    session: Session,
    *,
    today: date,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> list[MaterializationResult]:
    """Run :func:`materialize_definition` for every due ``SCHEDULED`` definition."""

    return [
        materialize_definition(session, d, today=today, settings=settings)
        for d in load_due_definitions(session, today=today)
    ]


__all__ = ["materialize_definition", "materialize_due_definitions"]
