"""Recurring pattern detection over a read-only transaction snapshot.

Public surface:
- ``detect_patterns``: bulk mode; cluster the whole history (token-Jaccard),
  classify each surviving cluster, rank by cluster size.
- ``detect_pattern_for_transaction``: single mode; substring matching plus a
  tighter amount tolerance around one transaction.
- ``definition_from_candidate`` / ``confirm_definition``: turn an accepted
  candidate into an (unconfirmed, then confirmed) ``RecurringDefinition``.

Nothing here touches storage; callers load the snapshot and persist results.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from .clustering import mean_amount, recurring_clusters
from .frequency import classify_transactions
from .logging_setup import get_logger
from .matching import SubstringMatcher
from .models import (
    RecurrenceSource,
    RecurringDefinition,
    RecurringPatternCandidate,
    Transaction,
)
from .settings import DEFAULT_SETTINGS, EngineSettings

logger = get_logger("recurring_finance.detector")


def detect_patterns(
    transactions: Iterable[Transaction],
    *,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> list[RecurringPatternCandidate]:
    """Return classified candidates, largest cluster first.

    Ties keep cluster creation order (Python's sort is stable).
    """

    results: list[RecurringPatternCandidate] = []
    clusters = recurring_clusters(transactions, settings=settings)
    for group in clusters:
        pattern = classify_transactions(group)
        if pattern is None:
            continue
        results.append(
            RecurringPatternCandidate(
                similar_transactions=tuple(group),
                is_recurring=True,
                suggested_frequency=pattern.frequency,
                confidence=pattern.confidence,
            )
        )

    logger.debug(
        "detect_patterns: %d cluster(s) survived filtering, %d classified",
        len(clusters),
        len(results),
    )
    return sorted(results, key=lambda c: len(c.similar_transactions), reverse=True)


def detect_pattern_for_transaction(
    transaction: Transaction,
    history: Iterable[Transaction],
    *,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> RecurringPatternCandidate:
    """Is ``transaction`` part of a recurring pattern within ``history``?

    ``history`` is the user's full snapshot; it may include ``transaction``
    itself, which then counts towards the match total like any other row.
    """

    matcher = SubstringMatcher()
    limit = abs(transaction.amount) * settings.single_amount_tolerance
    grouped = [
        tx
        for tx in history
        if matcher.matches(tx.description, transaction.description)
        and abs(tx.amount - transaction.amount) <= limit
    ]
    if len(grouped) < settings.min_cluster_size:
        return RecurringPatternCandidate.not_recurring()

    pattern = classify_transactions(grouped)
    if pattern is None:
        return RecurringPatternCandidate.not_recurring()

    return RecurringPatternCandidate(
        similar_transactions=tuple(grouped),
        is_recurring=True,
        suggested_frequency=pattern.frequency,
        confidence=pattern.confidence,
    )


def definition_from_candidate(
    candidate: RecurringPatternCandidate,
    **overrides: Any,
) -> RecurringDefinition:
    """Build an unconfirmed definition describing ``candidate``.

    Name comes from the latest member, amount is the members' mean (2dp),
    type is the most common member type and the schedule starts at the first
    member's date. ``overrides`` replace any derived field.
    """

    if not candidate.is_recurring or candidate.suggested_frequency is None:
        raise ValueError("candidate is not a classified recurring pattern")
    members = sorted(
        (tx for tx in candidate.similar_transactions if tx.execution_date is not None),
        key=lambda tx: tx.execution_date,  # type: ignore[arg-type,return-value]
    )
    if not members:
        raise ValueError("candidate has no dated transactions")

    latest = members[-1]
    fields: dict[str, Any] = {
        "user_id": latest.user_id,
        "name": latest.description,
        "amount": mean_amount(members).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        "type": Counter(tx.type for tx in members).most_common(1)[0][0],
        "frequency_type": candidate.suggested_frequency,
        "frequency_every_n": 1,
        "start_date": members[0].execution_date,
        "user_confirmed": False,
        "source": RecurrenceSource.PATTERN_DETECTOR,
        "category_id": latest.category_id,
        "bank_account_id": latest.bank_account_id,
        "tag_names": latest.tag_names,
    }
    fields.update(overrides)
    return RecurringDefinition(**fields)


def confirm_definition(definition: RecurringDefinition, **adjustments: Any) -> RecurringDefinition:
    """Return a confirmed copy of ``definition`` with optional adjustments.

    Adjustments are re-validated, so an invalid frequency or interval is
    rejected here as well.
    """

    data = definition.model_dump()
    data.update(adjustments)
    data["user_confirmed"] = True
    return RecurringDefinition.model_validate(data)


__all__ = [
    "detect_patterns",
    "detect_pattern_for_transaction",
    "definition_from_candidate",
    "confirm_definition",
]
