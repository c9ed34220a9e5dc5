"""Frequency classification from calendar gaps.

Bands are closed intervals on the mean gap in days. A mean outside every band
is not an error: it means "no pattern" and the caller drops the cluster.
"""

from __future__ import annotations

import statistics
from collections.abc import Iterable, Sequence

from .clustering import sort_by_execution_date
from .models import FrequencyClassification, FrequencyType, Transaction

FREQUENCY_BANDS: tuple[tuple[float, float, FrequencyType], ...] = (
    (1, 3, FrequencyType.DAILY),
    (6, 10, FrequencyType.WEEKLY),
    (25, 40, FrequencyType.MONTHLY),
    (360, 370, FrequencyType.YEARLY),
)

MIN_CONFIDENCE = 0.5


def day_gaps(transactions: Iterable[Transaction]) -> list[int]:
    """Consecutive day gaps between execution dates, in date order."""

    ordered = sort_by_execution_date(transactions)
    return [
        (b.execution_date - a.execution_date).days  # type: ignore[operator]
        for a, b in zip(ordered, ordered[1:], strict=False)
    ]


def label_for_mean(mean_gap: float) -> FrequencyType | None:
    for lo, hi, label in FREQUENCY_BANDS:
        if lo <= mean_gap <= hi:
            return label
    return None


def classify_gaps(gaps: Sequence[int | float]) -> FrequencyClassification | None:
    """Label a gap list and score its regularity, or ``None`` for no pattern.

    At least two gaps are required. Confidence is ``1 - stdev/mean`` floored
    at ``MIN_CONFIDENCE``.
    """

    if len(gaps) < 2:
        return None
    mean_gap = statistics.fmean(gaps)
    label = label_for_mean(mean_gap)
    if label is None:
        return None
    std_dev = statistics.pstdev(gaps)
    confidence = max(MIN_CONFIDENCE, 1 - std_dev / mean_gap)
    return FrequencyClassification(label, confidence, mean_gap, std_dev)


def classify_transactions(
    transactions: Iterable[Transaction],
) -> FrequencyClassification | None:
    return classify_gaps(day_gaps(transactions))


__all__ = [
    "FREQUENCY_BANDS",
    "MIN_CONFIDENCE",
    "day_gaps",
    "label_for_mean",
    "classify_gaps",
    "classify_transactions",
]
