from __future__ import annotations

from datetime import date

import pytest
from tests.helpers.builders import series

from recurring_finance.frequency import MIN_CONFIDENCE, classify_gaps, classify_transactions
from recurring_finance.models import FrequencyType


def test_monthly_gaps():
    result = classify_gaps([30, 31, 30])
    assert result is not None
    assert result.frequency is FrequencyType.MONTHLY
    assert result.mean_gap == pytest.approx(30.333, abs=1e-3)
    assert result.confidence >= 0.5


def test_daily_gaps():
    result = classify_gaps([1, 1, 2])
    assert result is not None
    assert result.frequency is FrequencyType.DAILY


def test_single_gap_is_not_a_pattern():
    assert classify_gaps([100]) is None
    assert classify_gaps([30]) is None
    assert classify_gaps([]) is None


@pytest.mark.parametrize(
    ("gaps", "expected"),
    [
        ([3, 3], FrequencyType.DAILY),
        ([6, 6], FrequencyType.WEEKLY),
        ([10, 10], FrequencyType.WEEKLY),
        ([25, 25], FrequencyType.MONTHLY),
        ([40, 40], FrequencyType.MONTHLY),
        ([360, 370], FrequencyType.YEARLY),
        ([4, 4], None),
        ([15, 15], None),
        ([100, 100], None),
    ],
)
def test_bands_are_closed_intervals(gaps, expected):
    result = classify_gaps(gaps)
    assert (result.frequency if result else None) is expected


def test_confidence_is_floored():
    # mean 3, population stdev 2 -> raw score 1/3
    result = classify_gaps([1, 5, 1, 5])
    assert result is not None
    assert result.confidence == MIN_CONFIDENCE


def test_perfectly_regular_gaps_score_one():
    result = classify_gaps([7, 7, 7])
    assert result is not None
    assert result.confidence == pytest.approx(1.0)
    assert result.std_dev == 0


def test_classify_transactions_uses_date_order():
    rows = series("Gym", 40, date(2024, 1, 1), [7, 7, 7])
    result = classify_transactions(list(reversed(rows)))
    assert result is not None
    assert result.frequency is FrequencyType.WEEKLY
