from __future__ import annotations

from decimal import Decimal

import pytest

from recurring_finance.settings import DEFAULT_SETTINGS, EngineSettings


def test_defaults():
    s = EngineSettings.from_env()
    assert s == DEFAULT_SETTINGS
    assert s.jaccard_threshold == 0.6
    assert s.cluster_amount_tolerance == Decimal("0.4")
    assert s.single_amount_tolerance == Decimal("0.25")
    assert s.min_cluster_size == 3
    assert s.duplicate_window_days == 4
    assert s.duplicate_amount_tolerance == Decimal("0.01")


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("RF_JACCARD_THRESHOLD", "0.5")
    monkeypatch.setenv("RF_MIN_CLUSTER_SIZE", "4")
    monkeypatch.setenv("RF_DUPLICATE_WINDOW_DAYS", " 7 ")
    monkeypatch.setenv("RF_DUPLICATE_AMOUNT_TOLERANCE", "0.05")

    s = EngineSettings.from_env()

    assert s.jaccard_threshold == 0.5
    assert s.min_cluster_size == 4
    assert s.duplicate_window_days == 7
    assert s.duplicate_amount_tolerance == Decimal("0.05")
    assert s.cluster_amount_tolerance == Decimal("0.4")


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("RF_MIN_CLUSTER_SIZE", "three"),
        ("RF_MIN_CLUSTER_SIZE", "0"),
        ("RF_DUPLICATE_WINDOW_DAYS", "-1"),
        ("RF_JACCARD_THRESHOLD", "1.5"),
        ("RF_CLUSTER_AMOUNT_TOLERANCE", "abc"),
        ("RF_SINGLE_AMOUNT_TOLERANCE", "NaN"),
        ("RF_DUPLICATE_AMOUNT_TOLERANCE", "-0.01"),
    ],
)
def test_bad_values_fall_back_to_defaults(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture, name: str, value: str
):
    monkeypatch.setenv(name, value)
    with caplog.at_level("WARNING", logger="recurring_finance.settings"):
        assert EngineSettings.from_env() == DEFAULT_SETTINGS
    assert name in caplog.text
