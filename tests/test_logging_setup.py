from __future__ import annotations

import io
import logging

import pytest

from recurring_finance.logging_setup import (
    configure_logging,
    get_logger,
    reset_logging,
    resolve_level,
)


@pytest.fixture(autouse=True)
def _reset_package_logging():
    yield
    reset_logging()


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(logging.DEBUG, logging.DEBUG), ("warning", logging.WARNING), (" 15 ", 15)],
)
def test_resolve_level(raw, expected):
    assert resolve_level(raw) == expected


def test_resolve_level_rejects_unknown_names():
    with pytest.raises(ValueError, match="unknown log level"):
        resolve_level("chatty")


def test_resolve_level_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("RECURRING_FINANCE_LOG_LEVEL", raising=False)
    assert resolve_level() == logging.INFO
    monkeypatch.setenv("RECURRING_FINANCE_LOG_LEVEL", "debug")
    assert resolve_level() == logging.DEBUG
    monkeypatch.setenv("RECURRING_FINANCE_LOG_LEVEL", "chatty")
    assert resolve_level() == logging.INFO


def test_get_logger_places_short_names_under_the_package():
    assert get_logger("duplicates").name == "recurring_finance.duplicates"
    assert get_logger("recurring_finance.lookups").name == "recurring_finance.lookups"


def test_configure_keeps_one_handler_and_retunes_it():
    out = io.StringIO()
    first = configure_logging("INFO", fmt="%(levelname)s %(message)s", stream=out)
    log = get_logger("workflows.materialize")

    log.debug("hidden")
    log.info("materialized 3")
    assert out.getvalue() == "INFO materialized 3\n"

    again = configure_logging("DEBUG")
    assert again is first
    assert logging.getLogger("recurring_finance").handlers == [first]
    log.debug("now visible")
    assert out.getvalue().endswith("DEBUG now visible\n")
