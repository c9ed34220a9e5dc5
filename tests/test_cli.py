from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from db.client import session_scope
from typer.testing import CliRunner

import recurring_finance.cli as cli_mod
from recurring_finance.cli import app
from recurring_finance.persistence import load_definition
from tests.helpers.db import add_recurring, add_transaction, bootstrap_sqlite_db

runner = CliRunner()


@pytest.fixture(autouse=True)
def _quiet_cli(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run from an empty directory (no stray .env) without installing log handlers."""

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli_mod, "configure_logging", lambda *a, **k: None)


def _lines(output: str) -> list[list[str]]:
    return [line.split("\t") for line in output.strip().splitlines()]


def test_schedule_prints_calendar_and_stop_reason():
    result = runner.invoke(
        app,
        [
            "schedule",
            "--start", "2024-03-12",
            "--frequency", "monthly",
            "--amount", "1200",
            "--name", "Rent",
            "--today", "2025-03-25",
        ],
    )
    assert result.exit_code == 0, result.output
    rows = _lines(result.stdout)
    assert len(rows) == 15
    assert rows[0] == ["2024-03-12", "executed", "1200.00", "Rent"]
    assert rows[12][:2] == ["2025-03-12", "executed"]
    assert rows[13][:2] == ["2025-04-12", "pending"]
    assert rows[14] == ["stop", "today"]


def test_schedule_rejects_unknown_frequency():
    result = runner.invoke(
        app, ["schedule", "--start", "2024-01-01", "--frequency", "fortnightly", "--amount", "1"]
    )
    assert result.exit_code != 0


def test_schedule_reports_invalid_definition():
    result = runner.invoke(
        app,
        [
            "schedule",
            "--start", "2024-01-01",
            "--frequency", "daily",
            "--amount", "1",
            "--every", "0",
        ],
    )
    assert result.exit_code == 1
    assert "Error: invalid recurring definition" in result.output


def test_schedule_reports_invalid_amount():
    result = runner.invoke(
        app, ["schedule", "--start", "2024-01-01", "--frequency", "daily", "--amount", "ten"]
    )
    assert result.exit_code == 1
    assert "Error: invalid amount" in result.output


def test_next_date_with_weekday_hint():
    result = runner.invoke(
        app, ["next-date", "--from", "2024-01-03", "--frequency", "weekly", "--day-of-week", "4"]
    )
    assert result.exit_code == 0, result.output
    assert result.stdout.strip() == "2024-01-05"


def test_db_commands_require_a_database_url():
    result = runner.invoke(app, ["detect-patterns", "--user-id", "1"])
    assert result.exit_code == 1
    assert "Error: detect_patterns failed: DATABASE_URL is not set" in result.output


def test_database_url_is_read_from_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    (tmp_path / ".env").write_text(f"DATABASE_URL={url}\n", encoding="utf-8")
    # load_dotenv writes straight into os.environ; undo it after the test
    monkeypatch.setenv("DATABASE_URL", "")
    monkeypatch.delenv("DATABASE_URL")

    result = runner.invoke(app, ["detect-patterns", "--user-id", "1"])
    assert result.exit_code == 0, result.output
    assert result.stdout.strip() == ""


def test_detect_commands(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    ids = [
        add_transaction(url, description="City Gym", amount="40.00", execution_date=d)
        for d in (date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22))
    ]
    lonely = add_transaction(
        url, description="Bookshop", amount="25", execution_date=date(2024, 1, 3)
    )

    result = runner.invoke(app, ["detect-patterns", "--user-id", "1", "--database-url", url])
    assert result.exit_code == 0, result.output
    assert _lines(result.stdout) == [["weekly", "1.00", "4", "City Gym"]]

    result = runner.invoke(
        app, ["detect-for-transaction", "--transaction-id", str(ids[0]), "--database-url", url]
    )
    assert result.exit_code == 0, result.output
    assert _lines(result.stdout)[0][:3] == ["weekly", "1.00", "4"]

    result = runner.invoke(
        app, ["detect-for-transaction", "--transaction-id", str(lonely), "--database-url", url]
    )
    assert result.stdout.strip() == "not-recurring"

    result = runner.invoke(
        app, ["detect-for-transaction", "--transaction-id", "999", "--database-url", url]
    )
    assert result.exit_code == 1
    assert "Error: transaction 999 not found" in result.output


def test_check_duplicate(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    tid = add_transaction(url, description="Gym", amount="100.00", execution_date=date(2024, 3, 10))
    base = ["check-duplicate", "--user-id", "1", "--type", "expense", "--database-url", url]

    hit = runner.invoke(app, [*base, "--amount", "100.01", "--date", "2024-03-12"])
    assert hit.exit_code == 0, hit.output
    assert _lines(hit.stdout) == [[str(tid), "2024-03-10", "100.00", "Gym"]]

    miss = runner.invoke(app, [*base, "--amount", "100.02", "--date", "2024-03-12"])
    assert miss.stdout.strip() == "no-duplicate"


def test_materialize_and_resolve_pending(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    add_transaction(url, description="Gym", amount="40.00", execution_date=date(2024, 3, 4))
    rid = add_recurring(
        url, name="Gym", amount="40.00", frequency_type="weekly", start_date=date(2024, 2, 26)
    )

    result = runner.invoke(app, ["materialize", "--today", "2024-03-05", "--database-url", url])
    assert result.exit_code == 0, result.output
    assert _lines(result.stdout) == [[str(rid), "2", "1", "0", "scheduled"]]

    listed = runner.invoke(app, ["list-pending", "--user-id", "1", "--database-url", url])
    assert listed.exit_code == 0, listed.output
    [[pid, existing, when, amount, desc]] = _lines(listed.stdout)
    assert (when, amount, desc) == ("2024-03-04", "40.00", "Gym")

    stranger = runner.invoke(
        app,
        ["resolve-pending", "--pending-id", pid, "--user-id", "2", "--database-url", url],
    )
    assert stranger.exit_code == 1
    assert f"pending duplicate {pid} not found" in stranger.output

    pending = runner.invoke(
        app,
        ["resolve-pending", "--pending-id", pid, "--user-id", "1", "--database-url", url],
    )
    assert pending.exit_code == 0, pending.output
    assert _lines(pending.stdout)[0][:2] == ["conflict", existing]

    bad = runner.invoke(
        app,
        [
            "resolve-pending",
            "--pending-id", pid,
            "--user-id", "1",
            "--choice", "MERGE",
            "--database-url", url,
        ],
    )
    assert bad.exit_code == 1
    assert "Invalid duplicate choice" in bad.output

    done = runner.invoke(
        app,
        [
            "resolve-pending",
            "--pending-id", pid,
            "--user-id", "1",
            "--choice", "maintain-both",
            "--database-url", url,
        ],
    )
    assert done.exit_code == 0, done.output
    assert _lines(done.stdout)[0][0] == "resolved"
    empty = runner.invoke(app, ["list-pending", "--user-id", "1", "--database-url", url])
    assert empty.stdout.strip() == ""


def test_add_recurring_stores_a_definition(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    result = runner.invoke(
        app,
        [
            "add-recurring",
            "--user-id", "1",
            "--start", "2024-01-15",
            "--frequency", "monthly",
            "--amount", "1200.00",
            "--name", "Rent",
            "--category", "Housing",
            "--bank-account", "Checking",
            "--tag", "home",
            "--tag", "fixed",
            "--database-url", url,
        ],
    )
    assert result.exit_code == 0, result.output
    [[rid, label]] = _lines(result.stdout)
    assert label == "Every month"

    with session_scope(database_url=url) as session:
        stored = load_definition(session, int(rid))
    assert stored.user_id == 1
    assert stored.tag_names == ("home", "fixed")
    assert stored.category_id is not None and stored.bank_account_id is not None

    materialized = runner.invoke(
        app, ["materialize", "--today", "2024-02-20", "--database-url", url]
    )
    assert _lines(materialized.stdout) == [[rid, "3", "0", "0", "scheduled"]]


def test_add_recurring_rejects_blank_category(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "rf.db")
    result = runner.invoke(
        app,
        [
            "add-recurring",
            "--user-id", "1",
            "--start", "2024-01-15",
            "--frequency", "weekly",
            "--amount", "10",
            "--category", " ",
            "--database-url", url,
        ],
    )
    assert result.exit_code == 1
    assert "Error: Invalid rf_categories name: Name cannot be empty" in result.output


def test_unknown_log_level_is_a_usage_error():
    result = runner.invoke(
        app, ["--log-level", "chatty", "next-date", "--from", "2024-01-01", "--frequency", "daily"]
    )
    assert result.exit_code == 2
    assert "unknown log level" in result.output
