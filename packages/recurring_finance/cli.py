# ruff: noqa: I001
"""CLI for the ``recurring_finance`` package.

This module exposes callable command handlers (``cmd_detect_patterns``,
``cmd_schedule``, ...) and a Typer-based console interface. Environment
variables (notably ``DATABASE_URL`` and the ``RF_*`` thresholds) are loaded
from a local ``.env`` using ``python-dotenv`` before any command runs.
Business logic lives in ``recurring_finance.api`` and the engine modules.

Every handler prints tab-separated lines to stdout and returns a process exit
code; failures print ``Error: ...`` to stderr and return non-zero.
"""

from __future__ import annotations

import sys
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from dotenv import load_dotenv
from pydantic import ValidationError

from .logging_setup import configure_logging, resolve_level
from .models import (
    DuplicateConflict,
    FrequencyType,
    RecurringDefinition,
    RecurringPatternCandidate,
    TransactionType,
)


# ---- Small module-level helpers used by CLI commands -------------------------


def _error(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _parse_amount(raw: str) -> Decimal:
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        raise ValueError(f"invalid amount: {raw!r}") from None
    if not value.is_finite():
        raise ValueError(f"invalid amount: {raw!r}")
    return value


def _print_candidate(candidate: RecurringPatternCandidate) -> None:
    members = candidate.similar_transactions
    latest = members[-1].description if members else ""
    print(
        f"{candidate.suggested_frequency}\t{candidate.confidence:.2f}\t{len(members)}\t{latest}"
    )


def _build_definition(
    *,
    start: date,
    frequency: str,
    every: int,
    amount: str,
    type_: str,
    name: str,
    end: date | None = None,
    occurrences: int | None = None,
    day_of_month: int | None = None,
    day_of_week: int | None = None,
    month: int | None = None,
) -> RecurringDefinition:
    return RecurringDefinition(
        name=name,
        amount=_parse_amount(amount),
        type=type_,
        frequency_type=frequency,
        frequency_every_n=every,
        start_date=start,
        end_date=end,
        occurrences=occurrences,
        day_of_month=day_of_month,
        day_of_week=day_of_week,
        month=month,
    )


def _validation_message(err: ValidationError) -> str:
    parts = []
    for e in err.errors():
        loc = ".".join(str(p) for p in e.get("loc", ()))
        parts.append(f"{loc}: {e.get('msg')}" if loc else str(e.get("msg")))
    return "; ".join(parts)


# ---- Command handlers ----------------------------------------------------------


def cmd_detect_patterns(
    user_id: int,
    *,
    start: date | None = None,
    end: date | None = None,
    database_url: str | None = None,
) -> int:
    """Print one line per detected pattern: frequency, confidence, size, payee."""

    from .api import detect_patterns

    try:
        candidates = detect_patterns(user_id, start=start, end=end, database_url=database_url)
    except Exception as e:
        return _error(f"detect_patterns failed: {e}")

    for c in candidates:
        _print_candidate(c)
    return 0


def cmd_detect_for_transaction(transaction_id: int, *, database_url: str | None = None) -> int:
    from .api import detect_pattern_for_transaction

    try:
        candidate = detect_pattern_for_transaction(transaction_id, database_url=database_url)
    except LookupError as e:
        return _error(str(e))
    except Exception as e:
        return _error(f"detect_pattern_for_transaction failed: {e}")

    if not candidate.is_recurring:
        print("not-recurring")
        return 0
    _print_candidate(candidate)
    return 0


def cmd_schedule(
    *,
    start: date,
    frequency: str,
    amount: str,
    type_: str = "expense",
    name: str = "Untitled Transaction",
    every: int = 1,
    end: date | None = None,
    occurrences: int | None = None,
    today: date | None = None,
) -> int:
    """Print the generated calendar: ``<date>\\t<status>\\t<amount>\\t<name>``.

    A final ``stop\\t<reason>`` line reports why the executed walk ended.
    """

    from .schedule import generate_occurrences

    try:
        definition = _build_definition(
            start=start,
            frequency=frequency,
            every=every,
            amount=amount,
            type_=type_,
            name=name,
            end=end,
            occurrences=occurrences,
        )
    except ValidationError as e:
        return _error(f"invalid recurring definition: {_validation_message(e)}")
    except ValueError as e:
        return _error(str(e))

    report = generate_occurrences(definition, today or date.today())
    for occ in report.occurrences:
        when = occ.execution_date.isoformat()
        print(f"{when}\t{occ.status}\t{occ.amount:.2f}\t{occ.description}")
    print(f"stop\t{report.stop_reason}")
    return 0


def cmd_next_date(
    *,
    from_date: date,
    frequency: str,
    every: int = 1,
    day_of_month: int | None = None,
    day_of_week: int | None = None,
    month: int | None = None,
) -> int:
    from .schedule import next_execution_date

    try:
        definition = _build_definition(
            start=from_date,
            frequency=frequency,
            every=every,
            amount="0",
            type_=TransactionType.EXPENSE,
            name="next-date",
            day_of_month=day_of_month,
            day_of_week=day_of_week,
            month=month,
        )
    except ValidationError as e:
        return _error(f"invalid recurring definition: {_validation_message(e)}")

    print(next_execution_date(from_date, definition).isoformat())
    return 0


def cmd_check_duplicate(
    *,
    user_id: int,
    amount: str,
    type_: str,
    on: date,
    database_url: str | None = None,
) -> int:
    """Print the probable duplicate (``id``, date, amount, description) or ``no-duplicate``."""

    from .api import find_duplicate_candidate

    try:
        wanted = _parse_amount(amount)
        tx_type = TransactionType(type_)
    except ValueError as e:
        return _error(str(e))

    try:
        candidate = find_duplicate_candidate(
            wanted, tx_type, on, user_id, database_url=database_url
        )
    except Exception as e:
        return _error(f"find_duplicate_candidate failed: {e}")

    if candidate is None:
        print("no-duplicate")
        return 0
    when = candidate.execution_date.isoformat() if candidate.execution_date else ""
    print(f"{candidate.id}\t{when}\t{candidate.amount:.2f}\t{candidate.description}")
    return 0


def cmd_materialize(*, today: date | None = None, database_url: str | None = None) -> int:
    """Materialize due definitions and print one summary line per definition."""

    from .api import materialize_due

    try:
        results = materialize_due(today, database_url=database_url)
    except Exception as e:
        return _error(f"materialize failed: {e}")

    for r in results:
        state = "completed" if r.completed else "scheduled"
        print(
            f"{r.definition_id}\t{len(r.created)}\t{len(r.pending_duplicate_ids)}"
            f"\t{r.skipped_existing}\t{state}"
        )
    return 0


def cmd_list_pending(user_id: int, *, database_url: str | None = None) -> int:
    """Print ``<pending id>\\t<existing id>\\t<date>\\t<amount>\\t<description>`` per parked row.

    Date, amount and description are those of the incoming transaction.
    """

    from .api import list_pending_duplicates

    try:
        pending = list_pending_duplicates(user_id, database_url=database_url)
    except Exception as e:
        return _error(f"list_pending_duplicates failed: {e}")

    for p in pending:
        existing = p.existing.transaction_id if p.existing.transaction_id is not None else ""
        incoming = p.incoming
        print(
            f"{p.id}\t{existing}\t{incoming.execution_date.isoformat()}"
            f"\t{incoming.amount:.2f}\t{incoming.description}"
        )
    return 0


def cmd_add_recurring(
    *,
    user_id: int,
    start: date,
    frequency: str,
    amount: str,
    type_: str = "expense",
    name: str = "Untitled Transaction",
    every: int = 1,
    end: date | None = None,
    occurrences: int | None = None,
    category: str | None = None,
    bank_account: str | None = None,
    tags: list[str] | None = None,
    database_url: str | None = None,
) -> int:
    """Store a confirmed definition and print ``<id>\\t<frequency label>``."""

    from .api import save_definition

    try:
        definition = _build_definition(
            start=start,
            frequency=frequency,
            every=every,
            amount=amount,
            type_=type_,
            name=name,
            end=end,
            occurrences=occurrences,
        ).model_copy(update={"user_id": user_id, "tag_names": tuple(tags or ())})
    except ValidationError as e:
        return _error(f"invalid recurring definition: {_validation_message(e)}")
    except ValueError as e:
        return _error(str(e))

    try:
        stored = save_definition(
            definition, category=category, bank_account=bank_account, database_url=database_url
        )
    except ValueError as e:
        return _error(str(e))
    except Exception as e:
        return _error(f"save_definition failed: {e}")

    print(f"{stored.id}\t{stored.frequency_label}")
    return 0


def cmd_resolve_pending(
    pending_id: int,
    *,
    user_id: int,
    choice: str | None = None,
    database_url: str | None = None,
) -> int:
    """Resolve a parked duplicate.

    Prints ``resolved\\t<transaction id>``; without a choice prints
    ``conflict\\t<existing id>\\t<message>`` and leaves the row pending.
    """

    from .api import resolve_pending_duplicate

    try:
        result = resolve_pending_duplicate(
            pending_id, choice, user_id=user_id, database_url=database_url
        )
    except LookupError as e:
        return _error(str(e))
    except ValueError as e:
        return _error(str(e))
    except Exception as e:
        return _error(f"resolve_pending_duplicate failed: {e}")

    if isinstance(result, DuplicateConflict):
        existing = result.transaction_id if result.transaction_id is not None else ""
        print(f"conflict\t{existing}\t{result.message}")
        return 0
    print(f"resolved\t{result.id}")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Detect recurring transactions, generate their schedules and resolve "
        "probable duplicates. Loads DATABASE_URL from a local .env before running."
    ),
)

_DATE_FORMATS = ["%Y-%m-%d"]


def _day(value: datetime | None) -> date | None:
    return value.date() if value is not None else None


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


@app.command("detect-patterns")
def detect_patterns_cmd(
    user_id: int = typer.Option(..., help="Owner of the transaction history."),
    start: datetime | None = typer.Option(
        None, formats=_DATE_FORMATS, help="Only consider transactions on/after this date."
    ),
    end: datetime | None = typer.Option(
        None, formats=_DATE_FORMATS, help="Only consider transactions on/before this date."
    ),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Cluster a user's history and list recurring candidates, largest first."""

    _exit(
        cmd_detect_patterns(
            user_id, start=_day(start), end=_day(end), database_url=database_url
        )
    )


@app.command("detect-for-transaction")
def detect_for_transaction_cmd(
    transaction_id: int = typer.Option(..., help="Stored transaction to check."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Check whether one stored transaction belongs to a recurring pattern."""

    _exit(cmd_detect_for_transaction(transaction_id, database_url=database_url))


@app.command("schedule")
def schedule_cmd(
    start: datetime = typer.Option(..., formats=_DATE_FORMATS, help="First occurrence."),
    frequency: FrequencyType = typer.Option(..., case_sensitive=False),
    amount: str = typer.Option(..., help="Amount per occurrence, e.g. 1200.00"),
    type_: TransactionType = typer.Option(TransactionType.EXPENSE, "--type"),
    name: str = typer.Option("Untitled Transaction", help="Description of each occurrence."),
    every: int = typer.Option(1, help="Interval N: every N frequency units."),
    end: datetime | None = typer.Option(None, formats=_DATE_FORMATS, help="Last allowed date."),
    occurrences: int | None = typer.Option(None, help="Maximum number of occurrences."),
    today: datetime | None = typer.Option(
        None, formats=_DATE_FORMATS, help="Reference date (defaults to the current date)."
    ),
) -> None:
    """Print executed occurrences up to today plus the next pending one."""

    _exit(
        cmd_schedule(
            start=start.date(),
            frequency=frequency,
            amount=amount,
            type_=type_,
            name=name,
            every=every,
            end=_day(end),
            occurrences=occurrences,
            today=_day(today),
        )
    )


@app.command("next-date")
def next_date_cmd(
    from_date: datetime = typer.Option(..., "--from", formats=_DATE_FORMATS),
    frequency: FrequencyType = typer.Option(..., case_sensitive=False),
    every: int = typer.Option(1, help="Interval N: every N frequency units."),
    day_of_month: int | None = typer.Option(None, help="Monthly/yearly day hint (1-31)."),
    day_of_week: int | None = typer.Option(None, help="Weekly hint, Monday=0 .. Sunday=6."),
    month: int | None = typer.Option(None, help="Yearly month hint (1-12)."),
) -> None:
    """Print the next execution date after --from."""

    _exit(
        cmd_next_date(
            from_date=from_date.date(),
            frequency=frequency,
            every=every,
            day_of_month=day_of_month,
            day_of_week=day_of_week,
            month=month,
        )
    )


@app.command("check-duplicate")
def check_duplicate_cmd(
    user_id: int = typer.Option(...),
    amount: str = typer.Option(..., help="Incoming amount, e.g. 100.00"),
    type_: TransactionType = typer.Option(..., "--type"),
    on: datetime = typer.Option(..., "--date", formats=_DATE_FORMATS),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Look up a stored probable duplicate of an incoming transaction."""

    _exit(
        cmd_check_duplicate(
            user_id=user_id,
            amount=amount,
            type_=type_,
            on=on.date(),
            database_url=database_url,
        )
    )


@app.command("materialize")
def materialize_cmd(
    today: datetime | None = typer.Option(
        None, formats=_DATE_FORMATS, help="Reference date (defaults to the current date)."
    ),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Store due occurrences of every scheduled recurring definition."""

    _exit(cmd_materialize(today=_day(today), database_url=database_url))


@app.command("add-recurring")
def add_recurring_cmd(
    user_id: int = typer.Option(..., help="Owner of the recurring definition."),
    start: datetime = typer.Option(..., formats=_DATE_FORMATS, help="First occurrence."),
    frequency: FrequencyType = typer.Option(..., case_sensitive=False),
    amount: str = typer.Option(..., help="Amount per occurrence, e.g. 1200.00"),
    type_: TransactionType = typer.Option(TransactionType.EXPENSE, "--type"),
    name: str = typer.Option("Untitled Transaction", help="Description of each occurrence."),
    every: int = typer.Option(1, help="Interval N: every N frequency units."),
    end: datetime | None = typer.Option(None, formats=_DATE_FORMATS, help="Last allowed date."),
    occurrences: int | None = typer.Option(None, help="Maximum number of occurrences."),
    category: str | None = typer.Option(None, help="Category name (created when missing)."),
    bank_account: str | None = typer.Option(
        None, help="Bank account name (created when missing)."
    ),
    tag: list[str] | None = typer.Option(None, help="Tag name; repeat for several."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Store a recurring definition for the materialize job."""

    _exit(
        cmd_add_recurring(
            user_id=user_id,
            start=start.date(),
            frequency=frequency,
            amount=amount,
            type_=type_,
            name=name,
            every=every,
            end=_day(end),
            occurrences=occurrences,
            category=category,
            bank_account=bank_account,
            tags=tag,
            database_url=database_url,
        )
    )


@app.command("list-pending")
def list_pending_cmd(
    user_id: int = typer.Option(...),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """List unresolved pending duplicates, oldest first."""

    _exit(cmd_list_pending(user_id, database_url=database_url))


@app.command("resolve-pending")
def resolve_pending_cmd(
    pending_id: int = typer.Option(...),
    user_id: int = typer.Option(..., help="Owner of the pending duplicate."),
    choice: str | None = typer.Option(
        None, help="USE_NEW, KEEP_EXISTING or MAINTAIN_BOTH; omit to show the conflict."
    ),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Apply a decision to a pending duplicate."""

    _exit(
        cmd_resolve_pending(
            pending_id, user_id=user_id, choice=choice, database_url=database_url
        )
    )


@app.callback()
def _root(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="DEBUG, INFO, WARNING, ... (defaults to RECURRING_FINANCE_LOG_LEVEL or INFO).",
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    try:
        level = resolve_level(log_level)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level") from None
    configure_logging(level)


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    # Running as a module: `python -m recurring_finance.cli`
    app()
