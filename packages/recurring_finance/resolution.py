"""Duplicate resolution coordinator.

Maps a user's ``DuplicateChoice`` (or its absence) onto exactly one terminal
action against a ``TransactionStore``:

==================  ==========================================  ==============
choice              store call                                  returns
==================  ==========================================  ==============
``KEEP_EXISTING``   none                                        existing
``USE_NEW``         ``replace(existing, incoming)``             updated row
``MAINTAIN_BOTH``   ``create(incoming)``                        new row
``None``            none                                        conflict
==================  ==========================================  ==============

The coordinator never guesses: an undecided call yields a
``DuplicateConflict`` the caller can render as a prompt.
"""

from __future__ import annotations

from typing import Protocol

from .logging_setup import get_logger
from .models import DuplicateChoice, DuplicateConflict, Transaction, TransactionDraft

logger = get_logger("recurring_finance.resolution")


class TransactionStore(Protocol):
    def create(self, draft: TransactionDraft) -> Transaction: ...

    def replace(self, existing: Transaction, draft: TransactionDraft) -> Transaction: ...


def parse_choice(choice: DuplicateChoice | str | None) -> DuplicateChoice | None:
    """Coerce user input to a ``DuplicateChoice``; blank means undecided."""

    if choice is None or isinstance(choice, DuplicateChoice):
        return choice
    text = choice.strip().upper().replace(" ", "_").replace("-", "_")
    if not text:
        return None
    try:
        return DuplicateChoice(text)
    except ValueError:
        allowed = ", ".join(c.value for c in DuplicateChoice)
        raise ValueError(f"Invalid duplicate choice: {choice!r}. Allowed: {allowed}") from None


def resolve_duplicate(
    existing: Transaction,
    incoming: TransactionDraft,
    choice: DuplicateChoice | str | None = None,
    *,
    store: TransactionStore,
) -> Transaction | DuplicateConflict:
    decided = parse_choice(choice)
    match decided:
        case None:
            logger.info("duplicate of transaction %s awaits a user decision", existing.id)
            return DuplicateConflict.for_transaction(existing)
        case DuplicateChoice.KEEP_EXISTING:
            return existing
        case DuplicateChoice.USE_NEW:
            return store.replace(existing, incoming)
        case DuplicateChoice.MAINTAIN_BOTH:
            return store.create(incoming)


__all__ = ["TransactionStore", "parse_choice", "resolve_duplicate"]
