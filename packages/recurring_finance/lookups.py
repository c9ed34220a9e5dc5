"""Find-or-create helpers for user-owned lookup rows (tags, categories, accounts).

Concurrent callers may race to create the same name. Instead of locking, the
insert runs inside a SAVEPOINT; on a uniqueness conflict the savepoint is
rolled back and the winner's row is re-fetched by name. The caller's outer
transaction is left intact either way.

Exports
-------
- ``normalize_name(...)`` / ``validate_name(...)``: shared name hygiene.
- ``get_or_create_tag``, ``get_or_create_category``,
  ``get_or_create_bank_account``: return ``(row, created)``.
- ``resolve_tags``: map a sequence of names to tag rows, creating as needed.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TypeVar

from db.models.finance import RfBankAccount, RfCategory, RfTag
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .logging_setup import get_logger

logger = get_logger("recurring_finance.lookups")

_WS_RE = re.compile(r"\s+")

_Row = TypeVar("_Row", RfTag, RfCategory, RfBankAccount)


def normalize_name(name: str) -> str:
    """Trim and collapse internal whitespace; case is preserved."""

    return _WS_RE.sub(" ", name.strip())


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_name(name: str, *, min_len: int = 1, max_len: int = 64) -> NameValidation:
    n = normalize_name(name)
    if len(n) < min_len:
        return NameValidation(False, "Name cannot be empty")
    if len(n) > max_len:
        return NameValidation(False, f"Name must be at most {max_len} characters")
    return NameValidation(True, None)


def _find(session: Session, model: type[_Row], *, user_id: int, name: str) -> _Row | None:
    return (
        session.execute(select(model).where(model.user_id == user_id, model.name == name))
        .scalars()
        .first()
    )


def _get_or_create(
    session: Session, model: type[_Row], *, user_id: int, name: str
) -> tuple[_Row, bool]:
    n = normalize_name(name)
    v = validate_name(n)
    if not v.ok:
        raise ValueError(f"Invalid {model.__tablename__} name: {v.reason}")

    existing = _find(session, model, user_id=user_id, name=n)
    if existing is not None:
        return existing, False

    row = model(user_id=user_id, name=n)
    try:
        with session.begin_nested():
            session.add(row)
            session.flush()
    except IntegrityError:
        winner = _find(session, model, user_id=user_id, name=n)
        if winner is None:
            raise
        logger.debug("lost create race for %s %r; using existing row", model.__tablename__, n)
        return winner, False
    return row, True


def get_or_create_tag(session: Session, *, user_id: int, name: str) -> tuple[RfTag, bool]:
    return _get_or_create(session, RfTag, user_id=user_id, name=name)


def get_or_create_category(
    session: Session, *, user_id: int, name: str
) -> tuple[RfCategory, bool]:
    return _get_or_create(session, RfCategory, user_id=user_id, name=name)


def get_or_create_bank_account(
    session: Session, *, user_id: int, name: str
) -> tuple[RfBankAccount, bool]:
    return _get_or_create(session, RfBankAccount, user_id=user_id, name=name)


def resolve_tags(session: Session, *, user_id: int, names: Iterable[str]) -> list[RfTag]:
    """Tag rows for ``names`` in input order, creating missing ones."""

    tags: list[RfTag] = []
    seen: set[str] = set()
    for name in names:
        n = normalize_name(name)
        if not n or n in seen:
            continue
        seen.add(n)
        tag, _created = get_or_create_tag(session, user_id=user_id, name=n)
        tags.append(tag)
    return tags


__all__ = [
    "normalize_name",
    "validate_name",
    "NameValidation",
    "get_or_create_tag",
    "get_or_create_category",
    "get_or_create_bank_account",
    "resolve_tags",
]
