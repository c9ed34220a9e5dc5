"""Fuzzy payee matching strategies.

Two policies with different precision/recall trade-offs share one interface:

- ``TokenJaccardMatcher`` (bulk clustering): token-set overlap ratio.
- ``SubstringMatcher`` (single-transaction lookups): equality or containment.

Both normalize their inputs with :func:`normalize_description`; an input that
is empty before or after normalization never matches.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .normalizers import normalize_description, tokenize


class DescriptionMatcher(Protocol):
    def matches(self, a: str | None, b: str | None) -> bool: ...


def jaccard_ratio(a: str, b: str) -> float:
    """``|A ∩ B| / |A ∪ B|`` over the token sets of two normalized strings."""

    ta, tb = tokenize(a), tokenize(b)
    union = ta | tb
    if not union:
        return 0.0
    return len(ta & tb) / len(union)


@dataclass(frozen=True, slots=True)
class TokenJaccardMatcher:
    threshold: float = 0.6

    def matches(self, a: str | None, b: str | None) -> bool:
        na, nb = normalize_description(a), normalize_description(b)
        if not na or not nb:
            return False
        return jaccard_ratio(na, nb) >= self.threshold


@dataclass(frozen=True, slots=True)
class SubstringMatcher:
    def matches(self, a: str | None, b: str | None) -> bool:
        na, nb = normalize_description(a), normalize_description(b)
        if not na or not nb:
            return False
        return na == nb or na in nb or nb in na


__all__ = [
    "DescriptionMatcher",
    "TokenJaccardMatcher",
    "SubstringMatcher",
    "jaccard_ratio",
]
