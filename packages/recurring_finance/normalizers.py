"""Canonicalization of free-text transaction descriptions.

Banks embed variable numeric noise in otherwise identical payee strings
(invoice numbers, statement dates, card suffixes). Stripping it lets the
matchers group "NETFLIX 03/12/2024 #8841" with "Netflix 04/12/2024 #9120".
"""

from __future__ import annotations

import re

# Order matters: date-like fragments are removed before bare digits.
_FULL_DATE_RE = re.compile(r"\d{1,2}/\d{1,2}/\d{2,4}")
_MONTH_YEAR_RE = re.compile(r"\d{1,2}/\d{4}")
_DIGITS_RE = re.compile(r"\d+")
_NON_LETTERS_RE = re.compile(r"[^a-z]+")


def normalize_description(raw: str | None) -> str:
    """Return the comparison key for ``raw``.

    Lowercases, removes ``d{1,2}/d{1,2}/d{2,4}`` and ``d{1,2}/d{4}`` dates and
    then every digit, collapses each run of non-letters to a single space and
    trims. ``None`` yields ``""``.
    """

    if not raw:
        return ""
    s = raw.lower()
    s = _FULL_DATE_RE.sub("", s)
    s = _MONTH_YEAR_RE.sub("", s)
    s = _DIGITS_RE.sub("", s)
    s = _NON_LETTERS_RE.sub(" ", s)
    return s.strip()


def tokenize(normalized: str) -> frozenset[str]:
    """Whitespace token set of an already-normalized description."""

    return frozenset(normalized.split())


__all__ = ["normalize_description", "tokenize"]
