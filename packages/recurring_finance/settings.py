"""Tunable thresholds for detection and duplicate screening.

Defaults reproduce the observed behavior of the heuristics. Each value can be
overridden through an ``RF_*`` environment variable; values that fail to
parse (or are out of range) fall back to the default instead of aborting.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from .logging_setup import get_logger

logger = get_logger("recurring_finance.settings")


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Thresholds shared by the detector and the duplicate finder."""

    jaccard_threshold: float = 0.6
    cluster_amount_tolerance: Decimal = Decimal("0.4")
    single_amount_tolerance: Decimal = Decimal("0.25")
    min_cluster_size: int = 3
    duplicate_window_days: int = 4
    duplicate_amount_tolerance: Decimal = Decimal("0.01")

    @classmethod
    def from_env(cls) -> EngineSettings:
        d = cls()
        return cls(
            jaccard_threshold=float(
                _env_decimal("RF_JACCARD_THRESHOLD", Decimal(str(d.jaccard_threshold)), hi=1)
            ),
            cluster_amount_tolerance=_env_decimal(
                "RF_CLUSTER_AMOUNT_TOLERANCE", d.cluster_amount_tolerance
            ),
            single_amount_tolerance=_env_decimal(
                "RF_SINGLE_AMOUNT_TOLERANCE", d.single_amount_tolerance
            ),
            min_cluster_size=_env_int("RF_MIN_CLUSTER_SIZE", d.min_cluster_size, lo=1),
            duplicate_window_days=_env_int("RF_DUPLICATE_WINDOW_DAYS", d.duplicate_window_days),
            duplicate_amount_tolerance=_env_decimal(
                "RF_DUPLICATE_AMOUNT_TOLERANCE", d.duplicate_amount_tolerance
            ),
        )


def _env_int(name: str, default: int, *, lo: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return default
    if value < lo:
        logger.warning("Ignoring %s=%r: must be >= %d", name, raw, lo)
        return default
    return value


def _env_decimal(name: str, default: Decimal, *, hi: int | None = None) -> Decimal:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        logger.warning("Ignoring %s=%r: not a number", name, raw)
        return default
    if not value.is_finite() or value < 0 or (hi is not None and value > hi):
        logger.warning("Ignoring %s=%r: out of range", name, raw)
        return default
    return value


DEFAULT_SETTINGS = EngineSettings()

__all__ = ["EngineSettings", "DEFAULT_SETTINGS"]
