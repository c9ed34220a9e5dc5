"""Greedy payee clustering of a user's transaction history.

The pass is single and order dependent: each transaction joins the first
existing cluster (in creation order) whose key the matcher accepts, otherwise
it opens a new cluster keyed by its own normalized description. Inputs are
stable-sorted by execution date first so the same snapshot always clusters
the same way.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from .matching import DescriptionMatcher, TokenJaccardMatcher
from .models import Transaction
from .normalizers import normalize_description
from .settings import DEFAULT_SETTINGS, EngineSettings


def sort_by_execution_date(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Stable sort by ``execution_date``; undated rows are dropped."""

    dated = [tx for tx in transactions if tx.execution_date is not None]
    return sorted(dated, key=lambda tx: tx.execution_date)  # type: ignore[arg-type,return-value]


def cluster_transactions(
    transactions: Iterable[Transaction],
    *,
    matcher: DescriptionMatcher | None = None,
) -> dict[str, list[Transaction]]:
    """Partition ``transactions`` into payee clusters keyed by normalized text.

    Descriptions that normalize to ``""`` (numeric-only references, for
    example) never match a key, so they all land in the single ``""`` cluster.
    """

    matcher = matcher or TokenJaccardMatcher(DEFAULT_SETTINGS.jaccard_threshold)
    clusters: dict[str, list[Transaction]] = {}
    for tx in sort_by_execution_date(transactions):
        norm = normalize_description(tx.description)
        key = next((k for k in clusters if matcher.matches(k, norm)), norm)
        clusters.setdefault(key, []).append(tx)
    return clusters


def mean_amount(transactions: Sequence[Transaction]) -> Decimal:
    return sum((tx.amount for tx in transactions), Decimal(0)) / len(transactions)


def filter_by_amount(
    transactions: Sequence[Transaction], *, tolerance: Decimal
) -> list[Transaction]:
    """Keep members within ``tolerance * |mean|`` of the cluster's mean amount."""

    if not transactions:
        return []
    avg = mean_amount(transactions)
    limit = abs(avg) * tolerance
    return [tx for tx in transactions if abs(tx.amount - avg) <= limit]


def recurring_clusters(
    transactions: Iterable[Transaction],
    *,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> list[list[Transaction]]:
    """Clusters that survive the size and amount filters, in creation order."""

    matcher = TokenJaccardMatcher(settings.jaccard_threshold)
    survivors: list[list[Transaction]] = []
    for group in cluster_transactions(transactions, matcher=matcher).values():
        if len(group) < settings.min_cluster_size:
            continue
        kept = filter_by_amount(group, tolerance=settings.cluster_amount_tolerance)
        if len(kept) < settings.min_cluster_size:
            continue
        survivors.append(kept)
    return survivors


__all__ = [
    "sort_by_execution_date",
    "cluster_transactions",
    "mean_amount",
    "filter_by_amount",
    "recurring_clusters",
]
