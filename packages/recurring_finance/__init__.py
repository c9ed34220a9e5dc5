"""Public interface for the ``recurring_finance`` package.

This module exposes the package's API functions and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
The pure, storage-free engine lives in ``recurring_finance.detector``,
``recurring_finance.schedule`` and ``recurring_finance.resolution``.
"""

from .api import (
    detect_pattern_for_transaction,
    detect_patterns,
    find_duplicate_candidate,
    generate_occurrences,
    list_pending_duplicates,
    materialize_due,
    next_execution_date,
    resolve_duplicate,
    resolve_pending_duplicate,
    save_definition,
)
from .detector import confirm_definition, definition_from_candidate
from .models import (
    DuplicateChoice,
    DuplicateConflict,
    FrequencyClassification,
    FrequencyType,
    GenerationReport,
    MaterializationResult,
    Occurrence,
    PendingDuplicate,
    RecurrenceSource,
    RecurrenceStatus,
    RecurringDefinition,
    RecurringPatternCandidate,
    StopReason,
    Transaction,
    TransactionDraft,
    TransactionStatus,
    TransactionType,
)
from .settings import EngineSettings

__all__ = [
    # API
    "detect_patterns",
    "detect_pattern_for_transaction",
    "generate_occurrences",
    "next_execution_date",
    "find_duplicate_candidate",
    "resolve_duplicate",
    "materialize_due",
    "list_pending_duplicates",
    "resolve_pending_duplicate",
    "save_definition",
    "definition_from_candidate",
    "confirm_definition",
    # Models / types
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "TransactionStatus",
    "FrequencyType",
    "FrequencyClassification",
    "RecurringPatternCandidate",
    "RecurringDefinition",
    "RecurrenceStatus",
    "RecurrenceSource",
    "Occurrence",
    "GenerationReport",
    "StopReason",
    "DuplicateChoice",
    "DuplicateConflict",
    "MaterializationResult",
    "PendingDuplicate",
    "EngineSettings",
]
