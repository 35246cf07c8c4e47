"""
SSOT (Single Source of Truth) schemas for the pipeline.

These canonical schemas are the ONLY models used across all modules.
No duplicated "near-same" models allowed.
"""

from .dedupe import (
    METHOD_FINGERPRINT,
    METHOD_SIMPLE,
    DedupeResult,
    DuplicateIndex,
    DuplicateInfo,
    deduplicate,
    fingerprint,
    simple_key,
)
from .transaction import HistoricalTransaction, Transaction, to_decimal

__all__ = [
    # Transactions
    "Transaction",
    "HistoricalTransaction",
    "to_decimal",
    # Dedupe
    "METHOD_FINGERPRINT",
    "METHOD_SIMPLE",
    "DedupeResult",
    "DuplicateIndex",
    "DuplicateInfo",
    "deduplicate",
    "fingerprint",
    "simple_key",
]
