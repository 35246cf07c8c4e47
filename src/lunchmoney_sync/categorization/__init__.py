"""
Categorization module.

Assigns spending categories to payees using manual rules and learned
memory (exact and fuzzy), and learns new associations as it goes.
"""

from .engine import (
    FUZZY_MATCH_THRESHOLD,
    CategorizationEngine,
    CategoryMatch,
    MatchSource,
    sanitize_payee,
)
from .learning import MIN_OCCURRENCES, build_memory, rebuild_memory_from_history
from .memory import MemoryStats, MemoryStore
from .resolver import CategoryResolver
from .similarity import BestMatch, find_best_match, similarity

__all__ = [
    "FUZZY_MATCH_THRESHOLD",
    "MIN_OCCURRENCES",
    "BestMatch",
    "CategorizationEngine",
    "CategoryMatch",
    "CategoryResolver",
    "MatchSource",
    "MemoryStats",
    "MemoryStore",
    "build_memory",
    "find_best_match",
    "rebuild_memory_from_history",
    "sanitize_payee",
    "similarity",
]
