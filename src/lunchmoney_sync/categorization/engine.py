"""Categorization engine for assigning categories to incoming transactions.

Category selection is a fixed chain of strategies, first match wins:
1. Manual rule: payee contains a configured rule key
2. Exact memory: payee contains a memorized payee
3. Fuzzy memory: best bigram similarity against memorized payees >= 0.70

Matches found through memory (2 and 3) are written back to memory under the
sanitized payee. Manual rules are never written back.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ..errors import PersistenceError
from .similarity import find_best_match

if TYPE_CHECKING:
    from .memory import MemoryStore
    from .resolver import CategoryResolver

logger = logging.getLogger(__name__)

FUZZY_MATCH_THRESHOLD = 0.70
MAX_PAYEE_LENGTH = 255

_UNSAFE_PAYEE_CHARS = re.compile(r"[<>\"'/\\]")


class MatchSource(str, Enum):
    """Which strategy produced a category."""

    CONFIG_RULE = "config_rule"
    MEMORY_EXACT = "memory_exact"
    MEMORY_FUZZY = "memory_fuzzy"


@dataclass
class CategoryMatch:
    """A chosen category name and how it was found."""

    category: str
    source: MatchSource
    matched_key: str
    score: float = 1.0

    @property
    def learns(self) -> bool:
        """True if this match should be written back to memory."""
        return self.source != MatchSource.CONFIG_RULE

    def describe(self) -> str:
        if self.source == MatchSource.MEMORY_FUZZY:
            return f"{self.source.value}_{round(self.score * 100)}%"
        return self.source.value


def sanitize_payee(payee: str | None) -> str:
    """Strip < > " ' / \\, trim, and truncate to 255 characters."""
    if not payee:
        return ""
    return _UNSAFE_PAYEE_CHARS.sub("", payee).strip()[:MAX_PAYEE_LENGTH]


def match_manual_rule(
    payee: str, rules: Mapping[str, str], memory: Mapping[str, str]
) -> CategoryMatch | None:
    """First rule whose key is contained in the payee (case-insensitive)."""
    lower_payee = payee.lower()
    for key, category in rules.items():
        if key and category and key.lower() in lower_payee:
            return CategoryMatch(category=category, source=MatchSource.CONFIG_RULE, matched_key=key)
    return None


def match_memory_exact(
    payee: str, rules: Mapping[str, str], memory: Mapping[str, str]
) -> CategoryMatch | None:
    """First memorized payee contained in the payee (case-insensitive)."""
    lower_payee = payee.lower()
    for key, category in memory.items():
        if key and key.lower() in lower_payee:
            return CategoryMatch(category=category, source=MatchSource.MEMORY_EXACT, matched_key=key)
    return None


def match_memory_fuzzy(
    payee: str, rules: Mapping[str, str], memory: Mapping[str, str]
) -> CategoryMatch | None:
    """Most similar memorized payee, if it clears the fuzzy threshold."""
    if not memory:
        return None

    best = find_best_match(payee, memory.keys())
    if best.target is None or best.rating < FUZZY_MATCH_THRESHOLD:
        return None

    return CategoryMatch(
        category=memory[best.target],
        source=MatchSource.MEMORY_FUZZY,
        matched_key=best.target,
        score=best.rating,
    )


Strategy = Callable[[str, Mapping[str, str], Mapping[str, str]], "CategoryMatch | None"]

DEFAULT_STRATEGIES: tuple[Strategy, ...] = (
    match_manual_rule,
    match_memory_exact,
    match_memory_fuzzy,
)


class CategorizationEngine:
    """Assigns categories to payees using rules and learned memory.

    Memory is loaded lazily on the first call and then kept in-process for
    the lifetime of the engine; it is not re-read from storage per call.
    """

    def __init__(
        self,
        resolver: CategoryResolver,
        memory_store: MemoryStore,
        strategies: tuple[Strategy, ...] = DEFAULT_STRATEGIES,
    ) -> None:
        """Initialize the engine.

        Args:
            resolver: Category name → id resolver (owns the category cache).
            memory_store: Durable store for learned associations.
            strategies: Ordered matching strategies.
        """
        self.resolver = resolver
        self.store = memory_store
        self.strategies = strategies
        self._memory: dict[str, str] | None = None

    @property
    def memory(self) -> dict[str, str]:
        """The in-process memory cache."""
        if self._memory is None:
            self._memory = self.store.load()
            logger.debug("Loaded %d memorized payees", len(self._memory))
        return self._memory

    def reload_memory(self) -> None:
        """Drop the in-process memory so the next call reloads it."""
        self._memory = None

    def choose_category(
        self,
        payee: str | None,
        rules: Mapping[str, str] | None = None,
    ) -> CategoryMatch | None:
        """Pick a category name for a payee and learn from memory matches.

        Args:
            payee: Raw payee text from the source.
            rules: Manual rules (rule key → category name), in priority order.

        Returns:
            The winning CategoryMatch, or None if nothing matched.
        """
        sanitized = sanitize_payee(payee)
        if not sanitized:
            return None

        rules = rules or {}
        memory = self.memory

        match = None
        for strategy in self.strategies:
            match = strategy(sanitized, rules, memory)
            if match is not None:
                break

        if match is None:
            return None

        if match.learns and memory.get(sanitized) != match.category:
            self._remember(sanitized, match)

        return match

    def assign_category(
        self,
        payee: str | None,
        rules: Mapping[str, str] | None = None,
    ) -> int | None:
        """Return the target system category id for a payee, or None.

        Raises:
            CategoryFetchError: If the category list cannot be fetched
        """
        match = self.choose_category(payee, rules)
        if match is None:
            return None

        category_id = self.resolver.resolve(match.category)
        if category_id is None:
            logger.warning("Category '%s' not found in Lunch Money", match.category)
        return category_id

    def _remember(self, payee: str, match: CategoryMatch) -> None:
        memory = self.memory
        memory[payee] = match.category
        logger.info("Learned: '%s' -> '%s' (%s)", payee, match.category, match.describe())
        try:
            self.store.save(memory)
        except PersistenceError as e:
            # Kept in-process; the next successful save persists it
            logger.warning("Learned association not persisted: %s", e)
