"""
Learning payee → category associations from categorized history.

For each payee, the most frequent category wins (first seen wins ties), and
only payees seen with that category at least MIN_OCCURRENCES times are learned.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .engine import sanitize_payee

if TYPE_CHECKING:
    from ..lunchmoney_client import LunchMoneyClient
    from ..schemas.transaction import HistoricalTransaction
    from .memory import MemoryStore

logger = logging.getLogger(__name__)

MIN_OCCURRENCES = 2
DEFAULT_HISTORY_START = "2023-01-01"


def build_memory(history: Iterable[HistoricalTransaction]) -> dict[str, str]:
    """Build a memory mapping by majority vote per payee."""
    votes: dict[str, dict[str, int]] = {}

    for tx in history:
        payee = sanitize_payee(tx.payee)
        category = (tx.category_name or "").strip()
        if not payee or not category:
            continue
        counts = votes.setdefault(payee, {})
        counts[category] = counts.get(category, 0) + 1

    memory: dict[str, str] = {}
    for payee, counts in votes.items():
        preferred = None
        max_count = 0
        for category, count in counts.items():
            if count > max_count:
                preferred, max_count = category, count

        if preferred and max_count >= MIN_OCCURRENCES:
            memory[payee] = preferred

    return memory


def rebuild_memory_from_history(
    client: LunchMoneyClient,
    store: MemoryStore | None = None,
    since: str = DEFAULT_HISTORY_START,
) -> dict[str, str]:
    """Rebuild memory from target system history.

    Args:
        client: Lunch Money client used to fetch categorized history.
        store: If given, the learned memory replaces the persisted one.
        since: Start date (YYYY-MM-DD) of the history to learn from.

    Returns:
        The learned memory mapping.

    Raises:
        FetchError: If the history cannot be fetched
        PersistenceError: If the learned memory cannot be saved
    """
    logger.info("Learning from Lunch Money transactions since %s", since)
    history = client.list_transactions_for_learning(since)
    logger.info("Found %d historical transactions to analyze", len(history))

    memory = build_memory(history)
    logger.info(
        "Learned %d payee-category mappings across %d categories",
        len(memory),
        len(set(memory.values())),
    )

    if store is not None:
        store.save(memory)
        logger.info("Memory saved to %s", store.path)

    return memory
