"""
Category name → target system id resolution with a per-process cache.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import CategoryFetchError, FetchError

if TYPE_CHECKING:
    from ..lunchmoney_client import LunchMoneyClient

logger = logging.getLogger(__name__)


class CategoryResolver:
    """Resolves category names to ids.

    The category list is fetched once, on the first lookup, and kept until
    invalidate() is called. A failed fetch is not cached.
    """

    def __init__(self, client: LunchMoneyClient) -> None:
        self.client = client
        self._categories: dict[str, int] | None = None

    def categories(self) -> dict[str, int]:
        """Return the lower-cased name → id map, fetching it if needed.

        Raises:
            CategoryFetchError: If the category list cannot be fetched
        """
        if self._categories is not None:
            return self._categories

        try:
            categories = self.client.list_categories()
        except FetchError as e:
            raise CategoryFetchError(
                f"Failed to fetch categories: {e}", status_code=e.status_code
            ) from e

        mapping: dict[str, int] = {}
        for category in categories:
            if category.name and category.id is not None:
                mapping[category.name.lower()] = category.id

        self._categories = mapping
        logger.info("Cached %d categories", len(mapping))
        return mapping

    def resolve(self, name: str | None) -> int | None:
        """Return the id for a category name, or None if unknown."""
        if not name:
            return None
        return self.categories().get(name.lower())

    def invalidate(self) -> None:
        self._categories = None
