"""
Learned payee → category associations, persisted as a JSON file.

Key invariants:
- Mapping order is preserved on load and save (first-match-wins depends on it)
- load() never fails: a missing or corrupt file is an empty memory
- save() is a full overwrite, never a merge
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from ..errors import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_MEMORY_PATH = Path("data/categorization_memory.json")


@dataclass
class MemoryStats:
    """Summary of the persisted memory."""

    total_entries: int
    unique_categories: int
    categories: list[str] = field(default_factory=list)  # sorted
    last_modified: str | None = None  # ISO timestamp

    def to_dict(self) -> dict:
        return {
            "total_entries": self.total_entries,
            "unique_categories": self.unique_categories,
            "categories": self.categories,
            "last_modified": self.last_modified,
        }


class MemoryStore:
    """
    Durable store for learned associations.

    Single writer: concurrent saves are not coordinated, the last one wins.
    """

    def __init__(self, path: Path | str = DEFAULT_MEMORY_PATH):
        self.path = Path(path)

    def load(self) -> dict[str, str]:
        """Load the memory, or an empty mapping if missing or unreadable."""
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Failed to load categorization memory from %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning(
                "Ignoring categorization memory in %s: expected an object, got %s",
                self.path,
                type(data).__name__,
            )
            return {}

        return {str(payee): str(category) for payee, category in data.items() if category}

    def save(self, memory: dict[str, str]) -> None:
        """Replace the persisted memory with the given mapping (atomic write).

        Raises:
            PersistenceError: If the file cannot be written
        """
        tmp = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(memory, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            logger.error("Error saving categorization memory to %s: %s", self.path, e)
            raise PersistenceError(f"Failed to save memory to {self.path}: {e}") from e

    def clear(self) -> None:
        """Remove the persisted memory.

        Raises:
            PersistenceError: If the file exists but cannot be removed
        """
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Error clearing categorization memory %s: %s", self.path, e)
            raise PersistenceError(f"Failed to clear memory at {self.path}: {e}") from e

    def stats(self) -> MemoryStats:
        """Compute statistics about the persisted memory."""
        memory = self.load()
        categories = sorted(set(memory.values()))

        last_modified = None
        if self.path.exists():
            mtime = self.path.stat().st_mtime
            last_modified = datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat()

        return MemoryStats(
            total_entries=len(memory),
            unique_categories=len(categories),
            categories=categories,
            last_modified=last_modified,
        )
