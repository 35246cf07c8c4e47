"""
Base source interface.
"""

from abc import ABC, abstractmethod
from datetime import date, timedelta

from ..schemas.transaction import Transaction


def sync_window(days_to_sync: int, today: date | None = None) -> tuple[date, date]:
    """Return the (start, end) dates of a sync window ending today."""
    end = today or date.today()
    return end - timedelta(days=days_to_sync), end


class BaseSource(ABC):
    """
    Base class for movement sources.

    Each source turns raw movements (bank aggregator API, notification
    emails) into canonical Transactions with amounts in major units.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name for logging."""
        pass

    @abstractmethod
    def fetch_movements(self, start: date, end: date) -> list[Transaction]:
        """
        Fetch movements dated inside [start, end], in source order.

        The window is computed once per run by the caller and shared with the
        existing-transaction fetch, so both sides of the dedupe see the same days.

        Raises:
            FetchError: If the source cannot be reached
        """
        pass
