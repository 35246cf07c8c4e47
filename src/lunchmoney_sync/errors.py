"""
Error taxonomy for the sync pipeline.

- FetchError: remote source/target unreachable or non-2xx (retryable for
  network errors, 429 and 5xx)
- CategoryFetchError: category list could not be fetched
- PersistenceError: categorization memory could not be read or written
- ProcessingError: a single movement failed to transform or categorize
- InsertionError: a single batch failed to insert after retries
- SyncInProgressError: another sync run holds the single-flight guard
"""

from typing import Any

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Keys whose values must never reach the logs
SECRET_KEYS = frozenset(
    {"token", "api_key", "apikey", "lunchmoney_token", "fintoc_api_key", "refresh_token", "client_secret"}
)


class SyncError(Exception):
    """Base exception for sync pipeline errors."""

    pass


class FetchError(SyncError):
    """A remote fetch failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """True for network errors, rate limiting and server errors.

        Transport retries have already run when this is raised, so True
        means a later run may succeed. Copied onto SyncResult.retryable.
        """
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class CategoryFetchError(FetchError):
    """The category list could not be fetched from the target system."""

    pass


class PersistenceError(SyncError):
    """Categorization memory could not be read or written."""

    pass


class ProcessingError(SyncError):
    """A single movement could not be processed."""

    def __init__(self, message: str, movement: Any = None, step: str = "processing"):
        self.movement = movement
        self.step = step
        super().__init__(message)


class InsertionError(SyncError):
    """A batch could not be inserted into the target system."""

    def __init__(self, message: str, batch_index: int, batch_size: int):
        self.batch_index = batch_index
        self.batch_size = batch_size
        super().__init__(message)


class SyncInProgressError(SyncError):
    """Another sync run is already in progress."""

    pass


def redact(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a logging context with secret values replaced."""
    return {
        key: "[REDACTED]" if key.lower() in SECRET_KEYS and value else value
        for key, value in context.items()
    }
