"""Bank → Lunch Money sync orchestration service.

A run moves through these states:

    FETCH_SOURCE → FETCH_EXISTING → DEDUPE → CATEGORIZE
        → REPORT (dry run) | BATCH_INSERT (live) → COMPLETED

Fetch failures abort the run (FAILED) before anything is written, since
deduplicating against incomplete data risks creating real duplicates.
Per-transaction and per-batch failures are recorded in the result and never
abort the rest of the run.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..categorization import CategorizationEngine, CategoryResolver, MemoryStore
from ..errors import FetchError, InsertionError, ProcessingError, SyncInProgressError
from ..lunchmoney_client import LunchMoneyClient
from ..schemas.dedupe import DuplicateInfo, deduplicate
from ..schemas.transaction import Transaction
from ..sources import FintocSource, GmailSource, sync_window

if TYPE_CHECKING:
    from ..config import Config
    from ..sources import BaseSource

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """Possible states for a sync run."""

    FETCH_SOURCE = "FETCH_SOURCE"
    FETCH_EXISTING = "FETCH_EXISTING"
    DEDUPE = "DEDUPE"
    CATEGORIZE = "CATEGORIZE"
    REPORT = "REPORT"
    BATCH_INSERT = "BATCH_INSERT"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class SyncResult:
    """Summary of a sync run."""

    state: SyncState
    processed: int = 0
    inserted: int = 0
    skipped: int = 0
    dry_run: bool = False
    batches: int = 0
    duplicates: list[DuplicateInfo] = field(default_factory=list)
    processing_errors: list[dict[str, Any]] = field(default_factory=list)
    insertion_errors: list[dict[str, Any]] = field(default_factory=list)
    preview: list[Transaction] = field(default_factory=list)
    fatal_error: str | None = None
    # Whether a later run may succeed where this one failed
    retryable: bool = False
    duration_ms: int = 0

    @property
    def errors(self) -> int:
        """Processing errors plus failed batches."""
        return len(self.processing_errors) + len(self.insertion_errors)

    @property
    def success(self) -> bool:
        """False if the run aborted or any batch failed to insert.

        Processing errors alone do not make a run unsuccessful.
        """
        return self.state == SyncState.COMPLETED and not self.insertion_errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "success": self.success,
            "state": self.state.value,
            "processed": self.processed,
            "inserted": self.inserted,
            "skipped": self.skipped,
            "errors": self.errors,
        }
        if self.dry_run:
            result["dry_run"] = True
        if self.batches:
            result["batches"] = self.batches
            result["insertion_errors"] = self.insertion_errors
        if self.processing_errors:
            result["processing_errors"] = self.processing_errors
        if self.fatal_error:
            result["error"] = self.fatal_error
            result["retryable"] = self.retryable
        return result


class SyncGuard:
    """Single-flight guard: one sync run at a time per memory store/account."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self) -> Iterator[None]:
        """Hold the guard for the duration of a run.

        Raises:
            SyncInProgressError: If another run holds the guard
        """
        if not self._lock.acquire(blocking=False):
            raise SyncInProgressError("A sync run is already in progress")
        try:
            yield
        finally:
            self._lock.release()


DEFAULT_GUARD = SyncGuard()


def batched(items: list, size: int) -> list[list]:
    """Split a list into consecutive chunks of at most `size` items."""
    return [items[i : i + size] for i in range(0, len(items), size)]


class SyncService:
    """Orchestrates fetch → dedupe → categorize → batch insert.

    Usage:
        service = SyncService(client, source, engine, config)
        result = service.run(dry_run=True)
    """

    def __init__(
        self,
        client: LunchMoneyClient,
        source: BaseSource,
        engine: CategorizationEngine,
        config: Config,
        guard: SyncGuard | None = None,
    ) -> None:
        """Initialize the sync service.

        Args:
            client: Lunch Money client (existing transactions, inserts).
            source: Where new movements come from.
            engine: Categorization engine (owns memory and category caches).
            config: Application configuration.
            guard: Single-flight guard; the process-wide default if None.
        """
        self.client = client
        self.source = source
        self.engine = engine
        self.config = config
        self.guard = guard or DEFAULT_GUARD

    def run(self, dry_run: bool = False, today: date | None = None) -> SyncResult:
        """Run one sync.

        Args:
            dry_run: Do everything except inserting; preview instead.
            today: End of the sync window (defaults to today).

        Returns:
            SyncResult summary. Never raises for per-item or per-batch failures.

        Raises:
            SyncInProgressError: If another run is in progress
        """
        with self.guard.hold():
            started = time.monotonic()
            result = self._run(dry_run, today)
            result.duration_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            "Sync %s: processed=%d inserted=%d skipped=%d errors=%d in %dms",
            result.state.value,
            result.processed,
            result.inserted,
            result.skipped,
            result.errors,
            result.duration_ms,
        )
        return result

    def _run(self, dry_run: bool, today: date | None) -> SyncResult:
        settings = self.config.sync
        asset_id = self.config.lunchmoney.asset_id

        # One window for both fetches; dedupe must compare the same days
        start, end = sync_window(settings.days_to_sync, today)

        # FETCH_SOURCE
        try:
            movements = self.source.fetch_movements(start, end)
        except Exception as e:
            logger.error("Error fetching %s movements: %s", self.source.name, e)
            return self._failed(e, dry_run)

        if not movements:
            logger.info("No %s transactions found in the given period", self.source.name)
            return SyncResult(state=SyncState.COMPLETED, dry_run=dry_run)

        logger.info("Found %d %s transactions to process", len(movements), self.source.name)

        # FETCH_EXISTING
        try:
            existing = self.client.list_transactions(
                start.isoformat(), end.isoformat(), asset_id=asset_id
            )
        except Exception as e:
            logger.error("Error fetching Lunch Money transactions: %s", e)
            return self._failed(e, dry_run)

        logger.info("Found %d existing Lunch Money transactions for duplicate check", len(existing))

        # DEDUPE
        dedupe = deduplicate(existing, movements)
        result = SyncResult(
            state=SyncState.CATEGORIZE,
            processed=len(movements),
            skipped=len(dedupe.duplicates),
            dry_run=dry_run,
            duplicates=dedupe.duplicates,
        )

        # CATEGORIZE
        ready: list[tuple[Transaction, dict]] = []
        for tx in dedupe.new:
            try:
                ready.append((tx, self._prepare(tx)))
            except ProcessingError as e:
                result.processing_errors.append(
                    {
                        "transaction": {
                            "date": tx.date,
                            "amount": str(tx.amount),
                            "payee": tx.payee,
                        },
                        "error": str(e),
                        "step": e.step,
                    }
                )
                logger.warning(
                    "Error processing transaction %s %s: %s", tx.date, tx.payee, e
                )

        logger.info(
            "Processing summary: new=%d duplicates=%d errors=%d",
            len(ready),
            result.skipped,
            len(result.processing_errors),
        )

        if not ready:
            logger.info("No new transactions to sync")
            result.state = SyncState.COMPLETED
            return result

        if dry_run:
            result.state = SyncState.REPORT
            self._report(ready, result)
        else:
            result.state = SyncState.BATCH_INSERT
            self._insert(ready, result)

        result.state = SyncState.COMPLETED
        return result

    def _failed(self, error: Exception, dry_run: bool) -> SyncResult:
        """Result of a run aborted by a fetch failure, with zero effect."""
        retryable = isinstance(error, FetchError) and error.retryable
        return SyncResult(
            state=SyncState.FAILED,
            dry_run=dry_run,
            fatal_error=str(error),
            retryable=retryable,
        )

    def _prepare(self, tx: Transaction) -> dict:
        """Categorize a transaction and build its insert payload.

        Raises:
            ProcessingError: If categorization or payload building fails
        """
        settings = self.config.sync
        try:
            tx.category_id = self.engine.assign_category(tx.payee, settings.category_rules)
        except Exception as e:
            raise ProcessingError(str(e), movement=tx, step="categorization") from e

        try:
            return tx.to_insert_payload(settings.currency, self.config.lunchmoney.asset_id)
        except Exception as e:
            raise ProcessingError(str(e), movement=tx, step="processing") from e

    def _report(self, ready: list[tuple[Transaction, dict]], result: SyncResult) -> None:
        logger.info("Dry run: %d transaction(s) would be inserted", len(ready))
        for tx, _ in ready:
            category = f" (category id: {tx.category_id})" if tx.category_id else ""
            logger.info("NEW %s %s %s%s", tx.date, tx.formatted_amount, tx.payee, category)
            result.preview.append(tx)
        result.inserted = len(ready)

    def _insert(self, ready: list[tuple[Transaction, dict]], result: SyncResult) -> None:
        batches = batched([payload for _, payload in ready], self.config.sync.batch_size)
        result.batches = len(batches)

        for index, batch in enumerate(batches):
            logger.info(
                "Inserting batch %d/%d (%d transactions)", index + 1, len(batches), len(batch)
            )
            try:
                self.client.insert_transactions(batch)
            except Exception as e:
                error = InsertionError(str(e), batch_index=index, batch_size=len(batch))
                result.insertion_errors.append(
                    {
                        "batch_index": error.batch_index,
                        "batch_size": error.batch_size,
                        "error": str(error),
                    }
                )
                logger.error("Error inserting batch %d: %s", index + 1, e)
                continue

            result.inserted += len(batch)
            logger.info("Batch %d inserted successfully (%d transactions)", index + 1, len(batch))

        if result.insertion_errors:
            logger.error("%d batch(es) failed to insert", len(result.insertion_errors))


def build_client(config: Config) -> LunchMoneyClient:
    """Create the Lunch Money client from configuration."""
    return LunchMoneyClient(
        token=config.lunchmoney.token,
        base_url=config.lunchmoney.base_url,
        timeout=config.http.timeout,
        max_retries=config.http.max_retries,
        backoff_factor=config.http.backoff_factor,
    )


def build_source(config: Config) -> BaseSource:
    """Create the configured movement source."""
    if config.sync.source == "gmail":
        return GmailSource(
            client_id=config.gmail.client_id,
            client_secret=config.gmail.client_secret,
            refresh_token=config.gmail.refresh_token,
            user=config.gmail.user,
        )
    return FintocSource(
        api_key=config.fintoc.api_key,
        link_id=config.fintoc.link_id,
        base_url=config.fintoc.base_url,
        timeout=config.http.timeout,
        max_retries=config.http.max_retries,
        backoff_factor=config.http.backoff_factor,
    )


def build_engine(config: Config, client: LunchMoneyClient) -> CategorizationEngine:
    """Create a categorization engine with fresh caches."""
    return CategorizationEngine(
        resolver=CategoryResolver(client),
        memory_store=MemoryStore(config.memory_path),
    )


def sync(config: Config, dry_run: bool = False) -> SyncResult:
    """Run one sync with collaborators built from configuration."""
    client = build_client(config)
    service = SyncService(
        client=client,
        source=build_source(config),
        engine=build_engine(config, client),
        config=config,
    )
    return service.run(dry_run=dry_run)
