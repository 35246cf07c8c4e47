"""Sync services."""

from lunchmoney_sync.services.bank_sync import (
    SyncGuard,
    SyncResult,
    SyncService,
    SyncState,
    build_client,
    build_engine,
    build_source,
    sync,
)

__all__ = [
    "SyncGuard",
    "SyncResult",
    "SyncService",
    "SyncState",
    "build_client",
    "build_engine",
    "build_source",
    "sync",
]
