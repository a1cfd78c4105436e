"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import (
    BulkUpdateResult,
    ChannelCatalogFetcher,
    Checkpoint,
    ConnectionCheck,
    ModelSyncService,
    RestoreResult,
    SyncResult,
    SyncStats,
)
from .persistence import StateStore

__all__ = [
    "BulkUpdateResult",
    "ChannelCatalogFetcher",
    "Checkpoint",
    "ConnectionCheck",
    "ModelSyncService",
    "RestoreResult",
    "StateStore",
    "SyncResult",
    "SyncStats",
]
