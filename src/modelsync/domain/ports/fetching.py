"""Ports for talking to the remote channel management service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from modelsync.domain.model import Channel, UpdateMode


@dataclass(frozen=True, slots=True)
class ConnectionCheck:
    success: bool
    message: str = ""
    version: str | None = None
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SyncStats:
    total: int = 0
    success: int = 0
    failed: int = 0

    def __add__(self, other: SyncStats) -> SyncStats:
        return SyncStats(
            total=self.total + other.total,
            success=self.success + other.success,
            failed=self.failed + other.failed,
        )


@dataclass(frozen=True, slots=True)
class SyncResult:
    success: bool
    message: str = ""
    stats: SyncStats = field(default_factory=SyncStats)


@dataclass(frozen=True, slots=True)
class BulkUpdateResult:
    """Outcome of a preview or apply of the one-click mapping repair."""

    success: bool
    message: str = ""
    scanned_channels: int = 0
    broken_mappings: tuple[dict[str, object], ...] = ()
    new_mappings: tuple[dict[str, object], ...] = ()
    logs: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """A server-side snapshot of channel settings taken before a sync."""

    id: str
    created_at: datetime | None = None
    count: int = 0
    failed: int = 0


@dataclass(frozen=True, slots=True)
class RestoreResult:
    success: bool
    checkpoint_id: str | None = None
    restored: int = 0
    failed: int = 0
    message: str = ""


@runtime_checkable
class ChannelCatalogFetcher(Protocol):
    """Async primitive used by the fetch orchestrator."""

    async def fetch_channel_models(
        self,
        channel_id: int,
        *,
        fetch_all: bool = True,
        fetch_selected_only: bool = False,
        include_disabled: bool = False,
    ) -> list[str]: ...


@runtime_checkable
class ModelSyncService(ChannelCatalogFetcher, Protocol):
    """Full contract of the remote sync service."""

    async def test_connection(self) -> ConnectionCheck: ...

    async def list_channels(self) -> list[Channel]: ...

    async def push_sync(
        self,
        mapping: Mapping[str, str],
        update_mode: UpdateMode,
        channel_ids: Sequence[int] | None = None,
    ) -> SyncResult: ...

    async def preview_bulk_update(
        self, channel_ids: Sequence[int] | None = None
    ) -> BulkUpdateResult: ...

    async def apply_bulk_update(
        self, channel_ids: Sequence[int] | None = None
    ) -> BulkUpdateResult: ...

    async def create_checkpoint(self, channel_ids: Sequence[int] | None = None) -> Checkpoint: ...

    async def restore_checkpoint(self, checkpoint_id: str | None = None) -> RestoreResult: ...


__all__ = [
    "BulkUpdateResult",
    "ChannelCatalogFetcher",
    "Checkpoint",
    "ConnectionCheck",
    "ModelSyncService",
    "RestoreResult",
    "SyncResult",
    "SyncStats",
]
