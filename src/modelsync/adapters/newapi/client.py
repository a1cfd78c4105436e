"""Async client for the model sync service.

Every endpoint is a JSON ``POST`` whose body carries the upstream connection
settings (``baseUrl``, ``token``, ``userId``, ``authHeaderType``) next to the
operation's own fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from modelsync.adapters.http_resilience import ResilienceConfig, ResilientClient
from modelsync.config.newapi import NewApiConfig, get_newapi_config
from modelsync.domain.errors import MalformedResponseError, ModelSyncError, ServerError
from modelsync.domain.model import Channel, ChannelStatus, UpdateMode
from modelsync.domain.ports.fetching import (
    BulkUpdateResult,
    Checkpoint,
    ConnectionCheck,
    ModelSyncService,
    RestoreResult,
    SyncResult,
    SyncStats,
)

from .errors import translate_http_error
from .schema import (
    BulkUpdateResponse,
    ChannelListResponse,
    ChannelModelsResponse,
    CheckpointResponse,
    ConnectionTestResponse,
    Envelope,
    RestoreResponse,
    SyncResponse,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from pydantic import BaseModel

    from modelsync.domain.reconciliation import ChannelSyncPlan

log = getLogger(__name__)

TEST_CONNECTION_PATH = "/api/test-connection"
CHANNELS_PATH = "/api/channels"
CHANNEL_MODELS_PATH = "/api/channel-models"
SYNC_MODELS_PATH = "/api/sync-models"
PREVIEW_BULK_UPDATE_PATH = "/api/preview-one-click-update"
APPLY_BULK_UPDATE_PATH = "/api/one-click-update"
CREATE_CHECKPOINT_PATH = "/api/checkpoint/create"
RESTORE_CHECKPOINT_PATH = "/api/checkpoint/restore"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class NewApiClient:
    """Talks to the sync service; one ``ResilientClient`` per client session.

    Use as ``async with NewApiClient(...) as api`` to share a connection pool
    across calls. Calls made outside a session open a short-lived client.
    """

    config: NewApiConfig = field(default_factory=get_newapi_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _session: ResilientClient | None = field(default=None, init=False, repr=False)

    async def __aenter__(self) -> NewApiClient:
        self._session = self.client_factory(self.config.resilience)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.aclose()

    async def test_connection(self) -> ConnectionCheck:
        try:
            response = await self._post(TEST_CONNECTION_PATH, {}, ConnectionTestResponse)
        except ModelSyncError as exc:
            return ConnectionCheck(
                success=False,
                message=str(exc),
                suggestions=tuple(getattr(exc, "suggestions", ())),
            )
        return ConnectionCheck(
            success=response.success,
            message=response.message,
            version=response.data.version if response.data else None,
            suggestions=tuple(response.suggestions),
        )

    async def list_channels(self) -> list[Channel]:
        response = await self._post(CHANNELS_PATH, {}, ChannelListResponse)
        self._raise_on_failure(response, "list channels")
        channels: dict[int, Channel] = {}
        for payload in response.data:
            if payload.id in channels:
                continue
            channels[payload.id] = Channel(
                id=payload.id,
                name=payload.name,
                type=payload.type,
                status=ChannelStatus.from_raw(payload.status),
            )
        log.info(f"Loaded {len(channels)} channel(s)")
        return list(channels.values())

    async def fetch_channel_models(
        self,
        channel_id: int,
        *,
        fetch_all: bool = True,
        fetch_selected_only: bool = False,
        include_disabled: bool = False,
    ) -> list[str]:
        body = {
            "channelId": channel_id,
            "fetchAll": fetch_all,
            "fetchSelectedOnly": fetch_selected_only,
            "includeDisabled": include_disabled,
        }
        response = await self._post(CHANNEL_MODELS_PATH, body, ChannelModelsResponse)
        self._raise_on_failure(response, f"fetch models of channel {channel_id}")
        return list(dict.fromkeys(response.data))

    async def push_sync(
        self,
        mapping: Mapping[str, str],
        update_mode: UpdateMode = UpdateMode.APPEND,
        channel_ids: Sequence[int] | None = None,
    ) -> SyncResult:
        body: dict[str, Any] = {
            "modelMapping": dict(mapping),
            "modelUpdateMode": str(update_mode),
        }
        if channel_ids is not None:
            body["channelIds"] = list(channel_ids)
        response = await self._post(SYNC_MODELS_PATH, body, SyncResponse)
        stats = (
            SyncStats(
                total=response.stats.total,
                success=response.stats.success,
                failed=response.stats.failed,
            )
            if response.stats
            else SyncStats()
        )
        return SyncResult(success=response.success, message=response.message, stats=stats)

    async def push_sync_plans(
        self,
        plans: Mapping[int, ChannelSyncPlan],
        update_mode: UpdateMode = UpdateMode.APPEND,
    ) -> SyncStats:
        """Push one request per non-empty plan, in channel order, and sum the stats.

        A channel whose push raises is counted as failed; the remaining
        channels are still pushed.
        """

        total = SyncStats()
        for channel_id in sorted(plans):
            plan = plans[channel_id]
            if not plan.mappings:
                continue
            try:
                result = await self.push_sync(plan.mappings, update_mode, [channel_id])
            except ModelSyncError as exc:
                log.warning(f"Sync for channel {channel_id} failed: {exc}")
                total += SyncStats(total=1, failed=1)
                continue
            if not result.success:
                log.warning(f"Sync for channel {channel_id} failed: {result.message}")
            stats = result.stats
            if stats == SyncStats():
                stats = SyncStats(
                    total=1, success=int(result.success), failed=int(not result.success)
                )
            total += stats
        return total

    async def preview_bulk_update(
        self, channel_ids: Sequence[int] | None = None
    ) -> BulkUpdateResult:
        return await self._bulk_update(PREVIEW_BULK_UPDATE_PATH, channel_ids)

    async def apply_bulk_update(self, channel_ids: Sequence[int] | None = None) -> BulkUpdateResult:
        return await self._bulk_update(APPLY_BULK_UPDATE_PATH, channel_ids)

    async def _bulk_update(
        self, path: str, channel_ids: Sequence[int] | None
    ) -> BulkUpdateResult:
        body: dict[str, Any] = {}
        if channel_ids is not None:
            body["channelIds"] = list(channel_ids)
        response = await self._post(path, body, BulkUpdateResponse)
        return BulkUpdateResult(
            success=response.success,
            message=response.message,
            scanned_channels=response.results.scanned_channels,
            broken_mappings=tuple(response.results.broken_mappings),
            new_mappings=tuple(response.results.new_mappings),
            logs=tuple(response.logs),
        )

    async def create_checkpoint(self, channel_ids: Sequence[int] | None = None) -> Checkpoint:
        """Snapshot the settings of ``channel_ids`` (every channel when ``None``)."""

        body: dict[str, Any] = {}
        if channel_ids is not None:
            body["channelIds"] = list(channel_ids)
        response = await self._post(CREATE_CHECKPOINT_PATH, body, CheckpointResponse)
        self._raise_on_failure(response, "create checkpoint")
        if not response.checkpoint_id:
            raise MalformedResponseError("Checkpoint created without an id")
        for error in response.errors:
            log.warning(f"Channel {error.channel_id} missing from checkpoint: {error.error}")
        created_at = (
            datetime.fromtimestamp(response.created_at / 1000, tz=UTC)
            if response.created_at is not None
            else None
        )
        log.info(f"Checkpoint {response.checkpoint_id} covers {response.count} channel(s)")
        return Checkpoint(
            id=response.checkpoint_id,
            created_at=created_at,
            count=response.count,
            failed=response.failed,
        )

    async def restore_checkpoint(self, checkpoint_id: str | None = None) -> RestoreResult:
        """Roll channels back to ``checkpoint_id`` (the server's latest when ``None``)."""

        body: dict[str, Any] = {}
        if checkpoint_id is not None:
            body["checkpointId"] = checkpoint_id
        response = await self._post(RESTORE_CHECKPOINT_PATH, body, RestoreResponse)
        for error in response.errors:
            log.warning(f"Channel {error.channel_id} not restored: {error.error}")
        return RestoreResult(
            success=response.success,
            checkpoint_id=response.checkpoint_id or checkpoint_id,
            restored=response.restored,
            failed=response.failed,
            message=response.message or response.error or "",
        )

    async def _post[TModel: BaseModel](
        self, path: str, body: dict[str, Any], model: type[TModel]
    ) -> TModel:
        payload = {**self.config.connection.as_payload(), **body}
        url = f"{self.config.service_url}{path}"
        try:
            if self._session is not None:
                response = await self._session.post(url, json=payload)
            else:
                async with self.client_factory(self.config.resilience) as client:
                    response = await client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise translate_http_error(exc) from exc

        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise MalformedResponseError(f"Unexpected response from {path}: {exc}") from exc

    @staticmethod
    def _raise_on_failure(response: Envelope, action: str) -> None:
        if response.success:
            return
        message = response.message or response.error or "no message"
        raise ServerError(f"Failed to {action}: {message}")


if TYPE_CHECKING:
    _service_check: ModelSyncService = NewApiClient()
