"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import asdict, dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from modelsync.adapters.newapi import NewApiClient
from modelsync.adapters.sqlalchemy import SqlAlchemyStateStore
from modelsync.config.fetch import FetchConfig, get_fetch_config
from modelsync.domain.fetching import ChannelOutcome, FetchOrchestrator, FetchReport
from modelsync.domain.model import CatalogStatus, UpdateMode

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from modelsync.domain.context import ReconciliationContext
    from modelsync.domain.model import Channel
    from modelsync.domain.ports.fetching import (
        BulkUpdateResult,
        ConnectionCheck,
        RestoreResult,
        SyncStats,
    )
    from modelsync.domain.reconciliation import ChannelSyncPlan, MappingResult

ApiFactory = Callable[[], NewApiClient]
StateStoreFactory = Callable[[], SqlAlchemyStateStore]

log = getLogger(__name__)


def check_connection(*, api_factory: ApiFactory = NewApiClient) -> ConnectionCheck:
    api = api_factory()
    result = asyncio.run(api.test_connection())
    if result.success:
        log.info(f"Connection OK (server version: {result.version or 'unknown'})")
    else:
        log.warning(f"Connection failed: {result.message}")
    return result


def load_channels(
    *,
    api_factory: ApiFactory = NewApiClient,
    include_disabled: bool = False,
) -> list[Channel]:
    api = api_factory()
    channels = asyncio.run(api.list_channels())
    if include_disabled:
        return channels
    return [channel for channel in channels if channel.is_active]


async def _fetch_catalogs_async(
    api: NewApiClient,
    channels: Sequence[Channel],
    *,
    fetch_config: FetchConfig,
    include_disabled: bool,
    prefetch: bool,
    retry_failed: bool,
) -> FetchReport:
    async with api:

        async def fetch_one(channel_id: int) -> list[str]:
            return await api.fetch_channel_models(channel_id, include_disabled=include_disabled)

        orchestrator = FetchOrchestrator.from_config(fetch_one, fetch_config)

        early: dict[int, ChannelOutcome] = {}
        if prefetch:
            outcomes = await orchestrator.prefetch_top(
                channels,
                count=fetch_config.prefetch_count,
                delay=fetch_config.prefetch_delay_seconds,
            )
            early = {cid: outcome for cid, outcome in outcomes.items() if outcome.success}
            log.info(f"Prefetched {len(early)} channel(s)")

        remaining = [
            channel for channel in channels
            if channel.catalog_state.status is not CatalogStatus.FETCHED
        ]
        report = await orchestrator.fetch_all(remaining)
        for channel_id, outcome in early.items():
            report.outcomes.setdefault(channel_id, outcome)

        if retry_failed:
            for channel_id in report.failed:
                channel = next(item for item in channels if item.id == channel_id)
                log.info(f"Retrying channel {channel_id} ({channel.label})")
                report.outcomes[channel_id] = await orchestrator.retry_channel(channel)
        return report


def fetch_catalogs(
    channels: Sequence[Channel],
    *,
    api_factory: ApiFactory = NewApiClient,
    fetch_config: FetchConfig | None = None,
    include_disabled: bool = False,
    prefetch: bool = False,
    retry_failed: bool = False,
) -> FetchReport:
    """Fetch every channel's catalog, updating each ``Channel`` in place."""

    report = asyncio.run(
        _fetch_catalogs_async(
            api_factory(),
            channels,
            fetch_config=fetch_config or get_fetch_config(),
            include_disabled=include_disabled,
            prefetch=prefetch,
            retry_failed=retry_failed,
        )
    )
    log.info(
        f"Catalog fetch finished: fetched={len(report.succeeded)}, failed={len(report.failed)}"
    )
    return report


def select_models(
    context: ReconciliationContext,
    channels: Iterable[Channel],
    *,
    patterns: Sequence[str] = (),
) -> int:
    """Add catalog models matching any of ``patterns`` (all when empty) to the curated list."""

    return sum(context.select_all(channel, patterns=patterns) for channel in channels)


@dataclass(frozen=True, slots=True)
class SearchHit:
    model: str
    channel_id: int
    channel_label: str


def search_models(
    term: str,
    *,
    store: SqlAlchemyStateStore,
    load_channels: Callable[[], Sequence[Channel]],
) -> list[SearchHit]:
    """Find catalog models containing ``term``; results are cached for a day."""

    cached = store.cached_search(term)
    if cached is not None:
        log.info(f"Using cached results for {term!r}")
        return [
            SearchHit(
                model=str(hit["model"]),
                channel_id=int(hit["channel_id"]),
                channel_label=str(hit.get("channel_label", "")),
            )
            for hit in cached
            if "model" in hit and "channel_id" in hit
        ]

    needle = term.strip().lower()
    hits = [
        SearchHit(model=name, channel_id=channel.id, channel_label=channel.label)
        for channel in load_channels()
        for name in channel.catalog
        if needle in name.lower()
    ]
    store.cache_search(term, [asdict(hit) for hit in hits])
    return hits


def select_search_hits(context: ReconciliationContext, hits: Iterable[SearchHit]) -> int:
    added = 0
    for hit in hits:
        if hit.model in context.curated and hit.channel_id in context.tracker.channels_for(
            hit.model
        ):
            continue
        context.select_from_search(hit.model, hit.channel_label, hit.channel_id)
        added += 1
    return added


def build_plans(
    context: ReconciliationContext,
) -> tuple[MappingResult, dict[int, ChannelSyncPlan]]:
    anomalies = context.anomalies()
    for anomaly in anomalies:
        log.error(f"Provenance anomaly for {anomaly.name!r}: {anomaly.reason}")
    result, plans = context.plan()
    log.info(
        f"Planned {len(result.mapping)} mapping(s) across {len(plans)} channel(s); "
        f"collisions={len(result.collisions)}"
    )
    return result, plans


def sync_plans(
    plans: Mapping[int, ChannelSyncPlan],
    *,
    api_factory: ApiFactory = NewApiClient,
    update_mode: UpdateMode = UpdateMode.APPEND,
    store: SqlAlchemyStateStore | None = None,
    checkpoint: bool = True,
) -> SyncStats:
    """Push ``plans``, snapshotting the affected channels first.

    The checkpoint id is saved in ``store`` so ``rollback`` can undo the push.
    A checkpoint that cannot be created aborts the sync before anything is pushed.
    """

    async def _push() -> SyncStats:
        async with api_factory() as api:
            channel_ids = sorted(cid for cid, plan in plans.items() if plan.mappings)
            if checkpoint and channel_ids:
                created = await api.create_checkpoint(channel_ids)
                if created.failed:
                    log.warning(f"{created.failed} channel(s) are not covered by the checkpoint")
                if store is not None:
                    store.save_checkpoint(created)
                log.info(f"Checkpoint {created.id} created")
            return await api.push_sync_plans(plans, update_mode)

    stats = asyncio.run(_push())
    log.info(f"Sync finished: total={stats.total}, success={stats.success}, failed={stats.failed}")
    return stats


def open_state_store(*, database_uri: str | None = None) -> SqlAlchemyStateStore:
    return SqlAlchemyStateStore(database_uri=database_uri)


def rollback(
    store: SqlAlchemyStateStore,
    *,
    api_factory: ApiFactory = NewApiClient,
    checkpoint_id: str | None = None,
) -> RestoreResult | None:
    """Restore the channels to ``checkpoint_id``, or to the last one ``sync_plans`` saved.

    Returns ``None`` when no checkpoint is known.
    """

    if checkpoint_id is None:
        saved = store.last_checkpoint()
        if saved is None:
            log.warning("No checkpoint recorded; run a sync first")
            return None
        checkpoint_id = saved.id

    api = api_factory()
    result = asyncio.run(api.restore_checkpoint(checkpoint_id))
    if result.success:
        log.info(f"Restored {result.restored} channel(s) from checkpoint {checkpoint_id}")
        if result.failed:
            log.warning(f"{result.failed} channel(s) could not be restored")
    else:
        log.error(f"Rollback to {checkpoint_id} failed: {result.message or 'unknown error'}")
    return result


def _describe_mapping(item: Mapping[str, object]) -> str:
    channel = item.get("channelName") or f"Channel {item.get('channelId', '?')}"
    if "standardName" in item:
        return f"{channel}: {item.get('standardName')} -> {item.get('actualName')}"
    reason = item.get("reason")
    suffix = f" ({reason})" if reason else ""
    return f"{channel}: {item.get('originalModel')}{suffix}"


def bulk_update(
    *,
    api_factory: ApiFactory = NewApiClient,
    preview: bool = True,
    channel_ids: Sequence[int] | None = None,
) -> BulkUpdateResult:
    """Find mappings whose target model disappeared and, unless ``preview``, repair them."""

    async def _run() -> BulkUpdateResult:
        async with api_factory() as api:
            if preview:
                return await api.preview_bulk_update(channel_ids)
            return await api.apply_bulk_update(channel_ids)

    result = asyncio.run(_run())
    for line in result.logs:
        log.debug(line)
    for item in result.broken_mappings:
        log.warning(f"Broken mapping: {_describe_mapping(item)}")
    for item in result.new_mappings:
        log.info(f"New mapping: {_describe_mapping(item)}")
    action = "Previewed" if preview else "Applied"
    log.info(
        f"{action} bulk update over {result.scanned_channels} channel(s): "
        f"{len(result.broken_mappings)} broken, {len(result.new_mappings)} new"
    )
    if not result.success:
        log.error(f"Bulk update failed: {result.message or 'unknown error'}")
    return result
