from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from modelsync import app
from modelsync.adapters.newapi.client import (
    APPLY_BULK_UPDATE_PATH,
    CHANNEL_MODELS_PATH,
    CHANNELS_PATH,
    CREATE_CHECKPOINT_PATH,
    PREVIEW_BULK_UPDATE_PATH,
    RESTORE_CHECKPOINT_PATH,
    SYNC_MODELS_PATH,
    TEST_CONNECTION_PATH,
)
from modelsync.config.fetch import FetchConfig
from modelsync.domain.context import ReconciliationContext
from modelsync.domain.errors import ServerError
from modelsync.domain.model import CatalogStatus, Channel, UpdateMode
from modelsync.domain.reconciliation import ChannelSyncPlan
from tests.helpers.newapi import FakeSyncService, make_api

if TYPE_CHECKING:
    from modelsync.adapters.sqlalchemy import SqlAlchemyStateStore

CATALOGS: dict[int, list[str]] = {
    1: ["gpt-4-0125-preview", "claude-3-5-sonnet-20241022"],
    2: ["gpt-4-0125-preview", "gemini-pro-beta"],
    3: ["never-fetched"],
}

FAST_FETCH = FetchConfig(batch_delay_seconds=0.0, jitter_seconds=0.0)


def _service(*, failing: set[int] | None = None) -> FakeSyncService:
    failing = failing or set()

    def channel_models(body: dict[str, Any]) -> dict[str, Any]:
        channel_id = body["channelId"]
        if channel_id in failing:
            return {"success": False, "message": "upstream down"}
        return {"success": True, "data": CATALOGS[channel_id]}

    return FakeSyncService(
        {
            TEST_CONNECTION_PATH: {"success": True, "message": "ok", "data": {"version": "1.0"}},
            CHANNELS_PATH: {
                "success": True,
                "data": [
                    {"id": 1, "name": "Alpha", "status": 1},
                    {"id": 2, "name": "Beta", "status": 1},
                    {"id": 3, "name": "Gamma", "status": 2},
                ],
            },
            CHANNEL_MODELS_PATH: channel_models,
            SYNC_MODELS_PATH: {"success": True, "stats": {"total": 1, "success": 1, "failed": 0}},
            CREATE_CHECKPOINT_PATH: {
                "success": True,
                "checkpointId": "cp-1",
                "createdAt": 1705320000000,
                "count": 2,
            },
            RESTORE_CHECKPOINT_PATH: lambda body: {
                "success": True,
                "checkpointId": body.get("checkpointId"),
                "restored": 2,
            },
        }
    )


def test_check_connection() -> None:
    service = _service()

    result = app.check_connection(api_factory=lambda: make_api(service))

    assert result.success
    assert result.version == "1.0"


def test_load_channels_filters_disabled() -> None:
    service = _service()

    active = app.load_channels(api_factory=lambda: make_api(service))
    everything = app.load_channels(api_factory=lambda: make_api(service), include_disabled=True)

    assert [channel.id for channel in active] == [1, 2]
    assert [channel.id for channel in everything] == [1, 2, 3]


def test_two_channel_round_trip_pushes_one_plan_per_channel() -> None:
    service = _service()
    factory = lambda: make_api(service)  # noqa: E731
    channels = app.load_channels(api_factory=factory)

    report = app.fetch_catalogs(channels, api_factory=factory, fetch_config=FAST_FETCH)
    context = ReconciliationContext()
    context.set_channels(channels)
    selected = app.select_models(context, channels)
    result, plans = app.build_plans(context)
    stats = app.sync_plans(plans, api_factory=factory, update_mode=UpdateMode.APPEND)
    paths = [path for path, _ in service.requests]

    assert sorted(report.succeeded) == [1, 2]
    assert selected == 4
    assert result.mapping == {
        "gpt-4": "gpt-4-0125-preview",
        "claude-3-5-sonnet": "claude-3-5-sonnet-20241022",
        "gemini-pro": "gemini-pro-beta",
    }
    assert result.collisions == []
    assert plans[1].mappings == {
        "gpt-4": "gpt-4-0125-preview",
        "claude-3-5-sonnet": "claude-3-5-sonnet-20241022",
    }
    assert plans[2].mappings == {
        "gpt-4": "gpt-4-0125-preview",
        "gemini-pro": "gemini-pro-beta",
    }
    pushes = service.bodies(SYNC_MODELS_PATH)
    assert [body["channelIds"] for body in pushes] == [[1], [2]]
    assert all(body["modelUpdateMode"] == "append" for body in pushes)
    assert stats.total == 2
    assert stats.failed == 0
    assert service.bodies(CREATE_CHECKPOINT_PATH)[0]["channelIds"] == [1, 2]
    assert paths.index(CREATE_CHECKPOINT_PATH) < paths.index(SYNC_MODELS_PATH)


def test_fetch_catalogs_retries_failed_channels() -> None:
    service = _service(failing={2})
    factory = lambda: make_api(service)  # noqa: E731
    channels = app.load_channels(api_factory=factory)
    config = FetchConfig(
        batch_delay_seconds=0.0,
        retry_attempts=2,
        base_delay_seconds=0.0,
        jitter_seconds=0.0,
    )

    report = app.fetch_catalogs(
        channels, api_factory=factory, fetch_config=config, retry_failed=True
    )

    assert report.failed == [2]
    assert report.outcomes[2].attempts == 2
    assert channels[1].catalog_state.status is CatalogStatus.FAILED
    assert "upstream down" in (channels[1].catalog_state.reason or "")
    assert len(service.bodies(CHANNEL_MODELS_PATH)) == 4


def test_fetch_catalogs_with_prefetch_fetches_each_channel_once() -> None:
    service = _service()
    factory = lambda: make_api(service)  # noqa: E731
    channels = app.load_channels(api_factory=factory, include_disabled=True)
    config = FetchConfig(batch_delay_seconds=0.0, prefetch_count=2, prefetch_delay_seconds=0.0)

    report = app.fetch_catalogs(
        channels, api_factory=factory, fetch_config=config, prefetch=True
    )

    assert sorted(report.succeeded) == [1, 2, 3]
    requested = [body["channelId"] for body in service.bodies(CHANNEL_MODELS_PATH)]
    assert sorted(requested) == [1, 2, 3]


def test_search_models_caches_results(state_store: SqlAlchemyStateStore) -> None:
    alpha = Channel(id=1, name="Alpha")
    alpha.mark_fetched(["gpt-4o", "claude-3-opus"])
    beta = Channel(id=2, name="Beta")
    beta.mark_fetched(["GPT-4o-mini"])
    loads: list[int] = []

    def load() -> list[Channel]:
        loads.append(1)
        return [alpha, beta]

    first = app.search_models("gpt", store=state_store, load_channels=load)
    second = app.search_models("GPT", store=state_store, load_channels=load)

    assert [(hit.model, hit.channel_id) for hit in first] == [("gpt-4o", 1), ("GPT-4o-mini", 2)]
    assert second == first
    assert loads == [1]


def test_select_search_hits_records_channel_provenance() -> None:
    context = ReconciliationContext()
    hits = [
        app.SearchHit(model="gpt-4o", channel_id=1, channel_label="Alpha"),
        app.SearchHit(model="gpt-4o", channel_id=1, channel_label="Alpha"),
        app.SearchHit(model="gpt-4o", channel_id=2, channel_label="Beta"),
    ]

    added = app.select_search_hits(context, hits)

    assert added == 2
    assert context.tracker.channels_for("gpt-4o") == {1, 2}


def test_sync_saves_checkpoint_and_rollback_restores_it(
    state_store: SqlAlchemyStateStore,
) -> None:
    service = _service()
    factory = lambda: make_api(service)  # noqa: E731
    plans = {1: ChannelSyncPlan(channel_id=1, mappings={"gpt-4": "gpt-4-0125-preview"})}

    app.sync_plans(plans, api_factory=factory, store=state_store)
    saved = state_store.last_checkpoint()
    result = app.rollback(state_store, api_factory=factory)

    assert saved is not None
    assert saved.id == "cp-1"
    assert result is not None
    assert result.success
    assert service.bodies(RESTORE_CHECKPOINT_PATH)[0]["checkpointId"] == "cp-1"


def test_sync_aborts_when_checkpoint_fails() -> None:
    service = _service()
    service.routes[CREATE_CHECKPOINT_PATH] = {"success": False, "message": "no channels"}
    plans = {1: ChannelSyncPlan(channel_id=1, mappings={"gpt-4": "gpt-4-0125-preview"})}

    with pytest.raises(ServerError):
        app.sync_plans(plans, api_factory=lambda: make_api(service))

    assert service.bodies(SYNC_MODELS_PATH) == []


def test_sync_without_checkpoint_pushes_directly() -> None:
    service = _service()
    plans = {1: ChannelSyncPlan(channel_id=1, mappings={"gpt-4": "gpt-4-0125-preview"})}

    app.sync_plans(plans, api_factory=lambda: make_api(service), checkpoint=False)

    assert service.bodies(CREATE_CHECKPOINT_PATH) == []
    assert len(service.bodies(SYNC_MODELS_PATH)) == 1


def test_rollback_without_checkpoint_returns_none(state_store: SqlAlchemyStateStore) -> None:
    service = _service()

    assert app.rollback(state_store, api_factory=lambda: make_api(service)) is None
    assert service.requests == []


BULK_RESULTS = {
    "success": True,
    "results": {
        "scannedChannels": 2,
        "brokenMappings": [
            {"channelId": 1, "channelName": "Alpha", "originalModel": "gpt-4", "reason": "gone"}
        ],
        "newMappings": [
            {
                "channelId": 1,
                "channelName": "Alpha",
                "standardName": "gpt-4",
                "actualName": "gpt-4-turbo",
            }
        ],
    },
    "logs": ["scanned 2 channels"],
}


def test_bulk_update_previews_by_default(caplog: pytest.LogCaptureFixture) -> None:
    service = FakeSyncService(
        {PREVIEW_BULK_UPDATE_PATH: BULK_RESULTS, APPLY_BULK_UPDATE_PATH: BULK_RESULTS}
    )

    with caplog.at_level("INFO"):
        result = app.bulk_update(api_factory=lambda: make_api(service), channel_ids=[1])

    assert result.scanned_channels == 2
    assert service.bodies(PREVIEW_BULK_UPDATE_PATH)[0]["channelIds"] == [1]
    assert service.bodies(APPLY_BULK_UPDATE_PATH) == []
    assert "Broken mapping: Alpha: gpt-4 (gone)" in caplog.text
    assert "New mapping: Alpha: gpt-4 -> gpt-4-turbo" in caplog.text


def test_bulk_update_apply() -> None:
    service = FakeSyncService(
        {PREVIEW_BULK_UPDATE_PATH: BULK_RESULTS, APPLY_BULK_UPDATE_PATH: BULK_RESULTS}
    )

    result = app.bulk_update(api_factory=lambda: make_api(service), preview=False)

    assert result.success
    assert service.bodies(PREVIEW_BULK_UPDATE_PATH) == []
    assert "channelIds" not in service.bodies(APPLY_BULK_UPDATE_PATH)[0]
