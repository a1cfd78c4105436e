from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from modelsync.adapters.sqlalchemy import SqlAlchemyStateStore
from modelsync.domain.fetching import FetchReport
from modelsync.domain.model import Channel, UpdateMode
from modelsync.domain.ports.fetching import (
    BulkUpdateResult,
    ConnectionCheck,
    RestoreResult,
    SyncStats,
)
from modelsync.ui import cli

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from modelsync.domain.reconciliation import ChannelSyncPlan


@pytest.fixture
def state_uri(tmp_path: Path) -> str:
    return f"sqlite+pysqlite:///{tmp_path / 'cli-state.db'}"


@pytest.fixture
def fake_remote(monkeypatch: pytest.MonkeyPatch) -> dict[str, object]:
    captured: dict[str, object] = {}

    def fake_load_channels(*, include_disabled: bool = False) -> list[Channel]:
        return [Channel(id=1, name="Alpha"), Channel(id=2, name="Beta")]

    def fake_fetch(channels: Sequence[Channel], **kwargs: object) -> FetchReport:
        captured["fetch_kwargs"] = kwargs
        catalogs = {1: ["gpt-4-0125-preview", "gpt-4o"], 2: ["claude-3-opus-beta"]}
        for channel in channels:
            channel.mark_fetched(catalogs[channel.id])
        return FetchReport()

    def fake_sync(
        plans: Mapping[int, ChannelSyncPlan],
        *,
        update_mode: UpdateMode,
        store: SqlAlchemyStateStore | None = None,
        checkpoint: bool = True,
    ) -> SyncStats:
        captured["plans"] = dict(plans)
        captured["update_mode"] = update_mode
        captured["checkpoint"] = checkpoint
        captured["store"] = store
        return SyncStats(total=len(plans), success=len(plans))

    monkeypatch.setattr(cli, "load_channels", fake_load_channels)
    monkeypatch.setattr(cli, "fetch_catalogs", fake_fetch)
    monkeypatch.setattr(cli, "sync_plans", fake_sync)
    return captured


def _curated(state_uri: str) -> list[str]:
    store = SqlAlchemyStateStore(database_uri=state_uri)
    try:
        return store.load_context().curated
    finally:
        store.dispose()


def test_fetch_selects_matching_models_and_saves_session(
    state_uri: str, fake_remote: dict[str, object]
) -> None:
    cli.main(["--state-uri", state_uri, "fetch", "--select", "gpt", "--prefetch"])

    assert _curated(state_uri) == ["gpt-4-0125-preview", "gpt-4o"]
    assert fake_remote["fetch_kwargs"] == {
        "include_disabled": False,
        "prefetch": True,
        "retry_failed": False,
    }


def test_fetch_single_channel_with_all(state_uri: str, fake_remote: dict[str, object]) -> None:
    cli.main(["--state-uri", state_uri, "fetch", "--channel", "2", "--all"])

    assert _curated(state_uri) == ["claude-3-opus-beta"]


def test_plan_exports_mapping(
    state_uri: str, fake_remote: dict[str, object], tmp_path: Path
) -> None:
    cli.main(["--state-uri", state_uri, "fetch", "--all"])
    export = tmp_path / "mapping.json"

    cli.main(["--state-uri", state_uri, "plan", "--keep-date", "--export", str(export)])

    assert json.loads(export.read_text(encoding="utf-8")) == {
        "gpt-4-0125": "gpt-4-0125-preview",
        "gpt-4o": "gpt-4o",
        "claude-3-opus": "claude-3-opus-beta",
    }


def test_sync_pushes_plans_with_mode(state_uri: str, fake_remote: dict[str, object]) -> None:
    cli.main(["--state-uri", state_uri, "fetch", "--all"])

    cli.main(
        [
            "--state-uri",
            state_uri,
            "sync",
            "--mode",
            "replace",
            "--template",
            "openai-standardization",
        ]
    )

    plans = fake_remote["plans"]
    assert isinstance(plans, dict)
    assert sorted(plans) == [1, 2]
    assert fake_remote["update_mode"] is UpdateMode.REPLACE


def test_sync_dry_run_pushes_nothing(state_uri: str, fake_remote: dict[str, object]) -> None:
    cli.main(["--state-uri", state_uri, "fetch", "--all"])

    cli.main(["--state-uri", state_uri, "sync", "--dry-run"])

    assert "plans" not in fake_remote


def test_remove_drops_model(state_uri: str, fake_remote: dict[str, object]) -> None:
    cli.main(["--state-uri", state_uri, "fetch", "--all"])

    cli.main(["--state-uri", state_uri, "remove", "gpt-4o"])

    assert _curated(state_uri) == ["gpt-4-0125-preview", "claude-3-opus-beta"]


def test_failed_connection_exits_with_one(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        cli, "check_connection", lambda: ConnectionCheck(success=False, suggestions=("x",))
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["test-connection"])

    assert excinfo.value.code == 1


def test_runtime_errors_exit_with_one(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(**_: object) -> list[Channel]:
        raise RuntimeError("boom")

    monkeypatch.setattr(cli, "load_channels", broken)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["channels"])

    assert excinfo.value.code == 1


def test_invalid_arguments_exit_with_two() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync", "--mode", "merge"])

    assert excinfo.value.code == 2


def test_clear_empties_session(state_uri: str, fake_remote: dict[str, object]) -> None:
    cli.main(["--state-uri", state_uri, "fetch", "--all"])

    cli.main(["--state-uri", state_uri, "clear"])

    assert _curated(state_uri) == []


def test_templates_lists_builtin_ids(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("INFO"):
        cli.main(["templates"])

    assert "openai-standardization" in caplog.text
    assert "clean-dates" in caplog.text


def test_sync_uses_channels_saved_by_an_earlier_fetch(
    state_uri: str, fake_remote: dict[str, object]
) -> None:
    cli.main(["--state-uri", state_uri, "fetch", "--all"])

    cli.main(["--state-uri", state_uri, "sync", "--no-checkpoint"])

    plans = fake_remote["plans"]
    assert isinstance(plans, dict)
    summary = plans[1].channel
    assert summary is not None
    assert summary.name == "Alpha"
    assert fake_remote["checkpoint"] is False
    assert fake_remote["store"] is not None


def test_rollback_uses_saved_checkpoint(
    state_uri: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: list[str | None] = []

    def fake_rollback(
        store: SqlAlchemyStateStore, *, checkpoint_id: str | None = None
    ) -> RestoreResult | None:
        calls.append(checkpoint_id)
        return RestoreResult(success=True, checkpoint_id=checkpoint_id, restored=1)

    monkeypatch.setattr(cli, "rollback", fake_rollback)

    cli.main(["--state-uri", state_uri, "rollback", "--checkpoint", "cp-9"])

    assert calls == ["cp-9"]


def test_rollback_without_checkpoint_exits_with_one(
    state_uri: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(cli, "rollback", lambda store, **_: None)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--state-uri", state_uri, "rollback"])

    assert excinfo.value.code == 1


def test_bulk_update_previews_unless_applied(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[bool, list[int] | None]] = []

    def fake_bulk_update(
        *, preview: bool, channel_ids: list[int] | None = None
    ) -> BulkUpdateResult:
        calls.append((preview, channel_ids))
        return BulkUpdateResult(success=True)

    monkeypatch.setattr(cli, "bulk_update", fake_bulk_update)

    cli.main(["bulk-update"])
    cli.main(["bulk-update", "--apply", "--channel", "2", "--channel", "5"])

    assert calls == [(True, None), (False, [2, 5])]


def test_failed_bulk_update_exits_with_one(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "bulk_update", lambda **_: BulkUpdateResult(success=False))

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["bulk-update", "--apply"])

    assert excinfo.value.code == 1
