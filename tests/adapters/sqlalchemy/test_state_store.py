from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from modelsync.adapters.sqlalchemy import CHANNELS_KEY, CONFIG_KEY, SEARCH_HISTORY_KEY
from modelsync.adapters.sqlalchemy.state_store import SEARCH_HISTORY_LIMIT
from modelsync.domain.canonicalization import CanonicalizationConfig, NameMatchRule
from modelsync.domain.context import ReconciliationContext
from modelsync.domain.model import Channel, ChannelStatus, SourceKind
from modelsync.domain.ports.fetching import Checkpoint
from modelsync.domain.ports.persistence import StateStore

if TYPE_CHECKING:
    from modelsync.adapters.sqlalchemy import SqlAlchemyStateStore
    from tests.conftest import FrozenClock


def test_store_satisfies_port(state_store: SqlAlchemyStateStore) -> None:
    assert isinstance(state_store, StateStore)


def test_set_overwrites_and_delete_removes(state_store: SqlAlchemyStateStore) -> None:
    state_store.set("key", {"a": 1})
    state_store.set("key", ["b"])

    assert state_store.get("key") == ["b"]

    state_store.delete("key")
    assert state_store.get("key") is None


def test_get_ignores_stale_entries(
    state_store: SqlAlchemyStateStore, clock: FrozenClock
) -> None:
    state_store.set("key", "value")

    clock.now += timedelta(hours=2)

    assert state_store.get("key", max_age=timedelta(hours=3)) == "value"
    assert state_store.get("key", max_age=timedelta(hours=1)) is None
    assert state_store.get("key") == "value"


def test_search_cache_expires_after_a_day(
    state_store: SqlAlchemyStateStore, clock: FrozenClock
) -> None:
    hits = [{"model": "gpt-4", "channel_id": 1, "channel_label": "Alpha"}]
    state_store.cache_search(" GPT ", hits)

    assert state_store.cached_search("gpt") == hits
    assert state_store.search_history() == ["GPT"]

    clock.now += timedelta(hours=25)
    assert state_store.cached_search("gpt") is None


def test_search_history_is_most_recent_first_and_bounded(
    state_store: SqlAlchemyStateStore,
) -> None:
    for index in range(SEARCH_HISTORY_LIMIT + 5):
        state_store.cache_search(f"term-{index}", [])
    state_store.cache_search("term-10", [])

    history = state_store.search_history()

    assert len(history) == SEARCH_HISTORY_LIMIT
    assert history[0] == "term-10"
    assert history.count("term-10") == 1
    assert state_store.get(SEARCH_HISTORY_KEY) == history


def test_collapsed_channels(state_store: SqlAlchemyStateStore) -> None:
    state_store.set_collapsed(1, True)
    state_store.set_collapsed(2, True)
    state_store.set_collapsed(2, False)

    assert state_store.collapsed_channels() == {1}


def test_context_round_trip(state_store: SqlAlchemyStateStore) -> None:
    context = ReconciliationContext(config=CanonicalizationConfig(keep_date=True))
    context.config.rules.name_match.append(NameMatchRule(source="x", target="y"))
    context.config.rules.apply_template("clean-dates")
    alpha = Channel(id=1, name="Alpha")
    alpha.mark_fetched(["gpt-4o-2024-08-06"])
    context.select_all(alpha)
    context.select_from_search("claude-3-opus", "Beta", 2)

    state_store.save_context(context)
    restored = state_store.load_context()

    assert restored.curated == context.curated
    assert restored.config == context.config
    assert restored.config.rules == context.config.rules
    assert restored.tracker.channels_for("gpt-4o-2024-08-06") == {1}
    (record,) = restored.tracker.records_for("claude-3-opus")
    assert record.source_kind is SourceKind.SEARCH_SELECTION
    assert "rules" not in state_store.get(CONFIG_KEY)


def test_load_context_from_empty_store(state_store: SqlAlchemyStateStore) -> None:
    restored = state_store.load_context()

    assert restored.curated == []
    assert restored.config == CanonicalizationConfig()
    assert len(restored.tracker) == 0


def test_context_round_trip_keeps_channel_summaries(state_store: SqlAlchemyStateStore) -> None:
    context = ReconciliationContext()
    alpha = Channel(id=1, name="Alpha", type=14, status=ChannelStatus.ACTIVE)
    alpha.mark_fetched(["gpt-4o"])
    context.set_channels([alpha, Channel(id=2, name="Beta", status=ChannelStatus.DISABLED)])

    state_store.save_context(context)
    restored = state_store.load_context()

    assert sorted(restored.channels) == [1, 2]
    assert restored.channels[1].summary() == alpha.summary()
    assert restored.channels[2].status is ChannelStatus.DISABLED
    assert restored.channels[1].catalog == []


def test_load_context_skips_unreadable_channels(state_store: SqlAlchemyStateStore) -> None:
    state_store.set(CHANNELS_KEY, [{"id": "x"}, {"name": "no id"}, {"id": 3, "status": "odd"}])

    restored = state_store.load_context()

    assert list(restored.channels) == [3]
    assert restored.channels[3].status is ChannelStatus.UNKNOWN


def test_last_checkpoint_round_trip(state_store: SqlAlchemyStateStore) -> None:
    assert state_store.last_checkpoint() is None

    checkpoint = Checkpoint(
        id="cp-1", created_at=datetime(2024, 1, 15, 12, tzinfo=UTC), count=2, failed=1
    )
    state_store.save_checkpoint(checkpoint)

    assert state_store.last_checkpoint() == checkpoint
