"""Local key-value state persisted in SQLite through SQLAlchemy Core.

Values are JSON documents under namespaced keys. Every write stamps
``updated_at`` so readers can ignore entries older than a staleness window.
"""

from __future__ import annotations

from dataclasses import fields
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    insert,
    select,
    update,
)

from modelsync.config.storage import get_state_uri
from modelsync.domain.canonicalization import CanonicalizationConfig, RuleSet
from modelsync.domain.context import ReconciliationContext
from modelsync.domain.model import Channel, ChannelStatus
from modelsync.domain.ports.fetching import Checkpoint
from modelsync.domain.provenance import ProvenanceTracker

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.engine import Engine

    from modelsync.domain.ports.persistence import StateStore

log = getLogger(__name__)

CONFIG_KEY: Final[str] = "modelsync.config"
CURATED_KEY: Final[str] = "modelsync.curated"
PROVENANCE_LABELS_KEY: Final[str] = "modelsync.provenance.labels"
PROVENANCE_RECORDS_KEY: Final[str] = "modelsync.provenance.records"
SEARCH_HISTORY_KEY: Final[str] = "modelsync.search_history"
SEARCH_CACHE_PREFIX: Final[str] = "modelsync.search_cache:"
RULES_KEY: Final[str] = "modelsync.rules"
COLLAPSE_KEY: Final[str] = "modelsync.collapse"
CHANNELS_KEY: Final[str] = "modelsync.channels"
CHECKPOINT_KEY: Final[str] = "modelsync.checkpoint"

SEARCH_CACHE_MAX_AGE: Final[timedelta] = timedelta(hours=24)
SEARCH_HISTORY_LIMIT: Final[int] = 20

metadata = MetaData()

state_table = Table(
    "state_entry",
    metadata,
    Column("key", String, primary_key=True),
    Column("value", JSON, nullable=True),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back.
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _channel_to_dict(channel: Channel) -> dict[str, Any]:
    return {
        "id": channel.id,
        "name": channel.name,
        "type": channel.type,
        "status": str(channel.status),
    }


def _channel_from_dict(data: dict[str, Any]) -> Channel | None:
    try:
        channel_id = int(data["id"])
    except (KeyError, TypeError, ValueError):
        return None
    try:
        status = ChannelStatus(data.get("status"))
    except ValueError:
        status = ChannelStatus.UNKNOWN
    return Channel(
        id=channel_id,
        name=str(data.get("name") or ""),
        type=int(data.get("type") or 0),
        status=status,
    )


class SqlAlchemyStateStore:
    def __init__(
        self,
        *,
        engine: Engine | None = None,
        database_uri: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.engine = engine or create_engine(database_uri or get_state_uri())
        self._clock = clock
        metadata.create_all(self.engine)

    def get(self, key: str, *, max_age: timedelta | None = None) -> Any | None:
        with self.engine.connect() as connection:
            row = connection.execute(
                select(state_table.c.value, state_table.c.updated_at).where(
                    state_table.c.key == key
                )
            ).first()
        if row is None:
            return None
        if max_age is not None and self._clock() - _as_utc(row.updated_at) > max_age:
            log.debug(f"State entry {key!r} is stale")
            return None
        return row.value

    def set(self, key: str, value: object) -> None:
        now = self._clock()
        with self.engine.begin() as connection:
            result = connection.execute(
                update(state_table)
                .where(state_table.c.key == key)
                .values(value=value, updated_at=now)
            )
            if result.rowcount == 0:
                connection.execute(insert(state_table).values(key=key, value=value, updated_at=now))

    def delete(self, key: str) -> None:
        with self.engine.begin() as connection:
            connection.execute(delete(state_table).where(state_table.c.key == key))

    def dispose(self) -> None:
        self.engine.dispose()

    # Search history and cached search results

    def search_history(self) -> list[str]:
        history = self.get(SEARCH_HISTORY_KEY)
        return [str(term) for term in history] if isinstance(history, list) else []

    def cache_search(self, term: str, results: list[dict[str, Any]]) -> None:
        normalized = term.strip()
        if not normalized:
            return
        history = [entry for entry in self.search_history() if entry != normalized]
        history.insert(0, normalized)
        self.set(SEARCH_HISTORY_KEY, history[:SEARCH_HISTORY_LIMIT])
        self.set(f"{SEARCH_CACHE_PREFIX}{normalized.lower()}", list(results))

    def cached_search(self, term: str) -> list[dict[str, Any]] | None:
        cached = self.get(
            f"{SEARCH_CACHE_PREFIX}{term.strip().lower()}", max_age=SEARCH_CACHE_MAX_AGE
        )
        if not isinstance(cached, list):
            return None
        return [dict(item) for item in cached if isinstance(item, dict)]

    # Channel collapse state

    def collapsed_channels(self) -> set[int]:
        stored = self.get(COLLAPSE_KEY)
        if not isinstance(stored, dict):
            return set()
        return {int(channel_id) for channel_id, collapsed in stored.items() if collapsed}

    def set_collapsed(self, channel_id: int, collapsed: bool) -> None:
        stored = self.get(COLLAPSE_KEY)
        state: dict[str, bool] = dict(stored) if isinstance(stored, dict) else {}
        state[str(channel_id)] = collapsed
        self.set(COLLAPSE_KEY, state)

    # Last sync checkpoint

    def save_checkpoint(self, checkpoint: Checkpoint) -> None:
        self.set(
            CHECKPOINT_KEY,
            {
                "id": checkpoint.id,
                "created_at": checkpoint.created_at.isoformat() if checkpoint.created_at else None,
                "count": checkpoint.count,
                "failed": checkpoint.failed,
            },
        )

    def last_checkpoint(self) -> Checkpoint | None:
        stored = self.get(CHECKPOINT_KEY)
        if not isinstance(stored, dict) or not stored.get("id"):
            return None
        created_at = stored.get("created_at")
        return Checkpoint(
            id=str(stored["id"]),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
            count=int(stored.get("count") or 0),
            failed=int(stored.get("failed") or 0),
        )

    # Reconciliation context

    def save_context(self, context: ReconciliationContext) -> None:
        labels, records = context.tracker.to_tables()
        options = {
            item.name: getattr(context.config, item.name)
            for item in fields(context.config)
            if item.name != "rules"
        }
        self.set(CONFIG_KEY, options)
        self.set(CURATED_KEY, list(context.curated))
        self.set(RULES_KEY, context.config.rules.to_dict())
        self.set(PROVENANCE_LABELS_KEY, labels)
        self.set(PROVENANCE_RECORDS_KEY, records)
        self.set(CHANNELS_KEY, [_channel_to_dict(channel) for channel in context.channels.values()])
        log.info(f"Saved {len(context.curated)} curated model(s)")

    def load_context(self) -> ReconciliationContext:
        options = self.get(CONFIG_KEY)
        rules_data = self.get(RULES_KEY)
        curated = self.get(CURATED_KEY)
        labels = self.get(PROVENANCE_LABELS_KEY)
        records = self.get(PROVENANCE_RECORDS_KEY)
        stored_channels = self.get(CHANNELS_KEY)

        rules = RuleSet.from_dict(rules_data) if isinstance(rules_data, dict) else RuleSet()
        known = {item.name for item in fields(CanonicalizationConfig)} - {"rules"}
        flags = (
            {name: bool(value) for name, value in options.items() if name in known}
            if isinstance(options, dict)
            else {}
        )
        tracker = ProvenanceTracker.from_tables(
            labels if isinstance(labels, dict) else {},
            records if isinstance(records, dict) else {},
        )
        channels = [
            channel
            for item in (stored_channels if isinstance(stored_channels, list) else [])
            if isinstance(item, dict) and (channel := _channel_from_dict(item)) is not None
        ]
        return ReconciliationContext(
            channels={channel.id: channel for channel in channels},
            curated=[str(name) for name in curated] if isinstance(curated, list) else [],
            tracker=tracker,
            config=CanonicalizationConfig(rules=rules, **flags),
        )


if TYPE_CHECKING:
    _store_check: StateStore = SqlAlchemyStateStore()
