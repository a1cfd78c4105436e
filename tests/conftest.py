from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from modelsync.adapters.sqlalchemy import SqlAlchemyStateStore
from modelsync.domain.model import Channel, ChannelStatus

os.environ.setdefault("MODELSYNC_STATE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


class FrozenClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 1, 15, 12, tzinfo=UTC))


@pytest.fixture
def state_store(tmp_path: Path, clock: FrozenClock) -> Iterator[SqlAlchemyStateStore]:
    store = SqlAlchemyStateStore(
        database_uri=f"sqlite+pysqlite:///{tmp_path / 'state.db'}", clock=clock
    )
    try:
        yield store
    finally:
        store.dispose()


@pytest.fixture
def channels() -> list[Channel]:
    return [
        Channel(id=1, name="Alpha", status=ChannelStatus.ACTIVE),
        Channel(id=2, name="Beta", status=ChannelStatus.ACTIVE),
    ]
