"""Result types produced by the reconciliation planner."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modelsync.domain.errors import CanonicalizationCollision
    from modelsync.domain.model import ChannelSummary


@dataclass(slots=True)
class MappingResult:
    """Canonical name to raw name, plus every overwrite that happened on the way."""

    mapping: dict[str, str] = field(default_factory=dict[str, str])
    collisions: list[CanonicalizationCollision] = field(
        default_factory=list["CanonicalizationCollision"]
    )

    def __len__(self) -> int:
        return len(self.mapping)


@dataclass(slots=True)
class ChannelSyncPlan:
    """Mappings to push to one channel."""

    channel_id: int
    channel: ChannelSummary | None = None
    mappings: dict[str, str] = field(default_factory=dict[str, str])

    def __bool__(self) -> bool:
        return bool(self.mappings)


@dataclass(frozen=True, slots=True)
class MappingStats:
    total: int
    changed: int
    unchanged: int


@dataclass(frozen=True, slots=True)
class SkippedEntry:
    canonical: str
    raw: str
    reason: str
