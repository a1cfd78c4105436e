"""Explicit state for one reconciliation session.

Everything the planner and the fetch loop read or mutate lives on a
``ReconciliationContext`` that callers pass around; there is no module-level
state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from modelsync.domain.canonicalization import CanonicalizationConfig
from modelsync.domain.model import SourceKind
from modelsync.domain.provenance import ProvenanceTracker
from modelsync.domain.reconciliation import ReconciliationPlanner

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from modelsync.domain.errors import ProvenanceAnomaly
    from modelsync.domain.model import Channel
    from modelsync.domain.reconciliation import ChannelSyncPlan, MappingResult

log = getLogger(__name__)


@dataclass(slots=True)
class ReconciliationContext:
    channels: dict[int, Channel] = field(default_factory=dict["int", "Channel"])
    curated: list[str] = field(default_factory=list[str])
    tracker: ProvenanceTracker = field(default_factory=ProvenanceTracker)
    config: CanonicalizationConfig = field(default_factory=CanonicalizationConfig)

    def set_channels(self, channels: Iterable[Channel]) -> None:
        self.channels = {channel.id: channel for channel in channels}

    def channel(self, channel_id: int) -> Channel | None:
        return self.channels.get(channel_id)

    def select(self, name: str, channel: Channel) -> None:
        """Add ``name`` from ``channel``'s catalog to the curated list."""

        self.curated.append(name)
        self.tracker.record(name, SourceKind.CHANNEL_SELECTION, channel.label, channel.id)

    def select_from_search(
        self, name: str, channel_label: str = "", channel_id: int | None = None
    ) -> None:
        self.curated.append(name)
        self.tracker.record(name, SourceKind.SEARCH_SELECTION, channel_label, channel_id)

    def select_all(self, channel: Channel, patterns: Sequence[str] = ()) -> int:
        """Select every catalog model containing one of ``patterns`` (all when empty).

        Models already selected from this channel are skipped.
        """

        needles = [pattern.lower() for pattern in patterns if pattern]
        added = 0
        for name in channel.catalog:
            if needles and not any(needle in name.lower() for needle in needles):
                continue
            if name in self.curated and channel.id in self.tracker.channels_for(name):
                continue
            self.select(name, channel)
            added += 1
        return added

    def remove(self, name: str) -> None:
        """Drop every occurrence of ``name`` and all of its provenance."""

        self.curated = [entry for entry in self.curated if entry != name]
        self.tracker.remove(name)

    def anomalies(self) -> list[ProvenanceAnomaly]:
        return self.tracker.anomalies(self.curated)

    def plan(self) -> tuple[MappingResult, dict[int, ChannelSyncPlan]]:
        planner = ReconciliationPlanner(self.tracker)
        result, plans = planner.plan(self.curated, self.config, self.channels.values())
        for skipped in planner.skipped:
            log.debug(f"Not synchronised: {skipped.raw} ({skipped.reason})")
        return result, plans
