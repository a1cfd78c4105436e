"""Build the canonical mapping and split it into per-channel sync plans.

The planner never raises on bad entries. Collisions and names without
provenance are logged and reported while every other entry is processed.
"""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING

from modelsync.domain.canonicalization import DEFAULT_CONFIG, canonicalize
from modelsync.domain.errors import CanonicalizationCollision, MappingImportError

from .plan import ChannelSyncPlan, MappingResult, MappingStats, SkippedEntry

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from modelsync.domain.canonicalization import CanonicalizationConfig
    from modelsync.domain.model import Channel
    from modelsync.domain.provenance import ProvenanceTracker

log = getLogger(__name__)


class ReconciliationPlanner:
    def __init__(self, tracker: ProvenanceTracker) -> None:
        self.tracker = tracker
        self.skipped: list[SkippedEntry] = []

    def build_mapping(
        self,
        curated: Sequence[str],
        config: CanonicalizationConfig = DEFAULT_CONFIG,
    ) -> MappingResult:
        """Canonicalize the curated list in order; later entries win on collision."""

        result = MappingResult()
        for raw in curated:
            label = self.tracker.primary_label(raw)
            canonical = canonicalize(raw, config, label)
            previous = result.mapping.get(canonical)
            if previous is not None and previous != raw:
                collision = CanonicalizationCollision(
                    canonical=canonical, previous_raw=previous, winning_raw=raw
                )
                result.collisions.append(collision)
                log.warning(f"Canonical name {canonical!r} collides: {raw!r} replaces {previous!r}")
            result.mapping[canonical] = raw
        return result

    def group_by_channel(
        self,
        curated: Sequence[str],
        mapping: Mapping[str, str],
        tracker: ProvenanceTracker | None = None,
        channels: Iterable[Channel] | None = None,
    ) -> dict[int, ChannelSyncPlan]:
        """Fan each mapping entry out to every channel its raw name came from."""

        if tracker is None:
            tracker = self.tracker
        self.skipped = []
        if not curated:
            return {}

        summaries = {channel.id: channel.summary() for channel in channels or ()}
        plans: dict[int, ChannelSyncPlan] = {}
        for canonical, raw in mapping.items():
            channel_ids = tracker.channels_for(raw)
            if not channel_ids:
                reason = "no channel provenance"
                self.skipped.append(SkippedEntry(canonical=canonical, raw=raw, reason=reason))
                log.warning(f"Skipping {raw!r} -> {canonical!r}: {reason}")
                continue
            for channel_id in sorted(channel_ids):
                plan = plans.get(channel_id)
                if plan is None:
                    plan = ChannelSyncPlan(channel_id=channel_id, channel=summaries.get(channel_id))
                    plans[channel_id] = plan
                plan.mappings[canonical] = raw
        return plans

    def plan(
        self,
        curated: Sequence[str],
        config: CanonicalizationConfig = DEFAULT_CONFIG,
        channels: Iterable[Channel] | None = None,
    ) -> tuple[MappingResult, dict[int, ChannelSyncPlan]]:
        result = self.build_mapping(curated, config)
        return result, self.group_by_channel(curated, result.mapping, channels=channels)


def mapping_stats(curated: Sequence[str], mapping: Mapping[str, str]) -> MappingStats:
    """Count curated names whose canonical name differs from the raw name."""

    raw_to_canonical = {raw: canonical for canonical, raw in mapping.items()}
    changed = sum(1 for raw in curated if raw_to_canonical.get(raw, raw) != raw)
    return MappingStats(total=len(curated), changed=changed, unchanged=len(curated) - changed)


def restore_identity(curated: Sequence[str]) -> dict[str, str]:
    return {raw: raw for raw in curated}


def export_mapping(mapping: Mapping[str, str]) -> str:
    return json.dumps(dict(mapping), indent=2, ensure_ascii=False)


def import_mapping(text: str) -> dict[str, str]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MappingImportError(f"Mapping is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MappingImportError("Mapping must be a JSON object")
    mapping: dict[str, str] = {}
    for key, value in payload.items():
        if not isinstance(value, str):
            raise MappingImportError(f"Mapping value for {key!r} must be a string")
        mapping[key] = value
    return mapping
