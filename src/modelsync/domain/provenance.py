"""Which channel (or search) put each raw model name on the curated list."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from modelsync.domain.errors import ProvenanceAnomaly
from modelsync.domain.model import ProvenanceRecord, SourceKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

log = getLogger(__name__)

MISSING_PROVENANCE_LABEL: Final[str] = "⚠ unknown source"


def _fallback_label(record: ProvenanceRecord) -> str:
    if record.channel_label.strip():
        return record.channel_label
    if record.channel_id is not None:
        return f"Channel {record.channel_id}"
    return MISSING_PROVENANCE_LABEL


class ProvenanceTracker:
    """Ordered provenance records per raw model name.

    Records for a name keep insertion order. Each ``(channel_id, source_kind)``
    pair appears at most once per name; recording it again refreshes the
    timestamp in place. Timestamps come from an internal counter so the
    most-recent-first ordering never has ties.
    """

    def __init__(self) -> None:
        self._records: dict[str, list[ProvenanceRecord]] = {}
        self._clock = 0

    def _tick(self) -> int:
        self._clock += 1
        return self._clock

    def record(
        self,
        name: str,
        source_kind: SourceKind,
        channel_label: str,
        channel_id: int | None,
    ) -> ProvenanceRecord:
        records = self._records.setdefault(name, [])
        key = (channel_id, source_kind)
        for existing in records:
            if existing.key == key:
                existing.timestamp = self._tick()
                if channel_label:
                    existing.channel_label = channel_label
                return existing

        match source_kind:
            case SourceKind.MANUAL_INVALID:
                log.warning(f"Model {name!r} recorded without a channel or search source")
            case SourceKind.CHANNEL_SELECTION | SourceKind.SEARCH_SELECTION:
                pass

        new_record = ProvenanceRecord(
            source_kind=source_kind,
            channel_id=channel_id,
            channel_label=channel_label or "",
            timestamp=self._tick(),
        )
        records.append(new_record)
        return new_record

    def remove(self, name: str) -> None:
        self._records.pop(name, None)

    def clear(self) -> None:
        self._records.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def __len__(self) -> int:
        return len(self._records)

    def names(self) -> list[str]:
        return list(self._records)

    def records_for(self, name: str) -> list[ProvenanceRecord]:
        return list(self._records.get(name, ()))

    def channels_for(self, name: str) -> set[int]:
        return {
            record.channel_id
            for record in self._records.get(name, ())
            if record.channel_id is not None and record.source_kind is not SourceKind.MANUAL_INVALID
        }

    def display_label(self, name: str, occurrence_index: int = 0) -> str:
        """Label shown for the ``occurrence_index``-th copy of ``name`` in the curated list.

        Repeated copies cycle through the records, most recent first, so two
        lines of the same model from two channels show both channels.
        """

        records = self._records.get(name)
        if not records:
            return MISSING_PROVENANCE_LABEL
        if len(records) == 1:
            only = records[0]
            match only.source_kind:
                case SourceKind.MANUAL_INVALID:
                    return MISSING_PROVENANCE_LABEL
                case SourceKind.CHANNEL_SELECTION | SourceKind.SEARCH_SELECTION:
                    return _fallback_label(only)

        ordered = sorted(records, key=lambda record: record.timestamp, reverse=True)
        chosen = ordered[occurrence_index % len(ordered)]
        match chosen.source_kind:
            case SourceKind.MANUAL_INVALID:
                return MISSING_PROVENANCE_LABEL
            case SourceKind.CHANNEL_SELECTION | SourceKind.SEARCH_SELECTION:
                return _fallback_label(chosen)

    def primary_label(self, name: str) -> str | None:
        """Label of the first recorded source, or ``None`` when untracked."""

        for record in self._records.get(name, ()):
            match record.source_kind:
                case SourceKind.MANUAL_INVALID:
                    continue
                case SourceKind.CHANNEL_SELECTION | SourceKind.SEARCH_SELECTION:
                    return _fallback_label(record)
        return None

    def anomalies(self, names: Iterable[str]) -> list[ProvenanceAnomaly]:
        found: list[ProvenanceAnomaly] = []
        for name in dict.fromkeys(names):
            records = self._records.get(name)
            if not records:
                found.append(ProvenanceAnomaly(name=name, reason="no provenance recorded"))
                continue
            if any(record.source_kind is SourceKind.MANUAL_INVALID for record in records):
                found.append(
                    ProvenanceAnomaly(
                        name=name,
                        reason="entered without a channel or search selection",
                        channel_ids=frozenset(self.channels_for(name)),
                    )
                )
        return found

    def to_tables(self) -> tuple[dict[str, str], dict[str, list[dict[str, Any]]]]:
        """Serialise as ``(labels, records)``: name to primary label, name to record dicts."""

        labels: dict[str, str] = {}
        records: dict[str, list[dict[str, Any]]] = {}
        for name, entries in self._records.items():
            if not entries:
                continue
            labels[name] = self.primary_label(name) or MISSING_PROVENANCE_LABEL
            records[name] = [entry.to_dict() for entry in entries]
        return labels, records

    @classmethod
    def from_tables(
        cls,
        labels: Mapping[str, str],
        records: Mapping[str, list[dict[str, Any]]],
    ) -> ProvenanceTracker:
        """Rebuild a tracker; names with only a label get a search-selection record."""

        tracker = cls()
        for name, entries in records.items():
            restored: list[ProvenanceRecord] = []
            seen: set[tuple[int | None, SourceKind]] = set()
            for entry in entries:
                try:
                    record = ProvenanceRecord.from_dict(entry)
                except (KeyError, TypeError, ValueError):
                    log.warning(f"Dropping unreadable provenance record for {name!r}: {entry!r}")
                    continue
                if record.key in seen:
                    continue
                seen.add(record.key)
                restored.append(record)
                tracker._clock = max(tracker._clock, record.timestamp)
            if restored:
                tracker._records[name] = restored

        for name, label in labels.items():
            if name not in tracker._records:
                tracker.record(name, SourceKind.SEARCH_SELECTION, label, None)
        return tracker
