from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .enums import SourceKind


@dataclass(slots=True)
class ProvenanceRecord:
    """One source that put a raw name on the curated list.

    ``timestamp`` comes from the tracker's own monotonic counter, so two
    records never share a value.
    """

    source_kind: SourceKind
    channel_id: int | None
    channel_label: str
    timestamp: int

    @property
    def key(self) -> tuple[int | None, SourceKind]:
        return (self.channel_id, self.source_kind)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_kind": str(self.source_kind),
            "channel_id": self.channel_id,
            "channel_label": self.channel_label,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProvenanceRecord:
        raw_channel = data.get("channel_id")
        return cls(
            source_kind=SourceKind(data["source_kind"]),
            channel_id=int(raw_channel) if raw_channel is not None else None,
            channel_label=str(data.get("channel_label") or ""),
            timestamp=int(data.get("timestamp", 0)),
        )
