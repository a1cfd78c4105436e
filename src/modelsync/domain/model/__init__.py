"""Domain model for channels, provenance and fetch metrics."""

from __future__ import annotations

from .channel import CatalogState, Channel, ChannelSummary
from .enums import CatalogStatus, ChannelStatus, SourceKind, UpdateMode
from .metrics import FetchMetric
from .provenance import ProvenanceRecord

__all__ = [
    "CatalogState",
    "CatalogStatus",
    "Channel",
    "ChannelStatus",
    "ChannelSummary",
    "FetchMetric",
    "ProvenanceRecord",
    "SourceKind",
    "UpdateMode",
]
