"""Reconciliation of curated model names into channel sync plans."""

from __future__ import annotations

from .plan import ChannelSyncPlan, MappingResult, MappingStats, SkippedEntry
from .planner import (
    ReconciliationPlanner,
    export_mapping,
    import_mapping,
    mapping_stats,
    restore_identity,
)

__all__ = [
    "ChannelSyncPlan",
    "MappingResult",
    "MappingStats",
    "ReconciliationPlanner",
    "SkippedEntry",
    "export_mapping",
    "import_mapping",
    "mapping_stats",
    "restore_identity",
]
