"""SQLAlchemy adapter package for modelsync."""

from __future__ import annotations

from .state_store import (
    CHANNELS_KEY,
    CHECKPOINT_KEY,
    COLLAPSE_KEY,
    CONFIG_KEY,
    CURATED_KEY,
    PROVENANCE_LABELS_KEY,
    PROVENANCE_RECORDS_KEY,
    RULES_KEY,
    SEARCH_CACHE_MAX_AGE,
    SEARCH_HISTORY_KEY,
    SqlAlchemyStateStore,
    metadata,
    state_table,
)

__all__ = [
    "CHANNELS_KEY",
    "CHECKPOINT_KEY",
    "COLLAPSE_KEY",
    "CONFIG_KEY",
    "CURATED_KEY",
    "PROVENANCE_LABELS_KEY",
    "PROVENANCE_RECORDS_KEY",
    "RULES_KEY",
    "SEARCH_CACHE_MAX_AGE",
    "SEARCH_HISTORY_KEY",
    "SqlAlchemyStateStore",
    "metadata",
    "state_table",
]
