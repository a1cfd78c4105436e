"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ChannelStatus(StrEnum):
    ACTIVE = "active"
    DISABLED = "disabled"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, value: object) -> ChannelStatus:
        """Map the upstream integer status (1 enabled, 2/3 disabled) onto the enum."""

        if isinstance(value, bool) or not isinstance(value, int | str):
            return cls.UNKNOWN
        try:
            code = int(value)
        except ValueError:
            return cls.UNKNOWN
        if code == 1:
            return cls.ACTIVE
        if code in (2, 3):
            return cls.DISABLED
        return cls.UNKNOWN


class CatalogStatus(StrEnum):
    UNFETCHED = "unfetched"
    PENDING = "pending"
    LOADING = "loading"
    FETCHED = "fetched"
    FAILED = "failed"


class SourceKind(StrEnum):
    """How a raw model name entered the curated list."""

    CHANNEL_SELECTION = "channel_selection"
    SEARCH_SELECTION = "search_selection"
    # Free-text entry is not allowed, so a record of this kind is always an anomaly.
    MANUAL_INVALID = "manual_invalid"


class UpdateMode(StrEnum):
    """How a sync push combines the new mapping with what the channel already has."""

    APPEND = "append"
    REPLACE = "replace"
