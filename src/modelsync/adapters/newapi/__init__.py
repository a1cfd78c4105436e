"""Sync service adapter."""

from __future__ import annotations

from .client import NewApiClient
from .errors import translate_http_error, translate_status
from .schema import (
    BulkUpdateResponse,
    ChannelListResponse,
    ChannelModelsResponse,
    ChannelPayload,
    CheckpointResponse,
    ConnectionTestResponse,
    RestoreResponse,
    SyncResponse,
)

__all__ = [
    "BulkUpdateResponse",
    "ChannelListResponse",
    "ChannelModelsResponse",
    "ChannelPayload",
    "CheckpointResponse",
    "ConnectionTestResponse",
    "NewApiClient",
    "RestoreResponse",
    "SyncResponse",
    "translate_http_error",
    "translate_status",
]
