"""Pydantic models describing the sync service payloads."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class NewApiBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Envelope(NewApiBaseModel):
    success: bool = False
    message: str = ""
    error: str | None = None


class ChannelPayload(NewApiBaseModel):
    id: int
    name: str = ""
    type: int = 0
    status: int | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _none_to_blank(cls, value: object) -> object:
        return "" if value is None else value


class ChannelListResponse(Envelope):
    """``data`` is either a list of channels or ``{"items": [...]}``."""

    data: list[ChannelPayload] = Field(default_factory=list[ChannelPayload])
    total: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _unwrap_items(cls, value: object) -> object:
        if not isinstance(value, Mapping):
            return value
        payload = dict(cast(Mapping[str, Any], value))
        data = payload.get("data")
        if isinstance(data, Mapping):
            inner = cast(Mapping[str, Any], data)
            if "items" in inner:
                payload["data"] = inner.get("items") or []
            elif inner.get("success") is False:
                payload["success"] = False
                payload["message"] = inner.get("message") or payload.get("message") or ""
                payload["data"] = []
        elif data is None:
            payload["data"] = []
        return payload


class ChannelModelsResponse(Envelope):
    data: list[str] = Field(default_factory=list[str])

    @field_validator("data", mode="before")
    @classmethod
    def _split_models(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


class SyncStatsPayload(NewApiBaseModel):
    total: int = 0
    success: int = 0
    failed: int = 0


class SyncResponse(Envelope):
    stats: SyncStatsPayload | None = None


class ConnectionTestData(NewApiBaseModel):
    version: str | None = None


class ConnectionTestResponse(Envelope):
    suggestions: list[str] = Field(default_factory=list[str])
    data: ConnectionTestData | None = None

    @field_validator("data", mode="before")
    @classmethod
    def _ignore_non_mapping(cls, value: object) -> object:
        return value if isinstance(value, Mapping) else None


class BulkUpdateResults(NewApiBaseModel):
    scanned_channels: int = Field(default=0, alias="scannedChannels")
    broken_mappings: list[dict[str, Any]] = Field(
        default_factory=list[dict[str, Any]], alias="brokenMappings"
    )
    new_mappings: list[dict[str, Any]] = Field(
        default_factory=list[dict[str, Any]], alias="newMappings"
    )


class BulkUpdateResponse(Envelope):
    results: BulkUpdateResults = Field(default_factory=BulkUpdateResults)
    logs: list[str] = Field(default_factory=list[str])

    @field_validator("logs", mode="before")
    @classmethod
    def _stringify_logs(cls, value: object) -> object:
        if isinstance(value, list):
            return [str(item) for item in cast(list[object], value)]
        return value


class ChannelErrorPayload(NewApiBaseModel):
    channel_id: str = Field(default="", alias="channelId")
    error: str = ""

    @field_validator("channel_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        return "" if value is None else str(value)


class CheckpointResponse(Envelope):
    """``createdAt`` is milliseconds since the epoch."""

    checkpoint_id: str | None = Field(default=None, alias="checkpointId")
    created_at: int | None = Field(default=None, alias="createdAt")
    count: int = 0
    failed: int = 0
    errors: list[ChannelErrorPayload] = Field(default_factory=list[ChannelErrorPayload])


class RestoreResponse(Envelope):
    checkpoint_id: str | None = Field(default=None, alias="checkpointId")
    restored: int = 0
    failed: int = 0
    errors: list[ChannelErrorPayload] = Field(default_factory=list[ChannelErrorPayload])
