"""Connection settings for the channel management service."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from .env import optional_env_var, require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

NEWAPI_TIMEOUT_SECONDS = 30.0


class AuthHeaderType(StrEnum):
    NEW_API = "NEW_API"
    VELOERA = "VELOERA"

    @property
    def header_name(self) -> str:
        if self is AuthHeaderType.VELOERA:
            return "Veloera-User"
        return "New-Api-User"


def clean_token(token: str) -> str:
    """Strip surrounding whitespace and any embedded line breaks or tabs."""

    return token.strip().replace("\r", "").replace("\n", "").replace("\t", "")


@dataclass(frozen=True)
class ConnectionConfig:
    """Credentials forwarded to the remote service with every request."""

    base_url: str
    token: str = field(repr=False)
    user_id: str
    auth_header_type: AuthHeaderType = AuthHeaderType.NEW_API

    def as_payload(self) -> dict[str, str]:
        return {
            "baseUrl": self.base_url,
            "token": self.token,
            "userId": self.user_id,
            "authHeaderType": str(self.auth_header_type),
        }


@dataclass(frozen=True)
class NewApiConfig:
    """Where the sync service lives and how to reach the upstream it manages."""

    service_url: str
    connection: ConnectionConfig
    resilience: ResilienceConfig


def build_connection_config(
    *,
    base_url: str,
    token: str,
    user_id: str,
    auth_header_type: str | AuthHeaderType = AuthHeaderType.NEW_API,
) -> ConnectionConfig:
    cleaned = clean_token(token)
    if not cleaned:
        raise ConfigurationError("Token cannot be empty")
    try:
        header_type = AuthHeaderType(str(auth_header_type).upper())
    except ValueError as exc:
        raise ConfigurationError(f"Unsupported auth header type: {auth_header_type}") from exc
    return ConnectionConfig(
        base_url=base_url.strip().rstrip("/"),
        token=cleaned,
        user_id=user_id.strip(),
        auth_header_type=header_type,
    )


def default_resilience_config(service_url: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="newapi",
        base_url=service_url,
        timeout_seconds=NEWAPI_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=2),
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        default_headers={"Content-Type": "application/json; charset=utf-8"},
    )


def get_newapi_config(*, resilience: ResilienceConfig | None = None) -> NewApiConfig:
    values = require_env_vars(
        ("MODELSYNC_SERVICE_URL", "MODELSYNC_BASE_URL", "MODELSYNC_TOKEN", "MODELSYNC_USER_ID")
    )
    service_url = values["MODELSYNC_SERVICE_URL"].rstrip("/")
    connection = build_connection_config(
        base_url=values["MODELSYNC_BASE_URL"],
        token=values["MODELSYNC_TOKEN"],
        user_id=values["MODELSYNC_USER_ID"],
        auth_header_type=optional_env_var("MODELSYNC_AUTH_HEADER") or AuthHeaderType.NEW_API,
    )
    return NewApiConfig(
        service_url=service_url,
        connection=connection,
        resilience=resilience or default_resilience_config(service_url),
    )
