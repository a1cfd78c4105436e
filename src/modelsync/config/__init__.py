"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .fetch import FetchConfig, get_fetch_config
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .newapi import (
    AuthHeaderType,
    ConnectionConfig,
    NewApiConfig,
    build_connection_config,
    get_newapi_config,
)
from .storage import StorageConfig, get_state_uri, get_storage_config

__all__ = [
    "AuthHeaderType",
    "ConfigurationError",
    "ConnectionConfig",
    "FetchConfig",
    "MissingConfigurationError",
    "NewApiConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "build_connection_config",
    "configure_logging",
    "get_fetch_config",
    "get_newapi_config",
    "get_state_uri",
    "get_storage_config",
    "optional_env_var",
    "require_env_vars",
]
