from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest

from modelsync.config import (
    AuthHeaderType,
    ConfigurationError,
    MissingConfigurationError,
    build_connection_config,
    get_newapi_config,
    get_state_uri,
    optional_env_var,
    require_env_vars,
)
from modelsync.config import storage

_NEWAPI_ENV = {
    "MODELSYNC_SERVICE_URL": "http://localhost:3000/",
    "MODELSYNC_BASE_URL": "https://gateway.example.com/",
    "MODELSYNC_TOKEN": "  abc\r\n123\t ",
    "MODELSYNC_USER_ID": " 42 ",
}


def test_require_env_vars_reports_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_A", raising=False)
    monkeypatch.setenv("MISSING_B", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_optional_env_var_treats_blank_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  ")

    assert optional_env_var("EXAMPLE_VAR", "fallback") == "fallback"


def test_get_newapi_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name, value in _NEWAPI_ENV.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setenv("MODELSYNC_AUTH_HEADER", "veloera")

    config = get_newapi_config()

    assert config.service_url == "http://localhost:3000"
    assert config.connection.base_url == "https://gateway.example.com"
    assert config.connection.token == "abc123"
    assert config.connection.user_id == "42"
    assert config.connection.auth_header_type is AuthHeaderType.VELOERA
    assert config.connection.auth_header_type.header_name == "Veloera-User"
    assert config.resilience.ratelimit is not None
    assert "abc123" not in repr(config.connection)


def test_get_newapi_config_defaults_auth_header(monkeypatch: pytest.MonkeyPatch) -> None:
    for name, value in _NEWAPI_ENV.items():
        monkeypatch.setenv(name, value)
    monkeypatch.delenv("MODELSYNC_AUTH_HEADER", raising=False)

    config = get_newapi_config()

    assert config.connection.auth_header_type is AuthHeaderType.NEW_API
    assert config.connection.as_payload()["authHeaderType"] == "NEW_API"


def test_get_newapi_config_requires_token(monkeypatch: pytest.MonkeyPatch) -> None:
    for name, value in _NEWAPI_ENV.items():
        monkeypatch.setenv(name, value)
    monkeypatch.delenv("MODELSYNC_TOKEN")

    with pytest.raises(MissingConfigurationError, match="MODELSYNC_TOKEN"):
        get_newapi_config()


def test_build_connection_config_rejects_bad_values() -> None:
    with pytest.raises(ConfigurationError, match="Token"):
        build_connection_config(base_url="https://x", token="\n\t", user_id="1")
    with pytest.raises(ConfigurationError, match="auth header"):
        build_connection_config(
            base_url="https://x", token="t", user_id="1", auth_header_type="basic"
        )


def test_get_state_uri_prefers_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MODELSYNC_STATE_URI", "sqlite:///override.db")

    assert get_state_uri() == "sqlite:///override.db"


def test_get_state_uri_creates_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("MODELSYNC_STATE_URI", raising=False)
    monkeypatch.setenv("MODELSYNC_DATA_DIR", str(tmp_path / "data-dir"))

    uri = get_state_uri()

    expected_path = (tmp_path / "data-dir" / storage.DEFAULT_STATE_FILENAME).resolve()
    assert uri == f"sqlite+pysqlite:///{expected_path}"
    assert expected_path.parent.exists()
