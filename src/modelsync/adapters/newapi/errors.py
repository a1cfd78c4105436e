"""Translate httpx failures into the modelsync error taxonomy."""

from __future__ import annotations

import httpx

from modelsync.domain.errors import (
    STATUS_SUGGESTIONS,
    AuthError,
    ClientRequestError,
    ModelSyncError,
    NetworkError,
    NetworkErrorKind,
    NotFoundError,
    ServerError,
)

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "temporary failure in name resolution",
    "no address associated",
    "enotfound",
)
_REFUSED_MARKERS = ("connection refused", "econnrefused", "actively refused")
_RESET_MARKERS = ("connection reset", "econnreset", "server disconnected", "broken pipe")


def _network_kind(error: httpx.TransportError) -> NetworkErrorKind:
    if isinstance(error, httpx.TimeoutException):
        return NetworkErrorKind.TIMEOUT
    text = str(error).lower()
    if any(marker in text for marker in _DNS_MARKERS):
        return NetworkErrorKind.DNS_FAILURE
    if any(marker in text for marker in _REFUSED_MARKERS):
        return NetworkErrorKind.CONNECTION_REFUSED
    if isinstance(error, httpx.RemoteProtocolError) or any(
        marker in text for marker in _RESET_MARKERS
    ):
        return NetworkErrorKind.CONNECTION_RESET
    return NetworkErrorKind.OTHER


def _message_from(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error")
        if isinstance(message, str) and message:
            return message
    return response.reason_phrase or f"HTTP {response.status_code}"


def translate_status(response: httpx.Response) -> ModelSyncError:
    status = response.status_code
    message = f"HTTP {status}: {_message_from(response)}"
    suggestions = STATUS_SUGGESTIONS.get(status, ())
    if status in (401, 403):
        return AuthError(message, status=status, suggestions=suggestions)
    if status == 404:
        return NotFoundError(message, suggestions=suggestions)
    if status == 429 or status >= 500:
        return ServerError(message, status=status)
    return ClientRequestError(message, status=status)


def translate_http_error(error: httpx.HTTPError) -> ModelSyncError:
    """Map an httpx exception onto the domain errors, keeping actionable suggestions."""

    if isinstance(error, httpx.HTTPStatusError):
        return translate_status(error.response)
    if isinstance(error, httpx.TransportError):
        kind = _network_kind(error)
        return NetworkError(f"{kind.value.replace('_', ' ')}: {error}", kind=kind)
    return NetworkError(str(error) or type(error).__name__)
