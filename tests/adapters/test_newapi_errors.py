from __future__ import annotations

import httpx
import pytest

from modelsync.adapters.newapi import translate_http_error
from modelsync.domain.errors import (
    AuthError,
    NetworkError,
    NetworkErrorKind,
    ServerError,
    is_retryable,
)


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (httpx.ReadTimeout("timed out"), NetworkErrorKind.TIMEOUT),
        (httpx.ConnectError("[Errno 111] Connection refused"), NetworkErrorKind.CONNECTION_REFUSED),
        (
            httpx.ConnectError("[Errno -2] Name or service not known"),
            NetworkErrorKind.DNS_FAILURE,
        ),
        (httpx.ReadError("Connection reset by peer"), NetworkErrorKind.CONNECTION_RESET),
        (httpx.RemoteProtocolError("Server disconnected"), NetworkErrorKind.CONNECTION_RESET),
        (httpx.ConnectError("something odd"), NetworkErrorKind.OTHER),
    ],
)
def test_transport_errors_become_network_errors(
    error: httpx.TransportError, kind: NetworkErrorKind
) -> None:
    translated = translate_http_error(error)

    assert isinstance(translated, NetworkError)
    assert translated.kind is kind
    assert translated.suggestions
    assert is_retryable(translated)


def test_status_errors_keep_server_message() -> None:
    request = httpx.Request("POST", "http://sync.test/api/channels")
    response = httpx.Response(503, json={"error": "maintenance"}, request=request)
    error = httpx.HTTPStatusError("503", request=request, response=response)

    translated = translate_http_error(error)

    assert isinstance(translated, ServerError)
    assert translated.status == 503
    assert "maintenance" in str(translated)


def test_retry_classification() -> None:
    assert is_retryable(TimeoutError())
    assert not is_retryable(AuthError("denied"))
    assert not is_retryable(ValueError("bad"))
