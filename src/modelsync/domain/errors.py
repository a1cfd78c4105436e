"""Error taxonomy shared by the domain and its adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ModelSyncError(Exception):
    """Base class for all modelsync failures."""


class NetworkErrorKind(StrEnum):
    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    DNS_FAILURE = "dns_failure"
    CONNECTION_RESET = "connection_reset"
    OTHER = "other"


STATUS_SUGGESTIONS: dict[int, tuple[str, ...]] = {
    401: ("Check that the access token is valid", "Check the auth header type setting"),
    403: ("Check the user's permissions", "Check that the user id is correct"),
    404: ("The endpoint does not exist; the server version may be incompatible",),
    429: ("Requests are too frequent; lower the request rate",),
}

NETWORK_SUGGESTIONS: dict[NetworkErrorKind, tuple[str, ...]] = {
    NetworkErrorKind.TIMEOUT: (
        "Check network latency to the server",
        "Try increasing the request timeout",
    ),
    NetworkErrorKind.CONNECTION_REFUSED: (
        "Check that the server address is correct",
        "Confirm the service is running",
    ),
    NetworkErrorKind.DNS_FAILURE: (
        "Check that the domain name resolves",
        "Check the network connection",
    ),
    NetworkErrorKind.CONNECTION_RESET: (
        "The server closed the connection; retry shortly",
        "Check proxies or firewalls between you and the server",
    ),
    NetworkErrorKind.OTHER: ("Check the network connection",),
}


class NetworkError(ModelSyncError):
    """A request never produced an HTTP response."""

    def __init__(
        self,
        message: str,
        *,
        kind: NetworkErrorKind = NetworkErrorKind.OTHER,
        suggestions: tuple[str, ...] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.suggestions = suggestions if suggestions is not None else NETWORK_SUGGESTIONS[kind]


class AuthError(ModelSyncError):
    """The server rejected the credentials (401/403)."""

    def __init__(self, message: str, *, status: int = 401, suggestions: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.status = status
        self.suggestions = suggestions


class ServerError(ModelSyncError):
    """The server failed while handling the request (5xx or an explicit failure body)."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class NotFoundError(ModelSyncError):
    """The endpoint or resource (e.g. a channel) does not exist."""

    def __init__(self, message: str, *, suggestions: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.suggestions = suggestions


class ClientRequestError(ModelSyncError):
    """The server rejected the request itself (4xx other than auth, 404 and 429)."""

    def __init__(self, message: str, *, status: int) -> None:
        super().__init__(message)
        self.status = status


class MalformedResponseError(ModelSyncError):
    """The response body could not be parsed into the expected shape."""


class MappingImportError(ModelSyncError):
    """An imported mapping document is not a JSON object of strings."""


class UnknownTemplateError(ModelSyncError, KeyError):
    """A rule template id is not registered."""

    def __init__(self, template_id: str) -> None:
        super().__init__(template_id)
        self.template_id = template_id

    def __str__(self) -> str:
        return f"Unknown rule template: {self.template_id}"


RETRYABLE_ERRORS: tuple[type[Exception], ...] = (NetworkError, ServerError, TimeoutError)
NON_RETRYABLE_ERRORS: tuple[type[Exception], ...] = (
    AuthError,
    ClientRequestError,
    MalformedResponseError,
    NotFoundError,
)


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, NON_RETRYABLE_ERRORS):
        return False
    return isinstance(error, RETRYABLE_ERRORS)


@dataclass(frozen=True, slots=True)
class ProvenanceAnomaly:
    """A curated name that cannot be traced to a channel or search selection."""

    name: str
    reason: str
    channel_ids: frozenset[int] = field(default_factory=frozenset)


@dataclass(frozen=True, slots=True)
class CanonicalizationCollision:
    """Two distinct raw names produced the same canonical name."""

    canonical: str
    previous_raw: str
    winning_raw: str
