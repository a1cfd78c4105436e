"""Channels and the lifecycle of their fetched model catalogs."""

from __future__ import annotations

from dataclasses import dataclass, field

from .enums import CatalogStatus, ChannelStatus


@dataclass(frozen=True, slots=True)
class CatalogState:
    status: CatalogStatus = CatalogStatus.UNFETCHED
    reason: str | None = None

    def __post_init__(self) -> None:
        if self.status is CatalogStatus.FAILED and not self.reason:
            raise ValueError("A failed catalog state requires a reason")

    @classmethod
    def failed(cls, reason: str) -> CatalogState:
        return cls(CatalogStatus.FAILED, reason or "unknown error")

    @property
    def is_terminal(self) -> bool:
        return self.status in (CatalogStatus.FETCHED, CatalogStatus.FAILED)


@dataclass(frozen=True, slots=True)
class ChannelSummary:
    """The subset of a channel carried alongside a sync plan."""

    id: int
    name: str
    type: int
    status: ChannelStatus


@dataclass(eq=False, slots=True)
class Channel:
    """An upstream provider endpoint; identity is ``id``, names may repeat."""

    id: int
    name: str
    type: int = 0
    status: ChannelStatus = ChannelStatus.UNKNOWN
    catalog: list[str] = field(default_factory=list[str])
    catalog_state: CatalogState = field(default_factory=CatalogState)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Channel):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def label(self) -> str:
        return self.name.strip() or f"Channel {self.id}"

    @property
    def is_active(self) -> bool:
        return self.status is ChannelStatus.ACTIVE

    def summary(self) -> ChannelSummary:
        return ChannelSummary(id=self.id, name=self.name, type=self.type, status=self.status)

    def transition(self, state: CatalogState) -> bool:
        """Move to ``state``; re-entering the current state is a no-op.

        Returns whether anything changed.
        """

        if state == self.catalog_state:
            return False
        self.catalog_state = state
        return True

    def mark_pending(self) -> bool:
        return self.transition(CatalogState(CatalogStatus.PENDING))

    def mark_loading(self) -> bool:
        return self.transition(CatalogState(CatalogStatus.LOADING))

    def mark_fetched(self, models: list[str]) -> bool:
        self.catalog = list(models)
        return self.transition(CatalogState(CatalogStatus.FETCHED))

    def mark_failed(self, reason: str) -> bool:
        return self.transition(CatalogState.failed(reason))
