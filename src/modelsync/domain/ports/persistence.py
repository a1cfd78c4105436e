"""Ports for the local key-value state store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import timedelta


@runtime_checkable
class StateStore(Protocol):
    """Namespaced JSON values with an optional staleness window on reads."""

    def get(self, key: str, *, max_age: timedelta | None = None) -> object | None: ...

    def set(self, key: str, value: object) -> None: ...

    def delete(self, key: str) -> None: ...


__all__ = ["StateStore"]
