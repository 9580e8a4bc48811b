"""Shared dataclasses used across resolver/driver/registry modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from .quoting import Dialect

DEFAULT_CONNECTION = "<default>"
DEFAULT_CHECK_INTERVAL = 30.0


@dataclass(frozen=True, slots=True)
class ConnectionDescriptor:
    """Resolved settings needed to open one connection."""

    name: str
    driver: str
    dialect: Dialect
    dsn: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    path: str | None = None
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    options: Mapping[str, Any] = field(default_factory=dict)
    on_connect_do: tuple[str, ...] = ()
    auto_encoding: bool = False
    check_interval: float = DEFAULT_CHECK_INTERVAL
    log_queries: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.options, MappingProxyType):
            object.__setattr__(self, "options", MappingProxyType(dict(self.options)))
        object.__setattr__(self, "on_connect_do", tuple(self.on_connect_do))


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Normalized output of a statement executed through a handle."""

    columns: tuple[str, ...] = ()
    rows: tuple[dict[str, Any], ...] = ()
    rowcount: int = -1
    lastrowid: Any = None

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None


__all__ = [
    "ConnectionDescriptor",
    "DEFAULT_CHECK_INTERVAL",
    "DEFAULT_CONNECTION",
    "QueryResult",
]
