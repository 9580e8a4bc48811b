"""Managed database handles with liveness checks and quick CRUD helpers."""

from __future__ import annotations

__version__ = "0.1.0"

from .config import ConnectionSettings, DatabaseConfig, load_config
from .drivers import AsyncpgDriver, DbApiDriver, Driver, DriverRegistry, MysqlDriver, SqliteDriver
from .errors import (
    ConnectError,
    EmptyCriteriaError,
    SqlHandleError,
    UnknownConnectionError,
    UnsupportedDialectError,
)
from .handle import Handle
from .models import DEFAULT_CONNECTION, ConnectionDescriptor, QueryResult
from .query import (
    Comparison,
    QueryBuilder,
    eq,
    ge,
    gt,
    in_,
    is_null,
    le,
    like,
    lt,
    ne,
    not_in,
    not_like,
    not_null,
)
from .quoting import Dialect, quote_identifier, resolve_dialect
from .registry import EventKind, HandleRegistry, HandleState, RegistryEvent
from .resolver import resolve

__all__ = [
    "AsyncpgDriver",
    "Comparison",
    "ConnectError",
    "ConnectionDescriptor",
    "ConnectionSettings",
    "DEFAULT_CONNECTION",
    "DatabaseConfig",
    "DbApiDriver",
    "Dialect",
    "Driver",
    "DriverRegistry",
    "EmptyCriteriaError",
    "EventKind",
    "Handle",
    "HandleRegistry",
    "HandleState",
    "MysqlDriver",
    "QueryBuilder",
    "QueryResult",
    "RegistryEvent",
    "SqlHandleError",
    "SqliteDriver",
    "UnknownConnectionError",
    "UnsupportedDialectError",
    "eq",
    "ge",
    "gt",
    "in_",
    "is_null",
    "le",
    "like",
    "load_config",
    "lt",
    "ne",
    "not_in",
    "not_like",
    "not_null",
    "quote_identifier",
    "resolve",
    "resolve_dialect",
]
