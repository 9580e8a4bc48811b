"""Merge layered connection settings into an immutable descriptor.

Precedence is runtime overrides, then the named ``connections`` block, then
the top-level default block. ``options`` mappings merge key by key in the
same order; every other field is replaced wholesale.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping
from urllib.parse import unquote, urlsplit

from .config import ConnectionSettings, DatabaseConfig, coerce_config
from .errors import UnknownConnectionError
from .models import DEFAULT_CHECK_INTERVAL, DEFAULT_CONNECTION, ConnectionDescriptor
from .quoting import resolve_dialect

LOG = logging.getLogger(__name__)

_SCHEME_DRIVERS = {
    "postgres": "Pg",
    "postgresql": "Pg",
    "mysql": "mysql",
    "mariadb": "mysql",
    "sqlite": "SQLite",
}


def resolve(
    name: str | None = None,
    overrides: ConnectionSettings | Mapping[str, Any] | None = None,
    config: DatabaseConfig | Mapping[str, Any] | None = None,
) -> ConnectionDescriptor:
    """Build the descriptor for ``name`` (or the default connection)."""

    settings = coerce_config(config)
    override_block = _as_settings(overrides)
    layers = [settings.default_block()]
    label = name or DEFAULT_CONNECTION
    if name is not None and name != DEFAULT_CONNECTION:
        block = settings.block(name)
        if block is not None:
            layers.append(block)
        elif override_block is None or not override_block.is_connectable():
            if not layers[0].is_connectable():
                raise UnknownConnectionError(f"No configuration found for connection '{name}'")
            LOG.warning("Connection not configured, using default settings", extra={"connection": name})
    if override_block is not None:
        layers.append(override_block)

    merged = _merge(layers)
    if not (merged.get("driver") or merged.get("dsn")):
        raise UnknownConnectionError(f"Connection '{label}' defines neither a driver nor a DSN")
    return _build(label, merged)


def _as_settings(overrides: ConnectionSettings | Mapping[str, Any] | None) -> ConnectionSettings | None:
    if overrides is None:
        return None
    if isinstance(overrides, ConnectionSettings):
        return overrides
    return ConnectionSettings(**overrides)


def _merge(layers: list[ConnectionSettings]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    options: dict[str, Any] = {}
    for layer in layers:
        values = layer.defined()
        options.update(values.pop("options", {}))
        merged.update(values)
    merged["options"] = options
    return merged


def _build(label: str, merged: dict[str, Any]) -> ConnectionDescriptor:
    dsn = merged.get("dsn")
    driver = merged.get("driver") or _driver_from_dsn(dsn)
    dialect = resolve_dialect(merged.get("dialect") or driver)
    host = merged.get("host")
    port = merged.get("port")
    database = merged.get("database")
    path = merged.get("path")

    if dialect.file_based:
        # file-based engines take a path, never a network database name
        if dsn and path is None:
            path = _path_from_dsn(dsn)
            dsn = None
        path = path or database
        database = None
        host = None
        port = None
    elif dsn:
        host = port = database = None

    return ConnectionDescriptor(
        name=label,
        driver=driver,
        dialect=dialect,
        dsn=dsn,
        host=host,
        port=port,
        database=database,
        path=path,
        username=merged.get("username"),
        password=merged.get("password"),
        options=merged["options"],
        on_connect_do=tuple(merged.get("on_connect_do") or ()),
        auto_encoding=bool(merged.get("auto_encoding", False)),
        check_interval=float(merged.get("connection_check_threshold", DEFAULT_CHECK_INTERVAL)),
        log_queries=bool(merged.get("log_queries", False)),
    )


def _driver_from_dsn(dsn: str | None) -> str:
    scheme = urlsplit(dsn or "").scheme.split("+", 1)[0].lower()
    driver = _SCHEME_DRIVERS.get(scheme)
    if driver is None:
        raise UnknownConnectionError(f"Cannot infer a driver from DSN scheme '{scheme}'")
    return driver


def _path_from_dsn(dsn: str) -> str:
    """Extract the file path from ``sqlite:///relative.db`` or ``sqlite:////abs.db``."""

    parts = urlsplit(dsn)
    if parts.scheme.split("+", 1)[0].lower() != "sqlite":
        return dsn
    path = unquote(parts.path)
    if path.startswith("/"):
        path = path[1:]
    return path or ":memory:"


__all__ = ["resolve"]
