"""Connection configuration models and TOML loading helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

import tomllib

from pydantic import BaseModel, ConfigDict, Field

LOG = logging.getLogger(__name__)

CONFIG_FILE = Path.home() / ".config" / "sqlhandle" / "config.toml"


class ConnectionSettings(BaseModel):
    """One block of connection settings; every field is optional so blocks can layer."""

    model_config = ConfigDict(extra="forbid")

    driver: str | None = None
    dialect: str | None = None
    dsn: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    path: str | None = None
    username: str | None = None
    password: str | None = Field(default=None, repr=False)
    options: dict[str, Any] | None = None
    on_connect_do: list[str] | None = None
    auto_encoding: bool | None = None
    connection_check_threshold: float | None = Field(default=None, ge=0)
    log_queries: bool | None = None

    def defined(self) -> dict[str, Any]:
        """Fields explicitly given a value in this block."""

        return self.model_dump(exclude_none=True)

    def is_connectable(self) -> bool:
        return bool(self.driver or self.dsn)


class DatabaseConfig(ConnectionSettings):
    """Top-level default block plus named ``connections`` blocks."""

    connections: dict[str, ConnectionSettings] = Field(default_factory=dict)

    def default_block(self) -> ConnectionSettings:
        return ConnectionSettings(**self.model_dump(exclude={"connections"}, exclude_none=True))

    def block(self, name: str) -> ConnectionSettings | None:
        return self.connections.get(name)

    def with_connection(self, name: str, settings: ConnectionSettings | Mapping[str, Any]) -> DatabaseConfig:
        """Return a copy with a named block added or replaced."""

        block = settings if isinstance(settings, ConnectionSettings) else ConnectionSettings(**settings)
        connections = dict(self.connections)
        connections[name] = block
        return self.model_copy(update={"connections": connections})


def coerce_config(config: DatabaseConfig | Mapping[str, Any] | None) -> DatabaseConfig:
    if config is None:
        return DatabaseConfig()
    if isinstance(config, DatabaseConfig):
        return config
    return DatabaseConfig.model_validate(dict(config))


def load_config(path: Path | None = None) -> DatabaseConfig:
    """Load configuration from a TOML file; fall back to an empty config if missing.

    Settings may live at the top level or under a ``[database]`` table.
    """

    target = path or CONFIG_FILE
    try:
        with target.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError:
        LOG.debug("No config file found", extra={"path": str(target)})
        return DatabaseConfig()
    # a [database] table wins; a plain `database = "..."` key is a connection field
    section = raw.get("database")
    if not isinstance(section, dict):
        section = raw
    return DatabaseConfig.model_validate(section)


__all__ = [
    "CONFIG_FILE",
    "ConnectionSettings",
    "DatabaseConfig",
    "coerce_config",
    "load_config",
]
