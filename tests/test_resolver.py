"""Tests for descriptor resolution."""

from __future__ import annotations

import pytest

from sqlhandle.config import DatabaseConfig
from sqlhandle.errors import UnknownConnectionError
from sqlhandle.models import DEFAULT_CHECK_INTERVAL, DEFAULT_CONNECTION
from sqlhandle.quoting import Dialect
from sqlhandle.resolver import resolve


def test_sqlite_database_is_remapped_to_path() -> None:
    descriptor = resolve(config={"driver": "SQLite", "database": "test.db"})

    assert descriptor.path == "test.db"
    assert descriptor.database is None
    assert descriptor.dialect is Dialect.SQLITE
    assert descriptor.name == DEFAULT_CONNECTION
    assert descriptor.check_interval == DEFAULT_CHECK_INTERVAL


def test_named_block_layers_over_defaults() -> None:
    config = DatabaseConfig.model_validate(
        {
            "driver": "Pg",
            "host": "primary",
            "username": "app",
            "options": {"timeout": 5, "command_timeout": 30},
            "connections": {
                "replica": {"host": "replica", "options": {"timeout": 1}},
            },
        }
    )

    descriptor = resolve("replica", config=config)

    assert descriptor.name == "replica"
    assert descriptor.driver == "Pg"
    assert descriptor.host == "replica"
    assert descriptor.username == "app"
    assert dict(descriptor.options) == {"timeout": 1, "command_timeout": 30}


def test_runtime_overrides_take_precedence() -> None:
    config = {"connections": {"main": {"driver": "Pg", "host": "a", "port": 5432}}}

    descriptor = resolve("main", {"host": "b", "on_connect_do": ["SET search_path TO app"]}, config)

    assert descriptor.host == "b"
    assert descriptor.port == 5432
    assert descriptor.on_connect_do == ("SET search_path TO app",)


def test_overrides_alone_resolve_without_config() -> None:
    descriptor = resolve(overrides={"driver": "SQLite", "database": ":memory:", "auto_encoding": True})

    assert descriptor.path == ":memory:"
    assert descriptor.auto_encoding is True


def test_dsn_skips_network_fields_but_keeps_credentials() -> None:
    descriptor = resolve(
        config={
            "dsn": "postgresql://db.internal/app",
            "host": "ignored",
            "database": "ignored",
            "username": "app",
            "password": "secret",
            "options": {"ssl": "require"},
        }
    )

    assert descriptor.driver == "Pg"
    assert descriptor.dsn == "postgresql://db.internal/app"
    assert descriptor.host is None
    assert descriptor.database is None
    assert descriptor.username == "app"
    assert descriptor.password == "secret"
    assert descriptor.options["ssl"] == "require"


@pytest.mark.parametrize(
    ("dsn", "expected"),
    [
        ("sqlite:///relative.db", "relative.db"),
        ("sqlite:////var/lib/app.db", "/var/lib/app.db"),
        ("sqlite://", ":memory:"),
    ],
)
def test_sqlite_dsn_becomes_path(dsn: str, expected: str) -> None:
    descriptor = resolve(config={"dsn": dsn})

    assert descriptor.driver == "SQLite"
    assert descriptor.path == expected
    assert descriptor.dsn is None


def test_unknown_name_without_default_fails() -> None:
    with pytest.raises(UnknownConnectionError):
        resolve("missing", config={"connections": {"main": {"driver": "Pg"}}})


def test_unknown_name_falls_back_to_default_block() -> None:
    descriptor = resolve("missing", config={"driver": "SQLite", "database": "app.db"})

    assert descriptor.name == "missing"
    assert descriptor.path == "app.db"


def test_empty_config_fails() -> None:
    with pytest.raises(UnknownConnectionError):
        resolve(config={})


def test_unrecognised_dsn_scheme_fails() -> None:
    with pytest.raises(UnknownConnectionError):
        resolve(config={"dsn": "oracle://db/app"})


def test_descriptor_is_immutable() -> None:
    descriptor = resolve(config={"driver": "SQLite", "options": {"timeout": 2}})

    with pytest.raises(AttributeError):
        descriptor.host = "elsewhere"  # type: ignore[misc]
    with pytest.raises(TypeError):
        descriptor.options["timeout"] = 3  # type: ignore[index]
    assert "password" not in repr(descriptor)
