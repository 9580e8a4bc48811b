"""Client-library adapters used by the handle registry."""

from __future__ import annotations

import asyncio
import importlib.metadata as metadata
import inspect
import logging
import re
import sqlite3
import threading
from typing import Any, Coroutine, Iterable, Protocol, Sequence, TypeVar, runtime_checkable
from urllib.parse import unquote, urlsplit

import asyncpg
import pymysql

from .errors import ConnectError
from .models import ConnectionDescriptor, QueryResult
from .quoting import Dialect

LOG = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "sqlhandle.drivers"

_RETURNING = re.compile(r"\breturning\b", re.IGNORECASE)

T = TypeVar("T")


@runtime_checkable
class Driver(Protocol):
    """Protocol implemented by driver adapters."""

    name: str
    aliases: tuple[str, ...]
    dialect: Dialect
    paramstyle: str

    def connect(self, descriptor: ConnectionDescriptor) -> Any:
        """Open a raw client connection for the descriptor."""

    def execute(self, raw: Any, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """Run one statement and normalise its output."""

    def ping(self, raw: Any) -> bool:
        """Return True when the raw connection is still usable."""

    def setup_encoding(self, raw: Any) -> None:
        """Switch the connection to UTF-8 text handling."""

    def close(self, raw: Any) -> None:
        """Release the raw connection."""


class DbApiDriver:
    """Shared behaviour for DB-API 2.0 client libraries."""

    name = "dbapi"
    aliases: tuple[str, ...] = ()
    dialect = Dialect.ANSI
    paramstyle = "qmark"
    probe_sql = "SELECT 1"

    def connect(self, descriptor: ConnectionDescriptor) -> Any:
        raise NotImplementedError

    def execute(self, raw: Any, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        cursor = raw.cursor()
        try:
            if params:
                cursor.execute(sql, tuple(params))
            else:
                cursor.execute(sql)
            columns: tuple[str, ...] = ()
            rows: tuple[dict[str, Any], ...] = ()
            if cursor.description:
                columns = tuple(str(column[0]) for column in cursor.description)
                rows = tuple(dict(zip(columns, row)) for row in cursor.fetchall())
            return QueryResult(
                columns=columns,
                rows=rows,
                rowcount=cursor.rowcount,
                lastrowid=getattr(cursor, "lastrowid", None),
            )
        finally:
            cursor.close()

    def ping(self, raw: Any) -> bool:
        try:
            native = getattr(raw, "ping", None)
            if callable(native):
                native()
            else:
                self.execute(raw, self.probe_sql)
        except Exception as exc:
            LOG.info("Liveness probe failed", extra={"driver": self.name, "error": str(exc)})
            return False
        return True

    def setup_encoding(self, raw: Any) -> None:
        return None

    def close(self, raw: Any) -> None:
        raw.close()


class SqliteDriver(DbApiDriver):
    """File-based SQLite through the standard library module."""

    name = "SQLite"
    aliases = ("sqlite", "sqlite3")
    dialect = Dialect.SQLITE
    paramstyle = "qmark"

    def connect(self, descriptor: ConnectionDescriptor) -> sqlite3.Connection:
        # autocommit; the handle may move between threads between uses
        kwargs: dict[str, Any] = {"isolation_level": None, "check_same_thread": False}
        kwargs.update(descriptor.options)
        return sqlite3.connect(descriptor.path or ":memory:", **kwargs)

    def setup_encoding(self, raw: sqlite3.Connection) -> None:
        raw.text_factory = str


class MysqlDriver(DbApiDriver):
    """MySQL/MariaDB through PyMySQL."""

    name = "mysql"
    aliases = ("mariadb", "pymysql")
    dialect = Dialect.MYSQL
    paramstyle = "format"

    def connect(self, descriptor: ConnectionDescriptor) -> pymysql.connections.Connection:
        return pymysql.connect(**self._connect_kwargs(descriptor))

    def ping(self, raw: Any) -> bool:
        try:
            raw.ping(reconnect=False)
        except Exception as exc:
            LOG.info("Liveness probe failed", extra={"driver": self.name, "error": str(exc)})
            return False
        return True

    def setup_encoding(self, raw: Any) -> None:
        self.execute(raw, "SET NAMES utf8mb4")

    def _connect_kwargs(self, descriptor: ConnectionDescriptor) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"autocommit": True}
        if descriptor.dsn:
            parts = urlsplit(descriptor.dsn)
            if parts.hostname:
                kwargs["host"] = parts.hostname
            if parts.port:
                kwargs["port"] = parts.port
            if parts.username:
                kwargs["user"] = unquote(parts.username)
            if parts.password:
                kwargs["password"] = unquote(parts.password)
            if parts.path.strip("/"):
                kwargs["database"] = parts.path.strip("/")
        else:
            kwargs["host"] = descriptor.host or "localhost"
            if descriptor.port is not None:
                kwargs["port"] = descriptor.port
            if descriptor.database:
                kwargs["database"] = descriptor.database
        if descriptor.username:
            kwargs["user"] = descriptor.username
        if descriptor.password:
            kwargs["password"] = descriptor.password
        if descriptor.auto_encoding:
            kwargs["charset"] = "utf8mb4"
        kwargs.update(descriptor.options)
        return kwargs


class AsyncpgDriver:
    """PostgreSQL through asyncpg, driven from a background event loop thread."""

    name = "Pg"
    aliases = ("postgres", "postgresql", "asyncpg")
    dialect = Dialect.POSTGRESQL
    paramstyle = "numeric"

    def __init__(self, *, connect_timeout: float = 5.0) -> None:
        self._connect_timeout = connect_timeout
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: threading.Thread | None = None
        self._lock = threading.Lock()

    def connect(self, descriptor: ConnectionDescriptor) -> asyncpg.Connection:
        return self._run(asyncpg.connect(**self._connect_kwargs(descriptor)))

    def execute(self, raw: asyncpg.Connection, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        return self._run(self._execute(raw, sql, tuple(params)))

    def ping(self, raw: asyncpg.Connection) -> bool:
        if raw.is_closed():
            return False
        try:
            self._run(raw.fetchval("SELECT 1"))
        except Exception as exc:
            LOG.info("Liveness probe failed", extra={"driver": self.name, "error": str(exc)})
            return False
        return True

    def setup_encoding(self, raw: asyncpg.Connection) -> None:
        self._run(raw.execute("SET client_encoding TO 'UTF8'"))

    def close(self, raw: asyncpg.Connection) -> None:
        self._run(raw.close())

    def shutdown(self) -> None:
        """Stop the background event loop."""

        with self._lock:
            loop, thread = self._loop, self._loop_thread
            self._loop = None
            self._loop_thread = None
        if loop is None or not loop.is_running():
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout=1)

    def _run(self, coro: Coroutine[Any, Any, T]) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())
        return future.result()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                self._loop = asyncio.new_event_loop()
                self._loop_thread = threading.Thread(
                    target=self._loop.run_forever,
                    name="sqlhandle-asyncpg",
                    daemon=True,
                )
                self._loop_thread.start()
            return self._loop

    async def _execute(self, raw: asyncpg.Connection, sql: str, params: tuple[Any, ...]) -> QueryResult:
        if _returns_rows(sql):
            records = await raw.fetch(sql, *params)
            columns: tuple[str, ...] = ()
            rows: list[dict[str, Any]] = []
            for record in records:
                if not columns:
                    columns = tuple(str(key) for key in record.keys())
                rows.append({key: record[key] for key in columns})
            return QueryResult(columns=columns, rows=tuple(rows), rowcount=len(rows))
        status = await raw.execute(sql, *params)
        return QueryResult(rowcount=_rowcount_from_status(status))

    def _connect_kwargs(self, descriptor: ConnectionDescriptor) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if descriptor.dsn:
            kwargs["dsn"] = descriptor.dsn
        else:
            kwargs["host"] = descriptor.host or "localhost"
            if descriptor.port is not None:
                kwargs["port"] = descriptor.port
            if descriptor.database:
                kwargs["database"] = descriptor.database
        if descriptor.username:
            kwargs["user"] = descriptor.username
        if descriptor.password:
            kwargs["password"] = descriptor.password
        kwargs.setdefault("timeout", self._connect_timeout)
        kwargs.update(descriptor.options)
        return kwargs


def _returns_rows(statement: str) -> bool:
    token = statement.lstrip().split(None, 1)
    if not token:
        return False
    head = token[0].lower()
    return head in {"select", "with", "show", "values"} or _RETURNING.search(statement) is not None


def _rowcount_from_status(status: str | None) -> int:
    """Parse command tags such as ``UPDATE 3`` or ``INSERT 0 1``."""

    if not status:
        return -1
    tail = status.rsplit(None, 1)[-1]
    return int(tail) if tail.isdigit() else -1


class DriverRegistry:
    """Looks up driver adapters by name or alias, case-insensitively."""

    def __init__(
        self,
        drivers: Iterable[Driver] | None = None,
        *,
        entry_point_group: str = ENTRY_POINT_GROUP,
        discover: bool = True,
    ) -> None:
        self._entry_point_group = entry_point_group
        self._drivers: dict[str, Driver] = {}
        self._discovered = not discover
        for driver in drivers if drivers is not None else _builtin_drivers():
            self.register(driver)

    def register(self, driver: Driver | type[Driver]) -> None:
        instance = driver() if inspect.isclass(driver) else driver
        for key in (instance.name, *getattr(instance, "aliases", ())):
            self._drivers[key.lower()] = instance

    def get(self, name: str) -> Driver:
        key = name.lower()
        if key not in self._drivers and not self._discovered:
            self.discover()
        try:
            return self._drivers[key]
        except KeyError:
            raise ConnectError(f"No driver registered for '{name}'") from None

    def discover(self) -> list[Driver]:
        """Register drivers exposed through entry points."""

        self._discovered = True
        found: list[Driver] = []
        for entry_point in sorted(metadata.entry_points().select(group=self._entry_point_group), key=lambda ep: ep.name):
            try:
                obj = entry_point.load()
            except Exception:
                LOG.exception("Driver entry point failed to load", extra={"entry_point": entry_point.name})
                continue
            instance = obj() if inspect.isclass(obj) else obj
            self.register(instance)
            found.append(instance)
        return found

    @property
    def drivers(self) -> tuple[Driver, ...]:
        unique: dict[int, Driver] = {}
        for driver in self._drivers.values():
            unique.setdefault(id(driver), driver)
        return tuple(unique.values())

    def shutdown(self) -> None:
        for driver in self.drivers:
            stop = getattr(driver, "shutdown", None)
            if callable(stop):
                stop()


def _builtin_drivers() -> tuple[Driver, ...]:
    return (SqliteDriver(), MysqlDriver(), AsyncpgDriver())


__all__ = [
    "AsyncpgDriver",
    "DbApiDriver",
    "Driver",
    "DriverRegistry",
    "ENTRY_POINT_GROUP",
    "MysqlDriver",
    "SqliteDriver",
]
