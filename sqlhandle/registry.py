"""Handle registry: lazily opens, caches, probes and replaces connections.

Each key (connection name, the default sentinel, or a digest of ad hoc
overrides) owns at most one cached handle. The check-then-reconnect sequence
runs under a per-key lock, so concurrent callers asking for the same key never
open two connections, while different keys do not contend.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Mapping

from .config import ConnectionSettings, DatabaseConfig, coerce_config
from .drivers import Driver, DriverRegistry
from .errors import ConnectError
from .handle import Handle
from .models import DEFAULT_CONNECTION, ConnectionDescriptor
from .resolver import resolve

LOG = logging.getLogger(__name__)

Overrides = ConnectionSettings | Mapping[str, Any]


class HandleState(str, Enum):
    """Lifecycle state of one registry key."""

    ABSENT = "absent"
    CONNECTED = "connected"
    STALE = "stale"


class EventKind(str, Enum):
    CONNECTED = "connected"
    CONNECTION_LOST = "connection_lost"
    CONNECTION_FAILED = "connection_failed"


@dataclass(frozen=True, slots=True)
class RegistryEvent:
    """Notification emitted when a connection is opened, lost or fails to open."""

    kind: EventKind
    key: str
    descriptor: ConnectionDescriptor
    error: BaseException | None = None


RegistryListener = Callable[[RegistryEvent], None]


@dataclass(slots=True)
class _CachedHandle:
    handle: Handle
    descriptor: ConnectionDescriptor
    checked_at: float


@dataclass(slots=True)
class _KeyLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class HandleRegistry:
    """Owns the cached handles for one application."""

    def __init__(
        self,
        config: DatabaseConfig | Mapping[str, Any] | None = None,
        *,
        drivers: DriverRegistry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = coerce_config(config)
        self._drivers = drivers or DriverRegistry()
        self._clock = clock
        self._entries: dict[str, _CachedHandle] = {}
        self._locks: dict[str, _KeyLock] = {}
        self._locks_guard = threading.Lock()
        self._listeners: set[RegistryListener] = set()

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def drivers(self) -> DriverRegistry:
        return self._drivers

    def get(self, name: str | None = None, overrides: Overrides | None = None) -> Handle:
        """Return a usable handle, opening or replacing the connection as needed.

        Raises :class:`UnknownConnectionError` when the settings cannot be
        resolved and :class:`ConnectError` when a fresh connection cannot be
        opened. There is no retry loop: the next call makes a new attempt.
        """

        key = self._key_for(name, overrides)
        with self._locked(key):
            entry = self._entries.get(key)
            if entry is None:
                return self._open(key, resolve(name, overrides, self._config)).handle

            if overrides is not None:
                descriptor = resolve(name, overrides, self._config)
                if descriptor != entry.descriptor:
                    LOG.info("Connection settings changed, reconnecting", extra={"connection": key})
                    self._discard(key, entry)
                    return self._open(key, descriptor).handle

            now = self._clock()
            if now - entry.checked_at < entry.descriptor.check_interval:
                return entry.handle

            if entry.handle.driver.ping(entry.handle.raw):
                entry.checked_at = now
                return entry.handle

            LOG.warning("Database connection went away, reconnecting", extra={"connection": key})
            self._discard(key, entry)
            self._notify(RegistryEvent(EventKind.CONNECTION_LOST, key, entry.descriptor))
            return self._open(key, entry.descriptor).handle

    def state(self, name: str | None = None, overrides: Overrides | None = None) -> HandleState:
        key = self._key_for(name, overrides)
        with self._locked(key):
            entry = self._entries.get(key)
            if entry is None:
                return HandleState.ABSENT
            if self._clock() - entry.checked_at >= entry.descriptor.check_interval:
                return HandleState.STALE
            return HandleState.CONNECTED

    def reset(self, name: str | None = None, overrides: Overrides | None = None) -> None:
        """Drop the cached handle for one key; the next ``get`` reconnects."""

        key = self._key_for(name, overrides)
        with self._locked(key):
            entry = self._entries.get(key)
            if entry is not None:
                self._discard(key, entry)

    def close(self) -> None:
        """Close every cached connection and stop driver resources."""

        for key in list(self._entries):
            self._drop(key)
        self._drivers.shutdown()

    def _drop(self, key: str) -> None:
        with self._locked(key):
            entry = self._entries.get(key)
            if entry is not None:
                self._discard(key, entry)

    def subscribe(self, listener: RegistryListener) -> Callable[[], None]:
        """Subscribe to connection events; returns an unsubscribe handle."""

        self._listeners.add(listener)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def __enter__(self) -> HandleRegistry:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _open(self, key: str, descriptor: ConnectionDescriptor) -> _CachedHandle:
        try:
            driver = self._drivers.get(descriptor.driver)
        except ConnectError as exc:
            self._fail(key, descriptor, exc)
            raise
        try:
            raw = driver.connect(descriptor)
        except Exception as exc:
            self._fail(key, descriptor, exc)
            raise ConnectError(f"Failed to connect to '{key}': {exc}") from exc

        try:
            self._prepare(driver, raw, descriptor)
        except Exception as exc:
            self._close_quietly(driver, raw, key)
            self._fail(key, descriptor, exc)
            raise ConnectError(f"Failed to initialise connection '{key}': {exc}") from exc

        entry = _CachedHandle(
            handle=Handle(raw, driver, descriptor),
            descriptor=descriptor,
            checked_at=self._clock(),
        )
        self._entries[key] = entry
        LOG.info("Connected to database", extra={"connection": key, "driver": driver.name})
        self._notify(RegistryEvent(EventKind.CONNECTED, key, descriptor))
        return entry

    def _prepare(self, driver: Driver, raw: Any, descriptor: ConnectionDescriptor) -> None:
        for statement in descriptor.on_connect_do:
            driver.execute(raw, statement)
        if descriptor.auto_encoding:
            driver.setup_encoding(raw)

    def _discard(self, key: str, entry: _CachedHandle) -> None:
        self._entries.pop(key, None)
        self._close_quietly(entry.handle.driver, entry.handle.raw, key)

    def _fail(self, key: str, descriptor: ConnectionDescriptor, exc: BaseException) -> None:
        LOG.error("Database connection failed", extra={"connection": key, "error": str(exc)})
        self._notify(RegistryEvent(EventKind.CONNECTION_FAILED, key, descriptor, exc))

    @staticmethod
    def _close_quietly(driver: Driver, raw: Any, key: str) -> None:
        try:
            driver.close(raw)
        except Exception as exc:  # a dead connection may refuse to close cleanly
            LOG.debug("Ignoring error while closing connection", extra={"connection": key, "error": str(exc)})

    def _notify(self, event: RegistryEvent) -> None:
        for listener in tuple(self._listeners):
            try:
                listener(event)
            except Exception:
                LOG.exception(
                    "Registry listener failed",
                    extra={"connection": event.key, "event": event.kind.value},
                )

    @contextmanager
    def _locked(self, key: str) -> Iterator[None]:
        with self._locks_guard:
            slot = self._locks.get(key)
            if slot is None:
                slot = self._locks[key] = _KeyLock()
            slot.users += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._locks_guard:
                slot.users -= 1
                # keys without a cached handle keep no lock once nobody waits on them
                if slot.users == 0 and key not in self._entries:
                    del self._locks[key]

    @staticmethod
    def _key_for(name: str | None, overrides: Overrides | None) -> str:
        if name:
            return name
        if overrides is None:
            return DEFAULT_CONNECTION
        values = overrides.model_dump(exclude_none=True) if isinstance(overrides, ConnectionSettings) else dict(overrides)
        digest = hashlib.sha1(json.dumps(values, sort_keys=True, default=str).encode("utf-8")).hexdigest()
        return f"<overrides:{digest[:12]}>"


__all__ = [
    "EventKind",
    "HandleRegistry",
    "HandleState",
    "RegistryEvent",
    "RegistryListener",
]
