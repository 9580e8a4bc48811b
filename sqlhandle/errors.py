"""Exception hierarchy shared by the resolver, registry and query builder."""

from __future__ import annotations


class SqlHandleError(RuntimeError):
    """Base error for handle management failures."""


class UnknownConnectionError(SqlHandleError):
    """Raised when a named connection has no configuration to resolve from."""


class ConnectError(SqlHandleError):
    """Raised when opening a connection or running its post-connect statements fails."""


class EmptyCriteriaError(SqlHandleError, ValueError):
    """Raised when an update or delete would touch every row of a table."""


class UnsupportedDialectError(SqlHandleError, ValueError):
    """Raised in strict mode when a dialect tag is not recognised."""


__all__ = [
    "ConnectError",
    "EmptyCriteriaError",
    "SqlHandleError",
    "UnknownConnectionError",
    "UnsupportedDialectError",
]
