"""Dialect tags and identifier quoting."""

from __future__ import annotations

import logging
from enum import Enum

from .errors import UnsupportedDialectError

LOG = logging.getLogger(__name__)


class Dialect(str, Enum):
    """SQL dialects the quoting helper knows how to handle."""

    ANSI = "ansi"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"
    MYSQL = "mysql"
    MSSQL = "mssql"
    ORACLE = "oracle"

    @property
    def file_based(self) -> bool:
        """True for engines that open a file path instead of a named database."""

        return self is Dialect.SQLITE


_ALIASES: dict[str, Dialect] = {
    "ansi": Dialect.ANSI,
    "postgresql": Dialect.POSTGRESQL,
    "postgres": Dialect.POSTGRESQL,
    "pg": Dialect.POSTGRESQL,
    "asyncpg": Dialect.POSTGRESQL,
    "psycopg": Dialect.POSTGRESQL,
    "sqlite": Dialect.SQLITE,
    "sqlite3": Dialect.SQLITE,
    "mysql": Dialect.MYSQL,
    "mariadb": Dialect.MYSQL,
    "pymysql": Dialect.MYSQL,
    "mssql": Dialect.MSSQL,
    "sqlserver": Dialect.MSSQL,
    "sybase": Dialect.MSSQL,
    "oracle": Dialect.ORACLE,
}

# (open, close) characters per dialect
_QUOTES: dict[Dialect, tuple[str, str]] = {
    Dialect.ANSI: ('"', '"'),
    Dialect.POSTGRESQL: ('"', '"'),
    Dialect.SQLITE: ('"', '"'),
    Dialect.ORACLE: ('"', '"'),
    Dialect.MYSQL: ("`", "`"),
    Dialect.MSSQL: ("[", "]"),
}


def resolve_dialect(tag: str | Dialect | None, *, strict: bool = False) -> Dialect:
    """Map a dialect tag or driver name onto a :class:`Dialect`.

    Unknown tags fall back to ANSI quoting unless ``strict`` is set, in which
    case :class:`UnsupportedDialectError` is raised.
    """

    if isinstance(tag, Dialect):
        return tag
    if tag is None:
        if strict:
            raise UnsupportedDialectError("No dialect given")
        return Dialect.ANSI
    dialect = _ALIASES.get(tag.strip().lower())
    if dialect is not None:
        return dialect
    if strict:
        raise UnsupportedDialectError(f"Unsupported dialect '{tag}'")
    LOG.warning("Unknown dialect, falling back to ANSI quoting", extra={"dialect": tag})
    return Dialect.ANSI


def quote_identifier(name: str, dialect: str | Dialect | None = Dialect.ANSI) -> str:
    """Quote a table or column name, handling ``schema.table`` style names."""

    if not name:
        raise ValueError("Identifier must not be empty")
    opening, closing = _QUOTES[resolve_dialect(dialect)]
    parts = []
    for part in name.split("."):
        if part == "*":
            parts.append(part)
            continue
        escaped = part.replace(closing, closing * 2)
        parts.append(f"{opening}{escaped}{closing}")
    return ".".join(parts)


__all__ = ["Dialect", "quote_identifier", "resolve_dialect"]
