"""Statement builders behind the quick_* handle helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from .errors import EmptyCriteriaError
from .quoting import Dialect, quote_identifier, resolve_dialect

Criteria = Mapping[str, Any]
OrderBy = str | Mapping[str, str] | Sequence[str | Mapping[str, str]]

PARAMSTYLES = ("qmark", "format", "numeric")

_OPERATORS: dict[str, str] = {
    "eq": "=",
    "ne": "<>",
    "gt": ">",
    "ge": ">=",
    "lt": "<",
    "le": "<=",
    "like": "LIKE",
    "not_like": "NOT LIKE",
    "in": "IN",
    "not_in": "NOT IN",
    "is_null": "IS NULL",
    "not_null": "IS NOT NULL",
}


@dataclass(frozen=True, slots=True)
class Comparison:
    """Tagged comparison used as a criteria value."""

    op: str
    value: Any = None

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ValueError(f"Unknown comparison '{self.op}'")


def eq(value: Any) -> Comparison:
    return Comparison("eq", value)


def ne(value: Any) -> Comparison:
    return Comparison("ne", value)


def gt(value: Any) -> Comparison:
    return Comparison("gt", value)


def ge(value: Any) -> Comparison:
    return Comparison("ge", value)


def lt(value: Any) -> Comparison:
    return Comparison("lt", value)


def le(value: Any) -> Comparison:
    return Comparison("le", value)


def like(pattern: str) -> Comparison:
    return Comparison("like", pattern)


def not_like(pattern: str) -> Comparison:
    return Comparison("not_like", pattern)


def in_(values: Iterable[Any]) -> Comparison:
    return Comparison("in", tuple(values))


def not_in(values: Iterable[Any]) -> Comparison:
    return Comparison("not_in", tuple(values))


def is_null() -> Comparison:
    return Comparison("is_null")


def not_null() -> Comparison:
    return Comparison("not_null")


class _Params:
    """Collects bound values and hands out matching placeholders."""

    def __init__(self, paramstyle: str) -> None:
        self._paramstyle = paramstyle
        self.values: list[Any] = []

    def bind(self, value: Any) -> str:
        self.values.append(value)
        if self._paramstyle == "numeric":
            return f"${len(self.values)}"
        if self._paramstyle == "format":
            return "%s"
        return "?"


class QueryBuilder:
    """Builds single-table statements with quoted identifiers and bound values.

    Every builder returns ``(sql, params)``; values never end up in the SQL
    text itself.
    """

    def __init__(self, dialect: str | Dialect | None = Dialect.ANSI, paramstyle: str = "qmark") -> None:
        if paramstyle not in PARAMSTYLES:
            raise ValueError(f"Unsupported paramstyle '{paramstyle}'")
        self._dialect = resolve_dialect(dialect)
        self._paramstyle = paramstyle

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def paramstyle(self) -> str:
        return self._paramstyle

    def quote(self, name: str) -> str:
        return quote_identifier(name, self._dialect)

    def build_select(
        self,
        table: str,
        criteria: Criteria,
        *,
        columns: Sequence[str] | None = None,
        order_by: OrderBy | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> tuple[str, list[Any]]:
        """SELECT rows matching ``criteria``; an empty mapping matches every row."""

        params = _Params(self._paramstyle)
        column_sql = ", ".join(self.quote(col) for col in columns) if columns else "*"
        sql = f"SELECT {column_sql} FROM {self.quote(table)}"
        sql += self._where(criteria, params)
        if order_by:
            sql += f" ORDER BY {self._order_by(order_by)}"
        if self._dialect in (Dialect.MSSQL, Dialect.ORACLE):
            return sql + self._offset_fetch(limit, offset, ordered=bool(order_by)), params.values
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        if offset is not None:
            if limit is None and self._dialect is Dialect.SQLITE:
                # SQLite rejects OFFSET without LIMIT
                sql += " LIMIT -1"
            sql += f" OFFSET {int(offset)}"
        return sql, params.values

    def _offset_fetch(self, limit: int | None, offset: int | None, *, ordered: bool) -> str:
        if limit is None and offset is None:
            return ""
        sql = ""
        if not ordered and self._dialect is Dialect.MSSQL:
            # SQL Server only accepts OFFSET after an ORDER BY
            sql += " ORDER BY (SELECT NULL)"
        sql += f" OFFSET {int(offset or 0)} ROWS"
        if limit is not None:
            sql += f" FETCH NEXT {int(limit)} ROWS ONLY"
        return sql

    def build_count(self, table: str, criteria: Criteria) -> tuple[str, list[Any]]:
        params = _Params(self._paramstyle)
        sql = f"SELECT COUNT(*) FROM {self.quote(table)}" + self._where(criteria, params)
        return sql, params.values

    def build_insert(self, table: str, row: Mapping[str, Any]) -> tuple[str, list[Any]]:
        if not row:
            raise ValueError(f"Refusing to insert an empty row into '{table}'")
        params = _Params(self._paramstyle)
        columns = ", ".join(self.quote(col) for col in row)
        placeholders = ", ".join(params.bind(value) for value in row.values())
        sql = f"INSERT INTO {self.quote(table)} ({columns}) VALUES ({placeholders})"
        return sql, params.values

    def build_update(
        self,
        table: str,
        criteria: Criteria,
        changes: Mapping[str, Any],
    ) -> tuple[str, list[Any]]:
        """UPDATE matching rows; SET params come before WHERE params."""

        if not criteria:
            raise EmptyCriteriaError(f"Refusing to update every row of '{table}' without criteria")
        if not changes:
            raise ValueError(f"No changes given for update of '{table}'")
        params = _Params(self._paramstyle)
        assignments = ", ".join(f"{self.quote(col)} = {params.bind(value)}" for col, value in changes.items())
        sql = f"UPDATE {self.quote(table)} SET {assignments}" + self._where(criteria, params)
        return sql, params.values

    def build_delete(self, table: str, criteria: Criteria) -> tuple[str, list[Any]]:
        if not criteria:
            raise EmptyCriteriaError(f"Refusing to delete every row of '{table}' without criteria")
        params = _Params(self._paramstyle)
        sql = f"DELETE FROM {self.quote(table)}" + self._where(criteria, params)
        return sql, params.values

    def _where(self, criteria: Criteria, params: _Params) -> str:
        if not criteria:
            return ""
        clauses = [self._clause(column, value, params) for column, value in criteria.items()]
        return " WHERE " + " AND ".join(clauses)

    def _clause(self, column: str, value: Any, params: _Params) -> str:
        quoted = self.quote(column)
        comparison = _as_comparison(value)
        op = comparison.op
        if op in ("is_null", "not_null"):
            return f"{quoted} {_OPERATORS[op]}"
        if op in ("in", "not_in"):
            values = tuple(comparison.value)
            if not values:
                return "1 = 0" if op == "in" else "1 = 1"
            placeholders = ", ".join(params.bind(item) for item in values)
            return f"{quoted} {_OPERATORS[op]} ({placeholders})"
        return f"{quoted} {_OPERATORS[op]} {params.bind(comparison.value)}"

    def _order_by(self, order_by: OrderBy) -> str:
        items = [order_by] if isinstance(order_by, (str, Mapping)) else list(order_by)
        rendered: list[str] = []
        for item in items:
            if isinstance(item, str):
                rendered.append(self.quote(item))
                continue
            for direction, column in item.items():
                keyword = direction.upper()
                if keyword not in ("ASC", "DESC"):
                    raise ValueError(f"Unknown sort direction '{direction}'")
                rendered.append(f"{self.quote(column)} {keyword}")
        return ", ".join(rendered)


def _as_comparison(value: Any) -> Comparison:
    if isinstance(value, Comparison):
        if value.value is None and value.op == "eq":
            return Comparison("is_null")
        if value.value is None and value.op == "ne":
            return Comparison("not_null")
        return value
    if value is None:
        return Comparison("is_null")
    if isinstance(value, (list, tuple, set, frozenset)):
        return Comparison("in", tuple(value))
    return Comparison("eq", value)


__all__ = [
    "Comparison",
    "Criteria",
    "PARAMSTYLES",
    "QueryBuilder",
    "eq",
    "ge",
    "gt",
    "in_",
    "is_null",
    "le",
    "like",
    "lt",
    "ne",
    "not_in",
    "not_like",
    "not_null",
]
