"""Handle facade returned by the registry."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from .drivers import Driver
from .models import ConnectionDescriptor, QueryResult
from .query import Criteria, OrderBy, QueryBuilder

LOG = logging.getLogger(__name__)


class Handle:
    """Wraps a raw client connection and adds quick single-table helpers.

    Attributes not defined here are looked up on the raw connection, so
    ``handle.cursor()`` works for DB-API drivers. Errors raised by the client
    library propagate unchanged.
    """

    def __init__(self, raw: Any, driver: Driver, descriptor: ConnectionDescriptor) -> None:
        self._raw = raw
        self._driver = driver
        self._descriptor = descriptor
        self._builder = QueryBuilder(descriptor.dialect, paramstyle=driver.paramstyle)
        self.last_insert_id: Any = None

    @property
    def raw(self) -> Any:
        """The underlying client connection."""

        return self._raw

    @property
    def descriptor(self) -> ConnectionDescriptor:
        return self._descriptor

    @property
    def driver(self) -> Driver:
        return self._driver

    @property
    def builder(self) -> QueryBuilder:
        return self._builder

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._raw, name)

    def __repr__(self) -> str:
        return f"<Handle {self._descriptor.name!r} driver={self._driver.name!r}>"

    def quote_identifier(self, name: str) -> str:
        return self._builder.quote(name)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """Run a raw statement with bound parameters."""

        if self._descriptor.log_queries:
            LOG.debug("Executing query", extra={"connection": self._descriptor.name, "sql": sql, "params": list(params)})
        return self._driver.execute(self._raw, sql, params)

    def quick_select(
        self,
        table: str,
        criteria: Criteria,
        *,
        columns: Sequence[str] | None = None,
        order_by: OrderBy | None = None,
        limit: int | None = None,
        offset: int | None = None,
        many: bool = False,
    ) -> dict[str, Any] | list[dict[str, Any]] | None:
        """Fetch the first matching row, or every matching row when ``many`` is set."""

        sql, params = self._builder.build_select(
            table,
            criteria,
            columns=columns,
            order_by=order_by,
            limit=limit,
            offset=offset,
        )
        result = self.execute(sql, params)
        if many:
            return list(result.rows)
        return result.first()

    def quick_lookup(self, table: str, criteria: Criteria, column: str) -> Any:
        """Return a single column of the first matching row."""

        row = self.quick_select(table, criteria, columns=[column])
        if row is None:
            return None
        return next(iter(row.values()))

    def quick_count(self, table: str, criteria: Criteria) -> int:
        sql, params = self._builder.build_count(table, criteria)
        result = self.execute(sql, params)
        row = result.first()
        if not row:
            return 0
        return int(next(iter(row.values())))

    def quick_insert(self, table: str, row: Mapping[str, Any]) -> int:
        """Insert one row; the generated key, when reported, lands in ``last_insert_id``."""

        sql, params = self._builder.build_insert(table, row)
        result = self.execute(sql, params)
        self.last_insert_id = result.lastrowid
        return result.rowcount

    def quick_update(self, table: str, criteria: Criteria, changes: Mapping[str, Any]) -> int:
        sql, params = self._builder.build_update(table, criteria, changes)
        return self.execute(sql, params).rowcount

    def quick_delete(self, table: str, criteria: Criteria) -> int:
        sql, params = self._builder.build_delete(table, criteria)
        return self.execute(sql, params).rowcount


__all__ = ["Handle"]
