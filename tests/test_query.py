"""Tests for the quick_* statement builders."""

from __future__ import annotations

import pytest

from sqlhandle.errors import EmptyCriteriaError
from sqlhandle.query import (
    Comparison,
    QueryBuilder,
    ge,
    gt,
    in_,
    is_null,
    like,
    lt,
    ne,
    not_in,
    not_null,
)


@pytest.fixture
def builder() -> QueryBuilder:
    return QueryBuilder("ansi")


def test_select_by_id(builder: QueryBuilder) -> None:
    sql, params = builder.build_select("users", {"id": 42})

    assert sql == 'SELECT * FROM "users" WHERE "id" = ?'
    assert params == [42]


def test_select_without_criteria_has_no_where(builder: QueryBuilder) -> None:
    sql, params = builder.build_select("users", {})

    assert sql == 'SELECT * FROM "users"'
    assert params == []


def test_select_placeholders_follow_criteria_order(builder: QueryBuilder) -> None:
    criteria = {"b": 2, "a": 1, "c": 3}

    sql, params = builder.build_select("t", criteria)

    assert sql.count("?") == len(criteria)
    assert sql.endswith('WHERE "b" = ? AND "a" = ? AND "c" = ?')
    assert params == [2, 1, 3]


def test_select_comparison_operators(builder: QueryBuilder) -> None:
    sql, params = builder.build_select(
        "widgets",
        {
            "colour": ne("red"),
            "size": gt(3),
            "weight": ge(1),
            "price": lt(10),
            "name": like("foo%"),
            "id": in_([1, 2, 3]),
            "deleted_at": is_null(),
            "owner": not_null(),
        },
    )

    assert sql == (
        'SELECT * FROM "widgets" WHERE "colour" <> ? AND "size" > ? AND "weight" >= ?'
        ' AND "price" < ? AND "name" LIKE ? AND "id" IN (?, ?, ?)'
        ' AND "deleted_at" IS NULL AND "owner" IS NOT NULL'
    )
    assert params == ["red", 3, 1, 10, "foo%", 1, 2, 3]


def test_plain_values_map_to_null_and_in_tests(builder: QueryBuilder) -> None:
    sql, params = builder.build_select("t", {"a": None, "b": ("x", "y"), "c": ne(None)})

    assert sql == 'SELECT * FROM "t" WHERE "a" IS NULL AND "b" IN (?, ?) AND "c" IS NOT NULL'
    assert params == ["x", "y"]


def test_empty_in_lists_never_bind(builder: QueryBuilder) -> None:
    sql, params = builder.build_select("t", {"a": in_([]), "b": not_in([])})

    assert sql == 'SELECT * FROM "t" WHERE 1 = 0 AND 1 = 1'
    assert params == []


def test_select_columns_order_limit_offset(builder: QueryBuilder) -> None:
    sql, params = builder.build_select(
        "users",
        {"active": True},
        columns=["id", "email"],
        order_by=["name", {"desc": "created"}],
        limit=10,
        offset=20,
    )

    assert sql == (
        'SELECT "id", "email" FROM "users" WHERE "active" = ?'
        ' ORDER BY "name", "created" DESC LIMIT 10 OFFSET 20'
    )
    assert params == [True]


def test_sqlite_offset_without_limit() -> None:
    sql, _ = QueryBuilder("sqlite").build_select("t", {}, offset=5)

    assert sql == 'SELECT * FROM "t" LIMIT -1 OFFSET 5'


def test_mssql_pages_with_offset_fetch() -> None:
    sql, _ = QueryBuilder("mssql").build_select("t", {}, limit=5)

    assert sql == "SELECT * FROM [t] ORDER BY (SELECT NULL) OFFSET 0 ROWS FETCH NEXT 5 ROWS ONLY"


def test_oracle_pages_with_offset_fetch() -> None:
    sql, _ = QueryBuilder("oracle").build_select("t", {}, order_by="id", limit=5, offset=10)
    offset_only, _ = QueryBuilder("oracle").build_select("t", {}, offset=10)

    assert sql == 'SELECT * FROM "t" ORDER BY "id" OFFSET 10 ROWS FETCH NEXT 5 ROWS ONLY'
    assert offset_only == 'SELECT * FROM "t" OFFSET 10 ROWS'


def test_order_by_rejects_unknown_direction(builder: QueryBuilder) -> None:
    with pytest.raises(ValueError):
        builder.build_select("t", {}, order_by={"sideways": "a"})


def test_insert_uses_row_key_order(builder: QueryBuilder) -> None:
    sql, params = builder.build_insert("widgets", {"name": "Foo", "size": 3})

    assert sql == 'INSERT INTO "widgets" ("name", "size") VALUES (?, ?)'
    assert params == ["Foo", 3]


def test_insert_rejects_empty_row(builder: QueryBuilder) -> None:
    with pytest.raises(ValueError):
        builder.build_insert("widgets", {})


def test_update_params_set_then_where(builder: QueryBuilder) -> None:
    sql, params = builder.build_update("widgets", {"id": 42}, {"foo": "Bar"})

    assert sql == 'UPDATE "widgets" SET "foo" = ? WHERE "id" = ?'
    assert params == ["Bar", 42]


@pytest.mark.parametrize("table", ["widgets", "users", "schema.t"])
def test_update_and_delete_refuse_empty_criteria(builder: QueryBuilder, table: str) -> None:
    with pytest.raises(EmptyCriteriaError):
        builder.build_update(table, {}, {"foo": "Bar"})
    with pytest.raises(EmptyCriteriaError):
        builder.build_delete(table, {})


def test_update_requires_changes(builder: QueryBuilder) -> None:
    with pytest.raises(ValueError):
        builder.build_update("widgets", {"id": 1}, {})


def test_delete_and_count(builder: QueryBuilder) -> None:
    assert builder.build_delete("widgets", {"id": 7}) == ('DELETE FROM "widgets" WHERE "id" = ?', [7])
    assert builder.build_count("widgets", {}) == ('SELECT COUNT(*) FROM "widgets"', [])


def test_numeric_paramstyle_counts_across_clauses() -> None:
    builder = QueryBuilder("postgresql", paramstyle="numeric")

    sql, params = builder.build_update("widgets", {"id": in_([1, 2])}, {"foo": "Bar", "size": 2})

    assert sql == 'UPDATE "widgets" SET "foo" = $1, "size" = $2 WHERE "id" IN ($3, $4)'
    assert params == ["Bar", 2, 1, 2]


def test_format_paramstyle_with_mysql_quoting() -> None:
    builder = QueryBuilder("mysql", paramstyle="format")

    sql, params = builder.build_select("users", {"id": 42})

    assert sql == "SELECT * FROM `users` WHERE `id` = %s"
    assert params == [42]


def test_unknown_paramstyle_and_comparison_are_rejected() -> None:
    with pytest.raises(ValueError):
        QueryBuilder("ansi", paramstyle="named")
    with pytest.raises(ValueError):
        Comparison("between", (1, 2))
