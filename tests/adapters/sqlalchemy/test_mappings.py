from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import inspect, insert, select

from rowgraph.adapters.sqlalchemy.mappings import (
    EPOCH,
    ROW_ID,
    build_tables,
    create_all_tables,
    list_table_name,
    zero_value,
)
from rowgraph.domain.errors import SchemaDefinitionError
from rowgraph.domain.schema import SchemaCatalog
from tests.helpers.models import AllTypes, Color, catalog

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


def test_build_tables_creates_row_and_list_tables(sqlite_engine: Engine) -> None:
    tables = build_tables(catalog)
    create_all_tables(sqlite_engine, tables)

    table_names = set(inspect(sqlite_engine).get_table_names())
    assert {"Dog", "Owner", "AllTypes", "CyclicType"} <= table_names
    assert list_table_name("Owner", "dogs") in table_names
    assert list_table_name("AllTypes", "column_string_list") in table_names


def test_row_table_columns_follow_fields() -> None:
    tables = build_tables(catalog)
    all_types = tables.row_table("AllTypes")

    assert ROW_ID in all_types.c
    assert "column_object" in all_types.c
    assert "column_list" not in all_types.c
    assert all_types.c.column_long.nullable is False
    assert tables.row_table("NullTypes").c.field_long_null.nullable is True


def test_unique_and_primary_key_columns() -> None:
    tables = build_tables(catalog)

    key_column = tables.row_table("DogPrimaryKey").c.id
    email = tables.row_table("Account").c.email
    nickname = tables.row_table("Account").c.nickname
    assert key_column.unique
    assert email.unique
    assert email.nullable
    assert nickname.index


def test_fresh_row_gets_zero_values(sqlite_engine: Engine) -> None:
    tables = build_tables(catalog)
    create_all_tables(sqlite_engine, tables)
    table = tables.row_table("AllTypes")

    with sqlite_engine.begin() as connection:
        connection.execute(insert(table).values({}))
        row = connection.execute(select(table)).mappings().one()

    assert row["column_long"] == 0
    assert row["column_string"] == ""
    assert row["column_boolean"] is False
    assert row["column_date"] == EPOCH
    assert row["column_enum"] is Color.RED


def test_datetimes_are_stored_as_utc(sqlite_engine: Engine) -> None:
    tables = build_tables(catalog)
    create_all_tables(sqlite_engine, tables)
    table = tables.row_table("AllTypes")
    local = datetime(2024, 5, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))

    with sqlite_engine.begin() as connection:
        connection.execute(insert(table).values({"column_date": local}))
        stored = connection.execute(select(table.c.column_date)).scalar_one()

    assert stored == datetime(2024, 5, 1, 10, 0, tzinfo=UTC)
    assert stored.tzinfo is not None


def test_zero_value_for_enum_is_first_member() -> None:
    assert zero_value(Color) is Color.RED
    assert zero_value(float) == 0.0


def test_reserved_field_name_is_rejected() -> None:
    local = SchemaCatalog()

    @local.model
    @dataclass
    class Clash:
        _row_id: int = 0

    with pytest.raises(SchemaDefinitionError, match="reserved"):
        build_tables(local)


def test_each_build_uses_fresh_metadata() -> None:
    first = build_tables(catalog)
    second = build_tables(catalog)

    assert first.metadata is not second.metadata
    assert first.descriptor("AllTypes").model is AllTypes
