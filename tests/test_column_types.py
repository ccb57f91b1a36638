"""
Unit tests for column_types.py
"""

import pytest

from crossdb_dumper.column_types import (
    ColumnKind,
    classify_column,
    column_length,
    is_boolean_column,
    needs_key_prefix,
    parse_native_type,
)
from crossdb_dumper.models import ColumnInfo, Dialect


class TestParseNativeType:
    """Tests for parse_native_type."""

    def test_varchar_length(self):
        native = parse_native_type("VARCHAR(500)")
        assert native.base == "varchar"
        assert native.args == ["500"]
        assert native.length == 500

    def test_unsigned_modifier(self):
        native = parse_native_type("int(10) unsigned")
        assert native.base == "int"
        assert native.unsigned is True

    def test_bigint_unsigned_without_args(self):
        native = parse_native_type("BIGINT UNSIGNED")
        assert native.base == "bigint"
        assert native.unsigned is True

    def test_multi_word_base(self):
        native = parse_native_type("character varying(20)")
        assert native.base == "character varying"
        assert native.length == 20

    def test_decimal_args(self):
        native = parse_native_type("decimal(10,2)")
        assert native.args == ["10", "2"]
        assert native.length is None

    def test_array(self):
        native = parse_native_type("integer[]")
        assert native.base == "integer"
        assert native.is_array is True

    def test_enum_keeps_raw_args(self):
        native = parse_native_type("enum('a','b')")
        assert native.base == "enum"
        assert native.args == []
        assert native.raw_args == "'a','b'"

    def test_empty(self):
        native = parse_native_type(None)
        assert native.base == ""
        assert native.length is None


class TestColumnLength:
    """Tests for column_length."""

    def test_prefers_metadata(self):
        assert column_length(ColumnInfo(name="c", type="varchar(20)", max_length=30)) == 30

    def test_falls_back_to_type(self):
        assert column_length(ColumnInfo(name="c", type="varchar(20)")) == 20


class TestIsBooleanColumn:
    """Tests for is_boolean_column."""

    def test_declared_boolean(self):
        assert is_boolean_column(ColumnInfo(name="b", type="BOOLEAN"), Dialect.SQLITE)

    def test_mysql_tinyint_one(self):
        assert is_boolean_column(ColumnInfo(name="b", type="tinyint(1)"), Dialect.MYSQL)

    def test_mysql_bit_one(self):
        assert is_boolean_column(ColumnInfo(name="b", type="bit(1)"), Dialect.MYSQL)

    def test_integer_with_length_one_metadata(self):
        assert is_boolean_column(ColumnInfo(name="b", type="INTEGER", max_length=1), Dialect.SQLITE)

    def test_plain_integer(self):
        assert not is_boolean_column(ColumnInfo(name="n", type="INTEGER"), Dialect.SQLITE)

    def test_postgresql_trusts_exact_metadata(self):
        col = ColumnInfo(name="n", type="smallint", max_length=1)
        assert not is_boolean_column(col, Dialect.POSTGRESQL)
        assert is_boolean_column(ColumnInfo(name="b", type="boolean"), Dialect.POSTGRESQL)

    def test_boolean_array_is_not_boolean(self):
        assert not is_boolean_column(ColumnInfo(name="b", type="boolean[]"), Dialect.POSTGRESQL)


class TestClassifyColumn:
    """Tests for classify_column."""

    @pytest.mark.parametrize("native_type,kind", [
        ("INTEGER", ColumnKind.INTEGER),
        ("bigserial", ColumnKind.INTEGER),
        ("numeric(10,2)", ColumnKind.DECIMAL),
        ("double precision", ColumnKind.FLOAT),
        ("VARCHAR(20)", ColumnKind.STRING),
        ("TEXT", ColumnKind.TEXT),
        ("DATETIME", ColumnKind.TIMESTAMP),
        ("timestamp with time zone", ColumnKind.TIMESTAMP),
        ("date", ColumnKind.DATE),
        ("time", ColumnKind.TIME),
        ("BLOB", ColumnKind.BINARY),
        ("bytea", ColumnKind.BINARY),
        ("jsonb", ColumnKind.JSON),
        ("text[]", ColumnKind.ARRAY),
        ("enum('a','b')", ColumnKind.ENUM),
        ("user-defined", ColumnKind.ENUM),
        ("uuid", ColumnKind.UUID),
        ("", ColumnKind.UNKNOWN),
    ])
    def test_known_types(self, native_type, kind):
        assert classify_column(ColumnInfo(name="c", type=native_type)) == kind

    @pytest.mark.parametrize("native_type,kind", [
        ("UNSIGNED BIG INT", ColumnKind.INTEGER),
        ("NATIVE CHARACTER(70)", ColumnKind.STRING),
        ("FLOATING POINT", ColumnKind.INTEGER),
        ("FLOATY", ColumnKind.FLOAT),
        ("SOMEBLOB", ColumnKind.BINARY),
    ])
    def test_sqlite_affinity_fallback(self, native_type, kind):
        assert classify_column(ColumnInfo(name="c", type=native_type)) == kind

    def test_boolean_wins_over_integer(self):
        assert classify_column(ColumnInfo(name="c", type="tinyint(1)"), Dialect.MYSQL) == ColumnKind.BOOLEAN


class TestNeedsKeyPrefix:
    """Tests for needs_key_prefix."""

    @pytest.mark.parametrize("native_type,expected", [
        ("VARCHAR(500)", True),
        ("VARCHAR(191)", False),
        ("varchar", True),
        ("TEXT", True),
        ("BLOB", True),
        ("binary(16)", False),
        ("INTEGER", False),
        ("char(36)", False),
    ])
    def test_prefix(self, native_type, expected):
        assert needs_key_prefix(ColumnInfo(name="k", type=native_type)) is expected
