"""
Unit tests for value_converter.py
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from crossdb_dumper.errors import ValueConversionError
from crossdb_dumper.models import ColumnInfo, Dialect, DumpDiagnostics, WarningKind
from crossdb_dumper.value_converter import (
    ValueKind,
    classify_value,
    convert_value,
    format_timedelta,
    to_utc_datetime,
)


def convert(value, native_type, source=Dialect.SQLITE, target=Dialect.POSTGRESQL, diagnostics=None, **column):
    columns = {"c": ColumnInfo(name="c", type=native_type, **column)}
    return convert_value(value, "c", columns, source, target, diagnostics, table="t")


class TestClassifyValue:
    """Tests for classify_value."""

    @pytest.mark.parametrize("value,kind", [
        (None, ValueKind.NULL),
        (True, ValueKind.BOOL),
        (1, ValueKind.NUMBER),
        (Decimal("1.5"), ValueKind.NUMBER),
        ("x", ValueKind.STRING),
        (b"x", ValueKind.BYTES),
        (date(2024, 1, 1), ValueKind.DATE),
        ({"a": 1}, ValueKind.JSON),
        ([1, 2], ValueKind.ARRAY),
        (timedelta(seconds=1), ValueKind.OTHER),
    ])
    def test_kinds(self, value, kind):
        assert classify_value(value) == kind


class TestBooleanConversion:
    """Boolean columns render as 1/0 or TRUE/FALSE."""

    @pytest.mark.parametrize("target,expected", [
        (Dialect.MYSQL, "1"),
        (Dialect.SQLITE, "1"),
        (Dialect.POSTGRESQL, "TRUE"),
    ])
    def test_one_is_true(self, target, expected):
        assert convert(1, "BOOLEAN", target=target) == expected

    def test_zero_is_false(self):
        assert convert(0, "BOOLEAN") == "FALSE"
        assert convert(0, "BOOLEAN", target=Dialect.MYSQL) == "0"

    def test_length_one_integer_is_boolean(self):
        assert convert(1, "INTEGER", max_length=1) == "TRUE"

    def test_mysql_tinyint_one(self):
        assert convert(1, "tinyint(1)", source=Dialect.MYSQL) == "TRUE"

    def test_postgresql_bool_to_mysql(self):
        assert convert(True, "boolean", source=Dialect.POSTGRESQL, target=Dialect.MYSQL) == "1"

    def test_string_values(self):
        assert convert("false", "BOOLEAN") == "FALSE"
        assert convert("t", "BOOLEAN") == "TRUE"

    def test_bit_bytes(self):
        assert convert(b"\x01", "bit(1)", source=Dialect.MYSQL) == "TRUE"
        assert convert(b"\x00", "bit(1)", source=Dialect.MYSQL) == "FALSE"


class TestTimestampConversion:
    """Timestamp columns render as UTC 'YYYY-MM-DD HH:MM:SS'."""

    def test_epoch_seconds_postgresql(self):
        assert convert(1700000000, "DATETIME") == "'2023-11-14 22:13:20'::timestamp"

    def test_epoch_seconds_mysql(self):
        assert convert(1700000000, "DATETIME", target=Dialect.MYSQL) == "'2023-11-14 22:13:20'"

    def test_epoch_milliseconds(self):
        assert convert(1700000000000, "DATETIME", target=Dialect.SQLITE) == "'2023-11-14 22:13:20'"

    def test_iso_string_utc(self):
        assert convert("2023-11-14T22:13:20Z", "DATETIME", target=Dialect.MYSQL) == "'2023-11-14 22:13:20'"

    def test_iso_string_with_offset(self):
        assert convert("2023-11-14T23:13:20+01:00", "DATETIME", target=Dialect.MYSQL) == "'2023-11-14 22:13:20'"

    def test_formatted_string_passes_through(self):
        assert convert("2023-11-14 22:13:20", "DATETIME") == "'2023-11-14 22:13:20'::timestamp"

    def test_naive_datetime(self):
        value = datetime(2024, 2, 29, 12, 30, 45)
        assert convert(value, "timestamp", source=Dialect.MYSQL, target=Dialect.MYSQL) == "'2024-02-29 12:30:45'"

    def test_aware_datetime_converted_to_utc(self):
        value = datetime(2024, 1, 1, 2, 0, tzinfo=timezone(timedelta(hours=2)))
        assert convert(value, "timestamptz", source=Dialect.POSTGRESQL, target=Dialect.MYSQL) == "'2024-01-01 00:00:00'"

    def test_out_of_range_epoch_falls_back(self):
        diagnostics = DumpDiagnostics()
        result = convert(10 ** 20, "DATETIME", target=Dialect.MYSQL, diagnostics=diagnostics)
        assert result == f"'{10 ** 20}'"
        assert len(diagnostics.of_kind(WarningKind.VALUE_FALLBACK)) == 1

    def test_impossible_iso_date_falls_back(self):
        diagnostics = DumpDiagnostics()
        result = convert("2023-02-30T10:00:00", "DATETIME", target=Dialect.MYSQL, diagnostics=diagnostics)

        assert result == "'2023-02-30T10:00:00'"
        warnings = diagnostics.of_kind(WarningKind.VALUE_FALLBACK)
        assert len(warnings) == 1
        assert warnings[0].column == "c"


class TestToUtcDatetime:
    """Tests for to_utc_datetime."""

    def test_non_iso_string(self):
        assert to_utc_datetime("yesterday") is None

    def test_date(self):
        assert to_utc_datetime(date(2024, 1, 2)) == datetime(2024, 1, 2)

    def test_impossible_date_raises_conversion_error(self):
        with pytest.raises(ValueConversionError) as exc_info:
            to_utc_datetime("2023-02-30T10:00:00")
        assert exc_info.value.fallback == "2023-02-30T10:00:00"


class TestBinaryConversion:
    """Binary values are hex encoded."""

    def test_mysql(self):
        assert convert(b"\x01\xff", "BLOB", target=Dialect.MYSQL) == "X'01ff'"

    def test_sqlite(self):
        assert convert(bytearray(b"\x00"), "BLOB", target=Dialect.SQLITE) == "X'00'"

    def test_postgresql(self):
        assert convert(b"\x01\xff", "BLOB") == "'\\x01ff'::bytea"

    def test_bytes_in_text_column(self):
        assert convert(b"ab", "TEXT", target=Dialect.MYSQL) == "X'6162'"


class TestJsonConversion:
    """JSON columns."""

    def test_dict_mysql(self):
        assert convert({"a": 1}, "json", source=Dialect.MYSQL, target=Dialect.MYSQL) == "'{\"a\": 1}'"

    def test_valid_text_postgresql(self):
        assert convert('{"theme": "dark"}', "JSON") == "'{\"theme\": \"dark\"}'::jsonb"

    def test_bytes_decoded_as_json_text(self):
        assert convert(b'{"a": 1}', "jsonb", source=Dialect.POSTGRESQL) == "'{\"a\": 1}'::jsonb"

    def test_invalid_text_becomes_json_string(self):
        diagnostics = DumpDiagnostics()
        result = convert("not json", "JSON", target=Dialect.MYSQL, diagnostics=diagnostics)

        assert result == "'\"not json\"'"
        warnings = diagnostics.of_kind(WarningKind.VALUE_FALLBACK)
        assert len(warnings) == 1
        assert warnings[0].table == "t"
        assert warnings[0].column == "c"


class TestArrayConversion:
    """PostgreSQL array columns."""

    def test_postgresql_array(self):
        assert convert([1, 2], "integer[]", source=Dialect.POSTGRESQL) == "ARRAY[1,2]"

    def test_nested_strings(self):
        assert convert(["a", "b'c"], "text[]", source=Dialect.POSTGRESQL) == "ARRAY['a','b''c']"

    def test_empty_array(self):
        assert convert([], "integer[]", source=Dialect.POSTGRESQL) == "'{}'"

    def test_array_to_mysql_json(self):
        assert convert([1, 2], "integer[]", source=Dialect.POSTGRESQL, target=Dialect.MYSQL) == "'[1, 2]'"

    def test_non_sequence_falls_back(self):
        diagnostics = DumpDiagnostics()
        result = convert(5, "integer[]", source=Dialect.POSTGRESQL, diagnostics=diagnostics)
        assert result == "'5'"
        assert diagnostics


class TestNumericConversion:
    """Numeric columns."""

    def test_integer(self):
        assert convert(42, "INTEGER") == "42"

    def test_decimal(self):
        assert convert(Decimal("12.50"), "decimal(10,2)", source=Dialect.MYSQL) == "12.50"

    def test_bool_into_integer(self):
        assert convert(True, "INTEGER") == "1"

    def test_infinity_postgresql(self):
        assert convert(float("inf"), "REAL") == "'Infinity'"
        assert convert(float("nan"), "REAL") == "'NaN'"

    def test_infinity_mysql_falls_back_to_null(self):
        diagnostics = DumpDiagnostics()
        assert convert(float("-inf"), "REAL", target=Dialect.MYSQL, diagnostics=diagnostics) == "NULL"
        assert len(diagnostics) == 1


class TestOtherConversions:
    """Strings, enums, NULL and unknown columns."""

    def test_null(self):
        assert convert(None, "INTEGER") == "NULL"

    def test_string_escaping(self):
        assert convert("O'Brien", "TEXT") == "'O''Brien'"
        assert convert("a\\b", "TEXT", target=Dialect.MYSQL) == "'a\\\\b'"

    def test_enum(self):
        assert convert("active", "enum('active','closed')", source=Dialect.MYSQL) == "'active'"

    def test_enum_bytes_decoded(self):
        assert convert(b"closed", "enum('active','closed')", source=Dialect.MYSQL, target=Dialect.MYSQL) == "'closed'"

    def test_time_column_timedelta(self):
        value = timedelta(hours=1, minutes=2, seconds=3)
        assert convert(value, "time", source=Dialect.MYSQL, target=Dialect.MYSQL) == "'01:02:03'"

    def test_unknown_column_uses_python_type(self):
        result = convert_value(3, "missing", {}, Dialect.SQLITE, Dialect.MYSQL)
        assert result == "3"


class TestFormatTimedelta:
    """Tests for format_timedelta."""

    def test_negative(self):
        assert format_timedelta(timedelta(hours=-1, minutes=-30)) == "-01:30:00"

    def test_over_a_day(self):
        assert format_timedelta(timedelta(hours=30)) == "30:00:00"
