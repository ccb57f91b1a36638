"""
Value to SQL literal conversion for Cross-Database Dumper.

Raw driver values are first tagged with a :class:`ValueKind`; the column's
:class:`ColumnKind` then selects how that value is rendered for the target
dialect.
"""

import json
import math
import re
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from .column_types import ColumnKind, classify_column
from .errors import ValueConversionError
from .identifiers import quote_string
from .models import ColumnInfo, Dialect, DumpDiagnostics, WarningKind

# Epoch values above this are milliseconds, below it seconds
EPOCH_MS_THRESHOLD = 10 ** 10

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'

ISO_8601_PATTERN = re.compile(
    r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?$'
)

FALSE_STRINGS = {'', '0', 'false', 'f', 'no', 'n', 'off'}


class ValueKind(Enum):
    """Closed set of raw value shapes produced by the database drivers."""
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    BYTES = "bytes"
    DATE = "date"
    JSON = "json"
    ARRAY = "array"
    OTHER = "other"


def classify_value(value: Any) -> ValueKind:
    """Tag a raw driver value."""
    if value is None:
        return ValueKind.NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float, Decimal)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BYTES
    if isinstance(value, (datetime, date)):
        return ValueKind.DATE
    if isinstance(value, dict):
        return ValueKind.JSON
    if isinstance(value, (list, tuple)):
        return ValueKind.ARRAY
    return ValueKind.OTHER


def format_bool(value: bool, target: Dialect) -> str:
    if target == Dialect.POSTGRESQL:
        return 'TRUE' if value else 'FALSE'
    return '1' if value else '0'


def to_bool(value: Any) -> bool:
    """Normalize a boolean-like value to truthiness."""
    if isinstance(value, str):
        return value.strip().lower() not in FALSE_STRINGS
    if isinstance(value, (bytes, bytearray, memoryview)):
        return any(bytes(value))
    return bool(value)


def format_number(value: Any, target: Dialect) -> str:
    """Render an int, float or Decimal unquoted."""
    if isinstance(value, int):
        return str(int(value))

    finite = value.is_finite() if isinstance(value, Decimal) else math.isfinite(value)
    if finite:
        return str(value)

    if target == Dialect.POSTGRESQL:
        if isinstance(value, Decimal) and value.is_nan() or isinstance(value, float) and math.isnan(value):
            return "'NaN'"
        return "'-Infinity'" if value < 0 else "'Infinity'"
    raise ValueConversionError(f"{value} has no {target.value} representation")


def format_binary(value: Any, target: Dialect) -> str:
    """Hex-encode bytes for the target dialect."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        data = bytes(value)
    else:
        data = str(value).encode('utf-8')

    hex_string = data.hex()
    if target == Dialect.POSTGRESQL:
        return f"'\\x{hex_string}'::bytea"
    return f"X'{hex_string}'"


def format_timedelta(value: timedelta) -> str:
    """Render a duration (MySQL TIME) as [-]H:MM:SS."""
    total = int(value.total_seconds())
    sign = '-' if total < 0 else ''
    hours, remainder = divmod(abs(total), 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}"


def to_utc_datetime(value: Any) -> Optional[datetime]:
    """
    Interpret a timestamp-ish value as a UTC datetime.

    Accepts epoch seconds or milliseconds, ISO-8601 strings and date or
    datetime objects. Naive datetimes are taken as already UTC. Returns None
    for strings that are not ISO-8601.
    """
    if isinstance(value, bool):
        raise ValueConversionError(f"Boolean {value} is not a timestamp")

    if isinstance(value, (int, float, Decimal)):
        seconds = float(value)
        if abs(seconds) > EPOCH_MS_THRESHOLD:
            seconds /= 1000
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ValueConversionError(f"Epoch value {value} out of range: {e}", str(value)) from e

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if isinstance(value, str) and ISO_8601_PATTERN.match(value.strip()):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValueConversionError(f"Invalid timestamp {value!r}: {e}", str(value)) from e
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc)
        return parsed

    return None


def format_timestamp(value: Any, target: Dialect) -> str:
    """Render a timestamp literal as 'YYYY-MM-DD HH:MM:SS' (UTC)."""
    suffix = '::timestamp' if target == Dialect.POSTGRESQL else ''
    try:
        moment = to_utc_datetime(value)
    except ValueConversionError as e:
        e.fallback = quote_string(str(value), target)
        raise

    if moment is None:
        # Already formatted (or unrecognized) text passes through quoted
        return quote_string(str(value), target) + suffix
    return quote_string(moment.strftime(TIMESTAMP_FORMAT), target) + suffix


def format_json(value: Any, target: Dialect, on_fallback: Callable[[str], None]) -> str:
    """Render a JSON document, validating text that is already serialized."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        value = bytes(value).decode('utf-8', errors='replace')

    if isinstance(value, str):
        try:
            json.loads(value)
            text = value
        except ValueError:
            on_fallback(f"Invalid JSON {value[:50]!r}; stored as a JSON string")
            text = json.dumps(value)
    else:
        text = json.dumps(value, default=str)

    literal = quote_string(text, target)
    if target == Dialect.POSTGRESQL:
        return literal + '::jsonb'
    return literal


def _format_array_element(value: Any, target: Dialect) -> str:
    kind = classify_value(value)
    if kind == ValueKind.NULL:
        return 'NULL'
    if kind == ValueKind.BOOL:
        return format_bool(value, target)
    if kind == ValueKind.NUMBER:
        return format_number(value, target)
    if kind == ValueKind.STRING:
        return quote_string(value, target)
    if kind == ValueKind.ARRAY:
        return format_array(value, target)
    if kind == ValueKind.BYTES:
        return format_binary(value, target)
    if kind == ValueKind.DATE:
        return format_timestamp(value, target)
    if kind == ValueKind.JSON:
        return quote_string(json.dumps(value, default=str), target)
    return quote_string(str(value), target)


def format_array(value: Any, target: Dialect) -> str:
    """
    Render an array value.

    PostgreSQL gets an ``ARRAY[...]`` constructor with each element converted
    recursively; other targets store the array as JSON text.
    """
    if isinstance(value, str):
        return quote_string(value, target)
    if not isinstance(value, (list, tuple)):
        raise ValueConversionError(
            f"Expected a sequence for an array column, got {type(value).__name__}",
            quote_string(str(value), target)
        )

    if target != Dialect.POSTGRESQL:
        return quote_string(json.dumps(list(value), default=str), target)
    if not value:
        return "'{}'"

    try:
        return 'ARRAY[' + ','.join(_format_array_element(v, target) for v in value) + ']'
    except ValueConversionError as e:
        raise ValueConversionError(
            f"Array element could not be converted: {e}",
            quote_string(json.dumps(list(value), default=str), target)
        ) from e


def format_value(value: Any, target: Dialect) -> str:
    """Format a value from its Python type alone (no column metadata)."""
    kind = classify_value(value)
    if kind == ValueKind.NULL:
        return 'NULL'
    if kind == ValueKind.BOOL:
        return format_bool(value, target)
    if kind == ValueKind.NUMBER:
        return format_number(value, target)
    if kind == ValueKind.STRING:
        return quote_string(value, target)
    if kind == ValueKind.BYTES:
        return format_binary(value, target)
    if kind == ValueKind.DATE:
        if isinstance(value, datetime):
            return quote_string(value.strftime(TIMESTAMP_FORMAT), target)
        return quote_string(value.isoformat(), target)
    if kind in (ValueKind.JSON, ValueKind.ARRAY):
        return quote_string(json.dumps(value, default=str), target)
    if isinstance(value, timedelta):
        return quote_string(format_timedelta(value), target)
    if isinstance(value, time):
        return quote_string(value.isoformat(), target)
    return quote_string(str(value), target)


def _convert_numeric(value: Any, target: Dialect) -> str:
    kind = classify_value(value)
    if kind == ValueKind.NUMBER:
        return format_number(value, target)
    if kind == ValueKind.BOOL:
        return '1' if value else '0'
    return format_value(value, target)


def _convert_enum(value: Any, target: Dialect) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        value = bytes(value).decode('utf-8', errors='replace')
    return quote_string(str(value), target)


def convert_value(
    value: Any,
    column_name: str,
    columns: Mapping[str, ColumnInfo],
    source: Dialect | str,
    target: Dialect | str,
    diagnostics: Optional[DumpDiagnostics] = None,
    table: Optional[str] = None
) -> str:
    """
    Convert one raw value into a literal for the target dialect.

    Conversion problems never raise: the value is rendered as a best-effort
    string and a ``value_fallback`` diagnostic is recorded.
    """
    if value is None:
        return 'NULL'

    source = Dialect.parse(source)
    target = Dialect.parse(target)
    column = columns.get(column_name)
    if column is None:
        return format_value(value, target)

    def record_fallback(message: str) -> None:
        if diagnostics is not None:
            location = f"{table}.{column_name}" if table else column_name
            diagnostics.add(
                WarningKind.VALUE_FALLBACK, f"{location}: {message}",
                table=table, column=column_name
            )

    kind = classify_column(column, source)
    try:
        if kind == ColumnKind.BOOLEAN:
            return format_bool(to_bool(value), target)
        if kind.is_temporal:
            return format_timestamp(value, target)
        # JSON and enum drivers may hand back undecoded bytes
        if kind == ColumnKind.JSON:
            return format_json(value, target, record_fallback)
        if kind == ColumnKind.ENUM:
            return _convert_enum(value, target)
        if kind == ColumnKind.BINARY or classify_value(value) == ValueKind.BYTES:
            return format_binary(value, target)
        if kind == ColumnKind.ARRAY:
            return format_array(value, target)
        if kind.is_numeric:
            return _convert_numeric(value, target)
        return format_value(value, target)
    except ValueConversionError as e:
        record_fallback(str(e))
        return e.fallback
