"""
Native type parsing and column classification for Cross-Database Dumper.

Every dialect reports column types differently (SQLite keeps whatever was
declared, MySQL reports ``COLUMN_TYPE`` such as ``tinyint(1)``, PostgreSQL
reports ``character varying`` plus a separate length). All of them are
reduced here to a single :class:`ColumnKind` so that the schema exporter and
the value converter share one view of what a column holds.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .models import ColumnInfo, Dialect

# utf8mb4 uses up to 4 bytes per character; 767 // 4 == 191
MYSQL_KEY_PREFIX = 191


class ColumnKind(Enum):
    """Closed set of column categories understood by the dumper."""
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DECIMAL = "decimal"
    FLOAT = "float"
    STRING = "string"
    TEXT = "text"
    TIMESTAMP = "timestamp"
    DATE = "date"
    TIME = "time"
    BINARY = "binary"
    JSON = "json"
    ARRAY = "array"
    ENUM = "enum"
    UUID = "uuid"
    UNKNOWN = "unknown"

    @property
    def is_numeric(self) -> bool:
        return self in (ColumnKind.INTEGER, ColumnKind.DECIMAL, ColumnKind.FLOAT)

    @property
    def is_temporal(self) -> bool:
        return self in (ColumnKind.TIMESTAMP, ColumnKind.DATE)


BOOLEAN_TYPES = {'bool', 'boolean'}
INTEGER_TYPES = {
    'int', 'integer', 'tinyint', 'smallint', 'mediumint', 'bigint',
    'int2', 'int4', 'int8', 'serial', 'smallserial', 'bigserial',
}
DECIMAL_TYPES = {'decimal', 'numeric', 'dec', 'fixed', 'money'}
FLOAT_TYPES = {'float', 'double', 'double precision', 'real', 'float4', 'float8'}
STRING_TYPES = {
    'varchar', 'character varying', 'char', 'character', 'nchar', 'nvarchar',
    'varying character', 'native character', 'bpchar',
}
TEXT_TYPES = {'text', 'tinytext', 'mediumtext', 'longtext', 'clob', 'citext', 'string'}
TIMESTAMP_TYPES = {
    'timestamp', 'datetime', 'timestamptz',
    'timestamp with time zone', 'timestamp without time zone',
}
DATE_TYPES = {'date'}
TIME_TYPES = {'time', 'timetz', 'time with time zone', 'time without time zone'}
BINARY_TYPES = {'blob', 'tinyblob', 'mediumblob', 'longblob', 'bytea', 'binary', 'varbinary'}
JSON_TYPES = {'json', 'jsonb'}
ENUM_TYPES = {'enum', 'set', 'user-defined'}
UUID_TYPES = {'uuid'}

_KIND_BY_BASE: dict[str, ColumnKind] = {}
for _types, _kind in (
    (INTEGER_TYPES, ColumnKind.INTEGER),
    (DECIMAL_TYPES, ColumnKind.DECIMAL),
    (FLOAT_TYPES, ColumnKind.FLOAT),
    (STRING_TYPES, ColumnKind.STRING),
    (TEXT_TYPES, ColumnKind.TEXT),
    (TIMESTAMP_TYPES, ColumnKind.TIMESTAMP),
    (DATE_TYPES, ColumnKind.DATE),
    (TIME_TYPES, ColumnKind.TIME),
    (BINARY_TYPES, ColumnKind.BINARY),
    (JSON_TYPES, ColumnKind.JSON),
    (ENUM_TYPES, ColumnKind.ENUM),
    (UUID_TYPES, ColumnKind.UUID),
    (BOOLEAN_TYPES, ColumnKind.BOOLEAN),
):
    for _name in _types:
        _KIND_BY_BASE[_name] = _kind

NATIVE_TYPE_PATTERN = re.compile(
    r'^([a-z_][a-z0-9_ \-]*?)\s*(?:\((.*)\))?\s*((?:unsigned|signed|zerofill|\s)*)$',
    re.DOTALL
)


@dataclass
class NativeType:
    """A parsed native type string such as ``varchar(500)`` or ``int(11) unsigned``."""
    base: str
    args: list[str] = field(default_factory=list)
    raw_args: Optional[str] = None
    is_array: bool = False
    unsigned: bool = False

    @property
    def length(self) -> Optional[int]:
        if len(self.args) == 1 and self.args[0].isdigit():
            return int(self.args[0])
        return None


def parse_native_type(native: Optional[str]) -> NativeType:
    """Split a native type string into base name, arguments and modifiers."""
    text = (native or '').strip().lower()
    is_array = text.endswith('[]')
    if is_array:
        text = text[:-2].strip()

    match = NATIVE_TYPE_PATTERN.match(text)
    if not match:
        return NativeType(base=text, is_array=is_array)

    base = ' '.join(match.group(1).split())
    raw_args = match.group(2)
    args = []
    if raw_args is not None and base not in ENUM_TYPES:
        args = [arg.strip() for arg in raw_args.split(',') if arg.strip()]

    return NativeType(
        base=base,
        args=args,
        raw_args=raw_args,
        is_array=is_array,
        unsigned='unsigned' in (match.group(3) or '')
    )


def column_length(column: ColumnInfo) -> Optional[int]:
    """Declared length from metadata, falling back to the type string."""
    if column.max_length is not None:
        return int(column.max_length)
    return parse_native_type(column.type).length


def is_boolean_column(column: ColumnInfo, source: Optional[Dialect] = None) -> bool:
    """
    Decide whether a column holds booleans.

    PostgreSQL (and SQLite when declared so) report a real boolean type, and
    for a PostgreSQL source that exact metadata is all that is trusted.
    MySQL reports ``tinyint(1)`` or ``bit(1)``. For integer columns whose
    metadata marks a length of 1 the boolean is inferred, since SQLite keeps
    no other trace of it.
    """
    native = parse_native_type(column.type)
    if native.is_array:
        return False
    if native.base in BOOLEAN_TYPES:
        return True
    if source == Dialect.POSTGRESQL:
        return False

    length = column_length(column)
    if native.base == 'bit':
        return length in (None, 1)
    return native.base in INTEGER_TYPES and length == 1


def classify_native_type(native: NativeType) -> ColumnKind:
    """Map a parsed type to a ColumnKind, using SQLite affinity rules as fallback."""
    if native.is_array:
        return ColumnKind.ARRAY

    kind = _KIND_BY_BASE.get(native.base)
    if kind is not None:
        return kind
    if native.base == 'bit':
        return ColumnKind.BINARY

    # SQLite type affinity (https://www.sqlite.org/datatype3.html)
    base = native.base
    if 'int' in base:
        return ColumnKind.INTEGER
    if 'char' in base or 'clob' in base or 'text' in base:
        return ColumnKind.TEXT if native.length is None else ColumnKind.STRING
    if 'blob' in base:
        return ColumnKind.BINARY
    if 'real' in base or 'floa' in base or 'doub' in base:
        return ColumnKind.FLOAT
    return ColumnKind.UNKNOWN


def classify_column(column: ColumnInfo, source: Optional[Dialect] = None) -> ColumnKind:
    """Classify a column into one ColumnKind."""
    if is_boolean_column(column, source):
        return ColumnKind.BOOLEAN
    return classify_native_type(parse_native_type(column.type))


def needs_key_prefix(column: ColumnInfo) -> bool:
    """True when MySQL must index this column with a prefix length."""
    kind = classify_column(column)
    if kind in (ColumnKind.TEXT, ColumnKind.BINARY, ColumnKind.UNKNOWN):
        native = parse_native_type(column.type)
        return native.base not in ('binary', 'varbinary') or (column_length(column) or 0) > MYSQL_KEY_PREFIX
    if kind == ColumnKind.STRING:
        length = column_length(column)
        return length is None or length > MYSQL_KEY_PREFIX
    return False
