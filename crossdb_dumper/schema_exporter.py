"""
CREATE TABLE / INDEX / VIEW generation for Cross-Database Dumper.
"""

import logging
import re
from typing import Optional

from .column_types import (
    MYSQL_KEY_PREFIX,
    ColumnKind,
    NativeType,
    classify_column,
    column_length,
    needs_key_prefix,
    parse_native_type,
)
from .errors import UnsupportedConstructError
from .identifiers import convert_identifier_quotes, quote_identifier, quote_string
from .models import (
    ColumnInfo,
    Dialect,
    DumpDiagnostics,
    ForeignKeyInfo,
    IndexInfo,
    TableSchema,
    ViewInfo,
    WarningKind,
)

MYSQL_TABLE_OPTIONS = 'ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci'

# Longest VARCHAR that still fits a utf8mb4 row; longer ones become TEXT
MYSQL_MAX_VARCHAR = 16383

EPOCH_DEFAULTS = {
    Dialect.MYSQL: '(CAST(UNIX_TIMESTAMP() AS SIGNED))',
    Dialect.POSTGRESQL: 'EXTRACT(epoch FROM NOW())::INTEGER',
    Dialect.SQLITE: "(CAST(strftime('%s', 'now') AS INTEGER))",
}

CURRENT_DATE_DEFAULTS = {
    Dialect.MYSQL: '(CURRENT_DATE)',
    Dialect.POSTGRESQL: 'CURRENT_DATE',
    Dialect.SQLITE: 'CURRENT_DATE',
}

EPOCH_DEFAULT_PATTERN = re.compile(
    r"unixepoch\s*\(|strftime\s*\(\s*['\"]%s['\"]|unix_timestamp\s*\(|extract\s*\(\s*epoch",
    re.IGNORECASE
)
NOW_DEFAULT_PATTERN = re.compile(
    r"^(current_timestamp(\s*\(\s*\d*\s*\))?|now\s*\(\s*\)|localtimestamp|"
    r"datetime\s*\(\s*'now'\s*\)|strftime\s*\(.*'now'.*\))$",
    re.IGNORECASE | re.DOTALL
)
CURRENT_DATE_PATTERN = re.compile(r"^(current_date|date\s*\(\s*'now'\s*\))$", re.IGNORECASE)
POSTGRES_CAST_PATTERN = re.compile(r"^(.*?)::[a-z_][a-z0-9_ ]*(\(\d+(,\s*\d+)?\))?(\[\])?$", re.IGNORECASE | re.DOTALL)
NUMBER_PATTERN = re.compile(r'^[+-]?\d+(\.\d+)?([eE][+-]?\d+)?$')
WHOLE_FLOAT_PATTERN = re.compile(r'^([+-]?\d+)\.0+$')
FUNCTION_CALL_PATTERN = re.compile(r'^[a-z_][a-z0-9_.]*\s*\(', re.IGNORECASE)
BOOLEAN_LITERALS = {
    'true': True, 'false': False, "'t'": True, "'f'": False,
    '1': True, '0': False, "'1'": True, "'0'": False, 'b\'1\'': True, 'b\'0\'': False,
}

STRING_LITERAL_PATTERN = re.compile(r"('(?:[^']|'')*')")
# col = 1 in a view body; PostgreSQL has no boolean = integer operator
INTEGER_COMPARISON_PATTERN = re.compile(r'(?<![:\w"])(\w+|"[^"]+")\s*(=|<>|!=)\s*([01])(?![\w.])')

# Functions whose presence in a view body ties it to its source dialect
DIALECT_SPECIFIC_FUNCTIONS = {
    Dialect.SQLITE: re.compile(
        r"\b(unixepoch|strftime|julianday|datetime|group_concat|ifnull|printf|instr|"
        r"total|typeof|iif|json_extract)\s*\(",
        re.IGNORECASE
    ),
    Dialect.MYSQL: re.compile(
        r"\b(unix_timestamp|from_unixtime|date_format|str_to_date|group_concat|ifnull|"
        r"if|datediff|date_add|date_sub|json_unquote|json_extract)\s*\(",
        re.IGNORECASE
    ),
    Dialect.POSTGRESQL: re.compile(
        r"::|\b(string_agg|array_agg|to_char|to_timestamp|date_trunc|now|age|"
        r"jsonb_\w+|regexp_\w+)\s*\(|\bextract\s*\(\s*epoch\b|\bilike\b",
        re.IGNORECASE
    ),
}


def _integer_type(native: NativeType, target: Dialect) -> str:
    base = native.base
    if target == Dialect.SQLITE:
        return 'INTEGER'
    if base in ('bigint', 'int8', 'bigserial'):
        name = 'BIGINT'
    elif base in ('smallint', 'int2', 'smallserial'):
        name = 'SMALLINT'
    elif base == 'tinyint':
        name = 'TINYINT' if target == Dialect.MYSQL else 'SMALLINT'
    elif base == 'mediumint':
        name = 'MEDIUMINT' if target == Dialect.MYSQL else 'INTEGER'
    else:
        name = 'INT' if target == Dialect.MYSQL else 'INTEGER'

    if target == Dialect.MYSQL and native.unsigned:
        name += ' UNSIGNED'
    elif target == Dialect.POSTGRESQL and native.unsigned:
        # Widen so the full unsigned range still fits
        name = {'SMALLINT': 'INTEGER', 'INTEGER': 'BIGINT', 'BIGINT': 'NUMERIC(20)'}[name]
    return name


def _serial_type(native: NativeType) -> str:
    if native.base in ('bigint', 'int8', 'bigserial') or native.unsigned and native.base in ('int', 'integer'):
        return 'BIGSERIAL'
    if native.base in ('smallint', 'int2', 'smallserial', 'tinyint'):
        return 'SMALLSERIAL'
    return 'SERIAL'


def _decimal_type(native: NativeType, target: Dialect) -> str:
    name = 'DECIMAL' if target == Dialect.MYSQL else 'NUMERIC'
    if native.base == 'money':
        return f"{name}(19,2)"
    if native.args:
        return f"{name}({','.join(native.args)})"
    return name


def _float_type(native: NativeType, target: Dialect) -> str:
    single = native.base in ('real', 'float4', 'float')
    if target == Dialect.MYSQL:
        return 'FLOAT' if single else 'DOUBLE'
    if target == Dialect.POSTGRESQL:
        return 'REAL' if single else 'DOUBLE PRECISION'
    return 'REAL'


def _string_type(column: ColumnInfo, native: NativeType, target: Dialect) -> str:
    length = column_length(column)
    fixed = native.base in ('char', 'character', 'nchar', 'bpchar', 'native character')
    name = 'CHAR' if fixed else 'VARCHAR'
    if length is None:
        if target == Dialect.MYSQL:
            return f"{name}(255)"
        return 'TEXT' if target == Dialect.SQLITE and not fixed else name
    if target == Dialect.MYSQL and not fixed and length > MYSQL_MAX_VARCHAR:
        return 'LONGTEXT'
    return f"{name}({length})"


def _text_type(native: NativeType, target: Dialect) -> str:
    if target == Dialect.MYSQL and native.base in ('tinytext', 'mediumtext', 'longtext'):
        return native.base.upper()
    return 'TEXT'


def _binary_type(native: NativeType, target: Dialect) -> str:
    if target == Dialect.POSTGRESQL:
        return 'BYTEA'
    if target == Dialect.SQLITE:
        return 'BLOB'
    if native.base in ('binary', 'varbinary', 'bit') and native.args:
        return f"{native.base.upper()}({native.args[0]})"
    if native.base in ('tinyblob', 'mediumblob', 'longblob', 'blob'):
        return native.base.upper()
    return 'LONGBLOB'


def _array_type(native: NativeType, target: Dialect) -> str:
    if target == Dialect.MYSQL:
        return 'JSON'
    if target == Dialect.SQLITE:
        return 'TEXT'
    element = native.base + (f"({native.raw_args})" if native.raw_args is not None else '')
    try:
        return convert_data_type(ColumnInfo(name='', type=element), target, Dialect.POSTGRESQL) + '[]'
    except UnsupportedConstructError:
        return 'TEXT[]'


def convert_data_type(
    column: ColumnInfo,
    target: Dialect,
    source: Optional[Dialect] = None
) -> str:
    """
    Translate a column's native type into the target dialect.

    Raises UnsupportedConstructError when the type is not recognized and
    cannot be kept verbatim.
    """
    native = parse_native_type(column.type)
    kind = classify_column(column, source)

    if kind == ColumnKind.BOOLEAN:
        return 'TINYINT(1)' if target == Dialect.MYSQL else 'BOOLEAN'
    if kind == ColumnKind.INTEGER:
        return _integer_type(native, target)
    if kind == ColumnKind.DECIMAL:
        return _decimal_type(native, target)
    if kind == ColumnKind.FLOAT:
        return _float_type(native, target)
    if kind == ColumnKind.STRING:
        return _string_type(column, native, target)
    if kind == ColumnKind.TEXT:
        return _text_type(native, target)
    if kind == ColumnKind.TIMESTAMP:
        return 'TIMESTAMP' if target == Dialect.POSTGRESQL else 'DATETIME'
    if kind == ColumnKind.DATE:
        return 'DATE'
    if kind == ColumnKind.TIME:
        return 'TIME'
    if kind == ColumnKind.BINARY:
        return _binary_type(native, target)
    if kind == ColumnKind.JSON:
        return {Dialect.MYSQL: 'JSON', Dialect.POSTGRESQL: 'JSONB'}.get(target, 'TEXT')
    if kind == ColumnKind.ARRAY:
        return _array_type(native, target)
    if kind == ColumnKind.ENUM:
        if target == Dialect.MYSQL:
            if source == Dialect.MYSQL and native.raw_args is not None:
                return column.type
            return 'VARCHAR(255)'
        return 'TEXT'
    if kind == ColumnKind.UUID:
        return {Dialect.MYSQL: 'CHAR(36)', Dialect.POSTGRESQL: 'UUID'}.get(target, 'TEXT')

    if not column.type.strip():
        # SQLite allows columns without a declared type
        return 'TEXT'
    if source == target:
        return column.type
    raise UnsupportedConstructError(
        f"Unsupported column type '{column.type}' for {target.value}", column.type
    )


def _strip_wrapping_parens(text: str) -> str:
    while text.startswith('(') and text.endswith(')'):
        depth = 0
        for i, char in enumerate(text):
            depth += char == '('
            depth -= char == ')'
            if depth == 0 and i < len(text) - 1:
                return text
        text = text[1:-1].strip()
    return text


def _unquote(text: str) -> Optional[str]:
    """Inner value of a '...' or "..." literal, None when not a literal."""
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        quote = text[0]
        return text[1:-1].replace(quote * 2, quote)
    return None


def convert_default_value(
    default,
    target: Dialect,
    kind: Optional[ColumnKind] = None
) -> Optional[str]:
    """
    Translate a column DEFAULT expression.

    Returns None when the default must be omitted (sequences, SERIAL columns).
    Raises UnsupportedConstructError for function defaults with no known
    equivalent.
    """
    if default is None:
        return None
    if isinstance(default, bool):
        return ('TRUE' if default else 'FALSE') if target == Dialect.POSTGRESQL else ('1' if default else '0')
    if isinstance(default, (int, float)):
        default = str(default)

    text = str(default).strip()
    lower = text.lower()
    if not text:
        return None
    if 'nextval' in lower:
        return None
    if EPOCH_DEFAULT_PATTERN.search(lower):
        return EPOCH_DEFAULTS[target]

    text = _strip_wrapping_parens(text)
    while True:
        match = POSTGRES_CAST_PATTERN.match(text)
        if not match or "'" in text[match.end(1):]:
            break
        text = _strip_wrapping_parens(match.group(1).strip())
    lower = text.lower()

    if NOW_DEFAULT_PATTERN.match(lower):
        return 'CURRENT_TIMESTAMP'
    if CURRENT_DATE_PATTERN.match(lower):
        return CURRENT_DATE_DEFAULTS[target]
    if lower == 'null':
        return 'NULL'

    if kind == ColumnKind.BOOLEAN and lower in BOOLEAN_LITERALS:
        value = BOOLEAN_LITERALS[lower]
        if target == Dialect.POSTGRESQL:
            return 'TRUE' if value else 'FALSE'
        return '1' if value else '0'
    if lower in ('true', 'false'):
        if target == Dialect.POSTGRESQL:
            return lower.upper()
        return '1' if lower == 'true' else '0'

    if NUMBER_PATTERN.match(text):
        whole = WHOLE_FLOAT_PATTERN.match(text)
        return whole.group(1) if whole else text

    literal = _unquote(text)
    if literal is not None:
        return quote_string(literal, target)

    if FUNCTION_CALL_PATTERN.match(text):
        raise UnsupportedConstructError(f"Unsupported default expression {text}", text)

    # MySQL reports string defaults without quotes
    return quote_string(text, target)


def _mysql_allows_default(sql_type: str) -> bool:
    upper = sql_type.upper()
    return not any(word in upper for word in ('TEXT', 'BLOB', 'JSON'))


def _key_column(
    name: str,
    schema: TableSchema,
    target: Dialect,
    diagnostics: Optional[DumpDiagnostics] = None
) -> str:
    """Quoted key part, with a prefix length where MySQL needs one."""
    quoted = quote_identifier(name, target)
    if target != Dialect.MYSQL:
        return quoted

    column = schema.get_column(name)
    if column is None:
        if diagnostics is not None:
            diagnostics.add(
                WarningKind.UNPREFIXED_KEY,
                f"Key part '{name}' of table '{schema.name}' has no column metadata; left unprefixed",
                table=schema.name, column=name
            )
        return quoted
    if needs_key_prefix(column):
        return f"{quoted}({MYSQL_KEY_PREFIX})"
    return quoted


def _key_columns(names, schema, target, diagnostics=None) -> str:
    return ', '.join(_key_column(name, schema, target, diagnostics) for name in names)


def _is_inline_sqlite_key(schema: TableSchema, column: ColumnInfo, target: Dialect) -> bool:
    return (
        target == Dialect.SQLITE
        and column.is_auto_increment
        and schema.primary_key == [column.name]
    )


def build_column_definition(
    column: ColumnInfo,
    schema: TableSchema,
    target: Dialect,
    source: Optional[Dialect] = None,
    diagnostics: Optional[DumpDiagnostics] = None
) -> str:
    """Build one column line of a CREATE TABLE statement."""
    kind = classify_column(column, source)
    try:
        sql_type = convert_data_type(column, target, source)
    except UnsupportedConstructError as e:
        if diagnostics is not None:
            diagnostics.add(
                WarningKind.UNSUPPORTED_CONSTRUCT,
                f"{schema.name}.{column.name}: {e}; using TEXT",
                table=schema.name, column=column.name
            )
        sql_type = 'TEXT'
        kind = ColumnKind.TEXT

    auto_increment = column.is_auto_increment and kind == ColumnKind.INTEGER
    parts = [quote_identifier(column.name, target)]

    if auto_increment and target == Dialect.POSTGRESQL:
        parts.append(_serial_type(parse_native_type(column.type)))
    elif _is_inline_sqlite_key(schema, column, target):
        parts.append('INTEGER PRIMARY KEY AUTOINCREMENT')
    else:
        parts.append(sql_type)

    if not column.nullable or column.is_primary_key:
        parts.append('NOT NULL')

    if not auto_increment and column.default is not None:
        try:
            default = convert_default_value(column.default, target, kind)
        except UnsupportedConstructError as e:
            default = None
            if diagnostics is not None:
                diagnostics.add(
                    WarningKind.UNSUPPORTED_CONSTRUCT,
                    f"{schema.name}.{column.name}: {e}; default dropped",
                    table=schema.name, column=column.name
                )
        if default is not None:
            if target != Dialect.MYSQL or _mysql_allows_default(sql_type):
                parts.append(f"DEFAULT {default}")
            else:
                logging.debug(f"Skipping DEFAULT on {schema.name}.{column.name} ({sql_type})")

    if auto_increment and target == Dialect.MYSQL:
        parts.append('AUTO_INCREMENT')

    if column.is_unique and not column.is_primary_key:
        if not (target == Dialect.MYSQL and needs_key_prefix(column)):
            parts.append('UNIQUE')

    return ' '.join(parts)


def build_foreign_key_definition(fk: ForeignKeyInfo, target: Dialect) -> str:
    """FOREIGN KEY clause, single or composite, keeping referential actions."""
    columns = ', '.join(quote_identifier(col, target) for col in fk.columns)
    ref_columns = ', '.join(quote_identifier(col, target) for col in fk.referenced_columns)
    definition = (
        f"FOREIGN KEY ({columns}) REFERENCES "
        f"{quote_identifier(fk.referenced_table, target)}({ref_columns})"
    )
    if fk.on_delete and fk.on_delete.upper() != 'NO ACTION':
        definition += f" ON DELETE {fk.on_delete.upper()}"
    if fk.on_update and fk.on_update.upper() != 'NO ACTION':
        definition += f" ON UPDATE {fk.on_update.upper()}"
    return definition


def get_create_table_statement(
    schema: TableSchema,
    target: Dialect | str,
    source: Optional[Dialect | str] = None,
    diagnostics: Optional[DumpDiagnostics] = None
) -> str:
    """Generate CREATE TABLE IF NOT EXISTS for the target dialect."""
    target = Dialect.parse(target)
    source = Dialect.parse(source) if source is not None else None

    definitions = [
        build_column_definition(column, schema, target, source, diagnostics)
        for column in schema.columns
    ]

    inline_key = any(_is_inline_sqlite_key(schema, col, target) for col in schema.columns)
    if schema.primary_key and not inline_key:
        definitions.append(
            f"PRIMARY KEY ({_key_columns(schema.primary_key, schema, target, diagnostics)})"
        )

    if target == Dialect.MYSQL:
        # Inline UNIQUE cannot carry a prefix length
        for column in schema.columns:
            if column.is_unique and not column.is_primary_key and needs_key_prefix(column):
                definitions.append(f"UNIQUE ({_key_column(column.name, schema, target)})")

    for unique_columns in schema.unique_constraints:
        definitions.append(f"UNIQUE ({_key_columns(unique_columns, schema, target, diagnostics)})")

    for fk in schema.foreign_keys:
        definitions.append(build_foreign_key_definition(fk, target))

    body = ',\n  '.join(definitions)
    statement = f"CREATE TABLE IF NOT EXISTS {quote_identifier(schema.name, target)} (\n  {body}\n)"
    if target == Dialect.MYSQL:
        statement += f" {MYSQL_TABLE_OPTIONS}"
    return statement + ';'


def get_create_index_statement(
    index: IndexInfo,
    schema: TableSchema,
    target: Dialect | str,
    diagnostics: Optional[DumpDiagnostics] = None
) -> Optional[str]:
    """
    Generate CREATE INDEX for a secondary index.

    Expression indexes cannot be reproduced from column metadata and are
    skipped (returns None).
    """
    target = Dialect.parse(target)
    if any(col is None for col in index.columns):
        if diagnostics is not None:
            diagnostics.add(
                WarningKind.UNSUPPORTED_CONSTRUCT,
                f"Index '{index.name}' on '{index.table}' uses an expression; skipped",
                table=index.table
            )
        return None

    unique = 'UNIQUE ' if index.is_unique else ''
    if_not_exists = '' if target == Dialect.MYSQL else 'IF NOT EXISTS '
    return (
        f"CREATE {unique}INDEX {if_not_exists}{quote_identifier(index.name, target)} "
        f"ON {quote_identifier(index.table, target)} "
        f"({_key_columns(index.columns, schema, target, diagnostics)});"
    )


def is_portable_view(view: ViewInfo, source: Dialect, target: Dialect) -> bool:
    """False when the view body calls functions only the source dialect has."""
    if source == target:
        return True
    return not DIALECT_SPECIFIC_FUNCTIONS[source].search(view.definition)


def cast_integer_comparisons(definition: str) -> str:
    """Rewrite col = 0/1 as col::integer = 0/1 outside string literals."""
    pieces = STRING_LITERAL_PATTERN.split(definition)
    # Odd indexes are the captured literals
    for i in range(0, len(pieces), 2):
        pieces[i] = INTEGER_COMPARISON_PATTERN.sub(r'\1::integer \2 \3', pieces[i])
    return ''.join(pieces)


def get_create_view_statement(
    view: ViewInfo,
    source: Dialect | str,
    target: Dialect | str,
    diagnostics: Optional[DumpDiagnostics] = None
) -> Optional[str]:
    """
    Generate CREATE VIEW, or None when the view is not portable.

    Identifier quoting is rewritten, and a PostgreSQL target coming from
    another dialect gets integer casts on 0/1 comparisons so columns that
    became BOOLEAN still compare. Other expressions are kept as written.
    """
    source = Dialect.parse(source)
    target = Dialect.parse(target)

    if not is_portable_view(view, source, target):
        if diagnostics is not None:
            diagnostics.add(
                WarningKind.SKIPPED_VIEW,
                f"View '{view.name}' uses {source.value}-specific functions; skipped",
                table=view.name
            )
        return None

    definition = convert_identifier_quotes(view.definition.strip().rstrip(';'), target)
    if target == Dialect.POSTGRESQL and source != target:
        definition = cast_integer_comparisons(definition)
    name = quote_identifier(view.name, target)
    if target == Dialect.SQLITE:
        return f"CREATE VIEW IF NOT EXISTS {name} AS {definition};"
    return f"CREATE OR REPLACE VIEW {name} AS {definition};"
