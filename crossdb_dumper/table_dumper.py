"""
Table data dumping for Cross-Database Dumper.

Rows are rendered as multi-row INSERT statements, one statement per chunk.
"""

import contextlib
import itertools
import logging
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Sequence

from .connection import DatabaseConnection
from .identifiers import quote_identifier, quote_identifiers
from .models import (
    ColumnInfo,
    ConflictMode,
    Dialect,
    DumpDiagnostics,
    TableSchema,
    TableStats,
    WarningKind,
)
from .value_converter import convert_value


def iter_chunks(rows: Iterable[Any], chunk_size: int) -> Iterator[list[Any]]:
    """Split rows into lists of at most chunk_size."""
    iterator = iter(rows)
    while True:
        chunk = list(itertools.islice(iterator, chunk_size))
        if not chunk:
            return
        yield chunk


def _warn_missing_primary_key(table: str, diagnostics: Optional[DumpDiagnostics]) -> None:
    message = f"Table '{table}' has no primary key; replace mode falls back to plain INSERT"
    if diagnostics is not None:
        diagnostics.add(WarningKind.UNSUPPORTED_CONSTRUCT, message, table=table)
    else:
        logging.warning(message)


def _insert_prefix(table: str, columns: list[str], dialect: Dialect, conflict_mode: ConflictMode) -> str:
    verb = 'INSERT INTO'
    if conflict_mode == ConflictMode.IGNORE:
        if dialect == Dialect.MYSQL:
            verb = 'INSERT IGNORE INTO'
        elif dialect == Dialect.SQLITE:
            verb = 'INSERT OR IGNORE INTO'
    return f"{verb} {quote_identifier(table, dialect)} ({quote_identifiers(columns, dialect)}) VALUES\n"


def _conflict_clause(
    columns: list[str],
    dialect: Dialect,
    conflict_mode: ConflictMode,
    primary_keys: list[str]
) -> str:
    if conflict_mode == ConflictMode.IGNORE:
        return '\nON CONFLICT DO NOTHING' if dialect == Dialect.POSTGRESQL else ''
    if conflict_mode != ConflictMode.REPLACE:
        return ''

    update_columns = [col for col in columns if col not in primary_keys]
    if dialect == Dialect.MYSQL:
        # ON DUPLICATE KEY UPDATE needs at least one assignment
        assignments = [
            f"{quote_identifier(col, dialect)} = VALUES({quote_identifier(col, dialect)})"
            for col in update_columns
        ] or [f"{quote_identifier(primary_keys[0], dialect)} = {quote_identifier(primary_keys[0], dialect)}"]
        return '\nON DUPLICATE KEY UPDATE\n  ' + ',\n  '.join(assignments)

    conflict_target = f"ON CONFLICT ({quote_identifiers(primary_keys, dialect)})"
    if not update_columns:
        return f"\n{conflict_target} DO NOTHING"
    excluded = 'EXCLUDED' if dialect == Dialect.POSTGRESQL else 'excluded'
    assignments = [
        f"{quote_identifier(col, dialect)} = {excluded}.{quote_identifier(col, dialect)}"
        for col in update_columns
    ]
    return f"\n{conflict_target} DO UPDATE SET\n  " + ',\n  '.join(assignments)


def generate_bulk_insert(
    table: str,
    rows: Iterable[Sequence[Any] | Mapping[str, Any]],
    chunk_size: int,
    dialect: Dialect | str,
    columns: list[ColumnInfo],
    conflict_mode: ConflictMode | str = ConflictMode.FAIL,
    primary_keys: Optional[list[str]] = None,
    source_dialect: Optional[Dialect | str] = None,
    diagnostics: Optional[DumpDiagnostics] = None
) -> list[str]:
    """
    Generate INSERT statements for a table, one per chunk of rows.

    Args:
        table: Table name.
        rows: Row tuples in column order, or mappings keyed by column name.
        chunk_size: Rows per statement; 0 disables data export.
        dialect: Target dialect.
        columns: Column metadata in source schema order.
        conflict_mode: fail, ignore or replace.
        primary_keys: Key columns used by replace mode.
        source_dialect: Dialect the rows were read from (defaults to target).
        diagnostics: Collector for value and conflict-mode fallbacks.

    Returns:
        List of complete INSERT statements.
    """
    if chunk_size <= 0:
        return []

    dialect = Dialect.parse(dialect)
    source_dialect = Dialect.parse(source_dialect) if source_dialect is not None else dialect
    conflict_mode = ConflictMode(conflict_mode) if isinstance(conflict_mode, str) else conflict_mode
    primary_keys = list(primary_keys or [])

    column_names = [col.name for col in columns]
    column_map = {col.name: col for col in columns}

    if conflict_mode == ConflictMode.REPLACE and not primary_keys:
        _warn_missing_primary_key(table, diagnostics)
        conflict_mode = ConflictMode.FAIL

    statements = []
    for chunk in iter_chunks(rows, chunk_size):
        value_lines = []
        for row in chunk:
            values = [row[name] for name in column_names] if isinstance(row, Mapping) else row
            literals = [
                convert_value(value, name, column_map, source_dialect, dialect, diagnostics, table)
                for name, value in zip(column_names, values)
            ]
            value_lines.append(f"  ({', '.join(literals)})")

        statements.append(
            _insert_prefix(table, column_names, dialect, conflict_mode)
            + ',\n'.join(value_lines)
            + _conflict_clause(column_names, dialect, conflict_mode, primary_keys)
            + ';'
        )

    return statements


class TableDumper:
    """Handles dumping of individual tables."""

    def __init__(
        self,
        connection: DatabaseConnection,
        target: Dialect,
        chunk_size: int = 100,
        conflict_mode: ConflictMode = ConflictMode.FAIL,
        diagnostics: Optional[DumpDiagnostics] = None
    ):
        self.connection = connection
        self.target = target
        self.chunk_size = chunk_size
        self.conflict_mode = conflict_mode
        self.diagnostics = diagnostics

    def dump_table(self, schema: TableSchema, write: Callable[[str], None]) -> TableStats:
        """
        Stream a table's rows from the source and write its INSERT statements.

        Rows are read in pages of chunk_size, so one page becomes exactly one
        statement.
        """
        stats = TableStats(table=schema.name)
        if self.chunk_size <= 0:
            return stats

        logging.info(f"Dumping table '{schema.name}'")
        conflict_mode = self.conflict_mode
        if conflict_mode == ConflictMode.REPLACE and not schema.primary_key:
            _warn_missing_primary_key(schema.name, self.diagnostics)
            conflict_mode = ConflictMode.FAIL

        pages = self.connection.iter_rows(
            schema.name,
            schema.column_names,
            self.chunk_size,
            order_by=schema.primary_key or None
        )
        # Release the cursor even when a write fails mid-table
        with contextlib.closing(pages):
            for page in pages:
                for statement in generate_bulk_insert(
                    schema.name,
                    page,
                    self.chunk_size,
                    self.target,
                    schema.columns,
                    conflict_mode=conflict_mode,
                    primary_keys=schema.primary_key,
                    source_dialect=self.connection.dialect,
                    diagnostics=self.diagnostics
                ):
                    write(statement)
                    stats.insert_statements += 1
                stats.rows_dumped += len(page)

        logging.info(f"Table '{schema.name}': {stats.rows_dumped} rows in {stats.insert_statements} statements")
        return stats
