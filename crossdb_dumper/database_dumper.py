"""
Main dump orchestration for Cross-Database Dumper.

A dump script is laid out as a single linear sequence:

    header, FK checks off, BEGIN,
    CREATE TABLE*, CREATE INDEX*, CREATE VIEW*,
    INSERT* (per table, dependency order),
    sequence resets,
    COMMIT, FK checks on
"""

import gzip
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, TextIO

from .config import ConfigLoader
from .connection import DatabaseConnection
from .dependency import get_table_dependencies, topological_sort
from .models import Dialect, DumpDiagnostics, DumpOptions, DumpStats, TableSchema
from .schema_exporter import (
    get_create_index_statement,
    get_create_table_statement,
    get_create_view_statement,
)
from .sequence_reset import generate_sequence_resets
from .table_dumper import TableDumper
from .utils import create_connection, part_filename, split_statements

GENERATOR_NAME = 'crossdb-dumper'
SECTION_RULE = '-- ' + '=' * 44

USAGE_HINTS = {
    Dialect.MYSQL: 'mysql mydb < dump.sql',
    Dialect.POSTGRESQL: 'psql -d mydb -f dump.sql',
    Dialect.SQLITE: 'sqlite3 mydb.db < dump.sql',
}


def generate_header(
    target: Dialect,
    source: Optional[Dialect] = None,
    part: Optional[tuple[int, int]] = None
) -> str:
    """Comment block opening every dump file."""
    lines = [
        f"-- SQL Dump generated by {GENERATOR_NAME}",
        f"-- Date: {datetime.now(timezone.utc).isoformat()}",
    ]
    if source is not None:
        lines.append(f"-- Source: {source.value.upper()}")
    lines.append(f"-- Target: {target.value.upper()}")
    if part is not None:
        lines.append(f"-- Part: {part[0]} of {part[1]}")
    lines.extend([
        "--",
        "-- This dump is wrapped in a transaction.",
        "-- On error, all changes will be rolled back automatically.",
        "--",
        "-- Usage (empty database):",
        f"--   {USAGE_HINTS[target]}",
        "",
    ])
    return '\n'.join(lines)


def generate_foreign_key_controls(target: Dialect, enable: bool) -> str:
    if target == Dialect.MYSQL:
        return 'SET FOREIGN_KEY_CHECKS=1;' if enable else 'SET FOREIGN_KEY_CHECKS=0;'
    if target == Dialect.POSTGRESQL:
        return 'SET session_replication_role = DEFAULT;' if enable else 'SET session_replication_role = replica;'
    return 'PRAGMA foreign_keys = ON;' if enable else 'PRAGMA foreign_keys = OFF;'


def generate_transaction_control(target: Dialect, start: bool) -> str:
    if not start:
        return 'COMMIT;'
    if target == Dialect.MYSQL:
        return 'START TRANSACTION;'
    if target == Dialect.POSTGRESQL:
        return 'BEGIN;'
    return 'BEGIN TRANSACTION;'


def _section(title: str) -> list[str]:
    return [SECTION_RULE, f"-- {title}", SECTION_RULE, '']


def resolve_tables(connection: DatabaseConnection, options: DumpOptions) -> list[str]:
    """Requested tables (or all tables) minus the exclusion patterns."""
    tables = list(options.tables) if options.tables else connection.get_tables()
    if options.exclude_tables:
        original_count = len(tables)
        tables = [t for t in tables if not options.is_excluded(t)]
        excluded_count = original_count - len(tables)
        if excluded_count > 0:
            logging.info(f"Excluded {excluded_count} table(s) matching exclusion patterns")
    return tables


def _schema_section(
    connection: DatabaseConnection,
    schemas: list[TableSchema],
    target: Dialect,
    options: DumpOptions,
    diagnostics: DumpDiagnostics
) -> list[str]:
    source = connection.dialect
    lines = _section('Schema (CREATE TABLE statements)')
    for schema in schemas:
        lines.append(f"-- Table: {schema.name}")
        lines.append(get_create_table_statement(schema, target, source, diagnostics))
        lines.append('')

    index_lines = []
    for schema in schemas:
        for index in schema.indexes:
            statement = get_create_index_statement(index, schema, target, diagnostics)
            if statement is not None:
                index_lines.extend([f"-- Index: {index.name} on {schema.name}", statement, ''])
    if index_lines:
        lines.extend(_section('Indexes'))
        lines.extend(index_lines)

    # Views may reference any table, so they only belong in a full dump
    if options.tables is None:
        view_lines = []
        for name in connection.get_views():
            if options.is_excluded(name):
                continue
            statement = get_create_view_statement(connection.get_view(name), source, target, diagnostics)
            if statement is not None:
                view_lines.extend([f"-- View: {name}", statement, ''])
        if view_lines:
            lines.extend(_section('Views'))
            lines.extend(view_lines)

    return lines


def generate_dump_body(
    connection: DatabaseConnection,
    target: Dialect | str,
    options: Optional[DumpOptions] = None,
    diagnostics: Optional[DumpDiagnostics] = None,
    stats: Optional[DumpStats] = None
) -> list[str]:
    """
    Generate everything between the transaction controls.

    Returns a list of statements, comment lines and blank separators. Any
    IntrospectionError aborts the whole dump.
    """
    target = Dialect.parse(target)
    options = options or DumpOptions()
    diagnostics = diagnostics if diagnostics is not None else DumpDiagnostics()
    stats = stats if stats is not None else DumpStats()

    tables = resolve_tables(connection, options)
    graph = get_table_dependencies(connection, tables)
    ordered = topological_sort(tables, graph, diagnostics)
    logging.info(f"Dumping {len(ordered)} table(s) in dependency order")
    logging.debug(f"Table order: {', '.join(ordered)}")

    # All metadata is read before any output is produced
    schemas = [connection.get_table_schema(table) for table in ordered]

    lines = []
    if options.include_schema:
        lines.extend(_schema_section(connection, schemas, target, options, diagnostics))

    if options.chunk_size > 0:
        lines.extend(_section('Data (INSERT statements)'))
        dumper = TableDumper(
            connection,
            target,
            chunk_size=options.chunk_size,
            conflict_mode=options.conflict_mode,
            diagnostics=diagnostics
        )
        for schema in schemas:
            lines.append(f"-- Data for table: {schema.name}")
            table_stats = dumper.dump_table(schema, lines.append)
            if table_stats.rows_dumped == 0:
                lines.append(f"-- No data in table {schema.name}")
            lines.append('')

            stats.tables.append(table_stats)
            stats.total_rows += table_stats.rows_dumped

        resets = generate_sequence_resets(
            connection, schemas, target, schema_created=options.include_schema
        )
        if resets:
            lines.append('-- Reset sequences')
            lines.extend(resets)
            lines.append('')

    stats.total_tables = len(schemas)
    return lines


def assemble_script(
    body: list[str],
    target: Dialect,
    source: Optional[Dialect] = None,
    include_header: bool = True,
    part: Optional[tuple[int, int]] = None
) -> str:
    """Wrap a dump body in header, FK controls and a transaction."""
    lines = []
    if include_header:
        lines.append(generate_header(target, source, part))
    lines.extend([
        generate_foreign_key_controls(target, False),
        '',
        generate_transaction_control(target, True),
        '',
    ])
    lines.extend(body)
    lines.extend([
        generate_transaction_control(target, False),
        '',
        generate_foreign_key_controls(target, True),
    ])
    return '\n'.join(lines) + '\n'


def generate_sql_dump(
    connection: DatabaseConnection,
    target: Dialect | str,
    options: Optional[DumpOptions] = None,
    diagnostics: Optional[DumpDiagnostics] = None
) -> str:
    """
    Export the source database as one SQL script for the target dialect.

    Non-fatal conditions (FK cycles, skipped views, value fallbacks) are
    recorded on ``diagnostics`` when it is given.
    """
    target = Dialect.parse(target)
    options = options or DumpOptions()
    body = generate_dump_body(connection, target, options, diagnostics)
    return assemble_script(body, target, connection.dialect, options.include_header)


class DatabaseDumper:
    """Runs a configured dump and writes it to the output file(s)."""

    def __init__(self, config: ConfigLoader):
        self.config = config
        self.source_settings = config.get_source()
        self.target = Dialect.parse(config.get_target())
        self.output_settings = config.get_output_settings()
        self.options = DumpOptions.from_configs(config.get_dump_settings())
        self.stats = DumpStats()

    def run(self) -> DumpStats:
        """Run the dump and return its statistics."""
        self.stats.target = self.target.value

        with create_connection(self.source_settings) as conn:
            self.stats.source = conn.description
            logging.info(f"Generating {self.target.value} dump from {conn.description}")
            body = generate_dump_body(conn, self.target, self.options, self.stats.diagnostics, self.stats)
            source = conn.dialect

        self.stats.files = self._write_output(body, source)
        return self.stats

    def _write_output(self, body: list[str], source: Dialect) -> list[str]:
        """Write the script to stdout, one file, or numbered part files."""
        output_file = self.output_settings.get('file')
        if not output_file:
            sys.stdout.write(assemble_script(body, self.target, source, self.options.include_header))
            return []

        max_statements = self.output_settings.get('max_statements')
        parts = split_statements(body, int(max_statements)) if max_statements else [body]

        files = []
        for number, part in enumerate(parts, start=1):
            if len(parts) > 1:
                path = Path(part_filename(output_file, number))
                script = assemble_script(
                    part, self.target, source, self.options.include_header, (number, len(parts))
                )
            else:
                path = Path(output_file)
                script = assemble_script(part, self.target, source, self.options.include_header)

            path, file_handle = self._open_output_file(path)
            try:
                file_handle.write(script)
            finally:
                file_handle.close()

            logging.info(f"Wrote {path}")
            files.append(str(path))
        return files

    def _open_output_file(self, output_path: Path) -> tuple[Path, TextIO]:
        """Open output file with optional compression."""
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if self.output_settings.get('compress', False):
            output_path = Path(str(output_path) + '.gz')
            file_handle = gzip.open(output_path, 'wt', encoding='utf-8')
        else:
            file_handle = open(output_path, 'w', encoding='utf-8')

        return output_path, file_handle
