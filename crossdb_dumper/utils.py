"""
Utility functions for Cross-Database Dumper.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Optional, TextIO

from .connection import DatabaseConnection
from .models import Dialect, DumpOptions
from .mysql_connection import MySQLConnection
from .postgresql_connection import PostgreSQLConnection
from .sqlite_connection import SQLiteConnection


def setup_logging(log_settings: dict[str, Any], stream: Optional[TextIO] = None) -> None:
    """Setup logging configuration."""
    log_level = getattr(logging, log_settings.get('level', 'INFO').upper())
    log_file = log_settings.get('file')

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stdout)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def create_connection(source: dict[str, Any]) -> DatabaseConnection:
    """Create an (unopened) source connection from the `source` config section."""
    dialect = Dialect.parse(source.get('dialect', Dialect.SQLITE.value))

    if dialect == Dialect.SQLITE:
        if not source.get('path'):
            raise ValueError("SQLite source requires 'path'")
        return SQLiteConnection(source['path'])

    if dialect == Dialect.MYSQL:
        return MySQLConnection(
            host=source.get('host', 'localhost'),
            port=int(source.get('port', MySQLConnection.DEFAULT_PORT)),
            user=source.get('user', ''),
            password=source.get('password', ''),
            database=source.get('database')
        )

    return PostgreSQLConnection(
        host=source.get('host', 'localhost'),
        port=int(source.get('port', PostgreSQLConnection.DEFAULT_PORT)),
        user=source.get('user', ''),
        password=source.get('password', ''),
        database=source.get('database'),
        schema=source.get('schema', PostgreSQLConnection.DEFAULT_SCHEMA)
    )


def is_statement(line: str) -> bool:
    """True for SQL statements, False for comments and blank separators."""
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith('--')


def split_statements(lines: list[str], max_statements: int) -> list[list[str]]:
    """
    Split a dump body into parts of at most max_statements statements.

    Comments travel with the statement that follows them; trailing
    comments stay in the last part.
    """
    if max_statements < 1:
        raise ValueError(f"max_statements must be >= 1, got {max_statements}")

    parts: list[list[str]] = []
    current: list[str] = []
    pending: list[str] = []
    count = 0

    for line in lines:
        if not is_statement(line):
            # Blank separators close the previous statement, comments open the next
            if line.strip() or pending:
                pending.append(line)
            else:
                current.append(line)
            continue
        if count == max_statements:
            parts.append(current)
            current = []
            count = 0
        current.extend(pending)
        pending = []
        current.append(line)
        count += 1

    current.extend(pending)
    if current or not parts:
        parts.append(current)
    return parts


def part_filename(output_file: str, number: int) -> str:
    """dump.sql -> dump-part1.sql"""
    path = Path(output_file)
    return str(path.with_name(f"{path.stem}-part{number}{path.suffix}"))


def print_dry_run_info(
    source: dict[str, Any],
    target: str,
    options: DumpOptions,
    output_settings: dict[str, Any]
) -> None:
    """Print information about what would be dumped in dry-run mode."""
    location = source.get('path') or f"{source.get('host', 'localhost')}/{source.get('database', '')}"
    logging.info(f"Would dump {source.get('dialect')} database: {location}")
    logging.info(f"  Target dialect: {target}")

    if options.tables:
        for table in options.tables:
            logging.info(f"  - {table}")
    else:
        logging.info("  - All tables and views")

    if options.exclude_tables:
        logging.info(f"  Excluding: {', '.join(options.exclude_tables)}")

    for part in format_options_display(options):
        logging.info(f"  {part}")

    output_file = output_settings.get('file') or '<stdout>'
    if output_settings.get('max_statements'):
        output_file += f" (split every {output_settings['max_statements']} statements)"
    logging.info(f"  Output: {output_file}")


def format_options_display(options: DumpOptions) -> list[str]:
    """Format dump options for display in dry-run mode."""
    parts = []
    if not options.include_schema:
        parts.append("schema=excluded")
    if options.chunk_size == 0:
        parts.append("data=excluded")
    else:
        parts.append(f"chunk_size={options.chunk_size}")
    parts.append(f"on_conflict={options.conflict_mode.value}")
    return parts
