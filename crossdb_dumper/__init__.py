"""
Cross-Database Dumper
=====================
Dumps a SQLite, MySQL or PostgreSQL database as one SQL script that
recreates it on any of the three, with support for:
- Dependency-ordered tables, indexes and views
- Chunked multi-row INSERTs with conflict handling
- Identity/sequence resets after load
- Split and compressed output
"""

from .config import ConfigLoader
from .connection import DatabaseConnection
from .database_dumper import DatabaseDumper, generate_sql_dump
from .dependency import get_table_dependencies, topological_sort
from .errors import (
    DumpError,
    IntrospectionError,
    UnsupportedConstructError,
    ValueConversionError,
)
from .main import main
from .models import (
    ColumnInfo,
    ConflictMode,
    Dialect,
    DumpDiagnostics,
    DumpOptions,
    DumpStats,
    DumpWarning,
    ForeignKeyInfo,
    IndexInfo,
    TableSchema,
    TableStats,
    ViewInfo,
    WarningKind,
)
from .mysql_connection import MySQLConnection
from .postgresql_connection import PostgreSQLConnection
from .schema_exporter import (
    convert_data_type,
    get_create_index_statement,
    get_create_table_statement,
    get_create_view_statement,
)
from .sequence_reset import generate_sequence_resets
from .sqlite_connection import SQLiteConnection
from .table_dumper import TableDumper, generate_bulk_insert
from .utils import create_connection, print_dry_run_info, setup_logging
from .value_converter import convert_value

__version__ = "1.0.0"

__all__ = [
    # Main entry point
    "main",
    "generate_sql_dump",
    # Core classes
    "ConfigLoader",
    "DatabaseConnection",
    "DatabaseDumper",
    "MySQLConnection",
    "PostgreSQLConnection",
    "SQLiteConnection",
    "TableDumper",
    # Dump stages
    "convert_data_type",
    "convert_value",
    "generate_bulk_insert",
    "generate_sequence_resets",
    "get_create_index_statement",
    "get_create_table_statement",
    "get_create_view_statement",
    "get_table_dependencies",
    "topological_sort",
    # Models
    "ColumnInfo",
    "ConflictMode",
    "Dialect",
    "DumpDiagnostics",
    "DumpOptions",
    "DumpStats",
    "DumpWarning",
    "ForeignKeyInfo",
    "IndexInfo",
    "TableSchema",
    "TableStats",
    "ViewInfo",
    "WarningKind",
    # Errors
    "DumpError",
    "IntrospectionError",
    "UnsupportedConstructError",
    "ValueConversionError",
    # Utilities
    "create_connection",
    "print_dry_run_info",
    "setup_logging",
]
