"""
Database connection contract for Cross-Database Dumper.

The dumper only reads through this interface: table, view, column,
constraint and index metadata plus a paginated row stream.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Iterator, Optional

from .errors import IntrospectionError
from .identifiers import quote_identifier, quote_identifiers
from .models import (
    ColumnInfo,
    Dialect,
    ForeignKeyInfo,
    IndexInfo,
    TableSchema,
    ViewInfo,
)

VIEW_BODY_PATTERN = re.compile(
    r'^\s*CREATE\s+(?:TEMP(?:ORARY)?\s+)?VIEW\s+(?:IF\s+NOT\s+EXISTS\s+)?.+?\s+AS\s+(.*?)\s*;?\s*$',
    re.IGNORECASE | re.DOTALL
)


def extract_view_body(create_sql: str) -> str:
    """Return the SELECT part of a CREATE VIEW statement."""
    match = VIEW_BODY_PATTERN.match(create_sql)
    if not match:
        return create_sql.strip().rstrip(';')
    return match.group(1)


def to_text(value: Any) -> Any:
    """Decode bytes returned by some drivers for metadata columns."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode('utf-8')
    return value


class DatabaseConnection(ABC):
    """Read-only source connection with context manager support."""

    dialect: Dialect
    PARAM = '%s'

    def __init__(self):
        self.connection = None

    def __enter__(self) -> "DatabaseConnection":
        """Context manager entry - establish connection."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close connection."""
        self.disconnect()

    @abstractmethod
    def connect(self) -> None:
        """Establish database connection."""

    def disconnect(self) -> None:
        """Close database connection."""
        if self.connection is not None:
            self.connection.close()
            self.connection = None
            logging.debug("Database connection closed")

    @property
    def description(self) -> str:
        return self.dialect.value

    def quote(self, name: str) -> str:
        return quote_identifier(name, self.dialect)

    def get_cursor(self):
        """Get a cursor for streaming large results."""
        return self.connection.cursor()

    def execute_query(self, query: str, params: Optional[tuple] = None) -> list[tuple]:
        """Execute a query and return results."""
        cursor = self.connection.cursor()
        try:
            if params:
                cursor.execute(query, params)
            else:
                cursor.execute(query)
            return cursor.fetchall()
        finally:
            cursor.close()

    @abstractmethod
    def get_tables(self) -> list[str]:
        """Get list of all user tables, sorted by name."""

    @abstractmethod
    def get_views(self) -> list[str]:
        """Get list of all views, sorted by name."""

    @abstractmethod
    def get_table_columns(self, table: str) -> list[ColumnInfo]:
        """Get column information for a table in source order."""

    @abstractmethod
    def get_primary_key(self, table: str) -> list[str]:
        """Get primary key columns in key order."""

    @abstractmethod
    def get_unique_constraints(self, table: str) -> list[list[str]]:
        """Get UNIQUE constraints (single and multi-column)."""

    @abstractmethod
    def get_foreign_keys(self, table: str) -> list[ForeignKeyInfo]:
        """Get foreign keys declared on a table."""

    @abstractmethod
    def get_indexes(self, table: str) -> list[IndexInfo]:
        """Get secondary indexes not backing a key or constraint."""

    @abstractmethod
    def get_view_definition(self, view: str) -> str:
        """Get the SELECT body of a view."""

    def get_view(self, view: str) -> ViewInfo:
        return ViewInfo(name=view, definition=self.get_view_definition(view))

    def get_table_schema(self, table: str) -> TableSchema:
        """
        Collect all metadata of a table.

        Any driver failure is raised as IntrospectionError.
        """
        try:
            columns = self.get_table_columns(table)
            if not columns:
                raise IntrospectionError(f"Table '{table}' not found or has no columns", table)

            primary_key = self.get_primary_key(table)
            unique_constraints = []
            for unique_columns in self.get_unique_constraints(table):
                if unique_columns == primary_key:
                    continue
                if len(unique_columns) == 1:
                    for col in columns:
                        if col.name == unique_columns[0]:
                            col.is_unique = True
                else:
                    unique_constraints.append(unique_columns)

            for col in columns:
                col.is_primary_key = col.name in primary_key

            schema = TableSchema(
                name=table,
                columns=columns,
                primary_key=primary_key,
                unique_constraints=unique_constraints,
                foreign_keys=self.get_foreign_keys(table),
                indexes=self.get_indexes(table)
            )
        except IntrospectionError:
            raise
        except Exception as e:
            raise IntrospectionError(f"Cannot read metadata for table '{table}': {e}", table) from e

        logging.debug(
            f"Introspected '{table}': {len(schema.columns)} columns, "
            f"{len(schema.foreign_keys)} foreign keys, {len(schema.indexes)} indexes"
        )
        return schema

    def build_select_query(
        self,
        table: str,
        columns: list[str],
        order_by: Optional[list[str]] = None
    ) -> str:
        """Build SELECT query for streaming a table."""
        query = f"SELECT {quote_identifiers(columns, self.dialect)} FROM {self.quote(table)}"
        if order_by:
            query += f" ORDER BY {quote_identifiers(order_by, self.dialect)}"
        return query

    def iter_rows(
        self,
        table: str,
        columns: list[str],
        batch_size: int,
        order_by: Optional[list[str]] = None
    ) -> Iterator[list[tuple]]:
        """Yield the rows of a table in batches of at most batch_size."""
        query = self.build_select_query(table, columns, order_by)
        logging.debug(f"Streaming '{table}' with query: {query[:200]}")

        cursor = self.get_cursor()
        try:
            cursor.execute(query)
            while True:
                batch = cursor.fetchmany(batch_size)
                if not batch:
                    break
                yield [tuple(row) for row in batch]
        finally:
            cursor.close()

    def get_max_value(self, table: str, column: str) -> Optional[int]:
        """Current maximum of a column (used for identity resets)."""
        results = self.execute_query(f"SELECT MAX({self.quote(column)}) FROM {self.quote(table)}")
        value = results[0][0] if results else None
        return int(value) if value is not None else None
