"""
MySQL source connection for Cross-Database Dumper.
"""

import logging
from typing import Optional

import mysql.connector
from mysql.connector import Error as MySQLError

from .connection import DatabaseConnection, to_text
from .errors import IntrospectionError
from .models import ColumnInfo, Dialect, ForeignKeyInfo, IndexInfo


class MySQLConnection(DatabaseConnection):
    """Manages MySQL database connections with context manager support."""

    dialect = Dialect.MYSQL
    DEFAULT_PORT = 3306
    DEFAULT_CHARSET = 'utf8mb4'

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        database: Optional[str] = None
    ):
        super().__init__()
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database

    @property
    def description(self) -> str:
        return f"mysql://{self.host}:{self.port}/{self.database or ''}"

    def connect(self) -> None:
        """Establish database connection."""
        try:
            self.connection = mysql.connector.connect(
                host=self.host,
                port=self.port,
                user=self.user,
                password=self.password,
                database=self.database,
                charset=self.DEFAULT_CHARSET,
                use_unicode=True
            )
            logging.info(f"Connected to {self.host}:{self.port}/{self.database or 'N/A'}")
        except MySQLError as e:
            logging.error(f"Failed to connect to database: {e}")
            raise

    def disconnect(self) -> None:
        """Close database connection."""
        if self.connection and self.connection.is_connected():
            self.connection.close()
            logging.debug("Database connection closed")
        self.connection = None

    def get_cursor(self, buffered: bool = False):
        """Get a cursor for streaming large results.

        Args:
            buffered: If False (default), rows are read from the server as they
                      are fetched instead of being loaded into memory at once.
        """
        return self.connection.cursor(buffered=buffered)

    def execute_query(self, query: str, params: Optional[tuple] = None) -> list[tuple]:
        """Execute a query and return results."""
        cursor = self.connection.cursor(buffered=True)
        try:
            cursor.execute(query, params)
            return [tuple(to_text(v) for v in row) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def _list_tables(self, table_type: str) -> list[str]:
        results = self.execute_query(
            "SELECT TABLE_NAME FROM information_schema.TABLES "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_TYPE = %s ORDER BY TABLE_NAME",
            (table_type,)
        )
        return [row[0] for row in results]

    def get_tables(self) -> list[str]:
        """Get list of all tables in the current database."""
        return self._list_tables('BASE TABLE')

    def get_views(self) -> list[str]:
        return self._list_tables('VIEW')

    def get_table_columns(self, table: str) -> list[ColumnInfo]:
        """Get column information for a table."""
        results = self.execute_query(
            "SELECT COLUMN_NAME, COLUMN_TYPE, CHARACTER_MAXIMUM_LENGTH, IS_NULLABLE, "
            "COLUMN_KEY, COLUMN_DEFAULT, EXTRA "
            "FROM information_schema.COLUMNS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s "
            "ORDER BY ORDINAL_POSITION",
            (table,)
        )
        return [
            ColumnInfo(
                name=row[0],
                type=row[1],
                max_length=int(row[2]) if row[2] is not None else None,
                nullable=row[3] == 'YES',
                is_primary_key=row[4] == 'PRI',
                default=row[5],
                is_auto_increment='auto_increment' in (row[6] or '').lower()
            )
            for row in results
        ]

    def _get_index_columns(self, table: str) -> dict[str, tuple[bool, list[Optional[str]]]]:
        """Index name -> (is_unique, columns in key order)."""
        results = self.execute_query(
            "SELECT INDEX_NAME, NON_UNIQUE, COLUMN_NAME "
            "FROM information_schema.STATISTICS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s "
            "ORDER BY INDEX_NAME, SEQ_IN_INDEX",
            (table,)
        )
        indexes: dict[str, tuple[bool, list[Optional[str]]]] = {}
        for name, non_unique, column in results:
            # COLUMN_NAME is NULL for functional key parts
            indexes.setdefault(name, (not int(non_unique), []))[1].append(column)
        return indexes

    def get_primary_key(self, table: str) -> list[str]:
        primary = self._get_index_columns(table).get('PRIMARY')
        return list(primary[1]) if primary else []

    def get_unique_constraints(self, table: str) -> list[list[str]]:
        return [
            columns
            for name, (is_unique, columns) in sorted(self._get_index_columns(table).items())
            if is_unique and name != 'PRIMARY' and None not in columns
        ]

    def get_foreign_keys(self, table: str) -> list[ForeignKeyInfo]:
        results = self.execute_query(
            "SELECT k.CONSTRAINT_NAME, k.COLUMN_NAME, k.REFERENCED_TABLE_NAME, "
            "k.REFERENCED_COLUMN_NAME, r.DELETE_RULE, r.UPDATE_RULE "
            "FROM information_schema.KEY_COLUMN_USAGE k "
            "JOIN information_schema.REFERENTIAL_CONSTRAINTS r "
            "ON r.CONSTRAINT_SCHEMA = k.CONSTRAINT_SCHEMA "
            "AND r.CONSTRAINT_NAME = k.CONSTRAINT_NAME AND r.TABLE_NAME = k.TABLE_NAME "
            "WHERE k.TABLE_SCHEMA = DATABASE() AND k.TABLE_NAME = %s "
            "AND k.REFERENCED_TABLE_NAME IS NOT NULL "
            "ORDER BY k.CONSTRAINT_NAME, k.ORDINAL_POSITION",
            (table,)
        )
        foreign_keys: dict[str, ForeignKeyInfo] = {}
        for name, column, ref_table, ref_column, on_delete, on_update in results:
            fk = foreign_keys.get(name)
            if fk is None:
                fk = foreign_keys[name] = ForeignKeyInfo(
                    name=name,
                    table=table,
                    columns=[],
                    referenced_table=ref_table,
                    referenced_columns=[],
                    on_delete=on_delete,
                    on_update=on_update
                )
            fk.columns.append(column)
            fk.referenced_columns.append(ref_column)
        return list(foreign_keys.values())

    def get_indexes(self, table: str) -> list[IndexInfo]:
        """Non-unique indexes and functional unique indexes.

        InnoDB creates an index for every foreign key under the constraint's
        name; those are recreated by the FOREIGN KEY clause itself.
        """
        fk_names = {fk.name for fk in self.get_foreign_keys(table)}
        return [
            IndexInfo(name=name, table=table, columns=columns, is_unique=is_unique)
            for name, (is_unique, columns) in sorted(self._get_index_columns(table).items())
            if name != 'PRIMARY' and name not in fk_names
            and (not is_unique or None in columns)
        ]

    def get_view_definition(self, view: str) -> str:
        results = self.execute_query(
            "SELECT VIEW_DEFINITION, TABLE_SCHEMA FROM information_schema.VIEWS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s",
            (view,)
        )
        if not results or results[0][0] is None:
            raise IntrospectionError(f"View '{view}' not found", view)
        definition, schema = results[0]
        # MySQL qualifies every reference with the current schema
        return definition.replace(f"{self.quote(schema)}.", '')
