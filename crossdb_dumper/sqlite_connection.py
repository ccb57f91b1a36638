"""
SQLite source connection for Cross-Database Dumper.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from .column_types import parse_native_type
from .connection import DatabaseConnection, extract_view_body
from .errors import IntrospectionError
from .models import ColumnInfo, Dialect, ForeignKeyInfo, IndexInfo


class SQLiteConnection(DatabaseConnection):
    """Reads a SQLite database file (opened read-only)."""

    dialect = Dialect.SQLITE
    PARAM = '?'

    def __init__(self, path: str, read_only: bool = True):
        super().__init__()
        self.path = path
        self.read_only = read_only

    @property
    def description(self) -> str:
        return f"sqlite:{self.path}"

    def connect(self) -> None:
        """Open the database file."""
        try:
            if self.path == ':memory:':
                self.connection = sqlite3.connect(self.path)
            else:
                db_path = Path(self.path)
                if not db_path.exists():
                    raise FileNotFoundError(f"SQLite database not found: {self.path}")
                uri = db_path.resolve().as_uri()
                if self.read_only:
                    uri += '?mode=ro'
                self.connection = sqlite3.connect(uri, uri=True)
            logging.info(f"Connected to {self.description}")
        except sqlite3.Error as e:
            logging.error(f"Failed to open SQLite database: {e}")
            raise

    def get_tables(self) -> list[str]:
        results = self.execute_query(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row[0] for row in results]

    def get_views(self) -> list[str]:
        results = self.execute_query(
            "SELECT name FROM sqlite_master WHERE type = 'view' ORDER BY name"
        )
        return [row[0] for row in results]

    def get_table_columns(self, table: str) -> list[ColumnInfo]:
        """Get column information from PRAGMA table_info."""
        # cid, name, type, notnull, dflt_value, pk
        results = self.execute_query(f"PRAGMA table_info({self.quote(table)})")
        pk_columns = [row for row in results if row[5] > 0]
        # A lone INTEGER PRIMARY KEY aliases the rowid and generates ids
        rowid_alias = None
        if len(pk_columns) == 1 and (pk_columns[0][2] or '').strip().upper() == 'INTEGER':
            rowid_alias = pk_columns[0][1]

        return [
            ColumnInfo(
                name=row[1],
                type=row[2] or '',
                max_length=parse_native_type(row[2]).length,
                nullable=not row[3] and row[5] == 0,
                is_primary_key=row[5] > 0,
                default=row[4],
                is_auto_increment=row[1] == rowid_alias
            )
            for row in results
        ]

    def get_primary_key(self, table: str) -> list[str]:
        results = self.execute_query(f"PRAGMA table_info({self.quote(table)})")
        return [row[1] for row in sorted((r for r in results if r[5] > 0), key=lambda r: r[5])]

    def _index_list(self, table: str) -> list[tuple]:
        # seq, name, unique, origin, partial
        return self.execute_query(f"PRAGMA index_list({self.quote(table)})")

    def _index_columns(self, index: str) -> list[Optional[str]]:
        # seqno, cid, name; name is NULL for expression parts
        results = self.execute_query(f"PRAGMA index_info({self.quote(index)})")
        return [row[2] for row in sorted(results, key=lambda r: r[0])]

    def get_unique_constraints(self, table: str) -> list[list[str]]:
        constraints = []
        for row in sorted(self._index_list(table), key=lambda r: r[1]):
            if row[2] and row[3] == 'u':
                constraints.append(self._index_columns(row[1]))
        return constraints

    def get_foreign_keys(self, table: str) -> list[ForeignKeyInfo]:
        """Group PRAGMA foreign_key_list rows by constraint id."""
        # id, seq, table, from, to, on_update, on_delete, match
        results = self.execute_query(f"PRAGMA foreign_key_list({self.quote(table)})")
        grouped: dict[int, list[tuple]] = {}
        for row in results:
            grouped.setdefault(row[0], []).append(row)

        foreign_keys = []
        for fk_id in sorted(grouped):
            rows = sorted(grouped[fk_id], key=lambda r: r[1])
            referenced_table = rows[0][2]
            referenced_columns = [row[4] for row in rows]
            if any(col is None for col in referenced_columns):
                # REFERENCES parent without a column list targets the parent's key
                referenced_columns = self.get_primary_key(referenced_table)
            foreign_keys.append(ForeignKeyInfo(
                name=None,
                table=table,
                columns=[row[3] for row in rows],
                referenced_table=referenced_table,
                referenced_columns=referenced_columns,
                on_delete=rows[0][6],
                on_update=rows[0][5]
            ))
        return foreign_keys

    def get_indexes(self, table: str) -> list[IndexInfo]:
        """Indexes created with CREATE INDEX (origin 'c')."""
        return [
            IndexInfo(
                name=row[1],
                table=table,
                columns=self._index_columns(row[1]),
                is_unique=bool(row[2])
            )
            for row in sorted(self._index_list(table), key=lambda r: r[1])
            if row[3] == 'c'
        ]

    def get_view_definition(self, view: str) -> str:
        results = self.execute_query(
            "SELECT sql FROM sqlite_master WHERE type = 'view' AND name = ?", (view,)
        )
        if not results or not results[0][0]:
            raise IntrospectionError(f"View '{view}' not found", view)
        return extract_view_body(results[0][0])

