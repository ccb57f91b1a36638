"""
PostgreSQL source connection for Cross-Database Dumper.
"""

import itertools
import logging
from typing import Optional

import psycopg2
from psycopg2 import Error as PostgreSQLError

from .connection import DatabaseConnection
from .errors import IntrospectionError
from .models import ColumnInfo, Dialect, ForeignKeyInfo, IndexInfo

# pg_constraint.confdeltype / confupdtype codes
FK_ACTIONS = {
    'a': 'NO ACTION',
    'r': 'RESTRICT',
    'c': 'CASCADE',
    'n': 'SET NULL',
    'd': 'SET DEFAULT',
}

# information_schema data_type -> compact native name
DATA_TYPE_ALIASES = {
    'character varying': 'varchar',
    'character': 'char',
    'timestamp without time zone': 'timestamp',
    'timestamp with time zone': 'timestamptz',
    'time without time zone': 'time',
    'time with time zone': 'timetz',
}


def build_native_type(
    data_type: str,
    udt_name: str,
    char_length: Optional[int] = None,
    precision: Optional[int] = None,
    scale: Optional[int] = None
) -> str:
    """Rebuild a native type string from information_schema.columns fields."""
    if data_type == 'ARRAY':
        # udt_name of an array type is the element type prefixed with '_'
        return f"{udt_name.lstrip('_')}[]"
    if data_type == 'USER-DEFINED':
        return 'user-defined'

    native = DATA_TYPE_ALIASES.get(data_type, data_type)
    if native in ('varchar', 'char') and char_length is not None:
        return f"{native}({char_length})"
    if native == 'numeric' and precision is not None:
        return f"numeric({precision},{scale or 0})"
    return native


class PostgreSQLConnection(DatabaseConnection):
    """Reads one schema of a PostgreSQL database through a read-only session."""

    dialect = Dialect.POSTGRESQL
    DEFAULT_PORT = 5432
    DEFAULT_SCHEMA = 'public'

    _cursor_ids = itertools.count(1)

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        database: Optional[str] = None,
        schema: str = DEFAULT_SCHEMA
    ):
        super().__init__()
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database
        self.schema = schema

    @property
    def description(self) -> str:
        return f"postgresql://{self.host}:{self.port}/{self.database or ''}"

    def connect(self) -> None:
        """Establish database connection."""
        try:
            self.connection = psycopg2.connect(
                host=self.host,
                port=self.port,
                user=self.user,
                password=self.password,
                dbname=self.database
            )
            self.connection.set_session(readonly=True)
            logging.info(f"Connected to {self.host}:{self.port}/{self.database or 'N/A'}")
        except PostgreSQLError as e:
            logging.error(f"Failed to connect to database: {e}")
            raise

    def get_cursor(self):
        """Named (server-side) cursor so rows are fetched from the server in pages."""
        return self.connection.cursor(name=f"crossdb_dump_{next(self._cursor_ids)}")

    def get_tables(self) -> list[str]:
        results = self.execute_query(
            "SELECT tablename FROM pg_tables WHERE schemaname = %s ORDER BY tablename",
            (self.schema,)
        )
        return [row[0] for row in results]

    def get_views(self) -> list[str]:
        results = self.execute_query(
            "SELECT viewname FROM pg_views WHERE schemaname = %s ORDER BY viewname",
            (self.schema,)
        )
        return [row[0] for row in results]

    def get_table_columns(self, table: str) -> list[ColumnInfo]:
        results = self.execute_query(
            """
            SELECT column_name, data_type, udt_name, character_maximum_length,
                   numeric_precision, numeric_scale, is_nullable, column_default, is_identity
            FROM information_schema.columns
            WHERE table_schema = %s AND table_name = %s
            ORDER BY ordinal_position
            """,
            (self.schema, table)
        )
        columns = []
        for (name, data_type, udt_name, char_length, precision, scale,
             is_nullable, default, is_identity) in results:
            columns.append(ColumnInfo(
                name=name,
                type=build_native_type(data_type, udt_name, char_length, precision, scale),
                max_length=char_length,
                nullable=is_nullable == 'YES',
                default=default,
                is_auto_increment=(
                    is_identity == 'YES'
                    or str(default or '').lower().startswith('nextval(')
                )
            ))
        return columns

    def _get_constraint_columns(self, table: str, contype: str) -> list[list[str]]:
        results = self.execute_query(
            """
            SELECT c.conname, a.attname
            FROM pg_constraint c
            JOIN pg_class t ON t.oid = c.conrelid
            JOIN pg_namespace n ON n.oid = t.relnamespace
            CROSS JOIN LATERAL unnest(c.conkey) WITH ORDINALITY AS k(attnum, ord)
            JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
            WHERE n.nspname = %s AND t.relname = %s AND c.contype = %s
            ORDER BY c.conname, k.ord
            """,
            (self.schema, table, contype)
        )
        constraints: dict[str, list[str]] = {}
        for name, column in results:
            constraints.setdefault(name, []).append(column)
        return list(constraints.values())

    def get_primary_key(self, table: str) -> list[str]:
        keys = self._get_constraint_columns(table, 'p')
        return keys[0] if keys else []

    def get_unique_constraints(self, table: str) -> list[list[str]]:
        return self._get_constraint_columns(table, 'u')

    def get_foreign_keys(self, table: str) -> list[ForeignKeyInfo]:
        results = self.execute_query(
            """
            SELECT c.conname, a.attname, rt.relname, ra.attname,
                   c.confdeltype, c.confupdtype
            FROM pg_constraint c
            JOIN pg_class t ON t.oid = c.conrelid
            JOIN pg_namespace n ON n.oid = t.relnamespace
            JOIN pg_class rt ON rt.oid = c.confrelid
            CROSS JOIN LATERAL unnest(c.conkey, c.confkey)
                WITH ORDINALITY AS k(attnum, ref_attnum, ord)
            JOIN pg_attribute a ON a.attrelid = c.conrelid AND a.attnum = k.attnum
            JOIN pg_attribute ra ON ra.attrelid = c.confrelid AND ra.attnum = k.ref_attnum
            WHERE n.nspname = %s AND t.relname = %s AND c.contype = 'f'
            ORDER BY c.conname, k.ord
            """,
            (self.schema, table)
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
                    on_delete=FK_ACTIONS.get(on_delete),
                    on_update=FK_ACTIONS.get(on_update)
                )
            fk.columns.append(column)
            fk.referenced_columns.append(ref_column)
        return list(foreign_keys.values())

    def get_indexes(self, table: str) -> list[IndexInfo]:
        """Indexes that do not back a PRIMARY KEY or UNIQUE constraint."""
        results = self.execute_query(
            """
            SELECT i.relname, ix.indisunique, a.attname
            FROM pg_index ix
            JOIN pg_class t ON t.oid = ix.indrelid
            JOIN pg_class i ON i.oid = ix.indexrelid
            JOIN pg_namespace n ON n.oid = t.relnamespace
            CROSS JOIN LATERAL unnest(ix.indkey::int2[]) WITH ORDINALITY AS k(attnum, ord)
            LEFT JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum AND k.attnum > 0
            WHERE n.nspname = %s AND t.relname = %s
              AND NOT ix.indisprimary
              AND k.ord <= ix.indnkeyatts
              AND NOT EXISTS (
                  SELECT 1 FROM pg_constraint c
                  WHERE c.conindid = ix.indexrelid AND c.contype IN ('p', 'u', 'x')
              )
            ORDER BY i.relname, k.ord
            """,
            (self.schema, table)
        )
        indexes: dict[str, IndexInfo] = {}
        for name, is_unique, column in results:
            index = indexes.get(name)
            if index is None:
                index = indexes[name] = IndexInfo(name=name, table=table, columns=[], is_unique=is_unique)
            # attnum 0 is an expression part
            index.columns.append(column)
        return list(indexes.values())

    def get_view_definition(self, view: str) -> str:
        results = self.execute_query(
            "SELECT definition FROM pg_views WHERE schemaname = %s AND viewname = %s",
            (self.schema, view)
        )
        if not results or results[0][0] is None:
            raise IntrospectionError(f"View '{view}' not found", view)
        return results[0][0].strip().rstrip(';')
