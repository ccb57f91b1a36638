"""
Identity counter resets emitted after the data section.
"""

import logging

from .connection import DatabaseConnection
from .identifiers import quote_identifier, quote_string
from .models import Dialect, TableSchema


def generate_sequence_resets(
    connection: DatabaseConnection,
    schemas: list[TableSchema],
    dialect: Dialect | str,
    schema_created: bool = True
) -> list[str]:
    """
    Statements that move each auto-increment counter past the loaded ids.

    PostgreSQL reads MAX(id) on the target, MySQL needs a literal value so
    the maximum is taken from the source. SQLite keeps its counters in
    sqlite_sequence, which only exists for AUTOINCREMENT tables, so nothing
    is emitted unless this dump created them.
    """
    dialect = Dialect.parse(dialect)
    statements = []

    for schema in schemas:
        column = schema.auto_increment_column
        if column is None:
            continue

        table = quote_identifier(schema.name, dialect)
        name = quote_identifier(column.name, dialect)

        if dialect == Dialect.POSTGRESQL:
            statements.append(
                f"SELECT setval(pg_get_serial_sequence({quote_string(table, dialect)}, "
                f"{quote_string(column.name, dialect)}), COALESCE(MAX({name}), 1), "
                f"MAX({name}) IS NOT NULL) FROM {table};"
            )
        elif dialect == Dialect.MYSQL:
            max_value = connection.get_max_value(schema.name, column.name)
            if max_value is None:
                logging.debug(f"Table '{schema.name}' is empty; AUTO_INCREMENT left as is")
                continue
            statements.append(f"ALTER TABLE {table} AUTO_INCREMENT = {max_value + 1};")
        elif schema_created and schema.primary_key == [column.name]:
            statements.append(
                f"UPDATE sqlite_sequence SET seq = (SELECT MAX({name}) FROM {table}) "
                f"WHERE name = {quote_string(schema.name, dialect)};"
            )

    return statements
