"""
Unit tests for postgresql_connection.py
"""

from unittest import mock

import pytest

from crossdb_dumper.postgresql_connection import PostgreSQLConnection, build_native_type


@pytest.fixture
def mock_cursor():
    return mock.MagicMock()


@pytest.fixture
def conn(mock_cursor):
    """Connected PostgreSQLConnection backed by a mocked driver."""
    with mock.patch('crossdb_dumper.postgresql_connection.psycopg2.connect') as mock_connect:
        mock_connection = mock.MagicMock()
        mock_connection.cursor.return_value = mock_cursor
        mock_connect.return_value = mock_connection

        connection = PostgreSQLConnection(
            host="db",
            port=5432,
            user="reader",
            password="secret",
            database="shop"
        )
        connection.connect()
        yield connection


class TestBuildNativeType:
    """Tests for build_native_type."""

    @pytest.mark.parametrize("args,expected", [
        (("character varying", "varchar", 120), "varchar(120)"),
        (("character varying", "varchar"), "varchar"),
        (("character", "bpchar", 2), "char(2)"),
        (("numeric", "numeric", None, 10, 2), "numeric(10,2)"),
        (("numeric", "numeric"), "numeric"),
        (("timestamp with time zone", "timestamptz"), "timestamptz"),
        (("ARRAY", "_int4"), "int4[]"),
        (("USER-DEFINED", "mood"), "user-defined"),
        (("jsonb", "jsonb"), "jsonb"),
    ])
    def test_types(self, args, expected):
        assert build_native_type(*args) == expected


class TestPostgreSQLConnection:
    """Tests for PostgreSQLConnection class."""

    def test_defaults(self):
        conn = PostgreSQLConnection("db", 5432, "reader", "secret", "shop")
        assert conn.schema == "public"
        assert conn.description == "postgresql://db:5432/shop"
        assert PostgreSQLConnection.DEFAULT_PORT == 5432

    @mock.patch('crossdb_dumper.postgresql_connection.psycopg2.connect')
    def test_connect_read_only(self, mock_connect):
        mock_connection = mock.MagicMock()
        mock_connect.return_value = mock_connection

        conn = PostgreSQLConnection("db", 5432, "reader", "secret", "shop")
        conn.connect()

        mock_connect.assert_called_once_with(
            host="db",
            port=5432,
            user="reader",
            password="secret",
            dbname="shop"
        )
        mock_connection.set_session.assert_called_once_with(readonly=True)

    @mock.patch('crossdb_dumper.postgresql_connection.psycopg2.connect')
    def test_connect_error(self, mock_connect):
        import psycopg2
        mock_connect.side_effect = psycopg2.OperationalError("could not connect")

        with pytest.raises(psycopg2.OperationalError):
            PostgreSQLConnection("db", 5432, "reader", "bad").connect()

    def test_get_cursor_is_named(self, conn):
        conn.get_cursor()
        name = conn.connection.cursor.call_args.kwargs["name"]
        assert name.startswith("crossdb_dump_")

    def test_get_tables_uses_schema(self, conn, mock_cursor):
        mock_cursor.fetchall.return_value = [("orders",), ("users",)]

        assert conn.get_tables() == ["orders", "users"]
        assert mock_cursor.execute.call_args.args[1] == ("public",)

    def test_get_table_columns(self, conn, mock_cursor):
        mock_cursor.fetchall.return_value = [
            ("id", "integer", "int4", None, 32, 0, "NO", "nextval('users_id_seq'::regclass)", "NO"),
            ("uuid", "uuid", "uuid", None, None, None, "NO", None, "NO"),
            ("name", "character varying", "varchar", 100, None, None, "YES", None, "NO"),
            ("seq", "bigint", "int8", None, 64, 0, "NO", None, "YES"),
            ("tags", "ARRAY", "_text", None, None, None, "YES", None, "NO"),
        ]

        columns = conn.get_table_columns("users")

        assert [col.type for col in columns] == ["integer", "uuid", "varchar(100)", "bigint", "text[]"]
        assert columns[0].is_auto_increment
        assert not columns[1].is_auto_increment
        assert columns[2].max_length == 100
        assert columns[2].nullable
        assert columns[3].is_auto_increment

    def test_get_primary_key(self, conn, mock_cursor):
        mock_cursor.fetchall.return_value = [("users_pkey", "id")]

        assert conn.get_primary_key("users") == ["id"]
        assert mock_cursor.execute.call_args.args[1] == ("public", "users", "p")

    def test_get_unique_constraints_grouped(self, conn, mock_cursor):
        mock_cursor.fetchall.return_value = [
            ("users_email_key", "email"),
            ("users_org_slug_key", "org_id"),
            ("users_org_slug_key", "slug"),
        ]

        assert conn.get_unique_constraints("users") == [["email"], ["org_id", "slug"]]

    def test_get_foreign_keys_maps_actions(self, conn, mock_cursor):
        mock_cursor.fetchall.return_value = [
            ("users_org_fk", "org_id", "orgs", "id", "c", "a"),
        ]

        fk = conn.get_foreign_keys("users")[0]

        assert fk.name == "users_org_fk"
        assert fk.referenced_table == "orgs"
        assert fk.on_delete == "CASCADE"
        assert fk.on_update == "NO ACTION"

    def test_get_indexes_keeps_expression_parts(self, conn, mock_cursor):
        mock_cursor.fetchall.return_value = [
            ("idx_users_lower_email", True, None),
            ("idx_users_name", False, "name"),
            ("idx_users_name", False, "org_id"),
        ]

        indexes = conn.get_indexes("users")

        assert indexes[0].columns == [None]
        assert indexes[0].is_unique
        assert indexes[1].columns == ["name", "org_id"]

    def test_get_view_definition(self, conn, mock_cursor):
        mock_cursor.fetchall.return_value = [(" SELECT users.id\n   FROM users;",)]

        assert conn.get_view_definition("v") == "SELECT users.id\n   FROM users"
