"""
Unit tests for sqlite_connection.py
"""

import sqlite3

import pytest

from crossdb_dumper.errors import IntrospectionError
from crossdb_dumper.sqlite_connection import SQLiteConnection


@pytest.fixture
def conn(sample_db):
    with SQLiteConnection(str(sample_db)) as connection:
        yield connection


class TestSQLiteConnection:
    """Tests for SQLiteConnection against the sample database."""

    def test_missing_file(self, tmp_path):
        conn = SQLiteConnection(str(tmp_path / "missing.db"))
        with pytest.raises(FileNotFoundError):
            conn.connect()

    def test_description(self, sample_db):
        assert SQLiteConnection(str(sample_db)).description == f"sqlite:{sample_db}"

    def test_get_tables(self, conn):
        assert conn.get_tables() == ["categories", "empty_table", "m_projects", "v4_users"]

    def test_get_views(self, conn):
        assert conn.get_views() == ["active_projects", "user_years"]

    def test_get_table_columns(self, conn):
        columns = {col.name: col for col in conn.get_table_columns("m_projects")}

        assert list(columns) == ["id", "name", "created_ts", "is_active"]
        assert columns["id"].is_auto_increment
        assert columns["id"].is_primary_key
        assert not columns["id"].nullable
        assert columns["name"].type == "VARCHAR(500)"
        assert columns["name"].max_length == 500
        assert not columns["name"].nullable
        assert "strftime" in columns["created_ts"].default
        assert columns["is_active"].default == "1"
        assert not columns["is_active"].is_auto_increment

    def test_rowid_alias_is_auto_increment(self, conn):
        columns = conn.get_table_columns("v4_users")
        assert [col.name for col in columns if col.is_auto_increment] == ["id"]

    def test_get_primary_key(self, conn):
        assert conn.get_primary_key("v4_users") == ["id"]

    def test_get_unique_constraints(self, conn):
        assert conn.get_unique_constraints("m_projects") == [["name"]]
        assert conn.get_unique_constraints("v4_users") == []

    def test_get_foreign_keys(self, conn):
        foreign_keys = conn.get_foreign_keys("v4_users")

        assert len(foreign_keys) == 1
        fk = foreign_keys[0]
        assert fk.columns == ["project_id"]
        assert fk.referenced_table == "m_projects"
        assert fk.referenced_columns == ["id"]
        assert fk.on_delete == "CASCADE"

    def test_self_referencing_foreign_key(self, conn):
        fk = conn.get_foreign_keys("categories")[0]
        assert fk.referenced_table == "categories"

    def test_get_indexes(self, conn):
        indexes = conn.get_indexes("v4_users")

        assert len(indexes) == 1
        assert indexes[0].name == "idx_users_email"
        assert indexes[0].columns == ["email"]
        assert not indexes[0].is_unique

    def test_unique_constraint_index_not_listed(self, conn):
        assert conn.get_indexes("m_projects") == []

    def test_get_table_schema(self, conn):
        schema = conn.get_table_schema("m_projects")

        assert schema.primary_key == ["id"]
        assert schema.get_column("name").is_unique
        assert schema.auto_increment_column.name == "id"

    def test_get_view_definition(self, conn):
        definition = conn.get_view_definition("active_projects")
        assert definition == "SELECT id, name FROM m_projects WHERE is_active = 1"

    def test_missing_view(self, conn):
        with pytest.raises(IntrospectionError):
            conn.get_view_definition("nope")

    def test_iter_rows(self, conn):
        batches = list(conn.iter_rows("v4_users", ["id", "email"], 2, order_by=["id"]))

        assert batches == [
            [(1, "a@example.com"), (2, "b@example.com")],
            [(3, "c@example.com")],
        ]

    def test_get_max_value(self, conn):
        assert conn.get_max_value("m_projects", "id") == 2
        assert conn.get_max_value("empty_table", "id") is None

    def test_read_only(self, conn):
        with pytest.raises(sqlite3.OperationalError):
            conn.execute_query("DELETE FROM m_projects")
