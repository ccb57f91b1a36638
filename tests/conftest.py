"""
Shared fixtures: a small SQLite database covering the cases the dumper handles.
"""

import sqlite3

import pytest

SAMPLE_SCHEMA = """
CREATE TABLE v4_users (
    id INTEGER PRIMARY KEY,
    project_id INTEGER REFERENCES m_projects(id) ON DELETE CASCADE,
    email TEXT NOT NULL,
    created_at DATETIME,
    settings JSON
);
CREATE TABLE m_projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name VARCHAR(500) NOT NULL UNIQUE,
    created_ts INTEGER DEFAULT (strftime('%s', 'now')),
    is_active BOOLEAN DEFAULT 1
);
CREATE TABLE categories (
    id INTEGER PRIMARY KEY,
    parent_id INTEGER REFERENCES categories(id),
    name TEXT
);
CREATE TABLE empty_table (
    id INTEGER PRIMARY KEY,
    note TEXT
);
CREATE INDEX idx_users_email ON v4_users(email);
CREATE VIEW active_projects AS SELECT id, name FROM m_projects WHERE is_active = 1;
CREATE VIEW user_years AS SELECT id, strftime('%Y', created_at) AS year FROM v4_users;

INSERT INTO m_projects (id, name, created_ts, is_active) VALUES
    (1, 'Alpha', 1700000000, 1),
    (2, 'O''Brien', 1700000060, 0);
INSERT INTO v4_users (id, project_id, email, created_at, settings) VALUES
    (1, 1, 'a@example.com', '2023-11-14T22:13:20Z', '{"theme": "dark"}'),
    (2, 1, 'b@example.com', NULL, NULL),
    (3, 2, 'c@example.com', '2023-11-15 08:00:00', '[1, 2]');
INSERT INTO categories (id, parent_id, name) VALUES
    (1, NULL, 'root'),
    (2, 1, 'child');
"""


@pytest.fixture
def sample_db(tmp_path):
    """Path of a SQLite database file populated with SAMPLE_SCHEMA."""
    db_path = tmp_path / "sample.db"
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(SAMPLE_SCHEMA)
        conn.commit()
    finally:
        conn.close()
    return db_path
