"""Tests for database schema creation and migration."""

import sqlite3

import pytest

from optipanier.db.schema import _SCHEMA_VERSION, COLLECTIONS, ensure_schema


def test_ensure_schema_creates_tables(tmp_path):
    """Schema creates both collections and the version table."""
    conn = ensure_schema(tmp_path / "test.db")

    tables = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    ).fetchall()
    table_names = {row["name"] for row in tables}

    assert "receipts" in table_names
    assert "loyalty_cards" in table_names
    assert "schema_version" in table_names

    conn.close()


def test_ensure_schema_creates_parent_dirs(tmp_path):
    """Schema creates parent directories if they don't exist."""
    db_path = tmp_path / "sub" / "dir" / "test.db"
    conn = ensure_schema(db_path)
    assert db_path.exists()
    conn.close()


def test_ensure_schema_sets_version(tmp_path):
    conn = ensure_schema(tmp_path / "test.db")
    row = conn.execute("SELECT version FROM schema_version").fetchone()
    assert row["version"] == _SCHEMA_VERSION == 2
    conn.close()


def test_ensure_schema_idempotent(tmp_path):
    """Calling ensure_schema twice doesn't error."""
    db_path = tmp_path / "test.db"
    conn1 = ensure_schema(db_path)
    conn1.close()

    conn2 = ensure_schema(db_path)
    row = conn2.execute("SELECT version FROM schema_version").fetchone()
    assert row["version"] == _SCHEMA_VERSION
    conn2.close()


def test_ensure_schema_wal_mode(tmp_path):
    conn = ensure_schema(tmp_path / "test.db")
    mode = conn.execute("PRAGMA journal_mode").fetchone()
    assert mode[0] == "wal"
    conn.close()


def test_upgrade_from_version_1_adds_loyalty_cards(tmp_path):
    """A version 1 database only had receipts; upgrading keeps them."""
    db_path = tmp_path / "old.db"
    old = sqlite3.connect(str(db_path))
    old.executescript(
        """
        CREATE TABLE receipts (id TEXT PRIMARY KEY, record TEXT NOT NULL);
        CREATE TABLE schema_version (version INTEGER NOT NULL);
        INSERT INTO schema_version (version) VALUES (1);
        INSERT INTO receipts (id, record) VALUES ('r1', '{"id": "r1"}');
        """
    )
    old.commit()
    old.close()

    conn = ensure_schema(db_path)
    table_names = {
        row["name"]
        for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    assert "loyalty_cards" in table_names
    assert conn.execute("SELECT COUNT(*) FROM receipts").fetchone()[0] == 1
    assert conn.execute("SELECT version FROM schema_version").fetchone()[0] == 2
    conn.close()


@pytest.mark.parametrize("table", sorted(COLLECTIONS.values()))
def test_collection_columns(tmp_path, table):
    conn = ensure_schema(tmp_path / "test.db")
    info = conn.execute(f"PRAGMA table_info({table})").fetchall()
    assert {row["name"] for row in info} == {"id", "record"}
    conn.close()
