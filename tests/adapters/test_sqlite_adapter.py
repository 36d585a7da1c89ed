import sqlite3

import pytest

from emberorm.adapters import (
    AdapterConfigurationError,
    AdapterConnectionError,
    BackendExecutionError,
    ConnectionConfig,
    SQLiteAdapter,
)


def test_connect_creates_database(tmp_path):
    adapter = SQLiteAdapter()
    config = ConnectionConfig(url=f"sqlite:///{tmp_path / 'connect.db'}")
    connection = adapter.connect(config)
    assert isinstance(connection, sqlite3.Connection)
    assert adapter.connected
    adapter.close()
    assert not adapter.connected


def test_execute_and_last_insert_id(tmp_path):
    adapter = SQLiteAdapter()
    config = ConnectionConfig(url=f"sqlite:///{tmp_path / 'exec.db'}")
    adapter.connect(config)
    adapter.execute("CREATE TABLE example (id INTEGER PRIMARY KEY, name TEXT NOT NULL)")
    cursor = adapter.execute("INSERT INTO example (name) VALUES (?)", ("Alice",))
    inserted_id = adapter.last_insert_id(cursor, "example", "id")
    assert inserted_id == 1
    rows = adapter.execute("SELECT name FROM example WHERE id = ?", (inserted_id,)).fetchall()
    assert rows[0]["name"] == "Alice"
    adapter.close()


def test_transaction_commit_and_rollback(tmp_path):
    adapter = SQLiteAdapter()
    config = ConnectionConfig(url=f"sqlite:///{tmp_path / 'txn.db'}")
    adapter.connect(config)
    adapter.execute("CREATE TABLE item (id INTEGER PRIMARY KEY, value INTEGER)")

    adapter.begin()
    assert adapter.in_transaction
    adapter.execute("INSERT INTO item (value) VALUES (?)", (10,))
    adapter.commit()
    count = adapter.execute("SELECT COUNT(*) FROM item").fetchone()[0]
    assert count == 1

    adapter.begin()
    adapter.execute("INSERT INTO item (value) VALUES (?)", (20,))
    adapter.rollback()
    count_after = adapter.execute("SELECT COUNT(*) FROM item").fetchone()[0]
    assert count_after == 1
    adapter.close()


def test_in_memory_database():
    adapter = SQLiteAdapter()
    config = ConnectionConfig(url="sqlite:///:memory:")
    adapter.connect(config)
    adapter.execute("CREATE TABLE sample (value TEXT)")
    adapter.execute("INSERT INTO sample (value) VALUES (?)", ("hello",))
    row = adapter.execute("SELECT value FROM sample").fetchone()
    assert row[0] == "hello"
    adapter.close()


def test_backend_errors_carry_statement(tmp_path):
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig(url=f"sqlite:///{tmp_path / 'err.db'}"))
    adapter.execute("CREATE TABLE item (id INTEGER PRIMARY KEY, value INTEGER NOT NULL)")
    with pytest.raises(BackendExecutionError, match="NOT NULL") as excinfo:
        adapter.execute("INSERT INTO item (value) VALUES (NULL)")
    assert excinfo.value.sql == "INSERT INTO item (value) VALUES (NULL)"
    adapter.close()


def test_foreign_keys_are_enforced(tmp_path):
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig(url=f"sqlite:///{tmp_path / 'fk.db'}"))
    adapter.execute("CREATE TABLE parent (id INTEGER PRIMARY KEY)")
    adapter.execute("CREATE TABLE child (id INTEGER PRIMARY KEY, parent_id INTEGER REFERENCES parent (id))")
    with pytest.raises(BackendExecutionError, match="FOREIGN KEY"):
        adapter.execute("INSERT INTO child (parent_id) VALUES (?)", (42,))
    adapter.close()


def test_isolation_level_selects_begin_mode(tmp_path):
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig(url=f"sqlite:///{tmp_path / 'iso.db'}", isolation_level="immediate"))
    adapter.begin()
    assert adapter.in_transaction
    adapter.rollback()
    adapter.close()

    with pytest.raises(AdapterConfigurationError, match="isolation_level"):
        SQLiteAdapter().connect(ConnectionConfig(url="sqlite:///:memory:", isolation_level="serializable"))


def test_execute_without_connection_fails():
    with pytest.raises(AdapterConnectionError):
        SQLiteAdapter().execute("SELECT 1")
