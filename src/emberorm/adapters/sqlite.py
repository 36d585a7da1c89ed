"""
SQLite database adapter implementation.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

from ..dialects.sqlite import SQLiteDialect
from ..security.redaction import redact_params
from ..utils import get_logger, time_call
from .base import (
    AdapterConfigurationError,
    AdapterConnectionError,
    AdapterTransactionError,
    BackendExecutionError,
    ConnectionConfig,
    Params,
)


_BEGIN_MODES = {"DEFERRED", "IMMEDIATE", "EXCLUSIVE"}


@dataclass(slots=True)
class SQLiteConnectionState:
    connection: sqlite3.Connection
    path: str
    begin_statement: str = "BEGIN"


class SQLiteAdapter:
    """
    Adapter wrapping the Python stdlib sqlite3 module.

    The connection runs with ``isolation_level=None`` so that transaction
    boundaries are issued explicitly by the session's transaction manager;
    statements outside an explicit transaction commit immediately.
    """

    def __init__(self, *, slow_query_ms: int = 200) -> None:
        self.dialect = SQLiteDialect()
        self.slow_query_ms = slow_query_ms
        self._state: SQLiteConnectionState | None = None
        self.logger = get_logger("adapters.sqlite")

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        path = self._normalize_path(config.url)
        timeout = config.timeout if config.timeout is not None else 5.0
        begin_statement = "BEGIN"
        if config.isolation_level:
            level = config.isolation_level.upper()
            if level not in _BEGIN_MODES:
                raise AdapterConfigurationError(
                    f"Unsupported SQLite isolation_level {config.isolation_level!r}; "
                    f"expected one of {sorted(_BEGIN_MODES)}"
                )
            begin_statement = f"BEGIN {level}"

        try:
            connection = sqlite3.connect(path, isolation_level=None, timeout=timeout, check_same_thread=False)
        except sqlite3.Error as exc:
            raise AdapterConnectionError(
                f"Could not open SQLite database {config.descriptive_label()}: {exc}"
            ) from exc
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")

        self._state = SQLiteConnectionState(connection, path, begin_statement)
        self.logger.debug("Connected to %s", config.redacted_dsn())
        return connection

    def close(self) -> None:
        if self._state:
            self._state.connection.close()
            self._state = None

    @property
    def connected(self) -> bool:
        return self._state is not None

    @property
    def in_transaction(self) -> bool:
        return self._state is not None and self._state.connection.in_transaction

    def _ensure_connection(self) -> sqlite3.Connection:
        if not self._state:
            raise AdapterConnectionError("SQLiteAdapter is not connected.")
        return self._state.connection

    # ------------------------------------------------------------------ #
    # Execution helpers
    # ------------------------------------------------------------------ #
    def execute(self, sql: str, params: Params | None = None) -> sqlite3.Cursor:
        connection = self._ensure_connection()
        cursor = connection.cursor()
        bound = params if params is not None else ()
        with time_call("sqlite.execute", self.logger, sql=sql, threshold_ms=self.slow_query_ms):
            try:
                cursor.execute(sql, bound)
            except sqlite3.Error as exc:
                raise BackendExecutionError(str(exc), sql=sql) from exc
        self.logger.debug("SQL executed: %s", sql, extra={"sql": sql, "params": redact_params(bound)})
        return cursor

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def begin(self) -> None:
        statement = self._state.begin_statement if self._state else "BEGIN"
        self._run_control(statement)

    def commit(self) -> None:
        self._run_control("COMMIT")

    def rollback(self) -> None:
        self._run_control("ROLLBACK")

    def _run_control(self, statement: str) -> None:
        connection = self._ensure_connection()
        try:
            connection.execute(statement)
        except sqlite3.Error as exc:
            raise AdapterTransactionError(f"{statement} failed: {exc}") from exc
        self.logger.debug("Transaction control: %s", statement)

    # ------------------------------------------------------------------ #
    def last_insert_id(self, cursor: sqlite3.Cursor, table: str, pk_column: str) -> Any:
        return cursor.lastrowid

    @staticmethod
    def _normalize_path(url: str) -> str:
        if url in ("sqlite:///:memory:", "sqlite://", ":memory:"):
            return ":memory:"
        prefix = "sqlite:///"
        if url.startswith(prefix):
            return url[len(prefix) :].split("?", 1)[0]
        return url
