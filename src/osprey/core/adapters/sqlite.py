"""SQLite database adapter."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from osprey.core.errors import DatabaseConnectionError, QueryError
from osprey.core.protocols import Connection

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter.

    Uses the built-in sqlite3 module. Suitable for:
    - Development and testing
    - Single-host deployments

    The connection runs with ``isolation_level=None`` and every unit of work
    issues an explicit ``BEGIN``. The sqlite3 module's implicit transactions
    do not cover DDL, and migrations are mostly DDL.
    """

    def __init__(
        self,
        path: str = ":memory:",
        *,
        readonly: bool = False,
        timeout: float = 5.0,
        **kwargs: Any,
    ):
        config = DatabaseConfig(
            db_type=DatabaseType.SQLITE,
            path=path,
            readonly=readonly,
            options=kwargs,
        )
        super().__init__(config)
        self._timeout = timeout
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Connect to SQLite database."""
        path = self._config.path or ":memory:"
        uri = path.startswith("file:") or "?" in path

        try:
            self._conn = sqlite3.connect(
                path,
                timeout=self._timeout,
                check_same_thread=False,
                uri=uri,
                isolation_level=None,
            )
            self._conn.row_factory = sqlite3.Row

            self._conn.execute("PRAGMA foreign_keys = ON")

            if self._config.readonly:
                self._conn.execute("PRAGMA query_only = ON")

            self._connected = True

        except sqlite3.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to SQLite: {e}",
                cause=e,
            ) from e

    def disconnect(self) -> None:
        """Close SQLite connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            self._connected = False

    def get_connection(self) -> Connection:
        """Get the SQLite connection."""
        if not self._conn:
            self.connect()
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Transaction context manager with an explicit ``BEGIN``."""
        conn = self.get_connection()
        self._run(conn, "BEGIN")
        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                conn.rollback()
            raise
        try:
            conn.commit()
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.rollback()
            raise QueryError(f"Commit failed: {e}", cause=e) from e

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a parameterised statement."""
        return self._run(self.get_connection(), sql, params)

    def execute_statement(self, sql: str) -> None:
        """
        Execute opaque statement text.

        ``sqlite3`` runs one statement per call, so text holding several
        (``CREATE TABLE a (id INT); CREATE TABLE b (id INT);``) is split on
        statement boundaries first. ``executescript`` would commit the open
        unit of work.
        """
        conn = self.get_connection()
        for statement in split_statements(sql):
            self._run(conn, statement)

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute query and return results as dicts."""
        cursor = self.execute(sql, params)
        return [dict(row) for row in cursor.fetchall()]

    @staticmethod
    def _run(conn: Any, sql: str, params: tuple = ()) -> Any:
        try:
            return conn.execute(sql, params)
        except (sqlite3.Error, sqlite3.Warning) as e:
            raise QueryError(str(e), cause=e) from e


def split_statements(sql: str) -> list[str]:
    """
    Split statement text into complete SQLite statements.

    Semicolons inside string literals, comments and trigger bodies do not
    end a statement (``sqlite3.complete_statement`` decides). Trailing text
    that never completes is returned as is, for SQLite to reject.
    """
    statements: list[str] = []
    buffer = ""
    *chunks, tail = sql.split(";")
    for chunk in chunks:
        buffer += chunk + ";"
        if sqlite3.complete_statement(buffer):
            if buffer.strip() != ";":
                statements.append(buffer.strip())
            buffer = ""
    buffer += tail
    if buffer.strip():
        statements.append(buffer.strip())
    return statements


__all__ = [
    "SQLiteAdapter",
    "split_statements",
]
