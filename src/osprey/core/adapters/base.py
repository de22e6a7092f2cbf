"""Database adapter base class.

Manifesto:
    The engine needs three things from a backing store: an atomic unit of
    work, a way to run opaque statement text inside it, and parameterised
    queries for the ledger table. The abstract base class defines that
    contract so the engine never depends on a specific database vendor.

Features:
    - Abstract ``connect()``, ``disconnect()``, ``transaction()``,
      ``execute()``, ``execute_statement()``
    - ``query()`` / ``query_one()`` returning dicts
    - ``lock()`` single-writer guard (no-op unless the backend supports one)
    - Context-manager protocol for connection lifecycle

Tags:
    osprey, database, abstract-base, adapter-pattern
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from osprey.core.dialect import Dialect, get_dialect
from osprey.core.protocols import Connection

from .types import DatabaseConfig, DatabaseType


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    Adapters hold exactly one connection. Driver exceptions raised while
    executing SQL are translated to ``QueryError``; connection failures to
    ``DatabaseConnectionError``.
    """

    def __init__(self, config: DatabaseConfig):
        self._config = config
        self._connected = False
        self._dialect: Dialect = get_dialect(config.db_type.value)

    @property
    def dialect(self) -> Dialect:
        """SQL dialect for this adapter's database type."""
        return self._dialect

    @property
    def db_type(self) -> DatabaseType:
        """Database type."""
        return self._config.db_type

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def is_connected(self) -> bool:
        """Whether adapter is connected."""
        return self._connected

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to database."""
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to database."""
        ...

    @abstractmethod
    def get_connection(self) -> Connection:
        """Get the adapter's connection, connecting first if needed."""
        ...

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Atomic unit: commit on clean exit, roll back and re-raise on error."""
        ...

    @abstractmethod
    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a parameterised SQL statement and return the cursor."""
        ...

    @abstractmethod
    def execute_statement(self, sql: str) -> None:
        """Execute opaque statement text with no parameter binding."""
        ...

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute query and return results as dicts."""
        cursor = self.execute(sql, params)
        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row, strict=False)) for row in cursor.fetchall()]

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute query and return single result."""
        results = self.query(sql, params)
        return results[0] if results else None

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:  # noqa: ARG002
        """Hold a single-writer lock named ``name`` for the duration of the block."""
        yield

    def __enter__(self) -> DatabaseAdapter:
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.disconnect()


__all__ = [
    "DatabaseAdapter",
]
