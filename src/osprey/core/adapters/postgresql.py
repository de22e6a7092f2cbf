"""PostgreSQL database adapter."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from osprey.core.errors import ConfigError, DatabaseConnectionError, QueryError
from osprey.core.logging import get_logger
from osprey.core.protocols import Connection

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType

logger = get_logger(__name__)


class PostgreSQLAdapter(DatabaseAdapter):
    """
    PostgreSQL database adapter.

    Uses psycopg2 with a single dedicated connection; migrations run one
    file at a time, so there is no pool. PostgreSQL DDL is transactional,
    which lets a failed statement and its ledger row roll back together.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "",
        username: str | None = None,
        password: str | None = None,
        *,
        connect_timeout: int = 10,
        **kwargs: Any,
    ):
        config = DatabaseConfig(
            db_type=DatabaseType.POSTGRESQL,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            connect_timeout=connect_timeout,
            options=kwargs,
        )
        super().__init__(config)
        self._conn: Any = None
        self._driver: Any = None

    def connect(self) -> None:
        """Connect to PostgreSQL database."""
        try:
            import psycopg2
        except ImportError:
            raise ConfigError(
                "psycopg2 is required for PostgreSQL. Install with: pip install psycopg2-binary"
            ) from None

        try:
            self._conn = psycopg2.connect(
                host=self._config.host,
                port=self._config.port,
                dbname=self._config.database,
                user=self._config.username,
                password=self._config.password,
                connect_timeout=self._config.connect_timeout,
                **self._config.options,
            )
            self._driver = psycopg2
            self._connected = True
        except psycopg2.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to PostgreSQL at "
                f"{self._config.to_connection_string()}: {e}",
                cause=e,
            ) from e

    def disconnect(self) -> None:
        """Close PostgreSQL connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            self._connected = False

    def get_connection(self) -> Connection:
        """Get the PostgreSQL connection."""
        if not self._conn:
            self.connect()
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Transaction context manager (psycopg2 opens the transaction implicitly)."""
        conn = self.get_connection()
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        try:
            conn.commit()
        except self._driver.Error as e:
            conn.rollback()
            raise QueryError(f"Commit failed: {e}", cause=e) from e

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a parameterised statement and return the cursor."""
        cursor = self.get_connection().cursor()
        try:
            cursor.execute(sql, params or None)
        except self._driver.Error as e:
            raise QueryError(str(e), cause=e) from e
        return cursor

    def execute_statement(self, sql: str) -> None:
        """Execute opaque statement text; ``%`` is not treated as a placeholder."""
        with self.get_connection().cursor() as cursor:
            try:
                cursor.execute(sql)
            except self._driver.Error as e:
                raise QueryError(str(e), cause=e) from e

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        """Hold a session-level ``pg_advisory_lock`` keyed on ``name``."""
        conn = self.get_connection()
        self.execute("SELECT pg_advisory_lock(hashtext(%s))", (name,))
        conn.commit()
        logger.debug("lock.acquired", name=name)
        try:
            yield
        finally:
            conn.rollback()
            self.execute("SELECT pg_advisory_unlock(hashtext(%s))", (name,))
            conn.commit()
            logger.debug("lock.released", name=name)


__all__ = [
    "PostgreSQLAdapter",
]
