"""Database adapters: one interface over SQLite and PostgreSQL.

Architecture::

    DatabaseAdapter (base.py)        Abstract base: transaction/execute/query/lock
        |-- SQLiteAdapter            stdlib sqlite3
        |-- PostgreSQLAdapter        psycopg2, single connection

    DatabaseConfig (types.py)        Connection parameters
    DatabaseType (types.py)          Enum of supported backends
"""

from .base import DatabaseAdapter
from .postgresql import PostgreSQLAdapter
from .sqlite import SQLiteAdapter
from .types import DatabaseConfig, DatabaseType

__all__ = [
    "DatabaseAdapter",
    "SQLiteAdapter",
    "PostgreSQLAdapter",
    "DatabaseConfig",
    "DatabaseType",
]
