"""SQL dialect abstraction for the ledger table.

The ledger accessor builds its SQL from ``Dialect`` fragments so the same
code writes to SQLite and PostgreSQL. Migration statements themselves are
opaque text and never pass through a dialect.

Examples:
    >>> from osprey.core.dialect import get_dialect
    >>> d = get_dialect("postgresql")
    >>> d.placeholders(3)
    '%s, %s, %s'
    >>> get_dialect("sqlite").auto_increment()
    'INTEGER PRIMARY KEY AUTOINCREMENT'

Tags:
    dialect, sql, portability, database, osprey
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a SQL fragment valid for the target database.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    def now(self) -> str:
        """SQL expression for the current UTC timestamp."""
        ...

    def auto_increment(self) -> str:
        """DDL fragment for an auto-incrementing primary key column."""
        ...

    def timestamp_type(self) -> str:
        """Column type used for ``applied_at``."""
        ...

    def timestamp_default_now(self) -> str:
        """DDL ``DEFAULT`` clause for ``applied_at``."""
        ...


class SQLiteDialect:
    """SQLite dialect: ``?`` placeholders, ``datetime('now')``."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def now(self) -> str:
        return "datetime('now')"

    def auto_increment(self) -> str:
        return "INTEGER PRIMARY KEY AUTOINCREMENT"

    def timestamp_type(self) -> str:
        return "TEXT"

    def timestamp_default_now(self) -> str:
        return "DEFAULT (datetime('now'))"


class PostgreSQLDialect:
    """PostgreSQL dialect: ``%s`` placeholders (psycopg2), ``NOW()``."""

    @property
    def name(self) -> str:
        return "postgresql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def now(self) -> str:
        return "NOW()"

    def auto_increment(self) -> str:
        return "SERIAL PRIMARY KEY"

    def timestamp_type(self) -> str:
        return "TIMESTAMPTZ"

    def timestamp_default_now(self) -> str:
        return "DEFAULT NOW()"


_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        ValueError: If ``db_type`` is not recognised.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}"
        )
    return _DIALECTS[key]


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "get_dialect",
]
