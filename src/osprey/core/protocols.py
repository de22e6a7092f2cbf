"""
Protocol definitions for osprey.

The execution engine never imports a database driver. It depends on three
structural contracts defined here:

- ``Connection``: the minimal DB-API shape adapters hand to callers.
- ``UnitOfWork``: something that can open an atomic unit and run raw
  statement text inside it (every ``DatabaseAdapter`` is one).
- ``LedgerStore``: the list/record/remove/ensure-table capability over the
  persisted record of applied migrations.

Any object with the right shape satisfies a protocol; no inheritance or
registration is needed. Tests run the engine against ``SQLiteAdapter(":memory:")``
and ``InMemoryLedger`` through exactly these seams.

Architecture:
    ::

        MigrationEngine
          ├── UnitOfWork.transaction()        → one atomic unit per file
          ├── UnitOfWork.execute_statement()  → opaque statement text
          └── LedgerStore.record_applied()    → inside that same unit

Tags:
    protocol, connection, unit-of-work, ledger, osprey
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from osprey.core.migrations.ledger import LedgerEntry


@runtime_checkable
class Connection(Protocol):
    """
    Minimal synchronous connection interface.

    ``sqlite3.Connection`` satisfies it natively; psycopg2 connections are
    driven through a cursor by ``PostgreSQLAdapter``.
    """

    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the current transaction."""
        ...

    def close(self) -> None:
        """Close the connection."""
        ...


@runtime_checkable
class UnitOfWork(Protocol):
    """Provider of atomic units of work against a backing store."""

    def transaction(self) -> AbstractContextManager[Any]:
        """Open an atomic unit: commit on clean exit, roll back on error."""
        ...

    def execute_statement(self, sql: str) -> None:
        """Execute one opaque statement without parameter binding."""
        ...


@runtime_checkable
class LedgerStore(Protocol):
    """
    Capability interface over the persisted ledger of applied migrations.

    Implementations hold no transaction of their own: every call runs
    inside whatever unit the caller has opened. ``record_applied`` and
    ``remove_entry`` raise ``WriteError`` on failure.
    """

    def ensure_table_exists(self) -> None:
        """Create the backing table if it does not exist yet."""
        ...

    def list_entries(self) -> set[LedgerEntry]:
        """Return every recorded (identifier, tag) entry."""
        ...

    def record_applied(self, identifier: str, tag: str, fingerprint: str) -> None:
        """Record that ``tag`` of ``identifier`` was applied."""
        ...

    def remove_entry(self, identifier: str, tag: str) -> None:
        """Remove the entry for (``identifier``, ``tag``)."""
        ...


__all__ = [
    "Connection",
    "UnitOfWork",
    "LedgerStore",
]
