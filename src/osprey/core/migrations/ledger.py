"""
The migration ledger.

The ledger is the persisted record of which (identifier, tag) pairs have
been applied, one row each, with the fingerprint of the statements at apply
time. Two implementations of the ``LedgerStore`` protocol live here:

- ``DatabaseLedger`` keeps the rows in a table of the database being
  migrated, so a statement and its ledger row commit in the same transaction.
- ``InMemoryLedger`` keeps them in a dict; used by tests and dry runs.

Neither opens or commits a transaction. The execution engine owns the unit
of work; the ledger only reads and writes inside it.

Architecture:
    ::

        ┌──────────────────────── _migrations ─────────────────────────┐
        │ id │ identifier │ tag  │ fingerprint (sha256) │ applied_at    │
        ├────┼────────────┼──────┼──────────────────────┼───────────────┤
        │ 1  │ 001        │ up   │ 9f86d0...            │ 2026-01-05... │
        │ 2  │ 002        │ up   │ 60303a...            │ 2026-01-05... │
        └──────────────── UNIQUE (identifier, tag) ────────────────────┘

Tags:
    ledger, migrations, persistence, osprey
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from osprey.core.adapters.base import DatabaseAdapter
from osprey.core.errors import ConfigError, QueryError, WriteError
from osprey.core.logging import get_logger
from osprey.core.settings import validate_table_name

logger = get_logger(__name__)

DEFAULT_TABLE_NAME = "_migrations"


@dataclass(frozen=True)
class LedgerEntry:
    """One applied (identifier, tag) pair."""

    identifier: str
    tag: str
    fingerprint: str
    applied_at: str | None = field(default=None, compare=False)

    @property
    def key(self) -> tuple[str, str]:
        return (self.identifier, self.tag)


class DatabaseLedger:
    """
    Ledger stored in a table of the target database.

    Parameters
    ----------
    adapter
        Adapter for the database being migrated.
    table_name
        Ledger table name; must be a plain SQL identifier.
    """

    def __init__(self, adapter: DatabaseAdapter, table_name: str = DEFAULT_TABLE_NAME) -> None:
        self._adapter = adapter
        try:
            self._table = validate_table_name(table_name)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    @property
    def table_name(self) -> str:
        return self._table

    def ensure_table_exists(self) -> None:
        """Create the ledger table if it doesn't exist."""
        d = self._adapter.dialect
        self._adapter.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                id {d.auto_increment()},
                identifier TEXT NOT NULL,
                tag TEXT NOT NULL,
                fingerprint TEXT NOT NULL,
                applied_at {d.timestamp_type()} NOT NULL {d.timestamp_default_now()},
                UNIQUE (identifier, tag)
            )
            """
        )

    def list_entries(self) -> set[LedgerEntry]:
        """Return every recorded entry."""
        rows = self._adapter.query(
            f"SELECT identifier, tag, fingerprint, applied_at FROM {self._table} ORDER BY id"
        )
        return {
            LedgerEntry(
                identifier=row["identifier"],
                tag=row["tag"],
                fingerprint=row["fingerprint"],
                applied_at=str(row["applied_at"]) if row["applied_at"] is not None else None,
            )
            for row in rows
        }

    def record_applied(self, identifier: str, tag: str, fingerprint: str) -> None:
        """Insert the ledger row for (``identifier``, ``tag``)."""
        ph = self._adapter.dialect.placeholders(3)
        try:
            self._adapter.execute(
                f"INSERT INTO {self._table} (identifier, tag, fingerprint) VALUES ({ph})",
                (identifier, tag, fingerprint),
            )
        except QueryError as e:
            raise WriteError(
                f"Could not record {identifier}/{tag} in {self._table}: {e.message}",
                cause=e,
            ).with_context(identifier=identifier, tag=tag) from e
        logger.debug("ledger.recorded", identifier=identifier, tag=tag, table=self._table)

    def remove_entry(self, identifier: str, tag: str) -> None:
        """Delete the ledger row for (``identifier``, ``tag``)."""
        p = self._adapter.dialect.placeholder
        try:
            cursor = self._adapter.execute(
                f"DELETE FROM {self._table} WHERE identifier = {p(0)} AND tag = {p(1)}",
                (identifier, tag),
            )
        except QueryError as e:
            raise WriteError(
                f"Could not remove {identifier}/{tag} from {self._table}: {e.message}",
                cause=e,
            ).with_context(identifier=identifier, tag=tag) from e
        if cursor.rowcount == 0:
            raise WriteError(
                f"No ledger entry for {identifier}/{tag} in {self._table}"
            ).with_context(identifier=identifier, tag=tag)
        logger.debug("ledger.removed", identifier=identifier, tag=tag, table=self._table)


class InMemoryLedger:
    """Dict-backed ledger with the same contract as ``DatabaseLedger``."""

    def __init__(self, entries: list[LedgerEntry] | None = None) -> None:
        self._entries: dict[tuple[str, str], LedgerEntry] = {}
        for entry in entries or []:
            self._entries[entry.key] = entry
        self.table_created = False

    def ensure_table_exists(self) -> None:
        self.table_created = True

    def list_entries(self) -> set[LedgerEntry]:
        return set(self._entries.values())

    def record_applied(self, identifier: str, tag: str, fingerprint: str) -> None:
        key = (identifier, tag)
        if key in self._entries:
            raise WriteError(f"Ledger entry for {identifier}/{tag} already exists").with_context(
                identifier=identifier, tag=tag
            )
        self._entries[key] = LedgerEntry(
            identifier=identifier,
            tag=tag,
            fingerprint=fingerprint,
            applied_at=datetime.now(timezone.utc).isoformat(),
        )

    def remove_entry(self, identifier: str, tag: str) -> None:
        if self._entries.pop((identifier, tag), None) is None:
            raise WriteError(f"No ledger entry for {identifier}/{tag}").with_context(
                identifier=identifier, tag=tag
            )

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "DEFAULT_TABLE_NAME",
    "LedgerEntry",
    "DatabaseLedger",
    "InMemoryLedger",
]
