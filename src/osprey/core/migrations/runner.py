"""SQL migration runner.

Wires a migrations directory, a database adapter and the ledger table into
a ``MigrationEngine`` and exposes the run modes the CLI offers:
``migrate``, ``sanity``, ``plan``, ``status`` and ``revert``.

Every mode holds the adapter's single-writer lock (a PostgreSQL advisory
lock keyed on the ledger table; nothing for SQLite) from before the sanity
gate until the run ends.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path

from osprey.core.adapters.base import DatabaseAdapter
from osprey.core.logging import LogContext, get_logger
from osprey.core.protocols import LedgerStore

from .discovery import MigrationDirectory
from .engine import DEFAULT_COMPENSATE_TAG, DEFAULT_TAG, MigrationEngine, MigrationResult
from .ledger import DEFAULT_TABLE_NAME, DatabaseLedger
from .planner import MigrationPlan
from .sanity import ReconciliationRecord

logger = get_logger(__name__)


class RunMode(str, Enum):
    MIGRATE = "migrate"
    SANITY = "sanity"
    PLAN = "plan"
    STATUS = "status"
    REVERT = "revert"


class MigrationRunner:
    """Applies tagged SQL migrations from a directory.

    Parameters
    ----------
    adapter
        Adapter for the database being migrated.
    directory
        Directory containing numbered, tagged ``.sql`` files.
    table_name
        Ledger table name.
    compensate_tag
        Tag run when the applied tag fails, and by ``revert``.
    ledger
        Ledger override; defaults to a ``DatabaseLedger`` on ``adapter``.

    Example::

        from osprey.core.adapters import SQLiteAdapter
        from osprey.core.migrations import MigrationRunner

        with SQLiteAdapter("app.db") as adapter:
            result = MigrationRunner(adapter, "./migrations/").migrate()
            print(f"Applied {len(result.applied)} migrations")
    """

    def __init__(
        self,
        adapter: DatabaseAdapter,
        directory: MigrationDirectory | Path | str,
        *,
        table_name: str = DEFAULT_TABLE_NAME,
        compensate_tag: str = DEFAULT_COMPENSATE_TAG,
        ledger: LedgerStore | None = None,
    ) -> None:
        self._adapter = adapter
        self._directory = (
            directory if isinstance(directory, MigrationDirectory) else MigrationDirectory(directory)
        )
        self._table_name = table_name
        self._ledger = ledger if ledger is not None else DatabaseLedger(adapter, table_name)
        self._engine = MigrationEngine(adapter, self._ledger, compensate_tag=compensate_tag)

    @property
    def engine(self) -> MigrationEngine:
        return self._engine

    @property
    def directory(self) -> MigrationDirectory:
        return self._directory

    # ------------------------------------------------------------------
    # Run modes
    # ------------------------------------------------------------------

    def migrate(self, tag: str = DEFAULT_TAG, *, allow_missing_files: bool = False) -> MigrationResult:
        """Apply all pending files for ``tag``."""
        with self._session(RunMode.MIGRATE, tag=tag):
            return self._engine.migrate(
                self._directory, tag, allow_missing_files=allow_missing_files
            )

    def revert(
        self,
        tag: str = DEFAULT_TAG,
        *,
        steps: int = 1,
        allow_missing_files: bool = False,
    ) -> MigrationResult:
        """Undo the latest ``steps`` applications of ``tag``."""
        with self._session(RunMode.REVERT, tag=tag):
            return self._engine.revert(
                self._directory, tag, steps=steps, allow_missing_files=allow_missing_files
            )

    def sanity(
        self,
        *,
        ignore_new_files: bool = False,
        allow_missing_files: bool = False,
    ) -> list[ReconciliationRecord]:
        """Run only the pre-flight gate; raises ``SanityError`` on violations."""
        with self._session(RunMode.SANITY):
            return self._engine.validate(
                self._directory.load(),
                ignore_new_files=ignore_new_files,
                allow_missing_files=allow_missing_files,
            )

    def plan(self, tag: str = DEFAULT_TAG, *, allow_missing_files: bool = False) -> MigrationPlan:
        """
        Sanity gate plus pending plan, without executing any migration.

        The ledger table is created if missing.
        """
        with self._session(RunMode.PLAN, tag=tag):
            return self._engine.plan(
                self._directory.load(), tag, allow_missing_files=allow_missing_files
            )

    def status(self, tag: str | None = None) -> list[ReconciliationRecord]:
        """
        Reconciliation records for every identifier; never gates.

        The ledger table is created if missing.
        """
        with self._session(RunMode.STATUS, tag=tag):
            return self._engine.reconcile(self._directory.load(), tag=tag)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _session(self, mode: RunMode, *, tag: str | None = None) -> Iterator[None]:
        context = {"mode": mode.value, "directory": str(self._directory.path)}
        if tag is not None:
            context["tag"] = tag
        with LogContext(**context), self._adapter.lock(f"osprey:{self._table_name}"):
            logger.debug("runner.started")
            yield


__all__ = [
    "RunMode",
    "MigrationRunner",
]
