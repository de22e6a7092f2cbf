"""
Migration execution engine.

Applies the pending set one file at a time. Each file runs in its own
atomic unit of work: the tag's statements and the ledger row commit
together or not at all. When a statement fails, the unit is rolled back and
the file's compensating tag (``down`` by default) runs in a fresh unit to
undo anything the backing store could not roll back, then the run stops.
Files committed earlier in the run stay committed.

Manifesto:
    - **Gate first:** Reconciliation and the sanity gate pass in full before
      the first statement executes
    - **One file, one unit:** A bad statement never leaks past its own file
    - **Forward progress is a fact:** Earlier successes are not rolled back
      by a later, unrelated failure
    - **No retries:** A failed run is reported, not repeated

Architecture:
    ::

        IDLE ──► VALIDATED ──► PLANNING ──► APPLYING(i) ──► COMMITTED
          │          │             │             │
          └──────────┴─────────────┴─────────────┴────────► FAILED

        APPLYING(i), per file:
        ┌──────────────────────────────────────────────────────────┐
        │ BEGIN                                                    │
        │   execute tag statements ──fail──► ROLLBACK              │
        │   record_applied()                   │                   │
        │ COMMIT                               ▼                   │
        │                         BEGIN; compensating tag; COMMIT  │
        │                         stop: ExecutionError             │
        └──────────────────────────────────────────────────────────┘

Examples:
    >>> from osprey.core.adapters import SQLiteAdapter
    >>> from osprey.core.migrations import InMemoryLedger, MigrationDirectory
    >>> engine = MigrationEngine(SQLiteAdapter(), InMemoryLedger())
    >>> result = engine.migrate(MigrationDirectory("./migrations/"), tag="up")
    >>> result.state, result.applied
    (<EngineState.COMMITTED: 'committed'>, ['001', '002'])

Tags:
    migrations, execution, state-machine, compensation, osprey
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from osprey.core.errors import (
    ExecutionError,
    OspreyError,
    QueryError,
    RunCancelledError,
    WriteError,
)
from osprey.core.logging import get_logger
from osprey.core.protocols import LedgerStore, UnitOfWork

from .ledger import LedgerEntry
from .planner import MigrationPlan, build_plan, build_revert_plan
from .sanity import ReconciliationRecord, check_sanity, reconcile
from .sql_file import MigrationFile, TagSection

logger = get_logger(__name__)

DEFAULT_TAG = "up"
DEFAULT_COMPENSATE_TAG = "down"


class EngineState(str, Enum):
    IDLE = "idle"
    VALIDATED = "validated"
    PLANNING = "planning"
    APPLYING = "applying"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class MigrationResult:
    """
    Outcome of a ``migrate`` or ``revert`` run.

    ``applied`` lists identifiers committed by this run, in order, whether
    or not the run later failed. ``reverted`` is the same for ``revert``.
    """

    tag: str
    mode: str = "migrate"
    state: EngineState = EngineState.IDLE
    planned: list[str] = field(default_factory=list)
    applied: list[str] = field(default_factory=list)
    reverted: list[str] = field(default_factory=list)
    records: list[ReconciliationRecord] = field(default_factory=list)
    failed: str | None = None
    compensated: bool = False
    error: OspreyError | None = None

    @property
    def success(self) -> bool:
        return self.state is EngineState.COMMITTED

    @property
    def exit_code(self) -> int:
        if self.success:
            return 0
        return self.error.exit_code if self.error is not None else 1

    def raise_for_error(self) -> None:
        """Re-raise the error that ended the run, if any."""
        if self.error is not None:
            raise self.error


class MigrationEngine:
    """
    Applies tagged migration files against a unit-of-work provider.

    Parameters
    ----------
    unit_of_work
        Opens atomic units and executes statement text (any ``DatabaseAdapter``).
    ledger
        Where applied (identifier, tag) pairs are recorded.
    compensate_tag
        Tag run when the requested tag's statements fail.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        ledger: LedgerStore,
        *,
        compensate_tag: str = DEFAULT_COMPENSATE_TAG,
    ) -> None:
        self._uow = unit_of_work
        self._ledger = ledger
        self._compensate_tag = compensate_tag
        self._state = EngineState.IDLE
        self._cancel = threading.Event()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def compensate_tag(self) -> str:
        return self._compensate_tag

    def request_cancel(self) -> None:
        """Stop before the next file; the file in flight finishes or rolls back."""
        self._cancel.set()

    def reconcile(
        self,
        files: Iterable[MigrationFile],
        *,
        tag: str | None = None,
    ) -> list[ReconciliationRecord]:
        """Reconcile files against the current ledger without gating."""
        files = list(files)
        return reconcile(files, self._read_entries(), tag=tag)

    def plan(
        self,
        files: Iterable[MigrationFile],
        tag: str = DEFAULT_TAG,
        *,
        allow_missing_files: bool = False,
    ) -> MigrationPlan:
        """Run the sanity gate and return the pending plan without executing it."""
        records = self.validate(list(files), tag=tag, allow_missing_files=allow_missing_files)
        return build_plan(records, tag)

    def migrate(
        self,
        files: Iterable[MigrationFile],
        tag: str = DEFAULT_TAG,
        *,
        allow_missing_files: bool = False,
    ) -> MigrationResult:
        """
        Apply every pending file for ``tag`` in identifier order.

        Errors end the run in ``FAILED`` and are returned on the result;
        anything that is not an ``OspreyError`` propagates.
        """
        result = MigrationResult(tag=tag)
        self._begin()
        try:
            result.records = self.validate(
                list(files), tag=tag, allow_missing_files=allow_missing_files
            )
            self._transition(EngineState.PLANNING)
            plan = build_plan(result.records, tag)
            result.planned = plan.identifiers
            logger.info("migration.planned", tag=tag, pending=plan.identifiers)

            self._transition(EngineState.APPLYING)
            for migration in plan:
                self._check_cancelled(migration)
                result.failed = migration.identifier
                self._apply(migration, tag)
                result.failed = None
                result.applied.append(migration.identifier)

            self._transition(EngineState.COMMITTED)
            logger.info("migration.committed", tag=tag, applied=result.applied)
        except ExecutionError as e:
            result.compensated = e.compensated
            self._fail(result, e)
        except OspreyError as e:
            self._fail(result, e)
        result.state = self._state
        return result

    def revert(
        self,
        files: Iterable[MigrationFile],
        tag: str = DEFAULT_TAG,
        *,
        steps: int = 1,
        allow_missing_files: bool = False,
    ) -> MigrationResult:
        """
        Explicit compensating run.

        For the latest ``steps`` files with ``tag`` recorded, newest first,
        run the compensating tag and remove the ledger entry in one unit.
        """
        result = MigrationResult(tag=tag, mode="revert")
        self._begin()
        try:
            result.records = self.validate(
                list(files),
                tag=None,
                ignore_new_files=True,
                allow_missing_files=allow_missing_files,
            )
            self._transition(EngineState.PLANNING)
            plan = build_revert_plan(result.records, tag, self._compensate_tag, steps)
            result.planned = plan.identifiers
            logger.info("revert.planned", tag=tag, compensate_tag=plan.tag, files=plan.identifiers)

            self._transition(EngineState.APPLYING)
            for migration in plan:
                self._check_cancelled(migration)
                result.failed = migration.identifier
                self._revert(migration, tag)
                result.failed = None
                result.reverted.append(migration.identifier)

            self._transition(EngineState.COMMITTED)
            logger.info("revert.committed", tag=tag, reverted=result.reverted)
        except OspreyError as e:
            self._fail(result, e)
        result.state = self._state
        return result

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _begin(self) -> None:
        self._state = EngineState.IDLE
        self._cancel.clear()

    def _transition(self, state: EngineState) -> None:
        logger.debug("engine.state", previous=self._state.value, state=state.value)
        self._state = state

    def _fail(self, result: MigrationResult, error: OspreyError) -> None:
        self._transition(EngineState.FAILED)
        result.error = error
        logger.error(
            f"{result.mode}.failed",
            applied=result.applied,
            reverted=result.reverted,
            **error.to_dict(),
        )

    def _check_cancelled(self, migration: MigrationFile) -> None:
        if self._cancel.is_set():
            raise RunCancelledError(
                f"Run cancelled before {migration.name}"
            ).with_context(identifier=migration.identifier)

    def validate(
        self,
        files: Iterable[MigrationFile],
        *,
        tag: str | None = None,
        ignore_new_files: bool = False,
        allow_missing_files: bool = False,
    ) -> list[ReconciliationRecord]:
        """Sanity gate: reconcile against the ledger and raise ``SanityError`` on violations."""
        records = check_sanity(
            list(files),
            self._read_entries(),
            tag=tag,
            ignore_new_files=ignore_new_files,
            allow_missing_files=allow_missing_files,
        )
        self._transition(EngineState.VALIDATED)
        return records

    def _read_entries(self) -> set[LedgerEntry]:
        with self._uow.transaction():
            self._ledger.ensure_table_exists()
            return self._ledger.list_entries()

    # ------------------------------------------------------------------
    # Per-file units of work
    # ------------------------------------------------------------------

    def _apply(self, migration: MigrationFile, tag: str) -> None:
        section = migration.section(tag)
        log = logger.bind(identifier=migration.identifier, tag=tag, file=migration.name)
        log.info("migration.applying", statements=len(section.statements))
        try:
            with self._uow.transaction():
                self._execute(migration, section)
                self._ledger.record_applied(migration.identifier, tag, section.fingerprint)
        except ExecutionError as e:
            self._compensate(migration, e)
            raise
        except WriteError as e:
            log.warning("migration.ledger_write_failed", warning=WriteError.WARNING)
            raise WriteError(
                f"{e.message}; {WriteError.WARNING}", cause=e.cause or e
            ).with_context(identifier=migration.identifier, tag=tag) from e
        except QueryError as e:
            log.warning("migration.commit_failed", warning=WriteError.WARNING)
            raise WriteError(
                f"Could not commit {migration.name} ({tag}): {e.message}; {WriteError.WARNING}",
                cause=e,
            ).with_context(identifier=migration.identifier, tag=tag) from e
        log.info("migration.applied")

    def _compensate(self, migration: MigrationFile, error: ExecutionError) -> None:
        tag = self._compensate_tag
        log = logger.bind(identifier=migration.identifier, tag=tag, file=migration.name)
        section = migration.section(tag)
        if section is None or tag == error.tag:
            log.warning("migration.no_compensation", failed_tag=error.tag)
            return
        try:
            with self._uow.transaction():
                self._execute(migration, section)
        except (ExecutionError, QueryError) as e:
            error.compensation_error = e
            log.error("migration.compensation_failed", error=str(e))
            return
        error.compensated = True
        log.info("migration.compensated", failed_tag=error.tag)

    def _revert(self, migration: MigrationFile, tag: str) -> None:
        section = migration.section(self._compensate_tag)
        log = logger.bind(identifier=migration.identifier, tag=section.name, file=migration.name)
        try:
            with self._uow.transaction():
                self._execute(migration, section)
                self._ledger.remove_entry(migration.identifier, tag)
        except QueryError as e:
            raise WriteError(
                f"Could not commit revert of {migration.name}: {e.message}", cause=e
            ).with_context(identifier=migration.identifier, tag=tag) from e
        log.info("revert.applied", removed_tag=tag)

    def _execute(self, migration: MigrationFile, section: TagSection) -> None:
        for number, statement in enumerate(section.statements, start=1):
            try:
                self._uow.execute_statement(statement)
            except QueryError as e:
                raise ExecutionError(
                    f"Statement {number} of tag '{section.name}' in {migration.name} "
                    f"failed: {e.message}",
                    identifier=migration.identifier,
                    tag=section.name,
                    cause=e,
                ) from e


__all__ = [
    "DEFAULT_TAG",
    "DEFAULT_COMPENSATE_TAG",
    "EngineState",
    "MigrationResult",
    "MigrationEngine",
]
