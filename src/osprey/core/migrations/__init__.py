"""Tagged SQL migrations.

Pipeline::

    MigrationDirectory (discovery.py)   *.sql files, ordered by identifier
        -> MigrationFile (sql_file.py)   tag -> statements, fingerprints
    LedgerStore (ledger.py)             applied (identifier, tag) pairs
        -> reconcile / check_sanity (sanity.py)
        -> build_plan (planner.py)
        -> MigrationEngine (engine.py)   one atomic unit per file
    MigrationRunner (runner.py)         adapter + directory + ledger + lock
"""

from .discovery import MigrationDirectory
from .engine import (
    DEFAULT_COMPENSATE_TAG,
    DEFAULT_TAG,
    EngineState,
    MigrationEngine,
    MigrationResult,
)
from .ledger import DEFAULT_TABLE_NAME, DatabaseLedger, InMemoryLedger, LedgerEntry
from .planner import MigrationPlan, build_plan, build_revert_plan
from .runner import MigrationRunner, RunMode
from .sanity import (
    ReconciliationRecord,
    ReconciliationStatus,
    check_sanity,
    find_violations,
    reconcile,
)
from .sql_file import MigrationFile, TagSection, derive_identifier, parse_sections

__all__ = [
    "MigrationDirectory",
    "MigrationFile",
    "TagSection",
    "derive_identifier",
    "parse_sections",
    "DEFAULT_TABLE_NAME",
    "LedgerEntry",
    "DatabaseLedger",
    "InMemoryLedger",
    "ReconciliationStatus",
    "ReconciliationRecord",
    "reconcile",
    "find_violations",
    "check_sanity",
    "MigrationPlan",
    "build_plan",
    "build_revert_plan",
    "DEFAULT_TAG",
    "DEFAULT_COMPENSATE_TAG",
    "EngineState",
    "MigrationResult",
    "MigrationEngine",
    "RunMode",
    "MigrationRunner",
]
