"""
Reconciliation of the migrations directory against the ledger.

Every identifier found on disk or in the ledger gets exactly one
``ReconciliationRecord``. The sanity gate then refuses to go on if any record
shows that the ledger no longer describes the files: a drifted fingerprint,
a file that disappeared, or (in ``sanity`` mode) a file nobody has applied.

The gate runs to completion before any statement executes. It is never an
inline per-file check.

Classification, for one identifier and an optional target tag::

    no file on disk                          → missing-on-disk
    a recorded tag is gone or its hash moved → applied-drifted
    target tag not recorded, below a file    → unknown-new-file
      already recorded for that tag
    target tag given and not recorded        → pending
    recorded, every hash matches             → applied-unchanged
    nothing recorded, no target tag          → unknown-new-file

Tags:
    sanity, drift-detection, reconciliation, osprey
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from osprey.core.errors import SanityError
from osprey.core.logging import get_logger

from .ledger import LedgerEntry
from .sql_file import MigrationFile

logger = get_logger(__name__)


class ReconciliationStatus(str, Enum):
    APPLIED_UNCHANGED = "applied-unchanged"
    APPLIED_DRIFTED = "applied-drifted"
    PENDING = "pending"
    UNKNOWN_NEW_FILE = "unknown-new-file"
    MISSING_ON_DISK = "missing-on-disk"


@dataclass(frozen=True)
class ReconciliationRecord:
    """Transient classification of one identifier."""

    identifier: str
    status: ReconciliationStatus
    file: MigrationFile | None = None
    entries: tuple[LedgerEntry, ...] = ()
    detail: str = ""

    @property
    def applied_tags(self) -> tuple[str, ...]:
        return tuple(entry.tag for entry in self.entries)

    def describe(self) -> str:
        name = self.file.name if self.file else self.identifier
        text = f"{name}: {self.status.value}"
        return f"{text} ({self.detail})" if self.detail else text


def _sort_key(identifier: str) -> tuple[int, str]:
    return (int(identifier), identifier) if identifier.isdigit() else (-1, identifier)


def reconcile(
    files: Iterable[MigrationFile],
    entries: Iterable[LedgerEntry],
    *,
    tag: str | None = None,
) -> list[ReconciliationRecord]:
    """
    Classify every identifier present in ``files`` or ``entries``.

    Records are returned in ascending identifier order.
    """
    by_identifier: dict[str, tuple[MigrationFile | None, list[LedgerEntry]]] = {}
    high_water: str | None = None
    for migration in files:
        by_identifier[migration.identifier] = (migration, [])
    for entry in entries:
        migration, recorded = by_identifier.setdefault(entry.identifier, (None, []))
        recorded.append(entry)
        if entry.tag == tag and (
            high_water is None or _sort_key(entry.identifier) > _sort_key(high_water)
        ):
            high_water = entry.identifier

    records = []
    for identifier in sorted(by_identifier, key=_sort_key):
        migration, recorded = by_identifier[identifier]
        recorded.sort(key=lambda e: e.tag)
        records.append(_classify(identifier, migration, tuple(recorded), tag, high_water))
    return records


def _classify(
    identifier: str,
    migration: MigrationFile | None,
    entries: tuple[LedgerEntry, ...],
    tag: str | None,
    high_water: str | None = None,
) -> ReconciliationRecord:
    if migration is None:
        return ReconciliationRecord(
            identifier,
            ReconciliationStatus.MISSING_ON_DISK,
            entries=entries,
            detail=f"recorded for tag(s) {', '.join(e.tag for e in entries)} but no file on disk",
        )

    for entry in entries:
        current = migration.fingerprint(entry.tag)
        if current is None:
            detail = f"tag '{entry.tag}' was applied but is no longer defined"
        elif current != entry.fingerprint:
            detail = f"tag '{entry.tag}' changed since it was applied"
        else:
            continue
        return ReconciliationRecord(
            identifier, ReconciliationStatus.APPLIED_DRIFTED, migration, entries, detail
        )

    if tag is not None and tag not in {e.tag for e in entries}:
        if high_water is not None and _sort_key(identifier) < _sort_key(high_water):
            return ReconciliationRecord(
                identifier,
                ReconciliationStatus.UNKNOWN_NEW_FILE,
                migration,
                entries,
                detail=f"out of order: {high_water} is already applied for tag '{tag}'",
            )
        return ReconciliationRecord(identifier, ReconciliationStatus.PENDING, migration, entries)
    if entries:
        return ReconciliationRecord(
            identifier, ReconciliationStatus.APPLIED_UNCHANGED, migration, entries
        )
    return ReconciliationRecord(
        identifier,
        ReconciliationStatus.UNKNOWN_NEW_FILE,
        migration,
        detail="not recorded in the ledger",
    )


def find_violations(
    records: Sequence[ReconciliationRecord],
    *,
    ignore_new_files: bool = False,
    allow_missing_files: bool = False,
) -> list[ReconciliationRecord]:
    """Return the records that must stop the run."""
    blocking = {ReconciliationStatus.APPLIED_DRIFTED}
    if not ignore_new_files:
        blocking.add(ReconciliationStatus.UNKNOWN_NEW_FILE)
    if not allow_missing_files:
        blocking.add(ReconciliationStatus.MISSING_ON_DISK)
    return [record for record in records if record.status in blocking]


def check_sanity(
    files: Iterable[MigrationFile],
    entries: Iterable[LedgerEntry],
    *,
    tag: str | None = None,
    ignore_new_files: bool = False,
    allow_missing_files: bool = False,
) -> list[ReconciliationRecord]:
    """
    Reconcile and gate.

    Returns the records when the gate passes.

    Raises:
        SanityError: Listing every violating record.
    """
    records = reconcile(files, entries, tag=tag)
    violations = find_violations(
        records,
        ignore_new_files=ignore_new_files,
        allow_missing_files=allow_missing_files,
    )
    if violations:
        for record in violations:
            logger.warning(
                "sanity.violation",
                identifier=record.identifier,
                status=record.status.value,
                detail=record.detail,
            )
        lines = "\n".join(f"  - {record.describe()}" for record in violations)
        raise SanityError(
            f"Sanity check failed for {len(violations)} file(s):\n{lines}",
            records=violations,
        )
    logger.debug("sanity.passed", records=len(records))
    return records


__all__ = [
    "ReconciliationStatus",
    "ReconciliationRecord",
    "reconcile",
    "find_violations",
    "check_sanity",
]
