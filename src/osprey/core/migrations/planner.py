"""Pending-set computation.

``build_plan`` turns reconciled records into the ordered list of files the
engine will apply for a tag. ``build_revert_plan`` does the same for an
explicit compensating run. Both refuse to produce a partial plan: if any
selected file lacks the tag it would run, nothing is planned.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from osprey.core.errors import TagMissingError

from .sanity import ReconciliationRecord, ReconciliationStatus
from .sql_file import MigrationFile


@dataclass(frozen=True)
class MigrationPlan:
    """Files to run, in execution order, and the tag each will run."""

    tag: str
    steps: tuple[MigrationFile, ...] = ()

    @property
    def identifiers(self) -> list[str]:
        return [step.identifier for step in self.steps]

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def __iter__(self) -> Iterator[MigrationFile]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)


def build_plan(records: Sequence[ReconciliationRecord], tag: str) -> MigrationPlan:
    """
    Ascending list of pending files for ``tag``.

    ``records`` must come from ``reconcile(..., tag=tag)``.

    Raises:
        TagMissingError: If any pending file does not define ``tag``.
    """
    pending = [r for r in records if r.status is ReconciliationStatus.PENDING]
    missing = [r.identifier for r in pending if not r.file.has_tag(tag)]
    if missing:
        raise TagMissingError(tag, missing)
    return MigrationPlan(tag=tag, steps=tuple(r.file for r in pending))


def build_revert_plan(
    records: Sequence[ReconciliationRecord],
    tag: str,
    compensate_tag: str,
    steps: int = 1,
) -> MigrationPlan:
    """
    Latest ``steps`` files with ``tag`` applied, newest first, to run ``compensate_tag``.

    Raises:
        TagMissingError: If a selected file does not define ``compensate_tag``.
    """
    if steps < 1:
        return MigrationPlan(tag=compensate_tag)
    applied = [
        r
        for r in records
        if r.status is ReconciliationStatus.APPLIED_UNCHANGED and tag in r.applied_tags
    ]
    selected = list(reversed(applied))[:steps]
    missing = [r.identifier for r in selected if not r.file.has_tag(compensate_tag)]
    if missing:
        raise TagMissingError(compensate_tag, missing)
    return MigrationPlan(tag=compensate_tag, steps=tuple(r.file for r in selected))


__all__ = [
    "MigrationPlan",
    "build_plan",
    "build_revert_plan",
]
