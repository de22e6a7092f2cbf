"""Tests for pending-set and revert plan computation."""

from __future__ import annotations

import pytest

from osprey.core.errors import TagMissingError
from osprey.core.migrations.ledger import LedgerEntry
from osprey.core.migrations.planner import MigrationPlan, build_plan, build_revert_plan
from osprey.core.migrations.sanity import reconcile
from osprey.core.migrations.sql_file import MigrationFile

UP_DOWN = "-- tag: up\nSELECT 1;\n-- tag: down\nSELECT 2;\n"
UP_ONLY = "-- tag: up\nSELECT 1;\n"


def files(*specs: tuple[str, str]) -> list[MigrationFile]:
    return [MigrationFile.from_string(name, body) for name, body in specs]


def entries_for(migrations: list[MigrationFile], tag: str = "up") -> list[LedgerEntry]:
    return [LedgerEntry(m.identifier, tag, m.fingerprint(tag)) for m in migrations]


class TestMigrationPlan:
    def test_empty(self):
        plan = MigrationPlan(tag="up")
        assert plan.is_empty
        assert len(plan) == 0
        assert plan.identifiers == []


class TestBuildPlan:
    def test_pending_in_ascending_order(self):
        migrations = files(("3_c.sql", UP_ONLY), ("1_a.sql", UP_ONLY), ("2_b.sql", UP_ONLY))
        records = reconcile(migrations, entries_for(migrations[1:2]), tag="up")
        plan = build_plan(records, "up")
        assert plan.identifiers == ["2", "3"]
        assert plan.tag == "up"

    def test_nothing_pending(self):
        migrations = files(("001_a.sql", UP_ONLY))
        records = reconcile(migrations, entries_for(migrations), tag="up")
        assert build_plan(records, "up").is_empty

    def test_tag_missing_is_an_error(self):
        migrations = files(
            ("001_a.sql", "-- tag: up\nSELECT 1;\n-- tag: seed\nSELECT 1;\n"),
            ("002_b.sql", UP_ONLY),
            ("003_c.sql", "-- tag: seed\nSELECT 3;\n"),
        )
        records = reconcile(migrations, [], tag="seed")
        with pytest.raises(TagMissingError) as exc_info:
            build_plan(records, "seed")
        assert exc_info.value.identifiers == ["002"]
        assert exc_info.value.tag == "seed"

    def test_applied_files_are_not_checked_for_the_tag(self):
        migrations = files(("001_a.sql", UP_ONLY), ("002_b.sql", "-- tag: seed\nSELECT 2;\n"))
        records = reconcile(migrations, [LedgerEntry("001", "seed", "x")], tag="seed")
        # 001 drifted (its recorded seed tag is gone), so only 002 is pending
        assert build_plan(records, "seed").identifiers == ["002"]


class TestBuildRevertPlan:
    def test_latest_first(self):
        migrations = files(("001_a.sql", UP_DOWN), ("002_b.sql", UP_DOWN), ("003_c.sql", UP_DOWN))
        records = reconcile(migrations, entries_for(migrations))
        plan = build_revert_plan(records, "up", "down", steps=2)
        assert plan.identifiers == ["003", "002"]
        assert plan.tag == "down"

    def test_only_files_with_the_tag_applied(self):
        migrations = files(("001_a.sql", UP_DOWN), ("002_b.sql", UP_DOWN))
        records = reconcile(migrations, entries_for(migrations[:1]), tag=None)
        assert build_revert_plan(records, "up", "down").identifiers == ["001"]

    def test_steps_larger_than_history(self):
        migrations = files(("001_a.sql", UP_DOWN))
        records = reconcile(migrations, entries_for(migrations))
        assert build_revert_plan(records, "up", "down", steps=5).identifiers == ["001"]

    def test_zero_steps(self):
        assert build_revert_plan([], "up", "down", steps=0).is_empty

    def test_missing_compensating_tag(self):
        migrations = files(("001_a.sql", UP_DOWN), ("002_b.sql", UP_ONLY))
        records = reconcile(migrations, entries_for(migrations))
        with pytest.raises(TagMissingError) as exc_info:
            build_revert_plan(records, "up", "down")
        assert exc_info.value.identifiers == ["002"]
        assert exc_info.value.tag == "down"
