"""Tests for migration file discovery."""

from __future__ import annotations

import pytest

from osprey.core.errors import ConfigError, ParseError
from osprey.core.migrations.discovery import MigrationDirectory

UP = "-- tag: up\nSELECT 1;\n"


class TestMigrationDirectory:
    def test_sorted_numerically(self, migrations_dir, write_migration):
        write_migration("10_ten.sql", UP)
        write_migration("2_two.sql", UP)
        write_migration("001_one.sql", UP)
        assert [m.identifier for m in MigrationDirectory(migrations_dir)] == ["001", "2", "10"]

    def test_only_sql_files(self, migrations_dir, write_migration):
        write_migration("001_init.sql", UP)
        write_migration("README.md", "# notes\n")
        write_migration("002_draft.sql.bak", UP)
        (migrations_dir / "003_dir.sql").mkdir()
        assert [p.name for p in MigrationDirectory(migrations_dir).paths()] == ["001_init.sql"]

    def test_empty_directory(self, migrations_dir):
        assert MigrationDirectory(migrations_dir).load() == []

    def test_restartable_and_not_cached(self, migrations_dir, write_migration):
        directory = MigrationDirectory(migrations_dir)
        write_migration("001_init.sql", UP)
        assert len(list(directory)) == 1
        write_migration("002_more.sql", UP)
        assert len(list(directory)) == 2

    def test_lazy_parsing(self, migrations_dir, write_migration):
        write_migration("001_ok.sql", UP)
        write_migration("002_bad.sql", "SELECT 1;\n")
        iterator = iter(MigrationDirectory(migrations_dir))
        assert next(iterator).identifier == "001"
        with pytest.raises(ParseError):
            next(iterator)

    def test_identifier_collision(self, migrations_dir, write_migration):
        write_migration("001_a.sql", UP)
        write_migration("1_b.sql", UP)
        with pytest.raises(ParseError, match="used by more than one file: 001_a.sql, 1_b.sql"):
            MigrationDirectory(migrations_dir).load()

    def test_underivable_identifier(self, migrations_dir, write_migration):
        write_migration("init.sql", UP)
        with pytest.raises(ParseError, match="Could not derive an identifier"):
            MigrationDirectory(migrations_dir).paths()

    def test_not_a_directory(self, tmp_path):
        with pytest.raises(ConfigError, match="not a directory"):
            MigrationDirectory(tmp_path / "missing").load()

    def test_custom_extension(self, migrations_dir, write_migration):
        write_migration("001_init.psql", UP)
        directory = MigrationDirectory(migrations_dir, extension=".psql")
        assert [m.name for m in directory] == ["001_init.psql"]
