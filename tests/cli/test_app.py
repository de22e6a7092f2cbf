"""
Tests for the ``osprey`` CLI: options, run modes and exit codes.
"""

from __future__ import annotations

import json
import os
import sqlite3
import textwrap
from pathlib import Path

import pytest
from typer.testing import CliRunner

from osprey import __version__
from osprey.cli.app import app
from osprey.cli.utils import build_adapter, load_settings
from osprey.core.adapters import PostgreSQLAdapter, SQLiteAdapter

runner = CliRunner()

INIT = """\
    -- tag: up
    CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT);

    -- tag: down
    DROP TABLE t;
"""


@pytest.fixture(autouse=True)
def sqlite_env(monkeypatch, tmp_path):
    """Point the CLI at a throwaway SQLite file and keep the real env out."""
    for key in list(os.environ):
        if key.startswith(("OSPREY_", "POSTGRES_")):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OSPREY_BACKEND", "sqlite")
    monkeypatch.setenv("OSPREY_SQLITE_PATH", str(tmp_path / "osprey.db"))


@pytest.fixture
def migrations(tmp_path) -> Path:
    d = tmp_path / "migrations"
    d.mkdir()
    (d / "001_init.sql").write_text(textwrap.dedent(INIT))
    return d


def invoke(*args: str):
    return runner.invoke(app, list(args))


class TestRootApp:
    def test_help(self):
        result = invoke("--help")
        assert result.exit_code == 0
        assert "--migrations-directory" in result.output
        assert "--run" in result.output

    def test_version(self):
        result = invoke("--version")
        assert result.exit_code == 0
        assert f"osprey {__version__}" in result.output


class TestMigrate:
    def test_applies_then_nothing_to_do(self, migrations):
        first = invoke("-m", str(migrations))
        assert first.exit_code == 0, first.output
        assert "001" in first.stdout
        assert "Applied 1 migration(s)" in first.stdout

        second = invoke("-m", str(migrations))
        assert second.exit_code == 0
        assert "Nothing to do" in second.stdout

    def test_default_directory_is_relative(self, migrations):
        assert invoke().exit_code == 0

    def test_edited_file_exits_with_sanity_code(self, migrations):
        invoke("-m", str(migrations))
        (migrations / "001_init.sql").write_text(textwrap.dedent(INIT).replace("name TEXT", "label TEXT"))
        result = invoke("-m", str(migrations))
        assert result.exit_code == 4
        assert "applied-drifted" in result.output

    def test_missing_tag_exit_code(self, migrations):
        result = invoke("-m", str(migrations), "--tag", "seed")
        assert result.exit_code == 5
        assert "seed" in result.output

    def test_failed_statement_exit_code(self, migrations):
        invoke("-m", str(migrations))
        (migrations / "002_broken.sql").write_text(
            "-- tag: up\nINSERT INTO missing VALUES (1);\n-- tag: down\nSELECT 1;\n"
        )
        result = invoke("-m", str(migrations))
        assert result.exit_code == 7
        assert "Failed on 002 (compensated)" in result.output

    def test_json_output(self, migrations):
        result = invoke("-m", str(migrations), "--json", "--log-level", "ERROR")
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["applied"] == ["001"]
        assert payload["state"] == "committed"
        assert payload["exit_code"] == 0

    def test_custom_table(self, migrations, tmp_path):
        result = invoke("-m", str(migrations), "-t", "schema_log")
        assert result.exit_code == 0
        with sqlite3.connect(tmp_path / "osprey.db") as conn:
            rows = conn.execute("SELECT identifier, tag FROM schema_log").fetchall()
        assert rows == [("001", "up")]


class TestRunModes:
    def test_sanity_rejects_new_files(self, migrations):
        result = invoke("-m", str(migrations), "--run", "sanity")
        assert result.exit_code == 4
        assert "unknown-new-file" in result.output

    def test_sanity_ignore_new_files(self, migrations):
        result = invoke("-m", str(migrations), "-r", "sanity", "-i")
        assert result.exit_code == 0

    def test_plan(self, migrations):
        result = invoke("-m", str(migrations), "--run", "plan", "--json", "--log-level", "ERROR")
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"tag": "up", "pending": ["001"]}
        # nothing was applied
        assert "Applied 1" in invoke("-m", str(migrations)).stdout

    def test_status(self, migrations):
        invoke("-m", str(migrations))
        (migrations / "002_next.sql").write_text("-- tag: up\nSELECT 1;\n")
        result = invoke("-m", str(migrations), "-r", "status", "--json", "--log-level", "ERROR")
        assert result.exit_code == 0
        statuses = {r["identifier"]: r["status"] for r in json.loads(result.stdout)}
        assert statuses == {"001": "applied-unchanged", "002": "pending"}

    def test_revert(self, migrations):
        invoke("-m", str(migrations))
        result = invoke("-m", str(migrations), "-r", "revert", "--steps", "1")
        assert result.exit_code == 0
        assert "Reverted 1 migration(s)" in result.stdout

    def test_invalid_mode(self, migrations):
        result = invoke("-m", str(migrations), "--run", "explode")
        assert result.exit_code == 2


class TestConfigurationErrors:
    def test_invalid_table_name(self, migrations):
        result = invoke("-m", str(migrations), "-t", "bad name")
        assert result.exit_code == 2

    def test_missing_directory(self, tmp_path):
        result = invoke("-m", str(tmp_path / "nope"))
        assert result.exit_code == 2
        assert "not a directory" in result.output

    def test_unreachable_database(self, migrations, monkeypatch, tmp_path):
        monkeypatch.setenv("OSPREY_SQLITE_PATH", str(tmp_path / "no" / "such" / "dir.db"))
        result = invoke("-m", str(migrations))
        assert result.exit_code == 6

    def test_parse_error(self, migrations):
        (migrations / "002_bad.sql").write_text("SELECT 1;\n")
        result = invoke("-m", str(migrations))
        assert result.exit_code == 3
        assert "Statement defined without tag name" in result.output


class TestBuildAdapter:
    def test_sqlite_backend(self, tmp_path):
        adapter = build_adapter(load_settings())
        assert isinstance(adapter, SQLiteAdapter)
        assert adapter.config.path == str(tmp_path / "osprey.db")
        assert adapter.is_connected is False

    def test_postgresql_backend(self, monkeypatch):
        monkeypatch.setenv("OSPREY_BACKEND", "postgresql")
        monkeypatch.setenv("POSTGRES_HOST", "db.internal")
        monkeypatch.setenv("POSTGRES_DB", "app")
        monkeypatch.setenv("POSTGRES_PASSWORD", "s3cret")
        adapter = build_adapter(load_settings())
        assert isinstance(adapter, PostgreSQLAdapter)
        assert adapter.config.host == "db.internal"
        assert adapter.config.database == "app"
        assert adapter.config.password == "s3cret"
        assert adapter.is_connected is False
