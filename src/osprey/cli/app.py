"""
Root Typer application for the ``osprey`` CLI.

One command, five run modes selected with ``--run``::

    osprey                         # migrate with tag "up"
    osprey --tag seed              # apply the "seed" tag of every pending file
    osprey --run sanity -i         # pre-flight gate only, new files tolerated
    osprey --run plan              # print what migrate would apply
    osprey --run status            # reconciliation table, never fails on drift
    osprey --run revert --steps 2  # run "down" for the last two applied files

Options default to ``OSPREY_*`` / ``POSTGRES_*`` environment settings.
The exit code is 0 on success, otherwise the failing error's code.
"""

from __future__ import annotations

from pathlib import Path

import typer
from typer import Typer

from osprey.core.errors import OspreyError
from osprey.core.logging import configure_logging
from osprey.core.migrations import MigrationRunner, RunMode

from .utils import (
    build_adapter,
    cancel_on_interrupt,
    fail,
    load_settings,
    output_plan,
    output_records,
    output_result,
)

app = Typer(
    name="osprey",
    help="osprey - apply tagged SQL migrations and keep a ledger of what ran.",
    add_completion=False,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from osprey import __version__

        typer.echo(f"osprey {__version__}")
        raise typer.Exit()


@app.command()
def main(
    migrations_directory: Path | None = typer.Option(
        None, "--migrations-directory", "-m", help="Directory of tagged *.sql files [./migrations/]"
    ),
    migrations_table: str | None = typer.Option(
        None, "--migrations-table", "-t", help="Ledger table name [_migrations]"
    ),
    tag: str | None = typer.Option(None, "--tag", "-g", help="Tag to apply [up]"),
    run: RunMode = typer.Option(
        RunMode.MIGRATE,
        "--run",
        "-r",
        help="Run mode. Every mode, plan and status included, creates the ledger table if missing.",
    ),
    ignore_new_files: bool = typer.Option(
        False, "--ignore-new-files", "-i", help="Tolerate files not in the ledger (sanity mode)"
    ),
    allow_missing_files: bool = typer.Option(
        False, "--allow-missing-files", help="Tolerate ledger entries whose file is gone"
    ),
    compensate_tag: str | None = typer.Option(
        None, "--compensate-tag", help="Tag run on failure and by revert [down]"
    ),
    steps: int = typer.Option(1, "--steps", min=1, help="Files to revert (revert mode)"),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Apply tagged SQL migrations and record them in the ledger table."""
    try:
        settings = load_settings(
            migrations_directory=migrations_directory,
            migrations_table=migrations_table,
            tag=tag,
            compensate_tag=compensate_tag,
            log_level=log_level,
        )
    except OspreyError as e:
        fail(e, as_json=json_out)
        return

    configure_logging(level=settings.log_level, json_format=settings.json_logs)

    try:
        adapter = build_adapter(settings)
        with adapter:
            runner = MigrationRunner(
                adapter,
                settings.migrations_directory,
                table_name=settings.migrations_table,
                compensate_tag=settings.compensate_tag,
            )
            with cancel_on_interrupt(runner.engine):
                _dispatch(
                    runner,
                    run,
                    tag=settings.tag,
                    ignore_new_files=ignore_new_files,
                    allow_missing_files=allow_missing_files,
                    steps=steps,
                    json_out=json_out,
                )
    except OspreyError as e:
        fail(e, as_json=json_out)


def _dispatch(
    runner: MigrationRunner,
    mode: RunMode,
    *,
    tag: str,
    ignore_new_files: bool,
    allow_missing_files: bool,
    steps: int,
    json_out: bool,
) -> None:
    match mode:
        case RunMode.MIGRATE:
            result = runner.migrate(tag, allow_missing_files=allow_missing_files)
            output_result(result, as_json=json_out)
        case RunMode.REVERT:
            result = runner.revert(tag, steps=steps, allow_missing_files=allow_missing_files)
            output_result(result, as_json=json_out)
        case RunMode.SANITY:
            records = runner.sanity(
                ignore_new_files=ignore_new_files, allow_missing_files=allow_missing_files
            )
            output_records(records, as_json=json_out, title="Sanity check passed")
        case RunMode.PLAN:
            plan = runner.plan(tag, allow_missing_files=allow_missing_files)
            output_plan(plan, as_json=json_out)
        case RunMode.STATUS:
            records = runner.status(tag)
            output_records(records, as_json=json_out, title=f"Status ({tag})")
