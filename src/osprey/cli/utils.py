"""
CLI utility helpers: settings, adapter construction and output formatting.
"""

from __future__ import annotations

import json
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from osprey.core.adapters import DatabaseAdapter, PostgreSQLAdapter, SQLiteAdapter
from osprey.core.errors import ConfigError, OspreyError, SanityError
from osprey.core.logging import get_logger
from osprey.core.migrations import (
    MigrationEngine,
    MigrationPlan,
    MigrationResult,
    ReconciliationRecord,
    ReconciliationStatus,
)
from osprey.core.settings import OspreySettings, PostgresSettings

console = Console()
err_console = Console(stderr=True, soft_wrap=True)

logger = get_logger(__name__)

_STATUS_STYLE = {
    ReconciliationStatus.APPLIED_UNCHANGED: "green",
    ReconciliationStatus.PENDING: "yellow",
    ReconciliationStatus.UNKNOWN_NEW_FILE: "yellow",
    ReconciliationStatus.APPLIED_DRIFTED: "bold red",
    ReconciliationStatus.MISSING_ON_DISK: "bold red",
}


# ── Settings / connection helpers ────────────────────────────────────────


def load_settings(**overrides: Any) -> OspreySettings:
    """Environment settings with non-``None`` CLI options layered on top."""
    try:
        return OspreySettings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", cause=e) from e


def build_adapter(settings: OspreySettings) -> DatabaseAdapter:
    """Create (but do not connect) the adapter selected by ``settings.backend``."""
    if settings.backend == "sqlite":
        return SQLiteAdapter(str(settings.sqlite_path))
    try:
        pg = PostgresSettings()
    except ValidationError as e:
        raise ConfigError(f"Invalid PostgreSQL configuration: {e}", cause=e) from e
    return PostgreSQLAdapter(
        host=pg.host,
        port=pg.port,
        database=pg.db,
        username=pg.user,
        password=pg.password.get_secret_value(),
        connect_timeout=pg.connect_timeout,
    )


@contextmanager
def cancel_on_interrupt(engine: MigrationEngine) -> Iterator[None]:
    """Turn the first Ctrl-C into a between-files cancellation request."""

    def _handle_signal(signum: int, frame: Any) -> None:  # noqa: ARG001
        logger.warning("run.cancel_requested")
        engine.request_cancel()
        signal.signal(signal.SIGINT, previous)

    try:
        previous = signal.signal(signal.SIGINT, _handle_signal)
    except (ValueError, OSError):
        # Not in main thread
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


# ── Output helpers ───────────────────────────────────────────────────────


def fail(error: OspreyError, *, as_json: bool = False) -> None:
    """Print ``error`` and exit with its code."""
    if as_json:
        console.print_json(json.dumps(error.to_dict(), default=str))
    else:
        err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {escape(str(error))}")
        if isinstance(error, SanityError):
            for record in error.records:
                err_console.print(f"  [red]-[/red] {escape(record.describe())}")
    raise typer.Exit(code=error.exit_code)


def output_result(result: MigrationResult, *, as_json: bool = False) -> None:
    """Render a ``migrate``/``revert`` result; exits non-zero on failure."""
    done = result.applied if result.mode == "migrate" else result.reverted
    verb = "Applied" if result.mode == "migrate" else "Reverted"

    if as_json:
        payload: dict[str, Any] = {
            "mode": result.mode,
            "tag": result.tag,
            "state": result.state.value,
            "planned": result.planned,
            "applied": result.applied,
            "reverted": result.reverted,
            "failed": result.failed,
            "compensated": result.compensated,
            "exit_code": result.exit_code,
        }
        if result.error is not None:
            payload["error"] = result.error.to_dict()
        console.print_json(json.dumps(payload, default=str))
        if not result.success:
            raise typer.Exit(code=result.exit_code)
        return

    if done:
        table = Table(title=f"{verb} ({result.tag})", pad_edge=False)
        table.add_column("identifier")
        for identifier in done:
            table.add_row(identifier)
        console.print(table)

    if result.success:
        if not result.planned:
            console.print("[dim]Nothing to do.[/dim]")
        else:
            console.print(f"[green]{verb} {len(done)} migration(s).[/green]")
        return

    if result.failed is not None:
        note = " (compensated)" if result.compensated else ""
        err_console.print(f"[red]Failed on {result.failed}{note}[/red]")
    if result.error is not None:
        fail(result.error)
    raise typer.Exit(code=result.exit_code)


def output_records(
    records: list[ReconciliationRecord],
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render reconciliation records as a table."""
    if as_json:
        payload = [
            {
                "identifier": r.identifier,
                "file": r.file.name if r.file else None,
                "status": r.status.value,
                "applied_tags": list(r.applied_tags),
                "detail": r.detail,
            }
            for r in records
        ]
        console.print_json(json.dumps(payload))
        return

    if not records:
        console.print("[dim]No migrations.[/dim]")
        return

    table = Table(title=title or None, pad_edge=False)
    for col in ("identifier", "file", "status", "applied", "detail"):
        table.add_column(col, overflow="fold")
    for r in records:
        style = _STATUS_STYLE.get(r.status, "")
        table.add_row(
            r.identifier,
            r.file.name if r.file else "-",
            f"[{style}]{r.status.value}[/{style}]" if style else r.status.value,
            ", ".join(r.applied_tags),
            r.detail,
        )
    console.print(table)


def output_plan(plan: MigrationPlan, *, as_json: bool = False) -> None:
    """Render the files a ``migrate`` run would apply."""
    if as_json:
        console.print_json(json.dumps({"tag": plan.tag, "pending": plan.identifiers}))
        return

    if plan.is_empty:
        console.print("[dim]Nothing to do.[/dim]")
        return

    table = Table(title=f"Pending ({plan.tag})", pad_edge=False)
    table.add_column("identifier")
    table.add_column("file")
    table.add_column("statements", justify="right")
    for migration in plan:
        table.add_row(
            migration.identifier,
            migration.name,
            str(len(migration.section(plan.tag).statements)),
        )
    console.print(table)
