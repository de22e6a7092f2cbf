"""
CLI layer for osprey.

Provides the Typer application behind the ``osprey`` command. All migration
logic lives in ``osprey.core.migrations``; this package handles only the
terminal: option parsing, settings, coloured output and exit codes.

Entry point::

    osprey --help
"""

from osprey.cli.app import app

__all__ = ["app"]
