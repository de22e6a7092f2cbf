"""Allow ``python -m osprey``."""

from osprey.cli.app import app

app(prog_name="osprey")
