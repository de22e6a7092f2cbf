"""
Osprey - tagged SQL migrations.

- osprey.core: Parser, ledger, sanity gate, planner and execution engine
- osprey.cli: The ``osprey`` command
"""

__version__ = "0.1.0"
