"""CLI command modules.

This package contains the implementation of the tqc subcommands.
Each command imports tinyqueries-core when it runs, not at import time.
"""

from __future__ import annotations

__all__: list[str] = []
