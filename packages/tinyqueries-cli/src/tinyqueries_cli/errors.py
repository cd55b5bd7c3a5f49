"""CLI error handling for tinyqueries-cli.

Pipeline errors from tinyqueries-core are reported as one plain line on
the console, followed by a non-zero exit.
"""

from __future__ import annotations

from typing import NoReturn

import structlog

from tinyqueries_cli.output import error
from tinyqueries_core.errors import TinyQueriesError

logger = structlog.get_logger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1  # Any failure of the compile pipeline


def handle_compile_error(err: TinyQueriesError) -> NoReturn:
    """Report a pipeline error and exit.

    Only the user message is shown; no traceback or internal detail.

    Args:
        err: Error raised by tinyqueries-core.

    Raises:
        SystemExit: Always, with EXIT_FAILURE.
    """
    logger.debug("compile_failed", error_type=type(err).__name__)
    error(err.user_message)
    raise SystemExit(EXIT_FAILURE) from None
