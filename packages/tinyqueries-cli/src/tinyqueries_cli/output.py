"""Rich console output utilities for tinyqueries-cli.

This module provides formatted console output with Rich,
supporting colored success/error messages and respecting
the NO_COLOR environment variable.
"""

from __future__ import annotations

import os
from typing import Any

from rich.console import Console
from rich.markup import escape

# Rich automatically respects NO_COLOR, but we also support --no-color flag
_force_no_color = os.environ.get("NO_COLOR") is not None


def create_console(no_color: bool = False) -> Console:
    """Create a Rich Console instance with appropriate color settings.

    Args:
        no_color: If True, disable colored output. Also respects NO_COLOR env var.

    Returns:
        Configured Console instance.
    """
    force_terminal = None
    if no_color or _force_no_color:
        force_terminal = False
    return Console(
        force_terminal=force_terminal,
        no_color=no_color or _force_no_color,
        soft_wrap=True,
    )


# Default console instance
console = create_console()


def success(message: str, **kwargs: Any) -> None:
    """Print a success message with green checkmark.

    Args:
        message: The message to display. Rich markup in it is not interpreted.
        **kwargs: Additional arguments passed to console.print().

    Example:
        >>> success("Ready")
        ✓ Ready
    """
    console.print(f"[green]✓[/green] {escape(message)}", **kwargs)


def error(message: str, **kwargs: Any) -> None:
    """Print an error message with red X.

    Args:
        message: The error message to display. Rich markup in it is not
            interpreted, so server messages are shown verbatim.
        **kwargs: Additional arguments passed to console.print().

    Example:
        >>> error("Cannot find input folder tinyqueries")
        ✗ Cannot find input folder tinyqueries
    """
    console.print(f"[red]✗[/red] {escape(message)}", **kwargs)


def info(message: str, **kwargs: Any) -> None:
    """Print an informational message.

    Args:
        message: The message to display. Rich markup in it is not interpreted.
        **kwargs: Additional arguments passed to console.print().

    Example:
        >>> info("Uploading zip to compiler..")
        Uploading zip to compiler..
    """
    console.print(escape(message), **kwargs)


def set_no_color(no_color: bool) -> None:
    """Update the global console to enable/disable colors.

    Args:
        no_color: If True, disable colored output.

    Note:
        This updates the module-level console instance.
    """
    global console
    console = create_console(no_color=no_color)
