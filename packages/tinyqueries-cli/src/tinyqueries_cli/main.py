"""CLI entry point for the TinyQueries compile client.

This module defines the main ``tqc`` group. Running ``tqc`` without a
subcommand runs ``tqc compile``. The compile command imports the HTTP stack
only when it runs, so ``tqc --help`` stays fast.
"""

from __future__ import annotations

import click
import rich_click as rclick

from tinyqueries_cli import __version__
from tinyqueries_cli.commands.compile import compile_cmd
from tinyqueries_cli.output import set_no_color

# Configure rich-click for better help formatting
rclick.rich_click.TEXT_MARKUP = "markdown"
rclick.rich_click.SHOW_ARGUMENTS = True
rclick.rich_click.GROUP_ARGUMENTS_OPTIONS = True


@click.group(cls=rclick.RichGroup, invoke_without_command=True)
@click.version_option(version=__version__, prog_name="tqc")
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable colored output.",
    is_eager=True,
    expose_value=False,
    callback=lambda ctx, param, value: set_no_color(value) if value else None,
)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """TinyQueries compile client.

    Packages the query sources of the project in the current folder,
    sends them to the TinyQueries compile service and writes the
    compiled output back.

    **Getting Started:**

    - Create `tinyqueries.yaml` with a `project` and `compiler` section
    - Set `TINYQUERIES_API_KEY` (or put it in `.env`)
    - Run `tqc`
    """
    if ctx.invoked_subcommand is None:
        ctx.invoke(compile_cmd)


cli.add_command(compile_cmd)


if __name__ == "__main__":
    cli()
