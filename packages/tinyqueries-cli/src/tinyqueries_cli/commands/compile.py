"""tqc compile command - Send the project to the compile service."""

from __future__ import annotations

import click

from tinyqueries_cli.output import info, success

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

BANNER = ("-----------------", "TQ compile client", "-----------------")


@click.command("compile")
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    default=False,
    help="Hide progress messages.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="HTTP timeout in seconds [default: wait for the compile service]",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    help="Diagnostic log level, written to stderr [default: WARNING]",
)
def compile_cmd(quiet: bool, timeout: float | None, log_level: str) -> None:
    """Compile the queries of the project in the current folder.

    Reads tinyqueries.json, tinyqueries.yml or tinyqueries.yaml, uploads the
    input folder to the compile service and writes the compiled output to
    the current folder. The API key is read from TINYQUERIES_API_KEY (a
    local .env file is loaded first).

    Examples:

        tqc

        tqc compile --timeout 120
    """
    # Import here to avoid heavy imports at CLI startup
    from tinyqueries_cli.errors import handle_compile_error
    from tinyqueries_core import (
        CompileClient,
        CompileStage,
        ConfigStore,
        TinyQueriesError,
        get_api_key,
    )
    from tinyqueries_core.observability import configure_logging

    configure_logging(log_level=log_level)

    for line in BANNER:
        info(line)

    def report_progress(stage: CompileStage) -> None:
        if stage is CompileStage.UPLOADING:
            info("Uploading zip to compiler..")
        elif stage is CompileStage.EXTRACTING:
            info("Extracting received zip..")

    try:
        # The API key is checked before any file is read
        api_key = get_api_key()
        config = ConfigStore().load()

        info(f"project: {config.project.label}")
        info(f"compiler: {config.compiler.server}")
        info(f"version: {config.compiler.version}")
        info(f"input: {config.compiler.input}")

        client = CompileClient(
            timeout=timeout,
            on_progress=None if quiet else report_progress,
        )
        client.compile(config, api_key)

    except TinyQueriesError as e:
        handle_compile_error(e)

    success("Ready")
