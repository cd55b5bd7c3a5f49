"""Structured logging and OpenTelemetry spans for tinyqueries-core.

This module provides:
- Structured logging setup via structlog
- A span helper that wraps pipeline stages (archive, upload, extract)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer
    from structlog.stdlib import BoundLogger

_tracer: Tracer | None = None

# Tracer name for OpenTelemetry
TRACER_NAME = "tinyqueries.compiler"


def get_logger(name: str = TRACER_NAME) -> BoundLogger:
    """Get a structlog logger.

    Args:
        name: Logger name, defaults to the compile client's tracer name.

    Returns:
        structlog BoundLogger instance.
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def get_tracer() -> Tracer:
    """Get the OpenTelemetry tracer for the compile client.

    Returns:
        OpenTelemetry Tracer instance. Without a configured SDK this is a
        no-op tracer.
    """
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def configure_logging(
    *,
    log_level: str = "WARNING",
    json_format: bool = False,
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the compile client.

    Log records go to stderr through the standard library so they never mix
    with the CLI's progress lines on stdout.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: If True, output JSON format. If False, output human-readable.
        add_timestamp: If True, add ISO timestamp to log entries.

    Example:
        >>> configure_logging(log_level="DEBUG")
    """
    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if add_timestamp:
        processors.insert(1, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
        force=True,
    )


@contextmanager
def span(
    name: str,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span]:
    """Create an OpenTelemetry span with structured logging.

    Logs the start and end of the stage, with its duration. On exception the
    span status is set to ERROR and the exception is re-raised unchanged.

    Args:
        name: Span name (e.g., "build_archive", "upload").
        kind: Span kind (INTERNAL for local work, CLIENT for the HTTP call).
        attributes: Optional span attributes. Must never contain the credential.

    Yields:
        OpenTelemetry Span instance.

    Example:
        >>> with span("build_archive", attributes={"input": "tinyqueries"}):
        ...     archive = archiver.build(folder)
    """
    tracer = get_tracer()
    logger = get_logger()
    attrs = attributes or {}

    with tracer.start_as_current_span(name, kind=kind, attributes=attrs) as current:
        start = time.perf_counter()
        logger.debug(f"{name}_started", **attrs)
        try:
            yield current
        except Exception as e:
            current.set_status(Status(StatusCode.ERROR, str(e)))
            current.record_exception(e)
            logger.debug(
                f"{name}_failed",
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                **attrs,
            )
            raise
        current.set_status(Status(StatusCode.OK))
        logger.debug(
            f"{name}_completed",
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            **attrs,
        )
