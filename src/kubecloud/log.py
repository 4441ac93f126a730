"""structlog configuration shared by library consumers and tests."""

from __future__ import annotations

import os
import sys

import structlog

_FORMATS = {"json", "console"}


def configure_logging(fmt: str | None = None) -> None:
    """Configure structlog to render to stderr.

    ``fmt`` selects ``"json"`` or ``"console"``; when omitted the
    ``KUBECLOUD_LOG_FORMAT`` environment variable is consulted, and failing
    that the console renderer is used only when stderr is a terminal.
    """
    fmt = fmt or os.environ.get("KUBECLOUD_LOG_FORMAT")
    if fmt is not None and fmt not in _FORMATS:
        valid = ", ".join(sorted(_FORMATS))
        msg = f"Invalid log format: {fmt!r}. Must be one of: {valid}"
        raise ValueError(msg)

    use_console = fmt == "console" if fmt else sys.stderr.isatty()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if use_console else structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )
