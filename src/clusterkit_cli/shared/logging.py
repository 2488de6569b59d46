"""structlog setup for clusterkit.

Bootstrap progress goes to stdout through the console reporter; everything
logged here goes to stderr (or a log file) so the two never interleave
in pipes. ``text`` is meant for a terminal watching a bootstrap run, while
``json`` emits one object per event (step, component, attempt, ...) for CI
logs and log shippers.
"""

import logging
import sys
from pathlib import Path

import structlog

# Accepted by config validation alongside stdlib level names
_LEVEL_ALIASES = {"warn": "warning"}

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
]


def _resolve_level(level: str) -> int:
    name = _LEVEL_ALIASES.get(level.lower(), level.lower())
    return getattr(logging, name.upper(), logging.INFO)


def _renderers(log_format: str) -> list[structlog.types.Processor]:
    if log_format == "json":
        # tracebacks become a string field instead of a multi-line dump
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def configure_logging(
    level: str = "info",
    log_format: str = "text",
    log_file: str | Path | None = None,
) -> None:
    """Route engine logs to stderr or a file.

    Called once by the ``clusterkit`` group before any command runs; calling
    it again replaces the previous handler.

    Args:
        level: ``debug``, ``info``, ``warn`` or ``error``. ``-v`` passes debug.
        log_format: ``text`` (console renderer) or ``json`` (one line per event).
        log_file: Write to this file instead of stderr.
    """
    log_level = _resolve_level(level)

    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(str(log_file))
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)

    logging.basicConfig(level=log_level, handlers=[handler], format="%(message)s", force=True)

    structlog.configure(
        processors=_SHARED_PROCESSORS + _renderers(log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Default logger for engine classes built without an injected one."""
    return structlog.get_logger(name)
