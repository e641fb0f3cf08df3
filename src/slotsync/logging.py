"""structlog setup shared by the package and the CLI.

Console rendering while developing, one JSON object per line in production.
Modules log through get_logger(); nothing in the package prints. Output goes
to stderr because the CLI writes its results to stdout.
"""

import logging
import sys
from typing import Any, TextIO

import structlog

# Keys whose values must never reach log output.
SENSITIVE_KEYS: frozenset[str] = frozenset(
    {"password", "credential", "secret", "password_hash"}
)

_MASK = "***"


def redact_sensitive(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask values of sensitive keys in the event dict."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = _MASK
    return event_dict


def setup_logging(
    json_output: bool = False,
    log_level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Install the processor chain and route stdlib loggers to the same stream.

    Args:
        json_output: Render JSON lines instead of the colored console format.
        log_level: Minimum level name; unknown names fall back to INFO.
        stream: Where to write; defaults to stderr.
    """
    stream = stream or sys.stderr
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    # playwright and asyncio log through stdlib
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)
