"""Structured logging configuration for x402-testkit.

This module configures structlog for structured logging with support for
both development (console) and machine (JSON) output formats.

Logs are always written to stderr: stdout is reserved for reports and for the
MCP stdio channel, which must never see stray log lines.

Environment Variables:
    X402_TESTKIT_LOG_FORMAT: Set to "json" for JSON output, "console" for colored output
    X402_TESTKIT_LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR)
    X402_TESTKIT_DEBUG: Set to "true" or "1" to log full header values and tool errors

Example:
    >>> from x402_testkit.observability.logging import get_logger, configure_logging
    >>>
    >>> configure_logging(log_format="json", log_level="INFO")
    >>> logger = get_logger("x402_testkit.runner")
    >>> logger.info("x402.suite.loaded", tests=3)
"""

import logging
import os
import sys
from collections.abc import Iterable
from typing import Any

import structlog
from structlog.typing import Processor

DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_LOG_FORMAT = "console"

ENV_LOG_FORMAT = "X402_TESTKIT_LOG_FORMAT"
ENV_LOG_LEVEL = "X402_TESTKIT_LOG_LEVEL"
ENV_DEBUG = "X402_TESTKIT_DEBUG"

REDACTED_PLACEHOLDER = "***REDACTED***"

# Header name substrings (case-insensitive) whose values carry credentials or payment proofs
_SENSITIVE_HEADER_PATTERNS = frozenset(
    {"authorization", "cookie", "token", "secret", "x-payment", "api-key"}
)

_logging_configured = False


def _is_sensitive_header(name: str) -> bool:
    lower = name.lower()
    return any(pattern in lower for pattern in _SENSITIVE_HEADER_PATTERNS)


def sanitize_headers(headers: dict[str, str] | Iterable[tuple[str, str]]) -> dict[str, str]:
    """Return a copy of headers safe for logging.

    Values of credential-bearing headers (Authorization, cookies, tokens,
    X-Payment proofs) are replaced with REDACTED_PLACEHOLDER unless debug mode
    is enabled.

    Example:
        >>> sanitize_headers({"Accept": "*/*", "Authorization": "Bearer abc"})
        {'Accept': '*/*', 'Authorization': '***REDACTED***'}
    """
    items = headers.items() if isinstance(headers, dict) else headers
    if is_debug_mode():
        return dict(items)
    return {
        name: (REDACTED_PLACEHOLDER if _is_sensitive_header(name) else value)
        for name, value in items
    }


def is_debug_mode() -> bool:
    """Return True if X402_TESTKIT_DEBUG is set to a truthy value (e.g. true, 1)."""
    value = os.environ.get(ENV_DEBUG, "").strip().lower()
    return value in ("true", "1", "yes", "on")


def _get_log_level() -> str:
    return os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).upper()


def _get_log_format() -> str:
    return os.environ.get(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT).lower()


def _get_shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    force: bool = False,
) -> None:
    """Configure structured logging for the process.

    Args:
        log_format: Output format - "json" or "console". Defaults to env var or "console"
        log_level: Minimum log level. Defaults to env var or "WARNING"
        force: If True, reconfigure even if already configured

    Example:
        >>> configure_logging(log_format="console", log_level="DEBUG", force=True)
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    log_format = log_format or _get_log_format()
    log_level = (log_level or _get_log_level()).upper()
    if log_level not in logging.getLevelNamesMapping():
        log_level = DEFAULT_LOG_LEVEL

    shared_processors = _get_shared_processors()

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    package_logger = logging.getLogger("x402_testkit")
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, log_level))
    package_logger.propagate = False

    _logging_configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given name.

    If logging has not been configured, it is configured with default settings.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("x402.case.started", test="check 402")
    """
    if not _logging_configured:
        configure_logging()

    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables included in all subsequent logs (e.g. suite name)."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
