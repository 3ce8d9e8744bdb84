"""Observability for x402-testkit.

Structured logging on stderr with console or JSON rendering and context
binding for the suite and test case being executed.

Example:
    >>> from x402_testkit.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("x402.case.completed", test="check 402", passed=True)
"""

from x402_testkit.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_debug_mode,
    sanitize_headers,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "is_debug_mode",
    "sanitize_headers",
]
