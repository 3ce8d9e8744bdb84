"""x402-testkit error taxonomy.

Every error raised by the verification engine derives from X402Error and
carries a stable ``x402:<area>/<reason>`` code plus structured details, so the
CLI and the agent tool interface can render the same failure identically.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class X402Error(Exception):
    """Base exception for all x402-testkit errors.

    Attributes:
        code: Error code following the x402:<area>/<reason> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ParseError(X402Error):
    """Raised when a test suite cannot be parsed or violates the suite schema.

    Line and column are 1-based positions in the source document. When the
    violation belongs to a specific test case its name is carried so authors
    can locate the mistake without re-reading the whole file.

    Attributes:
        line: 1-based line of the offending node
        col: 1-based column of the offending node
        test_name: Name (or ``#<index>``) of the offending test case, if any
        source: Path of the suite file, if known
    """

    def __init__(
        self,
        message: str,
        line: int = 1,
        col: int = 1,
        test_name: str | None = None,
        source: str | None = None,
        details: dict[str, Any] | None = None,
        code: str = "x402:suite/parse_error",
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            details={
                "line": line,
                "col": col,
                "test_name": test_name,
                "source": source,
                **(details or {}),
            },
        )
        self.line = line
        self.col = col
        self.test_name = test_name
        self.source = source

    def __str__(self) -> str:
        location = f"{self.source}:" if self.source else "line "
        return f"{location}{self.line}:{self.col}: {self.message}"


class ChallengeParseError(ParseError):
    """Raised when a WWW-Authenticate challenge is not a well-formed x402 challenge."""

    def __init__(self, reason: str, header: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=f"Malformed x402 challenge: {reason}",
            code="x402:invoice/malformed_challenge",
            details={"header": header, **(details or {})},
        )
        self.reason = reason
        self.header = header

    def __str__(self) -> str:
        return self.message


class ConfigError(X402Error):
    """Raised when engine configuration or command input is invalid.

    Surfaced before any suite is loaded or any request is sent.
    """

    def __init__(
        self, message: str, field: str | None = None, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(
            code="x402:config/invalid",
            message=message,
            details={"field": field, **(details or {})},
        )
        self.field = field


class ExecutionErrorKind(str, Enum):
    """Classification of request-level failures."""

    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    DNS_FAILURE = "dns_failure"
    TLS_ERROR = "tls_error"
    OTHER = "other"


class ExecutionError(X402Error):
    """Raised when an HTTP request could not produce a response.

    Localized to the test case that issued the request: the runner converts it
    into a failing TestCaseResult and moves on to the next case.

    Attributes:
        kind: Failure classification
        url: Target URL of the failed request
        timeout: Timeout in seconds that applied to the request
    """

    def __init__(
        self,
        kind: ExecutionErrorKind,
        message: str,
        url: str | None = None,
        timeout: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code=f"x402:http/{kind.value}",
            message=message,
            details={"kind": kind.value, "url": url, "timeout": timeout, **(details or {})},
        )
        self.kind = kind
        self.url = url
        self.timeout = timeout


__all__ = [
    "ChallengeParseError",
    "ConfigError",
    "ExecutionError",
    "ExecutionErrorKind",
    "ParseError",
    "X402Error",
]
