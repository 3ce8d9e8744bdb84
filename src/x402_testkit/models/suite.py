"""Test suite models.

A suite is an ordered tuple of test cases; each case pairs one request with an
ordered tuple of assertions. Assertions form a closed tagged union resolved by
their ``type`` discriminator at load time, so an unknown assertion kind is a
load error and never reaches the evaluator.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import Field, field_validator

from x402_testkit.models.base import X402BaseModel

DEFAULT_SUITE_NAME = "x402 test suite"

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"})

InvoiceField = Literal["recipient", "amount", "currency", "memo", "network"]


def _header_text(value: Any) -> Any:
    # YAML turns `X-Flag: true` and `X-Count: 5` into non-strings
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


class RequestSpec(X402BaseModel):
    """HTTP request issued by a test case.

    ``url`` is either absolute or a path resolved against the configured base URL.
    A mapping or list ``body`` is sent as JSON, a string body verbatim.
    """

    method: str = Field(default="GET", description="HTTP method")
    url: str = Field(..., min_length=1, description="Absolute URL or path")
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | dict[str, Any] | list[Any] | None = Field(default=None)

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        method = value.strip().upper()
        if method not in HTTP_METHODS:
            raise ValueError(
                f"unsupported HTTP method '{value}' (expected one of {', '.join(sorted(HTTP_METHODS))})"
            )
        return method

    @field_validator("headers", mode="before")
    @classmethod
    def _stringify_header_values(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {str(k): _header_text(v) for k, v in value.items()}


class StatusCodeAssertion(X402BaseModel):
    type: Literal["status_code"] = "status_code"
    expected: int = Field(..., ge=100, le=599)

    def describe(self) -> str:
        return f"status code is {self.expected}"


class HeaderExistsAssertion(X402BaseModel):
    type: Literal["header_exists"] = "header_exists"
    name: str = Field(..., min_length=1)

    def describe(self) -> str:
        return f"header '{self.name}' exists"


class HeaderContainsAssertion(X402BaseModel):
    type: Literal["header_contains"] = "header_contains"
    name: str = Field(..., min_length=1)
    substring: str = Field(..., min_length=1)

    def describe(self) -> str:
        return f"header '{self.name}' contains '{self.substring}'"


class HeaderEqualsAssertion(X402BaseModel):
    type: Literal["header_equals"] = "header_equals"
    name: str = Field(..., min_length=1)
    value: str

    def describe(self) -> str:
        return f"header '{self.name}' equals '{self.value}'"


class HeaderMatchesAssertion(X402BaseModel):
    type: Literal["header_matches"] = "header_matches"
    name: str = Field(..., min_length=1)
    pattern: str = Field(..., min_length=1)

    @field_validator("pattern")
    @classmethod
    def _compile_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regular expression '{value}': {exc}") from exc
        return value

    def describe(self) -> str:
        return f"header '{self.name}' matches /{self.pattern}/"


class ResponseTimeAssertion(X402BaseModel):
    type: Literal["response_time_ms"] = "response_time_ms"
    max_ms: int = Field(..., alias="max", ge=0, description="Upper bound in milliseconds")

    def describe(self) -> str:
        return f"response time <= {self.max_ms}ms"


class InvoiceFieldValidAssertion(X402BaseModel):
    type: Literal["invoice_field_valid"] = "invoice_field_valid"
    field: InvoiceField

    def describe(self) -> str:
        return f"invoice field '{self.field}' is valid"


class InvoiceAmountAssertion(X402BaseModel):
    type: Literal["invoice_amount"] = "invoice_amount"
    expected: Decimal

    @field_validator("expected", mode="before")
    @classmethod
    def _float_as_text(cls, value: Any) -> Any:
        # YAML floats go through str() so 0.01 stays 0.01 instead of its binary expansion
        if isinstance(value, float):
            return str(value)
        return value

    def describe(self) -> str:
        return f"invoice amount is {self.expected}"


Assertion = Annotated[
    Union[
        StatusCodeAssertion,
        HeaderExistsAssertion,
        HeaderContainsAssertion,
        HeaderEqualsAssertion,
        HeaderMatchesAssertion,
        ResponseTimeAssertion,
        InvoiceFieldValidAssertion,
        InvoiceAmountAssertion,
    ],
    Field(discriminator="type"),
]

ASSERTION_TYPES: tuple[str, ...] = (
    "status_code",
    "header_exists",
    "header_contains",
    "header_equals",
    "header_matches",
    "response_time_ms",
    "invoice_field_valid",
    "invoice_amount",
)


class TestCase(X402BaseModel):
    """One named request and the expectations about its response."""

    __test__ = False

    name: str = Field(..., min_length=1)
    request: RequestSpec
    assertions: tuple[Assertion, ...]


class TestSuite(X402BaseModel):
    """Ordered, immutable collection of test cases loaded from one document."""

    __test__ = False

    name: str = Field(default=DEFAULT_SUITE_NAME, min_length=1)
    base_url: str | None = Field(default=None, description="Base URL for relative request paths")
    tests: tuple[TestCase, ...]
