"""x402-testkit models.

Pydantic models for test suites (input) and for captured responses and
results (output).
"""

from x402_testkit.models.base import X402BaseModel
from x402_testkit.models.results import (
    AssertionResult,
    CapturedResponse,
    CheckResult,
    InvoiceFieldResult,
    SuiteResult,
    TestCaseResult,
)
from x402_testkit.models.suite import (
    ASSERTION_TYPES,
    DEFAULT_SUITE_NAME,
    HTTP_METHODS,
    Assertion,
    HeaderContainsAssertion,
    HeaderEqualsAssertion,
    HeaderExistsAssertion,
    HeaderMatchesAssertion,
    InvoiceAmountAssertion,
    InvoiceField,
    InvoiceFieldValidAssertion,
    RequestSpec,
    ResponseTimeAssertion,
    StatusCodeAssertion,
    TestCase,
    TestSuite,
)

__all__ = [
    "ASSERTION_TYPES",
    "DEFAULT_SUITE_NAME",
    "HTTP_METHODS",
    "Assertion",
    "AssertionResult",
    "CapturedResponse",
    "CheckResult",
    "HeaderContainsAssertion",
    "HeaderEqualsAssertion",
    "HeaderExistsAssertion",
    "HeaderMatchesAssertion",
    "InvoiceAmountAssertion",
    "InvoiceField",
    "InvoiceFieldResult",
    "InvoiceFieldValidAssertion",
    "RequestSpec",
    "ResponseTimeAssertion",
    "StatusCodeAssertion",
    "SuiteResult",
    "TestCase",
    "TestCaseResult",
    "TestSuite",
    "X402BaseModel",
]
