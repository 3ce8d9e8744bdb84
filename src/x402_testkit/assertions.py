"""Assertion evaluator.

evaluate() is a pure function of (assertion, response): it never mutates the
response and never raises for a failing expectation, so re-evaluating the
same pair always yields the same AssertionResult.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from decimal import Decimal
from typing import Any

from x402_testkit.errors import ChallengeParseError
from x402_testkit.invoice import (
    CHALLENGE_HEADER,
    amount_matches,
    parse_www_authenticate,
    validate_field,
)
from x402_testkit.models.results import AssertionResult, CapturedResponse
from x402_testkit.models.suite import (
    HeaderContainsAssertion,
    HeaderEqualsAssertion,
    HeaderExistsAssertion,
    HeaderMatchesAssertion,
    InvoiceAmountAssertion,
    InvoiceFieldValidAssertion,
    ResponseTimeAssertion,
    StatusCodeAssertion,
)


def _result(
    assertion: Any, passed: bool, message: str, expected: str = "", actual: str = ""
) -> AssertionResult:
    return AssertionResult(
        type=assertion.type,
        description=assertion.describe(),
        passed=passed,
        message=message,
        expected=expected,
        actual=actual,
    )


def _missing_header(assertion: Any, expected: str) -> AssertionResult:
    return _result(
        assertion,
        False,
        f"header '{assertion.name}' not present",
        expected=expected,
        actual="<missing>",
    )


def _status_code(assertion: StatusCodeAssertion, response: CapturedResponse) -> AssertionResult:
    expected, actual = str(assertion.expected), str(response.status_code)
    if response.status_code == assertion.expected:
        return _result(assertion, True, f"status code {actual}", expected, actual)
    return _result(assertion, False, f"expected {expected}, got {actual}", expected, actual)


def _header_exists(assertion: HeaderExistsAssertion, response: CapturedResponse) -> AssertionResult:
    value = response.header(assertion.name)
    if value is None:
        return _missing_header(assertion, "present")
    return _result(assertion, True, f"header '{assertion.name}' present", "present", value)


def _header_contains(
    assertion: HeaderContainsAssertion, response: CapturedResponse
) -> AssertionResult:
    values = response.header_values(assertion.name)
    if not values:
        return _missing_header(assertion, assertion.substring)
    for value in values:
        if assertion.substring in value:
            return _result(
                assertion,
                True,
                f"header '{assertion.name}' contains '{assertion.substring}'",
                assertion.substring,
                value,
            )
    actual = ", ".join(values)
    return _result(
        assertion,
        False,
        f"expected header '{assertion.name}' to contain '{assertion.substring}', got '{actual}'",
        assertion.substring,
        actual,
    )


def _header_equals(assertion: HeaderEqualsAssertion, response: CapturedResponse) -> AssertionResult:
    values = response.header_values(assertion.name)
    if not values:
        return _missing_header(assertion, assertion.value)
    if assertion.value in values:
        return _result(
            assertion,
            True,
            f"header '{assertion.name}' equals '{assertion.value}'",
            assertion.value,
            assertion.value,
        )
    actual = ", ".join(values)
    return _result(
        assertion,
        False,
        f"expected header '{assertion.name}' to equal '{assertion.value}', got '{actual}'",
        assertion.value,
        actual,
    )


def _header_matches(
    assertion: HeaderMatchesAssertion, response: CapturedResponse
) -> AssertionResult:
    values = response.header_values(assertion.name)
    expected = f"/{assertion.pattern}/"
    if not values:
        return _missing_header(assertion, expected)
    regex = re.compile(assertion.pattern)
    for value in values:
        if regex.search(value):
            return _result(
                assertion, True, f"header '{assertion.name}' matches {expected}", expected, value
            )
    actual = ", ".join(values)
    return _result(
        assertion,
        False,
        f"expected header '{assertion.name}' to match {expected}, got '{actual}'",
        expected,
        actual,
    )


def _response_time(assertion: ResponseTimeAssertion, response: CapturedResponse) -> AssertionResult:
    expected = f"<= {assertion.max_ms}ms"
    actual = f"{response.elapsed_ms:.0f}ms"
    if response.elapsed_ms <= assertion.max_ms:
        return _result(assertion, True, f"responded in {actual}", expected, actual)
    return _result(
        assertion,
        False,
        f"expected response within {assertion.max_ms}ms, took {actual}",
        expected,
        actual,
    )


def _challenge_fields(
    assertion: Any, response: CapturedResponse, expected: str
) -> dict[str, str] | AssertionResult:
    """Parsed challenge fields, or a failing result when there is no usable challenge."""
    challenge = response.header(CHALLENGE_HEADER)
    if challenge is None:
        return _result(
            assertion, False, f"no {CHALLENGE_HEADER} challenge in response", expected, "<missing>"
        )
    try:
        return parse_www_authenticate(challenge)
    except ChallengeParseError as exc:
        if "fields" in exc.details:
            # Only required fields are absent; the ones present can still be checked
            return dict(exc.details["fields"])
        return _result(assertion, False, exc.message, expected, challenge)


def _invoice_field(
    assertion: InvoiceFieldValidAssertion, response: CapturedResponse
) -> AssertionResult:
    fields = _challenge_fields(assertion, response, "valid")
    if isinstance(fields, AssertionResult):
        return fields
    outcome = validate_field(assertion.field, fields)
    return _result(
        assertion,
        outcome.passed,
        f"{assertion.field}: {outcome.message}",
        "valid",
        fields.get(assertion.field, "<missing>"),
    )


def _invoice_amount(
    assertion: InvoiceAmountAssertion, response: CapturedResponse
) -> AssertionResult:
    expected = str(assertion.expected)
    fields = _challenge_fields(assertion, response, expected)
    if isinstance(fields, AssertionResult):
        return fields
    outcome = amount_matches(fields, Decimal(assertion.expected))
    return _result(
        assertion, outcome.passed, f"amount: {outcome.message}", expected, fields.get("amount", "")
    )


_EVALUATORS: dict[type, Callable[[Any, CapturedResponse], AssertionResult]] = {
    StatusCodeAssertion: _status_code,
    HeaderExistsAssertion: _header_exists,
    HeaderContainsAssertion: _header_contains,
    HeaderEqualsAssertion: _header_equals,
    HeaderMatchesAssertion: _header_matches,
    ResponseTimeAssertion: _response_time,
    InvoiceFieldValidAssertion: _invoice_field,
    InvoiceAmountAssertion: _invoice_amount,
}


def evaluate(assertion: Any, response: CapturedResponse) -> AssertionResult:
    """Evaluate one assertion against a captured response.

    Raises:
        TypeError: If assertion is not one of the known assertion models.
    """
    evaluator = _EVALUATORS.get(type(assertion))
    if evaluator is None:
        raise TypeError(f"Unknown assertion type: {type(assertion).__name__}")
    return evaluator(assertion, response)


def evaluate_all(assertions: Any, response: CapturedResponse) -> list[AssertionResult]:
    """Evaluate every assertion, in order, without short-circuiting."""
    return [evaluate(a, response) for a in assertions]


def not_evaluated(assertion: Any, reason: str) -> AssertionResult:
    """Failing result for an assertion that never ran because the request failed."""
    return _result(assertion, False, f"not evaluated: {reason}", actual="<no response>")
