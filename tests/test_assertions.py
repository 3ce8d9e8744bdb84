"""Tests for the assertion evaluator."""

from decimal import Decimal

import pytest

from x402_testkit.assertions import evaluate, evaluate_all, not_evaluated
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

from tests.factories import create_challenge, create_response


class TestStatusCode:
    """Test status_code assertions."""

    def test_match_passes(self) -> None:
        result = evaluate(StatusCodeAssertion(expected=402), create_response(402))

        assert result.passed
        assert result.type == "status_code"
        assert (result.expected, result.actual) == ("402", "402")

    def test_mismatch_message(self) -> None:
        """Failure message reads 'expected <e>, got <a>'."""
        result = evaluate(StatusCodeAssertion(expected=402), create_response(200))

        assert not result.passed
        assert result.message == "expected 402, got 200"


class TestHeaders:
    """Test header assertions."""

    def test_exists_is_case_insensitive(self) -> None:
        """Header names match regardless of case."""
        response = create_response(headers={"www-authenticate": "x402-solana a=b"})

        assert evaluate(HeaderExistsAssertion(name="WWW-Authenticate"), response).passed

    def test_missing_header_fails_not_raises(self) -> None:
        result = evaluate(HeaderExistsAssertion(name="X-Missing"), create_response(headers={}))

        assert not result.passed
        assert result.actual == "<missing>"

    def test_contains_is_case_sensitive(self) -> None:
        """Substring matching respects case."""
        response = create_response(headers={"X-Info": "Payment Required"})

        assert evaluate(
            HeaderContainsAssertion(name="x-info", substring="Payment"), response
        ).passed
        assert not evaluate(
            HeaderContainsAssertion(name="x-info", substring="payment"), response
        ).passed

    def test_contains_checks_every_value(self) -> None:
        """Any value of a repeated header may satisfy contains."""
        response = create_response(headers=[("X-Tag", "alpha"), ("X-Tag", "beta")])

        assert evaluate(HeaderContainsAssertion(name="X-Tag", substring="bet"), response).passed

    def test_contains_missing_header(self) -> None:
        result = evaluate(
            HeaderContainsAssertion(name="X-None", substring="a"), create_response(headers={})
        )

        assert not result.passed
        assert "not present" in result.message

    def test_equals(self) -> None:
        response = create_response(headers={"Content-Type": "text/plain"})

        assert evaluate(HeaderEqualsAssertion(name="content-type", value="text/plain"), response).passed
        failed = evaluate(HeaderEqualsAssertion(name="content-type", value="text/html"), response)
        assert not failed.passed
        assert failed.actual == "text/plain"

    def test_matches(self) -> None:
        """Patterns are searched, not anchored."""
        response = create_response()

        assert evaluate(
            HeaderMatchesAssertion(name="WWW-Authenticate", pattern=r"amount=\d"), response
        ).passed
        assert not evaluate(
            HeaderMatchesAssertion(name="WWW-Authenticate", pattern=r"^Bearer"), response
        ).passed


class TestResponseTime:
    """Test response_time_ms assertions."""

    def test_within_bound(self) -> None:
        """The bound is inclusive."""
        response = create_response(elapsed_ms=500)

        assert evaluate(ResponseTimeAssertion(max=500), response).passed

    def test_too_slow(self) -> None:
        result = evaluate(ResponseTimeAssertion(max=100), create_response(elapsed_ms=250))

        assert not result.passed
        assert "100ms" in result.message

    def test_independent_of_status(self) -> None:
        """Timing is checked even for error responses."""
        response = create_response(status_code=500, headers={}, elapsed_ms=5)

        assert evaluate(ResponseTimeAssertion(max=50), response).passed


class TestInvoiceAssertions:
    """Test invoice_field_valid and invoice_amount."""

    @pytest.mark.parametrize("field", ["recipient", "amount", "currency", "memo", "network"])
    def test_valid_challenge_passes(self, field: str) -> None:
        assert evaluate(InvoiceFieldValidAssertion(field=field), create_response()).passed

    def test_invalid_field_fails_with_reason(self) -> None:
        response = create_response(headers={"WWW-Authenticate": create_challenge(currency="USD")})

        result = evaluate(InvoiceFieldValidAssertion(field="currency"), response)

        assert not result.passed
        assert "expected 'USDC', got 'USD'" in result.message
        assert result.actual == "USD"

    def test_other_missing_field_does_not_block(self) -> None:
        """A challenge missing memo can still have a valid recipient."""
        response = create_response(headers={"WWW-Authenticate": create_challenge(memo=None)})

        assert evaluate(InvoiceFieldValidAssertion(field="recipient"), response).passed
        memo = evaluate(InvoiceFieldValidAssertion(field="memo"), response)
        assert not memo.passed
        assert "missing" in memo.message

    def test_no_challenge(self) -> None:
        result = evaluate(InvoiceFieldValidAssertion(field="amount"), create_response(headers={}))

        assert not result.passed
        assert "no WWW-Authenticate challenge" in result.message

    def test_malformed_challenge(self) -> None:
        response = create_response(headers={"WWW-Authenticate": "Bearer realm=api"})

        result = evaluate(InvoiceFieldValidAssertion(field="amount"), response)

        assert not result.passed
        assert "Malformed x402 challenge" in result.message

    def test_invoice_amount(self) -> None:
        response = create_response()

        assert evaluate(InvoiceAmountAssertion(expected=Decimal("0.01")), response).passed
        assert not evaluate(InvoiceAmountAssertion(expected=Decimal("0.02")), response).passed


class TestEvaluatorProperties:
    """Test evaluator-wide guarantees."""

    def test_idempotent(self) -> None:
        """Evaluating the same pair twice yields equal results."""
        response = create_response(200)
        assertion = StatusCodeAssertion(expected=402)

        assert evaluate(assertion, response) == evaluate(assertion, response)

    def test_response_unchanged(self) -> None:
        response = create_response()
        before = response.model_dump()

        evaluate_all(
            [HeaderExistsAssertion(name="WWW-Authenticate"), InvoiceFieldValidAssertion(field="memo")],
            response,
        )

        assert response.model_dump() == before

    def test_no_short_circuit(self) -> None:
        """Every assertion is evaluated even after a failure."""
        results = evaluate_all(
            [StatusCodeAssertion(expected=200), HeaderExistsAssertion(name="WWW-Authenticate")],
            create_response(402),
        )

        assert [r.passed for r in results] == [False, True]

    def test_unknown_assertion_type_raises(self) -> None:
        with pytest.raises(TypeError):
            evaluate(object(), create_response())

    def test_not_evaluated(self) -> None:
        """Assertions skipped by a request failure carry the reason."""
        result = not_evaluated(StatusCodeAssertion(expected=402), "connection refused")

        assert not result.passed
        assert result.message == "not evaluated: connection refused"
        assert result.description == "status code is 402"
