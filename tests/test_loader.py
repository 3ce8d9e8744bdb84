"""Tests for the YAML suite loader."""

from decimal import Decimal
from pathlib import Path

import pytest

from x402_testkit.errors import ConfigError, ParseError
from x402_testkit.loader import load_suite, parse
from x402_testkit.models.suite import (
    DEFAULT_SUITE_NAME,
    HeaderContainsAssertion,
    HeaderEqualsAssertion,
    HeaderExistsAssertion,
    HeaderMatchesAssertion,
    InvoiceAmountAssertion,
    InvoiceFieldValidAssertion,
    ResponseTimeAssertion,
    StatusCodeAssertion,
)

from tests.factories import SUITE_YAML


class TestParseValidSuites:
    """Test parsing of well-formed suites."""

    def test_canonical_suite(self) -> None:
        """Names, request and typed assertions are loaded in order."""
        suite = parse(SUITE_YAML)

        assert suite.name == "payment gate"
        assert suite.base_url == "http://testserver"
        assert len(suite.tests) == 1
        case = suite.tests[0]
        assert case.name == "data endpoint requires payment"
        assert case.request.method == "GET"
        assert case.request.url == "/api/data"
        assert [type(a) for a in case.assertions] == [
            StatusCodeAssertion,
            HeaderExistsAssertion,
            InvoiceFieldValidAssertion,
        ]

    def test_bytes_input(self) -> None:
        """UTF-8 bytes (with or without BOM) parse like text."""
        assert parse(SUITE_YAML.encode("utf-8")) == parse(SUITE_YAML)
        assert parse(b"\xef\xbb\xbf" + SUITE_YAML.encode("utf-8")) == parse(SUITE_YAML)

    def test_defaults(self) -> None:
        """Suite name defaults and method defaults to GET."""
        suite = parse(
            """
tests:
  - name: minimal
    request: {url: "http://x.test/"}
    assertions: []
"""
        )

        assert suite.name == DEFAULT_SUITE_NAME
        assert suite.base_url is None
        assert suite.tests[0].request.method == "GET"
        assert suite.tests[0].assertions == ()

    def test_empty_tests_list(self) -> None:
        """A suite may have zero cases."""
        assert parse("tests: []").tests == ()

    def test_method_is_normalized(self) -> None:
        """Lower-case methods are upper-cased."""
        suite = parse(
            """
tests:
  - name: post it
    request: {method: post, url: /pay, body: {amount: 1}, headers: {X-Count: 5}}
    assertions: []
"""
        )

        request = suite.tests[0].request
        assert request.method == "POST"
        assert request.body == {"amount": 1}
        assert request.headers == {"X-Count": "5"}

    def test_all_assertion_kinds(self) -> None:
        """Every assertion type resolves to its model."""
        suite = parse(
            """
tests:
  - name: everything
    request: {url: /x}
    assertions:
      - {type: status_code, expected: 402}
      - {type: header_exists, name: WWW-Authenticate}
      - {type: header_contains, name: WWW-Authenticate, substring: x402-solana}
      - {type: header_equals, name: Content-Type, value: text/plain}
      - {type: header_matches, name: WWW-Authenticate, pattern: "amount=\\\\d+"}
      - {type: response_time_ms, max: 500}
      - {type: invoice_field_valid, field: currency}
      - {type: invoice_amount, expected: 0.01}
"""
        )

        assertions = suite.tests[0].assertions
        assert [type(a) for a in assertions] == [
            StatusCodeAssertion,
            HeaderExistsAssertion,
            HeaderContainsAssertion,
            HeaderEqualsAssertion,
            HeaderMatchesAssertion,
            ResponseTimeAssertion,
            InvoiceFieldValidAssertion,
            InvoiceAmountAssertion,
        ]
        assert assertions[5].max_ms == 500
        assert assertions[7].expected == Decimal("0.01")

    def test_shorthand_assertions(self) -> None:
        """Single-key shorthands expand to the canonical form."""
        suite = parse(
            """
tests:
  - name: short
    request: {url: /x}
    assertions:
      - status_code: 402
      - header_exists: WWW-Authenticate
      - response_time_ms: 250
      - invoice_field_valid: recipient
      - header_contains: {name: WWW-Authenticate, substring: USDC}
"""
        )

        assertions = suite.tests[0].assertions
        assert assertions[0] == StatusCodeAssertion(expected=402)
        assert assertions[1] == HeaderExistsAssertion(name="WWW-Authenticate")
        assert assertions[2] == ResponseTimeAssertion(max=250)
        assert assertions[3] == InvoiceFieldValidAssertion(field="recipient")
        assert assertions[4] == HeaderContainsAssertion(name="WWW-Authenticate", substring="USDC")

    def test_legacy_expect_format(self) -> None:
        """url/expect cases are translated into request + assertions."""
        suite = parse(
            """
tests:
  - name: legacy
    url: http://localhost:3402/api/data
    expect:
      status: 402
      headers:
        - {name: WWW-Authenticate, exists: true}
        - {name: WWW-Authenticate, regex: "x402-.*"}
      invoice_amount: 0.01
      response_time_ms: 1000
"""
        )

        case = suite.tests[0]
        assert case.request.method == "GET"
        assert case.request.url == "http://localhost:3402/api/data"
        assert [a.type for a in case.assertions] == [
            "status_code",
            "header_exists",
            "header_matches",
            "invoice_amount",
            "response_time_ms",
        ]


class TestParseErrors:
    """Test that schema violations fail fast with positions and case names."""

    def test_invalid_yaml_has_position(self) -> None:
        """Syntax errors carry a 1-based line and column."""
        with pytest.raises(ParseError) as exc_info:
            parse("tests:\n  - name: broken\n    request: {url: /x\n")

        error = exc_info.value
        assert error.line >= 3
        assert error.col >= 1
        assert "invalid YAML" in error.message

    def test_duplicate_mapping_key(self) -> None:
        """A repeated key is rejected instead of silently keeping the last value."""
        text = "tests:\n  - name: a\n    name: b\n    request: {url: /x}\n    assertions: []\n"

        with pytest.raises(ParseError, match="duplicate key 'name'") as exc_info:
            parse(text)

        error = exc_info.value
        assert (error.line, error.col) == (3, 5)
        assert error.test_name == "a"

    def test_duplicate_key_in_flow_mapping(self) -> None:
        with pytest.raises(ParseError, match="duplicate key 'url'"):
            parse("tests:\n  - name: a\n    request: {url: /x, url: /y}\n    assertions: []\n")

    def test_empty_document(self) -> None:
        with pytest.raises(ParseError, match="empty"):
            parse("")

    def test_top_level_must_be_mapping(self) -> None:
        with pytest.raises(ParseError, match="top level"):
            parse("- a\n- b\n")

    def test_missing_tests_key(self) -> None:
        with pytest.raises(ParseError, match="'tests'"):
            parse("name: no tests\n")

    def test_tests_must_be_list(self) -> None:
        with pytest.raises(ParseError, match="must be a list") as exc_info:
            parse("name: x\ntests: nope\n")

        assert exc_info.value.line == 2

    def test_missing_request_names_case(self) -> None:
        """A missing field names the case and points at it."""
        text = """tests:
  - name: first
    request: {url: /a}
    assertions: []
  - name: second
    assertions: []
"""
        with pytest.raises(ParseError) as exc_info:
            parse(text)

        error = exc_info.value
        assert error.test_name == "second"
        assert "request" in error.message
        assert error.line == 5

    def test_unnamed_case_uses_index(self) -> None:
        """Without a name the case is labelled by its 1-based index."""
        with pytest.raises(ParseError) as exc_info:
            parse("tests:\n  - request: {url: /a}\n    assertions: []\n")

        assert exc_info.value.test_name == "#1"
        assert "name" in exc_info.value.message

    def test_unknown_assertion_type(self) -> None:
        """Unknown discriminants are rejected at load time, at the type key."""
        text = """tests:
  - name: odd
    request: {url: /a}
    assertions:
      - type: body_contains
        text: hi
"""
        with pytest.raises(ParseError, match="unknown assertion type 'body_contains'") as exc_info:
            parse(text)

        assert exc_info.value.test_name == "odd"
        assert exc_info.value.line == 5

    def test_unknown_shorthand(self) -> None:
        with pytest.raises(ParseError, match="unknown assertion type 'status'"):
            parse("tests:\n  - name: s\n    request: {url: /a}\n    assertions:\n      - status: 402\n")

    def test_unsupported_method(self) -> None:
        with pytest.raises(ParseError, match="unsupported HTTP method") as exc_info:
            parse("tests:\n  - name: m\n    request: {method: FETCH, url: /a}\n    assertions: []\n")

        assert exc_info.value.test_name == "m"

    def test_wrong_value_type(self) -> None:
        """A non-integer status code is a schema violation."""
        text = """tests:
  - name: typed
    request: {url: /a}
    assertions:
      - {type: status_code, expected: lots}
"""
        with pytest.raises(ParseError) as exc_info:
            parse(text)

        assert exc_info.value.test_name == "typed"
        assert exc_info.value.line == 5

    def test_invalid_regex(self) -> None:
        """header_matches patterns are compiled at load time."""
        text = """tests:
  - name: rx
    request: {url: /a}
    assertions:
      - {type: header_matches, name: X, pattern: "(unclosed"}
"""
        with pytest.raises(ParseError, match="invalid regular expression"):
            parse(text)

    def test_unknown_invoice_field(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse(
                "tests:\n  - name: f\n    request: {url: /a}\n"
                "    assertions:\n      - invoice_field_valid: price\n"
            )

        assert exc_info.value.test_name == "f"

    def test_duplicate_case_name(self) -> None:
        """Case names are unique within a suite."""
        text = """tests:
  - name: same
    request: {url: /a}
    assertions: []
  - name: same
    request: {url: /b}
    assertions: []
"""
        with pytest.raises(ParseError, match="duplicate test name") as exc_info:
            parse(text)

        assert exc_info.value.line == 5

    def test_unknown_case_key(self) -> None:
        """Extra keys in a case are rejected."""
        with pytest.raises(ParseError, match="retries"):
            parse(
                "tests:\n  - name: x\n    request: {url: /a}\n    assertions: []\n    retries: 3\n"
            )

    def test_legacy_case_without_url(self) -> None:
        with pytest.raises(ParseError, match="'url'"):
            parse("tests:\n  - name: legacy\n    expect: {status: 402}\n")

    def test_source_in_message(self) -> None:
        """The source path prefixes str(error)."""
        with pytest.raises(ParseError) as exc_info:
            parse("tests: 3", source="suite.yaml")

        assert str(exc_info.value).startswith("suite.yaml:1:")


class TestLoadSuite:
    """Test loading from disk."""

    def test_loads_file(self, suite_file: Path) -> None:
        assert load_suite(suite_file).name == "payment gate"

    def test_missing_file_is_config_error(self, tmp_path: Path) -> None:
        """An unreadable file is a configuration problem, not a parse error."""
        with pytest.raises(ConfigError, match="Cannot read test suite"):
            load_suite(tmp_path / "nope.yaml")

    def test_parse_error_carries_path(self, write_suite) -> None:
        path = write_suite("tests: {}\n")

        with pytest.raises(ParseError) as exc_info:
            load_suite(path)

        assert exc_info.value.source == str(path)
