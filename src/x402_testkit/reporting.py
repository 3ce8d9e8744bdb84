"""Reporters: human summary, JSON and JUnit XML.

All reporters render the same SuiteResult, so a failure reads the same in
every format. None of them prints; callers decide where the text goes.
"""

from __future__ import annotations

import json
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Literal

from x402_testkit.errors import ConfigError
from x402_testkit.models.results import CheckResult, SuiteResult, TestCaseResult

PASS_MARK = "✓"
FAIL_MARK = "✗"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

CheckFormat = Literal["text", "json"]

# Anything outside the XML 1.0 Char production cannot appear in a document.
_XML_ILLEGAL = re.compile(r"[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


def _mark(passed: bool) -> str:
    return PASS_MARK if passed else FAIL_MARK


def _xml_safe(value: str) -> str:
    return _XML_ILLEGAL.sub("\ufffd", value)


def _ms(value: float) -> str:
    return f"{value:.0f}ms"


def format_summary(result: SuiteResult, quiet: bool = False) -> str:
    """One line per case, failure details unless quiet, then a totals line."""
    lines = [f"Suite: {result.name}"]
    for test in result.tests:
        lines.append(f"{_mark(test.passed)} {test.name} ({_ms(test.duration_ms)})")
        if quiet or test.passed:
            continue
        if test.error is not None:
            lines.append(f"    {FAIL_MARK} error: {test.error}")
            continue
        for assertion in test.failed_assertions:
            lines.append(f"    {FAIL_MARK} {assertion.description}: {assertion.message}")

    if result.interrupted:
        lines.append(f"Interrupted: {result.total} test(s) completed before cancellation")
    lines.append(
        f"Summary: {result.passed} passed, {result.failed} failed, "
        f"{result.total} total ({_ms(result.duration_ms)})"
    )
    return "\n".join(lines)


def _test_to_dict(test: TestCaseResult) -> dict[str, Any]:
    return {
        "name": test.name,
        "method": test.method,
        "url": test.url,
        "passed": test.passed,
        "duration_ms": round(test.duration_ms, 3),
        "error": test.error,
        "error_kind": test.error_kind.value if test.error_kind else None,
        "assertions": [
            {
                "type": a.type,
                "description": a.description,
                "passed": a.passed,
                "message": a.message,
                "expected": a.expected,
                "actual": a.actual,
            }
            for a in test.assertions
        ],
    }


def suite_to_dict(result: SuiteResult) -> dict[str, Any]:
    """JSON-ready mapping of a suite result."""
    return {
        "suite": result.name,
        "passed": result.passed,
        "failed": result.failed,
        "total": result.total,
        "duration_ms": round(result.duration_ms, 3),
        "exit_code": result.exit_code,
        "interrupted": result.interrupted,
        "tests": [_test_to_dict(t) for t in result.tests],
    }


def format_json(result: SuiteResult) -> str:
    return json.dumps(suite_to_dict(result), indent=2, ensure_ascii=False)


def generate_junit_xml(result: SuiteResult) -> str:
    """Render a JUnit XML report.

    One <testcase> per case; a failing assertion becomes a <failure>, an
    execution error a single <error>.
    """
    errors = sum(1 for t in result.tests if t.error is not None)
    failures = sum(1 for t in result.tests if t.error is None and not t.passed)

    suite_el = ET.Element(
        "testsuite",
        {
            "name": _xml_safe(result.name),
            "tests": str(result.total),
            "failures": str(failures),
            "errors": str(errors),
            "skipped": "0",
            "time": f"{result.duration_ms / 1000:.3f}",
        },
    )
    for test in result.tests:
        case_el = ET.SubElement(
            suite_el,
            "testcase",
            {
                "name": _xml_safe(test.name),
                "classname": _xml_safe(result.name),
                "time": f"{test.duration_ms / 1000:.3f}",
            },
        )
        if test.error is not None:
            error_el = ET.SubElement(
                case_el,
                "error",
                {
                    "message": _xml_safe(test.error),
                    "type": test.error_kind.value if test.error_kind else "error",
                },
            )
            error_el.text = _xml_safe(f"{test.method} {test.url}\n{test.error}")
            continue
        for assertion in test.failed_assertions:
            failure_el = ET.SubElement(
                case_el, "failure", {"message": _xml_safe(assertion.message), "type": assertion.type}
            )
            failure_el.text = _xml_safe(
                f"{assertion.description}\nexpected: {assertion.expected}\nactual: {assertion.actual}"
            )

    ET.indent(suite_el)
    return XML_DECLARATION + ET.tostring(suite_el, encoding="unicode") + "\n"


def write_junit_xml(result: SuiteResult, path: str | Path) -> Path:
    """Write the JUnit report, creating parent directories.

    Raises:
        ConfigError: If the report cannot be written.
    """
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(generate_junit_xml(result), encoding="utf-8")
    except OSError as exc:
        reason = exc.strerror or str(exc)
        raise ConfigError(f"Cannot write JUnit report '{target}': {reason}", field="junit") from exc
    return target


def check_to_dict(result: CheckResult) -> dict[str, Any]:
    data = result.model_dump(mode="json")
    data["duration_ms"] = round(result.duration_ms, 3)
    return data


def format_check(result: CheckResult, fmt: CheckFormat = "text") -> str:
    """Render a compliance check as text or JSON.

    Raises:
        ConfigError: If fmt is not "text" or "json".
    """
    if fmt == "json":
        return json.dumps(check_to_dict(result), indent=2, ensure_ascii=False)
    if fmt != "text":
        raise ConfigError(f"Unknown output format '{fmt}' (expected text or json)", field="format")

    lines = [f"x402 compliance check: {result.url}"]
    if result.error is not None:
        lines.append(f"  {FAIL_MARK} request failed: {result.error}")
        lines.append("Result: ERROR (endpoint unreachable)")
        return "\n".join(lines)

    lines.append(f"  {_mark(result.status_ok)} status code is 402 (got {result.status_code})")
    header_detail = "present" if result.header_ok else "missing"
    lines.append(f"  {_mark(result.header_ok)} WWW-Authenticate header {header_detail}")
    for validation in result.validations:
        lines.append(f"  {_mark(validation.passed)} {validation.field}: {validation.message}")

    verdict = "COMPLIANT" if result.compliant else "NON-COMPLIANT"
    lines.append(
        f"Result: {verdict} ({result.checks_passed}/{result.checks_total} checks passed)"
    )
    return "\n".join(lines)
