"""Agent-facing tools.

Each tool returns a JSON-ready mapping and never raises for an invalid suite,
bad configuration or unreachable endpoint: those come back as
``status: "error"`` with the same exit code the CLI would use.
"""

from __future__ import annotations

from typing import Any

import httpx

from x402_testkit.api import check_async, run_file_async
from x402_testkit.config import DEFAULT_TIMEOUT_SECONDS, ExecutionStrategy, load_config
from x402_testkit.errors import ConfigError, ParseError
from x402_testkit.exit_codes import check_exit_code, error_exit_code
from x402_testkit.reporting import suite_to_dict, write_junit_xml

RUN_SUITE_TOOL = "x402__testing_run_suite"
CHECK_COMPLIANCE_TOOL = "x402__testing_check_compliance"

RUN_SUITE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "suite": {"type": "string", "minLength": 1, "description": "Path to the YAML test suite"},
        "junit": {"type": "string", "description": "Write a JUnit XML report to this path"},
        "base_url": {"type": "string", "description": "Base URL for relative request paths"},
        "timeout": {
            "type": "number",
            "exclusiveMinimum": 0,
            "description": "Per-request timeout in seconds",
        },
        "parallel": {"type": "boolean", "description": "Run test cases concurrently"},
    },
    "required": ["suite"],
    "additionalProperties": False,
}

CHECK_COMPLIANCE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "url": {"type": "string", "minLength": 1, "description": "Endpoint to check"},
        "timeout": {
            "type": "number",
            "exclusiveMinimum": 0,
            "description": "Request timeout in seconds",
        },
        "expected_pricing": {
            "type": "number",
            "description": "Expected invoice amount; a mismatch is a compliance issue",
        },
    },
    "required": ["url"],
    "additionalProperties": False,
}


def _error_response(exc: ParseError | ConfigError) -> dict[str, Any]:
    return {
        "status": "error",
        "exit_code": int(error_exit_code(exc)),
        "error": exc.to_dict(),
        "summary": str(exc),
    }


async def run_suite(
    suite: str,
    junit: str | None = None,
    base_url: str | None = None,
    timeout: float | None = None,
    parallel: bool = False,
    *,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Run a suite file and summarize the outcome."""
    try:
        config = load_config(
            timeout=timeout,
            base_url=base_url,
            strategy=ExecutionStrategy.PARALLEL if parallel else None,
        )
        result = await run_file_async(suite, config, client=client)
        if junit:
            write_junit_xml(result, junit)
    except (ParseError, ConfigError) as exc:
        return _error_response(exc)

    report = suite_to_dict(result)
    status = "passed" if result.exit_code == 0 else "failed"
    response: dict[str, Any] = {
        "status": status,
        "total": result.total,
        "passed": result.passed,
        "failed": result.failed,
        "duration_ms": report["duration_ms"],
        "exit_code": result.exit_code,
        "interrupted": result.interrupted,
        "tests": report["tests"],
        "summary": (
            f"{result.passed} of {result.total} tests passed in {result.duration_ms:.0f}ms"
        ),
    }
    if junit:
        response["junit"] = junit
    return response


async def check_compliance(
    url: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    expected_pricing: float | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Check one endpoint and list its compliance issues."""
    expected = str(expected_pricing) if expected_pricing is not None else None
    try:
        result = await check_async(url, timeout, expected_amount=expected, client=client)
    except ConfigError as exc:
        return _error_response(exc)

    base: dict[str, Any] = {
        "url": url,
        "status_code": result.status_code,
        "has_www_authenticate": result.header_ok,
        "invoice": result.invoice or None,
        "checks_passed": result.checks_passed,
        "checks_total": result.checks_total,
        "exit_code": int(check_exit_code(result)),
    }
    if result.error is not None:
        return {
            **base,
            "status": "error",
            "issues": [result.error],
            "summary": f"Endpoint {url} could not be checked: {result.error}",
        }

    issues: list[str] = []
    if not result.header_ok:
        issues.append("Missing WWW-Authenticate header")
    if not result.status_ok:
        issues.append(f"Expected 402 status code, got {result.status_code}")
    if result.header_ok:
        issues.extend(f"{v.field}: {v.message}" for v in result.validations if not v.passed)

    if result.compliant:
        summary = (
            f"Endpoint {url} is x402 compliant "
            f"({result.checks_passed}/{result.checks_total} checks passed)"
        )
    else:
        summary = f"Endpoint {url} has {len(issues)} compliance issue(s)"
    return {
        **base,
        "status": "compliant" if result.compliant else "non_compliant",
        "issues": issues,
        "summary": summary,
    }
