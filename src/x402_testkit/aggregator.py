"""Fold per-case outcomes into a SuiteResult."""

from __future__ import annotations

from collections.abc import Iterable

from x402_testkit.models.results import SuiteResult, TestCaseResult


def aggregate(
    case_results: Iterable[TestCaseResult],
    *,
    suite_name: str,
    interrupted: bool = False,
) -> SuiteResult:
    """Build a SuiteResult; counts and exit code are derived from the cases.

    Duration is the sum of case durations, so it is independent of the
    execution strategy.
    """
    tests = tuple(case_results)
    return SuiteResult(
        name=suite_name,
        tests=tests,
        duration_ms=sum(t.duration_ms for t in tests),
        interrupted=interrupted,
    )
