"""Process exit code policy.

The engine never exits; these functions map its results and errors onto the
codes the CLI exits with, so CI can tell "my test failed" (1) from "I ran it
wrong" (2) and "the target was unreachable" (3).
"""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING

from x402_testkit.errors import ConfigError, ExecutionError, ParseError

if TYPE_CHECKING:
    from x402_testkit.models.results import CheckResult, SuiteResult


class ExitCode(IntEnum):
    SUCCESS = 0
    FAILURE = 1
    CONFIG = 2
    NETWORK = 3


def suite_exit_code(result: SuiteResult) -> ExitCode:
    """0 when every case passed (including an empty suite), 3 when no case got a response, else 1.

    An interrupted run never exits 0, even if every case that finished passed.
    """
    if result.failed == 0 and not result.interrupted:
        return ExitCode.SUCCESS
    if result.tests and all(t.error is not None for t in result.tests):
        return ExitCode.NETWORK
    return ExitCode.FAILURE


def check_exit_code(result: CheckResult) -> ExitCode:
    if result.error is not None:
        return ExitCode.NETWORK
    return ExitCode.SUCCESS if result.compliant else ExitCode.FAILURE


def error_exit_code(exc: BaseException) -> ExitCode:
    """Exit code for an error that aborted a run before results existed."""
    if isinstance(exc, (ParseError, ConfigError)):
        return ExitCode.CONFIG
    if isinstance(exc, ExecutionError):
        return ExitCode.NETWORK
    return ExitCode.FAILURE
