"""Engine entry points.

Every operation returns a result value and never exits the process. The
synchronous functions are thin wrappers that refuse to run inside an already
running event loop; use the ``*_async`` variant there.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, TypeVar

import httpx

from x402_testkit.compliance import check_endpoint_async
from x402_testkit.config import DEFAULT_TIMEOUT_SECONDS, EngineConfig
from x402_testkit.errors import ConfigError
from x402_testkit.loader import load_suite
from x402_testkit.models.results import CheckResult, SuiteResult
from x402_testkit.models.suite import TestSuite
from x402_testkit.runner import run_suite_async

T = TypeVar("T")


def _run_sync(coro: Coroutine[Any, Any, T], name: str) -> T:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    coro.close()
    raise RuntimeError(
        f"Cannot call sync {name} from inside a running event loop. Use {name}_async."
    )


async def run_async(
    suite: TestSuite,
    config: EngineConfig | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> SuiteResult:
    """Run a loaded suite."""
    return await run_suite_async(suite, config, client=client)


def run(
    suite: TestSuite,
    config: EngineConfig | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> SuiteResult:
    return _run_sync(run_async(suite, config, client=client), "run")


async def run_file_async(
    path: str | Path,
    config: EngineConfig | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> SuiteResult:
    """Load a suite file and run it.

    Raises:
        ConfigError: If the file cannot be read or a URL cannot be resolved.
        ParseError: If the file is not a valid suite. No request is sent.
    """
    suite = load_suite(path)
    return await run_suite_async(suite, config, client=client)


def run_file(
    path: str | Path,
    config: EngineConfig | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> SuiteResult:
    return _run_sync(run_file_async(path, config, client=client), "run_file")


def _parse_amount(value: Decimal | str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigError(
            f"Expected amount must be a decimal number, got '{value}'", field="expected_amount"
        ) from exc
    if not amount.is_finite():
        raise ConfigError(
            f"Expected amount must be a finite number, got '{value}'", field="expected_amount"
        )
    return amount


async def check_async(
    url: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    *,
    expected_amount: Decimal | str | None = None,
    client: httpx.AsyncClient | None = None,
) -> CheckResult:
    """Run a single-endpoint compliance check.

    Raises:
        ConfigError: If url is relative or expected_amount is not a number.
    """
    if timeout <= 0:
        raise ConfigError(f"Timeout must be greater than 0, got {timeout}", field="timeout_seconds")
    expected = _parse_amount(expected_amount) if expected_amount is not None else None
    return await check_endpoint_async(
        url, timeout=timeout, client=client, expected_amount=expected
    )


def check(
    url: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    *,
    expected_amount: Decimal | str | None = None,
    client: httpx.AsyncClient | None = None,
) -> CheckResult:
    return _run_sync(
        check_async(url, timeout, expected_amount=expected_amount, client=client), "check"
    )
