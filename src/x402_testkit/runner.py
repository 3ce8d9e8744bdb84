"""Suite runner: executes test cases and evaluates their assertions."""

from __future__ import annotations

import asyncio
import time

import httpx

from x402_testkit.aggregator import aggregate
from x402_testkit.assertions import evaluate_all, not_evaluated
from x402_testkit.config import EngineConfig, ExecutionStrategy
from x402_testkit.errors import ExecutionError
from x402_testkit.executor import execute, resolve_url
from x402_testkit.models.results import SuiteResult, TestCaseResult
from x402_testkit.models.suite import TestCase, TestSuite
from x402_testkit.observability import bind_context, clear_context, get_logger

logger = get_logger(__name__)


def build_client(config: EngineConfig) -> httpx.AsyncClient:
    """HTTP client owned by a single run."""
    return httpx.AsyncClient(
        headers={"User-Agent": config.user_agent},
        timeout=config.timeout_seconds,
        follow_redirects=False,
        limits=httpx.Limits(max_connections=config.max_concurrency),
    )


def effective_base_url(suite: TestSuite, config: EngineConfig) -> str | None:
    return config.base_url or suite.base_url


async def run_case(
    case: TestCase,
    *,
    client: httpx.AsyncClient,
    config: EngineConfig,
    base_url: str | None = None,
) -> TestCaseResult:
    """Run one test case.

    An ExecutionError fails the case: every assertion is recorded as not
    evaluated, carrying the error reason.
    """
    url = resolve_url(case.request.url, base_url)
    logger.debug("x402.case.started", test=case.name, method=case.request.method, url=url)
    start = time.perf_counter()
    try:
        response = await execute(
            case.request,
            timeout=config.timeout_seconds,
            client=client,
            base_url=base_url,
            default_headers=config.default_headers,
        )
    except ExecutionError as exc:
        result = TestCaseResult(
            name=case.name,
            method=case.request.method,
            url=url,
            duration_ms=(time.perf_counter() - start) * 1000,
            assertions=tuple(not_evaluated(a, exc.message) for a in case.assertions),
            error=exc.message,
            error_kind=exc.kind,
        )
    else:
        result = TestCaseResult(
            name=case.name,
            method=case.request.method,
            url=url,
            duration_ms=(time.perf_counter() - start) * 1000,
            assertions=tuple(evaluate_all(case.assertions, response)),
        )

    logger.info(
        "x402.case.completed",
        test=case.name,
        passed=result.passed,
        failed_assertions=len(result.failed_assertions),
        duration_ms=round(result.duration_ms, 2),
        error=result.error,
    )
    return result


async def run_suite_async(
    suite: TestSuite,
    config: EngineConfig | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> SuiteResult:
    """Run every case of a suite and aggregate the outcome.

    Cases run one at a time in suite order unless config.strategy is
    PARALLEL, in which case at most config.max_concurrency requests are in
    flight and results are still reported in suite order.

    If the run is cancelled, the in-flight request is aborted and the cases
    completed so far are returned as a SuiteResult with ``interrupted=True``.

    Raises:
        ConfigError: If a case has a relative URL and no base URL is
            configured. Raised before any request is sent.
    """
    config = config or EngineConfig()
    base_url = effective_base_url(suite, config)
    for case in suite.tests:
        resolve_url(case.request.url, base_url)

    results: dict[int, TestCaseResult] = {}
    interrupted = False

    async def _run(client_instance: httpx.AsyncClient) -> None:
        if config.strategy is ExecutionStrategy.PARALLEL:
            semaphore = asyncio.Semaphore(config.max_concurrency)

            async def _bounded(index: int, case: TestCase) -> None:
                async with semaphore:
                    results[index] = await run_case(
                        case, client=client_instance, config=config, base_url=base_url
                    )

            await asyncio.gather(*(_bounded(i, c) for i, c in enumerate(suite.tests)))
        else:
            for index, case in enumerate(suite.tests):
                results[index] = await run_case(
                    case, client=client_instance, config=config, base_url=base_url
                )

    bind_context(suite=suite.name)
    try:
        if client is not None:
            await _run(client)
        else:
            async with build_client(config) as c:
                await _run(c)
    except asyncio.CancelledError:
        interrupted = True
        logger.warning(
            "x402.suite.interrupted",
            suite=suite.name,
            completed=len(results),
            total=len(suite.tests),
        )
    finally:
        clear_context()

    result = aggregate(
        (results[i] for i in sorted(results)),
        suite_name=suite.name,
        interrupted=interrupted,
    )
    logger.info(
        "x402.suite.completed",
        suite=suite.name,
        total=result.total,
        passed=result.passed,
        failed=result.failed,
        duration_ms=round(result.duration_ms, 2),
        exit_code=result.exit_code,
    )
    return result
