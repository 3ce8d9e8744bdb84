"""Single-endpoint x402 compliance check."""

from __future__ import annotations

import time
from decimal import Decimal

import httpx

from x402_testkit import __version__
from x402_testkit.config import DEFAULT_TIMEOUT_SECONDS
from x402_testkit.errors import ChallengeParseError, ConfigError, ExecutionError
from x402_testkit.executor import execute, is_absolute_url
from x402_testkit.invoice import (
    CHALLENGE_HEADER,
    INVOICE_FIELDS,
    amount_matches,
    parse_www_authenticate,
    validate_invoice,
)
from x402_testkit.models.results import CheckResult, InvoiceFieldResult
from x402_testkit.models.suite import RequestSpec
from x402_testkit.observability import get_logger

logger = get_logger(__name__)

PAYMENT_REQUIRED = 402


def build_client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(headers={"User-Agent": f"x402-testkit/{__version__}"}, timeout=timeout)


def _all_failed(message: str) -> list[InvoiceFieldResult]:
    return [InvoiceFieldResult(field=name, passed=False, message=message) for name in INVOICE_FIELDS]


def _validate_challenge(challenge: str | None) -> tuple[dict[str, str], list[InvoiceFieldResult]]:
    if challenge is None:
        return {}, _all_failed(f"no {CHALLENGE_HEADER} challenge in response")
    try:
        fields = parse_www_authenticate(challenge)
    except ChallengeParseError as exc:
        if "fields" not in exc.details:
            return {}, _all_failed(exc.message)
        fields = dict(exc.details["fields"])
    return fields, validate_invoice(fields)


async def check_endpoint_async(
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    client: httpx.AsyncClient | None = None,
    expected_amount: Decimal | None = None,
) -> CheckResult:
    """GET an endpoint and check its x402 challenge.

    Checks: status is 402, a WWW-Authenticate challenge is present, each of the
    five invoice fields is valid and, when expected_amount is given, the
    challenge amount equals it. A request failure is recorded in the result's
    ``error`` field rather than raised.

    Raises:
        ConfigError: If url is not an absolute http(s) URL.
    """
    if not is_absolute_url(url):
        raise ConfigError(f"Check URL must be an absolute http(s) URL, got '{url}'", field="url")

    request = RequestSpec(method="GET", url=url)
    start = time.perf_counter()

    async def _fetch(client_instance: httpx.AsyncClient) -> CheckResult:
        try:
            response = await execute(request, timeout=timeout, client=client_instance)
        except ExecutionError as exc:
            return CheckResult(
                url=url,
                duration_ms=(time.perf_counter() - start) * 1000,
                error=exc.message,
                error_kind=exc.kind,
            )

        challenge = response.header(CHALLENGE_HEADER)
        fields, validations = _validate_challenge(challenge)
        if expected_amount is not None:
            validations.append(amount_matches(fields, expected_amount))
        return CheckResult(
            url=url,
            status_code=response.status_code,
            status_ok=response.status_code == PAYMENT_REQUIRED,
            header_ok=challenge is not None,
            challenge=challenge,
            invoice=fields,
            validations=tuple(validations),
            duration_ms=response.elapsed_ms,
        )

    if client is not None:
        result = await _fetch(client)
    else:
        async with build_client(timeout) as c:
            result = await _fetch(c)

    logger.info(
        "x402.check.completed",
        url=url,
        status_code=result.status_code,
        compliant=result.compliant,
        checks_passed=result.checks_passed,
        checks_total=result.checks_total,
        error=result.error,
    )
    return result

