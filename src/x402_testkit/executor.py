"""HTTP executor: one request in, one CapturedResponse (or ExecutionError) out."""

from __future__ import annotations

import asyncio
import socket
import ssl
import time
from collections.abc import Mapping
from urllib.parse import urljoin, urlparse

import httpx

from x402_testkit.errors import ConfigError, ExecutionError, ExecutionErrorKind
from x402_testkit.models.results import CapturedResponse
from x402_testkit.models.suite import RequestSpec
from x402_testkit.observability import get_logger, sanitize_headers

logger = get_logger(__name__)

_DNS_HINTS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated",
)
_TLS_HINTS = ("ssl", "certificate", "tls")
_REFUSED_HINTS = ("connection refused", "connect call failed", "errno 111", "errno 61")


def is_absolute_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def resolve_url(url: str, base_url: str | None) -> str:
    """Resolve a request URL against a base URL.

    Raises:
        ConfigError: If url is relative and there is no base URL.
    """
    if is_absolute_url(url):
        return url
    if not base_url:
        raise ConfigError(
            f"Relative URL '{url}' needs a base URL (set base_url in the suite or pass --base-url)",
            field="base_url",
        )
    return urljoin(base_url.rstrip("/") + "/", url.lstrip("/"))


def _causes(exc: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def classify_error(exc: BaseException) -> ExecutionErrorKind:
    """Map an httpx (or lower-level) exception onto an ExecutionErrorKind."""
    chain = _causes(exc)
    if any(isinstance(e, (httpx.TimeoutException, asyncio.TimeoutError)) for e in chain):
        return ExecutionErrorKind.TIMEOUT
    if any(isinstance(e, ssl.SSLError) for e in chain):
        return ExecutionErrorKind.TLS_ERROR
    if any(isinstance(e, socket.gaierror) for e in chain):
        return ExecutionErrorKind.DNS_FAILURE
    if any(isinstance(e, ConnectionRefusedError) for e in chain):
        return ExecutionErrorKind.CONNECTION_REFUSED

    text = " ".join(str(e).lower() for e in chain)
    if any(hint in text for hint in _DNS_HINTS):
        return ExecutionErrorKind.DNS_FAILURE
    if any(hint in text for hint in _REFUSED_HINTS):
        return ExecutionErrorKind.CONNECTION_REFUSED
    if isinstance(exc, httpx.ConnectError) and any(hint in text for hint in _TLS_HINTS):
        return ExecutionErrorKind.TLS_ERROR
    return ExecutionErrorKind.OTHER


def _describe(kind: ExecutionErrorKind, url: str, timeout: float, exc: BaseException) -> str:
    if kind is ExecutionErrorKind.TIMEOUT:
        return f"Request to {url} timed out after {timeout}s"
    if kind is ExecutionErrorKind.CONNECTION_REFUSED:
        return f"Connection refused by {url}. Verify the server is running and accessible."
    if kind is ExecutionErrorKind.DNS_FAILURE:
        return f"Could not resolve host for {url}: {exc}"
    if kind is ExecutionErrorKind.TLS_ERROR:
        return f"TLS handshake with {url} failed: {exc}"
    return f"Request to {url} failed: {exc or type(exc).__name__}"


async def execute(
    request: RequestSpec,
    *,
    timeout: float,
    client: httpx.AsyncClient,
    base_url: str | None = None,
    default_headers: Mapping[str, str] | None = None,
) -> CapturedResponse:
    """Send one request and capture its response under a hard wall-clock timeout.

    Any HTTP status is a response, not an error. Headers from the request
    override default_headers of the same name.

    Raises:
        ConfigError: If the URL is relative and no base URL is available.
        ExecutionError: If no response was received.
    """
    url = resolve_url(request.url, base_url)
    headers = httpx.Headers(dict(default_headers or {}))
    headers.update(request.headers)

    kwargs: dict[str, object] = {"headers": headers}
    if isinstance(request.body, (dict, list)):
        kwargs["json"] = request.body
    elif request.body is not None:
        kwargs["content"] = request.body

    logger.debug(
        "x402.request.sending",
        method=request.method,
        url=url,
        headers=sanitize_headers(dict(headers)),
    )

    start = time.perf_counter()
    try:
        response = await asyncio.wait_for(
            client.request(request.method, url, timeout=timeout, **kwargs),  # type: ignore[arg-type]
            timeout=timeout,
        )
    except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError, OSError) as exc:
        kind = classify_error(exc)
        message = _describe(kind, url, timeout, exc)
        logger.warning(
            "x402.request.failed", method=request.method, url=url, kind=kind.value, error=message
        )
        raise ExecutionError(kind, message, url=url, timeout=timeout) from exc
    elapsed_ms = (time.perf_counter() - start) * 1000

    return CapturedResponse(
        url=url,
        status_code=response.status_code,
        headers=tuple(response.headers.multi_items()),
        body=response.text,
        elapsed_ms=elapsed_ms,
    )
