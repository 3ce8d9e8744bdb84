"""Engine configuration.

EngineConfig is built once by the caller (CLI or agent tool) and handed to the
engine read-only; the engine itself never consults the environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from enum import Enum
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from x402_testkit import __version__
from x402_testkit.errors import ConfigError

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_CONCURRENCY = 4

ENV_TIMEOUT = "X402_TESTKIT_TIMEOUT"
ENV_BASE_URL = "X402_TESTKIT_BASE_URL"


class ExecutionStrategy(str, Enum):
    """How the test cases of a suite are scheduled.

    SEQUENTIAL preserves suite order for cases that depend on state left
    behind by earlier ones; PARALLEL must be requested explicitly.
    """

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class EngineConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS, gt=0, description="Hard per-request timeout in seconds"
    )
    base_url: str | None = Field(
        default=None, description="Base URL for relative request paths; overrides the suite's"
    )
    default_headers: dict[str, str] = Field(
        default_factory=dict, description="Headers sent with every request (case headers win)"
    )
    strategy: ExecutionStrategy = Field(default=ExecutionStrategy.SEQUENTIAL)
    max_concurrency: int = Field(
        default=DEFAULT_MAX_CONCURRENCY, ge=1, description="In-flight request cap for PARALLEL"
    )
    user_agent: str = Field(default=f"x402-testkit/{__version__}")

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"base_url must be an absolute http(s) URL, got '{value}'")
        return value


def load_config(
    *,
    timeout: float | None = None,
    base_url: str | None = None,
    strategy: ExecutionStrategy | str | None = None,
    max_concurrency: int | None = None,
    default_headers: Mapping[str, str] | None = None,
    env: Mapping[str, str] | None = None,
) -> EngineConfig:
    """Build an EngineConfig from explicit overrides, then environment, then defaults.

    Args:
        timeout: Per-request timeout in seconds (overrides X402_TESTKIT_TIMEOUT)
        base_url: Base URL (overrides X402_TESTKIT_BASE_URL)
        strategy: Execution strategy
        max_concurrency: Parallel request cap
        default_headers: Headers added to every request
        env: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError: If any value is invalid.
    """
    environ = os.environ if env is None else env
    values: dict[str, object] = {}

    if timeout is not None:
        values["timeout_seconds"] = timeout
    elif environ.get(ENV_TIMEOUT):
        raw_timeout = environ[ENV_TIMEOUT]
        try:
            values["timeout_seconds"] = float(raw_timeout)
        except ValueError as exc:
            raise ConfigError(
                f"Invalid {ENV_TIMEOUT} value '{raw_timeout}': must be a number of seconds",
                field="timeout_seconds",
            ) from exc

    if base_url is not None:
        values["base_url"] = base_url
    elif environ.get(ENV_BASE_URL):
        values["base_url"] = environ[ENV_BASE_URL]

    if strategy is not None:
        values["strategy"] = strategy
    if max_concurrency is not None:
        values["max_concurrency"] = max_concurrency
    if default_headers:
        values["default_headers"] = dict(default_headers)

    try:
        return EngineConfig.model_validate(values)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise ConfigError(f"Invalid configuration for '{field}': {first['msg']}", field=field) from exc
