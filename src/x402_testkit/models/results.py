"""Execution and result models.

CapturedResponse is produced by the executor and only read by the evaluator.
The result models carry derived values (pass/fail, counts, compliance) as
computed fields so they can never disagree with the data they summarize.
"""

from __future__ import annotations

from pydantic import Field, computed_field

from x402_testkit.errors import ExecutionErrorKind
from x402_testkit.models.base import X402BaseModel


class CapturedResponse(X402BaseModel):
    """Status line, headers and body of one HTTP exchange plus its wall-clock duration.

    Headers are kept as an ordered multimap; lookups are case-insensitive.
    """

    url: str
    status_code: int
    headers: tuple[tuple[str, str], ...] = ()
    body: str = ""
    elapsed_ms: float = Field(..., ge=0)

    def header_values(self, name: str) -> list[str]:
        """All values of a header, in received order (empty if absent)."""
        wanted = name.lower()
        return [value for key, value in self.headers if key.lower() == wanted]

    def header(self, name: str) -> str | None:
        """First value of a header, or None if absent."""
        values = self.header_values(name)
        return values[0] if values else None

    def has_header(self, name: str) -> bool:
        return bool(self.header_values(name))


class AssertionResult(X402BaseModel):
    """Outcome of one assertion against one response."""

    type: str
    description: str
    passed: bool
    message: str
    expected: str = ""
    actual: str = ""


class TestCaseResult(X402BaseModel):
    """Outcome of one test case.

    A case passes only when its request produced a response and every
    assertion passed.
    """

    __test__ = False

    name: str
    method: str
    url: str
    duration_ms: float = Field(..., ge=0)
    assertions: tuple[AssertionResult, ...] = ()
    error: str | None = None
    error_kind: ExecutionErrorKind | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def passed(self) -> bool:
        return self.error is None and all(a.passed for a in self.assertions)

    @property
    def failed_assertions(self) -> list[AssertionResult]:
        return [a for a in self.assertions if not a.passed]


class SuiteResult(X402BaseModel):
    """Aggregated outcome of a suite run; counts are per test case."""

    name: str
    tests: tuple[TestCaseResult, ...] = ()
    duration_ms: float = Field(default=0.0, ge=0)
    interrupted: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return len(self.tests)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def passed(self) -> int:
        return sum(1 for t in self.tests if t.passed)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return self.total - self.passed

    @computed_field  # type: ignore[prop-decorator]
    @property
    def exit_code(self) -> int:
        from x402_testkit.exit_codes import suite_exit_code

        return int(suite_exit_code(self))


class InvoiceFieldResult(X402BaseModel):
    """Validation outcome for one invoice field."""

    field: str
    passed: bool
    message: str


class CheckResult(X402BaseModel):
    """Outcome of a single-endpoint compliance check.

    Two protocol checks (402 status, challenge header present) plus one check
    per invoice field, and optionally the expected-amount check.
    """

    url: str
    status_code: int | None = None
    status_ok: bool = False
    header_ok: bool = False
    challenge: str | None = None
    invoice: dict[str, str] = Field(default_factory=dict)
    validations: tuple[InvoiceFieldResult, ...] = ()
    duration_ms: float = Field(default=0.0, ge=0)
    error: str | None = None
    error_kind: ExecutionErrorKind | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def checks_total(self) -> int:
        return 2 + len(self.validations)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def checks_passed(self) -> int:
        return int(self.status_ok) + int(self.header_ok) + sum(1 for v in self.validations if v.passed)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def compliant(self) -> bool:
        return self.checks_passed == self.checks_total
