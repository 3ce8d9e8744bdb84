"""x402 challenge parsing and invoice validation.

Pure functions, no I/O. A challenge looks like::

    x402-solana recipient=<addr> amount=<val> currency=USDC memo=req-<id> network=devnet

parse_www_authenticate turns it into a field mapping (or raises
ChallengeParseError); validate_invoice checks each field against the protocol
rules and always reports the fields in the same order.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from decimal import Decimal, InvalidOperation

from x402_testkit.errors import ChallengeParseError
from x402_testkit.models.results import InvoiceFieldResult

CHALLENGE_HEADER = "WWW-Authenticate"
CHALLENGE_SCHEME = "x402-solana"

INVOICE_FIELDS: tuple[str, ...] = ("recipient", "amount", "currency", "memo", "network")

BASE58_ALPHABET = frozenset("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")
RECIPIENT_MIN_LENGTH = 32
RECIPIENT_MAX_LENGTH = 44
REQUIRED_CURRENCY = "USDC"
MEMO_PREFIX = "req-"
VALID_NETWORKS: tuple[str, ...] = ("devnet", "testnet", "mainnet", "mainnet-beta")

# An auth-param, or (group "bad") any other run of non-separator characters.
_AUTH_PARAM = re.compile(
    r'(?P<key>[^\s,="]+)=(?P<value>"(?:[^"\\]|\\.)*"|[^\s,"]*)|(?P<bad>[^\s,]+)'
)
_QUOTED_ESCAPE = re.compile(r"\\(.)")


def parse_www_authenticate(value: str) -> dict[str, str]:
    """Split an x402 challenge into its auth-params.

    Parameters are separated by whitespace and/or commas (RFC 7235
    auth-param style). Values may be double-quoted; a quoted value can hold
    spaces, commas and backslash escapes.

    Raises:
        ChallengeParseError: If the scheme is not x402-solana, a parameter is
            not key=value, a key repeats, or a required invoice field is missing.

    Example:
        >>> parse_www_authenticate("x402-solana amount=0.01,currency=USDC recipient=a memo=req-1 network=devnet")["amount"]
        '0.01'
    """
    parts = value.split(None, 1)
    if not parts:
        raise ChallengeParseError("challenge is empty", header=value)
    scheme = parts[0]
    params = parts[1] if len(parts) > 1 else ""
    if scheme != CHALLENGE_SCHEME:
        raise ChallengeParseError(
            f"expected scheme '{CHALLENGE_SCHEME}', got '{scheme}'", header=value
        )

    fields: dict[str, str] = {}
    for match in _AUTH_PARAM.finditer(params):
        if match.group("bad") is not None:
            raise ChallengeParseError(
                f"parameter '{match.group('bad')}' is not key=value", header=value
            )
        key, raw = match.group("key"), match.group("value")
        if key in fields:
            raise ChallengeParseError(f"parameter '{key}' appears more than once", header=value)
        if raw.startswith('"'):
            raw = _QUOTED_ESCAPE.sub(r"\1", raw[1:-1])
        fields[key] = raw

    missing = [name for name in INVOICE_FIELDS if name not in fields]
    if missing:
        raise ChallengeParseError(
            f"missing required field(s): {', '.join(missing)}",
            header=value,
            details={"missing": missing, "fields": dict(fields)},
        )
    return fields


def _check_recipient(value: str) -> tuple[bool, str]:
    length_ok = RECIPIENT_MIN_LENGTH <= len(value) <= RECIPIENT_MAX_LENGTH
    invalid_chars = sorted({c for c in value if c not in BASE58_ALPHABET})
    if length_ok and not invalid_chars:
        return True, f"{value[:8]}... (valid Base58, {len(value)} characters)"
    problems = []
    if not length_ok:
        problems.append(f"{len(value)} characters")
    if invalid_chars:
        problems.append(f"non-Base58 characters {''.join(invalid_chars)!r}")
    return False, (
        f"expected Base58 address of {RECIPIENT_MIN_LENGTH}-{RECIPIENT_MAX_LENGTH} characters, "
        f"got '{value}' ({'; '.join(problems)})"
    )


def _check_amount(value: str) -> tuple[bool, str]:
    try:
        amount = Decimal(value)
    except InvalidOperation:
        return False, f"expected a decimal amount > 0, got '{value}' (not a number)"
    if not amount.is_finite() or amount <= 0:
        return False, f"expected a decimal amount > 0, got '{value}'"
    return True, f"{value}"


def _check_currency(value: str) -> tuple[bool, str]:
    if value == REQUIRED_CURRENCY:
        return True, REQUIRED_CURRENCY
    return False, f"expected '{REQUIRED_CURRENCY}', got '{value}'"


def _check_memo(value: str) -> tuple[bool, str]:
    if value.startswith(MEMO_PREFIX) and len(value) > len(MEMO_PREFIX):
        return True, value
    return False, f"expected '{MEMO_PREFIX}<id>', got '{value}'"


def _check_network(value: str) -> tuple[bool, str]:
    if value in VALID_NETWORKS:
        return True, value
    return False, f"expected one of {', '.join(VALID_NETWORKS)}, got '{value}'"


_FIELD_CHECKS: dict[str, Callable[[str], tuple[bool, str]]] = {
    "recipient": _check_recipient,
    "amount": _check_amount,
    "currency": _check_currency,
    "memo": _check_memo,
    "network": _check_network,
}


def validate_field(name: str, fields: Mapping[str, str]) -> InvoiceFieldResult:
    """Validate a single invoice field; a missing field fails."""
    if name not in _FIELD_CHECKS:
        raise ValueError(f"Unknown invoice field: {name}")
    if name not in fields:
        return InvoiceFieldResult(field=name, passed=False, message="missing from challenge")
    passed, message = _FIELD_CHECKS[name](fields[name])
    return InvoiceFieldResult(field=name, passed=passed, message=message)


def validate_invoice(fields: Mapping[str, str]) -> list[InvoiceFieldResult]:
    """Validate all invoice fields in fixed order: recipient, amount, currency, memo, network."""
    return [validate_field(name, fields) for name in INVOICE_FIELDS]


def amount_matches(fields: Mapping[str, str], expected: Decimal) -> InvoiceFieldResult:
    """Compare the challenge amount with an expected price (exact decimal equality)."""
    raw = fields.get("amount")
    if raw is None:
        return InvoiceFieldResult(
            field="expected_amount", passed=False, message=f"expected {expected}, amount missing"
        )
    try:
        actual = Decimal(raw)
    except InvalidOperation:
        return InvoiceFieldResult(
            field="expected_amount", passed=False, message=f"expected {expected}, got '{raw}'"
        )
    if actual.is_finite() and actual == expected:
        return InvoiceFieldResult(field="expected_amount", passed=True, message=f"{raw} == {expected}")
    return InvoiceFieldResult(
        field="expected_amount", passed=False, message=f"expected {expected}, got {raw}"
    )
