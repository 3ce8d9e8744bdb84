"""YAML test suite loader.

Parses a suite document into an immutable TestSuite, failing fast with a
ParseError that carries the 1-based line/column of the offending node and the
name of the test case it belongs to.

Canonical case format::

    tests:
      - name: check 402
        request: {method: GET, url: /api/data}
        assertions:
          - {type: status_code, expected: 402}
          - {type: header_exists, name: WWW-Authenticate}

Also accepted: single-key assertion shorthands (``{status_code: 402}``) and
the legacy ``url``/``expect`` case format, both rewritten into the canonical
form before validation.
"""

from __future__ import annotations

import re
from collections.abc import Hashable
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from x402_testkit.errors import ConfigError, ParseError
from x402_testkit.models.suite import ASSERTION_TYPES, TestSuite
from x402_testkit.observability import get_logger

logger = get_logger(__name__)

# Field a scalar shorthand value populates, e.g. {status_code: 402} -> expected=402
_SHORTHAND_FIELD: dict[str, str] = {
    "status_code": "expected",
    "header_exists": "name",
    "response_time_ms": "max",
    "invoice_field_valid": "field",
    "invoice_amount": "expected",
}

_LEGACY_CASE_KEYS = frozenset({"name", "url", "method", "headers", "body", "expect"})
_LEGACY_EXPECT_KEYS = frozenset({"status", "headers", "invoice_amount", "response_time_ms"})
_LEGACY_HEADER_KEYS = frozenset({"name", "exists", "value", "contains", "regex"})

_CASE_NAME_LINE = re.compile(r"^\s*-\s*name:\s*['\"]?(?P<name>[^'\"#]+?)['\"]?\s*(#.*)?$")

Path_ = tuple[str | int, ...]


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects a key repeated within one mapping."""

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        seen: set[Any] = set()
        for key_node, _ in node.value:
            if key_node.tag == "tag:yaml.org,2002:merge":
                continue
            key = self.construct_object(key_node, deep=deep)
            if not isinstance(key, Hashable):
                continue
            if key in seen:
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    f"found duplicate key '{key}'",
                    key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


class _SchemaViolation(Exception):
    """Raised while normalizing a case; path is relative to the case node."""

    def __init__(self, message: str, path: Path_ = ()) -> None:
        super().__init__(message)
        self.message = message
        self.path = path


def _decode(document: bytes | str, source: str | None) -> str:
    if isinstance(document, str):
        return document
    try:
        return document.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ParseError(f"suite is not valid UTF-8: {exc.reason}", source=source) from exc


def _nearest_case_name(text: str, line: int) -> str | None:
    """Name of the closest ``- name:`` entry at or above a 1-based line."""
    lines = text.splitlines()
    for raw in reversed(lines[: max(line, 0)]):
        match = _CASE_NAME_LINE.match(raw)
        if match:
            return match.group("name").strip()
    return None


def _compose(text: str, source: str | None) -> tuple[yaml.Node | None, Any]:
    loader = _UniqueKeyLoader(text)
    try:
        node = loader.get_single_node()
        data = loader.construct_document(node) if node is not None else None
    except yaml.MarkedYAMLError as exc:
        mark = exc.problem_mark or exc.context_mark
        line = mark.line + 1 if mark else 1
        col = mark.column + 1 if mark else 1
        problem = exc.problem or exc.context or "syntax error"
        test_name = _nearest_case_name(text, line)
        where = f" (in or after test '{test_name}')" if test_name else ""
        raise ParseError(
            f"invalid YAML: {problem}{where}",
            line=line,
            col=col,
            test_name=test_name,
            source=source,
        ) from exc
    except yaml.YAMLError as exc:
        raise ParseError(f"invalid YAML: {exc}", source=source) from exc
    finally:
        loader.dispose()
    return node, data


def _locate(root: yaml.Node, path: Path_) -> tuple[int, int]:
    """Walk the composed node tree as far as path allows; return the 1-based position."""
    node = root
    for key in path:
        child: yaml.Node | None = None
        if isinstance(node, yaml.MappingNode):
            for key_node, value_node in node.value:
                if isinstance(key_node, yaml.ScalarNode) and key_node.value == str(key):
                    child = value_node
                    break
        elif isinstance(node, yaml.SequenceNode) and isinstance(key, int):
            if 0 <= key < len(node.value):
                child = node.value[key]
        if child is None:
            break
        node = child
    return node.start_mark.line + 1, node.start_mark.column + 1


def _format_path(path: Path_) -> str:
    out = ""
    for part in path:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out


def _case_label(raw: Any, index: int) -> str:
    if isinstance(raw, dict) and isinstance(raw.get("name"), str) and raw["name"].strip():
        return str(raw["name"])
    return f"#{index + 1}"


def _normalize_assertion(raw: Any, index: int) -> dict[str, Any]:
    here: Path_ = ("assertions", index)
    if not isinstance(raw, dict):
        raise _SchemaViolation(f"assertion {index + 1} must be a mapping", here)

    if "type" in raw:
        kind = raw["type"]
        if kind not in ASSERTION_TYPES:
            raise _SchemaViolation(
                f"unknown assertion type '{kind}' (expected one of {', '.join(ASSERTION_TYPES)})",
                (*here, "type"),
            )
        return raw

    if len(raw) != 1:
        raise _SchemaViolation(f"assertion {index + 1} is missing 'type'", here)

    kind, value = next(iter(raw.items()))
    if kind not in ASSERTION_TYPES:
        raise _SchemaViolation(
            f"unknown assertion type '{kind}' (expected one of {', '.join(ASSERTION_TYPES)})",
            (*here, kind),
        )
    if isinstance(value, dict):
        return {"type": kind, **value}
    if kind not in _SHORTHAND_FIELD:
        raise _SchemaViolation(f"'{kind}' shorthand needs a mapping value", (*here, kind))
    return {"type": kind, _SHORTHAND_FIELD[kind]: value}


def _legacy_assertions(expect: Any) -> list[dict[str, Any]]:
    if not isinstance(expect, dict):
        raise _SchemaViolation("'expect' must be a mapping", ("expect",))
    unknown = sorted(set(expect) - _LEGACY_EXPECT_KEYS)
    if unknown:
        raise _SchemaViolation(f"unknown expectation '{unknown[0]}'", ("expect", unknown[0]))

    assertions: list[dict[str, Any]] = []
    if expect.get("status") is not None:
        assertions.append({"type": "status_code", "expected": expect["status"]})

    headers = expect.get("headers") or []
    if not isinstance(headers, list):
        raise _SchemaViolation("'expect.headers' must be a list", ("expect", "headers"))
    for i, header in enumerate(headers):
        here: Path_ = ("expect", "headers", i)
        if not isinstance(header, dict) or not header.get("name"):
            raise _SchemaViolation("header expectation needs a 'name'", here)
        unknown = sorted(set(header) - _LEGACY_HEADER_KEYS)
        if unknown:
            raise _SchemaViolation(f"unknown header expectation '{unknown[0]}'", (*here, unknown[0]))
        name = header["name"]
        if header.get("exists") is True:
            assertions.append({"type": "header_exists", "name": name})
        if header.get("value") is not None:
            assertions.append({"type": "header_equals", "name": name, "value": header["value"]})
        if header.get("contains") is not None:
            assertions.append(
                {"type": "header_contains", "name": name, "substring": header["contains"]}
            )
        if header.get("regex") is not None:
            assertions.append({"type": "header_matches", "name": name, "pattern": header["regex"]})

    if expect.get("invoice_amount") is not None:
        assertions.append({"type": "invoice_amount", "expected": expect["invoice_amount"]})
    if expect.get("response_time_ms") is not None:
        assertions.append({"type": "response_time_ms", "max": expect["response_time_ms"]})
    return assertions


def _normalize_case(raw: Any) -> Any:
    if not isinstance(raw, dict):
        raise _SchemaViolation("test case must be a mapping")

    if "expect" in raw and "request" not in raw:
        unknown = sorted(set(raw) - _LEGACY_CASE_KEYS)
        if unknown:
            raise _SchemaViolation(f"unknown key '{unknown[0]}'", (unknown[0],))
        if "url" not in raw:
            raise _SchemaViolation("missing required key 'url'")
        request = {
            key: raw[key] for key in ("url", "method", "headers", "body") if key in raw
        }
        return {
            "name": raw.get("name"),
            "request": request,
            "assertions": _legacy_assertions(raw["expect"]),
        }

    assertions = raw.get("assertions")
    if not isinstance(assertions, list):
        # Missing or mistyped: let schema validation report it
        return raw
    return {
        **raw,
        "assertions": [_normalize_assertion(a, i) for i, a in enumerate(assertions)],
    }


def _validation_error(
    exc: ValidationError, root: yaml.Node, data: dict[str, Any], source: str | None
) -> ParseError:
    first = exc.errors()[0]
    loc: Path_ = tuple(first["loc"])
    line, col = _locate(root, loc)
    msg = first["msg"]

    if len(loc) >= 2 and loc[0] == "tests" and isinstance(loc[1], int):
        name = _case_label(data["tests"][loc[1]], loc[1])
        field_path = _format_path(loc[2:])
        detail = f"{field_path}: {msg}" if field_path else msg
        return ParseError(
            f"test '{name}': {detail}", line=line, col=col, test_name=name, source=source
        )

    return ParseError(f"{_format_path(loc) or 'suite'}: {msg}", line=line, col=col, source=source)


def parse(document: bytes | str, *, source: str | None = None) -> TestSuite:
    """Parse a YAML document into a TestSuite.

    Args:
        document: Raw suite contents (bytes are decoded as UTF-8)
        source: Path of the document, used in error messages

    Raises:
        ParseError: On invalid YAML or the first schema violation found.
    """
    text = _decode(document, source)
    root, data = _compose(text, source)

    if root is None:
        raise ParseError("test suite is empty", source=source)
    if not isinstance(data, dict):
        line, col = _locate(root, ())
        raise ParseError(
            "top level must be a mapping with a 'tests' list", line=line, col=col, source=source
        )
    if "tests" not in data:
        line, col = _locate(root, ())
        raise ParseError("missing required key 'tests'", line=line, col=col, source=source)
    if not isinstance(data["tests"], list):
        line, col = _locate(root, ("tests",))
        raise ParseError("'tests' must be a list", line=line, col=col, source=source)

    normalized_tests = []
    for index, raw in enumerate(data["tests"]):
        try:
            normalized_tests.append(_normalize_case(raw))
        except _SchemaViolation as violation:
            name = _case_label(raw, index)
            line, col = _locate(root, ("tests", index, *violation.path))
            raise ParseError(
                f"test '{name}': {violation.message}",
                line=line,
                col=col,
                test_name=name,
                source=source,
            ) from None

    try:
        suite = TestSuite.model_validate({**data, "tests": normalized_tests})
    except ValidationError as exc:
        raise _validation_error(exc, root, data, source) from exc

    seen: set[str] = set()
    for index, case in enumerate(suite.tests):
        if case.name in seen:
            line, col = _locate(root, ("tests", index, "name"))
            raise ParseError(
                f"test '{case.name}': duplicate test name",
                line=line,
                col=col,
                test_name=case.name,
                source=source,
            )
        seen.add(case.name)

    logger.debug("x402.suite.loaded", suite=suite.name, tests=len(suite.tests), source=source)
    return suite


def load_suite(path: str | Path) -> TestSuite:
    """Read and parse a suite file.

    Raises:
        ConfigError: If the file cannot be read.
        ParseError: If its contents are not a valid suite.
    """
    suite_path = Path(path)
    try:
        document = suite_path.read_bytes()
    except OSError as exc:
        reason = exc.strerror or str(exc)
        raise ConfigError(f"Cannot read test suite '{suite_path}': {reason}", field="suite") from exc
    return parse(document, source=str(suite_path))
