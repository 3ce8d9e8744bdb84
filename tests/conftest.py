"""Shared pytest fixtures for x402-testkit tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from x402_testkit.config import ENV_BASE_URL, ENV_TIMEOUT
from x402_testkit.observability.logging import ENV_DEBUG

from tests.factories import SUITE_YAML


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's x402-testkit environment out of every test."""
    for name in (ENV_BASE_URL, ENV_TIMEOUT, ENV_DEBUG):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def suite_file(tmp_path: Path) -> Path:
    """A valid one-case suite on disk."""
    path = tmp_path / "suite.yaml"
    path.write_text(SUITE_YAML, encoding="utf-8")
    return path


@pytest.fixture
def write_suite(tmp_path: Path):
    """Write arbitrary suite text to a file and return its path."""

    def _write(text: str, name: str = "suite.yaml") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
