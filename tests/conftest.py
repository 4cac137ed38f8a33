"""Shared test fixtures for stitchkit.

Provides reusable fixtures for isolated config environments, output state,
JWT access tokens, and CLI invocation. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

import jwt
import pytest

from stitchkit.output import OutputFormat, OutputManager, reset_output, set_output


HEX_ID = "5899445b275d3ebe8f2ab8c0"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def make_jwt(expires_in: Optional[float] = 3600, **claims: object) -> str:
    """Encode an HS256 JWT whose ``exp`` lies *expires_in* seconds from now.

    Pass ``expires_in=None`` for a token without ``exp``.
    """
    payload: dict[str, object] = {"sub": HEX_ID, **claims}
    if expires_in is not None:
        payload["exp"] = int(time.time() + expires_in)
    return jwt.encode(payload, "test-secret", algorithm="HS256")


@pytest.fixture
def make_token():
    """Factory fixture wrapping :func:`make_jwt`."""
    return make_jwt


@pytest.fixture
def fresh_token() -> str:
    """An access token valid for another hour."""
    return make_jwt(3600)


@pytest.fixture
def expired_token() -> str:
    """An access token that expired a minute ago."""
    return make_jwt(-60)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path so
    that tests never touch real user config or sessions. Clears all
    STITCHKIT_* environment variables and changes the working directory to
    tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("stitchkit.config._is_xdg_platform", lambda: True)

    for var in ["STITCHKIT_PROFILE", "STITCHKIT_BASE_URL"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the duration of a test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
