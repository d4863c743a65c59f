"""Shared test fixtures for oauthcli.

Provides fixtures for isolating the environment and token store, resetting
global output and logging state, building provider configs, and running
the CLI. These fixtures are automatically discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import pytest

from oauthcli.models import OAuth2Config, RuntimeConfig
from oauthcli.output import OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output and logging state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and the ``oauthcli`` logger after every test.

    The OutputManager and the Rich log handler cache references to
    sys.stdout/sys.stderr at creation time. When Typer's CliRunner
    redirects those streams and the test finishes, the cached references
    become stale ("I/O operation on closed file"). The CLI also turns off
    propagation on the ``oauthcli`` logger, which would hide records from
    ``caplog`` in later tests.
    """
    yield
    reset_output()
    logger = logging.getLogger("oauthcli")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Environment isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_DATA_HOME to a subdirectory of tmp_path so that tests never
    touch the real token store, clears all OAUTHCLI_* and provider
    client-id variables, and changes the working directory to tmp_path
    (so no stray ``.env`` is loaded).

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "OAUTHCLI_TOKENS_FILE",
        "OAUTHCLI_CAPTURE_TIMEOUT",
        "OAUTHCLI_DEVICE_MAX_WAIT",
        "OAUTHCLI_HEADLESS",
        "OPENAI_CLIENT_ID",
        "GEMINI_CLIENT_ID",
        "GEMINI_CLIENT_SECRET",
        "CLAUDE_CLIENT_ID",
        "COPILOT_CLIENT_ID",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def runtime(tmp_path: Path) -> RuntimeConfig:
    """A RuntimeConfig with an empty environment and a temporary token file."""
    return RuntimeConfig(environ={}, tokens_path=tmp_path / "tokens.json")


# ---------------------------------------------------------------------------
# Provider fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def oauth2_config() -> OAuth2Config:
    """A form-encoded OAuth2 provider redirecting to a local port."""
    return OAuth2Config(
        name="example",
        display_name="Example",
        client_id="client-123",
        authorization_url="https://auth.example.com/authorize",
        token_url="https://auth.example.com/token",
        redirect_uri="http://localhost:1455/callback",
        redirect_pattern=re.compile(r"localhost:1455/"),
        scopes=("openid", "email"),
    )


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, colourless OutputManager and reset it afterwards."""
    output = OutputManager(no_color=True, quiet=True)
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
