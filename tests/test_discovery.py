"""Tests for oauthcli.discovery: layered client credential resolution."""

from __future__ import annotations

import re
from unittest.mock import MagicMock, patch

import httpx
import pytest

from oauthcli.discovery import (
    DISCOVERY_CONFIG,
    SourceConfig,
    from_source,
    from_url,
    resolve_credentials,
)
from oauthcli.exceptions import DiscoveryError
from oauthcli.models import Credentials


def _mock_httpx_get(text: str = "", status_code: int = 200) -> MagicMock:
    """Create a mock response for httpx.get."""
    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = status_code
    mock_response.is_success = 200 <= status_code < 300
    mock_response.text = text
    return mock_response


def _no_prompt(text: str) -> str:
    raise AssertionError("prompt should not be reached")


GEMINI_SOURCE = """
const OAUTH_CLIENT_ID = '123-abc.apps.googleusercontent.com';
const OAUTH_CLIENT_SECRET = 'GOCSPX-secret';
"""


# -------------------------------------------------------------------------
# Layer 1: environment
# -------------------------------------------------------------------------


class TestEnvironmentLayer:
    def test_env_wins(self) -> None:
        with patch("oauthcli.discovery.httpx.get") as mock_get:
            creds = resolve_credentials(
                "openai", {"OPENAI_CLIENT_ID": "app_env"}, prompt=_no_prompt
            )
        assert creds == Credentials(client_id="app_env")
        mock_get.assert_not_called()

    def test_env_with_secret(self) -> None:
        creds = resolve_credentials(
            "gemini",
            {"GEMINI_CLIENT_ID": "gid", "GEMINI_CLIENT_SECRET": "gsecret"},
            prompt=_no_prompt,
        )
        assert creds.client_id == "gid"
        assert creds.client_secret == "gsecret"

    def test_secret_optional(self) -> None:
        creds = resolve_credentials("gemini", {"GEMINI_CLIENT_ID": "gid"}, prompt=_no_prompt)
        assert creds.client_secret is None

    def test_case_insensitive_provider(self) -> None:
        creds = resolve_credentials("OpenAI", {"OPENAI_CLIENT_ID": "app_env"}, prompt=_no_prompt)
        assert creds.client_id == "app_env"

    def test_empty_value_is_not_found(self) -> None:
        with patch("oauthcli.discovery.httpx.get", return_value=_mock_httpx_get(status_code=404)):
            creds = resolve_credentials(
                "openai",
                {"OPENAI_CLIENT_ID": ""},
                prompt=lambda _: "https://auth.openai.com/oauth/authorize?client_id=app_pasted",
            )
        assert creds.client_id == "app_pasted"


# -------------------------------------------------------------------------
# Layer 2: upstream source
# -------------------------------------------------------------------------


class TestSourceLayer:
    def test_extracts_id_and_secret(self) -> None:
        with patch(
            "oauthcli.discovery.httpx.get", return_value=_mock_httpx_get(GEMINI_SOURCE)
        ) as mock_get:
            creds = resolve_credentials("gemini", {}, prompt=_no_prompt)

        assert creds.client_id == "123-abc.apps.googleusercontent.com"
        assert creds.client_secret == "GOCSPX-secret"
        _, kwargs = mock_get.call_args
        assert kwargs["timeout"] == 10.0
        assert kwargs["follow_redirects"] is True

    def test_openai_pattern(self) -> None:
        source = 'pub const CLIENT_ID: &str = "app_EMoamEEZ73f0CkXaXp7hrann";'
        with patch("oauthcli.discovery.httpx.get", return_value=_mock_httpx_get(source)):
            creds = resolve_credentials("openai", {}, prompt=_no_prompt)
        assert creds.client_id == "app_EMoamEEZ73f0CkXaXp7hrann"

    def test_network_error_falls_through(self) -> None:
        with patch(
            "oauthcli.discovery.httpx.get", side_effect=httpx.ConnectError("offline")
        ):
            creds = resolve_credentials(
                "openai", {}, prompt=lambda _: "https://x.example/authorize?client_id=manual"
            )
        assert creds.client_id == "manual"

    def test_non_success_returns_none(self) -> None:
        source = SourceConfig(url="https://example.com/src", client_id_pattern=re.compile("(x)"))
        with patch("oauthcli.discovery.httpx.get", return_value=_mock_httpx_get("x", 500)):
            assert from_source(source) is None

    def test_pattern_miss_returns_none(self) -> None:
        source = SourceConfig(
            url="https://example.com/src", client_id_pattern=re.compile(r"ID='([^']+)'")
        )
        with patch("oauthcli.discovery.httpx.get", return_value=_mock_httpx_get("nothing")):
            assert from_source(source) is None

    def test_provider_without_source_skips_fetch(self) -> None:
        assert DISCOVERY_CONFIG["claude"].source is None
        with patch("oauthcli.discovery.httpx.get") as mock_get:
            creds = resolve_credentials(
                "claude", {}, prompt=lambda _: "https://claude.ai/oauth/authorize?client_id=cid"
            )
        mock_get.assert_not_called()
        assert creds.client_id == "cid"


# -------------------------------------------------------------------------
# Layer 3: pasted URL
# -------------------------------------------------------------------------


class TestManualLayer:
    def test_from_url(self) -> None:
        creds = from_url("  https://github.com/login/oauth/authorize?client_id=Iv1.abc&scope=x \n")
        assert creds == Credentials(client_id="Iv1.abc")

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "not a url",
            "https://example.com/authorize?scope=x",
            "https://example.com/authorize?client_id=",
        ],
    )
    def test_from_url_rejects(self, raw: str) -> None:
        assert from_url(raw) is None

    def test_bad_paste_raises(self) -> None:
        with pytest.raises(DiscoveryError, match="client_id"):
            resolve_credentials("copilot", {}, prompt=lambda _: "garbage")

    def test_prompt_receives_marker(self) -> None:
        seen: list[str] = []

        def prompt(text: str) -> str:
            seen.append(text)
            return "https://example.com/?client_id=abc"

        resolve_credentials("copilot", {}, prompt=prompt)
        assert seen == [">"]


class TestUnknownProvider:
    def test_raises(self) -> None:
        with pytest.raises(DiscoveryError, match="nope"):
            resolve_credentials("nope", {}, prompt=_no_prompt)
