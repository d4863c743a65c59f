"""Provider registry -- one explicit factory per supported provider.

Each factory builds exactly one variant of
:data:`~oauthcli.models.ProviderConfig`. Factories for OAuth2 and
device-flow providers take the :class:`~oauthcli.models.Credentials`
produced by :mod:`oauthcli.discovery`; the API-key factory takes none.

Example::

    factory = get_provider_factory("openai")
    config = factory.build(Credentials(client_id="app_abc"))
    assert isinstance(config, OAuth2Config)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional

from oauthcli.exceptions import ConfigError
from oauthcli.models import (
    ApiKeyConfig,
    Credentials,
    DeviceFlowConfig,
    OAuth2Config,
    ProviderConfig,
)


@dataclass(frozen=True)
class ProviderFactory:
    """Registry entry for one provider.

    Attributes:
        display_name: Human-readable provider name.
        requires_credentials: Whether :attr:`build` needs discovered
            client credentials.
        build: Factory returning the provider's config variant.
    """

    display_name: str
    requires_credentials: bool
    build: Callable[[Optional[Credentials]], ProviderConfig]


def _require(credentials: Optional[Credentials], provider: str) -> Credentials:
    if credentials is None:
        raise ConfigError(f"Provider '{provider}' requires client credentials")
    return credentials


def build_openai(credentials: Optional[Credentials]) -> OAuth2Config:
    creds = _require(credentials, "openai")
    return OAuth2Config(
        name="openai",
        display_name="OpenAI (Codex CLI)",
        client_id=creds.client_id,
        client_secret=creds.client_secret,
        authorization_url="https://auth.openai.com/oauth/authorize",
        token_url="https://auth.openai.com/oauth/token",
        redirect_uri="http://localhost:1455/auth/callback",
        redirect_pattern=re.compile(r"localhost:1455/"),
        scopes=("openid", "profile", "email", "offline_access"),
        extra_params={
            "id_token_add_organizations": "true",
            "codex_cli_simplified_flow": "true",
        },
    )


def build_gemini(credentials: Optional[Credentials]) -> OAuth2Config:
    creds = _require(credentials, "gemini")
    return OAuth2Config(
        name="gemini",
        display_name="Gemini CLI",
        client_id=creds.client_id,
        client_secret=creds.client_secret,
        authorization_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        redirect_uri="http://127.0.0.1:14355/oauth2callback",
        # Google may redirect to a different local port than the one requested.
        redirect_pattern=re.compile(r"^http://127\.0\.0\.1:\d+/oauth2callback"),
        scopes=(
            "https://www.googleapis.com/auth/cloud-platform",
            "https://www.googleapis.com/auth/userinfo.email",
            "https://www.googleapis.com/auth/userinfo.profile",
        ),
        extra_params={"access_type": "offline"},
    )


def build_claude(credentials: Optional[Credentials]) -> OAuth2Config:
    creds = _require(credentials, "claude")
    return OAuth2Config(
        name="claude",
        display_name="Claude Code",
        client_id=creds.client_id,
        client_secret=creds.client_secret,
        authorization_url="https://claude.ai/oauth/authorize",
        token_url="https://console.anthropic.com/v1/oauth/token",
        token_content_type="json",
        token_headers={
            "Referer": "https://claude.ai/",
            "Origin": "https://claude.ai",
        },
        redirect_uri="https://platform.claude.com/oauth/code/callback",
        redirect_pattern=re.compile(r"^https://platform\.claude\.com/oauth/code/callback\?"),
        scopes=(
            "org:create_api_key",
            "user:profile",
            "user:inference",
            "user:sessions:claude_code",
            "user:mcp_servers",
        ),
        extra_params={"code": "true"},
    )


def build_copilot(credentials: Optional[Credentials]) -> DeviceFlowConfig:
    creds = _require(credentials, "copilot")
    return DeviceFlowConfig(
        name="copilot",
        display_name="GitHub Copilot",
        client_id=creds.client_id,
        device_code_url="https://github.com/login/device/code",
        token_url="https://github.com/login/oauth/access_token",
        scopes=("read:user",),
        headers={
            "editor-version": "Neovim/0.6.1",
            "editor-plugin-version": "copilot.vim/1.16.0",
            "user-agent": "GithubCopilot/1.155.0",
        },
    )


def build_anthropic(credentials: Optional[Credentials]) -> ApiKeyConfig:
    return ApiKeyConfig(
        name="anthropic",
        display_name="Anthropic API",
        instruction=(
            "Create a key at https://console.anthropic.com/settings/keys "
            "and paste it below."
        ),
    )


PROVIDER_FACTORIES: dict[str, ProviderFactory] = {
    "openai": ProviderFactory("OpenAI (Codex CLI)", True, build_openai),
    "gemini": ProviderFactory("Gemini CLI", True, build_gemini),
    "copilot": ProviderFactory("GitHub Copilot", True, build_copilot),
    "claude": ProviderFactory("Claude Code", True, build_claude),
    "anthropic": ProviderFactory("Anthropic API", False, build_anthropic),
}


def get_provider_factory(name: str) -> Optional[ProviderFactory]:
    """Look up a provider by name (case-insensitive). ``None`` if unknown."""
    return PROVIDER_FACTORIES.get(name.lower())


def list_provider_names() -> list[str]:
    """Return the registered provider names in registration order."""
    return list(PROVIDER_FACTORIES)
