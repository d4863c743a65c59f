"""Canonical Pydantic models shared across all oauthcli modules.

The models fall into three groups:

**Provider configuration** -- a closed, discriminated union on ``type``:
    :class:`OAuth2Config`, :class:`DeviceFlowConfig`, and
    :class:`ApiKeyConfig`, combined as :data:`ProviderConfig`. They are
    frozen: a provider factory builds one per run and nothing mutates it.

**Flow artifacts** -- :class:`Credentials` (resolved client identifiers),
    :class:`CapturedRedirect` (parameters captured from the provider's
    redirect), and :class:`TokenRecord` (the canonical persisted shape).

**Runtime configuration** -- :class:`RuntimeConfig`, the single resolved
    configuration structure handed to the orchestration entry point.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --- Provider configs ---


class OAuth2Config(BaseModel):
    """Authorization-code-with-PKCE provider.

    ``redirect_pattern`` recognises, among every URL the browser touches,
    the one that carries the authorization outcome. A URL matches when the
    pattern is found anywhere in it (``re.search`` semantics).

    Example::

        OAuth2Config(
            name="openai",
            display_name="OpenAI (Codex CLI)",
            client_id="app_abc",
            authorization_url="https://auth.openai.com/oauth/authorize",
            token_url="https://auth.openai.com/oauth/token",
            redirect_uri="http://localhost:1455/auth/callback",
            redirect_pattern=r"localhost:1455/",
            scopes=("openid", "profile"),
        )
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["oauth2"] = "oauth2"
    name: str
    display_name: str
    client_id: str
    client_secret: Optional[str] = None
    authorization_url: str
    token_url: str
    token_content_type: Literal["json", "form"] = "form"
    token_headers: dict[str, str] = Field(
        default_factory=dict,
        description="Extra headers sent with the token exchange request",
    )
    redirect_uri: str
    redirect_pattern: re.Pattern[str]
    scopes: tuple[str, ...] = ()
    extra_params: dict[str, str] = Field(default_factory=dict)


class DeviceFlowConfig(BaseModel):
    """Device-code (RFC 8628 style) provider with no redirect step."""

    model_config = ConfigDict(frozen=True)

    type: Literal["device_flow"] = "device_flow"
    name: str
    display_name: str
    client_id: str
    device_code_url: str
    token_url: str
    scopes: tuple[str, ...] = ()
    headers: dict[str, str] = Field(default_factory=dict)


class ApiKeyConfig(BaseModel):
    """Provider whose only credential is an API key the user pastes."""

    model_config = ConfigDict(frozen=True)

    type: Literal["api_key"] = "api_key"
    name: str
    display_name: str
    instruction: str


ProviderConfig = Annotated[
    Union[OAuth2Config, DeviceFlowConfig, ApiKeyConfig],
    Field(discriminator="type"),
]


# --- Flow artifacts ---


class Credentials(BaseModel):
    """Client identifiers resolved once per run. Never persisted."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: Optional[str] = None


class CapturedRedirect(BaseModel):
    """Parameters captured from the provider's redirect URL.

    ``params`` holds the query string merged with the fragment; on a key
    collision the fragment value wins.
    """

    model_config = ConfigDict(frozen=True)

    params: dict[str, str]
    redirect_url: str

    @property
    def redirect_uri(self) -> str:
        """The observed redirect URL with its query and fragment removed."""
        return self.redirect_url.split("?", 1)[0].split("#", 1)[0]


class TokenRecord(BaseModel):
    """A captured credential, as written to the token store.

    Built in full once the flow has succeeded and never updated in place;
    a later run for the same provider replaces the whole record.
    """

    model_config = ConfigDict(frozen=True)

    provider: str
    kind: Literal["oauth2", "api_key"]
    access_token: Optional[str] = None
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
    api_key: Optional[str] = None
    expires_at: Optional[datetime] = None
    scopes: Optional[list[str]] = None
    token_type: Optional[str] = None
    created_at: datetime


# --- Runtime configuration ---


class RuntimeConfig(BaseModel):
    """Resolved configuration for one CLI invocation.

    Built by :func:`oauthcli.config.resolve_runtime_config` after the env
    file has been loaded. ``environ`` is a snapshot of the process
    environment so that discovery never reads ``os.environ`` directly.
    """

    model_config = ConfigDict(frozen=True)

    environ: dict[str, str] = Field(default_factory=dict)
    tokens_path: Path
    capture_timeout: float = Field(
        default=300.0, gt=0, description="Seconds to wait for the redirect"
    )
    liveness_interval: float = Field(
        default=0.5, gt=0, description="Seconds between browser-closed checks"
    )
    discovery_timeout: float = Field(
        default=10.0, gt=0, description="Timeout for the upstream source fetch"
    )
    device_flow_max_wait: float = Field(
        default=900.0,
        gt=0,
        description="Poll limit when the device code carries no expires_in",
    )
    headless: bool = False
