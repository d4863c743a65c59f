"""Layered discovery of OAuth client identifiers.

Public CLIs ship their OAuth client id (and, for Google's installed-app
flow, a non-confidential client secret) in their source code. To
authenticate as one of them we need that id, and :func:`resolve_credentials`
looks for it in three places, cheapest and most trusted first:

1. **Environment** -- provider-specific variables such as
   ``OPENAI_CLIENT_ID``.
2. **Upstream source** -- the provider CLI's public source file, fetched
   with a short timeout and matched against a regular expression. Every
   failure here is logged and treated as "not found".
3. **Manual** -- the user runs the provider's own CLI, copies the
   authorization URL it opens, and pastes it; ``client_id`` is read from
   its query string. This is the only layer whose failure is fatal.

The environment is passed in rather than read from ``os.environ`` so
that discovery is a function of ``(provider_id, environ)`` plus the two
side-effecting layers.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional
from urllib.parse import parse_qs, urlparse

import httpx
import typer

from oauthcli.exceptions import DiscoveryError
from oauthcli.models import Credentials
from oauthcli.output import info

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 10.0

PromptFn = Callable[[str], str]


@dataclass(frozen=True)
class EnvKeys:
    """Names of the environment variables holding a provider's client credentials."""

    client_id: str
    client_secret: Optional[str] = None


@dataclass(frozen=True)
class SourceConfig:
    """A public document that embeds the client credentials.

    Both patterns must capture the value in group 1.
    """

    url: str
    client_id_pattern: re.Pattern[str]
    client_secret_pattern: Optional[re.Pattern[str]] = None


@dataclass(frozen=True)
class DiscoveryEntry:
    env_keys: EnvKeys
    fallback_hint: str
    source: Optional[SourceConfig] = field(default=None)


DISCOVERY_CONFIG: dict[str, DiscoveryEntry] = {
    "openai": DiscoveryEntry(
        env_keys=EnvKeys(client_id="OPENAI_CLIENT_ID"),
        source=SourceConfig(
            url="https://raw.githubusercontent.com/openai/codex/main/codex-rs/core/src/auth.rs",
            client_id_pattern=re.compile(r'CLIENT_ID:\s*&str\s*=\s*"([^"]+)"'),
        ),
        fallback_hint='Run "codex login" and paste the URL that opens in your browser',
    ),
    "gemini": DiscoveryEntry(
        env_keys=EnvKeys(client_id="GEMINI_CLIENT_ID", client_secret="GEMINI_CLIENT_SECRET"),
        source=SourceConfig(
            url=(
                "https://raw.githubusercontent.com/google-gemini/gemini-cli/main/"
                "packages/core/src/code_assist/oauth2.ts"
            ),
            client_id_pattern=re.compile(r"OAUTH_CLIENT_ID\s*=\s*'([^']+)'"),
            client_secret_pattern=re.compile(r"OAUTH_CLIENT_SECRET\s*=\s*'([^']+)'"),
        ),
        fallback_hint='Run "gemini login" and paste the URL that opens in your browser',
    ),
    "claude": DiscoveryEntry(
        env_keys=EnvKeys(client_id="CLAUDE_CLIENT_ID"),
        fallback_hint='Run "claude login" and paste the URL that opens in your browser',
    ),
    "copilot": DiscoveryEntry(
        env_keys=EnvKeys(client_id="COPILOT_CLIENT_ID"),
        fallback_hint='Run "gh copilot" and paste the OAuth URL, or check copilot.vim source',
    ),
}


# --- Layers ---


def from_env(entry: DiscoveryEntry, environ: Mapping[str, str]) -> Optional[Credentials]:
    """Layer 1: read the provider's client id (and optional secret) from *environ*."""
    client_id = environ.get(entry.env_keys.client_id)
    if not client_id:
        return None

    client_secret = None
    if entry.env_keys.client_secret:
        client_secret = environ.get(entry.env_keys.client_secret) or None

    return Credentials(client_id=client_id, client_secret=client_secret)


def from_source(
    source: SourceConfig, timeout: float = DEFAULT_FETCH_TIMEOUT
) -> Optional[Credentials]:
    """Layer 2: fetch the upstream document and extract the credentials.

    Returns ``None`` on any network failure, non-success status, or
    pattern miss.
    """
    try:
        response = httpx.get(source.url, timeout=timeout, follow_redirects=True)
    except httpx.HTTPError as exc:
        logger.debug("Fetching %s failed: %s", source.url, exc)
        return None

    if not response.is_success:
        logger.debug("Fetching %s returned HTTP %d", source.url, response.status_code)
        return None

    text = response.text
    id_match = source.client_id_pattern.search(text)
    if id_match is None or not id_match.group(1):
        logger.debug("Client id pattern not found in %s", source.url)
        return None

    client_secret = None
    if source.client_secret_pattern is not None:
        secret_match = source.client_secret_pattern.search(text)
        if secret_match is not None:
            client_secret = secret_match.group(1) or None

    return Credentials(client_id=id_match.group(1), client_secret=client_secret)


def from_url(raw_url: str) -> Optional[Credentials]:
    """Layer 3 parser: pull ``client_id`` out of a pasted authorization URL."""
    raw_url = raw_url.strip()
    try:
        parsed = urlparse(raw_url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None

    values = parse_qs(parsed.query).get("client_id")
    if not values or not values[0]:
        return None
    return Credentials(client_id=values[0])


def _default_prompt(text: str) -> str:
    return typer.prompt(text, prompt_suffix=" ")


# --- Entry point ---


def resolve_credentials(
    provider_id: str,
    environ: Mapping[str, str],
    *,
    prompt: Optional[PromptFn] = None,
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
) -> Credentials:
    """Resolve client credentials for *provider_id*, first layer wins.

    Args:
        provider_id: Provider name (case-insensitive).
        environ: Environment mapping consulted by the first layer.
        prompt: Callable that shows its argument and returns one line of
            user input. Defaults to :func:`typer.prompt`.
        fetch_timeout: Timeout in seconds for the upstream source fetch.

    Returns:
        The resolved :class:`~oauthcli.models.Credentials`.

    Raises:
        DiscoveryError: If the provider has no discovery entry, or if the
            manual layer receives a URL without a ``client_id``.
    """
    entry = DISCOVERY_CONFIG.get(provider_id.lower())
    if entry is None:
        raise DiscoveryError(f"No discovery config for provider: {provider_id}")

    env_creds = from_env(entry, environ)
    if env_creds is not None:
        logger.debug("Using %s from the environment", entry.env_keys.client_id)
        return env_creds

    if entry.source is not None:
        info("Fetching credentials from upstream source...")
        source_creds = from_source(entry.source, timeout=fetch_timeout)
        if source_creds is not None:
            info("Credentials discovered automatically.")
            return source_creds
        info("Could not fetch credentials from source.")

    info(f"\nNo credentials found for {provider_id}.")
    info(f"{entry.fallback_hint}:\n")

    ask = prompt or _default_prompt
    raw_url = ask(">")

    url_creds = from_url(raw_url)
    if url_creds is None:
        raise DiscoveryError("Could not extract client_id from the URL provided.")
    return url_creds
