"""OAuth2 Authorization Code flow with PKCE, captured in a browser session.

Implements the ``oauth2`` flow type:

1. Generate a PKCE pair and a ``state`` nonce (:mod:`oauthcli.pkce`).
2. Build the authorization URL (:func:`build_authorization_url`).
3. Open a browser session and let the
   :class:`~oauthcli.capture.arbiter.RedirectCaptureArbiter` observe the
   provider's redirect.
4. Turn the captured parameters into a
   :class:`~oauthcli.models.TokenRecord` (:func:`normalize_redirect`),
   exchanging the authorization code when there is one.

Unlike a loopback-server flow, nothing listens on the redirect URI: the
redirect is read straight out of the browser, so providers whose redirect
URI points at a fixed ``localhost`` port or at their own web page work the
same way.

See Also:
    :mod:`oauthcli.capture` for the browser session and the arbiter.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from oauthcli.capture.arbiter import RedirectCaptureArbiter
from oauthcli.capture.browser import SessionFactory, open_playwright_session
from oauthcli.exceptions import (
    AuthError,
    AuthorizationError,
    NetworkError,
    TokenExchangeError,
)
from oauthcli.flows.base import (
    AuthFlow,
    oauth2_record_from_response,
    split_scopes,
    utc_now,
)
from oauthcli.models import CapturedRedirect, OAuth2Config, RuntimeConfig, TokenRecord
from oauthcli.output import info, success
from oauthcli.pkce import generate_pkce_pair, generate_state

logger = logging.getLogger(__name__)

TOKEN_REQUEST_TIMEOUT = 30.0


# --- Authorization URL ---


def build_authorization_url(config: OAuth2Config, code_challenge: str, state: str) -> str:
    """Return the provider's authorization URL for one attempt.

    Required members come first, then the provider's ``extra_params``. An
    extra param that reuses a required key is dropped.

    Args:
        config: The provider config.
        code_challenge: The ``S256`` PKCE challenge.
        state: The ``state`` nonce.
    """
    query: dict[str, str] = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "scope": " ".join(config.scopes),
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "state": state,
    }
    for key, value in config.extra_params.items():
        if key in query:
            logger.debug("Ignoring extra param '%s': required parameter", key)
            continue
        query[key] = value
    return f"{config.authorization_url}?{urlencode(query)}"


# --- Token helpers ---


def decode_jwt_payload(token: str) -> Optional[dict[str, Any]]:
    """Decode a JWT's claims without verifying it.

    Returns ``None`` unless *token* has three dot-separated segments and the
    middle one is base64url-encoded JSON object.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    segment = parts[1]
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
        payload = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def clean_authorization_code(code: str) -> str:
    """Strip fragment or extra-parameter residue some providers leave on the code."""
    return code.split("#", 1)[0].split("&", 1)[0]


def exchange_code(
    config: OAuth2Config,
    code: str,
    code_verifier: str,
    *,
    redirect_uri: str,
    state: Optional[str] = None,
) -> dict[str, Any]:
    """Exchange an authorization code for tokens.

    Args:
        config: The provider config (token URL, body encoding, headers).
        code: The captured authorization code; cleaned before sending.
        code_verifier: The PKCE verifier matching the challenge sent.
        redirect_uri: The redirect URI actually observed in the browser.
        state: Sent along when given.

    Returns:
        The token endpoint's JSON response.

    Raises:
        TokenExchangeError: On a non-success status or a non-JSON body.
        NetworkError: If the request never got a response.
    """
    body: dict[str, str] = {
        "grant_type": "authorization_code",
        "code": clean_authorization_code(code),
        "redirect_uri": redirect_uri,
        "client_id": config.client_id,
        "code_verifier": code_verifier,
    }
    if config.client_secret:
        body["client_secret"] = config.client_secret
    if state:
        body["state"] = state

    headers: dict[str, str] = {}
    if config.token_content_type == "json":
        headers["Accept"] = "application/json"
    headers.update(config.token_headers)

    logger.debug("POST %s (%s body)", config.token_url, config.token_content_type)
    try:
        if config.token_content_type == "json":
            response = httpx.post(
                config.token_url, json=body, headers=headers, timeout=TOKEN_REQUEST_TIMEOUT
            )
        else:
            response = httpx.post(
                config.token_url, data=body, headers=headers, timeout=TOKEN_REQUEST_TIMEOUT
            )
    except httpx.HTTPError as exc:
        raise NetworkError(f"Token exchange request failed: {exc}") from exc

    if not response.is_success:
        raise TokenExchangeError(response.status_code, response.text)

    try:
        token_data = response.json()
    except ValueError as exc:
        raise TokenExchangeError(
            response.status_code,
            response.text,
            "Token endpoint returned a response that is not JSON",
        ) from exc
    if not isinstance(token_data, dict):
        raise TokenExchangeError(
            response.status_code,
            response.text,
            "Token endpoint returned a response that is not a JSON object",
        )
    return token_data


# --- Normaliser ---


def normalize_redirect(
    provider_id: str,
    config: OAuth2Config,
    captured: CapturedRedirect,
    code_verifier: str,
    state: str,
) -> TokenRecord:
    """Turn a captured redirect into a :class:`~oauthcli.models.TokenRecord`.

    Branches, in order:

    * ``error`` present -- the provider refused; raise.
    * ``id_token`` present -- direct-token flow, no network call. The
      token doubles as the access token; expiry comes from its ``exp``.
    * ``code`` present -- standard exchange at the token endpoint.
    * otherwise the redirect itself is the token response.

    Raises:
        AuthorizationError: If the redirect reports an error or carries
            neither a code nor a token.
        TokenExchangeError: If the code exchange is rejected.
        NetworkError: If the token endpoint is unreachable.
    """
    params = captured.params

    if params.get("error"):
        error = params["error"]
        description = params.get("error_description") or None
        message = f"Authorization failed: {error}"
        if description:
            message += f" ({description})"
        raise AuthorizationError(message, error=error, description=description)

    returned_state = params.get("state")
    if returned_state and returned_state != state:
        logger.warning("Redirect state does not match the state that was sent")

    id_token = params.get("id_token")
    if id_token:
        return _direct_token_record(provider_id, id_token, params)

    code = params.get("code")
    if code:
        info("Exchanging authorization code for tokens...")
        token_data = exchange_code(
            config,
            code,
            code_verifier,
            redirect_uri=captured.redirect_uri,
            state=returned_state or state,
        )
        if not token_data.get("access_token"):
            raise AuthError("Token response missing 'access_token' field")
        success("Token exchange successful.")
        return oauth2_record_from_response(provider_id, token_data)

    if not params.get("access_token"):
        raise AuthorizationError(
            "Redirect carried neither an authorization code nor a token"
        )
    return oauth2_record_from_response(provider_id, params)


def _direct_token_record(
    provider_id: str, id_token: str, params: dict[str, str]
) -> TokenRecord:
    payload = decode_jwt_payload(id_token)
    expires_at: Optional[datetime] = None
    if payload is not None:
        exp = payload.get("exp")
        if isinstance(exp, (int, float)) and not isinstance(exp, bool):
            try:
                expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                logger.debug("Ignoring out-of-range id_token exp: %r", exp)

    record = TokenRecord(
        provider=provider_id,
        kind="oauth2",
        access_token=id_token,
        id_token=id_token,
        expires_at=expires_at,
        scopes=split_scopes(params.get("scope")),
        token_type="Bearer",
        created_at=utc_now(),
    )

    info("Simplified flow: id_token received directly.")
    if payload is not None:
        info(f"  Email: {payload.get('email') or 'n/a'}")
        info(f"  Plan: {payload.get('plan_type') or 'n/a'}")
        info(f"  Expires: {expires_at.isoformat() if expires_at else 'unknown'}")
    return record


# --- Flow ---


class OAuth2AuthCodeFlow(AuthFlow):
    """Authenticate via authorization code + PKCE with browser redirect capture.

    Args:
        runtime: Supplies the capture timeout, liveness interval, and
            headless mode.
        session_factory: Opens the browser session. Tests pass a fake.
    """

    def __init__(
        self,
        runtime: RuntimeConfig,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self._runtime = runtime
        self._session_factory = session_factory or open_playwright_session

    @property
    def flow_type(self) -> str:
        return "oauth2"

    def authenticate(self, provider_id: str, config: OAuth2Config) -> TokenRecord:  # type: ignore[override]
        """Run the full browser flow for *provider_id*.

        Raises:
            CaptureTimeoutError: If the redirect did not arrive in time.
            CaptureCancelledError: If the user closed the browser.
            AuthorizationError: If the provider refused.
            TokenExchangeError: If the code exchange was rejected.
        """
        code_verifier, code_challenge = generate_pkce_pair()
        state = generate_state()
        authorization_url = build_authorization_url(config, code_challenge, state)
        logger.debug("Authorization URL: %s", authorization_url)

        info(f"Opening browser for {config.display_name} authentication...")
        captured = asyncio.run(self._capture(config, authorization_url))
        logger.debug("Captured redirect at %s", captured.redirect_uri)

        return normalize_redirect(provider_id, config, captured, code_verifier, state)

    async def _capture(self, config: OAuth2Config, authorization_url: str) -> CapturedRedirect:
        session = await self._session_factory(self._runtime.headless)
        try:
            arbiter = RedirectCaptureArbiter(
                session,
                config.redirect_pattern,
                timeout=self._runtime.capture_timeout,
                liveness_interval=self._runtime.liveness_interval,
            )
            return await arbiter.capture(authorization_url)
        finally:
            await session.close()
