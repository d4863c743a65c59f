"""OAuth2 Device Authorization Grant (:rfc:`8628`) flow.

For providers with no redirect step at all (GitHub Copilot). Works like
``gh auth login``.

Flow:
    1. REQUESTING -- POST the client id and scopes to ``device_code_url``
       to obtain ``device_code`` + ``user_code``.
    2. Print instructions ("Go to {verification_uri}", "Enter code:
       {user_code}") and try to open the verification page.
    3. POLLING -- poll ``token_url`` until the user authorizes, the server
       returns a terminal error, or the device code's lifetime runs out.
    4. TERMINAL -- on success, normalise the token response into a
       :class:`~oauthcli.models.TokenRecord`.

Both endpoints take JSON bodies and are asked for JSON responses; the
provider's own headers are sent with every request.

See Also:
    :class:`oauthcli.flows.base.AuthFlow` for the base interface.
    :mod:`oauthcli.flows.oauth2_auth_code` for the browser-based
    alternative.
"""

from __future__ import annotations

import logging
import time
import webbrowser
from typing import Any

import httpx

from oauthcli.exceptions import DeviceFlowError, NetworkError, TokenExchangeError
from oauthcli.flows.base import AuthFlow, oauth2_record_from_response
from oauthcli.models import DeviceFlowConfig, RuntimeConfig, TokenRecord
from oauthcli.output import highlight, info, success, warning

logger = logging.getLogger(__name__)

DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
DEFAULT_INTERVAL = 5.0
SLOW_DOWN_INCREMENT = 5.0
REQUEST_TIMEOUT = 30.0


def _seconds(value: Any, default: float) -> float:
    """Read a positive number of seconds from a JSON value, else *default*."""
    if value is None or isinstance(value, bool):
        return default
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return default
    return seconds if seconds > 0 else default


class DeviceCodeFlow(AuthFlow):
    """Authenticate via the OAuth2 device authorization grant.

    Args:
        runtime: Supplies ``device_flow_max_wait``, the polling limit used
            when the device code response carries no ``expires_in``.
    """

    def __init__(self, runtime: RuntimeConfig) -> None:
        self._runtime = runtime

    @property
    def flow_type(self) -> str:
        return "device_flow"

    def authenticate(self, provider_id: str, config: DeviceFlowConfig) -> TokenRecord:  # type: ignore[override]
        """Run the device flow and return the captured token.

        Raises:
            TokenExchangeError: If the device code request is rejected.
            DeviceFlowError: If authorization is denied, the code expires,
                or the server answers with something unusable.
            NetworkError: If an endpoint cannot be reached.
        """
        device_data = self._request_device_code(config)

        device_code: str = device_data["device_code"]
        user_code: str = device_data["user_code"]
        verification_uri: str = (
            device_data.get("verification_uri") or device_data.get("verification_url") or ""
        )
        interval = _seconds(device_data.get("interval"), DEFAULT_INTERVAL)
        max_wait = _seconds(device_data.get("expires_in"), self._runtime.device_flow_max_wait)

        self._display_user_code(verification_uri, user_code)
        self._open_verification_page(verification_uri)

        token_data = self._poll_for_token(config, device_code, interval, max_wait)
        success("Authorization complete.")
        return oauth2_record_from_response(provider_id, token_data)

    def _headers(self, config: DeviceFlowConfig) -> dict[str, str]:
        return {"Accept": "application/json", **config.headers}

    def _request_device_code(self, config: DeviceFlowConfig) -> dict[str, Any]:
        """POST to the device code endpoint.

        Returns:
            The parsed JSON response, guaranteed to contain ``device_code``
            and ``user_code``.

        Raises:
            TokenExchangeError: On a non-success status.
            DeviceFlowError: If the response lacks a device or user code.
            NetworkError: On transport failure.
        """
        body = {"client_id": config.client_id, "scope": " ".join(config.scopes)}
        try:
            response = httpx.post(
                config.device_code_url,
                json=body,
                headers=self._headers(config),
                timeout=REQUEST_TIMEOUT,
            )
        except httpx.HTTPError as exc:
            raise NetworkError(f"Device code request failed: {exc}") from exc

        if not response.is_success:
            raise TokenExchangeError(
                response.status_code,
                response.text,
                f"Device code request failed ({response.status_code}): {response.text}",
            )

        try:
            result = response.json()
        except ValueError as exc:
            raise DeviceFlowError("invalid_response", "Device code response is not JSON") from exc
        if not isinstance(result, dict):
            raise DeviceFlowError("invalid_response", "Device code response is not a JSON object")

        if not result.get("device_code"):
            raise DeviceFlowError("invalid_response", "Device code response missing 'device_code'")
        if not result.get("user_code"):
            raise DeviceFlowError("invalid_response", "Device code response missing 'user_code'")
        return result

    def _display_user_code(self, verification_uri: str, user_code: str) -> None:
        info("")
        highlight("Go to", verification_uri)
        highlight("Enter code", user_code)
        info("\nWaiting for authorization...")

    def _open_verification_page(self, verification_uri: str) -> None:
        if not verification_uri:
            return
        try:
            webbrowser.open(verification_uri)
        except webbrowser.Error as exc:
            warning(f"Could not open a browser: {exc}")

    def _poll_for_token(
        self,
        config: DeviceFlowConfig,
        device_code: str,
        interval: float,
        max_wait: float,
    ) -> dict[str, Any]:
        """Poll the token endpoint until a terminal response.

        ``authorization_pending`` keeps the interval; ``slow_down`` makes
        only the next pause ``interval + 5`` seconds.

        Args:
            config: Provider config with ``token_url`` and headers.
            device_code: The device code from the first step.
            interval: Base pause between polls, in seconds.
            max_wait: No poll is sent later than this many seconds from now.

        Returns:
            The token response, containing ``access_token``.

        Raises:
            DeviceFlowError: On a terminal error, an unusable response, or
                when the next poll would fall after *max_wait*.
            TokenExchangeError: On a non-success status without an error code.
            NetworkError: On transport failure.
        """
        body = {
            "client_id": config.client_id,
            "device_code": device_code,
            "grant_type": DEVICE_GRANT_TYPE,
        }
        deadline = time.monotonic() + max_wait
        pause = interval

        while True:
            # The next poll must still land within the device code's lifetime.
            if time.monotonic() + pause > deadline:
                raise DeviceFlowError(
                    "expired_token", "Device code expired before authorization completed"
                )
            time.sleep(pause)
            pause = interval

            try:
                response = httpx.post(
                    config.token_url,
                    json=body,
                    headers=self._headers(config),
                    timeout=REQUEST_TIMEOUT,
                )
            except httpx.HTTPError as exc:
                raise NetworkError(f"Token polling failed: {exc}") from exc

            try:
                token_data = response.json()
            except ValueError:
                token_data = {}
            if not isinstance(token_data, dict):
                token_data = {}

            if token_data.get("access_token"):
                return token_data

            error = token_data.get("error")
            if error == "authorization_pending":
                logger.debug("Authorization pending")
                continue
            if error == "slow_down":
                pause = interval + SLOW_DOWN_INCREMENT
                logger.debug("Server asked to slow down; next poll in %.0fs", pause)
                continue
            if error:
                raise DeviceFlowError(error, token_data.get("error_description"))

            if not response.is_success:
                raise TokenExchangeError(response.status_code, response.text)
            raise DeviceFlowError(
                "invalid_response", "Token endpoint returned neither a token nor an error"
            )
