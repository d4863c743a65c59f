"""Abstract base class for authentication flows.

Every provider config variant (:class:`~oauthcli.models.OAuth2Config`,
:class:`~oauthcli.models.DeviceFlowConfig`,
:class:`~oauthcli.models.ApiKeyConfig`) is handled by exactly one
:class:`AuthFlow`, looked up by the config's ``type`` discriminator.

To implement a new flow, subclass :class:`AuthFlow`, set the
:attr:`~AuthFlow.flow_type` property to the ``type`` value it handles, and
implement :meth:`~AuthFlow.authenticate`.

The module also holds the small normalisation helpers shared by the flows
that turn a token endpoint response into a
:class:`~oauthcli.models.TokenRecord`.

See Also:
    :mod:`oauthcli.flows.manager` for flow registration and dispatch.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from oauthcli.models import ProviderConfig, TokenRecord

_SCOPE_SEPARATOR = re.compile(r"[\s,]+")


class AuthFlow(ABC):
    """Abstract base class for authentication flows.

    Flows are registered with :class:`~oauthcli.flows.manager.FlowManager`
    and dispatched on their :attr:`flow_type`. A flow returns a complete
    :class:`~oauthcli.models.TokenRecord`; persisting it is the caller's
    job.
    """

    @property
    @abstractmethod
    def flow_type(self) -> str:
        """Return the provider config ``type`` this flow handles.

        Returns:
            One of ``"oauth2"``, ``"device_flow"``, ``"api_key"``.
        """
        ...

    @abstractmethod
    def authenticate(self, provider_id: str, config: ProviderConfig) -> TokenRecord:
        """Run the flow and return the captured credential.

        Args:
            provider_id: Registry name of the provider (``"openai"``, ...).
            config: The provider's config; its ``type`` equals
                :attr:`flow_type`.

        Returns:
            A fully populated :class:`~oauthcli.models.TokenRecord`.

        Raises:
            AuthError: If any step of the flow fails.
        """
        ...


# --- Normalisation helpers ---


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def split_scopes(scope: Any) -> Optional[list[str]]:
    """Split a ``scope`` value on whitespace and commas.

    ``None`` and empty strings yield ``None``; providers that already send
    a list get it back unchanged.
    """
    if isinstance(scope, list):
        return [str(item) for item in scope]
    if not isinstance(scope, str) or not scope.strip():
        return None
    return [part for part in _SCOPE_SEPARATOR.split(scope.strip()) if part]


def expires_at_from(expires_in: Any, now: Optional[datetime] = None) -> Optional[datetime]:
    """Turn a relative ``expires_in`` (seconds) into an absolute UTC timestamp.

    Accepts numbers and numeric strings. Missing, zero, or malformed
    values yield ``None``.
    """
    if expires_in is None or isinstance(expires_in, bool):
        return None
    try:
        seconds = float(expires_in)
    except (TypeError, ValueError):
        return None
    if seconds <= 0:
        return None
    return (now or utc_now()) + timedelta(seconds=seconds)


def oauth2_record_from_response(provider_id: str, token_data: dict[str, Any]) -> TokenRecord:
    """Build an ``oauth2`` :class:`~oauthcli.models.TokenRecord` from a token response.

    ``created_at`` is stamped here, after every field has been derived.
    """
    return TokenRecord(
        provider=provider_id,
        kind="oauth2",
        access_token=token_data.get("access_token"),
        id_token=token_data.get("id_token"),
        refresh_token=token_data.get("refresh_token"),
        expires_at=expires_at_from(token_data.get("expires_in")),
        scopes=split_scopes(token_data.get("scope")),
        token_type=token_data.get("token_type"),
        created_at=utc_now(),
    )
