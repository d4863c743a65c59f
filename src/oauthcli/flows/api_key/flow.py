"""Pasted API key flow.

Implements the ``api_key`` flow type. The provider's instruction is shown,
then the user pastes a key via :func:`getpass.getpass` (input is hidden).
"""

from __future__ import annotations

import getpass

from oauthcli.exceptions import AuthError
from oauthcli.flows.base import AuthFlow, utc_now
from oauthcli.models import ApiKeyConfig, TokenRecord
from oauthcli.output import info


class ApiKeyFlow(AuthFlow):
    """Capture an API key the user creates in the provider's console."""

    @property
    def flow_type(self) -> str:
        return "api_key"

    def authenticate(self, provider_id: str, config: ApiKeyConfig) -> TokenRecord:  # type: ignore[override]
        """Prompt for the key and wrap it in a record.

        Raises:
            AuthError: If the pasted key is empty or whitespace.
        """
        info(f"\n{config.instruction}\n")
        api_key = getpass.getpass("Paste your API key: ").strip()
        if not api_key:
            raise AuthError("No API key provided.")

        return TokenRecord(
            provider=provider_id,
            kind="api_key",
            api_key=api_key,
            created_at=utc_now(),
        )
