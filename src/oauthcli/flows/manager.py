"""Flow manager -- registry and dispatcher for authentication flows.

The :class:`FlowManager` maps a provider config's ``type`` discriminator
(``"oauth2"``, ``"device_flow"``, ``"api_key"``) to the
:class:`~oauthcli.flows.base.AuthFlow` that handles it, and exposes a
single :meth:`~FlowManager.authenticate` method the CLI calls.

For normal use, call :func:`create_default_manager` to get a manager
pre-loaded with the three built-in flows.

See Also:
    :class:`~oauthcli.flows.base.AuthFlow` -- the flow interface.
"""

from __future__ import annotations

from typing import Optional

from oauthcli.capture.browser import SessionFactory
from oauthcli.exceptions import AuthError
from oauthcli.flows.base import AuthFlow
from oauthcli.models import ProviderConfig, RuntimeConfig, TokenRecord


class FlowManager:
    """Registry and dispatcher for authentication flows.

    Example::

        manager = FlowManager()
        manager.register(ApiKeyFlow())
        record = manager.authenticate("anthropic", config)
    """

    def __init__(self) -> None:
        self._flows: dict[str, AuthFlow] = {}

    def register(self, flow: AuthFlow) -> None:
        """Register *flow* under its :attr:`~AuthFlow.flow_type`, replacing any previous one."""
        self._flows[flow.flow_type] = flow

    def get_flow(self, flow_type: str) -> AuthFlow:
        """Retrieve the flow registered for *flow_type*.

        Raises:
            AuthError: If no flow is registered for *flow_type*.
        """
        flow = self._flows.get(flow_type)
        if flow is None:
            available = ", ".join(sorted(self._flows)) or "(none)"
            raise AuthError(
                f"No auth flow registered for type '{flow_type}'. "
                f"Available types: {available}"
            )
        return flow

    def authenticate(self, provider_id: str, config: ProviderConfig) -> TokenRecord:
        """Run the flow matching ``config.type`` for *provider_id*.

        Raises:
            AuthError: If the config type has no registered flow, or if the
                flow itself fails.
        """
        return self.get_flow(config.type).authenticate(provider_id, config)

    def list_types(self) -> list[str]:
        """Return the registered flow types, sorted."""
        return sorted(self._flows)


def create_default_manager(
    runtime: RuntimeConfig,
    session_factory: Optional[SessionFactory] = None,
) -> FlowManager:
    """Create a :class:`FlowManager` with every built-in flow registered.

    - ``oauth2`` -- authorization code with PKCE, redirect captured in a
      browser session.
    - ``device_flow`` -- device authorization grant with polling.
    - ``api_key`` -- pasted API key.

    Args:
        runtime: Resolved runtime configuration (timeouts, headless mode).
        session_factory: Opens the capture browser. Defaults to
            :func:`~oauthcli.capture.browser.open_playwright_session`.
    """
    from oauthcli.flows.api_key import ApiKeyFlow
    from oauthcli.flows.device_code import DeviceCodeFlow
    from oauthcli.flows.oauth2_auth_code import OAuth2AuthCodeFlow

    manager = FlowManager()
    manager.register(OAuth2AuthCodeFlow(runtime, session_factory=session_factory))
    manager.register(DeviceCodeFlow(runtime))
    manager.register(ApiKeyFlow())
    return manager
