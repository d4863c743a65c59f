"""Pasted API key flow.

See Also:
    :class:`~oauthcli.flows.api_key.flow.ApiKeyFlow`
"""

from oauthcli.flows.api_key.flow import ApiKeyFlow

__all__ = ["ApiKeyFlow"]
