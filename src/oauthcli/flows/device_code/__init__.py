"""OAuth2 Device Authorization Grant (:rfc:`8628`) flow.

Implements the ``device_flow`` flow type, for providers that have no
browser redirect step. The user is shown a URL and a short code to enter
there, and the CLI polls until the user authorizes.

See Also:
    :class:`~oauthcli.flows.device_code.flow.DeviceCodeFlow`
    :mod:`oauthcli.flows.base` for the flow interface contract.
"""

from oauthcli.flows.device_code.flow import DeviceCodeFlow

__all__ = ["DeviceCodeFlow"]
