"""OAuth2 Authorization Code flow with PKCE (:rfc:`7636`).

Implements the ``oauth2`` flow type: the user signs in through a browser
session and the provider's redirect is captured directly from it.

See Also:
    :class:`~oauthcli.flows.oauth2_auth_code.flow.OAuth2AuthCodeFlow`
    :mod:`oauthcli.flows.base` for the flow interface contract.
"""

from oauthcli.flows.oauth2_auth_code.flow import (
    OAuth2AuthCodeFlow,
    build_authorization_url,
    clean_authorization_code,
    decode_jwt_payload,
    exchange_code,
    normalize_redirect,
)

__all__ = [
    "OAuth2AuthCodeFlow",
    "build_authorization_url",
    "clean_authorization_code",
    "decode_jwt_payload",
    "exchange_code",
    "normalize_redirect",
]
