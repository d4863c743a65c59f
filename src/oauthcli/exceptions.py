"""Exception hierarchy for oauthcli.

All exceptions inherit from :class:`OauthcliError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`oauthcli.exit_codes`.
The top-level error handler in :func:`oauthcli.app.main` catches
``OauthcliError``, prints the message to stderr, and exits with that code.

Subclass hierarchy::

    OauthcliError (exit 1)
    +-- ConfigError
    +-- NetworkError
    +-- AuthError
        +-- DiscoveryError
        +-- CaptureTimeoutError
        +-- CaptureCancelledError
        +-- AuthorizationError
        +-- TokenExchangeError
        +-- DeviceFlowError

The two capture errors are named with a ``Capture`` prefix to avoid
shadowing the built-in ``TimeoutError`` and :class:`asyncio.CancelledError`.
"""

from __future__ import annotations

from oauthcli.exit_codes import EXIT_GENERIC_FAILURE


class OauthcliError(Exception):
    """Base exception for all oauthcli errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(OauthcliError):
    """Raised for configuration problems (bad env values, unknown providers)."""


class NetworkError(OauthcliError):
    """Raised on transport-level failures (timeout, DNS resolution, connection refused)."""


class AuthError(OauthcliError):
    """Raised when an authentication step fails."""


class DiscoveryError(AuthError):
    """Raised when no discovery layer could resolve a client identifier."""


class CaptureTimeoutError(AuthError):
    """Raised when no redirect matched before the capture deadline."""


class CaptureCancelledError(AuthError):
    """Raised when the browser is closed before any redirect matched."""


class AuthorizationError(AuthError):
    """Raised when the provider's redirect reports an error or carries nothing usable.

    Args:
        message: Human-readable description.
        error: The OAuth2 ``error`` code from the redirect, if any.
        description: The accompanying ``error_description``, if any.
    """

    def __init__(
        self,
        message: str,
        error: str | None = None,
        description: str | None = None,
    ):
        super().__init__(message)
        self.error = error
        self.description = description


class TokenExchangeError(AuthError):
    """Raised when a token endpoint answers with a non-success status.

    Args:
        status_code: The HTTP status code returned by the endpoint.
        body: The raw response body text.
        message: Optional override for the default message.
    """

    def __init__(self, status_code: int, body: str, message: str | None = None):
        super().__init__(message or f"Token exchange failed ({status_code}): {body}")
        self.status_code = status_code
        self.body = body


class DeviceFlowError(AuthError):
    """Raised when the device token endpoint returns a terminal error.

    ``authorization_pending`` and ``slow_down`` are retryable and never
    surface as this exception.

    Args:
        error: The ``error`` code from the token endpoint.
        description: The ``error_description``, if the server sent one.
    """

    def __init__(self, error: str, description: str | None = None):
        message = f"Device authorization failed: {error}"
        if description:
            message += f" ({description})"
        super().__init__(message)
        self.error = error
        self.description = description
