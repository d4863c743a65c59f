"""Redirect capture: browser sessions and the arbiter that watches them.

Re-exports the public API so callers can write::

    from oauthcli.capture import RedirectCaptureArbiter, open_playwright_session
"""

from oauthcli.capture.arbiter import RedirectCaptureArbiter, parse_redirect
from oauthcli.capture.browser import (
    BrowserSession,
    PlaywrightSession,
    SessionFactory,
    open_playwright_session,
)

__all__ = [
    "BrowserSession",
    "PlaywrightSession",
    "RedirectCaptureArbiter",
    "SessionFactory",
    "open_playwright_session",
    "parse_redirect",
]
