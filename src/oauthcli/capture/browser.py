"""Browser session interface and its Playwright implementation.

:class:`BrowserSession` is what the
:class:`~oauthcli.capture.arbiter.RedirectCaptureArbiter` needs from an
interactive browser: three ways to observe URLs, a liveness check, and
navigation. :class:`PlaywrightSession` provides it with a visible Chrome
(or bundled Chromium) window driven through Playwright's async API:

* transport-level request events come from a CDP session
  (``Network.requestWillBeSent``), which also reports requests whose
  connection later fails -- the usual fate of a ``localhost`` redirect
  when nothing is listening;
* interception uses ``page.route("**/*")``;
* navigation events use the page's ``framenavigated`` event.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Route
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from oauthcli.output import info

logger = logging.getLogger(__name__)

UrlListener = Callable[[str], Any]
"""Called with every URL a channel observes. The return value is ignored."""

InterceptDecision = Callable[[str], bool]
"""Called with every intercepted request URL; ``True`` aborts the request."""

_LAUNCH_ARGS = ["--disable-blink-features=AutomationControlled"]
_HIDE_WEBDRIVER = "Object.defineProperty(navigator, 'webdriver', { get: () => false });"


class BrowserSession(Protocol):
    """An interactive browser the user signs in with.

    The three ``watch``/``intercept`` methods arm one detection channel
    each and return once the channel is live. Listeners are called on the
    event loop thread.
    """

    async def watch_requests(self, listener: UrlListener) -> None:
        """Report the URL of every outgoing request at the transport level."""
        ...

    async def intercept_requests(self, decide: InterceptDecision) -> None:
        """Hold each request before it is sent; abort it when *decide* says so."""
        ...

    async def watch_navigation(self, listener: UrlListener) -> None:
        """Report the displayed URL after every navigation."""
        ...

    def is_closed(self) -> bool:
        """Whether the user has closed the browser page."""
        ...

    async def navigate(self, url: str) -> None:
        """Start loading *url*. Navigation failures are not raised."""
        ...

    async def close(self) -> None:
        """Close the browser and release its resources."""
        ...


SessionFactory = Callable[[bool], Awaitable[BrowserSession]]
"""Opens a :class:`BrowserSession`; the argument selects headless mode."""


class PlaywrightSession:
    """:class:`BrowserSession` backed by a Playwright-controlled Chromium.

    Create instances with :meth:`open`; always :meth:`close` them.

    Example::

        session = await PlaywrightSession.open(headless=False)
        try:
            ...
        finally:
            await session.close()
    """

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._cdp: Optional[Any] = None

    @classmethod
    async def open(cls, headless: bool = False) -> PlaywrightSession:
        """Launch a browser window and return a session on its first page."""
        playwright = await async_playwright().start()
        try:
            browser = await _launch(playwright, headless)
            context = await browser.new_context()
            page = await context.new_page()
            await page.add_init_script(_HIDE_WEBDRIVER)
        except BaseException:
            await playwright.stop()
            raise
        logger.debug("Browser session started (headless=%s)", headless)
        return cls(playwright, browser, context, page)

    async def watch_requests(self, listener: UrlListener) -> None:
        cdp = await self._context.new_cdp_session(self._page)
        await cdp.send("Network.enable")

        def on_request(params: dict[str, Any]) -> None:
            url = params.get("request", {}).get("url")
            if url:
                listener(url)

        cdp.on("Network.requestWillBeSent", on_request)
        self._cdp = cdp

    async def intercept_requests(self, decide: InterceptDecision) -> None:
        async def handle(route: Route) -> None:
            url = route.request.url
            try:
                if decide(url):
                    logger.debug("Aborting intercepted redirect %s", url)
                    await route.abort()
                else:
                    await route.continue_()
            except PlaywrightError as exc:
                # The page may have closed while the request was held.
                logger.debug("Route handling for %s failed: %s", url, exc)

        await self._page.route("**/*", handle)

    async def watch_navigation(self, listener: UrlListener) -> None:
        def on_navigated(frame: Any) -> None:
            if self._page.is_closed():
                return
            listener(self._page.url)

        self._page.on("framenavigated", on_navigated)

    def is_closed(self) -> bool:
        return self._page.is_closed()

    async def navigate(self, url: str) -> None:
        try:
            await self._page.goto(url, wait_until="commit")
        except PlaywrightError as exc:
            # Expected when the redirect is aborted or the target is unreachable.
            logger.debug("Navigation to %s ended with: %s", url, exc)

    async def close(self) -> None:
        try:
            await self._browser.close()
        except PlaywrightError as exc:
            logger.debug("Closing browser failed: %s", exc)
        finally:
            await self._playwright.stop()
        logger.debug("Browser session closed")


async def _launch(playwright: Playwright, headless: bool) -> Browser:
    """Launch installed Chrome, falling back to Playwright's bundled Chromium.

    Real Chrome avoids "this browser may not be secure" sign-in blocks.
    """
    try:
        return await playwright.chromium.launch(
            headless=headless, channel="chrome", args=_LAUNCH_ARGS
        )
    except PlaywrightError as exc:
        logger.debug("Chrome launch failed: %s", exc)
        info("Chrome not available, using Chromium...")
        return await playwright.chromium.launch(headless=headless, args=_LAUNCH_ARGS)


async def open_playwright_session(headless: bool = False) -> BrowserSession:
    """Default :data:`SessionFactory`."""
    return await PlaywrightSession.open(headless=headless)
