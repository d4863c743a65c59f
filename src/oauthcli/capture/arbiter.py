"""Redirect capture arbiter.

Observes, within a bounded window, the first URL the browser touches that
matches a provider's redirect pattern, and returns its merged query and
fragment parameters.

No single signal is reliable on its own: a redirect to an unreachable
``localhost`` port only shows up at the transport level, an interceptor
sees requests before they leave but not every navigation, and some
providers deliver the outcome as an ordinary page load. The arbiter
therefore runs three :class:`DetectionChannel` instances side by side and
takes whichever matches first.

Every channel owns a one-shot :class:`asyncio.Future`. :meth:`RedirectCaptureArbiter.capture`
turns each channel into a task, adds a liveness task (browser closed ->
:class:`~oauthcli.exceptions.CaptureCancelledError`) and a deadline task
(:class:`~oauthcli.exceptions.CaptureTimeoutError`), and waits for the
first of them to finish. Everything still running is then cancelled and
every channel disarmed, so late matches are silently dropped.

Navigation to the authorization URL starts only after all channels are
armed; otherwise a fast redirect could fire before anyone is listening.
"""

from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import parse_qsl, urlsplit

from oauthcli.capture.browser import BrowserSession
from oauthcli.exceptions import CaptureCancelledError, CaptureTimeoutError
from oauthcli.models import CapturedRedirect

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5 * 60.0
DEFAULT_LIVENESS_INTERVAL = 0.5


def parse_redirect(url: str) -> CapturedRedirect:
    """Split *url* into a :class:`~oauthcli.models.CapturedRedirect`.

    The query string is parsed first, then the fragment (if any) as a
    second query string; fragment keys overwrite query keys.

    Example::

        >>> parse_redirect("https://cb?code=ABC&state=S1#id_token=XYZ&state=S2").params
        {'code': 'ABC', 'state': 'S2', 'id_token': 'XYZ'}
    """
    parts = urlsplit(url)
    params = dict(parse_qsl(parts.query, keep_blank_values=True))
    if parts.fragment:
        params.update(parse_qsl(parts.fragment, keep_blank_values=True))
    return CapturedRedirect(params=params, redirect_url=url)


class DetectionChannel(ABC):
    """One independent source of candidate redirect URLs.

    Subclasses connect :meth:`offer` to a session event in
    :meth:`_subscribe`. The first matching offer resolves the channel;
    later offers, and offers after :meth:`disarm`, change nothing.

    Args:
        pattern: The provider's redirect pattern (``re.search`` semantics).
    """

    name: str = "channel"

    def __init__(self, pattern: re.Pattern[str]) -> None:
        self._pattern = pattern
        self._future: Optional[asyncio.Future[str]] = None

    @property
    def is_armed(self) -> bool:
        """Whether the channel is live and has not resolved yet."""
        return self._future is not None and not self._future.done()

    async def arm(self, session: BrowserSession) -> None:
        """Create the channel's future and subscribe it to *session*."""
        self._future = asyncio.get_running_loop().create_future()
        await self._subscribe(session)
        logger.debug("Detection channel '%s' armed", self.name)

    @abstractmethod
    async def _subscribe(self, session: BrowserSession) -> None:
        ...

    def offer(self, url: str) -> bool:
        """Report a URL seen by the session.

        Returns:
            ``True`` if *url* matches the redirect pattern, whether or not
            the channel was still armed.
        """
        if self._pattern.search(url) is None:
            return False
        if self.is_armed:
            assert self._future is not None
            logger.debug("Channel '%s' matched %s", self.name, url)
            self._future.set_result(url)
        return True

    async def wait(self) -> str:
        """Wait for the channel's first match."""
        if self._future is None:
            raise RuntimeError(f"Channel '{self.name}' waited on before being armed")
        return await self._future

    def disarm(self) -> None:
        """Stop accepting matches."""
        if self._future is not None and not self._future.done():
            self._future.cancel()


class NetworkChannel(DetectionChannel):
    """Transport-level request events, including requests that fail to connect."""

    name = "network"

    async def _subscribe(self, session: BrowserSession) -> None:
        await session.watch_requests(self.offer)


class InterceptionChannel(DetectionChannel):
    """Request interception; matching requests are aborted, others pass through."""

    name = "interception"

    async def _subscribe(self, session: BrowserSession) -> None:
        await session.intercept_requests(self.offer)


class NavigationChannel(DetectionChannel):
    """The session's displayed URL after each navigation."""

    name = "navigation"

    async def _subscribe(self, session: BrowserSession) -> None:
        await session.watch_navigation(self.offer)


class RedirectCaptureArbiter:
    """Race the detection channels against browser closure and a deadline.

    Args:
        session: The browser session to observe.
        pattern: The provider's redirect pattern.
        timeout: Seconds to wait for a match before failing.
        liveness_interval: Seconds between browser-closed checks.

    Example::

        arbiter = RedirectCaptureArbiter(session, config.redirect_pattern)
        captured = await arbiter.capture(authorization_url)
    """

    def __init__(
        self,
        session: BrowserSession,
        pattern: re.Pattern[str],
        *,
        timeout: float = DEFAULT_TIMEOUT,
        liveness_interval: float = DEFAULT_LIVENESS_INTERVAL,
    ) -> None:
        self._session = session
        self._timeout = timeout
        self._liveness_interval = liveness_interval
        self.channels: tuple[DetectionChannel, ...] = (
            NetworkChannel(pattern),
            InterceptionChannel(pattern),
            NavigationChannel(pattern),
        )

    async def capture(self, authorization_url: str) -> CapturedRedirect:
        """Navigate to *authorization_url* and return the first matching redirect.

        Raises:
            CaptureTimeoutError: If nothing matched within ``timeout``.
            CaptureCancelledError: If the browser was closed first.
        """
        for channel in self.channels:
            await channel.arm(self._session)

        channel_tasks = [
            asyncio.create_task(channel.wait(), name=f"capture-{channel.name}")
            for channel in self.channels
        ]
        watchdogs = [
            asyncio.create_task(self._watch_liveness(), name="capture-liveness"),
            asyncio.create_task(self._deadline(), name="capture-deadline"),
        ]
        navigation = asyncio.create_task(
            self._session.navigate(authorization_url), name="capture-navigate"
        )

        try:
            done, _ = await asyncio.wait(
                [*channel_tasks, *watchdogs], return_when=asyncio.FIRST_COMPLETED
            )
            url = self._settle(done, channel_tasks, watchdogs)
        finally:
            every_task = [*channel_tasks, *watchdogs, navigation]
            for task in every_task:
                task.cancel()
            await asyncio.gather(*every_task, return_exceptions=True)
            for channel in self.channels:
                channel.disarm()

        return parse_redirect(url)

    def _settle(
        self,
        done: set[asyncio.Task],
        channel_tasks: list[asyncio.Task],
        watchdogs: list[asyncio.Task],
    ) -> str:
        """Pick the outcome from the tasks that finished in the same wake-up.

        A match beats a watchdog failure; among matches, channel order wins.
        """
        for channel, task in zip(self.channels, channel_tasks):
            if task in done and not task.cancelled() and task.exception() is None:
                logger.debug("Redirect captured by '%s' channel", channel.name)
                return task.result()

        for task in watchdogs:
            if task in done and not task.cancelled():
                exc = task.exception()
                if exc is not None:
                    raise exc

        # Only reachable if a channel task was cancelled from outside.
        raise CaptureCancelledError("Redirect capture was interrupted")

    async def _watch_liveness(self) -> None:
        while True:
            await asyncio.sleep(self._liveness_interval)
            if self._session.is_closed():
                raise CaptureCancelledError("Browser was closed before redirect was captured")

    async def _deadline(self) -> None:
        await asyncio.sleep(self._timeout)
        raise CaptureTimeoutError(
            f"Timed out waiting for redirect ({_format_seconds(self._timeout)})"
        )


def _format_seconds(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds:g} seconds"
