"""Controllable browser session shared by scans and interactive use.

State machine::

    CLOSED -> LOADING -> READY -> (LOADING <-> READY)* -> CLOSED

Ownership is explicit. A human takes the session with ``open()`` and gives it
back with ``finish()``; a scan takes it with ``hold_for_scan()`` and gives it
back when the context exits. Neither side preempts the other: a scan waits
(bounded) for an interactive holder, and interactive calls fail with
SessionBusy while a scan holds the session. ``close()`` is the one exception:
it revokes any scan lease so the scan stops at its next checkpoint.

All page operations run under one lock, so navigations queue in call order
and an in-flight load is never cancelled.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any

from patchright.async_api import Error as PlaywrightError

from jobscan.browser.actions import scroll_until_stable
from jobscan.core.errors import NavigationError, SessionBusy, SessionClosed
from jobscan.core.schemas import PageContent

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    CLOSED = "closed"
    LOADING = "loading"
    READY = "ready"


class SessionHolder(str, Enum):
    NONE = "none"
    INTERACTIVE = "interactive"
    SCAN = "scan"


class ScanLease:
    """Handle a scan uses to drive the session while it holds it."""

    def __init__(self, controller: "BrowserController") -> None:
        self._controller = controller
        self.revoked = False

    async def navigate(self, url: str, *, settle_selector: str | None = None) -> PageContent:
        return await self._controller._navigate(url, lease=self, settle_selector=settle_selector)


class BrowserController:
    """Single shared browsing surface with a hold/release protocol.

    ``session_factory`` returns an object with ``start()``, ``stop()`` and a
    ``page`` attribute (a BrowserSession in production). A fresh one is made
    each time the surface is reopened after a close.
    """

    def __init__(self, session_factory: Callable[[], Any]) -> None:
        self._session_factory = session_factory
        self._session: Any = None
        self._state = SessionState.CLOSED
        self._holder = SessionHolder.NONE
        self._lease: ScanLease | None = None
        self._cond = asyncio.Condition()
        self._nav_lock = asyncio.Lock()
        self._history: list[str] = []
        self._index = -1

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def holder(self) -> SessionHolder:
        return self._holder

    @property
    def is_held_interactively(self) -> bool:
        return self._holder is SessionHolder.INTERACTIVE

    @property
    def current_url(self) -> str | None:
        if 0 <= self._index < len(self._history):
            return self._history[self._index]
        return None

    # --- Interactive control ---

    async def open(self, url: str) -> PageContent:
        """Take the session for interactive use and load ``url``."""
        async with self._cond:
            self._reject_if_scanning()
            self._holder = SessionHolder.INTERACTIVE
        logger.info("Interactive session opened at %s", url)
        return await self._navigate(url)

    async def navigate(self, url: str) -> PageContent:
        self._reject_if_scanning()
        return await self._navigate(url)

    async def go_back(self) -> bool:
        self._reject_if_scanning()
        return await self._step_history(-1)

    async def go_forward(self) -> bool:
        self._reject_if_scanning()
        return await self._step_history(1)

    def can_go_back(self) -> bool:
        return self.is_held_interactively and self._index > 0

    def can_go_forward(self) -> bool:
        return (
            self.is_held_interactively
            and 0 <= self._index < len(self._history) - 1
        )

    async def finish(self) -> bool:
        """End an interactive session and wake anything waiting on it.

        Returns False if the session was not held interactively.
        """
        async with self._cond:
            if self._holder is not SessionHolder.INTERACTIVE:
                return False
        await self._shutdown()
        async with self._cond:
            self._holder = SessionHolder.NONE
            self._cond.notify_all()
        logger.info("Interactive session finished")
        return True

    async def close(self) -> None:
        """Close the surface. Idempotent; revokes a scan lease if one is out."""
        async with self._cond:
            if self._lease is not None:
                logger.info("Closing browser during a scan — revoking scan lease")
                self._lease.revoked = True
                self._lease = None
            self._holder = SessionHolder.NONE
        await self._shutdown()
        async with self._cond:
            self._cond.notify_all()

    def _reject_if_scanning(self) -> None:
        if self._holder is SessionHolder.SCAN:
            msg = "Browser is in use by a scan"
            raise SessionBusy(msg)

    # --- Scan control ---

    @asynccontextmanager
    async def hold_for_scan(self, timeout: float) -> AsyncIterator[ScanLease]:
        """Hold the session for a scan, waiting up to ``timeout`` seconds.

        Raises SessionBusy without touching the session if it stays held.
        """
        async with self._cond:
            try:
                await asyncio.wait_for(
                    self._cond.wait_for(lambda: self._holder is SessionHolder.NONE),
                    timeout,
                )
            except asyncio.TimeoutError:
                msg = f"Browser still held by {self._holder.value} user after {timeout:.0f}s"
                raise SessionBusy(msg) from None
            lease = ScanLease(self)
            self._holder = SessionHolder.SCAN
            self._lease = lease
        try:
            yield lease
        finally:
            async with self._cond:
                if self._lease is lease:
                    self._lease = None
                    self._holder = SessionHolder.NONE
                self._cond.notify_all()

    async def shutdown_if_idle(self) -> None:
        """Close the browser process if nobody holds the session."""
        if self._holder is SessionHolder.NONE:
            await self._shutdown()

    # --- Internals ---

    async def _navigate(
        self,
        url: str,
        *,
        lease: ScanLease | None = None,
        settle_selector: str | None = None,
    ) -> PageContent:
        async with self._nav_lock:
            if lease is not None and lease.revoked:
                raise SessionClosed(url, "scan lease revoked")
            if lease is None and self._holder is not SessionHolder.INTERACTIVE:
                raise SessionClosed(url, "session is not open")

            page = await self._ensure_started()
            self._state = SessionState.LOADING
            try:
                response = await page.goto(url)
                if settle_selector:
                    await scroll_until_stable(page, settle_selector)
                html = await page.content()
            except PlaywrightError as e:
                self._state = SessionState.READY
                if lease is not None and lease.revoked:
                    raise SessionClosed(url, "closed during navigation") from e
                raise NavigationError(url, str(e)) from e
            self._state = SessionState.READY

            self._push_history(page.url)
            status = response.status if response is not None else None
            if status is not None and status >= 400:
                raise NavigationError(url, f"HTTP {status}")
            return PageContent(url=page.url, html=html, status=status)

    async def _step_history(self, step: int) -> bool:
        async with self._nav_lock:
            target = self._index + step
            if self._state is SessionState.CLOSED or not 0 <= target < len(self._history):
                return False
            page = self._session.page
            try:
                if step < 0:
                    await page.go_back()
                else:
                    await page.go_forward()
            except PlaywrightError as e:
                logger.warning("History navigation failed: %s", e)
                return False
            self._index = target
            return True

    async def _ensure_started(self) -> Any:
        if self._session is None:
            self._session = self._session_factory()
        if self._state is SessionState.CLOSED:
            await self._session.start()
            self._state = SessionState.READY
        return self._session.page

    async def _shutdown(self) -> None:
        async with self._nav_lock:
            if self._session is not None and self._state is not SessionState.CLOSED:
                try:
                    await self._session.stop()
                except PlaywrightError as e:
                    logger.warning("Error while stopping browser: %s", e)
            self._session = None
            self._state = SessionState.CLOSED
            self._history.clear()
            self._index = -1

    def _push_history(self, url: str) -> None:
        del self._history[self._index + 1:]
        self._history.append(url)
        self._index = len(self._history) - 1
