"""Browser process lifecycle using patchright.

Hard rules:
  - headless=False always (the same window serves interactive logins)
  - Single browser context per session
  - Cookie auth only (no automated login flow)
  - patchright, not vanilla playwright
"""

import json
import logging
from pathlib import Path
from types import TracebackType
from typing import Any

from patchright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from jobscan.core.config import BrowserConfig

logger = logging.getLogger(__name__)


class BrowserSession:
    """Owns one patchright browser + context + page.

    Can be started and stopped explicitly (the controller restarts it after a
    close) or used as an async context manager::

        async with BrowserSession(config) as session:
            await session.page.goto("https://...")
    """

    def __init__(self, config: BrowserConfig) -> None:
        self._config = config
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        """The single page for this session. Raises if not started."""
        if self._page is None:
            msg = "BrowserSession not started"
            raise RuntimeError(msg)
        return self._page

    @property
    def is_running(self) -> bool:
        return self._page is not None

    async def start(self) -> None:
        if self._page is not None:
            return
        pw = await async_playwright().start()
        self._playwright = pw

        # headless=False is non-negotiable (anti-detection, interactive resolution)
        self._browser = await pw.chromium.launch(headless=False)

        cookies = _load_cookies(self._config.cookies_path)
        self._context = await self._browser.new_context()
        if cookies:
            await self._context.add_cookies(cookies)
            logger.info("Loaded %d cookies from %s", len(cookies), self._config.cookies_path)
        else:
            logger.warning("No cookies loaded — session will be unauthenticated")

        self._context.set_default_timeout(self._config.timeout_ms)
        self._page = await self._context.new_page()

    async def stop(self) -> None:
        """Tear everything down. Safe to call when not started."""
        context, browser, playwright = self._context, self._browser, self._playwright
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
        if context is not None:
            await context.close()
        if browser is not None:
            await browser.close()
        if playwright is not None:
            await playwright.stop()

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()


def _load_cookies(path: str) -> list[dict[str, Any]]:
    """Read a cookie jar exported by scripts/extract_cookies.py.

    Entries without a name, value and domain are dropped, since
    ``add_cookies`` rejects the whole batch on one bad entry. A missing or
    unreadable file yields no cookies.
    """
    cookie_path = Path(path)
    if not cookie_path.is_file():
        logger.debug("No cookie jar at %s", path)
        return []
    try:
        raw = json.loads(cookie_path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Unreadable cookie jar %s: %s", path, e)
        return []
    if not isinstance(raw, list):
        logger.warning("Cookie jar %s must hold a JSON array", path)
        return []

    usable = [c for c in raw if isinstance(c, dict) and c.get("name") and "value" in c and c.get("domain")]
    if len(usable) < len(raw):
        logger.warning("Ignored %d malformed cookie entries in %s", len(raw) - len(usable), path)
    return usable
