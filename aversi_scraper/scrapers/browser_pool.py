"""Per-run Playwright browser with stealth-configured contexts."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from playwright.async_api import Browser, BrowserContext, Error as PlaywrightError, Playwright, async_playwright
from playwright_stealth import Stealth

from ..errors import SetupFailure

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
]

# Fingerprint overrides applied before any page script runs.
FINGERPRINT_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {get: () => false});
Object.defineProperty(navigator, 'plugins', {get: () => [1, 2, 3, 4, 5]});
Object.defineProperty(navigator, 'languages', {get: () => ['en-US', 'en']});
""".strip()


class BrowserPool:
    """
    One Chromium process held for the duration of a crawl run.

    Every target gets its own context (separate cookies, storage) while the
    browser process is shared. The pool must be closed explicitly.
    """

    def __init__(self, *, headless: bool = True):
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def start(self) -> Browser:
        """Launch the browser if it is not running. Raises SetupFailure if it cannot start."""
        if self._browser is not None and self._browser.is_connected():
            return self._browser
        try:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=LAUNCH_ARGS,
                ignore_default_args=["--enable-automation"],
            )
        except PlaywrightError as e:
            await self.close()
            raise SetupFailure(f"Could not launch Chromium: {e}") from e
        logger.info(f"[browser] Chromium launched (headless={self.headless})")
        return self._browser

    @asynccontextmanager
    async def get_context(
        self,
        *,
        user_agent: str | None = None,
        locale: str | None = None,
        viewport: dict[str, int] | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> AsyncIterator[BrowserContext]:
        """Get a fresh, stealth-patched browser context that is closed on exit."""
        browser = await self.start()
        context_kwargs: dict[str, object] = {}
        if user_agent:
            context_kwargs["user_agent"] = user_agent
        if locale:
            context_kwargs["locale"] = locale
        if viewport:
            context_kwargs["viewport"] = viewport
        if extra_headers:
            context_kwargs["extra_http_headers"] = extra_headers

        context = await browser.new_context(**context_kwargs)
        try:
            await Stealth().apply_stealth_async(context)
            await context.add_init_script(FINGERPRINT_INIT_SCRIPT)
            yield context
        finally:
            await context.close()

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.warning(f"[browser] Error closing Chromium: {e}")
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
