"""Bounded wait for Cloudflare-style interstitial pages."""

from __future__ import annotations

import json
import logging
from typing import Protocol

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

logger = logging.getLogger(__name__)

CHALLENGE_TITLE_MARKERS = ("Just a moment", "Verify you are human", "Checking your browser")


class ChallengePage(Protocol):
    """The subset of ``playwright.async_api.Page`` the gate relies on."""

    async def title(self) -> str: ...

    async def wait_for_function(self, expression: str, *, timeout: float | None = None): ...

    async def wait_for_timeout(self, timeout: float) -> None: ...


class ChallengeGate:
    """Waits for an anti-bot interstitial to clear before a page counts as loaded."""

    def __init__(
        self,
        *,
        markers: tuple[str, ...] = CHALLENGE_TITLE_MARKERS,
        settle_ms: int = 3000,
    ):
        self.markers = markers
        self.settle_ms = settle_ms

    def _cleared_expression(self) -> str:
        return f"() => !{json.dumps(list(self.markers))}.some((m) => document.title.includes(m))"

    async def await_ready(self, page: ChallengePage, timeout_ms: int = 30000) -> bool:
        """Return True if an interstitial was seen (and waited out), False if none was present.

        Never raises: a challenge that outlives the timeout is logged and the
        page is used as-is, since some pages render content under a stale title.
        """
        try:
            title = await page.title()
        except PlaywrightError as e:
            logger.warning(f"[challenge] Could not read page title: {e}")
            return False

        if not any(marker in title for marker in self.markers):
            return False

        logger.info(f"[challenge] Interstitial detected ({title!r}), waiting up to {timeout_ms}ms...")
        try:
            await page.wait_for_function(self._cleared_expression(), timeout=timeout_ms)
            logger.info("[challenge] Interstitial cleared")
        except PlaywrightTimeoutError:
            logger.warning("[challenge] Interstitial still present after timeout, continuing anyway")
        except PlaywrightError as e:
            logger.warning(f"[challenge] Error while waiting for interstitial: {e}")

        try:
            await page.wait_for_timeout(self.settle_ms)
        except PlaywrightError as e:
            logger.warning(f"[challenge] Error during settle delay: {e}")
        return True
