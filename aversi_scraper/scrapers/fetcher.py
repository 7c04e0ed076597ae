"""Download rendered HTML for crawl targets through the browser pool."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from urllib.parse import urlencode

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from ..config import CrawlSettings
from ..errors import FetchError, FetchErrorKind
from ..models import ListingPage, RawDocument, SiteVariant, Target
from ..storage import ScratchStore
from .browser_pool import BrowserPool
from .challenge import ChallengeGate

logger = logging.getLogger(__name__)

LEGACY_PRODUCT_URL = "https://www.aversi.ge/ka/aversi/act/drugDet/"
CURRENT_REDIRECT_URL = "https://shop.aversi.ge/"

# Content markers of a hard block (as opposed to a challenge that may still clear).
BLOCK_MARKERS = (
    "Please unblock challenges.cloudflare.com",
    "Sorry, you have been blocked",
)


def listing_base(url: str) -> str:
    return url if url.endswith("/") else url + "/"


def resolve_url(target: Target) -> str:
    """Map a target to the URL that serves it."""
    if isinstance(target, ListingPage):
        query = urlencode(
            {"items_per_page": target.page_size, "sort_by": "product", "sort_order": "asc"}
        )
        return f"{listing_base(target.base_url)}page-{target.page_number}/?{query}"
    if target.site_variant is SiteVariant.LEGACY:
        return f"{LEGACY_PRODUCT_URL}?{urlencode({'MatID': target.identifier})}"
    query = urlencode({"dispatch": "aversi.redirect", "matid": target.identifier})
    return f"{CURRENT_REDIRECT_URL}?{query}"


class PageFetcher:
    """Fetch one target per isolated browser context and stash the HTML in scratch storage."""

    name = "fetcher"

    def __init__(
        self,
        pool: BrowserPool,
        settings: CrawlSettings,
        scratch: ScratchStore,
        gate: ChallengeGate | None = None,
    ):
        self.pool = pool
        self.settings = settings
        self.scratch = scratch
        self.gate = gate or ChallengeGate(settle_ms=settings.challenge_settle_ms)

    async def fetch(self, target: Target) -> RawDocument:
        """Download a target. Raises FetchError on timeout, network failure or a block page."""
        url = resolve_url(target)
        variant = target.site_variant
        logger.info(f"[{self.name}] Downloading {target.describe()} ({url})")

        try:
            html = await self._load(url, variant)
        except PlaywrightTimeoutError as e:
            raise FetchError(FetchErrorKind.NAVIGATION_TIMEOUT, target, str(e)) from e
        except PlaywrightError as e:
            raise FetchError(FetchErrorKind.NETWORK, target, str(e)) from e

        if marker := next((m for m in BLOCK_MARKERS if m in html), None):
            raise FetchError(FetchErrorKind.BLOCKED_BY_ORIGIN, target, f"Block page served: {marker!r}")

        key: str | None = target.key
        try:
            self.scratch.write(key, html)
            logger.info(f"[{self.name}] Saved {target.describe()} ({round(len(html) / 1024)} KB)")
        except OSError as e:
            # The document is still usable from memory.
            logger.warning(f"[{self.name}] Could not write scratch file for {target.describe()}: {e}")
            key = None
        return RawDocument(target=target, html=html, fetched_at=datetime.now(UTC), scratch_key=key)

    async def fetch_index(self, url: str, variant: SiteVariant = SiteVariant.CURRENT) -> str:
        """Fetch an arbitrary page (e.g. the category menu) with the same browser policy."""
        logger.info(f"[{self.name}] Downloading index page {url}")
        return await self._load(url, variant)

    async def _load(self, url: str, variant: SiteVariant) -> str:
        settings = self.settings
        async with self.pool.get_context(
            user_agent=settings.user_agent,
            locale=settings.locale,
            viewport=settings.viewport,
            extra_headers=settings.extra_headers,
        ) as context:
            page = await context.new_page()
            await page.goto(
                url,
                wait_until=settings.wait_until(variant),
                timeout=settings.navigation_timeout_ms,
            )
            await self.gate.await_ready(page, settings.challenge_timeout_ms)
            await page.wait_for_timeout(settings.post_load_delay_ms.get(variant, 3000))
            return await page.content()
