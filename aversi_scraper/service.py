"""Owns the single crawl run that may be in flight and its published status."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from .config import CrawlSettings
from .crawler import CrawlController, Fetcher
from .errors import CrawlAlreadyRunning, CrawlCancelled
from .export import CATEGORIES_JSON, build_statistics, save_results, write_categories
from .models import CategoryConfig, CrawlResult, Target
from .scrapers.browser_pool import BrowserPool
from .scrapers.fetcher import PageFetcher
from .status import CrawlStatus
from .storage import ScratchStore
from .targets import TargetEnumerator

logger = logging.getLogger(__name__)


class CrawlService:
    """Starts crawl runs as background tasks, one at a time.

    A start request while ``status.is_running`` is true is rejected, never
    queued, and leaves the in-flight run untouched.
    """

    def __init__(
        self,
        settings: CrawlSettings | None = None,
        *,
        pool_factory: Callable[..., BrowserPool] = BrowserPool,
        fetcher_factory: Callable[[BrowserPool, CrawlSettings, ScratchStore], Fetcher] = PageFetcher,
        enumerator_factory: Callable[..., TargetEnumerator] = TargetEnumerator,
    ):
        self.settings = settings or CrawlSettings()
        self.status = CrawlStatus()
        self.scratch = ScratchStore(self.settings.scratch_dir)
        self.pool_factory = pool_factory
        self.fetcher_factory = fetcher_factory
        self.enumerator_factory = enumerator_factory
        self.last_result: CrawlResult | None = None
        self._task: asyncio.Task | None = None
        self._controller: CrawlController | None = None

    @property
    def is_running(self) -> bool:
        return self.status.is_running

    async def start(self) -> tuple[list[Target], list[CategoryConfig]]:
        """Resolve targets and launch a run in the background.

        Returns the resolved targets and categories. Raises CrawlAlreadyRunning
        if a run is in flight and SetupFailure if the browser cannot start.
        """
        if self.status.is_running:
            raise CrawlAlreadyRunning("Scraping is already in progress")
        # Claim the run before the first await so a concurrent start is rejected.
        self.status.is_running = True
        self.status.message = "Discovering categories..."

        settings = self.settings
        pool = self.pool_factory(headless=settings.headless)
        try:
            await pool.start()
            fetcher = self.fetcher_factory(pool, settings, self.scratch)
            enumerator = self.enumerator_factory(
                fetch_index=fetcher.fetch_index if settings.discover_categories else None,
                include_direct_lookups=settings.include_direct_lookups,
            )
            targets = await enumerator.enumerate()
            categories = enumerator.resolved_categories
            write_categories(categories, settings.data_dir / CATEGORIES_JSON)
        except BaseException as e:
            await pool.close()
            self.status.fail(f"Error: {e}")
            raise

        self._controller = CrawlController(fetcher, settings, status=self.status, scratch=self.scratch)
        self._task = asyncio.create_task(self._run(pool, self._controller, targets))
        logger.info(f"Crawl started with {len(targets)} targets ({len(categories)} categories)")
        return targets, categories

    async def _run(self, pool: BrowserPool, controller: CrawlController, targets: list[Target]) -> None:
        # Every exit path must leave status.is_running False.
        try:
            result = await controller.run(targets)
            self.last_result = result
            self._finish(result)
        except CrawlCancelled:
            logger.warning("Crawl cancelled")
            self.status.fail("Cancelled")
        except Exception as e:
            logger.exception(f"Scraping error: {e}")
            self.status.fail(f"Error: {e}")
        finally:
            await pool.close()

    def _finish(self, result: CrawlResult) -> None:
        statistics = build_statistics(result)
        if not result.records:
            self.status.finish("No products were scraped", statistics)
            return
        save_results(result, self.settings.data_dir)
        self.status.finish(
            f"Completed! Scraped {len(result.records)} products in {statistics['duration']} minutes",
            statistics,
        )

    async def wait(self) -> CrawlResult | None:
        """Wait for the current run (if any) to finish and return its result."""
        if self._task is not None:
            await self._task
        return self.last_result

    async def run(self) -> CrawlResult | None:
        """Start a run and wait for it; used by the CLI."""
        await self.start()
        return await self.wait()

    async def stop(self) -> None:
        """Cancel the in-flight run at its next suspension point and wait for it."""
        if self._controller is not None and self.status.is_running:
            self._controller.cancel()
        await self.wait()
