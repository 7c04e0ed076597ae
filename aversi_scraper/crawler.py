"""Sequential crawl controller: fetch, extract and normalize every target."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Protocol

from .config import CrawlSettings
from .errors import CrawlCancelled, FetchError, FetchErrorKind, SetupFailure
from .models import CrawlResult, DirectLookup, FailedTarget, ListingPage, RawDocument, Record, SiteVariant, Target
from .scrapers import BaseExtractor, get_extractor
from .status import CrawlStatus
from .storage import ScratchStore
from .utils import normalize_record

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(self, target: Target) -> RawDocument: ...


class CrawlController:
    """
    Walks the enumerated targets one at a time.

    Per target: Pending -> Fetching -> Extracting -> Succeeded | Failed.
    Listing categories are paginated until a page is short, empty or fails,
    or the configured last page is reached. Per-target errors end up in the
    failure manifest; only setup failures and cancellation escape ``run``.
    """

    name = "crawler"

    def __init__(
        self,
        fetcher: Fetcher,
        settings: CrawlSettings | None = None,
        *,
        status: CrawlStatus | None = None,
        scratch: ScratchStore | None = None,
        debug_store: ScratchStore | None = None,
        extractors: dict[SiteVariant, BaseExtractor] | None = None,
    ):
        self.fetcher = fetcher
        self.settings = settings or CrawlSettings()
        self.status = status or CrawlStatus()
        self.scratch = scratch or ScratchStore(self.settings.scratch_dir)
        self.debug_store = debug_store or ScratchStore(self.settings.debug_dir)
        self.extractors = extractors or {v: get_extractor(v) for v in SiteVariant}
        self._cancel = asyncio.Event()
        self._pace_pending = False

    def cancel(self) -> None:
        """Ask the run to stop at its next suspension point."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    async def run(self, targets: list[Target]) -> CrawlResult:
        """Crawl all targets in order and return the aggregate result."""
        listings = [t for t in targets if isinstance(t, ListingPage)]
        self.status.reset(total_targets=len(targets), total_categories=len(listings))
        result = CrawlResult(started_at=datetime.now(UTC))
        self._pace_pending = False

        logger.info(
            f"[{self.name}] Starting crawl: {len(targets) - len(listings)} direct lookups, "
            f"{len(listings)} categories"
        )
        direct_index = 0
        category_index = 0
        for target in targets:
            self._check_cancelled()
            if isinstance(target, ListingPage):
                category_index += 1
                await self._crawl_category(target, result, category_index, len(listings))
            else:
                direct_index += 1
                await self._crawl_direct(target, result, direct_index, len(targets) - len(listings))
            self.status.target_done()

        result.finished_at = datetime.now(UTC)
        logger.info(
            f"[{self.name}] Crawl finished: {len(result.records)} products, "
            f"{result.succeeded} succeeded, {result.failed} failed"
        )
        return result

    async def _crawl_direct(self, target: DirectLookup, result: CrawlResult, index: int, total: int) -> None:
        status = self.status
        status.current_target = target.describe()
        status.current_category = target.category
        status.current_category_progress = f"{index}/{total}"
        status.message = f"Direct lookup {index}/{total} - {target.describe()}"

        stats = result.stats_for(target.category)
        stats.attempted += 1
        try:
            records = await self._process(target)
        except FetchError as e:
            stats.failed += 1
            self._record_failure(result, e)
            return

        stats.succeeded += 1
        result.records.extend(records)
        status.add_products(target.category, len(records))
        logger.info(f"[{self.name}] Extracted {records[0].title[:40]!r} from {target.describe()}")

    async def _crawl_category(self, first: ListingPage, result: CrawlResult, index: int, total: int) -> None:
        status = self.status
        category = first.category
        pages = f"{first.last_page - first.page_number + 1}" if first.last_page else "?"
        status.current_category = category
        stats = result.stats_for(category)
        logger.info(f"[{self.name}] Category [{index}/{total}]: {category}")

        target: ListingPage | None = first
        while target is not None:
            self._check_cancelled()
            page_in_category = target.page_number - first.page_number + 1
            status.current_target = target.describe()
            status.current_category_progress = f"Page {page_in_category}/{pages}"
            status.message = f"Category {index}/{total} - Page {page_in_category}/{pages}"

            stats.attempted += 1
            try:
                records = await self._process(target)
            except FetchError as e:
                stats.failed += 1
                self._record_failure(result, e)
                logger.info(f"[{self.name}] Stopping {category} after failure on page {target.page_number}")
                break

            stats.succeeded += 1
            result.records.extend(records)
            status.add_products(category, len(records))
            logger.info(
                f"[{self.name}] Parsed {len(records)} products from page {target.page_number}; "
                f"total so far: {len(result.records)}"
            )

            if len(records) < target.page_size:
                logger.info(
                    f"[{self.name}] Found {len(records)} < {target.page_size} products, "
                    f"reached last page of {category}"
                )
                break
            target = target.next_page()

        # No pause between the terminal page of one category and the next target.
        self._pace_pending = False
        status.completed_categories += 1

    async def _process(self, target: Target) -> list[Record]:
        """Fetch and extract one target. Raises FetchError when it yields nothing usable."""
        document = await self._fetch(target)
        try:
            return self._extract(document)
        finally:
            self._discard(document)

    async def _fetch(self, target: Target) -> RawDocument:
        attempt = 0
        while True:
            if self._pace_pending:
                await self._pause(self.settings.request_delay_ms)
            self._pace_pending = True
            try:
                return await self.fetcher.fetch(target)
            except FetchError as e:
                error = e
            except (SetupFailure, CrawlCancelled):
                raise
            except Exception as e:
                logger.exception(f"[{self.name}] Unexpected error fetching {target.describe()}")
                error = FetchError(FetchErrorKind.NETWORK, target, f"Unexpected error: {e}")

            if not error.kind.retryable or attempt >= self.settings.fetch_retries:
                raise error
            attempt += 1
            backoff_ms = self.settings.retry_backoff_ms * 2 ** (attempt - 1)
            logger.warning(
                f"[{self.name}] {error.kind.value} on {target.describe()}, "
                f"retry {attempt}/{self.settings.fetch_retries} in {backoff_ms}ms"
            )
            await self._pause(backoff_ms)
            self._pace_pending = False

    def _extract(self, document: RawDocument) -> list[Record]:
        target = document.target
        extractor = self.extractors[target.site_variant]
        try:
            raw_records = extractor.extract(document)
        except Exception as e:
            logger.exception(f"[{self.name}] Error parsing {target.describe()}")
            raise FetchError(FetchErrorKind.EXTRACTION_EMPTY, target, f"Parse error: {e}") from e

        records = [r for r in map(normalize_record, raw_records) if r is not None]
        if not records:
            if isinstance(target, DirectLookup) and target.site_variant is SiteVariant.LEGACY:
                self._save_debug(document)
            raise FetchError(FetchErrorKind.EXTRACTION_EMPTY, target, "No products extracted")
        return records

    def _save_debug(self, document: RawDocument) -> None:
        target = document.target
        key = f"failed_{target.site_variant.value}_{target.identifier}"
        try:
            path = self.debug_store.write(key, document.html)
        except OSError as e:
            logger.warning(f"[{self.name}] Could not save debug HTML for {target.describe()}: {e}")
            return
        logger.info(f"[{self.name}] Saved debug HTML to: {path}")

    def _discard(self, document: RawDocument) -> None:
        if document.scratch_key:
            self.scratch.delete(document.scratch_key)

    def _record_failure(self, result: CrawlResult, error: FetchError) -> None:
        logger.warning(f"[{self.name}] Failed {error.target.describe()}: {error.kind.value}: {error.message}")
        result.failures.append(FailedTarget(error.target, error.kind, error.message))
        self.status.failed_targets += 1

    def _check_cancelled(self) -> None:
        if self._cancel.is_set():
            raise CrawlCancelled("Crawl cancelled")

    async def _pause(self, delay_ms: int) -> None:
        """Sleep between requests; wakes early and raises if the run is cancelled."""
        if delay_ms <= 0:
            self._check_cancelled()
            return
        logger.debug(f"[{self.name}] Waiting {delay_ms / 1000:.1f}s...")
        try:
            await asyncio.wait_for(self._cancel.wait(), timeout=delay_ms / 1000)
        except asyncio.TimeoutError:
            return
        raise CrawlCancelled("Crawl cancelled")
