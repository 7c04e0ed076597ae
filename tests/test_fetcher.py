import tempfile
import unittest
from contextlib import asynccontextmanager
from dataclasses import replace
from pathlib import Path

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from aversi_scraper.models import DirectLookup, ListingPage, SiteVariant


class FakePage:
    def __init__(self, html="<html></html>", goto_error=None, title="Aversi"):
        self.html = html
        self.goto_error = goto_error
        self._title = title
        self.visits = []
        self.timeouts = []

    async def goto(self, url, *, wait_until=None, timeout=None):
        self.visits.append((url, wait_until, timeout))
        if self.goto_error is not None:
            raise self.goto_error

    async def title(self):
        return self._title

    async def wait_for_function(self, expression, *, timeout=None):
        return None

    async def wait_for_timeout(self, timeout):
        self.timeouts.append(timeout)

    async def content(self):
        return self.html


class FakeContext:
    def __init__(self, page):
        self.page = page

    async def new_page(self):
        return self.page


class FakePool:
    def __init__(self, page):
        self.page = page
        self.context_kwargs = []

    @asynccontextmanager
    async def get_context(self, **kwargs):
        self.context_kwargs.append(kwargs)
        yield FakeContext(self.page)


class FullDiskStore:
    def __init__(self, root):
        self.root = root

    def write(self, key, content):
        raise OSError(28, "No space left on device")

    def delete(self, key):
        return True


class TestResolveUrl(unittest.TestCase):
    def test_listing_url(self):
        from aversi_scraper.scrapers.fetcher import resolve_url

        target = ListingPage("https://shop.aversi.ge/ka/care-products/oral-care", 3, 192)
        self.assertEqual(
            resolve_url(target),
            "https://shop.aversi.ge/ka/care-products/oral-care/page-3/"
            "?items_per_page=192&sort_by=product&sort_order=asc",
        )

    def test_direct_lookup_urls(self):
        from aversi_scraper.scrapers.fetcher import resolve_url

        self.assertEqual(
            resolve_url(DirectLookup(90414, SiteVariant.LEGACY)),
            "https://www.aversi.ge/ka/aversi/act/drugDet/?MatID=90414",
        )
        self.assertEqual(
            resolve_url(DirectLookup(840, SiteVariant.CURRENT)),
            "https://shop.aversi.ge/?dispatch=aversi.redirect&matid=840",
        )


class TestPageFetcher(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        from aversi_scraper.config import CrawlSettings
        from aversi_scraper.storage import ScratchStore

        self._tmp = tempfile.TemporaryDirectory()
        self.settings = CrawlSettings(output_dir=Path(self._tmp.name))
        self.scratch = ScratchStore(self.settings.scratch_dir)

    def tearDown(self):
        self._tmp.cleanup()

    def _fetcher(self, page):
        from aversi_scraper.scrapers.fetcher import PageFetcher

        self.pool = FakePool(page)
        return PageFetcher(self.pool, self.settings, self.scratch)

    async def test_fetch_writes_scratch_document(self):
        page = FakePage(html="<html><body>tiles</body></html>")
        target = DirectLookup(90414, SiteVariant.LEGACY)

        document = await self._fetcher(page).fetch(target)

        self.assertEqual(document.html, "<html><body>tiles</body></html>")
        self.assertEqual(document.scratch_key, target.key)
        self.assertTrue(self.scratch.exists(target.key))
        url, wait_until, timeout = page.visits[0]
        self.assertEqual(wait_until, "domcontentloaded")
        self.assertEqual(timeout, 60000)
        self.assertEqual(page.timeouts, [2000])
        self.assertEqual(self.pool.context_kwargs[0]["locale"], "en-US")

    async def test_listing_waits_for_network_idle(self):
        page = FakePage()
        await self._fetcher(page).fetch(ListingPage("https://shop.aversi.ge/ka/medication/x/", 1, 192))
        self.assertEqual(page.visits[0][1], "networkidle")
        self.assertEqual(page.timeouts, [3000])

    async def test_timeout_maps_to_navigation_timeout(self):
        from aversi_scraper.errors import FetchError, FetchErrorKind

        page = FakePage(goto_error=PlaywrightTimeoutError("Timeout 60000ms exceeded"))
        with self.assertRaises(FetchError) as ctx:
            await self._fetcher(page).fetch(DirectLookup(1, SiteVariant.CURRENT))
        self.assertIs(ctx.exception.kind, FetchErrorKind.NAVIGATION_TIMEOUT)

    async def test_network_error(self):
        from aversi_scraper.errors import FetchError, FetchErrorKind

        page = FakePage(goto_error=PlaywrightError("net::ERR_CONNECTION_RESET"))
        with self.assertRaises(FetchError) as ctx:
            await self._fetcher(page).fetch(DirectLookup(1, SiteVariant.CURRENT))
        self.assertIs(ctx.exception.kind, FetchErrorKind.NETWORK)

    async def test_scratch_write_failure_keeps_document_in_memory(self):
        page = FakePage(html="<html><body>ok</body></html>")
        fetcher = self._fetcher(page)
        fetcher.scratch = FullDiskStore(self.settings.scratch_dir)

        with self.assertLogs("aversi_scraper.scrapers.fetcher", level="WARNING"):
            document = await fetcher.fetch(DirectLookup(1, SiteVariant.CURRENT))

        self.assertEqual(document.html, "<html><body>ok</body></html>")
        self.assertIsNone(document.scratch_key)

    async def test_scratch_write_failure_does_not_stop_the_crawl(self):
        from aversi_scraper.crawler import CrawlController

        page = FakePage(html='<h1 class="ty-product-block-title"><bdi>Ibuprofen</bdi></h1>')
        fetcher = self._fetcher(page)
        store = FullDiskStore(self.settings.scratch_dir)
        fetcher.scratch = store
        controller = CrawlController(fetcher, replace(self.settings, request_delay_ms=0), scratch=store)

        result = await controller.run([DirectLookup(1, SiteVariant.CURRENT), DirectLookup(2, SiteVariant.CURRENT)])

        self.assertEqual(len(page.visits), 2)
        self.assertEqual([r.product_code for r in result.records], ["1", "2"])
        self.assertEqual(result.failures, [])

    async def test_block_page_is_not_stored(self):
        from aversi_scraper.errors import FetchError, FetchErrorKind

        page = FakePage(html="<h1>Sorry, you have been blocked</h1>")
        target = DirectLookup(2, SiteVariant.CURRENT)
        with self.assertRaises(FetchError) as ctx:
            await self._fetcher(page).fetch(target)
        self.assertIs(ctx.exception.kind, FetchErrorKind.BLOCKED_BY_ORIGIN)
        self.assertFalse(self.scratch.exists(target.key))


if __name__ == "__main__":
    unittest.main()
