import json
import tempfile
import unittest
from datetime import UTC, datetime, timedelta
from pathlib import Path

from openpyxl import load_workbook

from aversi_scraper.errors import FetchErrorKind
from aversi_scraper.models import (
    CrawlResult,
    DirectLookup,
    FailedTarget,
    ListingPage,
    Record,
    SiteVariant,
)

MED_URL = "https://shop.aversi.ge/ka/medication/homeopathic-remedies/"
CARE_URL = "https://shop.aversi.ge/ka/care-products/oral-care/"


def _record(code, title, category="", price="", price_old="", source=SiteVariant.CURRENT, page=""):
    return Record(code, title, price, price_old, category, page, source)


def _result(records, failures=()):
    started = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    result = CrawlResult(started_at=started, finished_at=started + timedelta(minutes=3))
    result.records.extend(records)
    result.failures.extend(failures)
    return result


class TestWorkbook(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_sheets_by_category_and_source(self):
        from aversi_scraper.export import write_workbook

        records = [
            _record("A1", "Arnica", MED_URL, "5.50", page="1"),
            _record("B2", "Toothpaste", CARE_URL, "3.00", page="1"),
            _record("90414", "Paracetamol", price="8.00", price_old="10.00", source=SiteVariant.LEGACY),
        ]
        path = write_workbook(records, self.data_dir / "out.xlsx")

        workbook = load_workbook(path)
        self.assertEqual(
            workbook.sheetnames,
            ["All Products", "Medications", "Care Products", "Legacy Site Products", "Current Site Products"],
        )
        all_rows = list(workbook["All Products"].iter_rows(values_only=True))
        self.assertEqual(
            list(all_rows[0]), ["productCode", "title", "price", "priceOld", "category", "pageNumber", "source"]
        )
        self.assertEqual(len(all_rows), 4)
        self.assertEqual(workbook["Medications"].max_row, 2)
        self.assertEqual(workbook["Care Products"]["B2"].value, "Toothpaste")
        self.assertEqual(workbook["Legacy Site Products"]["D2"].value, "10.00")

    def test_empty_source_sheets_are_skipped(self):
        from aversi_scraper.export import write_workbook

        path = write_workbook([_record("A1", "Arnica", MED_URL)], self.data_dir / "out.xlsx")
        sheetnames = load_workbook(path).sheetnames
        self.assertNotIn("Legacy Site Products", sheetnames)
        self.assertIn("Care Products", sheetnames)

    def test_save_and_load_products(self):
        from aversi_scraper.export import load_products, save_results

        self.assertIsNone(load_products(self.data_dir))
        json_path, xlsx_path = save_results(
            _result([_record("ს1", "ასპირინი", MED_URL, "1.20")]), self.data_dir
        )
        self.assertTrue(xlsx_path.exists())
        self.assertIn("ასპირინი", json_path.read_text(encoding="utf-8"))
        self.assertEqual(load_products(self.data_dir)[0]["productCode"], "ს1")
        self.assertEqual(list(self.data_dir.glob("*.tmp.*")), [])

    def test_categories_file(self):
        from aversi_scraper.export import write_categories
        from aversi_scraper.models import CategoryConfig

        path = write_categories([CategoryConfig(CARE_URL, 1, 20, 24)], self.data_dir / "categories.json")
        self.assertEqual(
            json.loads(path.read_text(encoding="utf-8")),
            [{"category": CARE_URL, "startPage": 1, "endPage": 20, "perpage": 24, "pages": 20}],
        )


class TestStatistics(unittest.TestCase):
    def test_counts(self):
        from aversi_scraper.export import build_statistics

        failed_page = ListingPage(MED_URL, 4, 192)
        result = _result(
            [
                _record("A1", "Arnica", MED_URL, "5.50", "6.00"),
                _record("A2", "Belladonna", MED_URL, "4.00", "4.00"),
                _record("", "Floss", CARE_URL),
                _record("90414", "Paracetamol", price="8.00", source=SiteVariant.LEGACY),
            ],
            [
                FailedTarget(failed_page, FetchErrorKind.NAVIGATION_TIMEOUT, "timeout"),
                FailedTarget(DirectLookup(1), FetchErrorKind.EXTRACTION_EMPTY, "No products extracted"),
            ],
        )
        result.stats_for(MED_URL).succeeded = 3
        result.stats_for("direct:legacy").succeeded = 1

        stats = build_statistics(result)

        self.assertEqual(stats["totalProducts"], 4)
        self.assertEqual(stats["medicationProducts"], 2)
        self.assertEqual(stats["careProducts"], 1)
        self.assertEqual(stats["withPrice"], 3)
        self.assertEqual(stats["withDiscount"], 1)
        self.assertEqual(stats["withProductCode"], 3)
        self.assertEqual(stats["fromLegacySite"], 1)
        self.assertEqual(stats["fromCurrentSite"], 3)
        self.assertEqual(stats["pagesScraped"], 3)
        self.assertEqual(stats["failedPages"], [f"{MED_URL}-4"])
        self.assertEqual(len(stats["failedTargets"]), 2)
        self.assertEqual(stats["duration"], "3.00")


if __name__ == "__main__":
    unittest.main()
