"""Persist crawl output as JSON and an Excel workbook."""

from __future__ import annotations

import json
import logging
import secrets
from pathlib import Path
from typing import Any, Callable

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from .models import RECORD_FIELDS, CategoryConfig, CrawlResult, ListingPage, Record, SiteVariant

logger = logging.getLogger(__name__)

PRODUCTS_JSON = "aversi_products.json"
PRODUCTS_XLSX = "aversi_products.xlsx"
CATEGORIES_JSON = "categories.json"

COLUMN_WIDTHS = [15, 50, 15, 10, 40, 10, 20]


def _is_medication(record: Record) -> bool:
    return "medication" in record.category


def _is_care_product(record: Record) -> bool:
    return "care-products" in record.category


SHEETS: list[tuple[str, Callable[[Record], bool], bool]] = [
    # (sheet title, filter, written even when empty)
    ("All Products", lambda r: True, True),
    ("Medications", _is_medication, True),
    ("Care Products", _is_care_product, True),
    ("Legacy Site Products", lambda r: r.source is SiteVariant.LEGACY, False),
    ("Current Site Products", lambda r: r.source is SiteVariant.CURRENT, False),
]


def _write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + f".tmp.{secrets.token_hex(6)}")
    tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    tmp.replace(path)


def write_json(records: list[Record], path: Path) -> Path:
    _write_json_atomic(path, [r.to_dict() for r in records])
    logger.info(f"[export] Saved JSON to {path}")
    return path


def write_categories(categories: list[CategoryConfig], path: Path) -> Path:
    _write_json_atomic(path, [c.to_dict() for c in categories])
    return path


def write_workbook(records: list[Record], path: Path) -> Path:
    """Write every record to an ``All Products`` sheet plus filtered category/source sheets."""
    path.parent.mkdir(parents=True, exist_ok=True)
    workbook = Workbook()
    workbook.remove(workbook.active)

    for title, keep, always in SHEETS:
        rows = [r for r in records if keep(r)]
        if not rows and not always:
            continue
        sheet = workbook.create_sheet(title)
        sheet.append(RECORD_FIELDS)
        for record in rows:
            data = record.to_dict()
            sheet.append([data[f] for f in RECORD_FIELDS])
        for idx, width in enumerate(COLUMN_WIDTHS, 1):
            sheet.column_dimensions[get_column_letter(idx)].width = width

    workbook.save(path)
    logger.info(f"[export] Saved workbook to {path}")
    return path


def build_statistics(result: CrawlResult) -> dict:
    """Summary numbers shown in the status endpoint after a run."""
    records = result.records
    return {
        "totalProducts": len(records),
        "medicationProducts": sum(1 for r in records if _is_medication(r)),
        "careProducts": sum(1 for r in records if _is_care_product(r)),
        "pagesScraped": result.pages_scraped,
        "failedPages": [
            f"{f.target.category}-{f.target.page_number}"
            for f in result.failures
            if isinstance(f.target, ListingPage)
        ],
        "failedTargets": [f.to_dict() for f in result.failures],
        "duration": f"{result.duration_minutes:.2f}",
        "withPrice": sum(1 for r in records if r.price),
        "withDiscount": sum(1 for r in records if r.price_old and r.price_old != r.price),
        "withProductCode": sum(1 for r in records if r.product_code),
        "fromLegacySite": sum(1 for r in records if r.source is SiteVariant.LEGACY),
        "fromCurrentSite": sum(1 for r in records if r.source is SiteVariant.CURRENT),
        "categories": {k: v.to_dict() for k, v in result.categories.items()},
    }


def save_results(result: CrawlResult, data_dir: Path) -> tuple[Path, Path]:
    """Save the run's records to JSON and Excel files."""
    json_file = write_json(result.records, data_dir / PRODUCTS_JSON)
    xlsx_file = write_workbook(result.records, data_dir / PRODUCTS_XLSX)
    return json_file, xlsx_file


def load_products(data_dir: Path) -> list[dict] | None:
    """Read back the persisted product list, or None if no run has produced one."""
    path = data_dir / PRODUCTS_JSON
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))
