"""Extractor for the legacy aversi.ge product-detail pages."""

from __future__ import annotations

import logging

from ..models import DirectLookup, RawDocument, RawRecord, SiteVariant
from .base import BaseExtractor

logger = logging.getLogger(__name__)


class LegacySiteExtractor(BaseExtractor):
    """Pull the single product out of an aversi.ge ``drugDet`` page."""

    name = "legacy"
    variant = SiteVariant.LEGACY

    def extract(self, document: RawDocument) -> list[RawRecord]:
        target = document.target
        if not isinstance(target, DirectLookup):
            logger.warning(f"[{self.name}] Unsupported target for legacy site: {target.describe()}")
            return []

        soup = self._soup(document.html)
        summary = soup.select_one(".product-summary")
        if summary is None:
            logger.warning(f"[{self.name}] No .product-summary found for MatID {target.identifier}")
            return []

        title = self._text(summary, ".product-title") or self._text(soup, ".product-title")
        if not title.strip():
            logger.warning(f"[{self.name}] No title found for MatID {target.identifier}")
            return []

        price_root = summary if summary.select_one(".price") else soup
        return [
            RawRecord(
                title=title,
                price_text=self._text(price_root, ".price .amount.text-theme-colored"),
                price_old_text=self._text(price_root, ".price del"),
                product_code=str(target.identifier),
                category="",
                page_number="",
                source_site=self.variant,
            )
        ]
