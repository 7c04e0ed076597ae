"""Extractor for shop.aversi.ge (CS-Cart theme) listings and product pages."""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, Tag

from ..models import DirectLookup, ListingPage, RawDocument, RawRecord, SiteVariant
from .base import BaseExtractor

logger = logging.getLogger(__name__)


class ShopSiteExtractor(BaseExtractor):
    """Parse product tiles from category listings and product blocks from detail pages."""

    name = "shop"
    variant = SiteVariant.CURRENT

    TILE_SELECTOR = ".col-tile"

    def extract(self, document: RawDocument) -> list[RawRecord]:
        soup = self._soup(document.html)
        target = document.target
        if isinstance(target, ListingPage):
            return self._extract_listing(soup, target)
        return self._extract_product_block(soup, target)

    def _extract_listing(self, soup: BeautifulSoup, target: ListingPage) -> list[RawRecord]:
        tiles = soup.select(self.TILE_SELECTOR)
        logger.debug(f"[{self.name}] Found {len(tiles)} {self.TILE_SELECTOR} elements on {target.describe()}")

        records: list[RawRecord] = []
        for tile in tiles:
            title = self._text(tile, ".product-title")
            if not title.strip():
                continue
            records.append(
                RawRecord(
                    title=title,
                    price_text=self._text(tile, ".ty-price-num"),
                    price_old_text=self._text(tile, ".ty-list-price:last-child"),
                    product_code=self._product_code(tile),
                    category=target.base_url,
                    page_number=str(target.page_number),
                    source_site=self.variant,
                )
            )
        return records

    @staticmethod
    def _product_code(tile: Tag) -> str:
        field = tile.select_one('input[name$="[product_code]"]')
        if field is None:
            return ""
        return (field.get("value") or "").strip()

    def _extract_product_block(self, soup: BeautifulSoup, target: DirectLookup) -> list[RawRecord]:
        block_title = soup.select_one(".ty-product-block-title")
        if block_title is None:
            logger.warning(f"[{self.name}] No .ty-product-block-title found for MatID {target.identifier}")
            return []

        title = self._text(soup, ".ty-product-block-title > bdi") or block_title.get_text(" ", strip=True)
        if not title.strip():
            logger.warning(f"[{self.name}] No title found for MatID {target.identifier}")
            return []

        price_text = ""
        price_old_text = ""
        holder = soup.select_one("[data-ca-product-id]")
        product_id = (holder.get("data-ca-product-id") or "").strip() if holder else ""
        if product_id.isdigit():
            price_old_text = self._text(soup, f"#sec_list_price_{product_id}")
            price_text = self._text(soup, f"#sec_discounted_price_{product_id}")

        return [
            RawRecord(
                title=title,
                price_text=price_text,
                price_old_text=price_old_text,
                product_code=str(target.identifier),
                category="",
                page_number="",
                source_site=self.variant,
            )
        ]
