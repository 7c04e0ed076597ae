"""Base extractor class for both site generations."""

from __future__ import annotations

from abc import ABC, abstractmethod

from bs4 import BeautifulSoup, Tag

from ..models import RawDocument, RawRecord, SiteVariant


class BaseExtractor(ABC):
    """Abstract base class for site-specific extractors.

    Extractors only locate raw field text. They drop entries without a title
    but leave every other cleanup step to ``utils.normalize_record``.
    """

    name: str
    variant: SiteVariant

    @abstractmethod
    def extract(self, document: RawDocument) -> list[RawRecord]:
        """Extract raw records from a fetched document. Subclasses must implement this."""
        ...

    @staticmethod
    def _soup(html: str) -> BeautifulSoup:
        return BeautifulSoup(html, "lxml")

    @staticmethod
    def _text(root: BeautifulSoup | Tag, selector: str) -> str:
        el = root.select_one(selector)
        if not el:
            return ""
        return el.get_text(" ", strip=True)
