"""Data models for the crawler."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union

from .errors import FetchErrorKind


class SiteVariant(str, Enum):
    """Markup generation of the Aversi catalog a document belongs to."""

    LEGACY = "legacy"
    CURRENT = "current"

    @property
    def host(self) -> str:
        return "www.aversi.ge" if self is SiteVariant.LEGACY else "shop.aversi.ge"


@dataclass(frozen=True)
class DirectLookup:
    """A single product-detail page addressed by its MatID."""

    identifier: int
    site_variant: SiteVariant = SiteVariant.LEGACY

    @property
    def key(self) -> str:
        return f"{self.site_variant.value}_matid_{self.identifier}"

    @property
    def category(self) -> str:
        return f"direct:{self.site_variant.value}"

    def describe(self) -> str:
        return f"{self.site_variant.host} MatID {self.identifier}"


@dataclass(frozen=True)
class ListingPage:
    """One page of a paginated category listing."""

    base_url: str
    page_number: int
    page_size: int
    site_variant: SiteVariant = SiteVariant.CURRENT
    last_page: int | None = None

    @property
    def key(self) -> str:
        slug = "".join(c if c.isalnum() else "_" for c in self.base_url.split("://", 1)[-1])
        return f"{self.site_variant.value}_{slug.strip('_')[-80:]}_page_{self.page_number}"

    @property
    def category(self) -> str:
        return self.base_url

    def next_page(self) -> ListingPage | None:
        """Return the target for the following page, or None past the configured range."""
        if self.last_page is not None and self.page_number >= self.last_page:
            return None
        return ListingPage(
            base_url=self.base_url,
            page_number=self.page_number + 1,
            page_size=self.page_size,
            site_variant=self.site_variant,
            last_page=self.last_page,
        )

    def describe(self) -> str:
        return f"{self.base_url} page {self.page_number}"


Target = Union[DirectLookup, ListingPage]


@dataclass(frozen=True)
class CategoryConfig:
    """A listing descriptor: which pages of a category to walk and at what page size."""

    url: str
    start_page: int = 1
    end_page: int = 12
    page_size: int = 192

    @property
    def pages(self) -> int:
        return self.end_page - self.start_page + 1

    def first_target(self) -> ListingPage:
        return ListingPage(
            base_url=self.url,
            page_number=self.start_page,
            page_size=self.page_size,
            site_variant=SiteVariant.CURRENT,
            last_page=self.end_page,
        )

    def to_dict(self) -> dict:
        return {
            "category": self.url,
            "startPage": self.start_page,
            "endPage": self.end_page,
            "perpage": self.page_size,
            "pages": self.pages,
        }


@dataclass
class RawDocument:
    """A fetched page, still owned by the fetcher until extracted."""

    target: Target
    html: str
    fetched_at: datetime
    scratch_key: str | None = None


@dataclass(frozen=True)
class RawRecord:
    """Fields exactly as extracted, before normalization."""

    title: str
    price_text: str
    price_old_text: str
    product_code: str
    category: str
    page_number: str
    source_site: SiteVariant


@dataclass
class Record:
    """A normalized product row."""

    product_code: str
    title: str
    price: str
    price_old: str
    category: str
    page_number: str
    source: SiteVariant

    def to_dict(self) -> dict:
        """Convert to dictionary (export field order)."""
        return {
            "productCode": self.product_code,
            "title": self.title,
            "price": self.price,
            "priceOld": self.price_old,
            "category": self.category,
            "pageNumber": self.page_number,
            "source": self.source.value,
        }


RECORD_FIELDS = ["productCode", "title", "price", "priceOld", "category", "pageNumber", "source"]


@dataclass
class FailedTarget:
    """Failure manifest entry."""

    target: Target
    kind: FetchErrorKind
    message: str

    def to_dict(self) -> dict:
        return {
            "target": self.target.describe(),
            "category": self.target.category,
            "kind": self.kind.value,
            "message": self.message,
        }


@dataclass
class CategoryStats:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {"attempted": self.attempted, "succeeded": self.succeeded, "failed": self.failed}


@dataclass
class CrawlResult:
    """Aggregate outcome of one crawl run."""

    started_at: datetime
    finished_at: datetime | None = None
    records: list[Record] = field(default_factory=list)
    failures: list[FailedTarget] = field(default_factory=list)
    categories: dict[str, CategoryStats] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return sum(s.succeeded for s in self.categories.values())

    @property
    def failed(self) -> int:
        return sum(s.failed for s in self.categories.values())

    @property
    def pages_scraped(self) -> int:
        """Listing pages that produced at least one record."""
        return sum(
            s.succeeded for key, s in self.categories.items() if not key.startswith("direct:")
        )

    @property
    def duration_minutes(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds() / 60

    def stats_for(self, category: str) -> CategoryStats:
        return self.categories.setdefault(category, CategoryStats())
