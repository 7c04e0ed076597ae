"""Enumerate crawl targets: direct MatID lookups and category listings."""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable
from urllib.parse import unquote, urljoin, urlsplit

from bs4 import BeautifulSoup

from .errors import SetupFailure
from .models import CategoryConfig, DirectLookup, SiteVariant, Target

logger = logging.getLogger(__name__)

CATEGORY_INDEX_URL = "https://shop.aversi.ge/ka/"
CATEGORY_LINK_SELECTOR = ".ty-menu__submenu-item .ty-menu__submenu-link"

# MatIDs that only exist on the legacy aversi.ge site.
LEGACY_MATIDS = [
    90414, 36365, 77087, 138462, 9321, 28558, 79097, 999, 469, 15222,
    42353, 6669, 2807, 36357, 36356, 292, 125745, 86380, 80616,
    82920, 135757, 134837, 4628, 29687, 22836, 148602, 50631, 80568, 72737,
]

# MatIDs looked up through the shop.aversi.ge redirect endpoint.
CURRENT_MATIDS = [
    840, 1430, 96491, 66872, 14893, 65022, 10337, 23566,
    134819, 25699, 65244, 22390, 82202, 97431, 25015, 127792, 571, 14668, 14666,
    36919, 5724, 15945, 28072, 28137, 26991, 128831,
    8311, 75884, 77116, 66869, 80418, 80416, 85636, 97628, 89579,
    89581, 71410, 50033, 89966, 29621, 70160, 146981, 90147, 7216, 90116,
    89049, 71587, 76882, 84113, 66145, 85390, 32261, 796,
    427, 76435, 71524, 52533, 147086, 24964, 81341, 146583, 68526, 129110,
    129109, 95878, 42301, 85354, 97659, 42547, 80464, 65449, 65465,
    93761, 2618, 347, 97808, 49372, 9486, 1365, 2131, 17186, 77882,
    89108, 89061, 37891, 82964, 126938, 133507, 86790, 14098, 1534, 87241,
    42036, 83338, 92818, 135572, 91694, 78392, 83452, 95782, 88777, 97200, 70560,
    74765, 74767, 129957, 69013, 137348, 72396, 82695, 82526, 76144, 55076,
    125736, 69624, 93324, 13017, 88254, 49841, 145, 873, 6129, 88327,
    12388, 136440, 136441, 12887, 75821, 72031, 30485, 2341, 80576, 97027, 73779,
    134314, 19506, 75905, 78423, 140424, 129333, 75826, 11539, 8393,
    69931, 93447, 31021, 89843, 92644, 80585, 130112, 143475, 11687, 66041,
    77717, 123743, 73959, 92272, 128592, 97272, 29131, 130768, 3718, 8356,
    71104, 11267, 126930, 80636, 96760, 23848, 17152, 86364, 86363, 96475,
    130115, 89377, 26984, 74264, 6932, 90846, 82865, 82091, 72222, 51799,
    38642, 97178, 97179, 86381, 97180, 37399, 78125, 74768, 143132, 661,
    1466, 82756,
]

STATIC_CATEGORIES = [
    CategoryConfig("https://shop.aversi.ge/ka/medication/მედიკამენტები-სხვადასხვა/", 1, 12, 192),
    CategoryConfig("https://shop.aversi.ge/ka/medication/homeopathic-remedies/", 1, 12, 192),
    CategoryConfig("https://shop.aversi.ge/ka/medication/for-cardiovascular-diseases/pressure-regulators/", 1, 20, 24),
    CategoryConfig("https://shop.aversi.ge/ka/medication/various-medicinal-products/", 1, 12, 192),
    CategoryConfig("https://shop.aversi.ge/ka/care-products/child-care/child-care-hygiene-products/", 1, 12, 192),
    CategoryConfig("https://shop.aversi.ge/ka/care-products/oral-care/", 1, 12, 192),
    CategoryConfig("https://shop.aversi.ge/ka/care-products/skin-care-products/", 1, 12, 192),
    CategoryConfig("https://shop.aversi.ge/ka/medication/drugs-stimulating-the-production-of-blood-cells/", 1, 12, 192),
    CategoryConfig("https://shop.aversi.ge/ka/care-products/deodorant-antiperspirant/", 1, 12, 192),
    CategoryConfig("https://shop.aversi.ge/ka/care-products/oral-care/toothpaste/", 1, 12, 192),
    CategoryConfig("https://shop.aversi.ge/ka/care-products/oral-care/denture-adhesive/", 1, 12, 192),
    CategoryConfig("https://shop.aversi.ge/ka/medication/care-items-and-products/care-products-and-equipment/", 1, 12, 192),
    CategoryConfig("https://shop.aversi.ge/ka/care-products/skin-care-products/skin-care-products-ka-17/", 1, 12, 192),
    CategoryConfig("https://shop.aversi.ge/ka/care-products/skin-care-products/skin-care-products-ka-13/", 1, 12, 192),
]

# Menu links that break listing pagination at the default page size; each has a static descriptor.
DISCOVERY_DENY_LIST = {
    "https://shop.aversi.ge/ka/medication/for-cardiovascular-diseases/pressure-regulators/",
}

DISCOVERED_PAGE_RANGE = (1, 50)
DISCOVERED_PAGE_SIZE = 192

IndexFetcher = Callable[[str], Awaitable[str]]


def normalize_category_url(url: str) -> str:
    """Canonical form used to deduplicate categories (case-folded host, decoded path, trailing slash)."""
    parts = urlsplit(url.strip())
    path = unquote(parts.path or "/")
    if not path.endswith("/"):
        path += "/"
    return f"{parts.scheme.lower() or 'https'}://{parts.netloc.lower()}{path}"


def dedupe_categories(categories: list[CategoryConfig]) -> list[CategoryConfig]:
    """Drop later categories whose normalized URL was already seen."""
    seen: set[str] = set()
    unique: list[CategoryConfig] = []
    for config in categories:
        key = normalize_category_url(config.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(config)
    return unique


def parse_category_links(
    html: str,
    *,
    base_url: str = CATEGORY_INDEX_URL,
    path_pattern: str = r"/ka/medication/",
    deny_list: set[str] | frozenset[str] = frozenset(DISCOVERY_DENY_LIST),
) -> list[CategoryConfig]:
    """Read category links out of the shop's navigation menu."""
    soup = BeautifulSoup(html, "lxml")
    denied = {normalize_category_url(u) for u in deny_list}
    pattern = re.compile(path_pattern)
    start, end = DISCOVERED_PAGE_RANGE

    categories: list[CategoryConfig] = []
    for link in soup.select(CATEGORY_LINK_SELECTOR):
        href = (link.get("href") or "").strip()
        if not href:
            continue
        url = urljoin(base_url, href)
        if "/ka/" not in url or not pattern.search(unquote(url)):
            continue
        if normalize_category_url(url) in denied:
            continue
        categories.append(CategoryConfig(url, start, end, DISCOVERED_PAGE_SIZE))
    return categories


class TargetEnumerator:
    """Builds the ordered work list for one crawl run."""

    def __init__(
        self,
        *,
        fetch_index: IndexFetcher | None = None,
        legacy_ids: list[int] | None = None,
        current_ids: list[int] | None = None,
        static_categories: list[CategoryConfig] | None = None,
        index_url: str = CATEGORY_INDEX_URL,
        include_direct_lookups: bool = True,
    ):
        self.fetch_index = fetch_index
        self.legacy_ids = LEGACY_MATIDS if legacy_ids is None else legacy_ids
        self.current_ids = CURRENT_MATIDS if current_ids is None else current_ids
        self.static_categories = STATIC_CATEGORIES if static_categories is None else static_categories
        self.index_url = index_url
        self.include_direct_lookups = include_direct_lookups
        self.resolved_categories: list[CategoryConfig] = []

    def direct_lookups(self) -> list[DirectLookup]:
        if not self.include_direct_lookups:
            return []
        return [DirectLookup(i, SiteVariant.LEGACY) for i in self.legacy_ids] + [
            DirectLookup(i, SiteVariant.CURRENT) for i in self.current_ids
        ]

    async def discover_categories(self) -> list[CategoryConfig]:
        """Scrape the navigation menu for categories; returns [] on any failure."""
        if self.fetch_index is None:
            return []
        try:
            html = await self.fetch_index(self.index_url)
            discovered = parse_category_links(html, base_url=self.index_url)
        except SetupFailure:
            raise
        except Exception as e:
            logger.warning(f"[targets] Category discovery failed, using static list only: {e}")
            return []
        logger.info(f"[targets] Found {len(discovered)} categories from dynamic scraping")
        return discovered

    async def categories(self) -> list[CategoryConfig]:
        categories = dedupe_categories([*await self.discover_categories(), *self.static_categories])
        logger.info(f"[targets] {len(categories)} unique categories after deduplication")
        return categories

    async def enumerate(self) -> list[Target]:
        """Direct lookups first, then the first page of every category in descriptor order.

        Later pages are spawned by the crawler as each listing page succeeds.
        """
        self.resolved_categories = await self.categories()
        targets: list[Target] = [*self.direct_lookups()]
        targets.extend(config.first_target() for config in self.resolved_categories)
        return targets
