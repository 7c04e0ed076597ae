"""Extractor registry.

Extractors are auto-discovered from modules in this package. Any
`BaseExtractor` subclass with a `variant` attribute is registered under that
site variant.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil

from ..models import SiteVariant
from .base import BaseExtractor

__all__ = [
    "BaseExtractor",
    "get_extractor",
    "list_extractors",
]

logger = logging.getLogger(__name__)

_INFRASTRUCTURE_MODULES = {"base", "browser_pool", "challenge", "fetcher"}


def _discover_extractors() -> dict[SiteVariant, type[BaseExtractor]]:
    discovered: dict[SiteVariant, type[BaseExtractor]] = {}

    # Walk sibling modules under this package (aversi_scraper.scrapers.*).
    for module_info in pkgutil.iter_modules(__path__):  # type: ignore[name-defined]
        if module_info.ispkg:
            continue
        module_name = module_info.name
        if module_name.startswith("_") or module_name in _INFRASTRUCTURE_MODULES:
            continue

        module = importlib.import_module(f"{__name__}.{module_name}")
        for _, obj in inspect.getmembers(module, inspect.isclass):
            if obj is BaseExtractor or not issubclass(obj, BaseExtractor) or inspect.isabstract(obj):
                continue
            variant = getattr(obj, "variant", None)
            if not isinstance(variant, SiteVariant):
                continue

            if variant in discovered and discovered[variant] is not obj:
                logger.warning(
                    "Duplicate extractor for variant '%s': %s.%s and %s.%s (keeping first)",
                    variant.value,
                    discovered[variant].__module__,
                    discovered[variant].__name__,
                    obj.__module__,
                    obj.__name__,
                )
                continue
            discovered[variant] = obj

    missing = set(SiteVariant) - set(discovered)
    if missing:
        raise RuntimeError(f"No extractor registered for: {sorted(v.value for v in missing)}")
    return discovered


EXTRACTORS: dict[SiteVariant, type[BaseExtractor]] = _discover_extractors()


def get_extractor(variant: SiteVariant | str) -> BaseExtractor:
    """Get an extractor instance for a site variant."""
    try:
        key = SiteVariant(variant)
    except ValueError:
        available = ", ".join(v.value for v in EXTRACTORS)
        raise ValueError(f"Unknown site variant: {variant!r}. Available: {available}") from None
    return EXTRACTORS[key]()


def list_extractors() -> list[str]:
    """List registered site variants."""
    return [v.value for v in EXTRACTORS]
