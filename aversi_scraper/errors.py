"""Exceptions raised by the crawl pipeline."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Target


class FetchErrorKind(str, Enum):
    NAVIGATION_TIMEOUT = "navigation_timeout"
    NETWORK = "network"
    BLOCKED_BY_ORIGIN = "blocked_by_origin"
    EXTRACTION_EMPTY = "extraction_empty"

    @property
    def retryable(self) -> bool:
        return self in (FetchErrorKind.NAVIGATION_TIMEOUT, FetchErrorKind.NETWORK)


class FetchError(Exception):
    """A single target could not be turned into a usable document."""

    def __init__(self, kind: FetchErrorKind, target: Target, message: str):
        super().__init__(f"{kind.value}: {target.describe()}: {message}")
        self.kind = kind
        self.target = target
        self.message = message


class SetupFailure(Exception):
    """The browser could not be started at all; fatal to the whole run."""


class CrawlAlreadyRunning(Exception):
    """A second run was requested while one is in flight."""


class CrawlCancelled(Exception):
    """The run was cancelled at a suspension point."""
