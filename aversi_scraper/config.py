"""Crawl policy settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from .models import SiteVariant

REPO_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Upgrade-Insecure-Requests": "1",
}


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class CrawlSettings:
    """All timing and browser policy for one crawl run. Durations are in milliseconds."""

    navigation_timeout_ms: int = 60000
    challenge_timeout_ms: int = 30000
    challenge_settle_ms: int = 3000
    post_load_delay_ms: dict[SiteVariant, int] = field(
        default_factory=lambda: {SiteVariant.LEGACY: 2000, SiteVariant.CURRENT: 3000}
    )
    request_delay_ms: int = 3000
    fetch_retries: int = 0
    retry_backoff_ms: int = 5000

    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    viewport: dict[str, int] = field(default_factory=lambda: {"width": 1920, "height": 1080})
    locale: str = "en-US"
    extra_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))

    discover_categories: bool = True
    include_direct_lookups: bool = True

    output_dir: Path = REPO_ROOT / "output"

    @property
    def scratch_dir(self) -> Path:
        return self.output_dir / "temp"

    @property
    def debug_dir(self) -> Path:
        return self.output_dir / "debug"

    @property
    def data_dir(self) -> Path:
        return self.output_dir / "data"

    def wait_until(self, variant: SiteVariant) -> str:
        # The legacy site keeps long-polling connections open, so networkidle never fires there.
        return "domcontentloaded" if variant is SiteVariant.LEGACY else "networkidle"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> CrawlSettings:
        """Build settings from defaults overlaid with AVERSI_* environment variables."""
        env = os.environ if environ is None else environ
        settings = cls()
        overrides: dict[str, object] = {}
        if value := env.get("AVERSI_OUTPUT_DIR"):
            overrides["output_dir"] = Path(value)
        if value := env.get("AVERSI_HEADLESS"):
            overrides["headless"] = _env_bool(value)
        if value := env.get("AVERSI_REQUEST_DELAY_MS"):
            overrides["request_delay_ms"] = int(value)
        if value := env.get("AVERSI_FETCH_RETRIES"):
            overrides["fetch_retries"] = int(value)
        if value := env.get("AVERSI_DISCOVER_CATEGORIES"):
            overrides["discover_categories"] = _env_bool(value)
        return replace(settings, **overrides) if overrides else settings
