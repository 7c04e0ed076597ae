"""Progress state of the crawl run currently (or most recently) in flight."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime


@dataclass
class CrawlStatus:
    """Single-writer progress state.

    The crawler owns the instance for the duration of a run and is the only
    writer; HTTP handlers and the CLI read it through ``snapshot()``.
    """

    is_running: bool = False
    progress: int = 0
    total_targets: int = 0
    completed_targets: int = 0
    total_categories: int = 0
    completed_categories: int = 0
    current_target: str = ""
    current_category: str = ""
    current_category_progress: str = ""
    products_found: int = 0
    medication_products: int = 0
    care_products: int = 0
    failed_targets: int = 0
    message: str = "Ready to start"
    start_time: datetime | None = None
    end_time: datetime | None = None
    statistics: dict = field(default_factory=dict)

    def reset(self, *, total_targets: int = 0, total_categories: int = 0) -> None:
        """Clear all counters and mark a new run as started."""
        fresh = CrawlStatus(
            is_running=True,
            total_targets=total_targets,
            total_categories=total_categories,
            message="Starting...",
            start_time=datetime.now(UTC),
        )
        self.__dict__.update(fresh.__dict__)

    def add_products(self, category: str, count: int) -> None:
        self.products_found += count
        if "medication" in category:
            self.medication_products += count
        elif "care-products" in category:
            self.care_products += count

    def target_done(self) -> None:
        """A direct lookup resolved, or a category finished paginating."""
        self.completed_targets += 1
        if self.total_targets:
            self.progress = min(99, round(self.completed_targets / self.total_targets * 100))

    def finish(self, message: str, statistics: dict | None = None) -> None:
        """Freeze the status at the end of a run."""
        self.is_running = False
        self.progress = 100
        self.end_time = datetime.now(UTC)
        self.message = message
        if statistics is not None:
            self.statistics = statistics

    def fail(self, message: str) -> None:
        self.is_running = False
        self.end_time = datetime.now(UTC)
        self.message = message

    def snapshot(self) -> dict:
        """Immutable, JSON-safe copy of the current state."""
        data = asdict(self)
        data["start_time"] = self.start_time.isoformat() if self.start_time else None
        data["end_time"] = self.end_time.isoformat() if self.end_time else None
        return data
