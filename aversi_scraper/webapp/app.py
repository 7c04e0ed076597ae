"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..config import CrawlSettings
from ..service import CrawlService
from .routes import router


def create_app(service: CrawlService | None = None, settings: CrawlSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    crawl_service = service or CrawlService(settings or CrawlSettings.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan - clean scratch space, stop a running crawl on exit."""
        crawl_service.scratch.clear()
        yield
        if crawl_service.is_running:
            await crawl_service.stop()

    app = FastAPI(
        title="Aversi Pharmacy Scraper",
        description="Scrape product listings from aversi.ge and shop.aversi.ge",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.service = crawl_service
    app.include_router(router)

    return app
