"""FastAPI routes for the webapp."""

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, JSONResponse

from ..errors import CrawlAlreadyRunning, SetupFailure
from ..export import PRODUCTS_JSON, PRODUCTS_XLSX, load_products
from ..service import CrawlService

router = APIRouter()

PREVIEW_LIMIT = 100


def get_service(request: Request) -> CrawlService:
    """Get crawl service instance from app state."""
    return request.app.state.service


@router.get("/")
async def index():
    return {
        "service": "Aversi Pharmacy Scraper",
        "endpoints": {
            "GET /aversi": "Start scraping",
            "GET /aversi/status": "Check scraping status",
            "GET /aversi/data": "Get scraped data",
            "GET /aversi/download/json": "Download JSON file",
            "GET /aversi/download/excel": "Download Excel file",
        },
    }


@router.api_route("/aversi", methods=["GET", "POST"])
async def start_scraping(request: Request):
    """Start a crawl in the background and return the resolved work list."""
    service = get_service(request)
    try:
        targets, categories = await service.start()
    except CrawlAlreadyRunning as e:
        return JSONResponse(
            status_code=400,
            content={"error": str(e), "status": service.status.snapshot()},
        )
    except SetupFailure as e:
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to start scraping", "details": str(e)},
        )

    return {
        "message": f"Found {len(categories)} categories. Scraping started.",
        "targets": [t.describe() for t in targets],
        "categories": [c.to_dict() for c in categories],
        "status": service.status.snapshot(),
    }


@router.get("/aversi/status")
async def scraping_status(request: Request):
    return get_service(request).status.snapshot()


@router.get("/aversi/data")
async def scraped_data(request: Request):
    """Preview of the most recent run's persisted products."""
    data = load_products(get_service(request).settings.data_dir)
    if data is None:
        return JSONResponse(
            status_code=404,
            content={"success": False, "message": "No data available. Please run the scraper first."},
        )
    return {
        "success": True,
        "count": len(data),
        "products": data[:PREVIEW_LIMIT],
        "message": f"Showing first {min(PREVIEW_LIMIT, len(data))} of {len(data)} products",
    }


def _download(request: Request, filename: str, media_type: str):
    path = get_service(request).settings.data_dir / filename
    if not path.exists():
        return JSONResponse(status_code=404, content={"error": "File not found"})
    return FileResponse(path, media_type=media_type, filename=filename)


@router.get("/aversi/download/json")
async def download_json(request: Request):
    return _download(request, PRODUCTS_JSON, "application/json")


@router.get("/aversi/download/excel")
async def download_excel(request: Request):
    return _download(
        request,
        PRODUCTS_XLSX,
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
