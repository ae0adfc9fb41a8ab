"""
Main FastAPI application with all endpoints.
"""

import logging

from fastapi import FastAPI, HTTPException, Depends, Query, Request, status
from fastapi.responses import JSONResponse, FileResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from typing import Optional, List

from database import get_db, init_db
from models import (
    CountryResponse,
    StatusResponse,
    RefreshResponse,
    MessageResponse,
    ErrorResponse,
    ValidationErrorResponse,
)
from exceptions import CountryAPIError, CountryNotFound
from estimator import build_multiplier
from image_generator import SummaryRenderer, get_image_path
from refresh import RefreshOrchestrator
from sources import SourceFetcher
from store import CatalogStore, SQLCatalogStore
from config import settings, validate_settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="RESTful API for country data, currencies, and exchange rates"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============= Error Handlers =============

@app.exception_handler(CountryAPIError)
async def country_api_error_handler(request: Request, exc: CountryAPIError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content)


# ============= Dependencies =============

def get_store(db: Session = Depends(get_db)) -> CatalogStore:
    return SQLCatalogStore(db)


def get_fetcher() -> SourceFetcher:
    return SourceFetcher(
        countries_url=settings.COUNTRIES_API_URL,
        rates_url=settings.EXCHANGE_RATE_API_URL,
        timeout=settings.FETCH_TIMEOUT_SECONDS,
    )


def get_renderer() -> SummaryRenderer:
    return SummaryRenderer(settings.IMAGE_PATH)


def get_orchestrator(
    store: CatalogStore = Depends(get_store),
    fetcher: SourceFetcher = Depends(get_fetcher),
    renderer: SummaryRenderer = Depends(get_renderer),
) -> RefreshOrchestrator:
    return RefreshOrchestrator(
        store=store,
        fetcher=fetcher,
        renderer=renderer,
        multiplier=build_multiplier(settings),
    )


# ============= Endpoints =============
# IMPORTANT: Specific routes MUST come before wildcard routes

@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "endpoints": {
            "POST /countries/refresh": "Fetch and cache country data",
            "GET /countries": "Get all countries (supports filters and sorting)",
            "GET /countries/image": "Get summary image",
            "GET /countries/{name}": "Get specific country by name",
            "DELETE /countries/{name}": "Delete a country",
            "GET /status": "Get total countries and last refresh timestamp",
            "/docs": "Interactive API documentation"
        }
    }


@app.get("/status", response_model=StatusResponse)
async def get_status(store: CatalogStore = Depends(get_store)):
    """
    Get total number of countries and last refresh timestamp.

    Returns:
        StatusResponse with total countries and last refresh time
    """
    total, last_refresh = store.status()
    return StatusResponse(
        total_countries=total,
        last_refreshed_at=last_refresh
    )


# POST /countries/refresh - MUST be before /{name}
@app.post(
    "/countries/refresh",
    response_model=RefreshResponse,
    status_code=status.HTTP_200_OK,
    responses={409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def refresh_countries(orchestrator: RefreshOrchestrator = Depends(get_orchestrator)):
    """
    Fetch all countries and exchange rates, then cache them in database.

    503 when either source is unavailable (nothing written), 409 when a
    refresh is already running, 500 on any other failure.
    """
    result = await orchestrator.run()

    return RefreshResponse(
        message="Countries refreshed successfully",
        total_countries=result.total_saved,
        last_refreshed_at=result.last_refreshed_at,
        image_generated=result.image_generated,
    )


# GET /countries/image - MUST be before /{name}
@app.get("/countries/image", responses={404: {"model": ErrorResponse}})
async def get_summary_image():
    """
    Serve the generated summary image.

    Returns:
        PNG image file

    Raises:
        404: If image not found
    """
    image_path = get_image_path(settings.IMAGE_PATH)

    if not image_path:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "Summary image not found"}
        )

    return FileResponse(
        image_path,
        media_type="image/png",
        filename=settings.IMAGE_FILE_NAME
    )


# GET /countries - MUST be before /{name}
@app.get("/countries", response_model=List[CountryResponse], responses={400: {"model": ValidationErrorResponse}})
async def get_countries(
    region: Optional[str] = Query(None, description="Filter by region (e.g., Africa, Europe)"),
    currency: Optional[str] = Query(None, description="Filter by currency code (e.g., NGN, USD)"),
    sort: Optional[str] = Query(None, description="Sort order: gdp_desc, gdp_asc, population_desc, population_asc, name_asc, name_desc"),
    store: CatalogStore = Depends(get_store)
):
    """
    Get all countries from database with optional filtering and sorting.

    Query Parameters:
        - region: Filter by region (case-insensitive)
        - currency: Filter by currency code (case-insensitive)
        - sort: Sort order
    """
    countries = store.list_countries(region=region, currency=currency, sort=sort)
    return [CountryResponse.model_validate(country) for country in countries]


# DELETE /countries/{name}
@app.delete("/countries/{name}", response_model=MessageResponse, responses={404: {"model": ErrorResponse}})
async def delete_country(name: str, store: CatalogStore = Depends(get_store)):
    """
    Delete a country by name (exact match first, then case-insensitive substring).

    Raises:
        404: If country not found
    """
    if not store.delete_by_name(name):
        raise CountryNotFound(name)

    return MessageResponse(message="Country deleted successfully")


# GET /countries/{name} - MUST be LAST (catches any country name)
@app.get("/countries/{name}", response_model=CountryResponse, responses={404: {"model": ErrorResponse}})
async def get_country(name: str, store: CatalogStore = Depends(get_store)):
    """
    Get a specific country by name (exact match first, then case-insensitive substring).

    Raises:
        404: If country not found
    """
    country = store.lookup(name)

    if not country:
        raise CountryNotFound(name)

    return CountryResponse.model_validate(country)


# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    validate_settings(settings)
    init_db()
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} starting")
    logger.info(f"Docs: http://127.0.0.1:{settings.PORT}/docs")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    logger.info(f"{settings.APP_NAME} shutting down")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=False  # No reload in production
    )
