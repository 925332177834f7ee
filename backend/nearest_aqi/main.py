# backend/nearest_aqi/main.py
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from datetime import timedelta
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Union
import logging
import asyncio
import uvicorn
from fastapi import Depends, FastAPI, Query, Request, status
from .config import Settings, get_settings
from .exceptions import (
    AirQualityServiceError,
    ResolutionTimeoutError,
    ServiceNotConfiguredError,
    UpstreamError,
)
from .models import Coordinate, EmptyResult, ErrorResponse, ResolvedAirQuality
from .openaq_client import OpenAQClient, StationDirectory
from .resolver import NearestStationResolver
from . import __version__

settings = get_settings()

# Setup logging
logging.basicConfig(level=settings.log_level.upper(), format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("API Startup: nearest-station AQI service starting...")
    if not get_settings().openaq_api_key:
        # Not fatal: requests get a 503 until the key is provided
        logger.warning("API Startup: OPENAQ_API_KEY is not set; air quality lookups will return 503.")
    yield
    logger.info("API Shutdown: nothing to clean up (no shared upstream connections).")


app = FastAPI(
    title="Nearest Station AQI API",
    description="Resolves the nearest active air-quality monitoring station for a coordinate and reports its latest readings and US AQI.",
    version=__version__,
    lifespan=lifespan,
)

# --- CORS Configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

API_PREFIX = "/api/v1"


# --- Error Handling ---

def error_response(status_code: int, error: str, detail: Optional[str] = None,
                   upstream_status: Optional[int] = None) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail, upstream_status=upstream_status)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Missing or malformed lat/lon is a client error (400), not 422
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'query')}: {err.get('msg')}"
        for err in exc.errors()
    )
    logger.info(f"Rejected request {request.url.path}: {problems}")
    return error_response(status.HTTP_400_BAD_REQUEST, "lat and lon required and must be valid coordinates", problems)


@app.exception_handler(UpstreamError)
async def upstream_exception_handler(request: Request, exc: UpstreamError):
    logger.error(f"Upstream failure for {request.url.path}: {exc} {exc.body[:200]!r}")
    return error_response(exc.status_code, str(exc), exc.body, exc.upstream_status)


@app.exception_handler(AirQualityServiceError)
async def service_exception_handler(request: Request, exc: AirQualityServiceError):
    logger.error(f"Request {request.url.path} failed: {exc}")
    return error_response(exc.status_code, str(exc))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error handling {request.url.path}: {exc}", exc_info=True)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or exc.__class__.__name__)


# --- Dependencies ---

async def get_station_directory(
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[Optional[StationDirectory]]:
    """
    Yields an OpenAQ client for the duration of one request, or None when the API
    key is missing. The endpoint reports the missing key so that input validation
    errors still take precedence.
    """
    if not settings.openaq_api_key:
        yield None
        return
    async with OpenAQClient(
        settings.openaq_api_key,
        base_url=settings.openaq_base_url,
        request_timeout=settings.openaq_request_timeout,
    ) as client:
        yield client


def build_resolver(directory: StationDirectory, settings: Settings) -> NearestStationResolver:
    return NearestStationResolver(
        directory,
        search_radii_km=settings.search_radii_km,
        candidates_per_radius=settings.candidates_per_radius,
        station_limit=settings.station_limit,
        active_window=timedelta(days=settings.active_window_days),
        freshness=timedelta(hours=settings.freshness_hours),
    )


# --- API Endpoints ---

@app.get(
    f"{API_PREFIX}/air_quality/nearest",
    response_model=Union[ResolvedAirQuality, EmptyResult],
    responses={
        400: {"model": ErrorResponse, "description": "Missing or invalid coordinates."},
        502: {"model": ErrorResponse, "description": "OpenAQ station directory failed."},
        503: {"model": ErrorResponse, "description": "API key not configured, or lookup timed out."},
    },
    summary="Get Nearest Active Station Air Quality",
    description="Searches OpenAQ for active monitoring stations within 25, 50 and then 100 km, tries the closest few in order and returns the first one reporting fresh PM2.5 or O3, with a US AQI computed from PM2.5. Returns {\"stations\": []} when nothing suitable is found."
)
async def get_nearest_air_quality(
    lat: float = Query(..., ge=-90, le=90, description="Latitude of the user location."),
    lon: float = Query(..., ge=-180, le=180, description="Longitude of the user location."),
    directory: Optional[StationDirectory] = Depends(get_station_directory),
    settings: Settings = Depends(get_settings),
):
    logger.info(f"Request for nearest station air quality: lat={lat}, lon={lon}")
    if directory is None:
        raise ServiceNotConfiguredError()

    coordinate = Coordinate(latitude=lat, longitude=lon)
    resolver = build_resolver(directory, settings)
    try:
        result = await asyncio.wait_for(resolver.resolve(coordinate), timeout=settings.resolve_timeout_seconds)
    except asyncio.TimeoutError:
        raise ResolutionTimeoutError(
            f"Air quality lookup timed out after {settings.resolve_timeout_seconds:g} seconds"
        )

    if result is None:
        logger.info(f"No station found for {lat},{lon}. Returning empty result.")
        return JSONResponse(
            content=EmptyResult().model_dump(mode="json"),
            headers={"Cache-Control": f"public, max-age={settings.empty_cache_max_age}"},
        )

    return JSONResponse(
        content=result.model_dump(mode="json", by_alias=True),
        headers={"Cache-Control": f"public, max-age={settings.cache_max_age}"},
    )


# --- Basic Root Endpoint ---
@app.get("/", summary="Root Endpoint", description="Basic API information.")
async def read_root():
    return {
        "message": "Nearest Station AQI API",
        "version": __version__,
        "docs": "/docs",
        "endpoints": [f"{API_PREFIX}/air_quality/nearest"],
    }


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=settings.log_level.lower())
