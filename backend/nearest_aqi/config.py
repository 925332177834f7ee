# backend/nearest_aqi/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import List, Optional
import logging


class Settings(BaseSettings):
    # Explicit aliases keep the environment variable names stable even if fields get renamed.
    model_config = SettingsConfigDict(
        env_file='.env', env_file_encoding='utf-8', extra='ignore', populate_by_name=True
    )

    # OpenAQ upstream. No default key: a missing key means "service not configured".
    openaq_api_key: Optional[str] = Field(None, alias="OPENAQ_API_KEY")
    openaq_base_url: str = Field("https://api.openaq.org/v3", alias="OPENAQ_BASE_URL")
    openaq_request_timeout: float = Field(10.0, alias="OPENAQ_REQUEST_TIMEOUT", gt=0)

    # Wall-clock budget for one whole resolution (all radii, all candidates)
    resolve_timeout_seconds: float = Field(25.0, alias="AQI_RESOLVE_TIMEOUT", gt=0)

    # Station search policy
    search_radii_km: List[float] = Field([25.0, 50.0, 100.0], alias="AQI_SEARCH_RADII_KM")
    candidates_per_radius: int = Field(3, alias="AQI_CANDIDATES_PER_RADIUS", ge=1)
    station_limit: int = Field(100, alias="AQI_STATION_LIMIT", ge=1, le=1000)
    active_window_days: float = Field(7.0, alias="AQI_ACTIVE_WINDOW_DAYS", gt=0)
    freshness_hours: float = Field(6.0, alias="AQI_FRESHNESS_HOURS", gt=0)

    # Cache-Control max-age for downstream caches; empty results are cached longer
    cache_max_age: int = Field(900, alias="AQI_CACHE_MAX_AGE", ge=0)
    empty_cache_max_age: int = Field(1800, alias="AQI_EMPTY_CACHE_MAX_AGE", ge=0)

    cors_origins: List[str] = Field(
        [
            "http://localhost:3000",
            "http://localhost:4321",  # Astro dev server
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        alias="CORS_ORIGINS",
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL")


@lru_cache()
def get_settings() -> Settings:
    logger = logging.getLogger(__name__)
    logger.info("Loading settings...")
    return Settings()
