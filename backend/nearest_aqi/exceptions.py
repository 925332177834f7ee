# backend/nearest_aqi/exceptions.py
from typing import Optional


class AirQualityServiceError(Exception):
    """Base exception for the nearest-station air quality service."""

    status_code = 500


class InvalidCoordinateError(AirQualityServiceError):
    """Raised when the request coordinate is missing or malformed."""

    status_code = 400


class ServiceNotConfiguredError(AirQualityServiceError):
    """Raised when the upstream API key is missing. Not retryable."""

    status_code = 503

    def __init__(self, message: str = "OpenAQ API key not configured"):
        super().__init__(message)


class ResolutionTimeoutError(AirQualityServiceError):
    """Raised when a resolution exceeds its wall-clock budget."""

    status_code = 503


class UpstreamError(AirQualityServiceError):
    """
    Raised when OpenAQ answers with a non-success status or cannot be reached.

    `upstream_status` is None for transport failures (connection errors, timeouts).
    """

    status_code = 502

    def __init__(self, upstream_status: Optional[int], body: str = ""):
        self.upstream_status = upstream_status
        self.body = body
        if upstream_status is None:
            message = "OpenAQ request failed"
        else:
            message = f"OpenAQ returned {upstream_status}"
        super().__init__(message)
