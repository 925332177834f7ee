# backend/nearest_aqi/openaq_client.py
import asyncio
import logging
from datetime import datetime
from math import isfinite
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from .exceptions import ServiceNotConfiguredError, UpstreamError
from .models import Coordinate, RawReading, SensorDescriptor, Station, StationId

logger = logging.getLogger(__name__)

OPENAQ_BASE_URL = "https://api.openaq.org/v3"
DEFAULT_STATION_NAME = "EPA Monitor"


class StationDirectory(Protocol):
    """What the resolver needs from an upstream station source."""

    async def find_stations(self, coordinate: Coordinate, radius_m: int, limit: int) -> List[Station]:
        ...

    async def latest_readings(self, station_id: StationId) -> List[RawReading]:
        ...


# --- Payload parsing ---
# OpenAQ payloads are not trusted: wrong-typed fields are treated as missing.

def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _items(value: Any) -> List[Dict[str, Any]]:
    """Dict entries of a list field; anything else yields nothing."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _identifier(value: Any) -> Optional[StationId]:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    return value


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parses an ISO-8601 timestamp (trailing 'Z' allowed). Returns None if missing or malformed."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Ignoring malformed timestamp from OpenAQ: {value!r}")
        return None


def _station_coordinate(raw: Dict[str, Any]) -> Optional[Coordinate]:
    coords = _mapping(raw.get("coordinates"))
    lat = coords.get("latitude", raw.get("lat"))
    lon = coords.get("longitude", raw.get("lon"))
    if lat is None or lon is None:
        return None
    try:
        return Coordinate(latitude=float(lat), longitude=float(lon))
    except (TypeError, ValueError):
        return None


def _parse_sensor(raw: Dict[str, Any]) -> Optional[SensorDescriptor]:
    sensor_id = _identifier(raw.get("id"))
    if sensor_id is None:
        return None
    parameter = _mapping(raw.get("parameter"))
    return SensorDescriptor(
        sensor_id=sensor_id,
        parameter_name=_text(parameter.get("name")) or _text(raw.get("name")),
        unit=_text(parameter.get("units")),
    )


def parse_station(raw: Any) -> Optional[Station]:
    """Builds a Station from one OpenAQ /locations result. Returns None when id or coordinates are missing."""
    if not isinstance(raw, dict):
        return None
    station_id = _identifier(raw.get("id"))
    coordinate = _station_coordinate(raw)
    if station_id is None or coordinate is None:
        logger.debug(f"Skipping OpenAQ location without id/coordinates: {raw.get('id')!r}")
        return None

    last = _mapping(raw.get("datetimeLast"))
    sensors = [s for s in (_parse_sensor(item) for item in _items(raw.get("sensors"))) if s is not None]
    return Station(
        id=station_id,
        name=_text(raw.get("name")) or DEFAULT_STATION_NAME,
        coordinate=coordinate,
        sensors=sensors,
        last_observed_utc=parse_timestamp(last.get("utc")),
        last_observed_local=parse_timestamp(last.get("local")),
    )


def parse_latest(raw: Any) -> Optional[RawReading]:
    """Builds a RawReading from one OpenAQ /locations/{id}/latest result."""
    if not isinstance(raw, dict):
        return None
    sensor_id = _identifier(raw.get("sensorsId", raw.get("sensorId")))
    if sensor_id is None:
        return None
    observed = _mapping(raw.get("datetime"))
    value = raw.get("value")
    try:
        value = float(value) if value is not None and not isinstance(value, bool) else None
    except (TypeError, ValueError):
        value = None
    if value is not None and not isfinite(value):
        value = None
    return RawReading(
        sensor_id=sensor_id,
        value=value,
        observed_at=parse_timestamp(observed.get("utc")) or parse_timestamp(observed.get("local")),
    )


# --- Client ---

class OpenAQClient:
    """
    Thin async client for the two OpenAQ v3 endpoints the resolver uses.

    Use as an async context manager. A session passed in by the caller is borrowed
    and left open; otherwise the client owns its own aiohttp session.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = OPENAQ_BASE_URL,
        request_timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        if not api_key:
            raise ServiceNotConfiguredError()
        self._base_url = base_url.rstrip("/")
        self._headers = {"X-API-Key": api_key, "Accept": "application/json"}
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "OpenAQClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if self._session is None:
            raise RuntimeError("OpenAQClient must be used inside 'async with'")
        url = f"{self._base_url}{path}"
        logger.debug(f"OpenAQ GET {url} params={params}")
        try:
            async with self._session.get(url, params=params, headers=self._headers) as response:
                if response.status < 200 or response.status >= 300:
                    body = await response.text()
                    logger.warning(f"OpenAQ returned {response.status} for {path}")
                    raise UpstreamError(response.status, body)
                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    logger.warning(f"OpenAQ returned invalid JSON for {path}: {e}")
                    raise UpstreamError(response.status, "invalid JSON") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"OpenAQ request to {path} failed: {e!r}")
            raise UpstreamError(None, str(e) or e.__class__.__name__) from e

        if not isinstance(payload, dict):
            logger.warning(f"OpenAQ returned an unexpected payload for {path}: {type(payload).__name__}")
            raise UpstreamError(response.status, "unexpected payload")
        return payload

    async def find_stations(self, coordinate: Coordinate, radius_m: int, limit: int) -> List[Station]:
        params = {
            "coordinates": f"{coordinate.latitude},{coordinate.longitude}",
            "radius": int(radius_m),
            "limit": int(limit),
        }
        data = await self._get_json("/locations", params=params)
        stations = [s for s in (parse_station(item) for item in _items(data.get("results"))) if s is not None]
        logger.debug(f"OpenAQ returned {len(stations)} stations within {radius_m} m")
        return stations

    async def latest_readings(self, station_id: StationId) -> List[RawReading]:
        data = await self._get_json(f"/locations/{station_id}/latest")
        return [r for r in (parse_latest(item) for item in _items(data.get("results"))) if r is not None]
