"""
Pytest configuration and shared fixtures for the nearest-station AQI tests.

Provides a fake station directory that records every upstream call, plus small
factories for stations and raw readings placed at a given distance from a user,
and a fake aiohttp session for exercising the OpenAQ client offline.
"""

import json
from datetime import datetime, timedelta, timezone
from math import cos, radians
from typing import Dict, List, Optional

import pytest

from nearest_aqi.exceptions import UpstreamError
from nearest_aqi.models import Coordinate, RawReading, SensorDescriptor, Station

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
LOS_ANGELES = Coordinate(latitude=34.0522, longitude=-118.2437)

# Default sensor ids used by make_station
SENSOR_IDS = {"pm25": 1, "pm10": 2, "o3": 3, "no2": 4, "so2": 5, "co": 6}
PARAMETER_LABELS = {
    "pm25": ("pm25", "µg/m³"),
    "pm10": ("pm10", "µg/m³"),
    "o3": ("o3", "ppm"),
    "no2": ("no2", "ppm"),
    "so2": ("so2", "ppm"),
    "co": ("co", "ppm"),
}


def point_north_of(origin: Coordinate, km: float) -> Coordinate:
    """A coordinate `km` kilometers due north of origin (haversine radius 6371 km)."""
    return Coordinate(latitude=origin.latitude + km / 111.19492664455873, longitude=origin.longitude)


def point_east_of(origin: Coordinate, km: float) -> Coordinate:
    return Coordinate(
        latitude=origin.latitude,
        longitude=origin.longitude + km / (111.19492664455873 * cos(radians(origin.latitude))),
    )


def make_station(
    station_id,
    km: float = 10.0,
    origin: Coordinate = LOS_ANGELES,
    pollutants=("pm25",),
    last_observed: Optional[datetime] = NOW,
    last_observed_local: Optional[datetime] = None,
    name: Optional[str] = None,
) -> Station:
    sensors = [
        SensorDescriptor(sensor_id=SENSOR_IDS[p], parameter_name=PARAMETER_LABELS[p][0], unit=PARAMETER_LABELS[p][1])
        for p in pollutants
    ]
    return Station(
        id=station_id,
        name=name or f"Station {station_id}",
        coordinate=point_north_of(origin, km),
        sensors=sensors,
        last_observed_utc=last_observed,
        last_observed_local=last_observed_local,
    )


def make_readings(values: Dict[str, Optional[float]], observed_at: Optional[datetime] = NOW) -> List[RawReading]:
    return [
        RawReading(sensor_id=SENSOR_IDS[p], value=v, observed_at=observed_at)
        for p, v in values.items()
    ]


class FakeDirectory:
    """
    In-memory StationDirectory.

    `stations_by_radius` maps a radius in km to the stations returned for it;
    `latest` maps a station id to its raw readings, or to an Exception to raise.
    Every call is appended to `calls` in order.
    """

    def __init__(self, stations_by_radius=None, latest=None, directory_error: Optional[Exception] = None):
        self.stations_by_radius = stations_by_radius or {}
        self.latest = latest or {}
        self.directory_error = directory_error
        self.calls = []

    async def find_stations(self, coordinate, radius_m, limit):
        self.calls.append(("find_stations", radius_m))
        if self.directory_error is not None:
            raise self.directory_error
        return list(self.stations_by_radius.get(radius_m / 1000, []))

    async def latest_readings(self, station_id):
        self.calls.append(("latest_readings", station_id))
        outcome = self.latest.get(station_id, [])
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)

    @property
    def readings_calls(self):
        return [station_id for name, station_id in self.calls if name == "latest_readings"]

    @property
    def radii_queried_km(self):
        return [radius_m / 1000 for name, radius_m in self.calls if name == "find_stations"]


# ==================== Fake aiohttp session ====================

class FakeResponse:
    """aiohttp response stand-in. Without a payload, `json()` decodes the text body."""

    def __init__(self, status=200, payload=None, text=""):
        self.status = status
        self._payload = payload
        self._text = text

    async def text(self):
        return self._text

    async def json(self, content_type="application/json"):
        if self._payload is None:
            return json.loads(self._text)
        return self._payload


class FakeRequestContext:
    def __init__(self, response=None, error=None):
        self._response = response
        self._error = error

    async def __aenter__(self):
        if self._error is not None:
            raise self._error
        return self._response

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.requests = []
        self.closed = False

    def get(self, url, params=None, headers=None):
        self.requests.append({"url": url, "params": params, "headers": headers})
        outcome = self._responses.pop(0)
        if isinstance(outcome, Exception):
            return FakeRequestContext(error=outcome)
        return FakeRequestContext(response=outcome)

    async def close(self):
        self.closed = True


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "scenario: end-to-end resolution scenarios"
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def user():
    return LOS_ANGELES


@pytest.fixture
def upstream_500():
    return UpstreamError(500, "Internal Server Error")
