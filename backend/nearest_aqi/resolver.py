# backend/nearest_aqi/resolver.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from .geo import haversine_km
from .models import Coordinate, ResolvedAirQuality, Station
from .openaq_client import StationDirectory
from .station_fetcher import DEFAULT_FRESHNESS, fetch_station_readings

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_RADII_KM = (25.0, 50.0, 100.0)
DEFAULT_CANDIDATES_PER_RADIUS = 3
DEFAULT_STATION_LIMIT = 100
DEFAULT_ACTIVE_WINDOW = timedelta(days=7)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_station_active(station: Station, now: datetime, window: timedelta = DEFAULT_ACTIVE_WINDOW) -> bool:
    """A station is active if its self-reported last observation is no older than `window`."""
    last = station.last_observed
    if last is None:
        return False
    return now - last <= window


def filter_active(stations: List[Station], now: datetime, window: timedelta = DEFAULT_ACTIVE_WINDOW) -> List[Station]:
    return [s for s in stations if is_station_active(s, now, window)]


def rank_by_distance(stations: List[Station], origin: Coordinate) -> List[Station]:
    """Closest first. The sort is stable, so equidistant stations keep directory order."""
    return sorted(stations, key=lambda s: haversine_km(origin, s.coordinate))


class NearestStationResolver:
    """
    Finds the closest monitoring station that is both active and reporting fresh
    PM2.5 or O3, searching outward through fixed radius tiers.

    Upstream calls are strictly sequential: one directory query per tier, then
    candidates closest-first until one yields usable readings. Directory failures
    propagate (UpstreamError); per-station failures only eliminate that candidate.
    """

    def __init__(
        self,
        directory: StationDirectory,
        search_radii_km: Sequence[float] = DEFAULT_SEARCH_RADII_KM,
        candidates_per_radius: int = DEFAULT_CANDIDATES_PER_RADIUS,
        station_limit: int = DEFAULT_STATION_LIMIT,
        active_window: timedelta = DEFAULT_ACTIVE_WINDOW,
        freshness: timedelta = DEFAULT_FRESHNESS,
        clock: Callable[[], datetime] = utc_now,
    ):
        if not search_radii_km:
            raise ValueError("At least one search radius is required")
        self.directory = directory
        self.search_radii_km = tuple(search_radii_km)
        self.candidates_per_radius = candidates_per_radius
        self.station_limit = station_limit
        self.active_window = active_window
        self.freshness = freshness
        self.clock = clock

    async def resolve(self, coordinate: Coordinate) -> Optional[ResolvedAirQuality]:
        """Returns the resolved station readings, or None when no station qualifies."""
        # One instant for the whole resolution so both windows agree
        now = self.clock()

        for radius_km in self.search_radii_km:
            stations = await self.directory.find_stations(
                coordinate, radius_m=int(radius_km * 1000), limit=self.station_limit
            )
            active = filter_active(stations, now, self.active_window)
            logger.info(
                f"Radius {radius_km:g} km around ({coordinate.latitude},{coordinate.longitude}): "
                f"{len(stations)} stations, {len(active)} active"
            )
            if not active:
                continue

            for station in rank_by_distance(active, coordinate)[:self.candidates_per_radius]:
                logger.debug(f"Trying station {station.id} ({station.name})")
                result = await fetch_station_readings(
                    self.directory, station, coordinate, now, self.freshness
                )
                if result is not None:
                    logger.info(
                        f"Resolved station {station.id} ({station.name}) at {result.station.distance_mi} mi, "
                        f"AQI={result.aqi}"
                    )
                    return result

        logger.info(f"No active station with usable readings near ({coordinate.latitude},{coordinate.longitude})")
        return None
