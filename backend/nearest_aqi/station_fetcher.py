# backend/nearest_aqi/station_fetcher.py
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from .aqi import aqi_category, pm25_to_aqi, round_tenth
from .exceptions import UpstreamError
from .geo import distance_mi
from .models import Coordinate, Reading, ResolvedAirQuality, Station, StationSummary
from .openaq_client import StationDirectory
from .pollutants import GOVERNING_POLLUTANTS, KNOWN_POLLUTANTS, build_sensor_lookup

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS = timedelta(hours=6)


def assemble_readings(station: Station, raw_readings) -> Dict[str, Reading]:
    """
    Maps raw (sensor id, value, time) tuples to pollutant readings for one station.
    Readings from unknown or unnamed sensors, or with no value, are dropped; if a pollutant
    repeats, the last occurrence wins.
    """
    lookup = build_sensor_lookup(station)
    readings: Dict[str, Reading] = {}
    for raw in raw_readings:
        if raw.value is None:
            continue
        sensor = lookup.get(raw.sensor_id)
        if sensor is None:
            logger.debug(f"Station {station.id}: reading for unknown sensor {raw.sensor_id} ignored")
            continue
        pollutant, unit = sensor
        if not pollutant:
            logger.debug(f"Station {station.id}: sensor {raw.sensor_id} has no parameter name, reading ignored")
            continue
        if pollutant not in KNOWN_POLLUTANTS:
            logger.debug(f"Station {station.id}: keeping unmapped parameter '{pollutant}' as reported")
        readings[pollutant] = Reading(
            value=round_tenth(raw.value),
            unit=unit,
            last_updated=raw.observed_at,
        )
    return readings


def governing_reading(readings: Dict[str, Reading]) -> Optional[Reading]:
    """PM2.5 if present, else O3, else None."""
    for pollutant in GOVERNING_POLLUTANTS:
        if pollutant in readings:
            return readings[pollutant]
    return None


async def fetch_station_readings(
    directory: StationDirectory,
    station: Station,
    user_coordinate: Coordinate,
    now: datetime,
    freshness: timedelta = DEFAULT_FRESHNESS,
) -> Optional[ResolvedAirQuality]:
    """
    Fetches the latest readings of one candidate station and builds the resolved result.

    Returns None (never raises for upstream problems) when the station cannot be
    used: the readings call failed, neither PM2.5 nor O3 is reported, or the
    governing reading is older than `freshness`.
    """
    try:
        raw_readings = await directory.latest_readings(station.id)
    except UpstreamError as e:
        logger.warning(f"Skipping station {station.id} ({station.name}): latest readings unavailable ({e})")
        return None

    readings = assemble_readings(station, raw_readings)
    governing = governing_reading(readings)
    if governing is None:
        logger.info(f"Skipping station {station.id} ({station.name}): no PM2.5 or O3 reading")
        return None

    if governing.last_updated is None or now - governing.last_updated > freshness:
        logger.info(
            f"Skipping station {station.id} ({station.name}): governing reading is stale "
            f"(last updated {governing.last_updated})"
        )
        return None

    aqi = pm25_to_aqi(readings["pm25"].value) if "pm25" in readings else None

    return ResolvedAirQuality(
        station=StationSummary(
            id=station.id,
            name=station.name,
            distance_mi=distance_mi(user_coordinate, station.coordinate),
            lat=station.coordinate.latitude,
            lon=station.coordinate.longitude,
        ),
        readings=readings,
        aqi=aqi,
        category=aqi_category(aqi),
        last_updated=governing.last_updated,
    )
