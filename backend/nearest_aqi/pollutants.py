# backend/nearest_aqi/pollutants.py
from typing import Dict, Tuple
from .models import Station, StationId

KNOWN_POLLUTANTS = ('pm25', 'pm10', 'o3', 'no2', 'so2', 'co')

# Pollutants sufficient on their own to characterize local air quality, in order of preference
GOVERNING_POLLUTANTS = ('pm25', 'o3')


def normalize_parameter(raw_name: str) -> str:
    """
    Maps an upstream parameter label ("PM2.5", "Ozone", "Nitrogen Dioxide", "co", ...)
    to the fixed pollutant vocabulary. Unknown labels pass through lower-cased.
    """
    name = (raw_name or "").strip().lower()
    if "pm2" in name:
        return "pm25"
    if "pm10" in name:
        return "pm10"
    if name == "o3" or "ozone" in name:
        return "o3"
    if name == "no2" or "nitrogen" in name:
        return "no2"
    if name == "so2" or "sulfur" in name:
        return "so2"
    if name == "co" or "carbon monoxide" in name:
        return "co"
    return name


def build_sensor_lookup(station: Station) -> Dict[StationId, Tuple[str, str]]:
    """sensor id -> (pollutant tag, unit) for one station."""
    return {
        sensor.sensor_id: (normalize_parameter(sensor.parameter_name), sensor.unit)
        for sensor in station.sensors
    }
