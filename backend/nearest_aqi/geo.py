# backend/nearest_aqi/geo.py
from math import radians, cos, sin, sqrt, atan2
from .models import Coordinate

EARTH_RADIUS_KM = 6371.0
KM_TO_MILES = 0.621371


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates in kilometers."""
    dlat = radians(b.latitude - a.latitude)
    dlon = radians(b.longitude - a.longitude)
    h = sin(dlat / 2) ** 2 + cos(radians(a.latitude)) * cos(radians(b.latitude)) * sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(h), sqrt(1 - h))


def km_to_miles(km: float) -> float:
    return km * KM_TO_MILES


def distance_mi(a: Coordinate, b: Coordinate) -> float:
    """Distance in miles, rounded to one decimal place for display."""
    return round(km_to_miles(haversine_km(a, b)), 1)
