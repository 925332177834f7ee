# backend/nearest_aqi/aqi.py
"""
US EPA Air Quality Index from PM2.5.

Only PM2.5 is converted to an index. Other pollutants are reported as raw
concentrations by the resolver.
"""
from decimal import ROUND_HALF_UP, Decimal
from math import floor, isfinite
from typing import Optional

# (conc_lo, conc_hi, aqi_lo, aqi_hi) in µg/m³, closed bands, first match wins
PM25_BREAKPOINTS = [
    (0.0, 12.0, 0, 50),
    (12.1, 35.4, 51, 100),
    (35.5, 55.4, 101, 150),
    (55.5, 150.4, 151, 200),
    (150.5, 250.4, 201, 300),
    (250.5, 500.4, 301, 500),
]

AQI_MAX = 500

# Upper AQI bound of each category
AQI_CATEGORIES = [
    (50, "Good"),
    (100, "Moderate"),
    (150, "Unhealthy for Sensitive Groups"),
    (200, "Unhealthy"),
    (300, "Very Unhealthy"),
    (AQI_MAX, "Hazardous"),
]


def _round_half_up(x: float) -> int:
    return int(floor(x + 0.5))


def round_tenth(value: float) -> float:
    """Rounds to one decimal place, ties away from zero (34.25 -> 34.3)."""
    if not isfinite(value) or abs(value) >= 2 ** 53:
        # Floats this large are already integral
        return float(value)
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def pm25_to_aqi(concentration: float) -> int:
    """
    Convert a PM2.5 concentration (µg/m³) to US AQI by linear interpolation
    within the matching EPA breakpoint band.

    The concentration is rounded to one decimal first, so it always lands on the
    0.1 µg/m³ grid the breakpoints are defined on. Values above the top band
    return 500; negative values return 0.
    """
    c = round_tenth(float(concentration))
    for c_lo, c_hi, i_lo, i_hi in PM25_BREAKPOINTS:
        if c_lo <= c <= c_hi:
            return _round_half_up((i_hi - i_lo) / (c_hi - c_lo) * (c - c_lo) + i_lo)
    return AQI_MAX if c > PM25_BREAKPOINTS[-1][1] else 0


def aqi_category(aqi: Optional[int]) -> Optional[str]:
    """EPA category label for an AQI value, or None when there is no AQI."""
    if aqi is None:
        return None
    for upper, label in AQI_CATEGORIES:
        if aqi <= upper:
            return label
    return AQI_CATEGORIES[-1][1]
