# backend/nearest_aqi/models.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Optional, Union
from datetime import datetime, timezone

StationId = Union[int, str]


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is None:
        # Naive timestamps from upstream are assumed to be UTC
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


# --- Input Models ---

class Coordinate(BaseModel):
    """A validated, immutable geographic point."""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., examples=[34.0522], ge=-90, le=90)
    longitude: float = Field(..., examples=[-118.2437], ge=-180, le=180)


# --- Upstream (station directory) Models ---

class SensorDescriptor(BaseModel):
    """One sensor of a station, with the pollutant name and unit exactly as reported upstream."""
    sensor_id: StationId
    parameter_name: str = ""
    unit: str = ""


class Station(BaseModel):
    """A monitoring station as returned by the station directory. Never cached."""
    id: StationId
    name: str = "EPA Monitor"
    coordinate: Coordinate
    sensors: List[SensorDescriptor] = Field(default_factory=list)
    last_observed_utc: Optional[datetime] = None
    last_observed_local: Optional[datetime] = None

    @field_validator('last_observed_utc', 'last_observed_local')
    def ensure_timezone_aware(cls, v):
        return _as_utc(v)

    @property
    def last_observed(self) -> Optional[datetime]:
        """Self-reported last observation, preferring the UTC field over the local one."""
        return self.last_observed_utc or self.last_observed_local


class RawReading(BaseModel):
    """A single (sensor id, value, observation time) tuple from the latest-readings endpoint."""
    sensor_id: StationId
    value: Optional[float] = None
    observed_at: Optional[datetime] = None

    @field_validator('observed_at')
    def ensure_timezone_aware(cls, v):
        return _as_utc(v)


# --- Response Models ---

class Reading(BaseModel):
    """Latest value of one pollutant at the resolved station."""
    model_config = ConfigDict(populate_by_name=True)

    value: float = Field(..., examples=[34.2], description="Concentration rounded to one decimal place.")
    unit: str = Field("", examples=["µg/m³"])
    last_updated: Optional[datetime] = Field(None, serialization_alias="lastUpdated")


class StationSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: StationId
    name: str = Field(..., examples=["Los Angeles - N. Main Street"])
    distance_mi: float = Field(..., examples=[15.5], serialization_alias="distanceMi")
    lat: float
    lon: float


class ResolvedAirQuality(BaseModel):
    """Response model for a successfully resolved nearest active station."""
    model_config = ConfigDict(populate_by_name=True)

    station: StationSummary
    readings: Dict[str, Reading]
    aqi: Optional[int] = Field(None, examples=[97], description="US AQI derived from PM2.5 only; null when PM2.5 is not reported.")
    category: Optional[str] = Field(None, examples=["Moderate"])
    last_updated: Optional[datetime] = Field(None, serialization_alias="lastUpdated", description="Timestamp of the governing (PM2.5, else O3) reading.")


class EmptyResult(BaseModel):
    """Response model when no active station with usable readings was found."""
    stations: List[StationSummary] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error: str = Field(..., examples=["OpenAQ returned 500"])
    detail: Optional[str] = None
    upstream_status: Optional[int] = Field(None, serialization_alias="upstreamStatus")
