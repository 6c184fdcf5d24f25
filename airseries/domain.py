"""Domain vocabulary and response schemas for the hourly air-quality series.

This module defines the stable contract between the reconciliation engine and
the serving layer: the tier enum, coordinates, hourly entries, warnings and
the response envelope. No fetching or reconciliation logic lives here.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InvalidCoordinatesError(ValueError):
    """Raised when a request carries missing or malformed coordinates."""


class SeriesTier(str, Enum):
    """Which strategy of the fallback chain produced the series."""
    FORECAST_HISTORY = "forecast_history"
    FORECAST_DIRECT = "forecast_direct"
    HISTORY_INTERPOLATION = "history_interpolation"
    SINGLE_SAMPLE = "single_sample"
    NO_DATA = "no_data"


class _StrictBaseModel(BaseModel):
    """Base model with strict extra handling."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class Coordinates(_StrictBaseModel):
    """A validated WGS84 point."""
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)

    @classmethod
    def parse(cls, lat: Any, lon: Any) -> "Coordinates":
        """Build coordinates from raw query values or raise InvalidCoordinatesError."""
        if lat is None or lon is None or str(lat).strip() == "" or str(lon).strip() == "":
            raise InvalidCoordinatesError("lat and lon query parameters required")
        try:
            lat_f = float(lat)
            lon_f = float(lon)
        except (TypeError, ValueError):
            raise InvalidCoordinatesError(f"lat/lon must be numeric, got {lat!r}, {lon!r}")
        if not (math.isfinite(lat_f) and math.isfinite(lon_f)):
            raise InvalidCoordinatesError("lat/lon must be finite numbers")
        if not (-90 <= lat_f <= 90 and -180 <= lon_f <= 180):
            raise InvalidCoordinatesError(f"lat/lon out of range: {lat_f}, {lon_f}")
        return cls(lat=lat_f, lon=lon_f)


class SourceWarning(_StrictBaseModel):
    """One degraded or failed upstream source. Never blocks the response."""
    source: str
    detail: Any = None


class HourlyEntry(_StrictBaseModel):
    """One hour-aligned slot of the output series."""
    time: str
    pm25: Optional[float] = Field(default=None, alias="PM25")
    pm10: Optional[float] = Field(default=None, alias="PM10")
    no2: Optional[float] = Field(default=None, alias="NO2")
    o3: Optional[float] = Field(default=None, alias="O3")
    co: Optional[float] = Field(default=None, alias="CO")
    temperature: Optional[float] = Field(default=None, alias="Temperature")
    humidity: Optional[float] = Field(default=None, alias="Humidity")
    wind_speed: Optional[float] = Field(default=None, alias="Wind_Speed")
    pressure: Optional[float] = Field(default=None, alias="Pressure")
    aqi: Optional[int] = Field(default=None, alias="AQI")
    aqi_band: Optional[int] = Field(default=None, alias="AQI_Band")
    sample_count: int = 0


# Canonical pollutant name -> HourlyEntry attribute.
POLLUTANT_FIELDS: Dict[str, str] = {
    "pm2_5": "pm25",
    "pm10": "pm10",
    "no2": "no2",
    "o3": "o3",
    "co": "co",
}


class Site(_StrictBaseModel):
    """The requested point and a display name."""
    lat: float
    lon: float
    name: str


class ClimateSummary(_StrictBaseModel):
    """The reanalysis day used for enrichment."""
    date: str
    parameters: Dict[str, Optional[float]]


class DailyAqi(_StrictBaseModel):
    """Per-day AQI band summary over the hourly series."""
    date: str
    aqi_band: int
    label: str


class SeriesResponse(_StrictBaseModel):
    """Envelope returned by the service for one point."""
    site: Site
    hourly: List[HourlyEntry]
    warnings: List[SourceWarning] = Field(default_factory=list)
    mode: SeriesTier
    climate: Optional[ClimateSummary] = None
    daily_aqi: List[DailyAqi] = Field(default_factory=list)
