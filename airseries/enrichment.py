"""Attach coarse weather fields to an already-built pollutant series."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from airseries.domain import HourlyEntry
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="enrichment")

WEATHER_FIELDS = ("temperature", "humidity", "wind_speed", "pressure")

# NASA POWER parameter -> HourlyEntry attribute.
CLIMATE_PARAMETERS = {
    "T2M": "temperature",
    "RH2M": "humidity",
    "WS10M": "wind_speed",
    "PS": "pressure",
}


@dataclass
class PointWeather:
    """A single current weather reading (metric units, pressure in hPa)."""
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    pressure: Optional[float] = None
    name: Optional[str] = None
    country: Optional[str] = None

    def fields(self) -> Dict[str, float]:
        """Weather fields that carry a value."""
        return {
            name: getattr(self, name)
            for name in WEATHER_FIELDS
            if getattr(self, name) is not None
        }


@dataclass
class ClimateDaily:
    """
    Daily reanalysis values keyed by `YYYYMMDD`.

    `days[date][param]` holds the raw provider parameter (T2M, RH2M, WS10M, PS
    already converted to hPa), None where the provider reported it missing.
    """
    days: Dict[str, Dict[str, Optional[float]]] = field(default_factory=dict)

    @property
    def most_recent_date(self) -> Optional[str]:
        """Latest date with at least one non-missing parameter."""
        dates = [d for d, params in self.days.items() if any(v is not None for v in params.values())]
        return max(dates) if dates else None

    def fields_for(self, date_key: str) -> Dict[str, float]:
        """Entry fields for one day, falling back to the most recent day."""
        params = self.days.get(date_key)
        if not params or all(v is None for v in params.values()):
            recent = self.most_recent_date
            params = self.days.get(recent, {}) if recent else {}
        return {
            attr: float(params[param])
            for param, attr in CLIMATE_PARAMETERS.items()
            if params.get(param) is not None
        }


def _date_key(entry: HourlyEntry) -> str:
    """`YYYYMMDD` of the entry's UTC hour."""
    parsed = dt.datetime.strptime(entry.time, "%Y-%m-%dT%H:%M:%SZ")
    return parsed.strftime("%Y%m%d")


def enrich_series(
    entries: Sequence[HourlyEntry],
    climate: Optional[ClimateDaily] = None,
    weather: Optional[PointWeather] = None,
) -> List[HourlyEntry]:
    """
    Return copies of `entries` with temperature, humidity, wind and pressure.

    Each field comes from the climate reanalysis when it has a value, else
    from the single point-weather reading, else stays absent. Both sources
    are replicated across hours; there is no per-hour weather interpolation.
    """
    point = weather.fields() if weather else {}
    out: List[HourlyEntry] = []
    for entry in entries:
        values = dict(point)
        if climate is not None:
            values.update(climate.fields_for(_date_key(entry)))
        update = {name: values[name] for name in WEATHER_FIELDS if name in values}
        out.append(entry.model_copy(update=update) if update else entry)
    logger.debug(
        "Enriched hourly series",
        extra={"entries": len(out), "climate": climate is not None, "point_weather": bool(point)},
    )
    return out
