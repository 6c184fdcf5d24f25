"""Adapters for the Open-Meteo air-quality and forecast APIs (alternative backend)."""
from __future__ import annotations

import datetime as dt
from typing import Any, List, Mapping, Optional

from airseries.data_sources import http
from airseries.data_sources.base import Err, Ok, ProviderResult
from airseries.enrichment import PointWeather
from airseries.samples import (
    CurrentSample,
    ForecastSample,
    HistorySample,
    coerce_value,
    normalize_open_meteo_current,
    normalize_open_meteo_hourly,
)
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="open_meteo_client")

OPEN_METEO_WEATHER_URL = "https://api.open-meteo.com/v1/forecast"
OPEN_METEO_AIR_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"

AIR_VARIABLES = ["pm2_5", "pm10", "nitrogen_dioxide", "ozone", "carbon_monoxide"]
WEATHER_VARIABLES = ["temperature_2m", "relative_humidity_2m", "wind_speed_10m", "surface_pressure"]

EXPECTED_AIR_UNITS = {
    "pm2_5": "μg/m³",
    "pm10": "μg/m³",
    "nitrogen_dioxide": "μg/m³",
    "ozone": "μg/m³",
    "carbon_monoxide": "μg/m³",
}

# Open-Meteo has used both the micro sign and the Greek mu.
ALLOWED_AIR_UNIT_SYNONYMS = {"μg/m³", "µg/m³", "ug/m3"}

EXPECTED_WEATHER_UNITS = {
    "temperature_2m": "°C",
    "relative_humidity_2m": "%",
    "wind_speed_10m": "m/s",
    "surface_pressure": "hPa",
}


def _warn_on_unexpected_units(units: Mapping[str, Any] | None, expected: Mapping[str, str], *, context: str) -> None:
    """Log a warning if Open-Meteo returns units we did not request."""
    if not units:
        return
    for name, want in expected.items():
        actual = units.get(name)
        if not actual or actual == want:
            continue
        if expected is EXPECTED_AIR_UNITS and actual in ALLOWED_AIR_UNIT_SYNONYMS:
            continue
        logger.warning(
            "Unexpected Open-Meteo unit",
            extra={"context": context, "field": name, "unit": actual, "expected": want},
        )


def _hour_param(ts: int) -> str:
    """Epoch seconds -> the `YYYY-MM-DDTHH:MM` form used by start_hour/end_hour."""
    return dt.datetime.fromtimestamp(int(ts), tz=dt.timezone.utc).strftime("%Y-%m-%dT%H:00")


def _air_hourly(params: Mapping[str, Any], *, context: str, timeout: float | None) -> ProviderResult[Mapping[str, Any]]:
    result = http.safe_get(OPEN_METEO_AIR_URL, params=params, timeout=timeout, source=context)
    if not result.ok:
        return result
    data = result.data
    if not isinstance(data, Mapping) or not isinstance(data.get("hourly"), Mapping):
        return Err(reason=f"{context} response has no hourly block")
    _warn_on_unexpected_units(data.get("hourly_units"), EXPECTED_AIR_UNITS, context=context)
    return Ok(data["hourly"])


def fetch_forecast(
    latitude: float,
    longitude: float,
    *,
    forecast_days: int = 2,
    timeout: float | None = None,
) -> ProviderResult[List[ForecastSample]]:
    """Fetch hourly air-quality forecast for the next `forecast_days`."""
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "hourly": ",".join(AIR_VARIABLES),
        "forecast_days": forecast_days,
        "timezone": "UTC",
    }
    result = _air_hourly(params, context="open_meteo_forecast", timeout=timeout)
    if not result.ok:
        return result
    samples = normalize_open_meteo_hourly(result.data, ForecastSample)
    logger.info("Open-Meteo forecast returned samples", extra={"samples": len(samples)})
    return Ok(samples)


def fetch_history(
    latitude: float,
    longitude: float,
    start: int,
    end: int,
    *,
    timeout: float | None = None,
) -> ProviderResult[List[HistorySample]]:
    """Fetch modelled past air quality between two epoch-second bounds."""
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "hourly": ",".join(AIR_VARIABLES),
        "start_hour": _hour_param(start),
        "end_hour": _hour_param(end),
        "timezone": "UTC",
    }
    result = _air_hourly(params, context="open_meteo_history", timeout=timeout)
    if not result.ok:
        return result
    samples = [s for s in normalize_open_meteo_hourly(result.data, HistorySample) if s.timestamp <= end]
    logger.info("Open-Meteo history returned samples", extra={"samples": len(samples)})
    return Ok(samples)


def fetch_current(
    latitude: float,
    longitude: float,
    *,
    timeout: float | None = None,
) -> ProviderResult[Optional[CurrentSample]]:
    """Fetch the current air-quality block."""
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "current": ",".join(AIR_VARIABLES),
        "timezone": "UTC",
    }
    result = http.safe_get(OPEN_METEO_AIR_URL, params=params, timeout=timeout, source="open_meteo_current")
    if not result.ok:
        return result
    data = result.data if isinstance(result.data, Mapping) else {}
    _warn_on_unexpected_units(data.get("current_units"), EXPECTED_AIR_UNITS, context="open_meteo_current")
    return Ok(normalize_open_meteo_current(data.get("current")))


def fetch_point_weather(
    latitude: float,
    longitude: float,
    *,
    timeout: float | None = None,
) -> ProviderResult[PointWeather]:
    """Fetch current weather in metric units with wind in m/s."""
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "current": ",".join(WEATHER_VARIABLES),
        "wind_speed_unit": "ms",
        "timezone": "UTC",
    }
    result = http.safe_get(OPEN_METEO_WEATHER_URL, params=params, timeout=timeout, source="open_meteo_weather")
    if not result.ok:
        return result
    data = result.data if isinstance(result.data, Mapping) else {}
    current = data.get("current")
    if not isinstance(current, Mapping):
        return Err(reason="open_meteo_weather response has no current block")
    _warn_on_unexpected_units(data.get("current_units"), EXPECTED_WEATHER_UNITS, context="open_meteo_weather")
    return Ok(PointWeather(
        temperature=coerce_value(current.get("temperature_2m")),
        humidity=coerce_value(current.get("relative_humidity_2m")),
        wind_speed=coerce_value(current.get("wind_speed_10m")),
        pressure=coerce_value(current.get("surface_pressure")),
    ))
