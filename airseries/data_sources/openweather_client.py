"""Adapters for the OpenWeather air-pollution and current-weather APIs."""
from __future__ import annotations

from typing import Any, List, Mapping, Optional

from airseries.data_sources import http
from airseries.data_sources.base import Err, Ok, ProviderResult
from airseries.enrichment import PointWeather
from airseries.samples import (
    CurrentSample,
    ForecastSample,
    HistorySample,
    coerce_value,
    normalize_openweather_records,
)
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="openweather_client")

OPENWEATHER_AIR_FORECAST_URL = "https://api.openweathermap.org/data/2.5/air_pollution/forecast"
OPENWEATHER_AIR_HISTORY_URL = "https://api.openweathermap.org/data/2.5/air_pollution/history"
OPENWEATHER_AIR_CURRENT_URL = "https://api.openweathermap.org/data/2.5/air_pollution"
OPENWEATHER_WEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"

MISSING_KEY = Err(reason="OpenWeather API key not configured")


def _list_payload(result: ProviderResult[Any], *, context: str) -> ProviderResult[List[Any]]:
    """Extract the `list` array from an air-pollution response."""
    if not result.ok:
        return result
    data = result.data
    if not isinstance(data, Mapping) or not isinstance(data.get("list"), list):
        logger.warning("OpenWeather response has no list", extra={"context": context})
        return Err(reason=f"{context} response has no list")
    return Ok(data["list"])


def fetch_forecast(
    latitude: float,
    longitude: float,
    *,
    api_key: str | None,
    timeout: float | None = None,
) -> ProviderResult[List[ForecastSample]]:
    """Fetch the hourly air-pollution forecast (about four days ahead)."""
    if not api_key:
        return MISSING_KEY
    params = {"lat": latitude, "lon": longitude, "appid": api_key}
    result = _list_payload(
        http.safe_get(OPENWEATHER_AIR_FORECAST_URL, params=params, timeout=timeout, source="openweather_forecast"),
        context="openweather_forecast",
    )
    if not result.ok:
        return result
    samples = normalize_openweather_records(result.data, ForecastSample)
    logger.info("OpenWeather forecast returned samples", extra={"samples": len(samples)})
    return Ok(samples)


def fetch_history(
    latitude: float,
    longitude: float,
    start: int,
    end: int,
    *,
    api_key: str | None,
    timeout: float | None = None,
) -> ProviderResult[List[HistorySample]]:
    """Fetch observed air pollution between two epoch-second bounds."""
    if not api_key:
        return MISSING_KEY
    params = {
        "lat": latitude,
        "lon": longitude,
        "start": int(start),
        "end": int(end),
        "appid": api_key,
    }
    result = _list_payload(
        http.safe_get(OPENWEATHER_AIR_HISTORY_URL, params=params, timeout=timeout, source="openweather_history"),
        context="openweather_history",
    )
    if not result.ok:
        return result
    samples = normalize_openweather_records(result.data, HistorySample)
    logger.info("OpenWeather history returned samples", extra={"samples": len(samples)})
    return Ok(samples)


def fetch_current(
    latitude: float,
    longitude: float,
    *,
    api_key: str | None,
    timeout: float | None = None,
) -> ProviderResult[Optional[CurrentSample]]:
    """Fetch the current air-pollution reading; Ok(None) when the list is empty."""
    if not api_key:
        return MISSING_KEY
    params = {"lat": latitude, "lon": longitude, "appid": api_key}
    result = _list_payload(
        http.safe_get(OPENWEATHER_AIR_CURRENT_URL, params=params, timeout=timeout, source="openweather_current"),
        context="openweather_current",
    )
    if not result.ok:
        return result
    samples = normalize_openweather_records(result.data[:1], CurrentSample)
    return Ok(samples[0] if samples else None)


def _fetch_weather_payload(
    latitude: float,
    longitude: float,
    *,
    api_key: str | None,
    timeout: float | None = None,
) -> ProviderResult[Mapping[str, Any]]:
    if not api_key:
        return MISSING_KEY
    params = {"lat": latitude, "lon": longitude, "appid": api_key, "units": "metric"}
    result = http.safe_get(OPENWEATHER_WEATHER_URL, params=params, timeout=timeout, source="openweather_weather")
    if result.ok and not isinstance(result.data, Mapping):
        return Err(reason="openweather_weather response is not an object")
    return result


def parse_point_weather(data: Mapping[str, Any]) -> PointWeather:
    """Map a `/weather` response (metric units) onto PointWeather."""
    main = data.get("main") or {}
    wind = data.get("wind") or {}
    sys_block = data.get("sys") or {}
    return PointWeather(
        temperature=coerce_value(main.get("temp")),
        humidity=coerce_value(main.get("humidity")),
        wind_speed=coerce_value(wind.get("speed")),
        pressure=coerce_value(main.get("pressure")),
        name=data.get("name") or None,
        country=sys_block.get("country") or None,
    )


def fetch_point_weather(
    latitude: float,
    longitude: float,
    *,
    api_key: str | None,
    timeout: float | None = None,
) -> ProviderResult[PointWeather]:
    """Fetch the current weather for the point."""
    result = _fetch_weather_payload(latitude, longitude, api_key=api_key, timeout=timeout)
    if not result.ok:
        return result
    return Ok(parse_point_weather(result.data))

