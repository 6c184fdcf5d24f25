"""Factory helpers for choosing the upstream data source at startup."""

from __future__ import annotations

from functools import partial

from airseries import config
from airseries.data_sources import nasa_power_client, open_meteo_client, openweather_client
from airseries.data_sources.base import AirQualityDataSource, CallableAirQualityDataSource
from airseries.data_sources.geocode import reverse_geocode_country
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


DEFAULT_SOURCE_NAME = "openweather"


def build_data_source(settings: config.Settings | None = None) -> AirQualityDataSource:
    """Instantiate the configured data source."""
    settings = settings or config.settings
    source = (settings.data_source or DEFAULT_SOURCE_NAME).lower()
    timeout = settings.request_timeout_seconds

    climate = partial(
        nasa_power_client.fetch_climate_daily,
        api_key=settings.nasa_api_key,
        community=settings.nasa_community,
        deadline_seconds=settings.climate_deadline_seconds,
    )
    bigdatacloud = partial(reverse_geocode_country, timeout=timeout)

    if source == "openweather":
        key = settings.openweather_api_key
        if not key:
            logger.warning("No OpenWeather API key configured; pollutant lookups will fall back to defaults")
        logger.info("Using OpenWeather data source")
        return CallableAirQualityDataSource(
            forecast=partial(openweather_client.fetch_forecast, api_key=key, timeout=timeout),
            history=partial(openweather_client.fetch_history, api_key=key, timeout=timeout),
            current=partial(openweather_client.fetch_current, api_key=key, timeout=timeout),
            point_weather=partial(openweather_client.fetch_point_weather, api_key=key, timeout=timeout),
            climate_daily=climate,
            country=bigdatacloud,
        )

    if source == "open_meteo":
        logger.info("Using Open-Meteo data source")
        return CallableAirQualityDataSource(
            forecast=partial(open_meteo_client.fetch_forecast, timeout=timeout),
            history=partial(open_meteo_client.fetch_history, timeout=timeout),
            current=partial(open_meteo_client.fetch_current, timeout=timeout),
            point_weather=partial(open_meteo_client.fetch_point_weather, timeout=timeout),
            climate_daily=climate,
            country=bigdatacloud,
        )

    raise ValueError(f"Unknown data source '{source}'")
