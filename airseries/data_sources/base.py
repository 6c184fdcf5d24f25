"""Interfaces, result types and helpers for upstream data sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Protocol, TypeVar, Union

from airseries.enrichment import ClimateDaily, PointWeather
from airseries.samples import CurrentSample, ForecastSample, HistorySample

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful provider call."""
    data: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed provider call: timeout, non-2xx, malformed body or missing config."""
    reason: str
    status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return False

    def to_detail(self) -> dict:
        """Warning payload for the response."""
        detail: dict[str, Any] = {"message": self.reason}
        if self.status is not None:
            detail["status"] = self.status
        return detail


ProviderResult = Union[Ok[T], Err]


class AirQualityDataSource(Protocol):
    """Interface for anything that can supply the inputs of the series builder."""

    def fetch_forecast(self, latitude: float, longitude: float) -> ProviderResult[List[ForecastSample]]:
        """Return forward-looking pollutant samples."""
        ...

    def fetch_history(
        self,
        latitude: float,
        longitude: float,
        start: int,
        end: int,
    ) -> ProviderResult[List[HistorySample]]:
        """Return observed pollutant samples between `start` and `end` (epoch seconds)."""
        ...

    def fetch_current(self, latitude: float, longitude: float) -> ProviderResult[Optional[CurrentSample]]:
        """Return the current-moment pollutant sample."""
        ...

    def fetch_point_weather(self, latitude: float, longitude: float) -> ProviderResult[PointWeather]:
        """Return the current weather reading."""
        ...

    def fetch_climate_daily(self, latitude: float, longitude: float) -> ProviderResult[ClimateDaily]:
        """Return daily climate reanalysis values."""
        ...

    def lookup_country(self, latitude: float, longitude: float) -> ProviderResult[str]:
        """Return the ISO country code of the point when point weather carries none."""
        ...


@dataclass
class CallableAirQualityDataSource(AirQualityDataSource):
    """Wrap six callables so they can be swapped for different backends."""

    forecast: Callable[..., ProviderResult[List[ForecastSample]]]
    history: Callable[..., ProviderResult[List[HistorySample]]]
    current: Callable[..., ProviderResult[Optional[CurrentSample]]]
    point_weather: Callable[..., ProviderResult[PointWeather]]
    climate_daily: Callable[..., ProviderResult[ClimateDaily]]
    country: Callable[..., ProviderResult[str]]

    def fetch_forecast(self, *args, **kwargs):
        """Delegate to the configured forecast callable."""
        return self.forecast(*args, **kwargs)

    def fetch_history(self, *args, **kwargs):
        """Delegate to the configured history callable."""
        return self.history(*args, **kwargs)

    def fetch_current(self, *args, **kwargs):
        """Delegate to the configured current-sample callable."""
        return self.current(*args, **kwargs)

    def fetch_point_weather(self, *args, **kwargs):
        """Delegate to the configured point-weather callable."""
        return self.point_weather(*args, **kwargs)

    def fetch_climate_daily(self, *args, **kwargs):
        """Delegate to the configured climate callable."""
        return self.climate_daily(*args, **kwargs)

    def lookup_country(self, *args, **kwargs):
        """Delegate to the configured country lookup."""
        return self.country(*args, **kwargs)
