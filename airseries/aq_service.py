"""Fetch provider inputs concurrently and reconcile them into one hourly series."""
from __future__ import annotations

import datetime as dt
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from airseries import config
from airseries.aggregation import HOUR_SECONDS, floor_to_hour
from airseries.aqi import daily_aqi_summary, with_aqi
from airseries.data_sources import AirQualityDataSource, Err, Ok, ProviderResult, build_data_source
from airseries.domain import ClimateSummary, Coordinates, SeriesResponse, Site, SourceWarning
from airseries.enrichment import ClimateDaily, PointWeather, enrich_series
from airseries.samples import CurrentSample, ForecastSample, HistorySample
from airseries.series_builder import SeriesBuilder
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="aq_service")

NOT_QUERIED = Err(reason="not queried")
DEFAULT_ALLOWED_COUNTRIES = ["US", "CA", "MX"]


@dataclass
class ProviderSnapshot:
    """Everything fetched for one request. Input of the pure series build."""
    forecast: ProviderResult[List[ForecastSample]] = field(default_factory=lambda: Ok([]))
    history: ProviderResult[List[HistorySample]] = field(default_factory=lambda: Ok([]))
    current: ProviderResult[Optional[CurrentSample]] = field(default_factory=lambda: Ok(None))
    weather: ProviderResult[PointWeather] = NOT_QUERIED
    climate: Optional[ProviderResult[ClimateDaily]] = None  # None when the region gate skipped it
    country: ProviderResult[str] = NOT_QUERIED


def now_hour_start(now: dt.datetime | None = None) -> int:
    """Start of the current UTC hour in epoch seconds."""
    ts = now.timestamp() if now is not None else time.time()
    return floor_to_hour(ts)


def _data(result: Optional[ProviderResult[Any]], default: Any) -> Any:
    return result.data if result is not None and result.ok else default


def _source_warnings(snapshot: ProviderSnapshot, allowed_countries: List[str]) -> List[SourceWarning]:
    """One warning per degraded source, plus region gating notes."""
    warnings: List[SourceWarning] = []
    for source, result in (
        ("forecast", snapshot.forecast),
        ("history", snapshot.history),
        ("current", snapshot.current),
        ("weather", snapshot.weather),
    ):
        if not result.ok and result is not NOT_QUERIED:
            warnings.append(SourceWarning(source=source, detail=result.to_detail()))

    if not snapshot.country.ok:
        warnings.append(SourceWarning(source="geocode", detail="could not determine country code"))
    elif snapshot.country.data not in allowed_countries:
        warnings.append(SourceWarning(
            source="region",
            detail=f"location outside {'/'.join(allowed_countries)} (detected {snapshot.country.data}); "
                   f"climate enrichment skipped",
        ))

    if snapshot.climate is not None and not snapshot.climate.ok:
        warnings.append(SourceWarning(source="climate", detail=snapshot.climate.to_detail()))
    return warnings


def build_hourly_series(
    coordinates: Coordinates,
    now_hour: int,
    target_length: int,
    snapshot: ProviderSnapshot,
    *,
    builder: SeriesBuilder | None = None,
    allowed_countries: List[str] | None = None,
) -> SeriesResponse:
    """
    Reconcile an already-fetched snapshot into the response.

    Pure: no I/O, same inputs give the same output. Always returns exactly
    `target_length` hourly entries.
    """
    builder = builder or SeriesBuilder(hours=target_length)
    if builder.hours != target_length:
        raise ValueError("builder length does not match target_length")
    allowed = allowed_countries if allowed_countries is not None else DEFAULT_ALLOWED_COUNTRIES

    warnings = _source_warnings(snapshot, allowed)

    result = builder.build(
        now_hour,
        forecast=_data(snapshot.forecast, []),
        history=_data(snapshot.history, []),
        current=_data(snapshot.current, None),
    )
    warnings.extend(result.warnings)

    weather: Optional[PointWeather] = _data(snapshot.weather, None)
    climate: Optional[ClimateDaily] = _data(snapshot.climate, None)
    entries = with_aqi(enrich_series(result.entries, climate=climate, weather=weather))

    climate_summary = None
    if climate is not None and climate.most_recent_date:
        recent = climate.most_recent_date
        climate_summary = ClimateSummary(date=recent, parameters=dict(climate.days[recent]))

    name = (weather.name if weather and weather.name else None) or (
        f"Selected location ({coordinates.lat:.4f}, {coordinates.lon:.4f})"
    )
    return SeriesResponse(
        site=Site(lat=coordinates.lat, lon=coordinates.lon, name=name),
        hourly=entries,
        warnings=warnings,
        mode=result.tier,
        climate=climate_summary,
        daily_aqi=daily_aqi_summary(entries),
    )


def fetch_snapshot(
    coordinates: Coordinates,
    data_source: AirQualityDataSource,
    *,
    now: int,
    settings: config.Settings,
) -> ProviderSnapshot:
    """
    Issue the independent provider calls in parallel and join them.

    The fan-out shares one deadline of `request_timeout_seconds`; a call still
    running at the deadline becomes `Err("<source> timed out")` and its thread
    is abandoned. The country comes from the point-weather reading when it
    has one, else from the data source's lookup. Climate reanalysis runs last,
    only for allow-listed countries, within `climate_deadline_seconds`.
    """
    lat, lon = coordinates.lat, coordinates.lon
    history_start = now - settings.history_lookback_hours * HOUR_SECONDS

    calls: dict[str, Callable[[], ProviderResult[Any]]] = {
        "forecast": lambda: data_source.fetch_forecast(lat, lon),
        "history": lambda: data_source.fetch_history(lat, lon, history_start, now),
        "current": lambda: data_source.fetch_current(lat, lon),
        "weather": lambda: data_source.fetch_point_weather(lat, lon),
    }
    pool = ThreadPoolExecutor(max_workers=settings.max_workers)
    try:
        deadline = time.monotonic() + settings.request_timeout_seconds
        futures = {name: pool.submit(_guarded, name, fn) for name, fn in calls.items()}
        results = {name: _await(name, future, deadline) for name, future in futures.items()}

        weather = results["weather"]
        if weather.ok and weather.data.country:
            results["country"] = Ok(weather.data.country.upper())
        else:
            results["country"] = _bounded(
                pool, "country", lambda: data_source.lookup_country(lat, lon), settings.request_timeout_seconds
            )

        snapshot = ProviderSnapshot(**results)
        if snapshot.country.ok and snapshot.country.data in settings.allowed_country_codes:
            snapshot.climate = _bounded(
                pool, "climate", lambda: data_source.fetch_climate_daily(lat, lon), settings.climate_deadline_seconds
            )
    finally:
        # Never join threads stuck past their deadline.
        pool.shutdown(wait=False, cancel_futures=True)
    return snapshot


def _await(name: str, future: Future, deadline: float) -> ProviderResult[Any]:
    """Result of `future`, or a timeout Err once `deadline` (monotonic) passes."""
    try:
        return future.result(timeout=max(0.0, deadline - time.monotonic()))
    except FuturesTimeoutError:
        future.cancel()
        logger.warning("Provider call timed out", extra={"source": name})
        return Err(reason=f"{name} timed out")


def _bounded(
    pool: ThreadPoolExecutor,
    name: str,
    fn: Callable[[], ProviderResult[Any]],
    seconds: float,
) -> ProviderResult[Any]:
    """Run one guarded call on `pool` and wait at most `seconds` for it."""
    return _await(name, pool.submit(_guarded, name, fn), time.monotonic() + seconds)


def _guarded(name: str, fn: Callable[[], ProviderResult[Any]]) -> ProviderResult[Any]:
    """Run one adapter call so that a bug in it degrades instead of failing the request."""
    try:
        return fn()
    except Exception as exc:
        logger.exception("Provider adapter raised", extra={"source": name})
        return Err(reason=f"{name} adapter error: {exc.__class__.__name__}")


def get_air_quality_series(
    latitude: Any,
    longitude: Any,
    *,
    data_source: AirQualityDataSource | None = None,
    settings: config.Settings | None = None,
    now: dt.datetime | None = None,
) -> SeriesResponse:
    """
    Validate the point, fetch every provider and build the hourly series.

    Raises InvalidCoordinatesError for missing or malformed coordinates;
    every provider failure degrades into warnings instead.
    """
    settings = settings or config.settings
    coordinates = Coordinates.parse(latitude, longitude)
    ds = data_source or build_data_source(settings)
    now_hour = now_hour_start(now)
    now_ts = int(now.timestamp()) if now is not None else int(time.time())

    logger.info(
        "Building hourly air-quality series",
        extra={"latitude": coordinates.lat, "longitude": coordinates.lon, "hours": settings.series_hours},
    )
    snapshot = fetch_snapshot(coordinates, ds, now=now_ts, settings=settings)

    builder = SeriesBuilder(
        hours=settings.series_hours,
        min_populated_hours=settings.min_populated_hours,
        history_pad_hours=settings.history_pad_hours,
        offline_default=config.load_offline_default(settings),
    )
    response = build_hourly_series(
        coordinates,
        now_hour,
        settings.series_hours,
        snapshot,
        builder=builder,
        allowed_countries=settings.allowed_country_codes,
    )

    preview = " | ".join(
        f"{h.time} {h.pm25:.1f}µg" if h.pm25 is not None else f"{h.time} N/A" for h in response.hourly[:5]
    )
    logger.info(
        f"{response.site.name} returned {len(response.hourly)} hourly pts (mode={response.mode.value}) "
        f"preview: {preview}",
        extra={"warnings": len(response.warnings)},
    )
    return response
