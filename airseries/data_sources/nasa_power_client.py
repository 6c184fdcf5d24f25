"""Daily climate reanalysis from the NASA POWER point API."""
from __future__ import annotations

import datetime as dt
import time
from typing import Any, Dict, Mapping, Optional, Sequence

from airseries.data_sources import http
from airseries.data_sources.base import Err, Ok, ProviderResult
from airseries.enrichment import ClimateDaily
from airseries.samples import coerce_value
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="nasa_power")

NASA_POWER_DAILY_URL = "https://power.larc.nasa.gov/api/temporal/daily/point"
DEFAULT_PARAMETERS = ("T2M", "RH2M", "WS10M", "PS")
# Reanalysis lags by a few days, so progressively wider windows are tried.
LOOKBACK_WINDOWS_DAYS = (0, 1, 6, 29)
NASA_TIMEOUT_SECONDS = 30.0


def yyyymmdd(day: dt.date) -> str:
    """Format a date the way POWER expects it."""
    return day.strftime("%Y%m%d")


def normalize_parameters(payload: Mapping[str, Any] | None) -> Dict[str, Dict[str, Optional[float]]]:
    """
    Pivot `properties.parameter` into `{date: {param: value}}`.

    The `-999` fill value becomes None. Pressure (`PS`) arrives in kPa and is
    converted to hPa.
    """
    if not isinstance(payload, Mapping):
        return {}
    params = (payload.get("properties") or {}).get("parameter") or {}
    days: Dict[str, Dict[str, Optional[float]]] = {}
    for name, series in params.items():
        if not isinstance(series, Mapping):
            continue
        for date_key, raw in series.items():
            value = coerce_value(raw)
            if value is not None and name == "PS":
                value = round(value * 10, 1)
            days.setdefault(str(date_key), {})[name] = value
    return days


def fetch_climate_window(
    latitude: float,
    longitude: float,
    start: str,
    end: str,
    *,
    api_key: str | None = None,
    community: str = "AG",
    parameters: Sequence[str] = DEFAULT_PARAMETERS,
    timeout: float | None = None,
) -> ProviderResult[ClimateDaily]:
    """Fetch one `[start, end]` window (YYYYMMDD strings)."""
    params = {
        "parameters": ",".join(parameters),
        "community": community,
        "longitude": longitude,
        "latitude": latitude,
        "start": start,
        "end": end,
        "format": "JSON",
    }
    if api_key:
        params["apikey"] = api_key
    result = http.safe_get(
        NASA_POWER_DAILY_URL,
        params=params,
        timeout=timeout or NASA_TIMEOUT_SECONDS,
        source="nasa_power",
    )
    if not result.ok:
        return result
    return Ok(ClimateDaily(days=normalize_parameters(result.data)))


def fetch_climate_daily(
    latitude: float,
    longitude: float,
    *,
    api_key: str | None = None,
    community: str = "AG",
    today: dt.date | None = None,
    timeout: float | None = None,
    deadline_seconds: float | None = None,
) -> ProviderResult[ClimateDaily]:
    """
    Return the first lookback window that holds a day with data.

    Windows end today (UTC) and start 0, 1, 6 and 29 days earlier. With
    `deadline_seconds` set, all windows together stay within that budget:
    each request's timeout is capped by the time left, and no window starts
    once it is spent.
    """
    today = today or dt.datetime.now(dt.timezone.utc).date()
    end = yyyymmdd(today)
    timeout = timeout or NASA_TIMEOUT_SECONDS
    deadline = time.monotonic() + deadline_seconds if deadline_seconds is not None else None
    last_error: Err | None = None
    for days_back in LOOKBACK_WINDOWS_DAYS:
        window_timeout = timeout
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning("NASA POWER deadline spent", extra={"window_days": days_back})
                return Err(reason="nasa_power timed out")
            window_timeout = min(timeout, remaining)
        start = yyyymmdd(today - dt.timedelta(days=days_back))
        result = fetch_climate_window(
            latitude,
            longitude,
            start,
            end,
            api_key=api_key,
            community=community,
            timeout=window_timeout,
        )
        if not result.ok:
            last_error = result
            continue
        if result.data.most_recent_date:
            logger.info(
                "NASA POWER returned daily values",
                extra={"window_days": days_back, "date": result.data.most_recent_date},
            )
            return result
        logger.debug("NASA POWER window had no data", extra={"window_days": days_back})
    if last_error is not None:
        return last_error
    return Err(reason="nasa_power returned no data in any window")
