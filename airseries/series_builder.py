"""Fallback chain that turns sparse samples into a dense hourly series.

Tiers are tried in a fixed order and the first one that yields at least
`min_populated_hours` entries with PM2.5 wins:

1. forecast + history merged into hour buckets, interpolated per target hour
2. exact hour matches against the forecast only
3. history only, interpolated over a window padded before the start
4. one representative sample replicated over every hour
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from airseries.aggregation import (
    HOUR_SECONDS,
    HourBucket,
    aggregate_samples,
    floor_to_hour,
    interpolate_component,
    iso_from_seconds,
)
from airseries.domain import POLLUTANT_FIELDS, HourlyEntry, SeriesTier, SourceWarning
from airseries.samples import (
    CurrentSample,
    ForecastSample,
    HistorySample,
    average_components,
    normalize_components,
)
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="series_builder")

DEFAULT_SERIES_HOURS = 24
DEFAULT_MIN_POPULATED_HOURS = 2
DEFAULT_HISTORY_PAD_HOURS = 12


@dataclass
class BuildResult:
    """A built series plus how it was produced."""
    entries: List[HourlyEntry]
    tier: SeriesTier
    warnings: List[SourceWarning] = field(default_factory=list)


def _entry(ts: int, components: Mapping[str, Optional[float]], sample_count: int) -> HourlyEntry:
    """Build an HourlyEntry from canonical component values."""
    values = {
        attr: float(components[name])
        for name, attr in POLLUTANT_FIELDS.items()
        if components.get(name) is not None
    }
    return HourlyEntry(time=iso_from_seconds(ts), sample_count=sample_count, **values)


def target_hours(start_hour: int, hours: int) -> List[int]:
    """Hour-start timestamps of the series, one hour apart."""
    return [start_hour + i * HOUR_SECONDS for i in range(hours)]


def build_from_buckets(buckets: Mapping[int, HourBucket], start_hour: int, hours: int) -> List[HourlyEntry]:
    """Interpolate every pollutant for each target hour from aggregated buckets."""
    out: List[HourlyEntry] = []
    for ts in target_hours(start_hour, hours):
        components = {name: interpolate_component(buckets, ts, name) for name in POLLUTANT_FIELDS}
        bucket = buckets.get(ts)
        out.append(_entry(ts, components, bucket.sample_count if bucket else 0))
    return out


def populated_count(entries: Sequence[HourlyEntry]) -> int:
    """Number of entries that carry a PM2.5 value."""
    return sum(1 for e in entries if e.pm25 is not None)


class SeriesBuilder:
    """
    Reconcile forecast, history and current samples into a fixed-length series.

    The offline default is injected here rather than read from module state so
    each request sees an explicit, immutable configuration.
    """

    def __init__(
        self,
        *,
        hours: int = DEFAULT_SERIES_HOURS,
        min_populated_hours: int = DEFAULT_MIN_POPULATED_HOURS,
        history_pad_hours: int = DEFAULT_HISTORY_PAD_HOURS,
        offline_default: Mapping[str, object] | None = None,
    ) -> None:
        if hours < 1:
            raise ValueError("hours must be >= 1")
        self.hours = hours
        self.min_populated_hours = min_populated_hours
        self.history_pad_hours = history_pad_hours
        self.offline_default = normalize_components(offline_default) if offline_default else {}

    def _sufficient(self, entries: Sequence[HourlyEntry]) -> bool:
        return populated_count(entries) >= self.min_populated_hours

    # -- tier 1 -------------------------------------------------------------
    def from_combined(
        self,
        start_hour: int,
        forecast: Sequence[ForecastSample],
        history: Sequence[HistorySample],
    ) -> Optional[List[HourlyEntry]]:
        """Merge forecast and history into shared buckets and interpolate."""
        combined = [*forecast, *history]
        if not combined:
            return None
        built = build_from_buckets(aggregate_samples(combined), start_hour, self.hours)
        if not self._sufficient(built):
            return None
        logger.info(
            "Built hourly series from forecast and history",
            extra={"populated": populated_count(built), "samples": len(combined)},
        )
        return built

    # -- tier 2 -------------------------------------------------------------
    def from_forecast_matches(
        self,
        start_hour: int,
        forecast: Sequence[ForecastSample],
    ) -> Optional[List[HourlyEntry]]:
        """Use forecast values only where a forecast hour matches a target hour."""
        if not forecast:
            return None
        buckets = aggregate_samples(forecast)
        direct: List[HourlyEntry] = []
        for ts in target_hours(start_hour, self.hours):
            bucket = buckets.get(ts)
            if bucket is None:
                direct.append(_entry(ts, {}, 0))
            else:
                direct.append(_entry(ts, bucket.components, bucket.sample_count))
        if not self._sufficient(direct):
            return None
        logger.info("Used direct forecast matches", extra={"populated": populated_count(direct)})
        return direct

    # -- tier 3 -------------------------------------------------------------
    def from_history(
        self,
        start_hour: int,
        history: Sequence[HistorySample],
    ) -> Optional[List[HourlyEntry]]:
        """Interpolate history over a padded window, then slice the target hours."""
        if not history:
            return None
        buckets = aggregate_samples(history)
        window_start = start_hour - self.history_pad_hours * HOUR_SECONDS
        window = build_from_buckets(buckets, window_start, self.hours + self.history_pad_hours)
        offset = self.history_pad_hours
        candidate = window[offset:offset + self.hours]
        if len(candidate) != self.hours or not self._sufficient(candidate):
            return None
        logger.info(
            "Built hourly series from history interpolation",
            extra={"populated": populated_count(candidate)},
        )
        return candidate

    # -- tier 4 -------------------------------------------------------------
    def from_single_sample(
        self,
        start_hour: int,
        history: Sequence[HistorySample],
        current: Optional[CurrentSample],
    ) -> BuildResult:
        """Replicate one representative sample across every target hour."""
        warnings: List[SourceWarning] = []
        base: Dict[str, float] = {}

        today = dt.datetime.fromtimestamp(start_hour, tz=dt.timezone.utc).date()
        todays = [
            s for s in history
            if dt.datetime.fromtimestamp(s.timestamp, tz=dt.timezone.utc).date() == today
        ]
        if todays:
            base = average_components(todays)
            if base:
                warnings.append(SourceWarning(
                    source="history",
                    detail="used today history average for fallback series",
                ))
        if not base and current is not None and current.components:
            base = dict(current.components)
        if not base and self.offline_default:
            base = dict(self.offline_default)
            warnings.append(SourceWarning(source="offline_default", detail="used static offline default"))

        tier = SeriesTier.SINGLE_SAMPLE
        if not base:
            tier = SeriesTier.NO_DATA
            warnings.append(SourceWarning(source="series", detail="no data available from any source"))
            logger.warning("No data from any source; returning empty hourly series")

        entries = [_entry(ts, base, 0) for ts in target_hours(start_hour, self.hours)]
        return BuildResult(entries=entries, tier=tier, warnings=warnings)

    def build(
        self,
        start_hour: int,
        forecast: Sequence[ForecastSample] = (),
        history: Sequence[HistorySample] = (),
        current: Optional[CurrentSample] = None,
    ) -> BuildResult:
        """Run the fallback chain and return the first sufficient series."""
        start_hour = floor_to_hour(start_hour)
        forecast = list(forecast or [])
        history = list(history or [])

        entries = self.from_combined(start_hour, forecast, history)
        if entries is not None:
            return BuildResult(entries=entries, tier=SeriesTier.FORECAST_HISTORY)

        entries = self.from_forecast_matches(start_hour, forecast)
        if entries is not None:
            return BuildResult(entries=entries, tier=SeriesTier.FORECAST_DIRECT)

        entries = self.from_history(start_hour, history)
        if entries is not None:
            return BuildResult(entries=entries, tier=SeriesTier.HISTORY_INTERPOLATION)

        logger.info(
            "Falling back to single-sample strategy",
            extra={"forecast": len(forecast), "history": len(history), "has_current": current is not None},
        )
        return self.from_single_sample(start_hour, history, current)
