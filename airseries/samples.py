"""Canonical pollutant samples and the adapters that normalize provider payloads."""
from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Type, TypeVar

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="samples")

# Provider spellings that map onto canonical names.
COMPONENT_ALIASES = {
    "pm2_5": "pm2_5",
    "pm25": "pm2_5",
    "pm10": "pm10",
    "no2": "no2",
    "nitrogen_dioxide": "no2",
    "o3": "o3",
    "ozone": "o3",
    "co": "co",
    "carbon_monoxide": "co",
}

MISSING_SENTINELS = (-999, -999.0, -9999)


class SampleKind(str, Enum):
    """Which upstream role a sample came from."""
    FORECAST = "forecast"
    HISTORY = "history"
    CURRENT = "current"


@dataclass(frozen=True)
class Sample:
    """
    A single point-in-time reading. Never mutated once built.

    `components` is copied into a read-only mapping, so samples hash and can
    sit in sets or serve as dict keys.
    """
    timestamp: int  # seconds since epoch, any sub-hour precision
    components: Mapping[str, float] = field(default_factory=dict)

    kind: ClassVar[Optional[SampleKind]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "components", MappingProxyType(dict(self.components or {})))

    def __hash__(self) -> int:
        return hash((self.kind, self.timestamp, frozenset(self.components.items())))


class ForecastSample(Sample):
    """Forward-looking sample from the forecast provider."""
    kind = SampleKind.FORECAST


class HistorySample(Sample):
    """Recent observed sample from the history provider."""
    kind = SampleKind.HISTORY


class CurrentSample(Sample):
    """The single current-moment reading."""
    kind = SampleKind.CURRENT


S = TypeVar("S", bound=Sample)


def coerce_value(value: Any) -> Optional[float]:
    """Return a finite float, or None for null, sentinel or non-numeric values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number in MISSING_SENTINELS:
        return None
    return number


def coerce_timestamp(value: Any) -> Optional[int]:
    """Return integer epoch seconds from an int/float/ISO string, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = dt.datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=dt.timezone.utc)
        return int(parsed.timestamp())
    return None


def normalize_components(raw: Mapping[str, Any] | None) -> Dict[str, float]:
    """Keep only known pollutants with usable values, under canonical names."""
    out: Dict[str, float] = {}
    if not isinstance(raw, Mapping):
        return out
    for key, value in raw.items():
        name = COMPONENT_ALIASES.get(str(key).lower())
        if name is None:
            continue
        number = coerce_value(value)
        if number is None:
            continue
        out[name] = number
    return out


def normalize_openweather_records(records: Iterable[Any], sample_type: Type[S]) -> List[S]:
    """
    Convert OpenWeather air-pollution list items into canonical samples.

    Items look like `{"dt": 1700000000, "main": {"aqi": 2}, "components": {...}}`.
    Items without a usable `dt` are dropped.
    """
    out: List[S] = []
    dropped = 0
    for record in records or []:
        if not isinstance(record, Mapping):
            dropped += 1
            continue
        ts = coerce_timestamp(record.get("dt"))
        if ts is None:
            dropped += 1
            continue
        out.append(sample_type(timestamp=ts, components=normalize_components(record.get("components"))))
    if dropped:
        logger.debug("Dropped records without usable timestamps", extra={"dropped": dropped})
    return out


def normalize_open_meteo_hourly(hourly: Mapping[str, Any] | None, sample_type: Type[S]) -> List[S]:
    """
    Convert an Open-Meteo columnar `hourly` block into canonical samples.

    The block is `{"time": [...], "pm2_5": [...], "nitrogen_dioxide": [...], ...}`
    with times as ISO strings in UTC (requested with `timezone=UTC`).
    """
    if not isinstance(hourly, Mapping):
        return []
    times = hourly.get("time") or []
    columns = {
        COMPONENT_ALIASES[key]: values
        for key, values in hourly.items()
        if key in COMPONENT_ALIASES and isinstance(values, list)
    }

    out: List[S] = []
    for i, t in enumerate(times):
        ts = coerce_timestamp(t)
        if ts is None:
            continue
        raw = {name: values[i] if i < len(values) else None for name, values in columns.items()}
        out.append(sample_type(timestamp=ts, components=normalize_components(raw)))
    return out


def normalize_open_meteo_current(current: Mapping[str, Any] | None) -> Optional[CurrentSample]:
    """Convert an Open-Meteo `current` block into a CurrentSample."""
    if not isinstance(current, Mapping):
        return None
    ts = coerce_timestamp(current.get("time"))
    if ts is None:
        return None
    return CurrentSample(timestamp=ts, components=normalize_components(current))


def average_components(samples: Iterable[Sample]) -> Dict[str, float]:
    """Per-component mean over the samples that carry each component."""
    values: Dict[str, List[float]] = {}
    for sample in samples:
        for name, value in sample.components.items():
            if value is not None:
                values.setdefault(name, []).append(value)
    return {name: math.fsum(vals) / len(vals) for name, vals in values.items()}
