"""US EPA AQI conversion for PM2.5 and the coarse 1..5 band scale."""
from __future__ import annotations

import math
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from airseries.domain import DailyAqi, HourlyEntry

# (conc_low, conc_high, aqi_low, aqi_high) for 24h PM2.5 in µg/m³.
PM25_BREAKPOINTS = (
    (0.0, 12.0, 0, 50),
    (12.1, 35.4, 51, 100),
    (35.5, 55.4, 101, 150),
    (55.5, 150.4, 151, 200),
    (150.5, 250.4, 201, 300),
    (250.5, 350.4, 301, 400),
    (350.5, 500.4, 401, 500),
)

BAND_LABELS = {
    1: "Good",
    2: "Fair",
    3: "Moderate",
    4: "Poor",
    5: "Very Poor",
}


def pm25_to_aqi(pm25: Optional[float]) -> Optional[int]:
    """Convert a PM2.5 concentration to the EPA AQI, or None when unusable."""
    if pm25 is None or not math.isfinite(pm25) or pm25 < 0:
        return None
    conc = math.floor(pm25 * 10) / 10
    for c_low, c_high, i_low, i_high in PM25_BREAKPOINTS:
        if conc <= c_high:
            conc = max(conc, c_low)
            return round((i_high - i_low) / (c_high - c_low) * (conc - c_low) + i_low)
    return 500


def aqi_band(aqi: Optional[int]) -> Optional[int]:
    """Map an EPA AQI onto the 1 (Good) .. 5 (Very Poor) scale."""
    if aqi is None:
        return None
    if aqi <= 50:
        return 1
    if aqi <= 100:
        return 2
    if aqi <= 150:
        return 3
    if aqi <= 200:
        return 4
    return 5


def with_aqi(entries: Sequence[HourlyEntry]) -> List[HourlyEntry]:
    """Copies of `entries` carrying AQI and band derived from PM2.5."""
    out: List[HourlyEntry] = []
    for entry in entries:
        aqi = pm25_to_aqi(entry.pm25)
        if aqi is None:
            out.append(entry)
            continue
        out.append(entry.model_copy(update={"aqi": aqi, "aqi_band": aqi_band(aqi)}))
    return out


def daily_aqi_summary(entries: Sequence[HourlyEntry], mode: str = "average") -> List[DailyAqi]:
    """
    Group hourly bands by UTC date.

    `mode="average"` reports the rounded mean band, `mode="max"` the worst one.
    Days without any band are skipped.
    """
    if mode not in ("average", "max"):
        raise ValueError(f"mode must be 'average' or 'max', got {mode!r}")

    groups: Dict[str, List[int]] = defaultdict(list)
    for entry in entries:
        band = entry.aqi_band if entry.aqi_band is not None else aqi_band(pm25_to_aqi(entry.pm25))
        if band is None:
            continue
        groups[entry.time[:10]].append(band)

    out: List[DailyAqi] = []
    for date in sorted(groups):
        bands = groups[date]
        if mode == "max":
            value = max(bands)
        else:
            # Half-up rounding; round() would bank 2.5 down to 2.
            value = int(math.floor(sum(bands) / len(bands) + 0.5))
        out.append(DailyAqi(date=date, aqi_band=value, label=BAND_LABELS[value]))
    return out
