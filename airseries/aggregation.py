"""Hour bucketing and per-component gap interpolation."""
from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from airseries.samples import Sample

HOUR_SECONDS = 3600


def floor_to_hour(ts: int | float) -> int:
    """Truncate epoch seconds down to the start of the containing hour."""
    return int(math.floor(ts / HOUR_SECONDS)) * HOUR_SECONDS


def iso_from_seconds(ts: int) -> str:
    """Render epoch seconds as an ISO-8601 UTC string with a `Z` suffix."""
    return dt.datetime.fromtimestamp(ts, tz=dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class HourBucket:
    """All samples that fell into one hour, kept per component."""
    hour_start: int
    values: Dict[str, List[float]] = field(default_factory=dict)
    sample_count: int = 0

    def add(self, sample: Sample) -> None:
        """Fold one sample into the bucket."""
        for name, value in sample.components.items():
            if value is None:
                continue
            self.values.setdefault(name, []).append(float(value))
        self.sample_count += 1

    def average(self, component: str) -> Optional[float]:
        """Mean of `component` over the samples that carried it, else None."""
        vals = self.values.get(component)
        if not vals:
            return None
        # fsum is exactly rounded, so the mean does not depend on sample order.
        return math.fsum(vals) / len(vals)

    @property
    def components(self) -> Dict[str, float]:
        """Averages for every component present in the bucket."""
        return {name: self.average(name) for name in self.values if self.values[name]}


def aggregate_samples(samples: Iterable[Sample]) -> Dict[int, HourBucket]:
    """
    Bucket samples by hour start.

    Samples without any component are ignored. The output only depends on the
    multiset of samples, not on their order.
    """
    buckets: Dict[int, HourBucket] = {}
    for sample in samples or []:
        if sample is None or not sample.components:
            continue
        hour_start = floor_to_hour(sample.timestamp)
        bucket = buckets.get(hour_start)
        if bucket is None:
            bucket = buckets[hour_start] = HourBucket(hour_start=hour_start)
        bucket.add(sample)
    return buckets


def _neighbours(
    buckets: Mapping[int, HourBucket],
    target_ts: int,
    component: str,
) -> tuple[Optional[HourBucket], Optional[HourBucket]]:
    """Nearest bucket at/before and strictly after `target_ts` carrying `component`."""
    left: Optional[HourBucket] = None
    right: Optional[HourBucket] = None
    for ts in sorted(buckets):
        bucket = buckets[ts]
        if bucket.average(component) is None:
            continue
        if ts <= target_ts:
            left = bucket
        else:
            right = bucket
            break
    return left, right


def interpolate_component(
    buckets: Mapping[int, HourBucket],
    target_ts: int,
    component: str,
) -> Optional[float]:
    """
    Estimate `component` at `target_ts` from the surrounding buckets.

    Linear between the two nearest buckets that carry the component, flat
    extrapolation when only one side exists, None when neither does.
    """
    left, right = _neighbours(buckets, target_ts, component)
    left_value = left.average(component) if left else None
    right_value = right.average(component) if right else None

    if left is not None and right is not None:
        fraction = (target_ts - left.hour_start) / (right.hour_start - left.hour_start)
        return left_value + fraction * (right_value - left_value)
    if left is not None:
        return left_value
    if right is not None:
        return right_value
    return None
