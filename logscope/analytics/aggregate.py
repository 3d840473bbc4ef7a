"""
Bucket Aggregator
Reduces metric points into fixed time buckets under one of five modes.

Group key is (bucket start, name, category). With group_by_category disabled,
every point is grouped and emitted under the catch-all OTHER category; this
applies to DELTA mode exactly as to the others.

Output order is not specified. Sort the result when a stable order matters.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import numpy as np

from logscope.core.schema import AggregateMode, Metric, RecordCategory

logger = logging.getLogger(__name__)

GroupKey = Tuple[datetime, str, RecordCategory]
SeriesKey = Tuple[str, RecordCategory]


def align_to_bucket(t: datetime, step: timedelta) -> datetime:
    """
    Floor `t` to a multiple of `step` counted from datetime.min, then drop sub-second precision.
    A non-positive step only truncates to whole seconds.
    """
    if step > timedelta(0):
        t = datetime.min + ((t - datetime.min) // step) * step
    return t.replace(microsecond=0)


@dataclass
class _Accumulator:
    count: int = 0
    total: float = 0.0
    first_time: Optional[datetime] = None
    first_value: float = 0.0

    def add(self, t: datetime, value: float) -> None:
        self.count += 1
        self.total += value
        if self.first_time is None or t < self.first_time:
            self.first_time = t
            self.first_value = value


class BucketAggregator:
    """
    Aggregates metrics into fixed time-step buckets.

    Args:
        step: Bucket width.
        mode: Reduction applied inside each bucket.
        group_by_category: Keep categories apart when grouping.
    """

    def __init__(
        self,
        step: timedelta,
        mode: AggregateMode = AggregateMode.SUM,
        group_by_category: bool = True,
    ):
        self.step = step
        self.mode = mode
        self.group_by_category = group_by_category

    def _category(self, metric: Metric) -> RecordCategory:
        return metric.source_category if self.group_by_category else RecordCategory.OTHER

    def aggregate(self, metrics: List[Metric]) -> List[Metric]:
        """Reduce `metrics` into one point per (bucket, name, category). Unset times are dropped."""
        if self.mode is AggregateMode.DELTA:
            return self._aggregate_delta(metrics)

        groups: Dict[GroupKey, _Accumulator] = {}
        for metric in metrics:
            if metric.time is None:
                continue
            key = (align_to_bucket(metric.time, self.step), metric.name, self._category(metric))
            acc = groups.get(key)
            if acc is None:
                acc = groups[key] = _Accumulator()
            acc.add(metric.time, metric.value)

        out: List[Metric] = []
        for (bucket, name, category), acc in groups.items():
            out.append(
                Metric(
                    source_category=category,
                    time=bucket,
                    name=name + self.mode.suffix,
                    value=self._reduce(acc),
                )
            )
        return out

    def _reduce(self, acc: _Accumulator) -> float:
        if self.mode is AggregateMode.COUNT:
            return float(acc.count)
        if self.mode is AggregateMode.FIRST:
            return acc.first_value
        if self.mode is AggregateMode.AVG:
            return acc.total / acc.count if acc.count > 0 else 0.0
        return acc.total

    def _aggregate_delta(self, metrics: List[Metric]) -> List[Metric]:
        """
        Per-series increments summed per bucket.

        Points are ordered by their own time within each series before
        differencing, and only then assigned to buckets; the first point of a
        series contributes 0.
        """
        series: Dict[SeriesKey, List[Metric]] = {}
        for metric in metrics:
            if metric.time is None:
                continue
            series.setdefault((metric.name, self._category(metric)), []).append(metric)

        buckets: Dict[GroupKey, float] = {}
        for (name, category), points in series.items():
            points.sort(key=lambda m: m.time)
            values = np.array([p.value for p in points], dtype=float)
            increments = np.diff(values, prepend=values[0])

            for point, inc in zip(points, increments):
                key = (align_to_bucket(point.time, self.step), name, category)
                buckets[key] = buckets.get(key, 0.0) + float(inc)

        logger.debug(f"Delta aggregation: {len(series)} series into {len(buckets)} buckets")

        return [
            Metric(
                source_category=category,
                time=bucket,
                name=name + AggregateMode.DELTA.suffix,
                value=total,
            )
            for (bucket, name, category), total in buckets.items()
        ]


def aggregate(
    metrics: List[Metric],
    step: timedelta,
    mode: AggregateMode = AggregateMode.SUM,
    group_by_category: bool = True,
) -> List[Metric]:
    """Convenience wrapper around BucketAggregator."""
    return BucketAggregator(step, mode, group_by_category).aggregate(metrics)
