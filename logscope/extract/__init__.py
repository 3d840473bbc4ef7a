"""
logscope Extract Module - pattern-driven metric extraction from records.
"""

from typing import Union

from logscope.core.schema import StreamKind
from logscope.extract.rocksdb_metrics import RocksDBMetricExtractor
from logscope.extract.slowlog_metrics import SlowLogMetricExtractor

MetricExtractor = Union[RocksDBMetricExtractor, SlowLogMetricExtractor]


def get_extractor(kind: StreamKind) -> MetricExtractor:
    """Return the extractor matching the records produced by a stream of `kind`."""
    if kind is StreamKind.SLOWLOG:
        return SlowLogMetricExtractor()
    return RocksDBMetricExtractor()


__all__ = ["RocksDBMetricExtractor", "SlowLogMetricExtractor", "MetricExtractor", "get_extractor"]
