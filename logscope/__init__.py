"""
logscope

Log-to-metrics toolkit for RocksDB LOG files and Pika slow logs: record
segmentation with fast time seek, pattern-driven metric extraction,
time-bucket aggregation, an arithmetic expression engine over metric series,
CSV export and chart rendering.
"""

__version__ = "1.0.0"

from logscope.core.schema import (
    AggregateMode,
    Metric,
    Record,
    RecordCategory,
    StreamKind,
)
from logscope.stream import (
    EndOfData,
    LogOpenError,
    LogStream,
    NoCurrentRecord,
    RocksDBLogStream,
    SlowLogStream,
    StreamClosedError,
    open_stream,
)
from logscope.extract import RocksDBMetricExtractor, SlowLogMetricExtractor, get_extractor
from logscope.analytics import (
    BucketAggregator,
    ExpressionEngine,
    ExpressionError,
    ExpressionEvaluationError,
    ExpressionSyntaxError,
    compile_expression,
    compute_expression,
    standard_derived_series,
)
from logscope.runner import MetricCollector

__all__ = [
    # Core
    "Record",
    "Metric",
    "RecordCategory",
    "StreamKind",
    "AggregateMode",
    # Streams
    "LogStream",
    "RocksDBLogStream",
    "SlowLogStream",
    "open_stream",
    "EndOfData",
    "NoCurrentRecord",
    "StreamClosedError",
    "LogOpenError",
    # Extraction
    "RocksDBMetricExtractor",
    "SlowLogMetricExtractor",
    "get_extractor",
    # Analytics
    "BucketAggregator",
    "ExpressionEngine",
    "ExpressionError",
    "ExpressionSyntaxError",
    "ExpressionEvaluationError",
    "compile_expression",
    "compute_expression",
    "standard_derived_series",
    # Runner
    "MetricCollector",
    # Version
    "__version__",
]
