"""
logscope Runner Module - metric collection over log files.
"""

from logscope.runner.collector import MetricCollector, expand_paths

__all__ = ["MetricCollector", "expand_paths"]
