"""
Derived Series
Standard ratio series computed on top of bucketed RocksDB metrics.
"""

import logging
from datetime import timedelta
from typing import List, Tuple

from logscope.analytics.aggregate import BucketAggregator
from logscope.analytics.expression import ExpressionError, ExpressionEngine
from logscope.core.schema import AggregateMode, Metric

logger = logging.getLogger(__name__)

# (output name, formula) evaluated over SUM buckets
SUM_DERIVED: List[Tuple[str, str]] = [
    (
        "Compaction_Eff_default",
        "Compaction_Write_GB_default_Sum / (Flush_GB_default_Sum + Add_GB_default_Sum)",
    ),
    (
        "Compaction_Eff_data_cf",
        "Compaction_Write_GB_data_cf_Sum / (Flush_GB_data_cf_Sum + Add_GB_data_cf_Sum)",
    ),
]

# (output name, formula) evaluated over DELTA buckets
DELTA_DERIVED: List[Tuple[str, str]] = [
    ("BC_Hit_Ratio", "BC_Hit_Cum_Delta / (BC_Hit_Cum_Delta + BC_Miss_Cum_Delta)"),
]


def standard_derived_series(metrics: List[Metric], step: timedelta) -> List[Metric]:
    """
    Compaction efficiency per column family and the block cache hit ratio.

    Categories are ignored when bucketing. Returns an empty list when step is
    not positive; a formula that fails is skipped.
    """
    if step <= timedelta(0):
        return []

    engine = ExpressionEngine()
    out: List[Metric] = []

    for mode, derived in ((AggregateMode.SUM, SUM_DERIVED), (AggregateMode.DELTA, DELTA_DERIVED)):
        bucketed = BucketAggregator(step, mode, group_by_category=False).aggregate(metrics)
        for name, formula in derived:
            try:
                out.extend(engine.compute(bucketed, formula, name))
            except ExpressionError as e:
                logger.warning(f"Skipping derived series {name}: {e}")

    return out
