"""
logscope Analytics Module - bucket aggregation, expressions and derived series.
"""

from logscope.analytics.aggregate import BucketAggregator, aggregate, align_to_bucket
from logscope.analytics.derived import standard_derived_series
from logscope.analytics.expression import (
    CompiledExpression,
    ExpressionEngine,
    ExpressionError,
    ExpressionEvaluationError,
    ExpressionSyntaxError,
    compile_expression,
    compute_expression,
    tokenize,
)

__all__ = [
    "BucketAggregator",
    "aggregate",
    "align_to_bucket",
    "ExpressionEngine",
    "CompiledExpression",
    "compile_expression",
    "compute_expression",
    "tokenize",
    "ExpressionError",
    "ExpressionSyntaxError",
    "ExpressionEvaluationError",
    "standard_derived_series",
]
