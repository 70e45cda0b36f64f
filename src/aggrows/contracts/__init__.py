"""Shared contracts for the aggregation tree, rows and errors.

This package is a LEAF MODULE with no outbound dependencies to core or cli.

Import patterns:
    from aggrows.contracts import CompositeGrouping, Bucket, SingleValueMetric
    from aggrows.contracts import UnsupportedAggregationTypeError
"""

from aggrows.contracts.aggregations import (
    AggregationNode,
    Bucket,
    CompositeGrouping,
    FilteredGroup,
    PercentileSet,
    ResultRow,
    SingleValueMetric,
    StatsSummary,
    UnrecognizedAggregation,
)
from aggrows.contracts.enums import AggregationKind, LogLevel, OutputFormat
from aggrows.contracts.errors import (
    AggregationDecodeError,
    FlattenErrorPayload,
    UnsupportedAggregationTypeError,
)

__all__ = [
    "AggregationDecodeError",
    "AggregationKind",
    "AggregationNode",
    "Bucket",
    "CompositeGrouping",
    "FilteredGroup",
    "FlattenErrorPayload",
    "LogLevel",
    "OutputFormat",
    "PercentileSet",
    "ResultRow",
    "SingleValueMetric",
    "StatsSummary",
    "UnrecognizedAggregation",
    "UnsupportedAggregationTypeError",
]
