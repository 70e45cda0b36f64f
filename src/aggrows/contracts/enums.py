"""Kinds and modes shared across subsystem boundaries.

Every aggregation node carries exactly one AggregationKind. There is no
"unknown passthrough": anything the flattener does not recognize is
UNRECOGNIZED and crashes the flatten call.
"""

from enum import StrEnum


class AggregationKind(StrEnum):
    """Variant tag of an aggregation node.

    Values:
        SINGLE_VALUE: One numeric metric (avg, sum, cardinality, ...)
        PERCENTILES: Ordered set of (percent rank, value) pairs
        STATS: Fixed min/max/avg/sum/count summary
        FILTER: Pass-through wrapper around child aggregations
        COMPOSITE: Grouping that produces one row per bucket
        UNRECOGNIZED: Any other backend type, always rejected
    """

    SINGLE_VALUE = "single_value"
    PERCENTILES = "percentiles"
    STATS = "stats"
    FILTER = "filter"
    COMPOSITE = "composite"
    UNRECOGNIZED = "unrecognized"


class OutputFormat(StrEnum):
    """How the CLI renders flattened rows.

    JSON: One JSON array holding every row
    JSONL: One JSON object per line
    """

    JSON = "json"
    JSONL = "jsonl"


class LogLevel(StrEnum):
    """Root log level for the CLI."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
