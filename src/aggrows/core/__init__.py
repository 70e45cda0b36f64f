# src/aggrows/core/__init__.py
"""Core: Flattening, Decoding, Configuration, Logging."""

from aggrows.core.config import (
    AggrowsSettings,
    LoggingSettings,
    OutputSettings,
    load_settings,
)
from aggrows.core.decoding import (
    decode_aggregations,
    decode_node,
    decode_response,
    load_response,
)
from aggrows.core.flatten import (
    dispatch,
    expand_buckets,
    flatten,
    merge_into,
    normalize,
)
from aggrows.core.logging import configure_logging, get_logger

__all__ = [
    "AggrowsSettings",
    "LoggingSettings",
    "OutputSettings",
    "configure_logging",
    "decode_aggregations",
    "decode_node",
    "decode_response",
    "dispatch",
    "expand_buckets",
    "flatten",
    "get_logger",
    "load_response",
    "load_settings",
    "merge_into",
    "normalize",
]
