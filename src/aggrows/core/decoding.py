# src/aggrows/core/decoding.py
"""Decode a search response body into the typed aggregation tree.

The backend must render aggregations with typed keys: every aggregation
member is keyed "<type>#<name>", e.g. "avg#avg_price" or
"composite#by_city". Without the type prefix the variant cannot be known,
so an untyped key where an aggregation is expected is a decode error.

Inside filter bodies and composite buckets, untyped members (doc_count,
key, meta, ...) are backend bookkeeping and are skipped; every typed member
is a child aggregation.

Unknown types decode to UnrecognizedAggregation rather than failing here.
The flattener is the single place that decides what is supported.

NOTE: JSON null for a metric value decodes to NaN, the same thing the
backend's own client hands over for "not computable". The flattener turns
it back into None.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from aggrows.contracts.aggregations import (
    AggregationNode,
    Bucket,
    CompositeGrouping,
    FilteredGroup,
    PercentileSet,
    SingleValueMetric,
    StatsSummary,
    UnrecognizedAggregation,
)
from aggrows.contracts.errors import AggregationDecodeError

logger = logging.getLogger(__name__)

TYPED_KEY_DELIMITER = "#"

# Backend types whose body is {"value": <number|null>}
SINGLE_VALUE_TYPES: frozenset[str] = frozenset(
    {
        "avg",
        "sum",
        "min",
        "max",
        "value_count",
        "cardinality",
        "weighted_avg",
        "median_absolute_deviation",
        "simple_value",
        "derivative",
        "bucket_metric_value",
    }
)

PERCENTILE_TYPES: frozenset[str] = frozenset({"tdigest_percentiles", "hdr_percentiles", "percentiles_bucket"})

# The extended variants carry extra members; only the five stats fields are read
STATS_TYPES: frozenset[str] = frozenset({"stats", "extended_stats", "stats_bucket", "extended_stats_bucket"})

FILTER_TYPE = "filter"
COMPOSITE_TYPE = "composite"

_AS_STRING_SUFFIX = "_as_string"


def _reject_nonfinite_constant(value: str) -> None:
    """Reject non-standard JSON constants (NaN, Infinity, -Infinity).

    Passed to json.load via parse_constant. The backend renders
    "not computable" as null, never as a bare NaN token.

    Raises:
        ValueError: Always
    """
    raise ValueError(f"Non-standard JSON constant '{value}' not allowed. Use null for missing values, not NaN/Infinity.")


def split_typed_key(key: str, path: str) -> tuple[str, str]:
    """Split "<type>#<name>" into (type, name).

    The name may itself contain the delimiter; only the first one separates.

    Raises:
        AggregationDecodeError: If the key has no type prefix or no name
    """
    type_name, delimiter, name = key.partition(TYPED_KEY_DELIMITER)
    if not delimiter or not type_name or not name:
        raise AggregationDecodeError(
            path,
            f"expected a '<type>{TYPED_KEY_DELIMITER}<name>' key, got {key!r} (was the response rendered with typed_keys?)",
        )
    return type_name, name


def _require_mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise AggregationDecodeError(path, f"expected an object, got {type(value).__name__}")
    return value


def _number(value: Any, path: str) -> float:
    """Decode a JSON metric value; null becomes NaN."""
    if value is None:
        return math.nan
    # bool is an int subclass but never a metric value
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise AggregationDecodeError(path, f"expected a number or null, got {type(value).__name__}")
    # json.load reads out-of-range literals such as 1e400 as inf
    try:
        number = float(value)
    except OverflowError:
        raise AggregationDecodeError(path, "non-finite number") from None
    if math.isinf(number):
        raise AggregationDecodeError(path, "non-finite number")
    return number


def _rank_label(rank: Any, path: str) -> str:
    """Render a numeric percent rank the way keyed responses label it (50 -> "50.0")."""
    if isinstance(rank, str):
        return rank
    return repr(_number(rank, path))


def _decode_percentiles(name: str, body: Mapping[str, Any], path: str) -> PercentileSet:
    if "values" not in body:
        raise AggregationDecodeError(path, "percentiles body has no 'values' member")
    values = body["values"]
    values_path = f"{path}.values"

    entries: list[tuple[str, float]] = []
    if isinstance(values, Mapping):
        # keyed=true: {"50.0": 12.3, "50.0_as_string": "12.3ms", ...}
        for rank, value in values.items():
            if rank.endswith(_AS_STRING_SUFFIX):
                continue
            entries.append((rank, _number(value, f"{values_path}.{rank}")))
    elif isinstance(values, list):
        # keyed=false: [{"key": 50.0, "value": 12.3}, ...]
        for index, item in enumerate(values):
            item_path = f"{values_path}[{index}]"
            item = _require_mapping(item, item_path)
            if "key" not in item:
                raise AggregationDecodeError(item_path, "percentile entry has no 'key' member")
            entries.append((_rank_label(item["key"], item_path), _number(item.get("value"), item_path)))
    else:
        raise AggregationDecodeError(values_path, f"expected an object or array, got {type(values).__name__}")

    return PercentileSet(name=name, entries=tuple(entries))


def _decode_stats(name: str, body: Mapping[str, Any], path: str) -> StatsSummary:
    count = body.get("count")
    if isinstance(count, bool) or not isinstance(count, int):
        raise AggregationDecodeError(path, f"stats 'count' must be an integer, got {type(count).__name__}")
    return StatsSummary(
        name=name,
        min=_number(body.get("min"), f"{path}.min"),
        max=_number(body.get("max"), f"{path}.max"),
        avg=_number(body.get("avg"), f"{path}.avg"),
        sum=_number(body.get("sum"), f"{path}.sum"),
        count=count,
    )


def _decode_children(body: Mapping[str, Any], path: str) -> tuple[AggregationNode, ...]:
    """Decode the typed members of a filter body or bucket, skipping bookkeeping."""
    return tuple(
        decode_node(key, value, f"{path}.{key}") for key, value in body.items() if TYPED_KEY_DELIMITER in key
    )


def _decode_composite(name: str, body: Mapping[str, Any], path: str) -> CompositeGrouping:
    buckets = body.get("buckets")
    if not isinstance(buckets, list):
        raise AggregationDecodeError(path, "composite body must have a 'buckets' array")

    decoded: list[Bucket] = []
    for index, raw in enumerate(buckets):
        bucket_path = f"{path}.buckets[{index}]"
        bucket = _require_mapping(raw, bucket_path)
        if "key" not in bucket:
            raise AggregationDecodeError(bucket_path, "composite bucket has no 'key' member")
        key = _require_mapping(bucket["key"], f"{bucket_path}.key")
        decoded.append(Bucket(key=key, children=_decode_children(bucket, bucket_path)))

    return CompositeGrouping(name=name, buckets=tuple(decoded))


def decode_node(key: str, body: Any, path: str) -> AggregationNode:
    """Decode one typed aggregation member.

    Args:
        key: The "<type>#<name>" member key
        body: The member's JSON value
        path: Dotted path of the member, for error messages

    Returns:
        The matching node variant (UnrecognizedAggregation for unknown types)

    Raises:
        AggregationDecodeError: If the key is untyped or the body is malformed
    """
    type_name, name = split_typed_key(key, path)
    body = _require_mapping(body, path)

    if type_name in SINGLE_VALUE_TYPES:
        if "value" not in body:
            raise AggregationDecodeError(path, f"{type_name} body has no 'value' member")
        return SingleValueMetric(name=name, value=_number(body["value"], f"{path}.value"))
    if type_name in PERCENTILE_TYPES:
        return _decode_percentiles(name, body, path)
    if type_name in STATS_TYPES:
        return _decode_stats(name, body, path)
    if type_name == FILTER_TYPE:
        return FilteredGroup(name=name, children=_decode_children(body, path))
    if type_name == COMPOSITE_TYPE:
        return _decode_composite(name, body, path)
    return UnrecognizedAggregation(name=name, type_name=type_name)


def decode_aggregations(payload: Any, path: str = "aggregations") -> tuple[AggregationNode, ...]:
    """Decode an aggregations object into top-level sibling nodes.

    Every member must be typed; member order is preserved.

    Raises:
        AggregationDecodeError: If the payload is not a typed aggregations object
    """
    payload = _require_mapping(payload, path)
    nodes = tuple(decode_node(key, value, f"{path}.{key}") for key, value in payload.items())
    logger.debug("Decoded %d aggregation(s) at %s", len(nodes), path)
    return nodes


def decode_response(response: Any, response_key: str | None = "aggregations") -> tuple[AggregationNode, ...]:
    """Decode the aggregations of a whole search response.

    Args:
        response: Parsed response body
        response_key: Member holding the aggregations. None means the
            response IS the aggregations object.

    Returns:
        Top-level nodes; empty if the response has no aggregations member
    """
    if response_key is None:
        return decode_aggregations(response, path="$")
    response = _require_mapping(response, "$")
    if response_key not in response:
        return ()
    return decode_aggregations(response[response_key], path=response_key)


def load_response(path: Path, response_key: str | None = "aggregations") -> tuple[AggregationNode, ...]:
    """Read a JSON response file and decode its aggregations.

    Raises:
        FileNotFoundError: If the file does not exist
        json.JSONDecodeError: If the file is not valid JSON
        ValueError: If the file contains NaN/Infinity constants
        AggregationDecodeError: If the aggregations are malformed
    """
    with path.open(encoding="utf-8") as f:
        response = json.load(f, parse_constant=_reject_nonfinite_constant)
    return decode_response(response, response_key)
