# src/aggrows/core/flatten.py
"""Flatten an aggregation result tree into rows.

Three pieces, all pure functions over the read-only tree:

- dispatch(): one node -> its {field: value} contribution (metric variants
  and the filter pass-through)
- expand_buckets(): one CompositeGrouping -> one row per bucket
- flatten(): a sibling sequence -> rows, deciding between a single merged
  row and bucketed rows

Row shape decision:
    If ANY sibling is a CompositeGrouping, the output is the concatenation of
    every composite's bucket rows, in sibling order. Contributions of the
    non-composite siblings are still computed (so an unsupported node anywhere
    fails the call) but are DISCARDED. Otherwise the output is a single row
    merging every sibling, or no rows for no siblings.

    This cannot tell "no grouping ran" apart from "grouping ran alongside
    plain metrics"; the plain metrics lose. Callers that mix the two at one
    level must split the request.

Merge policy:
    Within one row a later contribution overrides an earlier one with the
    same key, silently. Bucket group keys are written first, so a metric with
    the same name as a group field wins.
"""

from __future__ import annotations

import logging
import math
import numbers
from collections.abc import Iterable, Mapping
from typing import Any

from aggrows.contracts.aggregations import (
    AggregationNode,
    CompositeGrouping,
    FilteredGroup,
    PercentileSet,
    ResultRow,
    SingleValueMetric,
    StatsSummary,
    UnrecognizedAggregation,
)
from aggrows.contracts.enums import AggregationKind
from aggrows.contracts.errors import UnsupportedAggregationTypeError

logger = logging.getLogger(__name__)


def normalize(value: float | None) -> float | None:
    """Replace NaN with None; every other value passes through unchanged.

    NaN is how the backend says "not computable" (average over an empty
    bucket, min of no values). It is not a valid JSON or SQL value, so it
    never leaves the flattener.
    """
    if isinstance(value, numbers.Real) and math.isnan(value):
        return None
    return value


def merge_into(row: ResultRow, contribution: Mapping[str, Any]) -> ResultRow:
    """Merge a contribution into row in place, later keys overriding.

    Returns:
        The same row object, for chaining
    """
    row.update(contribution)
    return row


def dispatch(node: AggregationNode) -> dict[str, Any]:
    """Compute one node's contribution to a row.

    Args:
        node: A leaf metric or filter node

    Returns:
        Mapping of effective field name to value. For FilteredGroup the keys
        are the children's names; the wrapper's own name never appears.

    Raises:
        UnsupportedAggregationTypeError: For UnrecognizedAggregation, for a
            CompositeGrouping nested below the top level, or for any object
            that is not an aggregation node
    """
    match node:
        case SingleValueMetric(name=name, value=value):
            return {name: normalize(value)}

        case PercentileSet(name=name, entries=entries):
            return {name: {rank: normalize(value) for rank, value in entries}}

        case StatsSummary(name=name):
            # Fixed key order so serialized rows are byte-stable
            return {
                name: {
                    "min": normalize(node.min),
                    "max": normalize(node.max),
                    "avg": normalize(node.avg),
                    "sum": normalize(node.sum),
                    "count": node.count,
                }
            }

        case FilteredGroup(children=children):
            surfaced: dict[str, Any] = {}
            for child in children:
                merge_into(surfaced, dispatch(child))
            return surfaced

        case CompositeGrouping(name=name):
            # Only top-level composites expand into rows
            raise UnsupportedAggregationTypeError(AggregationKind.COMPOSITE.value, name)

        case UnrecognizedAggregation(name=name, type_name=type_name):
            raise UnsupportedAggregationTypeError(type_name, name)

        case _:
            raise UnsupportedAggregationTypeError(type(node).__name__, "<unknown>")


def expand_buckets(grouping: CompositeGrouping) -> list[ResultRow]:
    """Produce one row per bucket, in backend bucket order.

    Each row starts with the bucket's group key fields, then merges every
    child's contribution in order. A failing child aborts the whole
    expansion; no bucket is skipped.
    """
    rows: list[ResultRow] = []
    for bucket in grouping.buckets:
        row: ResultRow = dict(bucket.key)
        for child in bucket.children:
            merge_into(row, dispatch(child))
        rows.append(row)
    return rows


def flatten(siblings: Iterable[AggregationNode]) -> list[ResultRow]:
    """Flatten a sibling sequence of aggregation nodes into rows.

    Args:
        siblings: Top-level aggregation nodes in backend order

    Returns:
        Bucket rows if any sibling is a CompositeGrouping, otherwise a
        single merged row (or an empty list for no siblings)

    Raises:
        UnsupportedAggregationTypeError: If any node in the tree is not a
            supported variant. Nothing is returned in that case.
    """
    nodes = tuple(siblings)
    bucket_rows: list[ResultRow] = []
    merged: ResultRow = {}
    grouped = False

    for node in nodes:
        if isinstance(node, CompositeGrouping):
            grouped = True
            bucket_rows.extend(expand_buckets(node))
        else:
            merge_into(merged, dispatch(node))

    if grouped:
        if merged:
            logger.debug("Discarding non-bucketed fields %s next to a composite grouping", list(merged))
        logger.debug("Flattened %d aggregation(s) into %d bucket row(s)", len(nodes), len(bucket_rows))
        return bucket_rows

    if not nodes:
        return []

    logger.debug("Flattened %d aggregation(s) into a single row", len(nodes))
    return [merged]
