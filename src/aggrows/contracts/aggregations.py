"""Typed aggregation result tree.

The backend hands over an ordered sequence of sibling aggregation nodes.
Each node is one of a closed set of frozen dataclasses; AggregationNode is
their union and the flattener matches on it exhaustively.

Sequence fields are coerced to tuples at construction so a tree built from
lists is still read-only once constructed. Bucket keys are wrapped in a
read-only mapping for the same reason.
"""

from __future__ import annotations

import types
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, TypeAlias

from aggrows.contracts.enums import AggregationKind

# One flattened output row: field name -> scalar, or dict for structured metrics.
ResultRow: TypeAlias = dict[str, Any]


@dataclass(frozen=True)
class SingleValueMetric:
    """One numeric result. NaN means "not computable" (e.g. avg of no docs)."""

    kind: ClassVar[AggregationKind] = AggregationKind.SINGLE_VALUE

    name: str
    value: float | None


@dataclass(frozen=True)
class PercentileSet:
    """Percentile results as (percent rank label, value) pairs.

    Labels are strings ("99.0") so float rounding never merges two ranks.
    """

    kind: ClassVar[AggregationKind] = AggregationKind.PERCENTILES

    name: str
    entries: tuple[tuple[str, float | None], ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple((str(rank), value) for rank, value in self.entries))


@dataclass(frozen=True)
class StatsSummary:
    """Fixed five-value statistical summary."""

    kind: ClassVar[AggregationKind] = AggregationKind.STATS

    name: str
    min: float | None
    max: float | None
    avg: float | None
    sum: float | None
    count: int


@dataclass(frozen=True)
class FilteredGroup:
    """Pass-through wrapper; children surface under their own names."""

    kind: ClassVar[AggregationKind] = AggregationKind.FILTER

    name: str
    children: tuple[AggregationNode, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))


@dataclass(frozen=True)
class Bucket:
    """One group of a CompositeGrouping.

    Attributes:
        key: Grouping field name -> scalar value for this group
        children: Metrics computed within this group, in backend order
    """

    key: Mapping[str, Any]
    children: tuple[AggregationNode, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", types.MappingProxyType(dict(self.key)))
        object.__setattr__(self, "children", tuple(self.children))


@dataclass(frozen=True)
class CompositeGrouping:
    """Grouping aggregation; the only variant that yields more than one row."""

    kind: ClassVar[AggregationKind] = AggregationKind.COMPOSITE

    name: str
    buckets: tuple[Bucket, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "buckets", tuple(self.buckets))


@dataclass(frozen=True)
class UnrecognizedAggregation:
    """Any backend aggregation type outside the supported set.

    Kept as a node (rather than rejected at decode time) so the failure
    surfaces from flatten with the full sibling context.
    """

    kind: ClassVar[AggregationKind] = AggregationKind.UNRECOGNIZED

    name: str
    type_name: str


AggregationNode: TypeAlias = (
    SingleValueMetric | PercentileSet | StatsSummary | FilteredGroup | CompositeGrouping | UnrecognizedAggregation
)
