# tests/unit/core/test_decoding.py
"""Tests for decoding typed-keys search responses into aggregation nodes."""

from __future__ import annotations

import math
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from aggrows.contracts import (
    AggregationDecodeError,
    Bucket,
    CompositeGrouping,
    FilteredGroup,
    PercentileSet,
    SingleValueMetric,
    StatsSummary,
    UnrecognizedAggregation,
    UnsupportedAggregationTypeError,
)
from aggrows.core.decoding import (
    SINGLE_VALUE_TYPES,
    decode_aggregations,
    decode_node,
    decode_response,
    load_response,
    split_typed_key,
)
from aggrows.core.flatten import flatten


class TestSplitTypedKey:
    def test_type_and_name(self) -> None:
        assert split_typed_key("avg#avg_price", "$") == ("avg", "avg_price")

    def test_name_may_contain_delimiter(self) -> None:
        assert split_typed_key("sum#a#b", "$") == ("sum", "a#b")

    @pytest.mark.parametrize("key", ["avg_price", "#avg_price", "avg#"])
    def test_untyped_or_incomplete_key_rejected(self, key: str) -> None:
        with pytest.raises(AggregationDecodeError, match="typed_keys"):
            split_typed_key(key, "aggregations")


class TestDecodeSingleValue:
    @pytest.mark.parametrize("type_name", sorted(SINGLE_VALUE_TYPES))
    def test_every_single_value_type(self, type_name: str) -> None:
        node = decode_node(f"{type_name}#m", {"value": 4}, "$")

        assert node == SingleValueMetric("m", 4.0)
        assert isinstance(node.value, float)

    def test_null_value_decodes_to_nan(self) -> None:
        node = decode_node("avg#avg_price", {"value": None}, "$")

        assert isinstance(node, SingleValueMetric)
        assert node.value is not None
        assert math.isnan(node.value)

    def test_missing_value_rejected(self) -> None:
        with pytest.raises(AggregationDecodeError, match="no 'value' member"):
            decode_node("avg#avg_price", {"value_as_string": "1"}, "$")

    def test_string_value_rejected(self) -> None:
        with pytest.raises(AggregationDecodeError, match="expected a number or null"):
            decode_node("avg#avg_price", {"value": "12.5"}, "$")

    def test_boolean_value_rejected(self) -> None:
        with pytest.raises(AggregationDecodeError):
            decode_node("max#flag", {"value": True}, "$")

    @pytest.mark.parametrize("value", [math.inf, -math.inf, 10**400])
    def test_non_finite_value_rejected(self, value: Any) -> None:
        with pytest.raises(AggregationDecodeError, match="non-finite number") as exc_info:
            decode_node("max#m", {"value": value}, "$")

        assert exc_info.value.path == "$.value"


class TestDecodePercentiles:
    def test_keyed_values(self) -> None:
        node = decode_node("tdigest_percentiles#latency", {"values": {"50.0": 12.3, "99.0": 88.1}}, "$")

        assert node == PercentileSet("latency", (("50.0", 12.3), ("99.0", 88.1)))

    def test_keyed_values_skip_as_string_members(self) -> None:
        body = {"values": {"50.0": 12.3, "50.0_as_string": "12.3ms"}}

        node = decode_node("hdr_percentiles#latency", body, "$")

        assert node == PercentileSet("latency", (("50.0", 12.3),))

    def test_unkeyed_values_use_float_labels(self) -> None:
        body = {"values": [{"key": 50, "value": 12.3}, {"key": 99.9, "value": None}]}

        node = decode_node("tdigest_percentiles#latency", body, "$")

        assert isinstance(node, PercentileSet)
        assert [rank for rank, _ in node.entries] == ["50.0", "99.9"]
        assert math.isnan(node.entries[1][1])

    def test_missing_values_rejected(self) -> None:
        with pytest.raises(AggregationDecodeError, match="no 'values' member"):
            decode_node("tdigest_percentiles#latency", {}, "$")

    def test_unkeyed_entry_without_key_rejected(self) -> None:
        with pytest.raises(AggregationDecodeError, match=r"values\[0\]"):
            decode_node("tdigest_percentiles#latency", {"values": [{"value": 1.0}]}, "$")


class TestDecodeStats:
    def test_stats(self) -> None:
        body = {"count": 10, "min": 1.0, "max": 9.0, "avg": 5.0, "sum": 50.0}

        node = decode_node("stats#price_stats", body, "$")

        assert node == StatsSummary("price_stats", min=1.0, max=9.0, avg=5.0, sum=50.0, count=10)

    def test_extended_stats_reads_only_the_five_fields(self) -> None:
        body = {"count": 2, "min": 1.0, "max": 3.0, "avg": 2.0, "sum": 4.0, "variance": 1.0, "std_deviation": 1.0}

        node = decode_node("extended_stats#s", body, "$")

        assert node == StatsSummary("s", min=1.0, max=3.0, avg=2.0, sum=4.0, count=2)

    def test_empty_stats_nulls_decode_to_nan(self) -> None:
        body = {"count": 0, "min": None, "max": None, "avg": None, "sum": 0.0}

        node = decode_node("stats#s", body, "$")

        assert isinstance(node, StatsSummary)
        assert math.isnan(node.min) and math.isnan(node.max) and math.isnan(node.avg)
        assert node.sum == 0.0

    def test_missing_count_rejected(self) -> None:
        with pytest.raises(AggregationDecodeError, match="count"):
            decode_node("stats#s", {"min": 1.0}, "$")

    @pytest.mark.parametrize("type_name", ["stats_bucket", "extended_stats_bucket"])
    def test_pipeline_stats_types(self, type_name: str) -> None:
        body = {"count": 3, "min": 1.0, "max": 5.0, "avg": 3.0, "sum": 9.0}

        node = decode_node(f"{type_name}#monthly", body, "$")

        assert node == StatsSummary("monthly", min=1.0, max=5.0, avg=3.0, sum=9.0, count=3)


class TestDecodeFilter:
    def test_typed_members_become_children(self) -> None:
        body = {"doc_count": 4, "value_count#active_count": {"value": 4}, "meta": {"note": "x"}}

        node = decode_node("filter#only_active", body, "$")

        assert node == FilteredGroup("only_active", (SingleValueMetric("active_count", 4.0),))

    def test_filter_with_only_doc_count(self) -> None:
        assert decode_node("filter#f", {"doc_count": 0}, "$") == FilteredGroup("f", ())


class TestDecodeComposite:
    def test_buckets_keys_and_children(self) -> None:
        body = {
            "after_key": {"city": "LA"},
            "buckets": [
                {"key": {"city": "NYC"}, "doc_count": 3, "value_count#count": {"value": 3}},
                {"key": {"city": "LA"}, "doc_count": 7, "value_count#count": {"value": 7}},
            ],
        }

        node = decode_node("composite#by_city", body, "$")

        assert node == CompositeGrouping(
            "by_city",
            (
                Bucket(key={"city": "NYC"}, children=(SingleValueMetric("count", 3.0),)),
                Bucket(key={"city": "LA"}, children=(SingleValueMetric("count", 7.0),)),
            ),
        )

    def test_missing_buckets_rejected(self) -> None:
        with pytest.raises(AggregationDecodeError, match="buckets"):
            decode_node("composite#g", {"after_key": {}}, "$")

    def test_bucket_without_key_rejected(self) -> None:
        with pytest.raises(AggregationDecodeError, match=r"buckets\[1\]"):
            decode_node("composite#g", {"buckets": [{"key": {"a": 1}}, {"doc_count": 1}]}, "$")

    def test_non_object_bucket_key_rejected(self) -> None:
        with pytest.raises(AggregationDecodeError, match=r"buckets\[0\]\.key"):
            decode_node("composite#g", {"buckets": [{"key": "NYC"}]}, "$")


class TestDecodeUnknown:
    def test_unknown_type_is_kept_as_unrecognized(self) -> None:
        node = decode_node("sterms#top_terms", {"buckets": []}, "$")

        assert node == UnrecognizedAggregation("top_terms", "sterms")

    def test_non_object_body_rejected(self) -> None:
        with pytest.raises(AggregationDecodeError, match="expected an object"):
            decode_node("avg#a", [1, 2], "aggregations.avg#a")


class TestDecodeResponse:
    def test_member_order_preserved(self, metrics_only_response: dict[str, Any]) -> None:
        nodes = decode_response(metrics_only_response)

        assert [node.name for node in nodes] == ["max_price", "price_stats", "latency", "only_active"]

    def test_response_without_aggregations(self) -> None:
        assert decode_response({"took": 1, "hits": {"hits": []}}) == ()

    def test_custom_response_key(self) -> None:
        nodes = decode_response({"aggs": {"max#m": {"value": 1}}}, response_key="aggs")

        assert nodes == (SingleValueMetric("m", 1.0),)

    def test_bare_aggregations_document(self) -> None:
        nodes = decode_response({"max#m": {"value": 1}}, response_key=None)

        assert nodes == (SingleValueMetric("m", 1.0),)

    def test_untyped_top_level_key_rejected(self) -> None:
        with pytest.raises(AggregationDecodeError) as exc_info:
            decode_aggregations({"avg_price": {"value": 1.0}})

        assert exc_info.value.path == "aggregations.avg_price"

    def test_error_path_points_into_bucket(self, city_counts_response: dict[str, Any]) -> None:
        city_counts_response["aggregations"]["composite#by_city"]["buckets"][1]["avg#avg_price"] = {"value": "bad"}

        with pytest.raises(AggregationDecodeError) as exc_info:
            decode_response(city_counts_response)

        assert exc_info.value.path == "aggregations.composite#by_city.buckets[1].avg#avg_price.value"


class TestDecodeThenFlatten:
    """Decoded responses flatten like the equivalent hand-built trees."""

    def test_city_counts(self, city_counts_response: dict[str, Any]) -> None:
        rows = flatten(decode_response(city_counts_response))

        assert rows == [
            {"city": "NYC", "count": 3.0, "avg_price": 12.5},
            {"city": "LA", "count": 7.0, "avg_price": None},
        ]

    def test_metrics_only(self, metrics_only_response: dict[str, Any]) -> None:
        rows = flatten(decode_response(metrics_only_response))

        assert rows == [
            {
                "max_price": 99.0,
                "price_stats": {"min": 1.0, "max": 9.0, "avg": 5.0, "sum": 50.0, "count": 10},
                "latency": {"50.0": 12.3, "99.0": 88.1},
                "active_count": 4.0,
            }
        ]

    def test_stats_bucket_flattens(self) -> None:
        nodes = decode_response(
            {
                "aggregations": {
                    "extended_stats_bucket#monthly": {
                        "count": 2,
                        "min": 1.0,
                        "max": 3.0,
                        "avg": 2.0,
                        "sum": 4.0,
                        "variance": 1.0,
                    }
                }
            }
        )

        assert flatten(nodes) == [{"monthly": {"min": 1.0, "max": 3.0, "avg": 2.0, "sum": 4.0, "count": 2}}]

    def test_unknown_type_fails_at_flatten(self) -> None:
        nodes = decode_response({"aggregations": {"max#m": {"value": 1}, "sterms#t": {"buckets": []}}})

        with pytest.raises(UnsupportedAggregationTypeError, match="sterms"):
            flatten(nodes)


class TestLoadResponse:
    def test_reads_and_decodes(self, write_json: Callable[..., Path], city_counts_response: dict[str, Any]) -> None:
        path = write_json(city_counts_response)

        nodes = load_response(path)

        assert len(nodes) == 1
        assert isinstance(nodes[0], CompositeGrouping)

    def test_nan_constant_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "response.json"
        path.write_text('{"aggregations": {"avg#a": {"value": NaN}}}', encoding="utf-8")

        with pytest.raises(ValueError, match="Non-standard JSON constant 'NaN'"):
            load_response(path)

    def test_overflowing_number_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "response.json"
        path.write_text('{"aggregations": {"max#m": {"value": 1e400}}}', encoding="utf-8")

        with pytest.raises(AggregationDecodeError, match="non-finite number"):
            load_response(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_response(tmp_path / "missing.json")
