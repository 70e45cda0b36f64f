# tests/conftest.py
"""Shared test fixtures and helpers.

Response Fixtures:
- city_counts_response: composite grouping over one field with nested metrics
- metrics_only_response: plain metrics, no grouping (single-row output)

Both are parsed JSON bodies as the backend renders them with typed_keys=true.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings


@pytest.fixture
def city_counts_response() -> dict[str, Any]:
    """Search response with a composite grouping by city."""
    return {
        "took": 3,
        "timed_out": False,
        "hits": {"total": {"value": 10, "relation": "eq"}, "hits": []},
        "aggregations": {
            "composite#by_city": {
                "after_key": {"city": "LA"},
                "buckets": [
                    {
                        "key": {"city": "NYC"},
                        "doc_count": 3,
                        "value_count#count": {"value": 3},
                        "avg#avg_price": {"value": 12.5},
                    },
                    {
                        "key": {"city": "LA"},
                        "doc_count": 7,
                        "value_count#count": {"value": 7},
                        "avg#avg_price": {"value": None},
                    },
                ],
            }
        },
    }


@pytest.fixture
def metrics_only_response() -> dict[str, Any]:
    """Search response with plain metrics and a filter, no grouping."""
    return {
        "took": 1,
        "aggregations": {
            "max#max_price": {"value": 99.0},
            "stats#price_stats": {"count": 10, "min": 1.0, "max": 9.0, "avg": 5.0, "sum": 50.0},
            "tdigest_percentiles#latency": {"values": {"50.0": 12.3, "99.0": 88.1}},
            "filter#only_active": {"doc_count": 4, "value_count#active_count": {"value": 4}},
        },
    }


@pytest.fixture
def write_json(tmp_path: Path) -> Callable[[Any, str], Path]:
    """Write a JSON document under tmp_path and return its path."""

    def _write(document: Any, name: str = "response.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(document), encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Undo logging configuration done by the test (CLI commands configure it)."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
