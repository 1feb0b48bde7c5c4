"""
Pytest configuration, hit builders and Hypothesis strategies.

This module provides helpers for building jaeger and data-prepper search hits
and strategies for generating whole traces with a known span hierarchy.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
from hypothesis import strategies as st

FIXTURES_DIR = Path(__file__).parent / "fixtures"

# Fixed reference time to avoid flaky tests: 2023-11-14T22:13:20Z
REFERENCE_TIME_NS = 1700000000 * 1_000_000_000


# ============================================================================
# Hit Builders
# ============================================================================


def jaeger_hit(
    span_id: str,
    start_us: int = REFERENCE_TIME_NS // 1000,
    duration_us: int = 1000,
    references: list[tuple[str, str]] | None = None,
    service: str = "svc",
    operation: str = "op",
    error: bool = False,
) -> dict[str, Any]:
    """Build a jaeger span hit; references are ``(refType, spanID)`` pairs."""
    source: dict[str, Any] = {
        "traceID": "trace",
        "spanID": span_id,
        "operationName": operation,
        "references": [
            {"refType": ref_type, "traceID": "trace", "spanID": target}
            for ref_type, target in (references or [])
        ],
        "startTime": start_us,
        "duration": duration_us,
        "process": {"serviceName": service},
    }
    if error:
        source["tag"] = {"error": True}
    return {"_index": "jaeger-span", "_id": span_id, "_source": source}


def iso_from_nanos(nanos: int) -> str:
    seconds, fraction = divmod(nanos, 1_000_000_000)
    base = datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
    return f"{base}.{fraction:09d}Z"


def data_prepper_hit(
    span_id: str,
    start_ns: int = REFERENCE_TIME_NS,
    duration_ns: int = 1_000_000,
    parent_span_id: str = "",
    service: str = "svc",
    name: str = "op",
    status_code: int = 0,
) -> dict[str, Any]:
    """Build a data-prepper span hit."""
    return {
        "_index": "otel-v1-apm-span",
        "_id": span_id,
        "_source": {
            "traceId": "trace",
            "spanId": span_id,
            "parentSpanId": parent_span_id,
            "name": name,
            "serviceName": service,
            "startTime": iso_from_nanos(start_ns),
            "durationInNanos": duration_ns,
            "status.code": status_code,
        },
    }


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def jaeger_response() -> dict[str, Any]:
    return json.loads((FIXTURES_DIR / "jaeger_trace.json").read_text(encoding="utf-8"))


@pytest.fixture
def jaeger_hits(jaeger_response) -> list[dict[str, Any]]:
    return jaeger_response["hits"]["hits"]


@pytest.fixture
def data_prepper_hits() -> list[dict[str, Any]]:
    return json.loads((FIXTURES_DIR / "data_prepper_trace.json").read_text(encoding="utf-8"))


# ============================================================================
# Basic Building Blocks
# ============================================================================


@st.composite
def hex_id(draw, length: int = 16) -> str:
    """
    Generate a valid hexadecimal ID string.

    Args:
        length: Number of hex characters (default 16 for span ids)

    Returns:
        Hexadecimal string of specified length
    """
    hex_chars = "0123456789abcdef"
    return "".join(draw(st.lists(st.sampled_from(hex_chars), min_size=length, max_size=length)))


service_names = st.sampled_from(["frontend", "orders", "cart", "inventory", "mailer"])


# ============================================================================
# Trace Strategies
# ============================================================================


@st.composite
def span_forest(draw, mode: str = "data_prepper", max_spans: int = 25) -> tuple[list[dict], dict]:
    """
    Generate the hits of one trace with a known parent assignment.

    Every span either is a root or points at a span generated before it, so
    the hierarchy is always a forest with resolvable references. The hits
    are returned shuffled.

    Args:
        mode: ``"jaeger"`` or ``"data_prepper"``
        max_spans: Upper bound on the number of spans

    Returns:
        Tuple of (hits, parent_by_span_id) where roots map to None
    """
    count = draw(st.integers(min_value=0, max_value=max_spans))
    ids = draw(st.lists(hex_id(), min_size=count, max_size=count, unique=True))

    parents: dict[str, str | None] = {}
    hits = []
    for index, span_id in enumerate(ids):
        parent = None
        if index > 0 and draw(st.booleans()):
            parent = ids[draw(st.integers(min_value=0, max_value=index - 1))]
        parents[span_id] = parent

        # Microsecond-aligned starts keep both schemas exact
        start_us = draw(
            st.integers(
                min_value=REFERENCE_TIME_NS // 1000,
                max_value=REFERENCE_TIME_NS // 1000 + 60 * 1_000_000,
            )
        )
        duration_us = draw(st.integers(min_value=0, max_value=10 * 1_000_000))
        service = draw(service_names)
        error = draw(st.booleans())

        if mode == "jaeger":
            refs = [("CHILD_OF", parent)] if parent else []
            hits.append(
                jaeger_hit(span_id, start_us, duration_us, refs, service=service, error=error)
            )
        else:
            hits.append(
                data_prepper_hit(
                    span_id,
                    start_us * 1000,
                    duration_us * 1000,
                    parent or "",
                    service=service,
                    status_code=2 if error else 0,
                )
            )

    return draw(st.permutations(hits)), parents
