"""Gantt layout — flattens the span forest into timed segments and labels."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from span_timeline.parser import TraceMode, nano_to_ms
from span_timeline.tree import SpanNode, build_tree, iter_preorder

ERROR_LABEL = "⚠ Error"
ERROR_MARKER = ERROR_LABEL + "  "


@dataclass
class TimedSegment:
    """One Gantt bar; the row is keyed by span id."""

    span_id: str
    offset_ms: float
    duration_ms: float
    service_name: str
    operation_name: str
    error: bool = False

    @property
    def end_ms(self) -> float:
        return self.offset_ms + self.duration_ms


@dataclass
class Annotation:
    """Text label anchored at ``x`` on the row of ``span_id``."""

    span_id: str
    x: float
    text: str


@dataclass
class ChartModel:
    segments: List[TimedSegment] = field(default_factory=list)
    annotations: List[Annotation] = field(default_factory=list)
    max_extent_ms: float = 0.0


def format_label(segment: TimedSegment) -> str:
    """Build the annotation text for a segment.

    Two decimal places are applied here only; layout math keeps full precision.
    """
    marker = ERROR_MARKER if segment.error else ""
    return (
        f"{marker}{segment.service_name}: {segment.operation_name} - "
        f"{segment.duration_ms:.2f}ms"
    )


def min_start_time_ms(roots: List[SpanNode]) -> float:
    """Earliest start time in milliseconds over every node of the forest."""
    starts = [nano_to_ms(node.start_time_in_nanos) for node, _level in iter_preorder(roots)]
    return min(starts) if starts else 0.0


def layout(roots: List[SpanNode], start_time_in_ms: float) -> ChartModel:
    """Walk the forest earliest-first, depth-first, and emit one row per span."""
    model = ChartModel()
    for node, _level in iter_preorder(roots):
        span = node.span
        segment = TimedSegment(
            span_id=span.span_id,
            offset_ms=nano_to_ms(span.start_time_in_nanos) - start_time_in_ms,
            duration_ms=span.duration_in_ms,
            service_name=span.service_name,
            operation_name=span.operation_name,
            error=span.error,
        )
        model.max_extent_ms = max(model.max_extent_ms, segment.end_ms)
        model.segments.append(segment)
        model.annotations.append(
            Annotation(span_id=segment.span_id, x=segment.offset_ms, text=format_label(segment))
        )
    return model


def build_chart_model(hits: List[Dict[str, Any]], mode: TraceMode | str) -> ChartModel:
    """Build the full Gantt model from raw hits.

    Deterministic: identical input yields an identical model.
    """
    roots = build_tree(hits, mode)
    return layout(roots, min_start_time_ms(roots))
