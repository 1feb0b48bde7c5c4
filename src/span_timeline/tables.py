"""Row models for the span list and tree views."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from span_timeline.layout import min_start_time_ms
from span_timeline.parser import NormalizedSpan, TraceMode, get_decoder, nano_to_ms
from span_timeline.tree import SpanNode, iter_preorder


@dataclass
class SpanRow:
    span_id: str
    service_name: str
    operation_name: str
    duration_ms: float
    start_time_ms: float
    error: bool


@dataclass
class HierarchyRow(SpanRow):
    level: int = 0
    child_count: int = 0


def _row_fields(span: NormalizedSpan, start_time_in_ms: float) -> Dict[str, Any]:
    return {
        "span_id": span.span_id,
        "service_name": span.service_name,
        "operation_name": span.operation_name,
        "duration_ms": span.duration_in_ms,
        "start_time_ms": nano_to_ms(span.start_time_in_nanos) - start_time_in_ms,
        "error": span.error,
    }


def span_rows(hits: List[Dict[str, Any]], mode: TraceMode | str) -> List[SpanRow]:
    """Flat span list, one row per hit with a span id, in input order."""
    decoder = get_decoder(mode)
    spans = [span for span in (decoder.decode(hit) for hit in hits) if span.span_id]
    if not spans:
        return []
    start_time_in_ms = min(nano_to_ms(s.start_time_in_nanos) for s in spans)
    return [SpanRow(**_row_fields(span, start_time_in_ms)) for span in spans]


def hierarchy_rows(roots: List[SpanNode]) -> List[HierarchyRow]:
    """Tree view rows, ordered exactly like the Gantt rows."""
    start_time_in_ms = min_start_time_ms(roots)
    return [
        HierarchyRow(
            **_row_fields(node.span, start_time_in_ms),
            level=level,
            child_count=len(node.children),
        )
        for node, level in iter_preorder(roots)
    ]
