"""Span detail panel state: payload loading, span filters, view toggle, zoom."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from span_timeline.layout import Annotation, ChartModel, build_chart_model
from span_timeline.parser import TraceMode, normalize_payload, parse_hits
from span_timeline.tables import HierarchyRow, SpanRow, hierarchy_rows, span_rows
from span_timeline.tree import build_tree
from span_timeline.viewport import Viewport

VIEW_IDS = ("timeline", "span_list", "hierarchy_span_list")

_MISSING = object()


@dataclass(frozen=True)
class SpanFilter:
    field: str
    value: Any


def add_span_filter(filters: List[SpanFilter], field: str, value: Any) -> List[SpanFilter]:
    """Return filters with ``field`` set to ``value``, replacing in place if present."""
    new_filters = list(filters)
    for index, existing in enumerate(new_filters):
        if existing.field == field:
            new_filters[index] = SpanFilter(field, value)
            return new_filters
    new_filters.append(SpanFilter(field, value))
    return new_filters


def remove_span_filter(filters: List[SpanFilter], field: str) -> List[SpanFilter]:
    return [f for f in filters if f.field != field]


def _lookup(source: Dict[str, Any], field: str) -> Any:
    # Literal dotted keys (e.g. "status.code") win over nested paths
    if field in source:
        return source[field]
    current: Any = source
    for part in field.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def filter_hits(hits: List[Dict[str, Any]], filters: List[SpanFilter]) -> List[Dict[str, Any]]:
    """Keep hits whose ``_source`` matches every filter."""
    if not filters:
        return list(hits)
    kept = []
    for hit in hits:
        source = hit.get("_source") if isinstance(hit, dict) else None
        if not isinstance(source, dict):
            continue
        if all(_lookup(source, f.field) == f.value for f in filters):
            kept.append(hit)
    return kept


class TracePanel:
    """State behind the span Gantt panel of a single trace.

    Payload requests are tagged with a generation token so that a response
    for an older request never overwrites a newer one. Loading new hits
    or switching the mode resets the zoom; filter changes keep it.
    """

    def __init__(self, mode: Union[TraceMode, str] = TraceMode.DATA_PREPPER) -> None:
        self.mode = TraceMode(mode)
        self.hits: List[Dict[str, Any]] = []
        self.filters: List[SpanFilter] = []
        self.model = ChartModel()
        self.viewport = Viewport()
        self.view = VIEW_IDS[0]
        self.loading = False
        self._generation = 0

    # -- payload -------------------------------------------------------------

    def begin_request(self) -> int:
        self._generation += 1
        self.loading = True
        return self._generation

    def receive_payload(self, token: int, payload: Any) -> bool:
        """Apply a payload for request ``token``.

        Returns False, leaving state untouched, when a newer request has been
        started since. A missing or blank payload only clears the loading
        flag; an empty hit list loads an empty chart.
        """
        if token != self._generation:
            return False
        self.loading = False
        if payload is None or (isinstance(payload, str) and not payload.strip()):
            return True
        if isinstance(payload, str):
            hits = parse_hits(payload)
        elif isinstance(payload, dict):
            hits = normalize_payload(payload)
        else:
            hits = list(payload)
        self.load_hits(hits)
        return True

    def load_hits(self, hits: List[Dict[str, Any]]) -> None:
        self.hits = list(hits)
        self._recompute()
        self.viewport.set_extent(self.model.max_extent_ms)

    def set_mode(self, mode: Union[TraceMode, str]) -> None:
        """Re-read the hits under another schema; the zoom resets."""
        self.mode = TraceMode(mode)
        self._recompute()
        self.viewport.set_extent(self.model.max_extent_ms)

    # -- recomputation that keeps the zoom -----------------------------------

    def set_filters(self, filters: List[SpanFilter]) -> None:
        self.filters = list(filters)
        self._recompute()
        self.viewport.update_extent(self.model.max_extent_ms)

    def add_filter(self, field: str, value: Any) -> None:
        self.set_filters(add_span_filter(self.filters, field, value))

    def remove_filter(self, field: str) -> None:
        if any(f.field == field for f in self.filters):
            self.set_filters(remove_span_filter(self.filters, field))

    def _visible_hits(self) -> List[Dict[str, Any]]:
        return filter_hits(self.hits, self.filters)

    def _recompute(self) -> None:
        self.model = build_chart_model(self._visible_hits(), self.mode)

    # -- view ----------------------------------------------------------------

    def select_view(self, view_id: str) -> None:
        if view_id not in VIEW_IDS:
            raise ValueError(f"Unknown view {view_id!r}, expected one of {VIEW_IDS}")
        self.view = view_id

    @property
    def span_count(self) -> int:
        return len(self.model.segments)

    def visible_annotations(self) -> List[Annotation]:
        return self.viewport.project_annotations(self.model)

    def table_rows(self) -> Optional[List[Union[SpanRow, HierarchyRow]]]:
        """Rows for the table views; None while the timeline is shown."""
        if self.view == "span_list":
            return span_rows(self._visible_hits(), self.mode)
        if self.view == "hierarchy_span_list":
            return hierarchy_rows(build_tree(self._visible_hits(), self.mode))
        return None
