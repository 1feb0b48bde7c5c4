"""Visible time window shared by the minimap and the detail timeline."""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Any, List, Optional, Tuple

from span_timeline.layout import Annotation, ChartModel

# Upper bound of the full range sits 10% past the furthest segment end
FULL_RANGE_PADDING = 1.1


class InvalidRangeError(ValueError):
    """Raised when a visible range ends before it starts or has a NaN bound."""


class Viewport:
    """User-adjustable visible sub-range over a chart's full extent.

    The window starts at the full range. ``set_range`` does not clamp to
    ``[0, full]``; ``reset`` is the way back to a sane window.
    """

    def __init__(self, max_extent_ms: float = 0.0) -> None:
        self.max_extent_ms = max_extent_ms
        self.visible_start, self.visible_end = self.full_range

    @property
    def full_range(self) -> Tuple[float, float]:
        return 0.0, self.max_extent_ms * FULL_RANGE_PADDING

    @property
    def visible_range(self) -> Tuple[float, float]:
        return self.visible_start, self.visible_end

    @property
    def is_full_range(self) -> bool:
        return self.visible_range == self.full_range

    def reset(self) -> Tuple[float, float]:
        self.visible_start, self.visible_end = self.full_range
        return self.visible_range

    def set_range(self, start: float, end: float) -> None:
        if not start <= end:
            raise InvalidRangeError(f"Invalid range [{start}, {end}]: end must not precede start")
        self.visible_start = start
        self.visible_end = end

    def set_extent(self, max_extent_ms: float) -> Tuple[float, float]:
        """Switch to a new dataset's extent and show all of it."""
        self.max_extent_ms = max_extent_ms
        return self.reset()

    def update_extent(self, max_extent_ms: float) -> None:
        """Track a recomputed extent of the same dataset, keeping the window."""
        self.max_extent_ms = max_extent_ms

    def apply_relayout(self, event: Optional[dict]) -> Tuple[float, float]:
        """Apply a chart relayout or selection event.

        Axis range bounds (``xaxis.range[0]``/``[1]``) take precedence over a
        box selection (``selections[0].x0``/``x1``). Bounds are ordered low to
        high. Events without both bounds reset to the full range.
        """
        x0, x1 = _event_bounds(event or {})
        if x0 is None or x1 is None:
            return self.reset()
        self.set_range(min(x0, x1), max(x0, x1))
        return self.visible_range

    def project_annotations(self, model: ChartModel) -> List[Annotation]:
        """Re-anchor labels of spans still running at the window's left edge.

        A label left of ``visible_start`` whose segment ends past it moves to
        ``visible_start``. Every other label keeps its position.
        """
        projected: List[Annotation] = []
        for annotation, segment in zip(model.annotations, model.segments):
            if (
                annotation.x < self.visible_start
                and annotation.span_id == segment.span_id
                and segment.end_ms > self.visible_start
            ):
                annotation = replace(annotation, x=self.visible_start)
            projected.append(annotation)
        return projected


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _event_bounds(event: dict) -> Tuple[Optional[float], Optional[float]]:
    x0 = _number(event.get("xaxis.range[0]"))
    x1 = _number(event.get("xaxis.range[1]"))
    if x0 is not None and x1 is not None:
        return x0, x1

    xaxis = event.get("xaxis")
    if isinstance(xaxis, dict):
        axis_range = xaxis.get("range")
        if isinstance(axis_range, (list, tuple)) and len(axis_range) == 2:
            x0, x1 = _number(axis_range[0]), _number(axis_range[1])
            if x0 is not None and x1 is not None:
                return x0, x1

    selections = event.get("selections")
    if isinstance(selections, list) and selections and isinstance(selections[0], dict):
        return _number(selections[0].get("x0")), _number(selections[0].get("x1"))
    return None, None
