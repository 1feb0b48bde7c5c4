"""Figure generator — turns a chart model into Plotly-style figure dicts."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from span_timeline.layout import ChartModel
from span_timeline.viewport import Viewport

TRACE_CHART_ROW_HEIGHT = 15

_PALETTE = (
    "#54B399",
    "#6092C0",
    "#D36086",
    "#9170B8",
    "#CA8EAE",
    "#D6BF57",
    "#B9A888",
    "#DA8B45",
    "#AA6556",
    "#E7664C",
)
_AXIS_COLOR = "#5e6d82"
_GRID_COLOR = "rgba(226, 232, 240, 0.5)"
_BORDER_COLOR = "rgba(226, 232, 240, 1)"


@dataclass
class ChartOptions:
    """Options controlling figure generation."""

    row_height: int = TRACE_CHART_ROW_HEIGHT
    top_margin: int = 20
    minimap_height: int = 80
    width: Optional[int] = None
    color_map: Dict[str, str] = field(default_factory=dict)


def _serialize(obj: Any) -> Any:
    """Recursively serialize dataclasses, enums, and primitives to JSON-safe types."""
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "__dataclass_fields__"):
        return {k: _serialize(getattr(obj, k)) for k in obj.__dataclass_fields__}
    if isinstance(obj, (list, tuple)):
        return [_serialize(item) for item in obj]
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    return obj


def service_colors(model: ChartModel, options: ChartOptions) -> Dict[str, str]:
    """Map every service to a color; unmapped services cycle through the palette."""
    colors = dict(options.color_map)
    next_index = 0
    for segment in model.segments:
        if segment.service_name not in colors:
            colors[segment.service_name] = _PALETTE[next_index % len(_PALETTE)]
            next_index += 1
    return colors


def _bars(model: ChartModel, options: ChartOptions) -> List[Dict[str, Any]]:
    colors = service_colors(model, options)
    return [
        {
            "type": "bar",
            "orientation": "h",
            "x": [segment.duration_ms],
            "y": [segment.span_id],
            "base": segment.offset_ms,
            "width": 0.4,
            "name": "",
            "customdata": [segment.span_id, segment.duration_ms, segment.offset_ms],
            "marker": {"color": colors[segment.service_name]},
            "hoverinfo": "none",
            "spanId": segment.span_id,
        }
        for segment in model.segments
    ]


def _xaxis(axis_range: List[float], **extra: Any) -> Dict[str, Any]:
    axis = {
        "ticksuffix": " ms",
        "side": "top",
        "color": _AXIS_COLOR,
        "showgrid": True,
        "gridcolor": _GRID_COLOR,
        "showline": False,
        "zeroline": False,
        "range": axis_range,
    }
    axis.update(extra)
    return axis


def _border() -> Dict[str, Any]:
    return {
        "type": "rect",
        "xref": "paper",
        "yref": "paper",
        "x0": 0,
        "x1": 1,
        "y0": 0,
        "y1": 1,
        "fillcolor": "rgba(0,0,0,0)",
        "line": {"color": _BORDER_COLOR, "width": 1},
    }


def _margin() -> Dict[str, int]:
    return {"l": 2, "r": 2, "b": 2, "t": 20}


def build_gantt_figure(
    model: ChartModel,
    viewport: Viewport,
    options: ChartOptions | None = None,
) -> Dict[str, Any]:
    """Detail timeline: one bar per row, x-axis limited to the visible window."""
    if options is None:
        options = ChartOptions()

    annotations = [
        {
            "x": annotation.x,
            "y": annotation.span_id,
            "text": annotation.text,
            "align": "left",
            "showarrow": False,
            "xanchor": "left",
            "valign": "bottom",
            "height": options.row_height,
            "yshift": 0,
            "bgcolor": "rgba(255,0,0,0)",
            "borderpad": 0,
            "borderwidth": 0,
        }
        for annotation in viewport.project_annotations(model)
    ]
    layout: Dict[str, Any] = {
        "height": options.row_height * len(model.segments) + options.top_margin,
        "margin": {**_margin(), "t": options.top_margin},
        "xaxis": _xaxis([viewport.visible_start, viewport.visible_end]),
        "yaxis": {
            "visible": False,
            "tickvals": [segment.span_id for segment in model.segments],
            "fixedrange": True,
            "autorange": "reversed",
        },
        "annotations": annotations,
        "shapes": [_border()],
    }
    if options.width is not None:
        layout["width"] = options.width
    return {"data": _bars(model, options), "layout": layout}


def build_minimap_figure(
    model: ChartModel,
    viewport: Viewport,
    options: ChartOptions | None = None,
) -> Dict[str, Any]:
    """Overview: full range always shown, the visible window highlighted."""
    if options is None:
        options = ChartOptions()

    full_start, full_end = viewport.full_range
    highlight = {
        "type": "rect",
        "xref": "x",
        "yref": "paper",
        "x0": viewport.visible_start,
        "x1": viewport.visible_end,
        "y0": 0,
        "y1": 1,
        "fillcolor": "rgba(0, 120, 212, 0.1)",
        "line": {"width": 1, "color": "rgba(0, 120, 212, 0.2)"},
    }
    layout: Dict[str, Any] = {
        "height": options.minimap_height,
        "margin": {**_margin(), "t": options.top_margin},
        "dragmode": "select",
        "selectdirection": "h",
        "xaxis": _xaxis([full_start, full_end], fixedrange=True),
        "yaxis": {"visible": False, "fixedrange": True, "autorange": "reversed"},
        "shapes": [_border(), highlight],
    }
    if options.width is not None:
        layout["width"] = options.width
    return {"data": _bars(model, options), "layout": layout}


def generate_figure_json(
    model: ChartModel,
    viewport: Viewport,
    options: ChartOptions | None = None,
) -> str:
    """Serialize model, Gantt figure and minimap figure into one JSON document."""
    document = {
        "model": _serialize(model),
        "visibleRange": [viewport.visible_start, viewport.visible_end],
        "gantt": build_gantt_figure(model, viewport, options),
        "minimap": build_minimap_figure(model, viewport, options),
    }
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False)
