"""Tests for Gantt and minimap figure generation."""

import json

from span_timeline.generator import (
    TRACE_CHART_ROW_HEIGHT,
    ChartOptions,
    build_gantt_figure,
    build_minimap_figure,
    generate_figure_json,
    service_colors,
)
from span_timeline.layout import ChartModel, build_chart_model
from span_timeline.viewport import Viewport


def _jaeger_chart(jaeger_hits):
    model = build_chart_model(jaeger_hits, "jaeger")
    return model, Viewport(model.max_extent_ms)


class TestGanttFigure:
    def test_one_bar_per_segment(self, jaeger_hits):
        model, viewport = _jaeger_chart(jaeger_hits)
        figure = build_gantt_figure(model, viewport)
        bars = figure["data"]
        assert len(bars) == len(model.segments)
        for bar, segment in zip(bars, model.segments):
            assert bar["type"] == "bar"
            assert bar["orientation"] == "h"
            assert bar["y"] == [segment.span_id]
            assert bar["x"] == [segment.duration_ms]
            assert bar["base"] == segment.offset_ms
            assert bar["spanId"] == segment.span_id

    def test_axis_range_follows_viewport(self, jaeger_hits):
        model, viewport = _jaeger_chart(jaeger_hits)
        viewport.set_range(1.5, 6.0)
        layout = build_gantt_figure(model, viewport)["layout"]
        assert layout["xaxis"]["range"] == [1.5, 6.0]
        assert layout["xaxis"]["ticksuffix"] == " ms"

    def test_annotations_are_projected(self, jaeger_hits):
        model, viewport = _jaeger_chart(jaeger_hits)
        viewport.set_range(3.0, 14.0)
        annotations = build_gantt_figure(model, viewport)["layout"]["annotations"]
        anchors = {a["y"]: a["x"] for a in annotations}
        assert anchors == {"a1": 3.0, "a3": 3.0, "a2": 3.0, "a4": 12.0}
        assert annotations[0]["text"] == model.annotations[0].text

    def test_height_scales_with_rows(self, jaeger_hits):
        model, viewport = _jaeger_chart(jaeger_hits)
        layout = build_gantt_figure(model, viewport, ChartOptions(row_height=30))["layout"]
        assert layout["height"] == 30 * 4 + 20
        assert layout["yaxis"]["tickvals"] == ["a1", "a3", "a2", "a4"]
        assert "width" not in layout

    def test_width_option(self, jaeger_hits):
        model, viewport = _jaeger_chart(jaeger_hits)
        layout = build_gantt_figure(model, viewport, ChartOptions(width=800))["layout"]
        assert layout["width"] == 800

    def test_empty_model(self):
        figure = build_gantt_figure(ChartModel(), Viewport())
        assert figure["data"] == []
        assert figure["layout"]["height"] == 20
        assert figure["layout"]["xaxis"]["range"] == [0.0, 0.0]


class TestMinimapFigure:
    def test_always_shows_full_range(self, jaeger_hits):
        model, viewport = _jaeger_chart(jaeger_hits)
        viewport.set_range(2.0, 4.0)
        layout = build_minimap_figure(model, viewport)["layout"]
        assert layout["xaxis"]["range"] == [0.0, 14.0 * 1.1]
        assert layout["xaxis"]["fixedrange"] is True
        assert layout["dragmode"] == "select"
        assert layout["selectdirection"] == "h"

    def test_highlights_visible_window(self, jaeger_hits):
        model, viewport = _jaeger_chart(jaeger_hits)
        viewport.set_range(2.0, 4.0)
        highlight = build_minimap_figure(model, viewport)["layout"]["shapes"][1]
        assert (highlight["x0"], highlight["x1"]) == (2.0, 4.0)
        assert highlight["xref"] == "x"


class TestColors:
    def test_palette_is_assigned_in_row_order(self, jaeger_hits):
        model, _ = _jaeger_chart(jaeger_hits)
        colors = service_colors(model, ChartOptions())
        assert list(colors) == ["frontend", "cart", "orders", "mailer"]
        assert len(set(colors.values())) == 4

    def test_color_map_overrides(self, jaeger_hits):
        model, viewport = _jaeger_chart(jaeger_hits)
        options = ChartOptions(color_map={"orders": "#ff0000"})
        bars = build_gantt_figure(model, viewport, options)["data"]
        assert bars[2]["marker"]["color"] == "#ff0000"


class TestFigureJson:
    def test_document_structure(self, jaeger_hits):
        model, viewport = _jaeger_chart(jaeger_hits)
        document = json.loads(generate_figure_json(model, viewport))
        assert set(document) == {"model", "visibleRange", "gantt", "minimap"}
        assert document["model"]["max_extent_ms"] == 14.0
        assert [s["span_id"] for s in document["model"]["segments"]] == ["a1", "a3", "a2", "a4"]
        assert document["visibleRange"] == [0.0, 14.0 * 1.1]

    def test_error_glyph_is_not_escaped(self, jaeger_hits):
        model, viewport = _jaeger_chart(jaeger_hits)
        assert "⚠" in generate_figure_json(model, viewport)

    def test_default_row_height(self, jaeger_hits):
        model, viewport = _jaeger_chart(jaeger_hits)
        document = json.loads(generate_figure_json(model, viewport))
        assert document["gantt"]["layout"]["annotations"][0]["height"] == TRACE_CHART_ROW_HEIGHT
