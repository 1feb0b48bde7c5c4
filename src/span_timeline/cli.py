"""CLI entry point for span-timeline."""

from __future__ import annotations

import argparse
import sys

from span_timeline import __version__
from span_timeline.generator import (
    TRACE_CHART_ROW_HEIGHT,
    ChartOptions,
    generate_figure_json,
)
from span_timeline.layout import layout, min_start_time_ms
from span_timeline.parser import TraceMode, parse_file, sort_payload
from span_timeline.tree import build_tree, dropped_span_ids
from span_timeline.viewport import InvalidRangeError, Viewport


def main() -> int:
    """CLI entry point. Returns 0 on success, 1 on error."""
    parser = argparse.ArgumentParser(
        prog="span-timeline",
        description="Build span Gantt chart figures from saved trace search hits",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "input",
        help="Search response or hit list (.json or .json.gz), or - for stdin",
    )
    parser.add_argument(
        "-m",
        "--mode",
        choices=[m.value for m in TraceMode],
        default=TraceMode.DATA_PREPPER.value,
        help="Span document schema (default: data_prepper)",
    )
    parser.add_argument(
        "-o",
        "--output",
        default="span-timeline.json",
        help="Output figure JSON path (default: span-timeline.json)",
    )
    parser.add_argument(
        "--range",
        nargs=2,
        type=float,
        metavar=("START", "END"),
        default=None,
        help="Visible time window in ms (default: full range)",
    )
    parser.add_argument(
        "--row-height",
        type=int,
        default=TRACE_CHART_ROW_HEIGHT,
        help=f"Gantt row height in pixels (default: {TRACE_CHART_ROW_HEIGHT})",
    )

    args = parser.parse_args()

    # Pipeline: parse → sort → build tree → layout → viewport → figures
    try:
        hits = sort_payload(parse_file(args.input), args.mode)
        roots = build_tree(hits, args.mode)
        model = layout(roots, min_start_time_ms(roots))

        viewport = Viewport()
        viewport.set_extent(model.max_extent_ms)
        if args.range is not None:
            viewport.set_range(*args.range)

        options = ChartOptions(row_height=args.row_height)
        document = generate_figure_json(model, viewport, options)

        with open(args.output, "w", encoding="utf-8") as f:
            f.write(document)

        dropped = dropped_span_ids(hits, roots, args.mode)
        print(
            f"Chart generated: {args.output} "
            f"({len(hits)} hits, {len(model.segments)} spans, {len(dropped)} dropped, "
            f"extent {model.max_extent_ms:.2f}ms)"
        )
        return 0

    except InvalidRangeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: Invalid payload — {exc}", file=sys.stderr)
        return 1
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except PermissionError as exc:
        print(f"Error: Permission denied — {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
