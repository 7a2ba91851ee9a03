from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from pydantic import ValidationError

from mcp_log_plot_server.core.config import ProcessingContext, resolve_context
from mcp_log_plot_server.core.errors import LogPlotError, TimestampExtractionError
from mcp_log_plot_server.core.layout import expand_layout
from mcp_log_plot_server.core.models import (
    DataSourceType,
    EventCount,
    EventDelta,
    EventValue,
    FieldValue,
    Layout,
    Line,
    Panel,
    PanelAlignmentMode,
    PanelRangeMode,
)
from mcp_log_plot_server.core.preview import DEFAULT_PREVIEW_COUNT, preview_matches
from mcp_log_plot_server.core.processor import process_inputs
from mcp_log_plot_server.core.ranges import resolve_panels_ranges
from mcp_log_plot_server.core.time_window import TimeRangeArg, parse_time_range
from mcp_log_plot_server.core.timestamp import DEFAULT_TIMESTAMP_FORMAT, TimestampFormat
from mcp_log_plot_server.server.log_server import LOG_LEVEL_ENV, configure_logging


def _time_range_arg(s: str) -> TimeRangeArg:
    try:
        return parse_time_range(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _timestamp_format_arg(s: str) -> TimestampFormat:
    try:
        return TimestampFormat.parse(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _data_source_from_args(args: argparse.Namespace) -> DataSourceType:
    if args.field is not None:
        return FieldValue(guard=args.guard, field=args.field)
    if args.event is not None:
        return EventValue(guard=args.guard, pattern=args.event, yvalue=args.yvalue)
    if args.event_count is not None:
        return EventCount(guard=args.guard, pattern=args.event_count)
    return EventDelta(guard=args.guard, pattern=args.event_delta)


def _load_layout(args: argparse.Namespace) -> Layout:
    if args.layout is not None:
        return Layout.model_validate_json(Path(args.layout).read_text(encoding="utf-8"))

    # --plot [GUARD] FIELD: one panel per field
    panels: list[Panel] = []
    for plot in args.plot or []:
        guard, field = (None, plot[0]) if len(plot) == 1 else (plot[0], plot[1])
        panels.append(
            Panel(
                lines=[Line(data_source=FieldValue(guard=guard, field=field))],
                time_range_mode=args.panel_range_mode,
            )
        )
    if not panels:
        raise ValueError("Provide --layout or at least one --plot")
    return Layout(panels=panels)


def _add_source_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--guard", default=None, help="Substring required before the regex is tried")
    g = p.add_mutually_exclusive_group(required=True)
    g.add_argument("--field", default=None, help="Field name or regex with 1-2 capture groups")
    g.add_argument("--event", default=None, help="Regex; plot --yvalue on each match")
    g.add_argument("--event-count", default=None, help="Regex; plot running match count")
    g.add_argument("--event-delta", default=None, help="Regex; plot time since previous match")
    p.add_argument("--yvalue", type=float, default=1.0, help="Constant plotted by --event")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Extract time series from logs into cached CSV files.")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    p.add_argument(
        "--timestamp-format",
        type=_timestamp_format_arg,
        default=TimestampFormat.parse(DEFAULT_TIMESTAMP_FORMAT),
        help=f"strftime-like line prefix (default: {DEFAULT_TIMESTAMP_FORMAT})",
    )
    sub = p.add_subparsers(dest="command", required=True)

    proc = sub.add_parser("process", help="Scan logs and resolve panel time ranges")
    proc.add_argument("inputs", nargs="+", help="Log files (plain or .gz)")
    proc.add_argument("--layout", default=None, help="JSON layout file")
    proc.add_argument(
        "--plot",
        nargs="+",
        action="append",
        metavar="ARG",
        help="[GUARD] FIELD, adds a panel plotting one field",
    )
    proc.add_argument(
        "--panel-range-mode",
        type=PanelRangeMode,
        choices=list(PanelRangeMode),
        default=PanelRangeMode.FULL,
        help="Range mode for panels created by --plot",
    )
    proc.add_argument(
        "--alignment",
        type=PanelAlignmentMode,
        choices=list(PanelAlignmentMode),
        default=PanelAlignmentMode.PER_PANEL,
    )
    proc.add_argument("--time-range", type=_time_range_arg, default=None, help="'0.1,0.5' or '<ts>,<ts>'")
    proc.add_argument("--cache-dir", type=Path, default=None)
    proc.add_argument("--force", action="store_true", help="Regenerate cache files")
    proc.add_argument("--per-file-panels", action="store_true")

    prev = sub.add_parser("preview", help="Show how a data source matches the first lines")
    prev.add_argument("log_path")
    _add_source_args(prev)
    prev.add_argument("--count", type=int, default=DEFAULT_PREVIEW_COUNT)
    return p


def _run_process(args: argparse.Namespace) -> None:
    ctx = resolve_context(
        ProcessingContext(
            timestamp_format=args.timestamp_format,
            force_regen=args.force,
            cache_dir=args.cache_dir,
            alignment=args.alignment,
            time_range=args.time_range,
        )
    )
    config = expand_layout(_load_layout(args), args.inputs, per_file_panels=args.per_file_panels)
    report = process_inputs(config, ctx)
    resolve_panels_ranges(config, ctx)

    for i, panel in enumerate(config.panels):
        rng = " .. ".join(t.isoformat() for t in panel.time_range) if panel.time_range else "-"
        print(f"panel {i}: {rng}")
        for line in panel.lines:
            print(f"  {line.data_points:>8} {line.expect_cache_file()}")

    print(f"\nWritten {len(report.written)}, reused {len(report.reused)} cache file(s).")


def _run_preview(args: argparse.Namespace) -> None:
    ctx = resolve_context()
    result = asyncio.run(
        preview_matches(
            args.log_path,
            _data_source_from_args(args),
            timestamp_format=args.timestamp_format,
            count=args.count,
            fallback_year=ctx.fallback_year,
        )
    )
    print(json.dumps(result.model_dump(), indent=2, default=str))


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)

    if args.verbose:
        configure_logging("DEBUG")
    elif args.quiet:
        configure_logging("ERROR")
    else:
        configure_logging()

    try:
        if args.command == "process":
            _run_process(args)
        else:
            _run_preview(args)
    except TimestampExtractionError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(f"Hint: check the timestamp format (or {LOG_LEVEL_ENV}=DEBUG).", file=sys.stderr)
        raise SystemExit(2)
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(2)
    except (LogPlotError, ValidationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)


if __name__ == "__main__":
    main()
