"""Time windows: per line, per panel, and aligned across panels."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from .config import ProcessingContext
from .errors import EmptyRangeError, FileAccessError, MalformedCacheFile
from .models import (
    AlignmentMode,
    FixedRange,
    PanelAlignmentMode,
    PanelRangeMode,
    ResolvedGraphConfig,
    ResolvedPanel,
    TimeRange,
)
from .time_window import resolve_time_range

logger = logging.getLogger(__name__)

# How the processor writes the date and time columns.
CACHE_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def _parse_row(path: Path, row: list[str]) -> datetime:
    try:
        return datetime.strptime(f"{row[0]} {row[1]}", CACHE_TIMESTAMP_FORMAT)
    except (IndexError, ValueError) as exc:
        raise MalformedCacheFile(path, ",".join(row)) from exc


def csv_range_from_file(path: Path) -> TimeRange | None:
    """Return (first row, last row) timestamps of a cache file, or None if it has no data."""
    first: list[str] | None = None
    last: list[str] | None = None
    try:
        with path.open(encoding="utf-8", newline="") as f:
            reader = csv.reader(f)
            next(reader, None)
            for row in reader:
                if not row:
                    continue
                if first is None:
                    first = row
                last = row
    except OSError as exc:
        raise FileAccessError(path, exc) from exc

    if first is None or last is None:
        return None
    return _parse_row(path, first), _parse_row(path, last)


def populate_line_ranges(config: ResolvedGraphConfig) -> None:
    for line in config.all_lines():
        line.time_range = csv_range_from_file(line.expect_cache_file())


def full_range(ranges: Iterable[TimeRange]) -> TimeRange | None:
    ranges = list(ranges)
    if not ranges:
        return None
    return min(r[0] for r in ranges), max(r[1] for r in ranges)


def overlap_range(ranges: Iterable[TimeRange]) -> TimeRange | None:
    ranges = list(ranges)
    if not ranges:
        return None
    return max(r[0] for r in ranges), min(r[1] for r in ranges)


def global_time_range(config: ResolvedGraphConfig) -> TimeRange:
    """Span of every line with data; raises EmptyRangeError when there is none."""
    total = full_range(line.time_range for line in config.all_lines() if line.time_range)
    if total is None:
        raise EmptyRangeError()
    return total


def resolve_panel_range(panel: ResolvedPanel) -> TimeRange | None:
    ranges = [line.time_range for line in panel.lines if line.time_range is not None]
    full = full_range(ranges)
    if panel.range_mode is PanelRangeMode.FULL or full is None:
        return full

    fit = overlap_range(ranges)
    if fit is not None and fit[0] < fit[1]:
        return fit
    logger.debug("best-fit range is empty for panel %r, using full range", panel.title)
    return full


def align_panels(config: ResolvedGraphConfig, mode: AlignmentMode) -> None:
    """Reconcile panel windows in place."""
    if isinstance(mode, FixedRange):
        for panel in config.panels:
            panel.time_range = (mode.start, mode.end)
        return

    if mode is PanelAlignmentMode.PER_PANEL:
        return

    ranges = [p.time_range for p in config.panels if p.time_range is not None]
    if mode is PanelAlignmentMode.SHARED_FULL:
        shared = full_range(ranges)
    elif mode is PanelAlignmentMode.SHARED_OVERLAP:
        shared = overlap_range(ranges)
        if shared is not None and shared[0] >= shared[1]:
            logger.debug("panels do not overlap, keeping per-panel ranges")
            return
    else:
        raise ValueError(f"unknown alignment mode: {mode!r}")

    if shared is None:
        return
    for panel in config.panels:
        if panel.time_range is not None:
            panel.time_range = shared


def resolved_alignment_mode(ctx: ProcessingContext, total_range: TimeRange) -> AlignmentMode:
    """A time-range override wins over the configured alignment."""
    if ctx.time_range is None:
        return ctx.alignment
    start, end = resolve_time_range(
        ctx.time_range,
        total_range,
        ctx.timestamp_format,
        fallback_year=ctx.fallback_year,
    )
    return FixedRange(start, end)


def resolve_panels_ranges(
    config: ResolvedGraphConfig,
    ctx: ProcessingContext,
    *,
    log: logging.Logger | None = None,
) -> None:
    """Populate line and panel windows, then align panels."""
    log = log or logger
    populate_line_ranges(config)
    total = global_time_range(config)

    for panel in config.panels:
        panel.time_range = resolve_panel_range(panel)

    mode = resolved_alignment_mode(ctx, total)
    log.debug("aligning %d panel(s) with %s", len(config.panels), mode)
    align_panels(config, mode)
