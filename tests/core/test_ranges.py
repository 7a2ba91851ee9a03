from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from mcp_log_plot_server.core.config import ProcessingContext
from mcp_log_plot_server.core.errors import EmptyRangeError, MalformedCacheFile
from mcp_log_plot_server.core.models import (
    EventCount,
    FixedRange,
    PanelAlignmentMode,
    PanelRangeMode,
    ResolvedGraphConfig,
    ResolvedLine,
    ResolvedPanel,
    TimeRange,
)
from mcp_log_plot_server.core.processor import CSV_HEADER
from mcp_log_plot_server.core.ranges import (
    align_panels,
    csv_range_from_file,
    global_time_range,
    resolve_panel_range,
    resolve_panels_ranges,
    resolved_alignment_mode,
)
from mcp_log_plot_server.core.time_window import AbsoluteRange, RelativeRange


def _dt(h: int, m: int, s: int) -> datetime:
    return datetime(2025, 5, 17, h, m, s)


def _line(time_range: TimeRange | None) -> ResolvedLine:
    line = ResolvedLine.for_source(EventCount(pattern="x"), "a.log")
    line.time_range = time_range
    return line


def _panel(*ranges: TimeRange | None, mode: PanelRangeMode = PanelRangeMode.FULL) -> ResolvedPanel:
    return ResolvedPanel(lines=[_line(r) for r in ranges], range_mode=mode)


def _write_cache(path: Path, rows: list[str]) -> Path:
    path.write_text("\n".join([",".join(CSV_HEADER), *rows]) + "\n", encoding="utf-8")
    return path


def test_best_fit_uses_intersection() -> None:
    panel = _panel(
        (_dt(12, 0, 56), _dt(12, 10, 0)),
        (_dt(11, 0, 56), _dt(13, 10, 0)),
        mode=PanelRangeMode.BEST_FIT,
    )
    assert resolve_panel_range(panel) == (_dt(12, 0, 56), _dt(12, 10, 0))


def test_best_fit_falls_back_to_full_without_overlap() -> None:
    panel = _panel(
        (_dt(12, 0, 56), _dt(12, 10, 0)),
        (_dt(12, 20, 56), _dt(13, 10, 0)),
        mode=PanelRangeMode.BEST_FIT,
    )
    assert resolve_panel_range(panel) == (_dt(12, 0, 56), _dt(13, 10, 0))


def test_full_uses_union() -> None:
    panel = _panel((_dt(12, 0, 56), _dt(12, 10, 0)), (_dt(11, 0, 56), _dt(13, 10, 0)))
    assert resolve_panel_range(panel) == (_dt(11, 0, 56), _dt(13, 10, 0))


def test_panel_without_ranges_has_none() -> None:
    assert resolve_panel_range(_panel(None, None, mode=PanelRangeMode.BEST_FIT)) is None


def _aligned(mode, *panel_ranges: TimeRange | None) -> list[TimeRange | None]:
    config = ResolvedGraphConfig(panels=[ResolvedPanel(time_range=r) for r in panel_ranges])
    align_panels(config, mode)
    return [p.time_range for p in config.panels]


def test_per_panel_leaves_ranges() -> None:
    a = (_dt(12, 0, 0), _dt(12, 10, 0))
    b = (_dt(13, 0, 0), _dt(13, 10, 0))
    assert _aligned(PanelAlignmentMode.PER_PANEL, a, b) == [a, b]


def test_shared_full_applies_to_panels_with_range() -> None:
    a = (_dt(12, 0, 0), _dt(12, 10, 0))
    b = (_dt(11, 0, 0), _dt(12, 5, 0))
    shared = (_dt(11, 0, 0), _dt(12, 10, 0))
    assert _aligned(PanelAlignmentMode.SHARED_FULL, a, None, b) == [shared, None, shared]


def test_shared_overlap_applies_intersection() -> None:
    a = (_dt(12, 0, 0), _dt(12, 10, 0))
    b = (_dt(12, 5, 0), _dt(13, 0, 0))
    overlap = (_dt(12, 5, 0), _dt(12, 10, 0))
    assert _aligned(PanelAlignmentMode.SHARED_OVERLAP, a, b) == [overlap, overlap]


def test_shared_overlap_without_overlap_keeps_panel_ranges() -> None:
    a = (_dt(12, 0, 56), _dt(12, 10, 0))
    b = (_dt(12, 20, 56), _dt(13, 10, 0))
    assert _aligned(PanelAlignmentMode.SHARED_OVERLAP, a, b) == [a, b]


def test_fixed_applies_to_every_panel() -> None:
    fixed = FixedRange(_dt(1, 0, 0), _dt(2, 0, 0))
    a = (_dt(12, 0, 0), _dt(12, 10, 0))
    assert _aligned(fixed, a, None) == [(fixed.start, fixed.end)] * 2


def test_global_range_spans_all_lines() -> None:
    config = ResolvedGraphConfig(
        panels=[
            _panel((_dt(12, 0, 0), _dt(12, 10, 0)), None),
            _panel((_dt(11, 0, 0), _dt(11, 30, 0))),
        ]
    )
    assert global_time_range(config) == (_dt(11, 0, 0), _dt(12, 10, 0))


def test_global_range_without_data_fails() -> None:
    with pytest.raises(EmptyRangeError):
        global_time_range(ResolvedGraphConfig(panels=[_panel(None)]))


def test_relative_time_range_scales_total_range() -> None:
    ctx = ProcessingContext(time_range=RelativeRange(0.25, 0.5))
    mode = resolved_alignment_mode(ctx, (_dt(12, 0, 0), _dt(13, 0, 0)))
    assert mode == FixedRange(_dt(12, 15, 0), _dt(12, 30, 0))


def test_absolute_time_range_uses_timestamp_format() -> None:
    ctx = ProcessingContext(
        alignment=PanelAlignmentMode.SHARED_FULL,
        time_range=AbsoluteRange("2025-05-17 12:00:00.000", "2025-05-17 12:30:00.500"),
    )
    mode = resolved_alignment_mode(ctx, (_dt(0, 0, 0), _dt(1, 0, 0)))
    assert mode == FixedRange(_dt(12, 0, 0), datetime(2025, 5, 17, 12, 30, 0, 500_000))


def test_alignment_without_time_range_is_passed_through() -> None:
    ctx = ProcessingContext(alignment=PanelAlignmentMode.SHARED_OVERLAP)
    assert resolved_alignment_mode(ctx, (_dt(0, 0, 0), _dt(1, 0, 0))) is PanelAlignmentMode.SHARED_OVERLAP


def test_csv_range_reads_first_and_last_rows(tmp_path: Path) -> None:
    path = _write_cache(
        tmp_path / "a.csv",
        [
            "2025-05-17,12:00:56.000,1.0,1,0.0",
            "2025-05-17,12:05:00.000,1.0,2,244000.0",
            "2025-05-17,12:10:00.250,1.0,3,300250.0",
        ],
    )
    assert csv_range_from_file(path) == (_dt(12, 0, 56), datetime(2025, 5, 17, 12, 10, 0, 250_000))


def test_csv_range_single_row_is_degenerate(tmp_path: Path) -> None:
    path = _write_cache(tmp_path / "a.csv", ["2025-05-17,12:00:56.000,1.0,1,0.0"])
    assert csv_range_from_file(path) == (_dt(12, 0, 56), _dt(12, 0, 56))


def test_csv_range_header_only_is_none(tmp_path: Path) -> None:
    assert csv_range_from_file(_write_cache(tmp_path / "a.csv", [])) is None


def test_csv_range_malformed_row(tmp_path: Path) -> None:
    path = _write_cache(tmp_path / "a.csv", ["yesterday,noon,1.0,1,0.0"])
    with pytest.raises(MalformedCacheFile):
        csv_range_from_file(path)


def test_resolve_panels_ranges_end_to_end(tmp_path: Path) -> None:
    first = _write_cache(
        tmp_path / "a.csv",
        ["2025-05-17,12:00:00.000,1.0,1,0.0", "2025-05-17,12:10:00.000,1.0,2,0.0"],
    )
    second = _write_cache(
        tmp_path / "b.csv",
        ["2025-05-17,12:05:00.000,1.0,1,0.0", "2025-05-17,12:20:00.000,1.0,2,0.0"],
    )
    empty = _write_cache(tmp_path / "c.csv", [])

    lines = [_line(None), _line(None), _line(None)]
    for line, path in zip(lines, (first, second, empty), strict=True):
        line.cache_file = path
    config = ResolvedGraphConfig(
        panels=[
            ResolvedPanel(lines=[lines[0]]),
            ResolvedPanel(lines=[lines[1]]),
            ResolvedPanel(lines=[lines[2]]),
        ]
    )

    resolve_panels_ranges(config, ProcessingContext(alignment=PanelAlignmentMode.SHARED_FULL))

    shared = (_dt(12, 0, 0), _dt(12, 20, 0))
    assert [p.time_range for p in config.panels] == [shared, shared, None]
    assert lines[0].time_range == (_dt(12, 0, 0), _dt(12, 10, 0))
