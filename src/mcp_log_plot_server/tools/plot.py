"""MCP tool implementations.

This module contains the *implementation* behind the exposed MCP tools.
Keep this layer thin: validate inputs, translate them into core calls, and
return JSON-serializable data structures.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from mcp_log_plot_server.core.config import ProcessingContext, resolve_context
from mcp_log_plot_server.core.layout import expand_layout
from mcp_log_plot_server.core.models import (
    DataSource,
    DataSourceType,
    Layout,
    PanelAlignmentMode,
    ResolvedGraphConfig,
    ResolvedLine,
    TimeRange,
)
from mcp_log_plot_server.core.preview import DEFAULT_PREVIEW_COUNT, preview_matches
from mcp_log_plot_server.core.processor import ProcessReport, process_inputs
from mcp_log_plot_server.core.ranges import resolve_panels_ranges
from mcp_log_plot_server.core.stats import plot_column, summarize_cache_file
from mcp_log_plot_server.core.time_window import parse_time_range
from mcp_log_plot_server.core.timestamp import DEFAULT_TIMESTAMP_FORMAT, TimestampFormat

HARD_PREVIEW_LIMIT = 200
ALIGNMENT_MODES = [m.value for m in PanelAlignmentMode]

_DATA_SOURCE = TypeAdapter(DataSource)


def _parse_alignment(alignment: str | None) -> PanelAlignmentMode:
    if not alignment:
        return PanelAlignmentMode.PER_PANEL
    try:
        return PanelAlignmentMode(alignment.strip().lower())
    except ValueError as e:
        valid = ", ".join(ALIGNMENT_MODES)
        raise ValueError(f"Unknown alignment '{alignment}'. Valid values: {valid}.") from e


def _range_to_list(r: TimeRange | None) -> list[str] | None:
    if r is None:
        return None
    return [r[0].isoformat(), r[1].isoformat()]


def _line_to_dict(line: ResolvedLine) -> dict[str, Any]:
    ds = line.data_source
    column = plot_column(ds)
    cache_file = line.expect_cache_file()
    d: dict[str, Any] = {
        "source": str(line.source),
        "data_source": ds.model_dump(),
        "title": line.line.title,
        "cache_file": str(cache_file),
        "data_points": line.data_points,
        "time_range": _range_to_list(line.time_range),
        "column": column,
    }
    if not line.is_empty():
        d["summary"] = summarize_cache_file(cache_file, column).to_dict()
    return d


def _result_to_dict(config: ResolvedGraphConfig, report: ProcessReport) -> dict[str, Any]:
    return {
        "panels": [
            {
                "title": panel.title,
                "input_file": str(panel.input_file) if panel.input_file is not None else None,
                "time_range": _range_to_list(panel.time_range),
                "empty": panel.is_empty(),
                "lines": [_line_to_dict(line) for line in panel.lines],
            }
            for panel in config.panels
        ],
        "written": [str(p) for p in report.written],
        "reused": [str(p) for p in report.reused],
        "warnings": list(report.warnings),
    }


def process_logs_impl(
    *,
    layout: dict[str, Any] | Layout,
    inputs: Sequence[str],
    timestamp_format: str | None = None,
    alignment: str | None = None,
    time_range: str | None = None,
    force_regen: bool = False,
    cache_dir: str | None = None,
    per_file_panels: bool = False,
) -> dict[str, Any]:
    """Implementation for the `process_logs` MCP tool.

    Notes
    -----
    - `time_range` ("0.1,0.5" or "<ts>,<ts>") overrides `alignment`.
    - Cache files are reused unless `force_regen` is set.
    """
    parsed = layout if isinstance(layout, Layout) else Layout.model_validate(layout)
    if not parsed.panels:
        raise ValueError("layout must contain at least one panel")

    ctx = resolve_context(
        ProcessingContext(
            timestamp_format=TimestampFormat.parse(timestamp_format or DEFAULT_TIMESTAMP_FORMAT),
            force_regen=force_regen,
            cache_dir=Path(cache_dir).expanduser() if cache_dir else None,
            alignment=_parse_alignment(alignment),
            time_range=parse_time_range(time_range) if time_range else None,
        )
    )

    config = expand_layout(parsed, inputs, per_file_panels=per_file_panels)
    report = process_inputs(config, ctx)
    resolve_panels_ranges(config, ctx)
    return _result_to_dict(config, report)


def _parse_data_source(data_source: dict[str, Any] | DataSourceType) -> DataSourceType:
    if isinstance(data_source, dict):
        return _DATA_SOURCE.validate_python(data_source)
    return data_source


async def preview_matches_impl(
    *,
    log_path: str,
    data_source: dict[str, Any] | DataSourceType,
    timestamp_format: str | None = None,
    count: int | None = None,
) -> dict[str, Any]:
    """Implementation for the `preview_matches` MCP tool."""
    if count is None:
        count = DEFAULT_PREVIEW_COUNT
    if count <= 0:
        raise ValueError("count must be > 0")
    count = min(count, HARD_PREVIEW_LIMIT)

    ctx = resolve_context()
    result = await preview_matches(
        log_path,
        _parse_data_source(data_source),
        timestamp_format=TimestampFormat.parse(timestamp_format or DEFAULT_TIMESTAMP_FORMAT),
        count=count,
        fallback_year=ctx.fallback_year,
    )
    return result.model_dump()
