from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from mcp_log_plot_server.core.errors import EmptyRangeError
from mcp_log_plot_server.tools.plot import preview_matches_impl, process_logs_impl


def _layout(*lines: dict, mode: str = "full") -> dict:
    return {"panels": [{"lines": [{"data_source": ds} for ds in lines], "time_range_mode": mode}]}


def test_process_logs_impl_returns_panels_and_summaries(
    tmp_path: Path, write_duration_log: Callable[[Path], None]
) -> None:
    log = tmp_path / "app.log"
    write_duration_log(log)

    out = process_logs_impl(
        layout=_layout(
            {"data_source": "field_value", "guard": "operation", "field": "duration"},
            {"data_source": "event_count", "pattern": "heartbeat"},
        ),
        inputs=[str(log)],
        cache_dir=str(tmp_path / "cache"),
    )

    (panel,) = out["panels"]
    assert panel["time_range"] == ["2025-04-03T11:32:48.027000", "2025-04-03T11:32:50"]
    field_line, count_line = panel["lines"]
    assert field_line["data_points"] == 3
    assert field_line["column"] == "value"
    assert field_line["summary"]["max"] == 1500.0
    assert count_line["column"] == "count"
    assert count_line["time_range"] == ["2025-04-03T11:32:48.100000", "2025-04-03T11:32:48.100000"]
    assert len(out["written"]) == 2
    assert out["reused"] == []


def test_process_logs_impl_time_range_overrides_alignment(
    tmp_path: Path, write_duration_log: Callable[[Path], None]
) -> None:
    log = tmp_path / "app.log"
    write_duration_log(log)

    out = process_logs_impl(
        layout=_layout({"data_source": "event_count", "guard": "operation", "pattern": "duration"}),
        inputs=[str(log)],
        alignment="shared-overlap",
        time_range="0.0,0.5",
        cache_dir=str(tmp_path / "cache"),
    )

    assert out["panels"][0]["time_range"] == ["2025-04-03T11:32:48.027000", "2025-04-03T11:32:49.013500"]


def test_process_logs_impl_rejects_unknown_alignment(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Unknown alignment"):
        process_logs_impl(
            layout=_layout({"data_source": "event_count", "pattern": "x"}),
            inputs=[str(tmp_path / "a.log")],
            alignment="sideways",
        )


def test_process_logs_impl_reports_empty_data(
    tmp_path: Path, write_lines: Callable[[Path, list[str]], None]
) -> None:
    log = tmp_path / "app.log"
    write_lines(log, ["2025-04-03 11:32:48.027 nothing here"])

    with pytest.raises(EmptyRangeError):
        process_logs_impl(
            layout=_layout({"data_source": "event_count", "pattern": "never"}),
            inputs=[str(log)],
            cache_dir=str(tmp_path / "cache"),
        )


@pytest.mark.asyncio
async def test_preview_matches_impl(tmp_path: Path, write_time_only_log: Callable[[Path], None]) -> None:
    log = tmp_path / "jobs.log"
    write_time_only_log(log)

    out = await preview_matches_impl(
        log_path=str(log),
        data_source={"data_source": "field_value", "field": "size"},
        timestamp_format="%H:%M:%S%.3f",
        count=2,
    )

    assert [entry["record"]["value"] for entry in out["lines"]] == [10.0, 20.0]
    assert out["lines"][1]["record"]["date"] is None
    assert out["regex"] == r"\bsize=([\d\.]+)(\w+)?"


@pytest.mark.asyncio
async def test_preview_matches_impl_validates_count(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        await preview_matches_impl(
            log_path=str(tmp_path / "a.log"),
            data_source={"data_source": "event_count", "pattern": "x"},
            count=0,
        )
