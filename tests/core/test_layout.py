from __future__ import annotations

from pathlib import Path

import pytest

from mcp_log_plot_server.core.layout import expand_layout
from mcp_log_plot_server.core.models import EventCount, FieldValue, Layout, Line, Panel, PanelRangeMode


def _line(file_name: str | None = None, file_id: int | None = None) -> Line:
    return Line(data_source=FieldValue(field="v"), file_name=file_name, file_id=file_id)


def _sources(layout: Layout, inputs: list[str], **kwargs) -> list[list[str]]:
    config = expand_layout(layout, inputs, **kwargs)
    return [[line.source.name for line in panel.lines] for panel in config.panels]


def test_unbound_lines_are_replicated_per_input() -> None:
    layout = Layout(panels=[Panel(lines=[_line()])])
    assert _sources(layout, ["a.log", "b.log"]) == [["a.log", "b.log"]]


def test_explicit_bindings() -> None:
    layout = Layout(panels=[Panel(lines=[_line(file_name="x.log"), _line(file_id=1)])])
    assert _sources(layout, ["a.log", "b.log"]) == [["x.log", "b.log"]]


def test_file_id_out_of_range() -> None:
    layout = Layout(panels=[Panel(lines=[_line(file_id=3)])])
    with pytest.raises(ValueError):
        expand_layout(layout, ["a.log"])


def test_per_file_panels_duplicates_panels_with_unbound_lines() -> None:
    layout = Layout(
        panels=[
            Panel(lines=[_line(file_name="x.log"), _line()], time_range_mode=PanelRangeMode.BEST_FIT),
            Panel(lines=[_line(file_id=0)]),
        ]
    )
    config = expand_layout(layout, ["a.log", "b.log"], per_file_panels=True)

    assert [[line.source.name for line in p.lines] for p in config.panels] == [
        ["x.log", "a.log"],
        ["x.log", "b.log"],
        ["a.log"],
    ]
    assert [p.input_file for p in config.panels] == [Path("a.log"), Path("b.log"), None]
    assert config.panels[1].range_mode is PanelRangeMode.BEST_FIT


def test_layout_loads_discriminated_data_sources() -> None:
    layout = Layout.model_validate(
        {
            "panels": [
                {
                    "lines": [
                        {"data_source": {"data_source": "event_count", "pattern": "up", "guard": "svc"}},
                        {"data_source": {"data_source": "field_value", "field": "dur"}},
                    ],
                    "time_range_mode": "best-fit",
                }
            ]
        }
    )
    first, second = layout.panels[0].lines
    assert first.data_source == EventCount(guard="svc", pattern="up")
    assert isinstance(second.data_source, FieldValue)
    assert layout.panels[0].time_range_mode is PanelRangeMode.BEST_FIT
