"""Core data models for log plotting.

Two families live here:

- the user-facing layout (pydantic models, loadable from JSON): data sources,
  lines, panels;
- the resolved structures the pipeline mutates in place: every line bound to a
  concrete input file, then to a cache file, then to a time window.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

TimeRange = tuple[datetime, datetime]


class _DataSourceBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    guard: str | None = Field(
        default=None,
        description="Plain substring that must be present before the regex is evaluated.",
    )


class FieldValue(_DataSourceBase):
    """Plot a numeric field extracted from matching lines."""

    data_source: Literal["field_value"] = "field_value"
    field: str = Field(description="Field name (expanded to `name=<number><unit>`) or a regex.")

    @property
    def match_token(self) -> str:
        return self.field


class EventValue(_DataSourceBase):
    """Plot a fixed `yvalue` each time `pattern` matches."""

    data_source: Literal["event_value"] = "event_value"
    pattern: str = Field(description="Regex matched against the line remainder.")
    yvalue: float = Field(description="Constant plotted for each match.")

    @property
    def match_token(self) -> str:
        return self.pattern


class EventCount(_DataSourceBase):
    """Plot the running number of `pattern` matches."""

    data_source: Literal["event_count"] = "event_count"
    pattern: str

    @property
    def match_token(self) -> str:
        return self.pattern


class EventDelta(_DataSourceBase):
    """Plot the time elapsed since the previous match of `pattern`."""

    data_source: Literal["event_delta"] = "event_delta"
    pattern: str

    @property
    def match_token(self) -> str:
        return self.pattern


DataSource = Annotated[
    FieldValue | EventValue | EventCount | EventDelta,
    Field(discriminator="data_source"),
]
DataSourceType = FieldValue | EventValue | EventCount | EventDelta


class PanelRangeMode(str, Enum):
    """How a panel window is derived from its lines' windows."""

    FULL = "full"
    BEST_FIT = "best-fit"


class PanelAlignmentMode(str, Enum):
    """How panel windows are reconciled with each other."""

    PER_PANEL = "per-panel"
    SHARED_FULL = "shared-full"
    SHARED_OVERLAP = "shared-overlap"


@dataclass(frozen=True, slots=True)
class FixedRange:
    """Literal window applied to every panel."""

    start: datetime
    end: datetime


AlignmentMode = PanelAlignmentMode | FixedRange


class Line(BaseModel):
    """A single data series: a data source plus an optional input-file binding."""

    data_source: DataSource
    file_name: str | None = Field(default=None, description="Bind the line to this file.")
    file_id: int | None = Field(default=None, ge=0, description="Bind the line to inputs[file_id].")
    title: str | None = None


class Panel(BaseModel):
    lines: list[Line] = Field(default_factory=list)
    title: str | None = None
    time_range_mode: PanelRangeMode = PanelRangeMode.FULL


class Layout(BaseModel):
    """User-facing description of panels and their lines."""

    panels: list[Panel] = Field(default_factory=list)


@dataclass(slots=True)
class ResolvedLine:
    """A line bound to exactly one input file."""

    line: Line
    source: Path
    cache_file: Path | None = None  # set by cache resolution
    data_points: int = 0  # set after scanning
    time_range: TimeRange | None = None  # set by range resolution

    @classmethod
    def for_source(cls, data_source: DataSourceType, source: str | Path) -> ResolvedLine:
        return cls(line=Line(data_source=data_source), source=Path(source))

    @property
    def data_source(self) -> DataSourceType:
        return self.line.data_source

    @property
    def guard(self) -> str | None:
        return self.line.data_source.guard

    @property
    def match_token(self) -> str:
        return self.line.data_source.match_token

    def is_empty(self) -> bool:
        return self.data_points == 0

    def expect_cache_file(self) -> Path:
        if self.cache_file is None:
            raise RuntimeError(f"cache file not resolved for line {self.line!r} (this is a bug)")
        return self.cache_file


@dataclass(slots=True)
class ResolvedPanel:
    lines: list[ResolvedLine] = field(default_factory=list)
    range_mode: PanelRangeMode = PanelRangeMode.FULL
    title: str | None = None
    input_file: Path | None = None  # set when duplicated per input file
    time_range: TimeRange | None = None

    def is_empty(self) -> bool:
        return all(line.is_empty() for line in self.lines)


@dataclass(slots=True)
class ResolvedGraphConfig:
    panels: list[ResolvedPanel] = field(default_factory=list)

    def all_lines(self) -> Iterator[ResolvedLine]:
        for panel in self.panels:
            yield from panel.lines


@dataclass(frozen=True, slots=True)
class LogRecord:
    """One extracted sample; becomes one cache file row."""

    date: date | None
    time: time
    value: float
    count: int
    delta: float | None = None  # milliseconds since the previous match
