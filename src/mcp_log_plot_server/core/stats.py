"""Summary statistics read back from cache files."""

from __future__ import annotations

import csv
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Literal, assert_never

from .errors import FileAccessError, MalformedCacheFile
from .models import DataSourceType, EventCount, EventDelta, EventValue, FieldValue

Column = Literal["value", "count", "delta"]


def plot_column(ds: DataSourceType) -> Column:
    """Cache file column that carries the plotted series for `ds`."""
    if isinstance(ds, (FieldValue, EventValue)):
        return "value"
    if isinstance(ds, EventCount):
        return "count"
    if isinstance(ds, EventDelta):
        return "delta"
    assert_never(ds)


@dataclass(frozen=True, slots=True)
class SeriesSummary:
    column: Column
    count: int
    min: float | None = None
    max: float | None = None
    mean: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def summarize_cache_file(path: Path, column: Column) -> SeriesSummary:
    n = 0
    total = 0.0
    lo: float | None = None
    hi: float | None = None

    try:
        with path.open(encoding="utf-8", newline="") as f:
            for row in csv.DictReader(f):
                try:
                    v = float(row[column])
                except (KeyError, TypeError, ValueError) as exc:
                    raise MalformedCacheFile(path, ",".join(str(x) for x in row.values())) from exc
                n += 1
                total += v
                lo = v if lo is None else min(lo, v)
                hi = v if hi is None else max(hi, v)
    except OSError as exc:
        raise FileAccessError(path, exc) from exc

    if n == 0:
        return SeriesSummary(column=column, count=0)
    return SeriesSummary(column=column, count=n, min=lo, max=hi, mean=total / n)
