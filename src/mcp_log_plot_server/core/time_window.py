"""Time-range override parsing.

Converts a user ``"a,b"`` selector into either a relative zoom window or an
absolute pair of timestamps, and resolves it against the data's total range.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from .errors import TimeRangeParseError
from .models import TimeRange
from .timestamp import DEFAULT_FALLBACK_YEAR, TimestampFormat, parse_timestamp


@dataclass(frozen=True, slots=True)
class RelativeRange:
    """Fractions of the total data range, 0.0 <= start < end <= 1.0."""

    start: float
    end: float

    def __post_init__(self) -> None:
        if not (0.0 <= self.start <= 1.0 and 0.0 <= self.end <= 1.0) or self.start >= self.end:
            raise ValueError("Relative range must be between 0.0 and 1.0, and start < end")


@dataclass(frozen=True, slots=True)
class AbsoluteRange:
    """Two timestamps written in the configured timestamp format."""

    start: str
    end: str


TimeRangeArg = RelativeRange | AbsoluteRange


def parse_time_range(s: str) -> TimeRangeArg:
    """Parse ``"0.25,0.5"`` or ``"<timestamp>,<timestamp>"``."""
    pieces = [p.strip() for p in s.split(",")]
    if len(pieces) != 2:
        raise ValueError("Expected two values separated by a comma")

    try:
        a, b = float(pieces[0]), float(pieces[1])
    except ValueError:
        return AbsoluteRange(pieces[0], pieces[1])
    return RelativeRange(a, b)


def _round_half_away(x: float) -> int:
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


def _scale(duration: timedelta, frac: float) -> timedelta:
    """Scale a duration in whole microseconds."""
    micros = (duration.days * 86_400 + duration.seconds) * 1_000_000 + duration.microseconds
    return timedelta(microseconds=_round_half_away(micros * frac))


def resolve_time_range(
    arg: TimeRangeArg,
    total_range: TimeRange,
    fmt: TimestampFormat,
    *,
    fallback_year: int = DEFAULT_FALLBACK_YEAR,
) -> TimeRange:
    """Turn a time-range argument into concrete timestamps."""
    if isinstance(arg, RelativeRange):
        start, end = total_range
        duration = end - start
        return start + _scale(duration, arg.start), start + _scale(duration, arg.end)

    bounds: list[datetime] = []
    for value in (arg.start, arg.end):
        try:
            bounds.append(parse_timestamp(fmt, value, fallback_year=fallback_year))
        except ValueError as exc:
            raise TimeRangeParseError(value, fmt.pattern) from exc
    return bounds[0], bounds[1]
