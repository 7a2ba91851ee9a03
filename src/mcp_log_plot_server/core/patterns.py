"""Data-source pattern compilation and value normalization."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import assert_never

from .errors import InvalidCaptureGroups, PatternError
from .models import DataSourceType, EventCount, EventDelta, EventValue, FieldValue

# Literal field names expand to: name=<number>[unit]
FIELD_TEMPLATE = r"\b{name}=([\d\.]+)(\w+)?"

# Time units converted to milliseconds as (multiplier, divisor); anything else is left as-is.
_UNIT_SCALE: dict[str, tuple[float, float]] = {
    "s": (1000.0, 1.0),
    "ms": (1.0, 1.0),
    "us": (1.0, 1000.0),
    "µs": (1.0, 1000.0),
    "Âµs": (1.0, 1000.0),  # mis-decoded utf-8 micro sign
    "microseconds": (1.0, 1000.0),
    "ns": (1.0, 1_000_000.0),
}


def _user_field_regex(field: str) -> re.Pattern[str] | None:
    """Return the field as a regex if it is one with 1 or 2 capture groups.

    A valid regex with more than 2 groups is an error; anything else
    (invalid syntax, no groups) is a literal field name.
    """
    try:
        rx = re.compile(field)
    except re.error:
        return None
    if rx.groups > 2:
        raise InvalidCaptureGroups(field)
    if rx.groups >= 1:
        return rx
    return None


def regex_pattern(ds: DataSourceType) -> str:
    """Return the regex actually used for matching `ds`."""
    if isinstance(ds, FieldValue):
        if _user_field_regex(ds.field) is not None:
            return ds.field
        return FIELD_TEMPLATE.format(name=re.escape(ds.field))
    if isinstance(ds, (EventValue, EventCount, EventDelta)):
        return ds.pattern
    assert_never(ds)


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """Compiled regex plus the guard that gates it."""

    regex: re.Pattern[str]
    guard: str | None

    def guard_matches(self, line: str) -> bool:
        return self.guard is None or self.guard in line

    def search(self, remainder: str) -> re.Match[str] | None:
        return self.regex.search(remainder)


def compile_pattern(ds: DataSourceType) -> CompiledPattern:
    """Compile a data source into a matcher.

    Raises InvalidCaptureGroups for field regexes with more than 2 groups and
    PatternError when the final regex does not compile.
    """
    pattern = regex_pattern(ds)
    try:
        rx = re.compile(pattern)
    except re.error as exc:
        raise PatternError(pattern, str(exc)) from exc
    return CompiledPattern(regex=rx, guard=ds.guard)


def normalize_value(value: str, unit: str | None = None) -> float | None:
    """Convert a captured number (+ optional time unit) to milliseconds.

    Returns None when `value` is not a number. Unknown or missing units leave
    the number unchanged.
    """
    if "_" in value:
        return None
    try:
        base = float(value)
    except ValueError:
        return None
    mul, div = _UNIT_SCALE.get(unit or "", (1.0, 1.0))
    if div != 1.0:
        return base / div
    return base * mul
