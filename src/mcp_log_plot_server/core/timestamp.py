"""Timestamp prefix extraction.

User formats use strftime-style directives (chrono spelling, e.g. ``%.3f``).
A format is compiled once into an anchored regex with one named group per
directive; extraction matches the start of a line and returns the parsed
timestamp plus the rest of the line.

Formats containing a date directive produce ``datetime`` values; time-only
formats produce ``time`` values. A date-bearing format without a year (for
example ``%b %d %H:%M:%S`` or ``%j ...``) gets ``fallback_year``. That is an
approximation: the log carries no year, so one has to be assumed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from functools import lru_cache

from .errors import UnsupportedTimestampFormat

DEFAULT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S%.3f"
DEFAULT_FALLBACK_YEAR = 2025

# Date written to cache files when the format is time-only.
PLACEHOLDER_DATE = date(2025, 1, 1)
# Date used to anchor time-only values when a full datetime is needed.
TIME_ONLY_ANCHOR = date(1970, 1, 1)

_DATE_SPECIFIERS = (
    "%Y", "%C", "%y", "%q", "%m", "%b", "%B", "%h", "%d", "%e", "%a", "%A", "%w",
    "%u", "%U", "%W", "%G", "%g", "%V", "%j", "%D", "%x", "%F", "%v", "%s",
)  # fmt: skip

_COMPOSITES = {
    "%T": "%H:%M:%S",
    "%R": "%H:%M",
    "%D": "%m/%d/%y",
    "%F": "%Y-%m-%d",
}

# directive -> (role, regex)
_DIRECTIVES: dict[str, tuple[str, str]] = {
    "Y": ("year", r"[+-]?\d{4}"),
    "C": ("century", r"\d{2}"),
    "y": ("year2", r"\d{2}"),
    "m": ("month", r"\d{1,2}"),
    "b": ("month_name", r"[A-Za-z]{3}"),
    "h": ("month_name", r"[A-Za-z]{3}"),
    "B": ("month_name", r"[A-Za-z]+"),
    "d": ("day", r"\d{1,2}"),
    "e": ("day", r"\s?\d{1,2}"),
    "a": ("weekday", r"[A-Za-z]{3}"),
    "A": ("weekday", r"[A-Za-z]+"),
    "w": ("weekday", r"[0-6]"),
    "u": ("weekday", r"[1-7]"),
    "j": ("ordinal", r"\d{1,3}"),
    "H": ("hour", r"\d{1,2}"),
    "k": ("hour", r"\s?\d{1,2}"),
    "I": ("hour12", r"\d{1,2}"),
    "l": ("hour12", r"\s?\d{1,2}"),
    "M": ("minute", r"\d{1,2}"),
    "S": ("second", r"\d{1,2}"),
    "p": ("ampm", r"[AaPp][Mm]"),
    "P": ("ampm", r"[AaPp][Mm]"),
    "f": ("fraction", r"\d{1,9}"),
    "s": ("epoch", r"-?\d+"),
    "z": ("offset", r"[+-]\d{2}:?\d{2}"),
    ":z": ("offset", r"[+-]\d{2}:\d{2}"),
    "Z": ("tzname", r"[A-Za-z]+"),
    # dot-prefixed fractions are optional: "12:00:01" matches "%T%.3f"
    ".f": ("fraction", r"(?:\.\d{1,9})?"),
    ".3f": ("fraction", r"(?:\.\d{3})?"),
    ".6f": ("fraction", r"(?:\.\d{6})?"),
    ".9f": ("fraction", r"(?:\.\d{9})?"),
    "3f": ("fraction", r"\d{3}"),
    "6f": ("fraction", r"\d{6}"),
    "9f": ("fraction", r"\d{9}"),
}

_MONTHS = {
    name: i
    for i, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}

_EPOCH = datetime(1970, 1, 1)


def format_contains_date(fmt: str) -> bool:
    """Return True when the format carries any date specifier."""
    return any(spec in fmt for spec in _DATE_SPECIFIERS)


@dataclass(frozen=True, slots=True)
class TimestampFormat:
    """A user timestamp format, classified as date-bearing or time-only."""

    pattern: str
    has_date: bool

    @classmethod
    def parse(cls, pattern: str) -> TimestampFormat:
        """Classify `pattern`; raises UnsupportedTimestampFormat for unknown directives."""
        _compile(pattern)
        return cls(pattern=pattern, has_date=format_contains_date(pattern))

    def __str__(self) -> str:
        return self.pattern


def _tokenize(fmt: str) -> list[tuple[str, str]]:
    """Split a format into ("directive", key) and ("literal", text) tokens."""
    tokens: list[tuple[str, str]] = []
    i = 0
    while i < len(fmt):
        ch = fmt[i]
        if ch != "%":
            tokens.append(("literal", ch))
            i += 1
            continue

        rest = fmt[i + 1 :]
        # padding modifiers (%-d, %_d, %0d) do not change parsing
        if rest[:1] in ("-", "_", "0") and len(rest) > 1:
            rest = rest[1:]
            i += 1

        if rest.startswith("%"):
            tokens.append(("literal", "%"))
            i += 2
            continue
        if rest.startswith(("n", "t")):
            tokens.append(("literal", " "))
            i += 2
            continue
        if f"%{rest[:1]}" in _COMPOSITES:
            tokens.extend(_tokenize(_COMPOSITES[f"%{rest[:1]}"]))
            i += 2
            continue

        for key in (".3f", ".6f", ".9f", "3f", "6f", "9f", ".f", ":z"):
            if rest.startswith(key):
                tokens.append(("directive", key))
                i += 1 + len(key)
                break
        else:
            key = rest[:1]
            if key not in _DIRECTIVES:
                raise UnsupportedTimestampFormat(fmt, f"%{key}")
            tokens.append(("directive", key))
            i += 2
    return tokens


@lru_cache(maxsize=64)
def _compile(fmt: str) -> tuple[re.Pattern[str], tuple[tuple[str, str], ...]]:
    """Compile a format into an anchored regex and its (group, role) list."""
    parts: list[str] = ["^"]
    groups: list[tuple[str, str]] = []
    prev_space = False

    for kind, value in _tokenize(fmt):
        if kind == "literal":
            if value.isspace():
                if not prev_space:
                    parts.append(r"\s*")
                prev_space = True
                continue
            parts.append(re.escape(value))
            prev_space = False
            continue

        role, rx = _DIRECTIVES[value]
        name = f"g{len(groups)}"
        groups.append((name, role))
        parts.append(f"(?P<{name}>{rx})")
        prev_space = False

    return re.compile("".join(parts)), tuple(groups)


DEFAULT_FORMAT = TimestampFormat.parse(DEFAULT_TIMESTAMP_FORMAT)


def _fraction_to_micros(raw: str) -> int:
    digits = raw.lstrip(".")
    return int(digits[:6].ljust(6, "0"))


def _month_from_name(name: str) -> int:
    try:
        return _MONTHS[name[:3].lower()]
    except KeyError:
        raise ValueError(f"unknown month name: {name!r}") from None


def _build(fields: dict[str, str], *, has_date: bool, fallback_year: int) -> datetime | time:
    micros = _fraction_to_micros(fields["fraction"]) if "fraction" in fields else 0

    if "epoch" in fields:
        dt = _EPOCH + timedelta(seconds=int(fields["epoch"]))
        dt = dt.replace(microsecond=micros)
        return dt if has_date else dt.time()

    if "hour12" in fields:
        hour = int(fields["hour12"]) % 12
        if fields.get("ampm", "").lower() == "pm":
            hour += 12
    else:
        hour = int(fields.get("hour", 0))
    minute = int(fields.get("minute", 0))
    second = min(int(fields.get("second", 0)), 59)  # leap second
    t = time(hour, minute, second, micros)

    if not has_date:
        return t

    if "year" in fields:
        year = int(fields["year"])
    elif "year2" in fields:
        yy = int(fields["year2"])
        if "century" in fields:
            year = int(fields["century"]) * 100 + yy
        else:
            year = 1900 + yy if yy >= 69 else 2000 + yy
    else:
        year = fallback_year

    if "month" in fields:
        d = date(year, int(fields["month"]), int(fields.get("day", 1)))
    elif "month_name" in fields:
        d = date(year, _month_from_name(fields["month_name"]), int(fields.get("day", 1)))
    elif "ordinal" in fields:
        d = date(year, 1, 1) + timedelta(days=int(fields["ordinal"]) - 1)
    else:
        d = date(year, 1, 1)

    return datetime.combine(d, t)


def _fields(match: re.Match[str], groups: tuple[tuple[str, str], ...]) -> dict[str, str]:
    out: dict[str, str] = {}
    for name, role in groups:
        value = match.group(name)
        if value is not None:
            out[role] = value.strip()
    return out


def extract_timestamp(
    fmt: TimestampFormat,
    line: str,
    *,
    fallback_year: int = DEFAULT_FALLBACK_YEAR,
) -> tuple[datetime | time, str]:
    """Parse the timestamp prefix of `line`.

    Returns ``(timestamp, remainder)``. Raises ``ValueError`` when the line
    does not start with a timestamp in this format or the fields are out of
    range (bad day, epoch beyond year 9999).
    """
    rx, groups = _compile(fmt.pattern)
    m = rx.match(line)
    if m is None:
        raise ValueError(f"line does not start with timestamp format '{fmt.pattern}'")
    try:
        ts = _build(_fields(m, groups), has_date=fmt.has_date, fallback_year=fallback_year)
    except (OverflowError, ValueError) as exc:
        raise ValueError(f"invalid timestamp {m.group(0)!r}: {exc}") from exc
    return ts, line[m.end() :]


def parse_timestamp(
    fmt: TimestampFormat,
    text: str,
    *,
    fallback_year: int = DEFAULT_FALLBACK_YEAR,
) -> datetime:
    """Parse a whole string with `fmt`; time-only values are anchored at 1970-01-01."""
    ts, rest = extract_timestamp(fmt, text.strip(), fallback_year=fallback_year)
    if rest.strip():
        raise ValueError(f"trailing input after timestamp: {rest!r}")
    if isinstance(ts, datetime):
        return ts
    return datetime.combine(TIME_ONLY_ANCHOR, ts)


def as_datetime(ts: datetime | time) -> datetime:
    """Lift an extracted timestamp to a datetime for arithmetic."""
    if isinstance(ts, datetime):
        return ts
    return datetime.combine(TIME_ONLY_ANCHOR, ts)
