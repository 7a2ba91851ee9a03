"""Log scanning: turn matching log lines into cache file rows.

One ``LineProcessor`` exists per distinct cache file. All processors reading
the same source file are driven together in a single ordered pass, since
counts and deltas depend on line order.
"""

from __future__ import annotations

import csv
import gzip
import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, time
from pathlib import Path
from typing import TextIO, assert_never

from .cache import ScanTarget, cache_dir_for, resolve_cache_files
from .config import ProcessingContext
from .errors import FileAccessError, InvalidInputFile, TimestampExtractionError
from .models import (
    DataSourceType,
    EventCount,
    EventDelta,
    EventValue,
    FieldValue,
    LogRecord,
    ResolvedGraphConfig,
)
from .patterns import compile_pattern, normalize_value, regex_pattern
from .timestamp import (
    DEFAULT_FALLBACK_YEAR,
    PLACEHOLDER_DATE,
    TimestampFormat,
    as_datetime,
    extract_timestamp,
)

logger = logging.getLogger(__name__)

CSV_HEADER = ("date", "time", "value", "count", "delta")
# Failed timestamp extractions tolerated per scan before giving up.
TIMESTAMP_FAILURE_THRESHOLD = 3

Timestamp = datetime | time


def _signed_millis(current: Timestamp, previous: Timestamp) -> int:
    """Whole milliseconds between two timestamps, truncated toward zero."""
    diff = as_datetime(current) - as_datetime(previous)
    micros = (diff.days * 86_400 + diff.seconds) * 1_000_000 + diff.microseconds
    millis = abs(micros) // 1000
    return millis if micros >= 0 else -millis


def format_time(t: time) -> str:
    return f"{t.strftime('%H:%M:%S')}.{t.microsecond // 1000:03d}"


@dataclass(slots=True)
class ProcessingState:
    count: int = 0
    last_timestamp: Timestamp | None = None

    def next_count(self) -> int:
        self.count += 1
        return self.count

    def compute_delta(self, current: Timestamp) -> float | None:
        delta = None
        if self.last_timestamp is not None:
            delta = float(_signed_millis(current, self.last_timestamp))
        self.last_timestamp = current
        return delta


class LineProcessor:
    """Match, extract and accumulate records for one data source over one file."""

    def __init__(
        self,
        data_source: DataSourceType,
        output_path: Path | None,
        timestamp_format: TimestampFormat,
        input_file: Path,
        *,
        fallback_year: int = DEFAULT_FALLBACK_YEAR,
        log: logging.Logger | None = None,
    ) -> None:
        self.data_source = data_source
        self.pattern = compile_pattern(data_source)
        self.output_path = output_path
        self.timestamp_format = timestamp_format
        self.input_file = Path(input_file)
        self.fallback_year = fallback_year
        self.state = ProcessingState()
        self.records: list[LogRecord] = []
        self.timestamp_failures = 0
        self._log = log or logger

    def guard_matches(self, line: str) -> bool:
        return self.pattern.guard_matches(line)

    def handle_timestamp_failure(self, line: str) -> None:
        self.timestamp_failures += 1
        if self.timestamp_failures > TIMESTAMP_FAILURE_THRESHOLD:
            self._log.warning(
                "Timestamp extraction failed for %d lines (format=%r). Giving up.",
                self.timestamp_failures,
                self.timestamp_format.pattern,
            )
            raise TimestampExtractionError(self.input_file, self.timestamp_format.pattern, line)

    def try_match(self, line: str) -> tuple[bool, tuple[re.Match[str], Timestamp] | None]:
        """Return (guard passed, (regex match, timestamp) or None)."""
        if not self.guard_matches(line):
            return False, None

        try:
            timestamp, remainder = extract_timestamp(
                self.timestamp_format, line, fallback_year=self.fallback_year
            )
        except ValueError:
            self.handle_timestamp_failure(line)
            return True, None

        m = self.pattern.search(remainder)
        if m is None:
            return True, None
        return True, (m, timestamp)

    def _value_for(self, m: re.Match[str]) -> float | None:
        ds = self.data_source
        if isinstance(ds, EventValue):
            return ds.yvalue
        if isinstance(ds, (EventCount, EventDelta)):
            return 1.0
        if isinstance(ds, FieldValue):
            raw = m.group(1) if m.re.groups >= 1 and m.group(1) is not None else "0"
            unit = m.group(2) if m.re.groups >= 2 else None
            return normalize_value(raw, unit)
        assert_never(ds)

    def process(self, m: re.Match[str], timestamp: Timestamp) -> LogRecord | None:
        """Append a record for a successful match; unparsable values are dropped."""
        value = self._value_for(m)
        if value is None:
            self._log.debug("dropping unparsable value in %r", m.group(0))
            return None

        record = LogRecord(
            date=timestamp.date() if isinstance(timestamp, datetime) else None,
            time=timestamp.time() if isinstance(timestamp, datetime) else timestamp,
            value=value,
            count=self.state.next_count(),
            delta=self.state.compute_delta(timestamp),
        )
        self.records.append(record)
        return record

    def feed(self, line: str) -> LogRecord | None:
        _, matched = self.try_match(line)
        if matched is None:
            return None
        return self.process(*matched)

    def expect_output_path(self) -> Path:
        if self.output_path is None:
            raise RuntimeError("output path is expected to be set (this is a bug)")
        return self.output_path

    def write_csv(self) -> None:
        path = self.expect_output_path()
        try:
            with path.open("w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f, lineterminator="\n")
                writer.writerow(CSV_HEADER)
                for r in self.records:
                    d = r.date if r.date is not None else PLACEHOLDER_DATE
                    writer.writerow(
                        (
                            d.isoformat(),
                            format_time(r.time),
                            r.value,
                            r.count,
                            r.delta if r.delta is not None else 0.0,
                        )
                    )
        except OSError as exc:
            raise FileAccessError(path, exc) from exc


@dataclass(slots=True)
class ProcessReport:
    written: list[Path] = field(default_factory=list)
    reused: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@contextmanager
def open_log(path: Path, *, encoding: str = "utf-8", errors: str = "replace") -> Iterator[TextIO]:
    """Open a log for text reading (plain or gzip)."""
    try:
        if path.suffix.lower() == ".gz":
            f = gzip.open(path, mode="rt", encoding=encoding, errors=errors)
        else:
            f = path.open(encoding=encoding, errors=errors)
    except OSError as exc:
        raise FileAccessError(path, exc) from exc
    with f:
        yield f


def _scan_file(
    source: Path,
    processors: dict[Path, LineProcessor],
    report: ProcessReport,
    log: logging.Logger,
) -> None:
    if not source.is_file():
        raise InvalidInputFile(source, "Not a regular file")

    with open_log(source) as f:
        try:
            for raw in f:
                line = raw.rstrip("\r\n")
                for processor in processors.values():
                    processor.feed(line)
        except OSError as exc:
            raise FileAccessError(source, exc) from exc

    for path, processor in processors.items():
        if not processor.records:
            guard = processor.data_source.guard
            msg = (
                f"No matches in {source} (guard={guard!r}, "
                f"regex={regex_pattern(processor.data_source)!r})"
            )
            log.warning(msg)
            report.warnings.append(msg)
        else:
            log.debug(
                "Processed %s regex=%r matched=%d cache=%s",
                source,
                regex_pattern(processor.data_source),
                len(processor.records),
                path,
            )
        processor.write_csv()
        report.written.append(path)


def count_data_points(path: Path) -> int:
    """Number of data rows in a cache file."""
    try:
        with path.open(encoding="utf-8") as f:
            return max(sum(1 for _ in f) - 1, 0)
    except OSError as exc:
        raise FileAccessError(path, exc) from exc


def resolve_data_points(config: ResolvedGraphConfig) -> None:
    for line in config.all_lines():
        line.data_points = count_data_points(line.expect_cache_file())


def process_inputs(
    config: ResolvedGraphConfig,
    ctx: ProcessingContext,
    *,
    log: logging.Logger | None = None,
) -> ProcessReport:
    """Resolve cache files, scan what is missing, and count data points."""
    log = log or logger
    report = ProcessReport()

    targets = resolve_cache_files(config, lambda source: cache_dir_for(source, ctx.cache_dir))

    # source file -> cache file -> processor
    processors: dict[Path, dict[Path, LineProcessor]] = {}
    for cache_file, target in targets.items():
        try:
            cache_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FileAccessError(cache_file.parent, exc) from exc

        if not ctx.force_regen and cache_file.exists():
            log.debug("Using cached file for regex %r: %s", regex_pattern(target.data_source), cache_file)
            report.reused.append(cache_file)
            continue

        processors.setdefault(target.source, {})[cache_file] = _processor_for(target, ctx, log)

    for source, file_processors in processors.items():
        _scan_file(source, file_processors, report, log)

    resolve_data_points(config)
    return report


def _processor_for(target: ScanTarget, ctx: ProcessingContext, log: logging.Logger) -> LineProcessor:
    return LineProcessor(
        target.data_source,
        target.cache_file,
        ctx.timestamp_format,
        target.source,
        fallback_year=ctx.fallback_year,
        log=log,
    )
