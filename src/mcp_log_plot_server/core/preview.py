"""Match preview: show how the first guarded lines of a log are interpreted.

Used to debug a data source (guard, regex, timestamp format) before running a
full scan. Nothing is written to the cache.
"""

from __future__ import annotations

import gzip
import logging
from contextlib import asynccontextmanager
from pathlib import Path

import aiofiles
from aiofiles.threadpool import wrap
from pydantic import BaseModel, Field

from .errors import FileAccessError, InvalidInputFile
from .models import DataSourceType, LogRecord
from .patterns import regex_pattern
from .processor import LineProcessor
from .timestamp import DEFAULT_FALLBACK_YEAR, DEFAULT_FORMAT, TimestampFormat, extract_timestamp

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_COUNT = 5


class PreviewLine(BaseModel):
    line_no: int
    line: str
    timestamp_ok: bool
    remainder: str | None = None
    captures: list[str | None] = Field(default_factory=list)
    record: dict[str, object] | None = Field(
        default=None, description="Row that would be written to the cache file."
    )


class PreviewResult(BaseModel):
    log_path: str
    guard: str | None
    regex: str
    timestamp_format: str
    lines: list[PreviewLine] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


def _record_to_dict(record: LogRecord) -> dict[str, object]:
    return {
        "date": record.date.isoformat() if record.date is not None else None,
        "time": record.time.isoformat(timespec="milliseconds"),
        "value": record.value,
        "count": record.count,
        "delta": record.delta,
    }


@asynccontextmanager
async def _open_text(path: Path):
    """Open a log for async text reading (plain or gzip)."""
    try:
        if path.suffix.lower() == ".gz":
            af = wrap(gzip.open(path, mode="rt", encoding="utf-8", errors="replace"))
        else:
            af = await aiofiles.open(path, encoding="utf-8", errors="replace")
    except OSError as exc:
        raise FileAccessError(path, exc) from exc
    try:
        yield af
    finally:
        await af.close()


async def preview_matches(
    log_path: str | Path,
    data_source: DataSourceType,
    *,
    timestamp_format: TimestampFormat = DEFAULT_FORMAT,
    count: int = DEFAULT_PREVIEW_COUNT,
    fallback_year: int = DEFAULT_FALLBACK_YEAR,
) -> PreviewResult:
    """Report how up to `count` guard-passing lines are matched.

    Timestamp failures follow the same threshold as a real scan, so a wrong
    format surfaces as ``TimestampExtractionError``.
    """
    if count < 1:
        raise ValueError("count must be >= 1")

    path = Path(log_path)
    if not path.is_file():
        raise InvalidInputFile(path, "Not a regular file")

    processor = LineProcessor(
        data_source, None, timestamp_format, path, fallback_year=fallback_year
    )
    result = PreviewResult(
        log_path=str(path),
        guard=data_source.guard,
        regex=regex_pattern(data_source),
        timestamp_format=timestamp_format.pattern,
    )

    async with _open_text(path) as f:
        line_no = 0
        async for raw in f:
            line_no += 1
            line = raw.rstrip("\r\n")
            if not processor.guard_matches(line):
                continue

            entry = PreviewLine(line_no=line_no, line=line, timestamp_ok=False)
            try:
                timestamp, remainder = extract_timestamp(
                    timestamp_format, line, fallback_year=fallback_year
                )
            except ValueError:
                processor.handle_timestamp_failure(line)
            else:
                entry.timestamp_ok = True
                entry.remainder = remainder
                m = processor.pattern.search(remainder)
                if m is not None:
                    entry.captures = list(m.groups())
                    record = processor.process(m, timestamp)
                    if record is not None:
                        entry.record = _record_to_dict(record)
                logger.debug("preview line %d: remainder=%r match=%s", line_no, remainder, m)

            result.lines.append(entry)
            if len(result.lines) >= count:
                break

    if not result.lines and data_source.guard is not None:
        result.warnings.append(
            f"No lines matched against guard: {data_source.guard!r}. Is it correctly configured?"
        )
    return result
