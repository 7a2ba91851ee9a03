"""Errors raised by the extraction, caching and range-resolution pipeline."""

from __future__ import annotations

from pathlib import Path


class LogPlotError(Exception):
    """Base class for pipeline errors."""


class PatternError(LogPlotError, ValueError):
    """A data-source regex failed to compile."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"Regex error in '{pattern}': {reason}")
        self.pattern = pattern


class InvalidCaptureGroups(PatternError):
    def __init__(self, pattern: str) -> None:
        super().__init__(pattern, "field regex shall have 1 or 2 capture groups")


class UnsupportedTimestampFormat(LogPlotError, ValueError):
    def __init__(self, fmt: str, directive: str) -> None:
        super().__init__(f"Unsupported directive '{directive}' in timestamp format '{fmt}'")
        self.timestamp_format = fmt
        self.directive = directive


class FileAccessError(LogPlotError, OSError):
    """I/O failure while accessing `path`."""

    def __init__(self, path: Path, cause: OSError) -> None:
        super().__init__(f"I/O error while accessing file '{path}': {cause}")
        self.path = path


class InvalidInputFile(LogPlotError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Invalid input file '{path}': {reason}")
        self.path = path
        self.reason = reason


class TimestampExtractionError(LogPlotError):
    """Too many lines of one scan did not start with the configured timestamp."""

    def __init__(self, path: Path, timestamp_format: str, line: str) -> None:
        super().__init__(
            f"Timestamp extraction failed: file:'{path}' format:'{timestamp_format}' line:'{line}'"
        )
        self.path = path
        self.timestamp_format = timestamp_format
        self.line = line


class EmptyRangeError(LogPlotError):
    def __init__(self) -> None:
        super().__init__(
            "Empty ranges for all lines. No data, bad timestamp format, bad guard or bad regex?"
        )


class MalformedCacheFile(LogPlotError):
    """A cache file row could not be parsed (the processor controls this format)."""

    def __init__(self, path: Path, row: str) -> None:
        super().__init__(f"Malformed row in cache file '{path}': '{row}' (this is a bug)")
        self.path = path
        self.row = row


class TimeRangeParseError(LogPlotError, ValueError):
    def __init__(self, value: str, timestamp_format: str) -> None:
        super().__init__(
            f"Time range bound '{value}' does not match timestamp format '{timestamp_format}'"
        )
        self.value = value
        self.timestamp_format = timestamp_format
