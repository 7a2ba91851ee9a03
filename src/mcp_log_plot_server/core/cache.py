"""Cache file naming, directory resolution and scan deduplication.

Lines that look for the same signal (guard, match token, source file) are
grouped. Each group gets one canonical line whose cache file is scanned.
Count/delta lines only need "which lines matched and when", so they read the
canonical's file. Field/event-value lines keep their own file because the
extracted value differs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import assert_never
from urllib.parse import quote

from .errors import FileAccessError
from .models import (
    DataSourceType,
    EventCount,
    EventDelta,
    EventValue,
    FieldValue,
    ResolvedGraphConfig,
    ResolvedLine,
)
from .patterns import regex_pattern

logger = logging.getLogger(__name__)

CACHE_SUBDIR = ".logplot"

MatchKey = tuple[str | None, str, Path]
CacheDirResolver = Callable[[Path], Path]


@dataclass(frozen=True, slots=True)
class ScanTarget:
    """A distinct cache file to produce, and the data source that drives its scan."""

    cache_file: Path
    source: Path
    data_source: DataSourceType


def kind_tag(ds: DataSourceType) -> str:
    if isinstance(ds, FieldValue):
        return "field"
    if isinstance(ds, EventValue):
        return "value"
    if isinstance(ds, EventCount):
        return "count"
    if isinstance(ds, EventDelta):
        return "delta"
    assert_never(ds)


def is_shareable(ds: DataSourceType) -> bool:
    """Count/delta output does not depend on the captured value."""
    if isinstance(ds, (EventCount, EventDelta)):
        return True
    if isinstance(ds, (FieldValue, EventValue)):
        return False
    assert_never(ds)


def _source_mtime_tag(source: Path) -> str:
    try:
        return str(int(source.stat().st_mtime))
    except OSError:
        return "nots"


def cache_filename(line: ResolvedLine) -> str:
    """Build ``<log>_<mtime>__[<guard>__]<kind>_<pattern>[_<yvalue>].csv``."""
    ds = line.data_source
    core = f"{kind_tag(ds)}_{quote(regex_pattern(ds), safe='')}"
    if isinstance(ds, EventValue):
        core = f"{core}_{ds.yvalue}"

    prefix = f"{line.source.name}_{_source_mtime_tag(line.source)}"
    if ds.guard is not None:
        return f"{prefix}__{quote(ds.guard, safe='')}__{core}.csv"
    return f"{prefix}__{core}.csv"


def cache_dir_for(source: Path, cache_root: Path | None) -> Path:
    """Return the directory holding cache files for `source`.

    With a root, the absolute path of the log is mirrored under it:
    ``/var/log/app/debug.log`` + ``~/.cache/x`` -> ``~/.cache/x/var/log/app``.
    Without one, a hidden directory next to the log is used.
    """
    try:
        resolved = Path(source).resolve(strict=True)
    except OSError as exc:
        raise FileAccessError(Path(source), exc) from exc
    return _cache_dir_for_absolute(resolved, cache_root)


def _cache_dir_for_absolute(source: Path, cache_root: Path | None) -> Path:
    if cache_root is None:
        return source.parent / CACHE_SUBDIR
    relative = source.relative_to(source.anchor)
    return (cache_root / relative).parent


def _pick_canonical(lines: list[ResolvedLine], members: list[int]) -> int:
    for i in members:
        if isinstance(lines[i].data_source, FieldValue):
            return i
    for i in members:
        if isinstance(lines[i].data_source, EventValue):
            return i
    return members[0]


def resolve_cache_files(
    config: ResolvedGraphConfig,
    cache_dir: CacheDirResolver,
) -> dict[Path, ScanTarget]:
    """Assign a cache file to every line and return the distinct files to scan.

    Lines are mutated in place (``cache_file``). The returned mapping has one
    entry per file that must be written.
    """
    lines = list(config.all_lines())

    groups: dict[MatchKey, list[int]] = {}
    for i, line in enumerate(lines):
        key = (line.guard, line.match_token, line.source)
        groups.setdefault(key, []).append(i)

    dirs: dict[Path, Path] = {}
    targets: dict[Path, ScanTarget] = {}

    for (_, _, source), members in groups.items():
        if source not in dirs:
            dirs[source] = cache_dir(source)
        out_dir = dirs[source]

        own = {i: out_dir / cache_filename(lines[i]) for i in members}
        canonical = _pick_canonical(lines, members)
        shared = own[canonical]
        targets.setdefault(shared, ScanTarget(shared, source, lines[canonical].data_source))
        logger.debug("canonical cache file %s for %d line(s)", shared, len(members))

        for i in members:
            if is_shareable(lines[i].data_source):
                lines[i].cache_file = shared
            else:
                lines[i].cache_file = own[i]
                targets.setdefault(own[i], ScanTarget(own[i], source, lines[i].data_source))

    return targets
