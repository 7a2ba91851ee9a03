"""Processing configuration and environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from .models import AlignmentMode, PanelAlignmentMode
from .time_window import TimeRangeArg
from .timestamp import DEFAULT_FALLBACK_YEAR, DEFAULT_FORMAT, TimestampFormat

CACHE_DIR_ENV = "LOG_PLOT_CACHE_DIR"
FALLBACK_YEAR_ENV = "LOG_PLOT_FALLBACK_YEAR"
FORCE_REGEN_ENV = "LOG_PLOT_FORCE_REGEN"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class ProcessingContext:
    """Run-wide settings shared by scanning and range resolution."""

    timestamp_format: TimestampFormat = field(default=DEFAULT_FORMAT)
    force_regen: bool = False
    # Root for cache files; None means a hidden directory next to each log.
    cache_dir: Path | None = None
    # Year assumed for date formats without one (approximation).
    fallback_year: int = DEFAULT_FALLBACK_YEAR
    alignment: AlignmentMode = PanelAlignmentMode.PER_PANEL
    # When set, overrides `alignment` with a fixed window.
    time_range: TimeRangeArg | None = None


def resolve_context(ctx: ProcessingContext | None = None) -> ProcessingContext:
    """Return the context with optional env overrides applied."""
    if ctx is None:
        ctx = ProcessingContext()

    changes: dict[str, object] = {}

    cache_dir = os.getenv(CACHE_DIR_ENV)
    if cache_dir and ctx.cache_dir is None:
        changes["cache_dir"] = Path(cache_dir).expanduser()

    year = os.getenv(FALLBACK_YEAR_ENV)
    if year:
        try:
            value = int(year)
        except ValueError as exc:
            raise ValueError(f"{FALLBACK_YEAR_ENV} must be an integer") from exc
        if not 1 <= value <= 9999:
            raise ValueError(f"{FALLBACK_YEAR_ENV} must be within 1..9999")
        changes["fallback_year"] = value

    force = os.getenv(FORCE_REGEN_ENV)
    if force and force.strip().lower() in _TRUTHY:
        changes["force_regen"] = True

    if not changes:
        return ctx
    return replace(ctx, **changes)
