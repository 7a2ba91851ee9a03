"""Bind layout lines to concrete input files."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from .models import Layout, Line, Panel, ResolvedGraphConfig, ResolvedLine, ResolvedPanel


def _is_unbound(line: Line) -> bool:
    return line.file_name is None and line.file_id is None


def _bind_explicit(line: Line, inputs: Sequence[Path]) -> ResolvedLine:
    if line.file_name is not None:
        return ResolvedLine(line=line, source=Path(line.file_name))
    assert line.file_id is not None
    if line.file_id >= len(inputs):
        raise ValueError(f"file_id {line.file_id} is out of range ({len(inputs)} input file(s))")
    return ResolvedLine(line=line, source=inputs[line.file_id])


def _bind_all(line: Line, inputs: Sequence[Path]) -> list[ResolvedLine]:
    if _is_unbound(line):
        return [ResolvedLine(line=line, source=p) for p in inputs]
    return [_bind_explicit(line, inputs)]


def _expand_per_file(panel: Panel, inputs: Sequence[Path]) -> list[ResolvedPanel]:
    fixed = [line for line in panel.lines if not _is_unbound(line)]
    unbound = [line for line in panel.lines if _is_unbound(line)]

    panels: list[ResolvedPanel] = []
    for input_file in inputs:
        lines = [_bind_explicit(line, inputs) for line in fixed]
        lines.extend(ResolvedLine(line=line, source=input_file) for line in unbound)
        panels.append(
            ResolvedPanel(
                lines=lines,
                range_mode=panel.time_range_mode,
                title=panel.title,
                input_file=input_file,
            )
        )
    return panels


def expand_layout(
    layout: Layout,
    inputs: Sequence[str | Path],
    *,
    per_file_panels: bool = False,
) -> ResolvedGraphConfig:
    """Resolve every line of `layout` to one input file.

    - ``file_name`` binds to that path as-is,
    - ``file_id`` binds to ``inputs[file_id]``,
    - otherwise the line is replicated once per input file.

    With ``per_file_panels``, panels holding unbound lines are duplicated once
    per input file instead of mixing all files into one panel.
    """
    paths = [Path(p) for p in inputs]
    config = ResolvedGraphConfig()

    for panel in layout.panels:
        if per_file_panels and any(_is_unbound(line) for line in panel.lines):
            config.panels.extend(_expand_per_file(panel, paths))
            continue

        lines: list[ResolvedLine] = []
        for line in panel.lines:
            lines.extend(_bind_all(line, paths))
        config.panels.append(
            ResolvedPanel(lines=lines, range_mode=panel.time_range_mode, title=panel.title)
        )

    return config
