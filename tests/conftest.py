from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest


@pytest.fixture
def write_duration_log() -> Callable[[Path], None]:
    def _write(path: Path) -> None:
        path.write_text(
            "\n".join(
                [
                    "2025-04-03 11:32:48.027 INFO main: operation duration=12.5ms",
                    "2025-04-03 11:32:48.100 DEBUG main: heartbeat",
                    "2025-04-03 11:32:49.027 INFO main: operation duration=1.5s",
                    "2025-04-03 11:32:49.500 INFO main: operation started",
                    "2025-04-03 11:32:50.000 INFO main: operation duration=250us",
                ]
            )
            + "\n",
            encoding="utf-8",
        )

    return _write


@pytest.fixture
def write_time_only_log() -> Callable[[Path], None]:
    def _write(path: Path) -> None:
        path.write_text(
            "\n".join(
                [
                    "08:00:00.000 job done size=10",
                    "08:00:01.250 job done size=20",
                    "08:00:03.000 job done size=30",
                ]
            )
            + "\n",
            encoding="utf-8",
        )

    return _write


@pytest.fixture
def write_lines() -> Callable[[Path, list[str]], None]:
    def _write(path: Path, lines: list[str]) -> None:
        path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")

    return _write
