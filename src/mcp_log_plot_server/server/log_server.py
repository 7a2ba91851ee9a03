"""MCP server entrypoint (stdio transport).

This module wires together:
- Tools: scan logs into cached series, preview matches
- Resources: help text, layout schema, cache file contents

Run locally (stdio):
    python -m mcp_log_plot_server.server.log_server
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_log_plot_server.resources.registry import register_resources
from mcp_log_plot_server.tools.plot import preview_matches_impl, process_logs_impl

LOGGER = logging.getLogger(__name__)

LOG_LEVEL_ENV = "LOG_PLOT_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level_name: str | None = None) -> None:
    """Configure a reasonable default logging setup.

    The MCP client typically captures stderr; keeping logs concise makes them easier to consume.
    """
    level_name = (level_name or os.getenv(LOG_LEVEL_ENV, "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)


mcp = FastMCP("log-plot", json_response=True)

register_resources(mcp)


@mcp.tool()
def process_logs(
    layout: dict[str, Any],
    inputs: list[str],
    timestamp_format: str | None = None,
    alignment: str | None = None,
    time_range: str | None = None,
    force_regen: bool = False,
    cache_dir: str | None = None,
    per_file_panels: bool = False,
) -> dict[str, Any]:
    """Extract time series from log files into cached CSV files.

    Parameters
    ----------
    layout:
        {"panels": [{"lines": [{"data_source": {...}}], "time_range_mode": "full"}]}.
        Data sources: field_value (field), event_value (pattern, yvalue),
        event_count (pattern), event_delta (pattern); all accept an optional guard.
        See app://log-plot/schemas/layout.
    inputs:
        Log files; lines without file_name/file_id are applied to each of them.
    timestamp_format:
        strftime-like format of the line prefix (default "%Y-%m-%d %H:%M:%S%.3f").
    alignment:
        per-panel (default), shared-full or shared-overlap.
    time_range:
        "0.25,0.5" (fractions of the whole data range) or "<ts>,<ts>" in
        timestamp_format. Overrides alignment.
    force_regen:
        Re-scan logs even when cache files exist.
    cache_dir:
        Root for cache files (default: hidden directory next to each log).
    per_file_panels:
        Duplicate panels holding unbound lines once per input file.

    Returns
    -------
    dict:
        {"panels": [...], "written": [...], "reused": [...], "warnings": [...]}
    """
    return process_logs_impl(
        layout=layout,
        inputs=inputs,
        timestamp_format=timestamp_format,
        alignment=alignment,
        time_range=time_range,
        force_regen=force_regen,
        cache_dir=cache_dir,
        per_file_panels=per_file_panels,
    )


@mcp.tool()
async def preview_matches(
    log_path: str,
    data_source: dict[str, Any],
    timestamp_format: str | None = None,
    count: int | None = None,
) -> dict[str, Any]:
    """Show how a data source applies to the first guard-passing lines of a log.

    Returns the extracted timestamp status, line remainder, regex captures and
    the record that would be written for each line. Nothing is cached.
    """
    return await preview_matches_impl(
        log_path=log_path,
        data_source=data_source,
        timestamp_format=timestamp_format,
        count=count,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Start the MCP server over stdio."""
    configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    _ = argv or sys.argv[1:]
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
