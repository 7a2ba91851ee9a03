"""MCP resource registry.

Resources are addressable by URI and can be fetched by the MCP client on demand.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_log_plot_server.core.config import CACHE_DIR_ENV
from mcp_log_plot_server.core.models import Layout
from mcp_log_plot_server.core.processor import CSV_HEADER
from mcp_log_plot_server.core.timestamp import DEFAULT_TIMESTAMP_FORMAT

ALLOWED_FILE_SUFFIXES = {".csv"}
BASE_DIR_ENV = "LOG_PLOT_BASE_DIR"
TEXT_ENCODING = "utf-8"


def _base_dir() -> Path:
    """Return the resolved base directory for cache file resources."""
    raw = os.getenv(BASE_DIR_ENV, os.getcwd())
    return Path(raw).resolve()


def _safe_resolve(path: str) -> Path:
    """Resolve a path under the configured base directory."""
    base = _base_dir()
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = base / p
    p = p.resolve()
    if base not in p.parents and p != base:
        raise ValueError("Path escapes base dir")
    return p


def _resolve_cache_path(path: str) -> Path:
    resolved = _safe_resolve(path)
    if not resolved.is_file():
        raise FileNotFoundError(f"File not found: {resolved}")
    if resolved.suffix.lower() not in ALLOWED_FILE_SUFFIXES:
        allowed = ", ".join(sorted(ALLOWED_FILE_SUFFIXES))
        raise ValueError(f"File type not allowed. Allowed: {allowed}.")
    return resolved


def help_text() -> str:
    base = _base_dir()
    return (
        "Tools:\n"
        "- process_logs: scan logs into cached CSV series and resolve panel time ranges\n"
        "- preview_matches: show how guard/regex/timestamp format apply to the first lines\n"
        "\nResources:\n"
        "- app://log-plot/help\n"
        "- app://log-plot/schemas/layout\n"
        f"- cache://{{path}} (restricted to {BASE_DIR_ENV}; .csv only)\n"
        f"\nDefault timestamp format: {DEFAULT_TIMESTAMP_FORMAT}\n"
        f"Cache file columns: {','.join(CSV_HEADER)}\n"
        f"Cache root override: {CACHE_DIR_ENV}\n"
        f"Base directory: {base}\n"
    )


def register_resources(mcp: FastMCP) -> None:
    """Register resource handlers on the MCP server."""

    @mcp.resource("app://log-plot/help")
    def help_resource() -> str:
        """Return a short description of tools and resource URIs."""
        return help_text()

    @mcp.resource("app://log-plot/schemas/layout")
    def layout_schema() -> dict[str, Any]:
        """Return the JSON schema for panel layouts."""
        return Layout.model_json_schema()

    @mcp.resource("cache://{path}")
    async def read_cache_file(path: str) -> str:
        """Read a cache CSV file from within LOG_PLOT_BASE_DIR."""
        p = _resolve_cache_path(path)
        return await asyncio.to_thread(p.read_text, encoding=TEXT_ENCODING)
