"""Unified MCP tools backed by action routers.

Each tool exposes a single ``action`` parameter that selects an operation:

    context         – check, recommend, apply, estimate
    context-config  – get, update, reset, history
    analytics       – stats, dashboard, trends, realtime, export, record-build
"""

from __future__ import annotations

import logging
from typing import Callable, Dict

from mcp.server.fastmcp import FastMCP

from context_gate_mcp.config import ServerConfig
from context_gate_mcp.tools.unified.analytics import register_unified_analytics_tool
from context_gate_mcp.tools.unified.config import register_unified_config_tool
from context_gate_mcp.tools.unified.context import register_unified_context_tool

logger = logging.getLogger(__name__)

UNIFIED_TOOLS: Dict[str, Callable[[FastMCP, ServerConfig], None]] = {
    "context": register_unified_context_tool,
    "context-config": register_unified_config_tool,
    "analytics": register_unified_analytics_tool,
}


def register_unified_tools(mcp: FastMCP, config: ServerConfig) -> None:
    """Register every unified tool not listed in ``config.disabled_tools``."""
    disabled = set(config.disabled_tools)
    for name, register in UNIFIED_TOOLS.items():
        if name in disabled:
            logger.info("Skipping disabled tool '%s'", name)
            continue
        register(mcp, config)


__all__ = [
    "UNIFIED_TOOLS",
    "register_unified_tools",
]
