"""CLI command groups."""

from context_gate_mcp.cli.commands.analytics import analytics_group
from context_gate_mcp.cli.commands.config import config_group
from context_gate_mcp.cli.commands.context import context_group

__all__ = [
    "analytics_group",
    "config_group",
    "context_group",
]
