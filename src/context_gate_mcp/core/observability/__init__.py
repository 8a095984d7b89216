"""
Observability utilities for context-gate-mcp.

Provides metrics collection, audit logging and the ``mcp_tool`` decorator
for MCP tool handlers.

Example:

    from mcp.server.fastmcp import FastMCP
    from context_gate_mcp.core.observability import mcp_tool

    mcp = FastMCP("context-gate-mcp")

    @mcp.tool()
    @mcp_tool(tool_name="context")
    def context(action: str) -> dict:
        ...
"""

from context_gate_mcp.core.observability.audit import (
    AuditEvent,
    AuditEventType,
    AuditLogger,
    get_audit_logger,
)
from context_gate_mcp.core.observability.decorators import mcp_tool
from context_gate_mcp.core.observability.metrics import (
    Metric,
    MetricsCollector,
    MetricType,
    get_metrics,
)

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
    "get_audit_logger",
    "mcp_tool",
    "Metric",
    "MetricsCollector",
    "MetricType",
    "get_metrics",
]
