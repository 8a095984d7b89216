"""
Standard response contracts for MCP tool operations.

Callers can use ``from context_gate_mcp.core.responses import success_response``
or import from canonical sub-module paths like ``responses.builders``.

Sub-modules:
    types     - ErrorCode, ErrorType, ToolResponse, _build_meta
    builders  - success_response, error_response
"""

# --- Core types ---
from context_gate_mcp.core.responses.types import (  # noqa: F401
    ErrorCode,
    ErrorType,
    ToolResponse,
    _build_meta,
)

# --- Response builders ---
from context_gate_mcp.core.responses.builders import (  # noqa: F401
    error_response,
    success_response,
)

__all__ = [
    "ErrorCode",
    "ErrorType",
    "ToolResponse",
    "error_response",
    "success_response",
]
