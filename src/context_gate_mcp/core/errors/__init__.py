"""Unified error hierarchy for context-gate-mcp.

All custom exception classes are defined in domain-specific modules within
this package. This __init__.py re-exports everything for convenient access.

Usage:
    from context_gate_mcp.core.errors import ConfigurationError, error_to_response
"""

# --- Base / Registry ---
from context_gate_mcp.core.errors.base import ERROR_MAPPINGS, error_to_response

# --- Execution errors ---
from context_gate_mcp.core.errors.execution import ActionRouterError

# --- Storage errors ---
from context_gate_mcp.core.errors.storage import (
    TransientPersistenceFailure,
    VersionConflictError,
)

# --- Validation errors ---
from context_gate_mcp.core.errors.validation import ConfigurationError, ValidationError

__all__ = [
    "ERROR_MAPPINGS",
    "error_to_response",
    "ActionRouterError",
    "TransientPersistenceFailure",
    "VersionConflictError",
    "ConfigurationError",
    "ValidationError",
]
