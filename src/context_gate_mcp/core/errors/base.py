"""Error-to-ErrorCode mapping registry.

Provides a centralized mapping from exception types to (ErrorCode, ErrorType) tuples,
enabling consistent error response generation across the codebase.

Usage:
    from context_gate_mcp.core.errors.base import error_to_response

    try:
        do_something()
    except Exception as e:
        result = error_to_response(e)
        if result is not None:
            return result
        raise  # Unknown error, re-raise
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple, Type

from context_gate_mcp.core.errors.execution import ActionRouterError
from context_gate_mcp.core.errors.storage import (
    TransientPersistenceFailure,
    VersionConflictError,
)
from context_gate_mcp.core.errors.validation import ConfigurationError, ValidationError
from context_gate_mcp.core.responses.types import (
    ErrorCode,
    ErrorType,
)

ERROR_MAPPINGS: Dict[Type[Exception], Tuple[ErrorCode, ErrorType]] = {
    # --- Request validation ---
    ValidationError: (ErrorCode.VALIDATION_ERROR, ErrorType.VALIDATION),
    ConfigurationError: (ErrorCode.CONFIGURATION_INVALID, ErrorType.VALIDATION),
    # --- Storage / concurrency errors ---
    VersionConflictError: (ErrorCode.VERSION_CONFLICT, ErrorType.CONFLICT),
    TransientPersistenceFailure: (ErrorCode.PERSISTENCE_FAILED, ErrorType.UNAVAILABLE),
    # --- Execution errors ---
    ActionRouterError: (ErrorCode.VALIDATION_ERROR, ErrorType.VALIDATION),
}


def error_to_response(exc: Exception, *, request_id: Optional[str] = None) -> Optional[dict]:
    """Convert a known exception to a standard error_response dict, or None if unknown.

    Looks up the exception's *exact* type in ERROR_MAPPINGS and, if found,
    generates a standardized error response using the mapped ErrorCode and ErrorType.
    Exceptions exposing a ``details`` mapping have it copied into the envelope.

    Args:
        exc: The exception to convert.
        request_id: Correlation identifier to stamp on the envelope.

    Returns:
        A dict suitable for MCP tool response, or None if the exception type
        is not registered in ERROR_MAPPINGS.
    """
    mapping = ERROR_MAPPINGS.get(type(exc))
    if mapping is None:
        return None

    from dataclasses import asdict

    from context_gate_mcp.core.responses.builders import error_response

    code, error_type = mapping
    details = getattr(exc, "details", None)
    return asdict(
        error_response(
            str(exc),
            error_code=code,
            error_type=error_type,
            details=details if isinstance(details, dict) else None,
            request_id=request_id,
        )
    )
