"""Shared helpers for unified tool routers.

Consolidates per-router boilerplate (request IDs, metric names, skipped
document warnings, dispatch error handling) into parameterised functions
that each router can call with its own tool name.

Imports only from ``context_gate_mcp.core`` and the standard library.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, Mapping, Optional

from context_gate_mcp.core.context import generate_correlation_id, get_correlation_id
from context_gate_mcp.core.documents import skipped_warnings
from context_gate_mcp.core.errors import error_to_response
from context_gate_mcp.core.errors.execution import ActionRouterError
from context_gate_mcp.core.responses.builders import error_response, success_response
from context_gate_mcp.core.responses.types import ErrorCode, ErrorType
from context_gate_mcp.tools.unified.router import ActionRouter

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 1. Request ID
# ---------------------------------------------------------------------------


def build_request_id(tool_name: str) -> str:
    """Return an existing correlation ID or generate one with *tool_name* prefix."""
    return get_correlation_id() or generate_correlation_id(prefix=tool_name)


# ---------------------------------------------------------------------------
# 2. Metric name
# ---------------------------------------------------------------------------


def make_metric_name(prefix: str, action: str) -> str:
    """Build a dot-separated metric key, normalising hyphens to underscores.

    Examples::

        make_metric_name("analytics", "record-build") -> "analytics.record_build"
        make_metric_name("context", "check")          -> "context.check"
    """
    return f"{prefix}.{action.replace('-', '_')}"


# ---------------------------------------------------------------------------
# 3. Success envelopes for engine results
# ---------------------------------------------------------------------------


def engine_success(
    result: Mapping[str, Any],
    *,
    request_id: str,
    elapsed_ms: Optional[float] = None,
) -> dict:
    """Wrap an engine result, surfacing its ``skipped`` entries as warnings."""
    data: Dict[str, Any] = dict(result)
    warnings, warning_details = skipped_warnings(data.get("skipped") or [])
    telemetry = {"duration_ms": round(elapsed_ms, 2)} if elapsed_ms is not None else None
    return asdict(
        success_response(
            data=data,
            warnings=warnings or None,
            warning_details=warning_details or None,
            telemetry=telemetry,
            request_id=request_id,
        )
    )


# ---------------------------------------------------------------------------
# 4. Dispatch with standard errors
# ---------------------------------------------------------------------------


def dispatch_with_standard_errors(
    router: ActionRouter,
    tool_name: str,
    action: str,
    /,
    *,
    request_id: Optional[str] = None,
    include_details_in_router_error: bool = False,
    **kwargs: Any,
) -> dict:
    """Dispatch *action* through *router*, converting exceptions to envelopes.

    Error precedence: action validation -> domain errors raised by the
    handler (mapped through ``error_to_response``) -> unexpected errors
    (``INTERNAL_ERROR``).
    """
    allowed = router.allowed_actions()
    action_lower = action.lower() if action else ""
    action_exists = any(a.lower() == action_lower for a in allowed)

    try:
        if not action_exists:
            # Aliases are not listed in allowed_actions(); let the router decide
            router.resolve(action)
        return router.dispatch(action=action, **kwargs)
    except ActionRouterError as exc:
        rid = request_id or build_request_id(tool_name)
        allowed_str = ", ".join(exc.allowed_actions)
        details: Optional[Dict[str, Any]] = None
        if include_details_in_router_error:
            details = {"action": action, "allowed_actions": list(exc.allowed_actions)}
        return asdict(
            error_response(
                f"Unsupported {tool_name} action '{action}'. Allowed actions: {allowed_str}",
                error_code=ErrorCode.VALIDATION_ERROR,
                error_type=ErrorType.VALIDATION,
                remediation=f"Use one of: {allowed_str}",
                request_id=rid,
                details=details,
            )
        )
    except Exception as exc:
        rid = request_id or build_request_id(tool_name)
        mapped = error_to_response(exc, request_id=rid)
        if mapped is not None:
            logger.info("%s action '%s' rejected: %s", tool_name.capitalize(), action, exc)
            return mapped

        logger.exception(
            "%s action '%s' failed with unexpected error: %s",
            tool_name.capitalize(),
            action,
            exc,
        )
        error_msg = str(exc) if str(exc) else exc.__class__.__name__
        return asdict(
            error_response(
                f"{tool_name.capitalize()} action '{action}' failed: {error_msg}",
                error_code=ErrorCode.INTERNAL_ERROR,
                error_type=ErrorType.INTERNAL,
                remediation="Check configuration and logs for details.",
                request_id=rid,
                details={"action": action, "error_type": exc.__class__.__name__},
            )
        )
