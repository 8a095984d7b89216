"""MCP tool decorator with observability.

Provides @mcp_tool, which adds a correlation ID, latency and status
metrics and an audit trail to tool handlers.
"""

import asyncio
import functools
import time
from typing import Any, Callable, Optional, TypeVar

from context_gate_mcp.core.context import (
    generate_correlation_id,
    get_correlation_id,
    sync_request_context,
)
from context_gate_mcp.core.observability.audit import _audit
from context_gate_mcp.core.observability.metrics import TOOL_INVOCATIONS, TOOL_LATENCY, _metrics

T = TypeVar("T")


def _record(
    tool_name: str,
    corr_id: str,
    start: float,
    success: bool,
    error_msg: Optional[str],
    emit_metrics: bool,
    audit: bool,
    action: Optional[str],
) -> None:
    duration_ms = (time.perf_counter() - start) * 1000

    if emit_metrics:
        labels = {"tool": tool_name, "status": "success" if success else "error"}
        if action:
            labels["action"] = action
        _metrics.counter(TOOL_INVOCATIONS, labels=labels)
        _metrics.timer(TOOL_LATENCY, duration_ms, labels={"tool": tool_name})

    if audit:
        _audit.tool_invocation(
            tool_name=tool_name,
            success=success,
            duration_ms=round(duration_ms, 2),
            error=error_msg,
            correlation_id=corr_id,
            action=action,
        )


def _envelope_failed(result: Any) -> bool:
    return isinstance(result, dict) and result.get("success") is False


def mcp_tool(
    tool_name: Optional[str] = None, emit_metrics: bool = True, audit: bool = True
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for MCP tool handlers with observability.

    Automatically:
    - Establishes a correlation ID for the call
    - Emits latency and status metrics
    - Creates audit log entries

    A handler returning an error envelope (``success: False``) is recorded
    as a failed invocation.

    Args:
        tool_name: Override tool name (defaults to function name)
        emit_metrics: Whether to emit metrics
        audit: Whether to create audit log entries
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        name = tool_name or func.__name__

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> T:
            corr_id = get_correlation_id() or generate_correlation_id(prefix="tool")
            action = kwargs.get("action") if isinstance(kwargs.get("action"), str) else None
            with sync_request_context(correlation_id=corr_id):
                start = time.perf_counter()
                success = True
                error_msg = None
                try:
                    result = await func(*args, **kwargs)  # type: ignore[misc]
                    success = not _envelope_failed(result)
                    return result
                except Exception as e:
                    success = False
                    error_msg = str(e)
                    raise
                finally:
                    _record(name, corr_id, start, success, error_msg, emit_metrics, audit, action)

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            corr_id = get_correlation_id() or generate_correlation_id(prefix="tool")
            action = kwargs.get("action") if isinstance(kwargs.get("action"), str) else None
            with sync_request_context(correlation_id=corr_id):
                start = time.perf_counter()
                success = True
                error_msg = None
                try:
                    result = func(*args, **kwargs)
                    success = not _envelope_failed(result)
                    return result
                except Exception as e:
                    success = False
                    error_msg = str(e)
                    raise
                finally:
                    _record(name, corr_id, start, success, error_msg, emit_metrics, audit, action)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore[return-value]
        return sync_wrapper

    return decorator
