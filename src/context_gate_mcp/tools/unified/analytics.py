"""Unified analytics tool: overflow statistics, dashboard and build metrics."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from context_gate_mcp.config import ServerConfig
from context_gate_mcp.core.engine import get_engine
from context_gate_mcp.core.naming import canonical_tool
from context_gate_mcp.core.observability import get_metrics, mcp_tool
from context_gate_mcp.core.responses import success_response
from context_gate_mcp.tools.unified.common import (
    build_request_id,
    dispatch_with_standard_errors,
    make_metric_name,
)
from context_gate_mcp.tools.unified.param_schema import Bool, Num, Str, validate_payload
from context_gate_mcp.tools.unified.router import ActionDefinition, ActionRouter

logger = logging.getLogger(__name__)
_metrics = get_metrics()

_ACTION_SUMMARY = {
    "stats": "Overflow statistics: event count, average overflow, resolution time, override rate",
    "dashboard": "System overview snapshot for dashboards (carries a poll interval and sequence)",
    "record-build": "Record the duration and size of a context build",
    "trends": "Hourly context-build performance with duration and volume trend labels",
    "realtime": "Activity over the last five minutes",
    "export": "Dashboard and trends in one document, optionally with the raw records",
}


def _metric_name(action: str) -> str:
    return make_metric_name("analytics", action)


def _request_id() -> str:
    return build_request_id("analytics")


_STATS_SCHEMA = {
    "project_id": Str(),
    "hours": Num(min_val=0.01),
}

_DASHBOARD_SCHEMA = {
    "project_id": Str(),
    "hours": Num(min_val=0.01, max_val=24 * 365),
}

_TRENDS_SCHEMA = {
    "project_id": Str(),
    "hours": Num(min_val=0.01, max_val=24 * 365),
}

_REALTIME_SCHEMA = {
    "project_id": Str(),
}

_EXPORT_SCHEMA = {
    "project_id": Str(),
    "hours": Num(min_val=0.01, max_val=24 * 365),
    "include_raw_data": Bool(default=False),
}

_RECORD_BUILD_SCHEMA = {
    "project_id": Str(required=True, remediation="Pass the project identifier"),
    "duration_ms": Num(required=True, min_val=0),
    "token_count": Num(integer_only=True, min_val=0),
    "document_count": Num(integer_only=True, min_val=0),
    "success": Bool(default=True),
    "cache_hit": Bool(default=False),
    "document_type": Str(),
    "error_message": Str(max_length=2000),
}


def _handle_stats(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(payload, _STATS_SCHEMA, tool_name="analytics", action="stats", request_id=request_id)
    if err:
        return err

    data = get_engine(config).get_overflow_stats(payload.get("project_id"), payload.get("hours"))
    _metrics.counter(_metric_name("stats"), labels={"status": "success"})
    return asdict(success_response(data=data, request_id=request_id))


def _handle_dashboard(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(
        payload, _DASHBOARD_SCHEMA, tool_name="analytics", action="dashboard", request_id=request_id
    )
    if err:
        return err

    hours = payload.get("hours")
    data = get_engine(config).get_dashboard(hours if hours is not None else 24, payload.get("project_id"))
    _metrics.counter(_metric_name("dashboard"), labels={"status": "success"})
    return asdict(success_response(data=data, request_id=request_id))


def _handle_record_build(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(
        payload, _RECORD_BUILD_SCHEMA, tool_name="analytics", action="record-build", request_id=request_id
    )
    if err:
        return err

    data = get_engine(config).record_context_build(
        payload["project_id"],
        payload["duration_ms"],
        token_count=payload.get("token_count") or 0,
        document_count=payload.get("document_count") or 0,
        success=payload["success"],
        document_type=payload.get("document_type"),
        error_message=payload.get("error_message"),
        cache_hit=payload["cache_hit"],
    )
    _metrics.counter(_metric_name("record-build"), labels={"status": "success"})
    return asdict(success_response(data=data, request_id=request_id))


def _handle_trends(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(payload, _TRENDS_SCHEMA, tool_name="analytics", action="trends", request_id=request_id)
    if err:
        return err

    hours = payload.get("hours")
    data = get_engine(config).get_performance_trends(payload.get("project_id"), hours if hours is not None else 24)
    _metrics.counter(_metric_name("trends"), labels={"status": "success"})
    return asdict(success_response(data=data, request_id=request_id))


def _handle_realtime(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(
        payload, _REALTIME_SCHEMA, tool_name="analytics", action="realtime", request_id=request_id
    )
    if err:
        return err

    data = get_engine(config).get_realtime_metrics(payload.get("project_id"))
    return asdict(success_response(data=data, request_id=request_id))


def _handle_export(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(payload, _EXPORT_SCHEMA, tool_name="analytics", action="export", request_id=request_id)
    if err:
        return err

    hours = payload.get("hours")
    data = get_engine(config).export_analytics(
        hours if hours is not None else 24,
        payload.get("project_id"),
        include_raw_data=payload["include_raw_data"],
    )
    _metrics.counter(
        _metric_name("export"),
        labels={"status": "success", "raw": str(payload["include_raw_data"]).lower()},
    )
    return asdict(success_response(data=data, request_id=request_id))


_ANALYTICS_ROUTER = ActionRouter(
    tool_name="analytics",
    actions=[
        ActionDefinition(name="stats", handler=_handle_stats, summary=_ACTION_SUMMARY["stats"]),
        ActionDefinition(name="dashboard", handler=_handle_dashboard, summary=_ACTION_SUMMARY["dashboard"]),
        ActionDefinition(
            name="record-build",
            handler=_handle_record_build,
            summary=_ACTION_SUMMARY["record-build"],
            aliases=("record_build",),
        ),
        ActionDefinition(name="trends", handler=_handle_trends, summary=_ACTION_SUMMARY["trends"]),
        ActionDefinition(name="realtime", handler=_handle_realtime, summary=_ACTION_SUMMARY["realtime"]),
        ActionDefinition(name="export", handler=_handle_export, summary=_ACTION_SUMMARY["export"]),
    ],
)


def _dispatch_analytics_action(*, action: str, payload: Dict[str, Any], config: ServerConfig) -> dict:
    return dispatch_with_standard_errors(_ANALYTICS_ROUTER, "analytics", action, config=config, **payload)


def register_unified_analytics_tool(mcp: FastMCP, config: ServerConfig) -> None:
    """Register the consolidated analytics tool."""

    @canonical_tool(mcp, canonical_name="analytics")
    @mcp_tool(tool_name="analytics", emit_metrics=True, audit=True)
    def analytics(
        action: str,
        project_id: Optional[str] = None,
        hours: Optional[float] = None,
        duration_ms: Optional[float] = None,
        token_count: Optional[int] = None,
        document_count: Optional[int] = None,
        success: Optional[bool] = True,
        cache_hit: Optional[bool] = False,
        document_type: Optional[str] = None,
        error_message: Optional[str] = None,
        include_raw_data: Optional[bool] = False,
    ) -> dict:
        """Overflow statistics, dashboards, trends, exports and context-build metrics."""
        payload: Dict[str, Any] = {
            "project_id": project_id,
            "hours": hours,
            "duration_ms": duration_ms,
            "token_count": token_count,
            "document_count": document_count,
            "success": success,
            "cache_hit": cache_hit,
            "document_type": document_type,
            "error_message": error_message,
            "include_raw_data": include_raw_data,
        }
        return _dispatch_analytics_action(action=action, payload=payload, config=config)

    logger.debug("Registered unified analytics tool")


__all__ = [
    "register_unified_analytics_tool",
]
