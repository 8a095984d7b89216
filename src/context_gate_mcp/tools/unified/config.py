"""Unified context-config tool: read, update, reset and audit engine settings."""

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
from context_gate_mcp.tools.unified.param_schema import Dict_, Num, Str, validate_payload
from context_gate_mcp.tools.unified.router import ActionDefinition, ActionRouter

logger = logging.getLogger(__name__)
_metrics = get_metrics()

TOOL_NAME = "context-config"

_ACTION_SUMMARY = {
    "get": "Return the active configuration, its version and derived budgets",
    "update": "Apply a validated partial update (camelCase or snake_case keys)",
    "reset": "Restore the default configuration",
    "history": "List accepted configuration changes, most recent first",
}


def _metric_name(action: str) -> str:
    return make_metric_name("context_config", action)


def _request_id() -> str:
    return build_request_id("context_config")


_UPDATE_SCHEMA = {
    "patch": Dict_(
        required=True,
        remediation="Pass the fields to change, e.g. {'ragStrictness': 70}",
    ),
    "actor": Str(),
    "expected_version": Num(integer_only=True, min_val=1),
}

_RESET_SCHEMA = {
    "actor": Str(),
    "expected_version": Num(integer_only=True, min_val=1),
}

_HISTORY_SCHEMA = {
    "limit": Num(integer_only=True, min_val=1, max_val=1000),
}


def _handle_get(*, config: ServerConfig, **payload: Any) -> dict:
    data = get_engine(config).get_config()
    _metrics.counter(_metric_name("get"), labels={"status": "success"})
    return asdict(success_response(data=data, request_id=_request_id()))


def _handle_update(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(payload, _UPDATE_SCHEMA, tool_name=TOOL_NAME, action="update", request_id=request_id)
    if err:
        return err

    data = get_engine(config).update_config(
        payload["patch"],
        actor=payload.get("actor") or "mcp",
        expected_version=payload.get("expected_version"),
    )
    _metrics.counter(_metric_name("update"), labels={"status": "success"})
    return asdict(success_response(data=data, request_id=request_id))


def _handle_reset(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(payload, _RESET_SCHEMA, tool_name=TOOL_NAME, action="reset", request_id=request_id)
    if err:
        return err

    data = get_engine(config).reset_config(
        actor=payload.get("actor") or "mcp",
        expected_version=payload.get("expected_version"),
    )
    _metrics.counter(_metric_name("reset"), labels={"status": "success"})
    return asdict(success_response(data=data, request_id=request_id))


def _handle_history(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(payload, _HISTORY_SCHEMA, tool_name=TOOL_NAME, action="history", request_id=request_id)
    if err:
        return err

    data = get_engine(config).get_config_history(payload.get("limit"))
    return asdict(success_response(data=data, request_id=request_id))


_CONFIG_ROUTER = ActionRouter(
    tool_name=TOOL_NAME,
    actions=[
        ActionDefinition(name="get", handler=_handle_get, summary=_ACTION_SUMMARY["get"], aliases=("show",)),
        ActionDefinition(name="update", handler=_handle_update, summary=_ACTION_SUMMARY["update"]),
        ActionDefinition(name="reset", handler=_handle_reset, summary=_ACTION_SUMMARY["reset"]),
        ActionDefinition(name="history", handler=_handle_history, summary=_ACTION_SUMMARY["history"]),
    ],
)


def _dispatch_config_action(*, action: str, payload: Dict[str, Any], config: ServerConfig) -> dict:
    return dispatch_with_standard_errors(
        _CONFIG_ROUTER,
        TOOL_NAME,
        action,
        include_details_in_router_error=True,
        config=config,
        **payload,
    )


def register_unified_config_tool(mcp: FastMCP, config: ServerConfig) -> None:
    """Register the consolidated context-config tool."""

    @canonical_tool(mcp, canonical_name=TOOL_NAME)
    @mcp_tool(tool_name=TOOL_NAME, emit_metrics=True, audit=True)
    def context_config(
        action: str,
        patch: Optional[Dict[str, Any]] = None,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> dict:
        """Manage scoring weights, RAG strictness, token allocation and model categories."""
        payload: Dict[str, Any] = {
            "patch": patch,
            "expected_version": expected_version,
            "actor": actor,
            "limit": limit,
        }
        return _dispatch_config_action(action=action, payload=payload, config=config)

    logger.debug("Registered unified context-config tool")


__all__ = [
    "register_unified_config_tool",
]
