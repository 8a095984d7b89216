"""Unified context tool: overflow checks, recommendations and selections."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from context_gate_mcp.config import ServerConfig
from context_gate_mcp.core.engine import get_engine
from context_gate_mcp.core.naming import canonical_tool
from context_gate_mcp.core.observability import get_metrics, mcp_tool
from context_gate_mcp.tools.unified.common import (
    build_request_id,
    dispatch_with_standard_errors,
    engine_success,
    make_metric_name,
)
from context_gate_mcp.tools.unified.param_schema import (
    AtLeastOne,
    Bool,
    Dict_,
    List_,
    Num,
    Str,
    validate_payload,
)
from context_gate_mcp.tools.unified.router import ActionDefinition, ActionRouter

logger = logging.getLogger(__name__)
_metrics = get_metrics()

_ACTION_SUMMARY = {
    "check": "Check whether a document selection fits its token budget; recommends a subset on overflow",
    "recommend": "Rank documents by relevance and select the subset that fits the budget",
    "apply": "Record the final document selection, resolving any pending overflow",
    "estimate": "Estimate tokens for a text and/or a document list",
}


def _metric_name(action: str) -> str:
    return make_metric_name("context", action)


def _request_id() -> str:
    return build_request_id("context")


# ---------------------------------------------------------------------------
# Declarative parameter schemas
# ---------------------------------------------------------------------------

_BUDGET_SCHEMA = {
    "max_tokens": Num(integer_only=True, remediation="Pass an integer token budget"),
    "model_category": Str(remediation="Use a configured model category such as 'medium'"),
}

_CHECK_SCHEMA = {
    "project_id": Str(required=True, remediation="Pass the project identifier"),
    "documents": List_(required=True, remediation="Pass the selected documents as a list"),
    "requirements_text": Str(required=True, strip=False, allow_empty=True),
    **_BUDGET_SCHEMA,
}

_RECOMMEND_SCHEMA = {
    "documents": List_(required=True, remediation="Pass the candidate documents as a list"),
    "requirements_text": Str(required=True, strip=False, allow_empty=True),
    **_BUDGET_SCHEMA,
    "weights": Dict_(remediation="Pass weights as {factor: number in [0, 10]}"),
    "apply_strictness": Bool(default=False),
}

_APPLY_SCHEMA = {
    "project_id": Str(required=True, remediation="Pass the project identifier"),
    "documents": List_(required=True, remediation="Pass the final document selection as a list"),
    "requirements_text": Str(required=True, strip=False, allow_empty=True),
}

_ESTIMATE_SCHEMA = {
    "text": Str(strip=False, allow_empty=True),
    "documents": List_(),
}


# ---------------------------------------------------------------------------
# Action handlers
# ---------------------------------------------------------------------------


def _handle_check(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(payload, _CHECK_SCHEMA, tool_name="context", action="check", request_id=request_id)
    if err:
        return err

    start = time.perf_counter()
    result = get_engine(config).check_overflow(
        payload["project_id"],
        payload["documents"],
        payload["requirements_text"],
        max_tokens=payload.get("max_tokens"),
        model_category=payload.get("model_category"),
    )
    elapsed_ms = (time.perf_counter() - start) * 1000

    _metrics.counter(
        _metric_name("check"),
        labels={"status": "success", "overflow": str(result["would_overflow"]).lower()},
    )
    return engine_success(result, request_id=request_id, elapsed_ms=elapsed_ms)


def _handle_recommend(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(
        payload, _RECOMMEND_SCHEMA, tool_name="context", action="recommend", request_id=request_id
    )
    if err:
        return err

    start = time.perf_counter()
    result = get_engine(config).get_recommendations(
        payload["documents"],
        payload["requirements_text"],
        max_tokens=payload.get("max_tokens"),
        weights=payload.get("weights"),
        apply_strictness=payload["apply_strictness"],
        model_category=payload.get("model_category"),
    )
    elapsed_ms = (time.perf_counter() - start) * 1000

    _metrics.counter(_metric_name("recommend"), labels={"status": "success"})
    _metrics.timer(_metric_name("recommend") + ".duration_ms", elapsed_ms)
    return engine_success(result, request_id=request_id, elapsed_ms=elapsed_ms)


def _handle_apply(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(payload, _APPLY_SCHEMA, tool_name="context", action="apply", request_id=request_id)
    if err:
        return err

    result = get_engine(config).apply_selection(
        payload["project_id"],
        payload["documents"],
        payload["requirements_text"],
    )
    _metrics.counter(_metric_name("apply"), labels={"status": "success"})
    return engine_success(result, request_id=request_id)


def _handle_estimate(*, config: ServerConfig, **payload: Any) -> dict:
    request_id = _request_id()
    err = validate_payload(
        payload,
        _ESTIMATE_SCHEMA,
        tool_name="context",
        action="estimate",
        request_id=request_id,
        cross_field_rules=[AtLeastOne(fields=("text", "documents"), remediation="Pass text or documents")],
    )
    if err:
        return err

    result = get_engine(config).estimate(text=payload.get("text"), documents=payload.get("documents"))
    _metrics.counter(_metric_name("estimate"), labels={"status": "success"})
    return engine_success(result, request_id=request_id)


_CONTEXT_ROUTER = ActionRouter(
    tool_name="context",
    actions=[
        ActionDefinition(
            name="check",
            handler=_handle_check,
            summary=_ACTION_SUMMARY["check"],
            aliases=("check-overflow",),
        ),
        ActionDefinition(
            name="recommend",
            handler=_handle_recommend,
            summary=_ACTION_SUMMARY["recommend"],
            aliases=("recommendations",),
        ),
        ActionDefinition(
            name="apply",
            handler=_handle_apply,
            summary=_ACTION_SUMMARY["apply"],
            aliases=("apply-selection",),
        ),
        ActionDefinition(
            name="estimate",
            handler=_handle_estimate,
            summary=_ACTION_SUMMARY["estimate"],
        ),
    ],
)


def _dispatch_context_action(*, action: str, payload: Dict[str, Any], config: ServerConfig) -> dict:
    return dispatch_with_standard_errors(_CONTEXT_ROUTER, "context", action, config=config, **payload)


def register_unified_context_tool(mcp: FastMCP, config: ServerConfig) -> None:
    """Register the consolidated context tool."""

    @canonical_tool(mcp, canonical_name="context")
    @mcp_tool(tool_name="context", emit_metrics=True, audit=True)
    def context(
        action: str,
        project_id: Optional[str] = None,
        documents: Optional[List[Any]] = None,
        requirements_text: Optional[str] = None,
        max_tokens: Optional[int] = None,
        model_category: Optional[str] = None,
        weights: Optional[Dict[str, float]] = None,
        apply_strictness: Optional[bool] = False,
        text: Optional[str] = None,
    ) -> dict:
        """Decide which documents fit a model context.

        Documents are objects with id, type, content and metadata
        (agency, keywords, technologies, date), or plain document ids when
        a document provider is configured.
        """
        payload: Dict[str, Any] = {
            "project_id": project_id,
            "documents": documents,
            "requirements_text": requirements_text,
            "max_tokens": max_tokens,
            "model_category": model_category,
            "weights": weights,
            "apply_strictness": apply_strictness,
            "text": text,
        }
        return _dispatch_context_action(action=action, payload=payload, config=config)

    logger.debug("Registered unified context tool")


__all__ = [
    "register_unified_context_tool",
]
