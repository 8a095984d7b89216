"""Shared parametrized dispatch contract tests for all unified tool routers.

Each router is described by a baseline entry; the tests are generated via
parametrize. Also includes full-envelope snapshot tests for representative
routers to catch message/detail regressions.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

# ---------------------------------------------------------------------------
# Router dispatch baseline
# ---------------------------------------------------------------------------
#
# Each entry: (
#   module_name,        -- e.g. "context"
#   dispatch_fn_name,   -- e.g. "_dispatch_context_action"
#   router_const_name,  -- e.g. "_CONTEXT_ROUTER"
#   tool_name,          -- string passed to dispatch_with_standard_errors
#   valid_action,       -- a real action name for the internal-error test
# )

DISPATCH_BASELINES = [
    ("context", "_dispatch_context_action", "_CONTEXT_ROUTER", "context", "check"),
    ("config", "_dispatch_config_action", "_CONFIG_ROUTER", "context-config", "update"),
    ("analytics", "_dispatch_analytics_action", "_ANALYTICS_ROUTER", "analytics", "stats"),
]

_BASELINE_IDS = [entry[0] for entry in DISPATCH_BASELINES]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _import(module_name: str, attr: str):
    """Import *attr* from ``context_gate_mcp.tools.unified.<module_name>``."""
    mod = __import__(
        f"context_gate_mcp.tools.unified.{module_name}",
        fromlist=[attr],
    )
    return getattr(mod, attr)


def _call_dispatch(module_name, dispatch_fn_name, action, mock_config):
    fn = _import(module_name, dispatch_fn_name)
    return fn(action=action, payload={}, config=mock_config)


def assert_error_envelope(response: dict) -> None:
    """Assert response-v2 error envelope invariants."""
    assert isinstance(response, dict), "Response must be a dict"
    assert response["success"] is False
    assert isinstance(response["error"], str) and response["error"]
    assert isinstance(response["data"], dict)
    assert isinstance(response["meta"], dict)
    assert response["meta"]["version"] == "response-v2"
    assert "error_code" in response["data"]
    assert "error_type" in response["data"]


def assert_unsupported_action_envelope(response: dict) -> None:
    assert_error_envelope(response)
    assert "unsupported" in response["error"].lower()
    assert response["data"]["error_code"] == "VALIDATION_ERROR"
    assert response["data"]["error_type"] == "validation"


def assert_internal_error_envelope(response: dict) -> None:
    assert_error_envelope(response)
    assert response["data"]["error_code"] == "INTERNAL_ERROR"
    assert response["data"]["error_type"] == "internal"
    assert "action" in response["data"]["details"]
    assert "error_type" in response["data"]["details"]


# ---------------------------------------------------------------------------
# 1. Unsupported actions
# ---------------------------------------------------------------------------


class TestUnsupportedActionEnvelope:
    """Every router produces a valid VALIDATION_ERROR envelope for unknown actions."""

    @pytest.mark.parametrize(
        "module_name, dispatch_fn_name, router_const, tool_name, valid_action",
        DISPATCH_BASELINES,
        ids=_BASELINE_IDS,
    )
    def test_unsupported_action(
        self, mock_config, module_name, dispatch_fn_name, router_const, tool_name, valid_action
    ):
        result = _call_dispatch(module_name, dispatch_fn_name, "nonexistent-action", mock_config)
        assert_unsupported_action_envelope(result)
        # Error message references the tool name
        assert tool_name in result["error"]

    def test_all_routers_covered(self):
        from context_gate_mcp.tools.unified import UNIFIED_TOOLS

        assert {entry[3] for entry in DISPATCH_BASELINES} == set(UNIFIED_TOOLS)


# ---------------------------------------------------------------------------
# 2. Unexpected exceptions
# ---------------------------------------------------------------------------


class TestInternalErrorEnvelope:
    """Every router produces a valid INTERNAL_ERROR envelope for unexpected exceptions."""

    @pytest.mark.parametrize(
        "module_name, dispatch_fn_name, router_const, tool_name, valid_action",
        DISPATCH_BASELINES,
        ids=_BASELINE_IDS,
    )
    def test_internal_error(self, mock_config, module_name, dispatch_fn_name, router_const, tool_name, valid_action):
        patch_target = f"context_gate_mcp.tools.unified.{module_name}.{router_const}"
        with patch(patch_target) as mock_router:
            mock_router.allowed_actions.return_value = [valid_action]
            mock_router.dispatch.side_effect = RuntimeError("boom")
            result = _call_dispatch(module_name, dispatch_fn_name, valid_action, mock_config)

        assert_internal_error_envelope(result)
        assert result["data"]["details"]["action"] == valid_action
        assert result["data"]["details"]["error_type"] == "RuntimeError"
        assert "boom" in result["error"]

    @pytest.mark.parametrize(
        "module_name, dispatch_fn_name, router_const, tool_name, valid_action",
        DISPATCH_BASELINES,
        ids=_BASELINE_IDS,
    )
    def test_empty_exception_message_uses_class_name(
        self, mock_config, module_name, dispatch_fn_name, router_const, tool_name, valid_action
    ):
        patch_target = f"context_gate_mcp.tools.unified.{module_name}.{router_const}"
        with patch(patch_target) as mock_router:
            mock_router.allowed_actions.return_value = [valid_action]
            mock_router.dispatch.side_effect = RuntimeError()
            result = _call_dispatch(module_name, dispatch_fn_name, valid_action, mock_config)

        assert "RuntimeError" in result["error"]

    def test_unexpected_exception_is_logged(self, mock_config, caplog):
        import logging

        with caplog.at_level(logging.ERROR):
            with patch("context_gate_mcp.tools.unified.context._CONTEXT_ROUTER") as mock_router:
                mock_router.allowed_actions.return_value = ["check"]
                mock_router.dispatch.side_effect = ValueError("test error")
                _call_dispatch("context", "_dispatch_context_action", "check", mock_config)

        assert "test error" in caplog.text


# ---------------------------------------------------------------------------
# 3. Domain errors
# ---------------------------------------------------------------------------


class TestDomainErrorMapping:
    """Domain exceptions raised by handlers map to their registered error codes."""

    def test_version_conflict_maps_to_conflict(self, mock_config):
        from context_gate_mcp.core.errors import VersionConflictError

        with patch("context_gate_mcp.tools.unified.config._CONFIG_ROUTER") as mock_router:
            mock_router.allowed_actions.return_value = ["update"]
            mock_router.dispatch.side_effect = VersionConflictError(1, 3)
            result = _call_dispatch("config", "_dispatch_config_action", "update", mock_config)

        assert_error_envelope(result)
        assert result["data"]["error_code"] == "VERSION_CONFLICT"
        assert result["data"]["error_type"] == "conflict"
        assert result["data"]["details"] == {"expected_version": 1, "actual_version": 3}

    def test_validation_error_carries_field(self, mock_config):
        from context_gate_mcp.core.errors import ValidationError

        with patch("context_gate_mcp.tools.unified.context._CONTEXT_ROUTER") as mock_router:
            mock_router.allowed_actions.return_value = ["check"]
            mock_router.dispatch.side_effect = ValidationError("bad category", field="model_category")
            result = _call_dispatch("context", "_dispatch_context_action", "check", mock_config)

        assert result["data"]["error_code"] == "VALIDATION_ERROR"
        assert result["data"]["details"]["field"] == "model_category"


# ---------------------------------------------------------------------------
# 4. Full-envelope snapshots
# ---------------------------------------------------------------------------


class TestEnvelopeSnapshots:
    """Full-envelope structure checks for representative routers."""

    def test_context_unsupported_action_snapshot(self, mock_config):
        result = _call_dispatch("context", "_dispatch_context_action", "nonexistent-action", mock_config)

        assert result["success"] is False
        assert result["meta"]["version"] == "response-v2"
        assert isinstance(result["meta"]["request_id"], str)
        assert len(result["meta"]["request_id"]) > 0
        assert result["data"]["error_code"] == "VALIDATION_ERROR"
        assert "nonexistent-action" in result["error"]
        assert "check, recommend, apply, estimate" in result["error"]
        assert isinstance(result["data"].get("remediation"), str)

    def test_config_unsupported_action_includes_details(self, mock_config):
        result = _call_dispatch("config", "_dispatch_config_action", "nonexistent-action", mock_config)

        assert result["data"]["details"] == {
            "action": "nonexistent-action",
            "allowed_actions": ["get", "update", "reset", "history"],
        }
