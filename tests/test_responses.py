"""
Tests for response helper functions and standard format validation.

Verifies that the response-v2 envelope is properly implemented for every tool.
"""

from dataclasses import asdict

from context_gate_mcp.core.context import sync_request_context
from context_gate_mcp.core.responses import (
    ErrorCode,
    ErrorType,
    ToolResponse,
    error_response,
    success_response,
)


class TestToolResponse:
    """Tests for the ToolResponse dataclass."""

    def test_success_response_structure(self):
        response = ToolResponse(success=True, data={"would_overflow": False, "current_tokens": 5}, error=None)
        assert response.success is True
        assert response.data == {"would_overflow": False, "current_tokens": 5}
        assert response.error is None

    def test_default_data_is_empty_dict(self):
        response = ToolResponse(success=True, error=None)
        assert response.data == {}


class TestSuccessResponse:
    """Tests for the success_response helper function."""

    def test_empty_response(self):
        response = success_response()
        assert response.success is True
        assert response.data == {}
        assert response.error is None
        assert response.meta["version"] == "response-v2"

    def test_data_and_fields_merge(self):
        response = success_response(data={"total_tokens": 10}, budget=20)
        assert response.data == {"total_tokens": 10, "budget": 20}

    def test_warnings_in_meta(self):
        details = [{"code": "MALFORMED_ITEM_SKIPPED", "severity": "warning", "message": "m", "context": {"index": 1}}]
        response = success_response(warnings=["skipped"], warning_details=details, telemetry={"duration_ms": 1.5})

        assert response.meta["warnings"] == ["skipped"]
        assert response.meta["warning_details"][0]["context"] == {"index": 1}
        assert response.meta["telemetry"] == {"duration_ms": 1.5}

    def test_no_warning_keys_when_empty(self):
        meta = success_response(warnings=[]).meta
        assert "warnings" not in meta
        assert "warning_details" not in meta

    def test_request_id_from_context(self):
        with sync_request_context("ctx_abc"):
            response = success_response()
        assert response.meta["request_id"] == "ctx_abc"

    def test_explicit_request_id_wins(self):
        with sync_request_context("ctx_abc"):
            response = success_response(request_id="req_1")
        assert response.meta["request_id"] == "req_1"


class TestErrorResponse:
    """Tests for the error_response helper function."""

    def test_defaults_to_internal(self):
        response = error_response("Test error")
        assert response.success is False
        assert response.error == "Test error"
        assert response.data == {"error_code": "INTERNAL_ERROR", "error_type": "internal"}

    def test_codes_remediation_and_details(self):
        response = error_response(
            "Invalid field 'max_tokens'",
            error_code=ErrorCode.INVALID_FORMAT,
            error_type=ErrorType.VALIDATION,
            remediation="Pass an integer token budget",
            details={"field": "max_tokens"},
        )
        assert response.data["error_code"] == "INVALID_FORMAT"
        assert response.data["error_type"] == "validation"
        assert response.data["remediation"] == "Pass an integer token budget"
        assert response.data["details"] == {"field": "max_tokens"}

    def test_string_codes_accepted(self):
        response = error_response("conflict", error_code="VERSION_CONFLICT", error_type="conflict")
        assert response.data["error_code"] == "VERSION_CONFLICT"
        assert response.data["error_type"] == "conflict"


class TestResponseContractCompliance:
    """Tests verifying the serialized envelope shape."""

    def test_serialized_keys(self):
        for response in (success_response(count=1), error_response("boom")):
            envelope = asdict(response)
            assert set(envelope) == {"success", "data", "error", "meta"}
            assert envelope["meta"]["version"] == "response-v2"

    def test_empty_result_is_success(self):
        response = success_response(recommendations=[], total_tokens=0)
        assert response.success is True
        assert response.data["recommendations"] == []
