"""Tests for the exception to error-envelope mapping."""

import pytest

from context_gate_mcp.core.errors import (
    ActionRouterError,
    ConfigurationError,
    TransientPersistenceFailure,
    ValidationError,
    VersionConflictError,
    error_to_response,
)


class TestErrorToResponse:
    @pytest.mark.parametrize(
        "exc, code, error_type",
        [
            (ValidationError("bad", field="max_tokens"), "VALIDATION_ERROR", "validation"),
            (ConfigurationError("bad config"), "CONFIGURATION_INVALID", "validation"),
            (VersionConflictError(1, 2), "VERSION_CONFLICT", "conflict"),
            (TransientPersistenceFailure("disk", path="/tmp/x"), "PERSISTENCE_FAILED", "unavailable"),
            (ActionRouterError("nope", allowed_actions=["check"]), "VALIDATION_ERROR", "validation"),
        ],
    )
    def test_mapped(self, exc, code, error_type):
        result = error_to_response(exc, request_id="req_1")

        assert result["success"] is False
        assert result["error"] == str(exc)
        assert result["data"]["error_code"] == code
        assert result["data"]["error_type"] == error_type
        assert result["meta"]["request_id"] == "req_1"

    def test_details_copied(self):
        result = error_to_response(ValidationError("bad", field="weights", details={"factor": "recency"}))
        assert result["data"]["details"] == {"factor": "recency", "field": "weights"}

    def test_configuration_errors_listed(self):
        errors = [{"loc": "rag_strictness", "msg": "too large", "type": "less_than_equal"}]
        result = error_to_response(ConfigurationError("invalid", errors=errors))
        assert result["data"]["details"] == {"errors": errors}

    def test_unknown_exception(self):
        assert error_to_response(RuntimeError("boom")) is None

    def test_exact_type_lookup(self):
        class CustomValidationError(ValidationError):
            pass

        assert error_to_response(CustomValidationError("bad")) is None
