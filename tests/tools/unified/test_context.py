"""Tests for the unified context tool handlers."""

from __future__ import annotations

import pytest

from context_gate_mcp.tools.unified.context import _CONTEXT_ROUTER, _dispatch_context_action


def _dispatch(action, config, **payload):
    return _dispatch_context_action(action=action, payload=payload, config=config)


# =============================================================================
# check
# =============================================================================


class TestCheckAction:
    def test_fitting_selection(self, engine, mock_config, doc):
        result = _dispatch(
            "check",
            mock_config,
            project_id="proj",
            documents=[doc("a")],
            requirements_text="",
            max_tokens=1000,
        )

        assert result["success"] is True
        assert result["data"]["would_overflow"] is False
        assert result["data"]["current_tokens"] == 100
        assert result["meta"]["telemetry"]["duration_ms"] >= 0

    def test_overflow_includes_recommendations(self, engine, mock_config, doc):
        documents = [doc("rfp", chars=2000, doc_type="solicitation"), doc("clip", chars=2000, doc_type="media")]
        result = _dispatch(
            "check",
            mock_config,
            project_id="proj",
            documents=documents,
            requirements_text="",
            max_tokens=600,
        )

        data = result["data"]
        assert data["would_overflow"] is True
        assert [r["document_id"] for r in data["recommendations"]["recommendations"]] == ["rfp"]
        assert data["recommendations"]["selection_budget"] == 600
        assert "max_tokens" not in data["recommendations"]
        assert engine.get_overflow_stats("proj")["total_overflow_events"] == 1

    def test_alias(self, engine, mock_config, doc):
        result = _dispatch(
            "check-overflow",
            mock_config,
            project_id="proj",
            documents=[doc("a")],
            requirements_text="",
        )
        assert result["success"] is True
        assert result["data"]["max_tokens"] == 11200

    def test_malformed_documents_become_warnings(self, engine, mock_config, doc):
        result = _dispatch(
            "check",
            mock_config,
            project_id="proj",
            documents=[doc("a"), None, {"id": "b"}],
            requirements_text="",
            max_tokens=1000,
        )

        assert result["success"] is True
        assert len(result["meta"]["warnings"]) == 1
        assert [w["context"]["index"] for w in result["meta"]["warning_details"]] == [1, 2]

    @pytest.mark.parametrize(
        "payload, field, code",
        [
            ({"documents": [], "requirements_text": ""}, "project_id", "MISSING_REQUIRED"),
            ({"project_id": "p", "requirements_text": ""}, "documents", "MISSING_REQUIRED"),
            ({"project_id": "p", "documents": "a", "requirements_text": ""}, "documents", "INVALID_FORMAT"),
            ({"project_id": "p", "documents": []}, "requirements_text", "MISSING_REQUIRED"),
            (
                {"project_id": "p", "documents": [], "requirements_text": "", "max_tokens": 1.5},
                "max_tokens",
                "INVALID_FORMAT",
            ),
        ],
    )
    def test_invalid_payload(self, engine, mock_config, payload, field, code):
        result = _dispatch("check", mock_config, **payload)

        assert result["success"] is False
        assert result["data"]["error_code"] == code
        assert result["data"]["details"]["field"] == field

    def test_unknown_model_category(self, engine, mock_config):
        result = _dispatch(
            "check",
            mock_config,
            project_id="proj",
            documents=[],
            requirements_text="",
            model_category="huge",
        )

        assert result["success"] is False
        assert result["data"]["error_code"] == "VALIDATION_ERROR"
        assert result["data"]["details"]["field"] == "model_category"


# =============================================================================
# recommend
# =============================================================================


class TestRecommendAction:
    def test_recommend(self, engine, mock_config, doc):
        documents = [doc("rfp", chars=2000, doc_type="solicitation"), doc("clip", chars=2000, doc_type="media")]
        result = _dispatch(
            "recommend",
            mock_config,
            documents=documents,
            requirements_text="",
            max_tokens=600,
        )

        assert result["success"] is True
        assert [r["document_id"] for r in result["data"]["recommendations"]] == ["rfp"]
        assert result["data"]["excluded"][0]["reason"] == "exceeds_budget"

    def test_apply_strictness(self, engine, mock_config, doc):
        documents = [doc("rfp", chars=2000, doc_type="solicitation"), doc("clip", chars=2000, doc_type="media")]
        result = _dispatch(
            "recommend",
            mock_config,
            documents=documents,
            requirements_text="",
            max_tokens=5000,
            apply_strictness=True,
        )

        assert result["data"]["min_relevance_score"] == 30.0
        assert result["data"]["excluded"][0]["reason"] == "below_strictness"

    def test_invalid_weight_value(self, engine, mock_config):
        result = _dispatch(
            "recommend",
            mock_config,
            documents=[],
            requirements_text="",
            weights={"recency": 42},
        )

        assert result["success"] is False
        assert result["data"]["details"]["field"] == "weights"

    def test_weights_must_be_object(self, engine, mock_config):
        result = _dispatch("recommend", mock_config, documents=[], requirements_text="", weights=[1, 2])
        assert result["data"]["error_code"] == "INVALID_FORMAT"


# =============================================================================
# apply
# =============================================================================


class TestApplyAction:
    def test_apply_resolves_pending_overflow(self, engine, mock_config, doc):
        documents = [doc("rfp", chars=2000, doc_type="solicitation"), doc("clip", chars=2000, doc_type="media")]
        _dispatch("check", mock_config, project_id="proj", documents=documents, requirements_text="", max_tokens=600)

        result = _dispatch("apply", mock_config, project_id="proj", documents=documents[:1], requirements_text="")

        assert result["success"] is True
        assert result["data"]["accepted"] is True
        assert result["data"]["final_selection"] == ["rfp"]

    def test_apply_without_overflow(self, engine, mock_config, doc):
        result = _dispatch(
            "apply-selection", mock_config, project_id="proj", documents=[doc("a")], requirements_text=""
        )
        assert result["success"] is True
        assert "accepted" not in result["data"]


# =============================================================================
# estimate
# =============================================================================


class TestEstimateAction:
    def test_text(self, engine, mock_config):
        result = _dispatch("estimate", mock_config, text="abcdefgh")
        assert result["data"]["total_tokens"] == 2

    def test_requires_text_or_documents(self, engine, mock_config):
        result = _dispatch("estimate", mock_config)
        assert result["success"] is False
        assert result["data"]["error_code"] == "MISSING_REQUIRED"


class TestRouter:
    def test_actions(self):
        assert _CONTEXT_ROUTER.allowed_actions() == ["check", "recommend", "apply", "estimate"]
