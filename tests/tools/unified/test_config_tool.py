"""Tests for the unified context-config tool handlers."""

from __future__ import annotations

from context_gate_mcp.tools.unified.config import _dispatch_config_action


def _dispatch(action, config, **payload):
    return _dispatch_config_action(action=action, payload=payload, config=config)


class TestGetAction:
    def test_get(self, engine, mock_config):
        result = _dispatch("get", mock_config)

        assert result["success"] is True
        assert result["data"]["version"] == 1
        assert result["data"]["configuration"]["rag_strictness"] == 60
        assert result["data"]["context_budgets"]["medium"] == 11200

    def test_show_alias(self, engine, mock_config):
        assert _dispatch("show", mock_config)["success"] is True


class TestUpdateAction:
    def test_camel_case_patch(self, engine, mock_config):
        result = _dispatch("update", mock_config, patch={"ragStrictness": 70}, actor="alice")

        assert result["success"] is True
        assert result["data"]["version"] == 2
        assert result["data"]["min_relevance_score"] == 35.0
        assert engine.get_config_history()["history"][0]["actor"] == "alice"

    def test_actor_defaults_to_mcp(self, engine, mock_config):
        _dispatch("update", mock_config, patch={"warning_threshold": 90})
        assert engine.get_config_history()["history"][0]["actor"] == "mcp"

    def test_missing_patch(self, engine, mock_config):
        result = _dispatch("update", mock_config)

        assert result["success"] is False
        assert result["data"]["error_code"] == "MISSING_REQUIRED"
        assert result["data"]["details"]["field"] == "patch"

    def test_invalid_configuration_is_rejected(self, engine, mock_config):
        result = _dispatch(
            "update",
            mock_config,
            patch={"allocationPercentages": {"context": 80, "response": 20, "buffer": 10}},
        )

        assert result["success"] is False
        assert result["data"]["error_code"] == "CONFIGURATION_INVALID"
        assert result["data"]["details"]["errors"]
        assert engine.get_config()["version"] == 1

    def test_unknown_field_is_rejected(self, engine, mock_config):
        result = _dispatch("update", mock_config, patch={"bogus": 1})

        assert result["data"]["error_code"] == "CONFIGURATION_INVALID"
        assert result["data"]["details"]["errors"][0]["loc"] == "bogus"

    def test_stale_expected_version(self, engine, mock_config):
        _dispatch("update", mock_config, patch={"ragStrictness": 70})
        result = _dispatch("update", mock_config, patch={"ragStrictness": 80}, expected_version=1)

        assert result["success"] is False
        assert result["data"]["error_code"] == "VERSION_CONFLICT"
        assert result["data"]["details"] == {"expected_version": 1, "actual_version": 2}


class TestResetAndHistory:
    def test_reset(self, engine, mock_config):
        _dispatch("update", mock_config, patch={"ragStrictness": 70})
        result = _dispatch("reset", mock_config, expected_version=2)

        assert result["success"] is True
        assert result["data"]["version"] == 3
        assert result["data"]["configuration"]["rag_strictness"] == 60

    def test_history_limit(self, engine, mock_config):
        for strictness in (10, 20, 30):
            _dispatch("update", mock_config, patch={"ragStrictness": strictness})

        result = _dispatch("history", mock_config, limit=2)

        assert result["data"]["count"] == 2
        assert [entry["version"] for entry in result["data"]["history"]] == [4, 3]

    def test_history_limit_must_be_positive(self, engine, mock_config):
        result = _dispatch("history", mock_config, limit=0)
        assert result["data"]["error_code"] == "INVALID_FORMAT"
