"""Unit tests for the context-gate config commands."""

import json

import pytest

from context_gate_mcp.cli.main import cli


class TestConfigShow:
    def test_show_defaults(self, cli_runner):
        result = cli_runner.invoke(cli, ["--no-persist", "config", "show"])

        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        data = json.loads(result.output)["data"]
        assert data["version"] == 1
        assert data["configuration"]["metadata_weights"]["keyword_relevance"] == 6.0
        assert data["context_budgets"] == {"large": 22400, "medium": 11200, "small": 2800}


@pytest.mark.integration
class TestConfigUpdate:
    def test_update_persists_across_invocations(self, cli_runner, storage_dir):
        result = cli_runner.invoke(
            cli, ["--storage-dir", str(storage_dir), "config", "update", '{"ragStrictness": 80}', "--actor", "ops"]
        )
        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        assert json.loads(result.output)["data"]["version"] == 2

        shown = cli_runner.invoke(cli, ["--storage-dir", str(storage_dir), "config", "show"])
        data = json.loads(shown.output)["data"]
        assert data["version"] == 2
        assert data["min_relevance_score"] == 40.0

        history = cli_runner.invoke(cli, ["--storage-dir", str(storage_dir), "config", "history"])
        entries = json.loads(history.output)["data"]["history"]
        assert entries[0]["actor"] == "ops"
        assert (storage_dir / "configuration.json").exists()

    def test_invalid_json(self, cli_runner):
        result = cli_runner.invoke(cli, ["--no-persist", "config", "update", "{ragStrictness"])

        assert result.exit_code == 1
        assert json.loads(result.output)["data"]["error_code"] == "INVALID_FORMAT"

    def test_invalid_configuration(self, cli_runner):
        result = cli_runner.invoke(cli, ["--no-persist", "config", "update", '{"ragStrictness": 150}'])

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["data"]["error_code"] == "CONFIGURATION_INVALID"
        assert data["data"]["details"]["errors"]

    def test_version_conflict(self, cli_runner, storage_dir):
        base = ["--storage-dir", str(storage_dir), "config"]
        cli_runner.invoke(cli, [*base, "update", '{"ragStrictness": 70}'])

        result = cli_runner.invoke(cli, [*base, "update", '{"ragStrictness": 75}', "--expected-version", "1"])

        assert result.exit_code == 1
        data = json.loads(result.output)["data"]
        assert data["error_code"] == "VERSION_CONFLICT"
        assert data["details"]["actual_version"] == 2


class TestConfigReset:
    def test_reset(self, cli_runner, storage_dir):
        base = ["--storage-dir", str(storage_dir), "config"]
        cli_runner.invoke(cli, [*base, "update", '{"warningThreshold": 95}'])

        result = cli_runner.invoke(cli, [*base, "reset"])

        data = json.loads(result.output)["data"]
        assert data["version"] == 3
        assert data["configuration"]["warning_threshold"] == 85

    def test_history_limit_must_be_positive(self, cli_runner):
        result = cli_runner.invoke(cli, ["--no-persist", "config", "history", "--limit", "0"])
        assert result.exit_code == 2
