"""Unit tests for the context-gate analytics commands."""

import json

from context_gate_mcp.cli.main import cli


class TestAnalyticsStats:
    def test_empty(self, cli_runner):
        result = cli_runner.invoke(cli, ["--no-persist", "analytics", "stats"])

        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        assert json.loads(result.output)["data"]["total_overflow_events"] == 0

    def test_overflow_recorded_across_invocations(self, cli_runner, storage_dir, docs_file):
        base = ["--storage-dir", str(storage_dir)]
        check = ["context", "check", str(docs_file), "-p", "proj", "-r", "", "--max-tokens", "600"]
        cli_runner.invoke(cli, [*base, *check])

        result = cli_runner.invoke(cli, [*base, "analytics", "stats", "-p", "proj"])

        data = json.loads(result.output)["data"]
        assert data["total_overflow_events"] == 1
        assert data["average_overflow_amount"] == 400.0
        assert (storage_dir / "analytics" / "overflow_events.jsonl").exists()

    def test_hours_must_be_positive(self, cli_runner):
        result = cli_runner.invoke(cli, ["--no-persist", "analytics", "stats", "--hours", "0"])
        assert result.exit_code == 2


class TestAnalyticsDashboard:
    def test_dashboard(self, cli_runner):
        result = cli_runner.invoke(cli, ["--no-persist", "analytics", "dashboard", "--hours", "6"])

        data = json.loads(result.output)["data"]
        assert data["time_range_hours"] == 6
        assert data["system_overview"]["total_context_builds"] == 0
        assert data["persistence"]["enabled"] is False


class TestAnalyticsTrends:
    def test_trends(self, cli_runner):
        result = cli_runner.invoke(cli, ["--no-persist", "analytics", "trends", "--hours", "48", "-p", "proj"])

        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        data = json.loads(result.output)["data"]
        assert data["time_range_hours"] == 48
        assert data["project_filter"] == "proj"
        assert data["performance_over_time"] == []
        assert data["build_volume_trend"] == "stable"

    def test_hours_must_be_positive(self, cli_runner):
        result = cli_runner.invoke(cli, ["--no-persist", "analytics", "trends", "--hours", "-1"])
        assert result.exit_code == 2


class TestAnalyticsRealtime:
    def test_realtime(self, cli_runner):
        result = cli_runner.invoke(cli, ["--no-persist", "analytics", "realtime"])

        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        data = json.loads(result.output)["data"]
        assert data["window_minutes"] == 5
        assert data["active_builds"] == 0


class TestAnalyticsExport:
    def test_export_includes_persisted_overflow(self, cli_runner, storage_dir, docs_file):
        base = ["--storage-dir", str(storage_dir)]
        check = ["context", "check", str(docs_file), "-p", "proj", "-r", "", "--max-tokens", "600"]
        cli_runner.invoke(cli, [*base, *check])

        result = cli_runner.invoke(cli, [*base, "analytics", "export", "--raw"])

        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        data = json.loads(result.output)["data"]
        assert data["export_metadata"]["include_raw_data"] is True
        assert len(data["raw_data"]["overflow_events"]) == 1
        assert data["raw_data"]["overflow_events"][0]["project_id"] == "proj"

    def test_export_summary_only(self, cli_runner):
        result = cli_runner.invoke(cli, ["--no-persist", "analytics", "export"])

        data = json.loads(result.output)["data"]
        assert "raw_data" not in data
        assert data["export_metadata"]["format"] == "json"


class TestRootCommand:
    def test_version(self, cli_runner):
        result = cli_runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "context-gate" in result.output

    def test_help_lists_groups(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])
        for group in ("context", "config", "analytics"):
            assert group in result.output
