"""Unit tests for the context-gate context commands.

Tests cover:
- check: fitting and overflowing selections, budget options
- recommend: weights, strictness, option validation
- apply: final selection output
- estimate: text and documents
- requirements and documents file errors
"""

import json

from context_gate_mcp.cli.main import cli


def _invoke(cli_runner, *args):
    return cli_runner.invoke(cli, ["--no-persist", *args])


class TestCheckCommand:
    """Tests for context check."""

    def test_fits(self, cli_runner, docs_file):
        result = _invoke(cli_runner, "context", "check", str(docs_file), "-p", "proj", "-r", "", "--max-tokens", "5000")

        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        data = json.loads(result.output)
        assert data["success"] is True
        assert data["data"]["would_overflow"] is False
        assert data["data"]["current_tokens"] == 1000

    def test_overflow_recommends(self, cli_runner, docs_file):
        result = _invoke(cli_runner, "context", "check", str(docs_file), "-p", "proj", "-r", "", "--max-tokens", "600")

        assert result.exit_code == 0
        data = json.loads(result.output)["data"]
        assert data["would_overflow"] is True
        assert data["overflow_amount"] == 400
        assert [r["document_id"] for r in data["recommendations"]["recommendations"]] == ["rfp"]

    def test_model_category(self, cli_runner, docs_file):
        result = _invoke(cli_runner, "context", "check", str(docs_file), "-p", "proj", "-r", "", "-m", "small")

        assert json.loads(result.output)["data"]["max_tokens"] == 2800

    def test_unknown_model_category(self, cli_runner, docs_file):
        result = _invoke(cli_runner, "context", "check", str(docs_file), "-p", "proj", "-r", "", "-m", "huge")

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["success"] is False
        assert data["data"]["error_code"] == "VALIDATION_ERROR"
        assert data["data"]["details"]["field"] == "model_category"

    def test_project_id_required(self, cli_runner, docs_file):
        result = _invoke(cli_runner, "context", "check", str(docs_file), "-r", "")
        assert result.exit_code == 2

    def test_skipped_documents_reported_as_warnings(self, cli_runner, tmp_path):
        path = tmp_path / "mixed.json"
        path.write_text(json.dumps({"documents": [{"id": "a", "content": "abcd"}, None]}))

        result = _invoke(cli_runner, "context", "check", str(path), "-p", "proj", "-r", "", "--max-tokens", "10")

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["meta"]["warnings"]
        assert data["data"]["skipped"][0]["index"] == 1


class TestRequirementsInput:
    """Tests for --requirements and --requirements-file handling."""

    def test_requirements_file(self, cli_runner, docs_file, tmp_path):
        req = tmp_path / "req.txt"
        req.write_text("r" * 400)

        result = _invoke(
            cli_runner, "context", "check", str(docs_file), "-p", "proj", "--requirements-file", str(req),
            "--max-tokens", "5000",
        )

        assert json.loads(result.output)["data"]["requirements_tokens"] == 100

    def test_both_requirement_options(self, cli_runner, docs_file, tmp_path):
        req = tmp_path / "req.txt"
        req.write_text("text")

        result = _invoke(
            cli_runner, "context", "check", str(docs_file), "-p", "proj", "-r", "x", "--requirements-file", str(req)
        )

        assert result.exit_code == 1
        assert json.loads(result.output)["data"]["error_code"] == "VALIDATION_ERROR"

    def test_missing_requirements(self, cli_runner, docs_file):
        result = _invoke(cli_runner, "context", "check", str(docs_file), "-p", "proj")

        assert result.exit_code == 1
        assert json.loads(result.output)["data"]["error_code"] == "MISSING_REQUIRED"

    def test_invalid_documents_file(self, cli_runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"documents": "nope"}')

        result = _invoke(cli_runner, "context", "check", str(path), "-p", "proj", "-r", "")

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["data"]["error_code"] == "INVALID_FORMAT"
        assert data["data"]["details"]["path"] == str(path)


class TestRecommendCommand:
    """Tests for context recommend."""

    def test_recommend(self, cli_runner, docs_file):
        result = _invoke(cli_runner, "context", "recommend", str(docs_file), "-r", "", "--max-tokens", "600")

        assert result.exit_code == 0
        data = json.loads(result.output)["data"]
        assert [r["document_id"] for r in data["recommendations"]] == ["rfp"]
        assert data["min_relevance_score"] is None
        assert data["max_tokens"] == 600
        assert data["selection_budget"] == 600

    def test_strict(self, cli_runner, docs_file):
        result = _invoke(
            cli_runner, "context", "recommend", str(docs_file), "-r", "", "--max-tokens", "5000", "--strict"
        )

        data = json.loads(result.output)["data"]
        assert data["min_relevance_score"] == 30.0
        assert [e["document_id"] for e in data["excluded"]] == ["clip"]

    def test_invalid_weights_json(self, cli_runner, docs_file):
        result = _invoke(cli_runner, "context", "recommend", str(docs_file), "-r", "", "--weights", "{not json")

        assert result.exit_code == 1
        assert json.loads(result.output)["data"]["error_code"] == "INVALID_FORMAT"

    def test_weights_must_be_object(self, cli_runner, docs_file):
        result = _invoke(cli_runner, "context", "recommend", str(docs_file), "-r", "", "--weights", "[1]")
        assert json.loads(result.output)["data"]["error_code"] == "INVALID_FORMAT"

    def test_out_of_range_weight(self, cli_runner, docs_file):
        result = _invoke(cli_runner, "context", "recommend", str(docs_file), "-r", "", "--weights", '{"recency": 12}')

        assert result.exit_code == 1
        assert json.loads(result.output)["data"]["details"]["field"] == "weights"


class TestApplyAndEstimate:
    """Tests for context apply and context estimate."""

    def test_apply(self, cli_runner, docs_file):
        result = _invoke(cli_runner, "context", "apply", str(docs_file), "-p", "proj", "-r", "")

        assert result.exit_code == 0
        data = json.loads(result.output)["data"]
        assert data["final_selection"] == ["rfp", "clip"]
        assert data["total_tokens"] == 1000

    def test_estimate_text(self, cli_runner):
        result = _invoke(cli_runner, "context", "estimate", "--text", "abcdefgh")
        assert json.loads(result.output)["data"]["total_tokens"] == 2

    def test_estimate_documents_and_text(self, cli_runner, docs_file):
        result = _invoke(cli_runner, "context", "estimate", str(docs_file), "-t", "abcd")

        data = json.loads(result.output)["data"]
        assert data["document_tokens"] == {"rfp": 500, "clip": 500}
        assert data["total_tokens"] == 1001

    def test_estimate_requires_input(self, cli_runner):
        result = _invoke(cli_runner, "context", "estimate")

        assert result.exit_code == 1
        assert json.loads(result.output)["data"]["error_code"] == "MISSING_REQUIRED"

    def test_document_ids_resolved_from_store(self, cli_runner, docs_file, tmp_path):
        ids = tmp_path / "ids.json"
        ids.write_text(json.dumps(["rfp", "missing"]))

        result = cli_runner.invoke(
            cli, ["--no-persist", "--documents-file", str(docs_file), "context", "estimate", str(ids)]
        )

        data = json.loads(result.output)["data"]
        assert data["document_tokens"] == {"rfp": 500}
        assert data["skipped"][0]["reason"] == "unknown document id"
