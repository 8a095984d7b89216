"""Tests for overflow detection."""

import pytest

from context_gate_mcp.core.budget import check_overflow


class TestCheckOverflow:
    """Tests for check_overflow."""

    def test_large_documents_overflow(self, make_doc):
        """Two 10000-character documents cannot fit in 1000 tokens."""
        docs = [make_doc("a", chars=10000), make_doc("b", chars=10000)]
        result = check_overflow(docs, 1000, "")

        assert result.would_overflow is True
        assert result.current_tokens == 5000
        assert result.overflow_amount == 4000
        assert result.document_tokens == {"a": 2500, "b": 2500}

    def test_small_documents_fit(self, make_doc):
        docs = [make_doc("a", chars=400), make_doc("b", chars=400)]
        result = check_overflow(docs, 1000, "")

        assert result.would_overflow is False
        assert result.current_tokens == 200
        assert result.overflow_amount == 0
        assert result.usage_percent == 20.0

    def test_exact_fit_does_not_overflow(self, make_doc):
        result = check_overflow([make_doc("a", chars=4000)], 1000, "")
        assert result.would_overflow is False

    def test_requirements_count_against_budget(self, make_doc):
        result = check_overflow([make_doc("a", chars=3996)], 1000, "abcdefgh")

        assert result.requirements_tokens == 2
        assert result.current_tokens == 1001
        assert result.would_overflow is True

    @pytest.mark.parametrize("budget", [0, -5])
    def test_non_positive_budget_always_overflows(self, budget):
        """Even an empty set overflows a budget of zero or less."""
        result = check_overflow([], budget, "")
        assert result.would_overflow is True
        assert result.usage_percent == 100.0

    def test_malformed_entries_skipped(self, make_doc):
        docs = [None, {"id": "no-content"}, {"content": "no id"}, "not-a-doc", make_doc("ok", chars=4)]
        result = check_overflow(docs, 100, "")

        assert result.current_tokens == 1
        assert result.document_tokens == {"ok": 1}
        assert [item.index for item in result.skipped] == [0, 1, 2, 3]
        assert result.skipped[1].document_id == "no-content"
        assert result.skipped[1].reason == "missing content"

    def test_to_dict(self, make_doc):
        data = check_overflow([make_doc("a", chars=40)], 100, "").to_dict()
        assert data == {
            "would_overflow": False,
            "current_tokens": 10,
            "max_tokens": 100,
            "overflow_amount": 0,
            "usage_percent": 10.0,
            "requirements_tokens": 0,
            "document_tokens": {"a": 10},
        }
