"""Tests for budget-constrained selection."""

import pytest

from context_gate_mcp.core.budget import (
    EXCLUDED_BELOW_STRICTNESS,
    EXCLUDED_EXCEEDS_BUDGET,
    estimate_tokens,
    recommend,
)

REQUIREMENTS = "Cloud migration for the Department of Energy"


class TestRecommend:
    """Tests for recommend."""

    def test_total_never_exceeds_budget(self, make_doc, now):
        """20 documents of 125 tokens against 2000 tokens: a non-empty set that fits."""
        docs = [make_doc(f"doc-{i}", chars=500) for i in range(20)]
        result = recommend(docs, 2000, REQUIREMENTS, now=now)

        assert result.recommendations
        assert result.total_tokens <= 2000
        assert result.total_tokens == sum(r.tokens for r in result.recommendations)
        assert len(result.recommendations) == 16
        assert len(result.excluded) == 4

    def test_nothing_fits(self, make_doc, now):
        docs = [make_doc("a", chars=10000), make_doc("b", chars=10000)]
        result = recommend(docs, 1000, REQUIREMENTS, now=now)

        assert result.recommendations == []
        assert result.total_tokens == 0
        assert {item.reason for item in result.excluded} == {EXCLUDED_EXCEEDS_BUDGET}
        assert result.tokens_saved == 5000

    @pytest.mark.parametrize("budget", [0, -1])
    def test_non_positive_budget_recommends_nothing(self, make_doc, now, budget):
        result = recommend([make_doc("a", chars=0)], budget, REQUIREMENTS, now=now)
        assert result.recommendations == []

    def test_ranked_by_score(self, make_doc, now):
        docs = [
            make_doc("media", doc_type="media"),
            make_doc("solicitation", doc_type="solicitation"),
            make_doc("requirements", doc_type="requirements"),
        ]
        result = recommend(docs, 10000, REQUIREMENTS, now=now)
        assert result.document_ids == ["solicitation", "requirements", "media"]

    def test_ties_keep_input_order(self, make_doc, now):
        docs = [make_doc(name) for name in ("c", "a", "b")]
        result = recommend(docs, 10000, REQUIREMENTS, now=now)
        assert result.document_ids == ["c", "a", "b"]

    def test_skips_documents_that_do_not_fit(self, make_doc, now):
        """A large mid-ranked document is skipped so a smaller one can fill the gap."""
        docs = [
            make_doc("top", chars=2400, doc_type="solicitation"),
            make_doc("large", chars=2400, doc_type="requirements"),
            make_doc("small", chars=1200, doc_type="media"),
        ]
        result = recommend(docs, 1000, REQUIREMENTS, now=now)

        assert result.document_ids == ["top", "small"]
        assert result.total_tokens == 900
        assert [item.document_id for item in result.excluded] == ["large"]

    def test_min_score_excludes_low_relevance(self, make_doc, now):
        docs = [
            make_doc("relevant", doc_type="solicitation", agency="Department of Energy"),
            make_doc("noise", doc_type="media"),
        ]
        result = recommend(docs, 10000, REQUIREMENTS, min_score=30.0, now=now)

        assert result.document_ids == ["relevant"]
        assert result.excluded[0].document_id == "noise"
        assert result.excluded[0].reason == EXCLUDED_BELOW_STRICTNESS

    def test_malformed_documents_excluded_without_raising(self, make_doc, now):
        docs = [make_doc("ok"), None, {"id": "empty"}, 42]
        result = recommend(docs, 10000, REQUIREMENTS, now=now)

        assert result.document_ids == ["ok"]
        assert [item.index for item in result.skipped] == [1, 2, 3]

    def test_deterministic(self, make_doc, now):
        types = ["media", "reference", "proposal"]
        docs = [make_doc(f"d{i}", chars=100 * (i + 1), doc_type=t) for i, t in enumerate(types)]
        first = recommend(docs, 150, REQUIREMENTS, now=now).to_dict()
        second = recommend(docs, 150, REQUIREMENTS, now=now).to_dict()
        assert first == second

    def test_recommendation_tokens_match_estimate(self, make_doc, now):
        result = recommend([make_doc("a", chars=401)], 1000, REQUIREMENTS, now=now)
        assert result.recommendations[0].tokens == estimate_tokens("x" * 401)

    def test_message(self, make_doc, now):
        result = recommend([make_doc("a", chars=4000), make_doc("b", chars=4000)], 1000, REQUIREMENTS, now=now)
        assert result.message == "Keep 1 of 2 documents (1000 of 1000 tokens); 1 excluded, saving 1000 tokens"
