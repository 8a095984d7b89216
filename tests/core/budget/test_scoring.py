"""Tests for relevance scoring."""

from datetime import timedelta

import pytest

from context_gate_mcp.core.budget import (
    compute_recency,
    compute_type_priority,
    normalize_weights,
    score_breakdown,
    score_document,
    score_documents,
    tokenize,
)
from context_gate_mcp.core.budget.scoring import compute_agency_match, phrase_terms
from context_gate_mcp.core.documents import Document, DocumentType

REQUIREMENTS = "Cloud migration for the Department of Energy using Kubernetes"


def _doc(**kwargs):
    return Document.from_mapping({"id": "doc", "content": "body", **kwargs})


# ===================================================================
# Tokenization
# ===================================================================


class TestTokenize:
    def test_lowercases_and_drops_stopwords(self):
        assert tokenize("The Cloud and the Data") == frozenset({"cloud", "data"})

    def test_compounds_kept_whole_and_split(self):
        tokens = tokenize("Built on Node.js and cloud-native services")
        assert {"node.js", "node", "js", "cloud-native", "cloud", "native"} <= tokens

    def test_non_string_is_empty(self):
        assert tokenize(None) == frozenset()

    def test_phrase_terms_split_compounds(self):
        assert phrase_terms("Cloud-Native Apps") == frozenset({"cloud", "native", "apps"})


# ===================================================================
# Factors
# ===================================================================


class TestTypePriority:
    def test_first_type_scores_one(self):
        assert compute_type_priority(DocumentType.SOLICITATION) == 1.0

    def test_last_type_scores_one_over_n(self):
        assert compute_type_priority(DocumentType.MEDIA) == pytest.approx(1 / 7)

    def test_unknown_type_scores_zero(self):
        assert compute_type_priority(None) == 0.0

    def test_custom_order(self):
        order = ["media", "solicitation", "requirements", "reference", "past-performance", "proposal", "compliance"]
        assert compute_type_priority(DocumentType.MEDIA, order) == 1.0


class TestRecency:
    def test_undated_is_neutral(self):
        assert compute_recency(None) == 0.5

    def test_today_is_one(self, now):
        assert compute_recency(now, now=now) == 1.0

    def test_future_is_one(self, now):
        assert compute_recency(now + timedelta(days=10), now=now) == 1.0

    def test_half_year_is_half(self, now):
        assert compute_recency(now - timedelta(days=182.5), now=now) == pytest.approx(0.5)

    def test_older_than_a_year_is_zero(self, now):
        assert compute_recency(now - timedelta(days=730), now=now) == 0.0


class TestAgencyMatch:
    def test_full_phrase_match(self):
        doc = _doc(metadata={"agency": "Department of Energy"})
        assert compute_agency_match(doc, REQUIREMENTS) == 1.0

    def test_partial_token_match(self):
        doc = _doc(metadata={"agency": "Department of Energy"})
        assert compute_agency_match(doc, "Energy grid modernization") == 0.5

    def test_stopword_only_overlap_does_not_match(self):
        doc = _doc(metadata={"agency": "Department of Energy"})
        assert compute_agency_match(doc, "Department of Transportation") == 0.0

    def test_no_agency(self):
        assert compute_agency_match(_doc(), REQUIREMENTS) == 0.0


# ===================================================================
# Weights
# ===================================================================


class TestNormalizeWeights:
    def test_none_returns_defaults(self):
        weights = normalize_weights(None)
        assert weights == {
            "agency_match": 5.0,
            "technology_match": 4.0,
            "recency": 3.0,
            "keyword_relevance": 6.0,
        }

    def test_values_become_floats(self):
        assert normalize_weights({"recency": 2}) == {"recency": 2.0}

    @pytest.mark.parametrize("value", [-1, 10.5, True, "5", float("nan")])
    def test_invalid_values_rejected(self, value):
        with pytest.raises(ValueError):
            normalize_weights({"recency": value})

    def test_non_mapping_rejected(self):
        with pytest.raises(ValueError, match="mapping"):
            normalize_weights([("recency", 1)])


# ===================================================================
# Scores
# ===================================================================


class TestScoreDocument:
    def test_type_only_document(self):
        """Undated, metadata-free solicitation: 30 + 70 * (3 * 0.5 / 18)."""
        doc = _doc(type="solicitation")
        assert score_document(doc, "") == pytest.approx(35.8333, abs=1e-4)

    def test_perfect_match_scores_100(self, now):
        doc = _doc(
            type="solicitation",
            metadata={
                "agency": "Department of Energy",
                "keywords": ["cloud migration"],
                "technologies": ["Kubernetes"],
                "date": now.isoformat(),
            },
        )
        assert score_document(doc, REQUIREMENTS, now=now) == 100.0

    def test_zero_weights_leave_type_baseline(self):
        doc = _doc(type="solicitation", metadata={"keywords": ["cloud"]})
        zero = {"agency_match": 0, "technology_match": 0, "recency": 0, "keyword_relevance": 0}
        assert score_document(doc, REQUIREMENTS, zero) == 30.0

    def test_score_bounded(self, now):
        """Every score lies in [0, 100]."""
        docs = [
            _doc(),
            _doc(type="media"),
            _doc(type="unknown-kind", metadata={"keywords": "cloud, migration"}),
            _doc(type="requirements", metadata={"technologies": ["kubernetes"], "date": "2010-01-01"}),
        ]
        for breakdown in score_documents(docs, REQUIREMENTS, now=now):
            assert 0.0 <= breakdown.score <= 100.0

    def test_deterministic(self, now):
        doc = _doc(type="reference", metadata={"keywords": ["cloud"], "agency": "Energy"})
        first = score_breakdown(doc, REQUIREMENTS, now=now)
        second = score_breakdown(doc, REQUIREMENTS, now=now)
        assert first == second

    def test_keyword_share(self, now):
        doc = _doc(metadata={"keywords": ["cloud migration", "mainframe"]})
        breakdown = score_breakdown(doc, REQUIREMENTS, now=now)
        assert breakdown.factors["keyword_relevance"] == 0.5

    def test_higher_weight_raises_matching_factor(self, now):
        doc = _doc(metadata={"technologies": ["kubernetes"]})
        low = score_document(doc, REQUIREMENTS, {"technology_match": 1, "keyword_relevance": 9}, now=now)
        high = score_document(doc, REQUIREMENTS, {"technology_match": 9, "keyword_relevance": 1}, now=now)
        assert high > low

    def test_invalid_weights_raise(self):
        with pytest.raises(ValueError):
            score_document(_doc(), REQUIREMENTS, {"recency": 11})

    def test_breakdown_to_dict(self, now):
        data = score_breakdown(_doc(type="solicitation"), "", now=now).to_dict()
        assert data["document_id"] == "doc"
        assert data["type_priority"] == 1.0
        assert set(data["factors"]) == {"agency_match", "technology_match", "recency", "keyword_relevance"}
