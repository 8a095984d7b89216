"""Relevance scoring for documents against a requirements string.

The score combines document type priority with a weighted average of
metadata factors. Every factor is normalized to [0, 1] first, so the
weights only express relative importance:

    metadata = sum(w_f * v_f) / sum(w_f)            (0 when all weights are 0)
    score    = 100 * (0.3 * type_priority + 0.7 * metadata)

Factor values:
    type priority     (n - index) / n for the configured type order, 0 if unknown
    keyword_relevance share of keywords whose terms all occur in the requirements
    agency_match      1.0 for the full agency name, 0.5 for a significant token
    technology_match  share of technologies whose terms all occur in the requirements
    recency           linear decay over 365 days, 0.5 when undated

Scoring is a pure function of its inputs and safe to call concurrently.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Sequence

from context_gate_mcp.core.documents import DEFAULT_TYPE_PRIORITY, Document, DocumentType

from .constants import (
    DEFAULT_METADATA_WEIGHTS,
    FACTOR_AGENCY_MATCH,
    FACTOR_KEYWORD_RELEVANCE,
    FACTOR_RECENCY,
    FACTOR_TECHNOLOGY_MATCH,
    MAX_FACTOR_WEIGHT,
    MAX_RELEVANCE_SCORE,
    MIN_FACTOR_WEIGHT,
    MIN_SIGNIFICANT_TOKEN_LENGTH,
    NEUTRAL_RECENCY,
    PARTIAL_AGENCY_MATCH,
    RECENCY_MAX_AGE_DAYS,
    SCORE_PRECISION,
    SCORING_FACTORS,
    STOPWORDS,
    TYPE_BASELINE_SHARE,
)
from .models import ScoreBreakdown

_TOKEN_PATTERN = re.compile(r"[a-z0-9][a-z0-9+#]*(?:[./-][a-z0-9+#]+)*")
_COMPOUND_SEPARATORS = re.compile(r"[./-]")


# =============================================================================
# Text normalization
# =============================================================================


def _raw_tokens(text: Any) -> list[str]:
    if not isinstance(text, str) or not text:
        return []
    return _TOKEN_PATTERN.findall(text.lower())


def tokenize(text: Any) -> FrozenSet[str]:
    """Tokenize requirements text for matching.

    Lowercases, drops punctuation and stopwords. Compound tokens such as
    ``node.js`` or ``cloud-native`` are kept whole and also split into
    their parts.
    """
    tokens: set[str] = set()
    for token in _raw_tokens(text):
        tokens.add(token)
        tokens.update(_COMPOUND_SEPARATORS.split(token))
    return frozenset(t for t in tokens if t and t not in STOPWORDS)


def phrase_terms(phrase: Any) -> FrozenSet[str]:
    """Significant terms of a keyword or technology phrase, compounds split."""
    terms: set[str] = set()
    for token in _raw_tokens(phrase):
        terms.update(_COMPOUND_SEPARATORS.split(token))
    return frozenset(t for t in terms if t and t not in STOPWORDS)


def _phrase_share(phrases: Sequence[str], requirement_tokens: FrozenSet[str]) -> float:
    """Share of *phrases* whose terms all occur in *requirement_tokens*."""
    if not phrases:
        return 0.0
    matched = 0
    for phrase in phrases:
        terms = phrase_terms(phrase)
        if terms and terms <= requirement_tokens:
            matched += 1
    return matched / len(phrases)


# =============================================================================
# Factor values
# =============================================================================


def compute_type_priority(
    document_type: Optional[DocumentType],
    type_priority: Sequence[Any] = DEFAULT_TYPE_PRIORITY,
) -> float:
    """Normalized priority of *document_type* within *type_priority*.

    The first type in the order scores 1.0, the last 1/n. Types missing
    from the order, and documents without a type, score 0.0.
    """
    if document_type is None:
        return 0.0
    order = [DocumentType.parse(item) for item in type_priority]
    if document_type not in order:
        return 0.0
    n = len(order)
    return (n - order.index(document_type)) / n


def compute_keyword_relevance(document: Document, requirement_tokens: FrozenSet[str]) -> float:
    return _phrase_share(document.metadata.keywords, requirement_tokens)


def compute_technology_match(document: Document, requirement_tokens: FrozenSet[str]) -> float:
    return _phrase_share(document.metadata.technologies, requirement_tokens)


def compute_agency_match(document: Document, requirements_text: Any) -> float:
    """Agency match value.

    1.0 when the whole agency name occurs in the requirements as a phrase,
    0.5 when at least one significant agency token occurs, otherwise 0.0.
    """
    agency_tokens = _raw_tokens(document.metadata.agency)
    if not agency_tokens:
        return 0.0
    requirement_words = _raw_tokens(requirements_text)
    if not requirement_words:
        return 0.0

    haystack = f" {' '.join(requirement_words)} "
    if f" {' '.join(agency_tokens)} " in haystack:
        return 1.0

    requirement_tokens = tokenize(requirements_text)
    significant = {
        token
        for token in phrase_terms(document.metadata.agency)
        if len(token) >= MIN_SIGNIFICANT_TOKEN_LENGTH
    }
    if significant & requirement_tokens:
        return PARTIAL_AGENCY_MATCH
    return 0.0


def compute_recency(
    document_date: Optional[datetime],
    *,
    now: Optional[datetime] = None,
    max_age_days: float = RECENCY_MAX_AGE_DAYS,
) -> float:
    """Compute a recency value based on document age.

    Uses linear decay from 1.0 (today, or a future date) to 0.0 at
    *max_age_days*. Undated documents get a neutral 0.5.

    Example:
        # Document from 6 months ago
        compute_recency(six_months_ago)  # ~0.5

        # Document from two years ago
        compute_recency(two_years_ago)   # 0.0
    """
    if max_age_days <= 0:
        raise ValueError(f"max_age_days must be positive, got {max_age_days}")
    if document_date is None:
        return NEUTRAL_RECENCY

    reference = now or datetime.now(timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    age_days = (reference - document_date).total_seconds() / 86400
    if age_days <= 0:
        return 1.0
    if age_days >= max_age_days:
        return 0.0
    return 1.0 - (age_days / max_age_days)


# =============================================================================
# Weights
# =============================================================================


def normalize_weights(weights: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    """Validate a weight mapping and return it with float values.

    ``None`` yields the default weights. Unknown factor names are kept
    (they have no effect on scoring); known factors that are missing get
    weight 0.

    Raises:
        ValueError: If a weight is not a number or lies outside [0, 10]
    """
    if weights is None:
        return dict(DEFAULT_METADATA_WEIGHTS)
    if not isinstance(weights, Mapping):
        raise ValueError("weights must be a mapping of factor name to number")

    normalized: Dict[str, float] = {}
    for name, value in weights.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
            raise ValueError(f"weight '{name}' must be a number, got {value!r}")
        if not MIN_FACTOR_WEIGHT <= value <= MAX_FACTOR_WEIGHT:
            raise ValueError(
                f"weight '{name}' must be in [{MIN_FACTOR_WEIGHT:g}, {MAX_FACTOR_WEIGHT:g}], got {value}"
            )
        normalized[str(name)] = float(value)
    return normalized


# =============================================================================
# Scoring
# =============================================================================


def score_breakdown(
    document: Document,
    requirements_text: Any,
    weights: Optional[Mapping[str, Any]] = None,
    *,
    type_priority: Optional[Sequence[Any]] = None,
    now: Optional[datetime] = None,
    requirement_tokens: Optional[FrozenSet[str]] = None,
) -> ScoreBreakdown:
    """Score *document* against *requirements_text* with per-factor detail.

    Args:
        document: Document to score (incomplete documents are fine)
        requirements_text: Free-text requirements
        weights: Factor weights in [0, 10]; defaults when None
        type_priority: Type order, highest priority first; taxonomy order when None
        now: Reference time for recency (current UTC time when None)
        requirement_tokens: Pre-tokenized requirements, to reuse across a batch

    Raises:
        ValueError: If a weight is invalid
    """
    factor_weights = normalize_weights(weights)
    tokens = requirement_tokens if requirement_tokens is not None else tokenize(requirements_text)

    factors = {
        FACTOR_AGENCY_MATCH: compute_agency_match(document, requirements_text),
        FACTOR_TECHNOLOGY_MATCH: compute_technology_match(document, tokens),
        FACTOR_RECENCY: compute_recency(document.metadata.date, now=now),
        FACTOR_KEYWORD_RELEVANCE: compute_keyword_relevance(document, tokens),
    }

    total_weight = sum(factor_weights.get(name, 0.0) for name in SCORING_FACTORS)
    if total_weight > 0:
        metadata_part = sum(factor_weights.get(name, 0.0) * factors[name] for name in SCORING_FACTORS) / total_weight
    else:
        metadata_part = 0.0

    priority = compute_type_priority(
        document.type,
        type_priority if type_priority is not None else DEFAULT_TYPE_PRIORITY,
    )

    raw = MAX_RELEVANCE_SCORE * (TYPE_BASELINE_SHARE * priority + (1 - TYPE_BASELINE_SHARE) * metadata_part)
    # Clamp to valid range
    score = round(max(0.0, min(MAX_RELEVANCE_SCORE, raw)), SCORE_PRECISION)

    return ScoreBreakdown(
        document_id=document.id,
        score=score,
        type_priority=priority,
        factors=factors,
    )


def score_document(
    document: Document,
    requirements_text: Any,
    weights: Optional[Mapping[str, Any]] = None,
    *,
    type_priority: Optional[Sequence[Any]] = None,
    now: Optional[datetime] = None,
) -> float:
    """Relevance score of *document* in [0, 100]. See ``score_breakdown``."""
    return score_breakdown(
        document,
        requirements_text,
        weights,
        type_priority=type_priority,
        now=now,
    ).score


def score_documents(
    documents: Iterable[Document],
    requirements_text: Any,
    weights: Optional[Mapping[str, Any]] = None,
    *,
    type_priority: Optional[Sequence[Any]] = None,
    now: Optional[datetime] = None,
) -> list[ScoreBreakdown]:
    """Score a batch, tokenizing the requirements and validating weights once."""
    factor_weights = normalize_weights(weights)
    tokens = tokenize(requirements_text)
    reference = now or datetime.now(timezone.utc)
    return [
        score_breakdown(
            document,
            requirements_text,
            factor_weights,
            type_priority=type_priority,
            now=reference,
            requirement_tokens=tokens,
        )
        for document in documents
    ]
