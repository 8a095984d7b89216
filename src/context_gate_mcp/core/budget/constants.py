"""Constants for token budgeting, relevance scoring and selection."""

from __future__ import annotations

# =============================================================================
# Token Estimation Constants
# =============================================================================

# Characters per token estimate
CHARS_PER_TOKEN = 4

# =============================================================================
# Relevance Scoring Constants
# =============================================================================

# Upper bound of the relevance scale
MAX_RELEVANCE_SCORE = 100.0

# Share of the score driven by document type priority; the rest comes from
# the weighted metadata factors
TYPE_BASELINE_SHARE = 0.30

# Recency decays linearly to zero at this age
RECENCY_MAX_AGE_DAYS = 365.0

# Recency value for undated documents
NEUTRAL_RECENCY = 0.5

# Agency value when only part of the agency name appears in the requirements
PARTIAL_AGENCY_MATCH = 0.5

# Decimal places kept on reported scores
SCORE_PRECISION = 4

# Known metadata factors (weights for other names are stored but unused)
FACTOR_AGENCY_MATCH = "agency_match"
FACTOR_TECHNOLOGY_MATCH = "technology_match"
FACTOR_RECENCY = "recency"
FACTOR_KEYWORD_RELEVANCE = "keyword_relevance"

SCORING_FACTORS = (
    FACTOR_AGENCY_MATCH,
    FACTOR_TECHNOLOGY_MATCH,
    FACTOR_RECENCY,
    FACTOR_KEYWORD_RELEVANCE,
)

DEFAULT_METADATA_WEIGHTS = {
    FACTOR_AGENCY_MATCH: 5.0,
    FACTOR_TECHNOLOGY_MATCH: 4.0,
    FACTOR_RECENCY: 3.0,
    FACTOR_KEYWORD_RELEVANCE: 6.0,
}

# Weight bounds for every factor
MIN_FACTOR_WEIGHT = 0.0
MAX_FACTOR_WEIGHT = 10.0

# Minimum token length for an agency token to count as significant
MIN_SIGNIFICANT_TOKEN_LENGTH = 3

STOPWORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from",
        "in", "into", "is", "it", "of", "on", "or", "the", "to", "with",
        "we", "our", "us", "this", "that", "will", "shall", "must",
        "department", "office", "agency",
    }
)

# =============================================================================
# Selection Constants
# =============================================================================

# Minimum relevance score = rag_strictness * STRICTNESS_SCORE_FACTOR
STRICTNESS_SCORE_FACTOR = 0.5

# Exclusion reasons reported by the recommendation engine
EXCLUDED_EXCEEDS_BUDGET = "exceeds_budget"
EXCLUDED_BELOW_STRICTNESS = "below_strictness"
