"""Token budgeting: estimation, relevance scoring, overflow detection and selection.

Example:
    from context_gate_mcp.core.budget import check_overflow, recommend

    check = check_overflow(documents, max_tokens=16000, requirements_text=text)
    if check.would_overflow:
        result = recommend(documents, 16000 - check.requirements_tokens, text)
"""

from .constants import (
    CHARS_PER_TOKEN,
    DEFAULT_METADATA_WEIGHTS,
    EXCLUDED_BELOW_STRICTNESS,
    EXCLUDED_EXCEEDS_BUDGET,
    SCORING_FACTORS,
    STRICTNESS_SCORE_FACTOR,
)
from .estimation import estimate_document_tokens, estimate_many, estimate_tokens
from .models import (
    ExcludedDocument,
    OverflowCheck,
    Recommendation,
    RecommendationResult,
    ScoreBreakdown,
)
from .overflow import check_overflow
from .recommendation import recommend
from .scoring import (
    compute_recency,
    compute_type_priority,
    normalize_weights,
    score_breakdown,
    score_document,
    score_documents,
    tokenize,
)

__all__ = [
    # Constants
    "CHARS_PER_TOKEN",
    "DEFAULT_METADATA_WEIGHTS",
    "EXCLUDED_BELOW_STRICTNESS",
    "EXCLUDED_EXCEEDS_BUDGET",
    "SCORING_FACTORS",
    "STRICTNESS_SCORE_FACTOR",
    # Estimation
    "estimate_tokens",
    "estimate_document_tokens",
    "estimate_many",
    # Models
    "ExcludedDocument",
    "OverflowCheck",
    "Recommendation",
    "RecommendationResult",
    "ScoreBreakdown",
    # Operations
    "check_overflow",
    "recommend",
    "compute_recency",
    "compute_type_priority",
    "normalize_weights",
    "score_breakdown",
    "score_document",
    "score_documents",
    "tokenize",
]
