"""Budget-constrained document selection.

Selection is greedy over whole documents: documents are ranked by
relevance and each one is kept only if it still fits in the remaining
budget. A document that does not fit is skipped and the walk continues,
so smaller lower-ranked documents can still fill the gap.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from context_gate_mcp.core.documents import partition_documents

from .constants import CHARS_PER_TOKEN, EXCLUDED_BELOW_STRICTNESS, EXCLUDED_EXCEEDS_BUDGET
from .estimation import estimate_tokens
from .models import ExcludedDocument, Recommendation, RecommendationResult
from .scoring import score_documents

logger = logging.getLogger(__name__)


def recommend(
    documents: Iterable[Any],
    max_tokens: int,
    requirements_text: Any,
    weights: Optional[Mapping[str, Any]] = None,
    *,
    type_priority: Optional[Sequence[Any]] = None,
    min_score: Optional[float] = None,
    now: Optional[datetime] = None,
    chars_per_token: int = CHARS_PER_TOKEN,
) -> RecommendationResult:
    """Select a maximal-relevance subset of *documents* within *max_tokens*.

    Steps:
        1. Score every valid document.
        2. Sort by score descending; ties keep their input order.
        3. Walk the ranking, keeping a document only if the running total
           stays within the budget.

    Args:
        documents: Raw batch (mappings or Document instances)
        max_tokens: Budget for document content
        requirements_text: Requirements the documents are scored against
        weights: Metadata factor weights; defaults when None
        type_priority: Document type order, highest priority first
        min_score: Documents scoring below this are excluded before
            selection (RAG strictness)
        now: Reference time for recency scoring
        chars_per_token: Estimation ratio

    Returns:
        RecommendationResult whose total never exceeds max_tokens. The
        list is empty when max_tokens <= 0 or nothing fits.

    Raises:
        ValueError: If a weight is invalid
    """
    valid, skipped = partition_documents(documents)
    breakdowns = score_documents(
        valid,
        requirements_text,
        weights,
        type_priority=type_priority,
        now=now,
    )

    # sorted() is stable, so equal scores keep their input order
    ranked = sorted(
        zip(valid, breakdowns),
        key=lambda pair: pair[1].score,
        reverse=True,
    )

    recommendations: List[Recommendation] = []
    excluded: List[ExcludedDocument] = []
    remaining = max_tokens
    total_tokens = 0

    for document, breakdown in ranked:
        tokens = estimate_tokens(document.content, chars_per_token=chars_per_token)

        if min_score is not None and breakdown.score < min_score:
            excluded.append(
                ExcludedDocument(
                    document_id=document.id,
                    relevance_score=breakdown.score,
                    tokens=tokens,
                    reason=EXCLUDED_BELOW_STRICTNESS,
                )
            )
            continue

        if max_tokens > 0 and tokens <= remaining:
            recommendations.append(
                Recommendation(
                    document_id=document.id,
                    relevance_score=breakdown.score,
                    tokens=tokens,
                )
            )
            remaining -= tokens
            total_tokens += tokens
        else:
            excluded.append(
                ExcludedDocument(
                    document_id=document.id,
                    relevance_score=breakdown.score,
                    tokens=tokens,
                    reason=EXCLUDED_EXCEEDS_BUDGET,
                )
            )

    result = RecommendationResult(
        recommendations=recommendations,
        total_tokens=total_tokens,
        max_tokens=max_tokens,
        excluded=excluded,
        skipped=skipped,
    )
    logger.debug(
        "Recommended %d of %d documents (%d/%d tokens)",
        len(recommendations),
        len(valid),
        total_tokens,
        max_tokens,
    )
    return result
