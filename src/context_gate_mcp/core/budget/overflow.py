"""Overflow detection for a candidate document set."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

from context_gate_mcp.core.documents import partition_documents

from .constants import CHARS_PER_TOKEN
from .estimation import estimate_tokens
from .models import OverflowCheck

logger = logging.getLogger(__name__)


def check_overflow(
    documents: Iterable[Any],
    max_tokens: int,
    requirements_text: Any = "",
    *,
    chars_per_token: int = CHARS_PER_TOKEN,
) -> OverflowCheck:
    """Compare the token cost of *documents* plus requirements with a budget.

    ``current_tokens`` is the requirements estimate plus the content
    estimate of every valid document. Malformed entries (null, missing id
    or content) count as zero tokens and are reported in ``skipped``.

    A non-positive budget always overflows, since nothing can fit in it.

    Args:
        documents: Raw batch (mappings or Document instances)
        max_tokens: Token budget
        requirements_text: Requirements text sent alongside the documents
        chars_per_token: Estimation ratio

    Returns:
        OverflowCheck with totals and a per-document breakdown
    """
    valid, skipped = partition_documents(documents)

    requirements_tokens = estimate_tokens(requirements_text, chars_per_token=chars_per_token)
    document_tokens: Dict[str, int] = {}
    current_tokens = requirements_tokens
    for document in valid:
        tokens = estimate_tokens(document.content, chars_per_token=chars_per_token)
        # Duplicate ids accumulate so the breakdown sums to the document total
        document_tokens[document.id] = document_tokens.get(document.id, 0) + tokens
        current_tokens += tokens

    would_overflow = current_tokens > max_tokens or max_tokens <= 0
    result = OverflowCheck(
        would_overflow=would_overflow,
        current_tokens=current_tokens,
        max_tokens=max_tokens,
        overflow_amount=max(0, current_tokens - max_tokens),
        requirements_tokens=requirements_tokens,
        document_tokens=document_tokens,
        skipped=skipped,
    )

    logger.debug(
        "Overflow check: %d/%d tokens across %d documents (overflow=%s, skipped=%d)",
        current_tokens,
        max_tokens,
        len(valid),
        would_overflow,
        len(skipped),
    )
    return result
