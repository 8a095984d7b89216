"""Token estimation.

Approximates the size of text in model tokens with a fixed
characters-per-token ratio. The estimate is deterministic, linear in the
text length and monotonic non-decreasing, which the overflow and
selection logic rely on.
"""

from __future__ import annotations

import math
from typing import Any, Iterable

from .constants import CHARS_PER_TOKEN


def estimate_tokens(text: Any, *, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Estimate the token count of *text*.

    Args:
        text: Text to estimate. ``None``, empty strings and non-string
            values estimate to 0.
        chars_per_token: Characters per token ratio (must be positive).

    Returns:
        ``ceil(len(text) / chars_per_token)``

    Raises:
        ValueError: If chars_per_token is not positive

    Example:
        estimate_tokens("")        # 0
        estimate_tokens("abcd")    # 1
        estimate_tokens("abcde")   # 2
    """
    if chars_per_token <= 0:
        raise ValueError(f"chars_per_token must be positive, got {chars_per_token}")
    if not isinstance(text, str) or not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


def estimate_document_tokens(document: Any, *, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Estimate the tokens of a document's content (0 when absent)."""
    return estimate_tokens(getattr(document, "content", None), chars_per_token=chars_per_token)


def estimate_many(texts: Iterable[Any], *, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Sum of ``estimate_tokens`` over *texts*."""
    return sum(estimate_tokens(text, chars_per_token=chars_per_token) for text in texts)
