"""Result containers for scoring, overflow detection and selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from context_gate_mcp.core.documents import MalformedItem


@dataclass(frozen=True)
class ScoreBreakdown:
    """Relevance score of one document with its normalized factor values.

    Attributes:
        document_id: Id of the scored document (None if it has none)
        score: Final relevance score in [0, 100]
        type_priority: Normalized type priority in [0, 1]
        factors: Normalized value in [0, 1] per known metadata factor
    """

    document_id: Optional[str]
    score: float
    type_priority: float
    factors: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "score": self.score,
            "type_priority": round(self.type_priority, 4),
            "factors": {name: round(value, 4) for name, value in self.factors.items()},
        }


@dataclass(frozen=True)
class OverflowCheck:
    """Outcome of comparing a document set against a token budget.

    Attributes:
        would_overflow: True if current_tokens > max_tokens or max_tokens <= 0
        current_tokens: Requirements tokens plus all valid document tokens
        max_tokens: Budget the set was checked against
        overflow_amount: max(0, current_tokens - max_tokens)
        requirements_tokens: Tokens attributed to the requirements text
        document_tokens: Token estimate per valid document id, input order
        skipped: Batch entries that were excluded as malformed
    """

    would_overflow: bool
    current_tokens: int
    max_tokens: int
    overflow_amount: int
    requirements_tokens: int = 0
    document_tokens: Dict[str, int] = field(default_factory=dict)
    skipped: List[MalformedItem] = field(default_factory=list)

    @property
    def usage_percent(self) -> float:
        """Budget usage as a percentage (100.0 for non-positive budgets)."""
        if self.max_tokens <= 0:
            return 100.0
        return round(self.current_tokens / self.max_tokens * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "would_overflow": self.would_overflow,
            "current_tokens": self.current_tokens,
            "max_tokens": self.max_tokens,
            "overflow_amount": self.overflow_amount,
            "usage_percent": self.usage_percent,
            "requirements_tokens": self.requirements_tokens,
            "document_tokens": dict(self.document_tokens),
        }


@dataclass(frozen=True)
class Recommendation:
    """A document chosen to stay in the context."""

    document_id: str
    relevance_score: float
    tokens: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "relevance_score": self.relevance_score,
            "tokens": self.tokens,
        }


@dataclass(frozen=True)
class ExcludedDocument:
    """A scored document left out of the recommendation, with the reason."""

    document_id: str
    relevance_score: float
    tokens: int
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "relevance_score": self.relevance_score,
            "tokens": self.tokens,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class RecommendationResult:
    """Greedy selection result.

    ``total_tokens`` counts document tokens only and never exceeds the
    budget the selection ran against.
    """

    recommendations: List[Recommendation]
    total_tokens: int
    max_tokens: int
    excluded: List[ExcludedDocument] = field(default_factory=list)
    skipped: List[MalformedItem] = field(default_factory=list)

    @property
    def document_ids(self) -> List[str]:
        return [rec.document_id for rec in self.recommendations]

    @property
    def tokens_saved(self) -> int:
        """Tokens of the scored documents that were left out."""
        return sum(item.tokens for item in self.excluded)

    @property
    def message(self) -> str:
        kept = len(self.recommendations)
        considered = kept + len(self.excluded)
        if considered == 0:
            return "No documents to recommend"
        if not self.excluded:
            return f"All {kept} documents fit within {self.max_tokens} tokens"
        return (
            f"Keep {kept} of {considered} documents ({self.total_tokens} of {self.max_tokens} tokens); "
            f"{len(self.excluded)} excluded, saving {self.tokens_saved} tokens"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "total_tokens": self.total_tokens,
            "max_tokens": self.max_tokens,
            "excluded": [item.to_dict() for item in self.excluded],
            "skipped": [item.to_dict() for item in self.skipped],
            "tokens_saved": self.tokens_saved,
            "message": self.message,
        }
