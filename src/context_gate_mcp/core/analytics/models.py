"""Analytics records: overflow events, selection outcomes and build metrics.

Records are immutable once created. Each carries a ULID ``event_id`` that
makes recording idempotent and sorts by creation time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from ulid import ULID


def _new_event_id() -> str:
    return str(ULID())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _ids(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(str(item) for item in value)


@dataclass(frozen=True)
class OverflowEvent:
    """A context that exceeded its token budget."""

    project_id: str
    original_token_count: int
    max_token_count: int
    documents_selected: Tuple[str, ...] = ()
    recommended_documents: Tuple[str, ...] = ()
    resolution_time_ms: Optional[float] = None
    user_override: bool = False
    event_id: str = field(default_factory=_new_event_id)
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def overflow_amount(self) -> int:
        return max(0, self.original_token_count - self.max_token_count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "project_id": self.project_id,
            "original_token_count": self.original_token_count,
            "max_token_count": self.max_token_count,
            "overflow_amount": self.overflow_amount,
            "documents_selected": list(self.documents_selected),
            "recommended_documents": list(self.recommended_documents),
            "resolution_time_ms": self.resolution_time_ms,
            "user_override": self.user_override,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OverflowEvent":
        return cls(
            project_id=str(data["project_id"]),
            original_token_count=int(data["original_token_count"]),
            max_token_count=int(data["max_token_count"]),
            documents_selected=_ids(data.get("documents_selected")),
            recommended_documents=_ids(data.get("recommended_documents")),
            resolution_time_ms=data.get("resolution_time_ms"),
            user_override=bool(data.get("user_override", False)),
            event_id=str(data["event_id"]),
            timestamp=_parse_timestamp(data["timestamp"]),
        )


@dataclass(frozen=True)
class SelectionOutcome:
    """The document set a caller finally used, compared to the recommendation.

    Attributes:
        overflow_event_id: Overflow event this selection resolves, if any
        resolution_time_ms: Time between the overflow check and this selection
    """

    project_id: str
    final_selection: Tuple[str, ...] = ()
    recommended_documents: Tuple[str, ...] = ()
    total_tokens: int = 0
    overflow_event_id: Optional[str] = None
    resolution_time_ms: Optional[float] = None
    event_id: str = field(default_factory=_new_event_id)
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def accepted(self) -> bool:
        """True when the caller kept exactly the recommended documents."""
        return set(self.final_selection) == set(self.recommended_documents)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "project_id": self.project_id,
            "overflow_event_id": self.overflow_event_id,
            "final_selection": list(self.final_selection),
            "recommended_documents": list(self.recommended_documents),
            "accepted": self.accepted,
            "total_tokens": self.total_tokens,
            "resolution_time_ms": self.resolution_time_ms,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SelectionOutcome":
        return cls(
            project_id=str(data["project_id"]),
            final_selection=_ids(data.get("final_selection")),
            recommended_documents=_ids(data.get("recommended_documents")),
            total_tokens=int(data.get("total_tokens", 0)),
            overflow_event_id=data.get("overflow_event_id"),
            resolution_time_ms=data.get("resolution_time_ms"),
            event_id=str(data["event_id"]),
            timestamp=_parse_timestamp(data["timestamp"]),
        )


@dataclass(frozen=True)
class ContextBuildMetric:
    """Timing and size of one context build."""

    project_id: str
    duration_ms: float
    token_count: int = 0
    document_count: int = 0
    success: bool = True
    document_type: Optional[str] = None
    error_message: Optional[str] = None
    cache_hit: bool = False
    event_id: str = field(default_factory=_new_event_id)
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "project_id": self.project_id,
            "document_type": self.document_type,
            "duration_ms": self.duration_ms,
            "token_count": self.token_count,
            "document_count": self.document_count,
            "success": self.success,
            "error_message": self.error_message,
            "cache_hit": self.cache_hit,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ContextBuildMetric":
        return cls(
            project_id=str(data["project_id"]),
            duration_ms=float(data["duration_ms"]),
            token_count=int(data.get("token_count", 0)),
            document_count=int(data.get("document_count", 0)),
            success=bool(data.get("success", True)),
            document_type=data.get("document_type"),
            error_message=data.get("error_message"),
            cache_hit=bool(data.get("cache_hit", False)),
            event_id=str(data["event_id"]),
            timestamp=_parse_timestamp(data["timestamp"]),
        )
