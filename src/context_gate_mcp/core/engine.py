"""Context overflow engine.

Ties the budget operations, the configuration store, the document provider
and the analytics recorder together behind the operations the MCP tools and
the CLI expose. Every operation validates its top-level request and raises
``ValidationError`` for malformed input; malformed individual documents are
skipped and reported in the result's ``skipped`` list instead.

Example:
    engine = ContextOverflowEngine()
    result = engine.check_overflow("proj-1", documents, "Cloud migration for DHS")
    if result["would_overflow"]:
        keep = [r["document_id"] for r in result["recommendations"]["recommendations"]]
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple

from context_gate_mcp.core.analytics import (
    AnalyticsRecorder,
    ContextBuildMetric,
    JsonlAnalyticsPersistence,
    OverflowEvent,
    SelectionOutcome,
)
from context_gate_mcp.core.budget import (
    CHARS_PER_TOKEN,
    RecommendationResult,
    check_overflow as detect_overflow,
    estimate_tokens,
    normalize_weights,
    recommend,
)
from context_gate_mcp.core.document_provider import (
    DocumentProvider,
    JsonFileDocumentProvider,
    resolve_references,
)
from context_gate_mcp.core.documents import MalformedItem, partition_documents
from context_gate_mcp.core.errors import ValidationError
from context_gate_mcp.core.observability import get_metrics
from context_gate_mcp.core.observability.metrics import ENGINE_CHECK, ENGINE_RECOMMEND, ENGINE_USAGE_PERCENT
from context_gate_mcp.core.settings import (
    ConfigurationStore,
    ContextConfiguration,
    FileConfigurationPersistence,
)

if TYPE_CHECKING:
    from context_gate_mcp.config.server import ServerConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _PendingOverflow:
    """Overflow awaiting the caller's final selection."""

    event_id: str
    recommended: Tuple[str, ...]
    started: float


# =============================================================================
# Request validation
# =============================================================================


def _require_project_id(project_id: Any) -> str:
    if not isinstance(project_id, str) or not project_id.strip():
        raise ValidationError("project_id must be a non-empty string", field="project_id")
    return project_id.strip()


def _require_documents(documents: Any) -> List[Any]:
    if not isinstance(documents, (list, tuple)):
        raise ValidationError(
            f"selected_documents must be a list, got {type(documents).__name__}",
            field="selected_documents",
        )
    return list(documents)


def _require_requirements(requirements_text: Any) -> str:
    if requirements_text is None:
        raise ValidationError("requirements_text is required", field="requirements_text")
    if not isinstance(requirements_text, str):
        raise ValidationError(
            f"requirements_text must be a string, got {type(requirements_text).__name__}",
            field="requirements_text",
        )
    return requirements_text


def _optional_int(value: Any, field: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field=field)
    return value


def _optional_positive_number(value: Any, field: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValidationError(f"{field} must be a positive number", field=field)
    return float(value)


def _merge_skipped(unresolved: List[MalformedItem], skipped: List[MalformedItem]) -> List[MalformedItem]:
    """Combine provider and partition skips, one entry per batch index."""
    seen = {item.index for item in unresolved}
    merged = unresolved + [item for item in skipped if item.index not in seen]
    return sorted(merged, key=lambda item: item.index)


def _selection_dict(result: RecommendationResult) -> Dict[str, Any]:
    """Recommendation result with its budget labelled as the selection budget.

    The selection runs against the requested budget minus the requirements
    tokens, which is not the caller's ``max_tokens``.
    """
    data = result.to_dict()
    data["selection_budget"] = data.pop("max_tokens")
    return data


class ContextOverflowEngine:
    """Overflow detection and document selection for model contexts.

    Args:
        store: Configuration store (defaults, in memory, when None)
        recorder: Analytics recorder (in memory when None)
        provider: Resolves documents passed as plain string ids
        chars_per_token: Token estimation ratio
    """

    def __init__(
        self,
        store: Optional[ConfigurationStore] = None,
        recorder: Optional[AnalyticsRecorder] = None,
        provider: Optional[DocumentProvider] = None,
        *,
        chars_per_token: int = CHARS_PER_TOKEN,
    ) -> None:
        self.store = store or ConfigurationStore()
        self.recorder = recorder or AnalyticsRecorder()
        self.provider = provider
        self.chars_per_token = chars_per_token
        self._pending: Dict[str, _PendingOverflow] = {}
        self._pending_lock = threading.Lock()
        self._metrics = get_metrics()

    @property
    def config(self) -> ContextConfiguration:
        return self.store.get()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve(self, documents: Sequence[Any]) -> Tuple[List[Any], List[MalformedItem]]:
        return resolve_references(documents, self.provider)

    def _budget(self, config: ContextConfiguration, max_tokens: Any, model_category: Any) -> int:
        budget = _optional_int(max_tokens, "max_tokens")
        if budget is not None:
            return budget
        if model_category is not None and not isinstance(model_category, str):
            raise ValidationError("model_category must be a string", field="model_category")
        try:
            return config.context_budget(model_category)
        except KeyError:
            known = ", ".join(sorted(config.model_categories))
            raise ValidationError(
                f"Unknown model_category '{model_category}' (known: {known})",
                field="model_category",
            ) from None

    def _weights(self, config: ContextConfiguration, weights: Any) -> Dict[str, float]:
        if weights is None:
            return dict(config.metadata_weights)
        if not isinstance(weights, Mapping):
            raise ValidationError("weights must be an object of factor name to number", field="weights")
        try:
            # Request weights override the configured ones factor by factor
            return normalize_weights({**config.metadata_weights, **weights})
        except ValueError as exc:
            raise ValidationError(str(exc), field="weights") from exc

    # =========================================================================
    # Overflow and selection
    # =========================================================================

    def check_overflow(
        self,
        project_id: Any,
        selected_documents: Any,
        requirements_text: Any,
        max_tokens: Any = None,
        model_category: Any = None,
        *,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Check whether the selection fits its budget.

        On overflow, computes recommendations against the budget left after
        the requirements and records an OverflowEvent. The overflow stays
        pending for the project until ``apply_selection`` resolves it.
        """
        project_id = _require_project_id(project_id)
        documents = _require_documents(selected_documents)
        requirements_text = _require_requirements(requirements_text)
        config = self.config
        budget = self._budget(config, max_tokens, model_category)

        items, unresolved = self._resolve(documents)
        check = detect_overflow(items, budget, requirements_text, chars_per_token=self.chars_per_token)
        skipped = _merge_skipped(unresolved, check.skipped)

        result = check.to_dict()
        result["approaching_limit"] = (
            not check.would_overflow and check.max_tokens > 0 and check.usage_percent >= config.warning_threshold
        )
        result["warning_threshold"] = config.warning_threshold
        result["skipped"] = [item.to_dict() for item in skipped]
        self._metrics.gauge(ENGINE_USAGE_PERCENT, check.usage_percent)

        if not check.would_overflow:
            with self._pending_lock:
                self._pending.pop(project_id, None)
            self._metrics.counter(ENGINE_CHECK, labels={"overflow": "false"})
            return result

        available = max(0, budget - check.requirements_tokens)
        recommendation = recommend(
            items,
            available,
            requirements_text,
            config.metadata_weights,
            type_priority=config.document_types_priority,
            now=now,
            chars_per_token=self.chars_per_token,
        )
        event = OverflowEvent(
            project_id=project_id,
            original_token_count=check.current_tokens,
            max_token_count=budget,
            documents_selected=tuple(check.document_tokens),
            recommended_documents=tuple(recommendation.document_ids),
        )
        recorded = self.recorder.record_overflow(event)
        with self._pending_lock:
            self._pending[project_id] = _PendingOverflow(
                event_id=event.event_id,
                recommended=event.recommended_documents,
                started=time.monotonic(),
            )

        self._metrics.counter(ENGINE_CHECK, labels={"overflow": "true"})
        logger.info(
            "Project %s overflows by %d tokens (%d/%d); recommending %d document(s)",
            project_id,
            check.overflow_amount,
            check.current_tokens,
            budget,
            len(recommendation.recommendations),
        )
        result["recommendations"] = _selection_dict(recommendation)
        result["event_id"] = event.event_id
        result["event_recorded"] = recorded
        return result

    def get_recommendations(
        self,
        selected_documents: Any,
        requirements_text: Any,
        max_tokens: Any = None,
        weights: Any = None,
        apply_strictness: bool = False,
        model_category: Any = None,
        *,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Rank the documents and pick the subset that fits the budget.

        The selection runs against the budget left after the requirements,
        so keeping exactly the recommended documents never overflows.
        With ``apply_strictness``, documents scoring below the configured
        strictness threshold are excluded even if they would fit.
        """
        documents = _require_documents(selected_documents)
        requirements_text = _require_requirements(requirements_text)
        config = self.config
        budget = self._budget(config, max_tokens, model_category)
        factor_weights = self._weights(config, weights)

        items, unresolved = self._resolve(documents)
        requirements_tokens = estimate_tokens(requirements_text, chars_per_token=self.chars_per_token)
        available = max(0, budget - requirements_tokens)
        result = recommend(
            items,
            available,
            requirements_text,
            factor_weights,
            type_priority=config.document_types_priority,
            min_score=config.min_relevance_score if apply_strictness else None,
            now=now,
            chars_per_token=self.chars_per_token,
        )

        data = _selection_dict(result)
        data["skipped"] = [item.to_dict() for item in _merge_skipped(unresolved, result.skipped)]
        data["requirements_tokens"] = requirements_tokens
        data["max_tokens"] = budget
        data["min_relevance_score"] = config.min_relevance_score if apply_strictness else None
        self._metrics.counter(ENGINE_RECOMMEND, labels={"strict": str(bool(apply_strictness)).lower()})
        return data

    def apply_selection(
        self,
        project_id: Any,
        selected_documents: Any,
        requirements_text: Any,
    ) -> Dict[str, Any]:
        """Record the caller's final document set.

        When the project has a pending overflow, the selection resolves it:
        ``accepted`` tells whether the caller kept exactly the recommended
        documents, and the resolution time is measured from the check.
        """
        project_id = _require_project_id(project_id)
        documents = _require_documents(selected_documents)
        requirements_text = _require_requirements(requirements_text)

        items, unresolved = self._resolve(documents)
        valid, skipped = partition_documents(items)
        final_selection = tuple(document.id for document in valid)
        total_tokens = sum(estimate_tokens(d.content, chars_per_token=self.chars_per_token) for d in valid)

        with self._pending_lock:
            pending = self._pending.pop(project_id, None)

        resolution_time_ms = None
        if pending is not None:
            resolution_time_ms = round((time.monotonic() - pending.started) * 1000, 2)
        outcome = SelectionOutcome(
            project_id=project_id,
            final_selection=final_selection,
            recommended_documents=pending.recommended if pending else (),
            total_tokens=total_tokens,
            overflow_event_id=pending.event_id if pending else None,
            resolution_time_ms=resolution_time_ms,
        )
        recorded = self.recorder.record_selection(outcome)

        data: Dict[str, Any] = {
            "final_selection": list(final_selection),
            "total_tokens": total_tokens,
            "requirements_tokens": estimate_tokens(requirements_text, chars_per_token=self.chars_per_token),
            "event_id": outcome.event_id,
            "event_recorded": recorded,
            "skipped": [item.to_dict() for item in _merge_skipped(unresolved, skipped)],
        }
        if pending is not None:
            data["accepted"] = outcome.accepted
            data["overflow_event_id"] = pending.event_id
            data["resolution_time_ms"] = resolution_time_ms
            logger.info(
                "Project %s resolved overflow %s (%s recommendation)",
                project_id,
                pending.event_id,
                "accepted" if outcome.accepted else "overrode",
            )
        return data

    def estimate(self, text: Any = None, documents: Any = None) -> Dict[str, Any]:
        """Token estimate for a text and/or a document list."""
        if text is None and documents is None:
            raise ValidationError("Provide text or documents to estimate", field="text")
        if text is not None and not isinstance(text, str):
            raise ValidationError("text must be a string", field="text")

        data: Dict[str, Any] = {
            "chars_per_token": self.chars_per_token,
            "text_tokens": estimate_tokens(text, chars_per_token=self.chars_per_token),
        }
        skipped: List[MalformedItem] = []
        if documents is not None:
            items, unresolved = self._resolve(_require_documents(documents))
            check = detect_overflow(items, 0, chars_per_token=self.chars_per_token)
            skipped = _merge_skipped(unresolved, check.skipped)
            data["document_tokens"] = check.document_tokens
            data["documents_total"] = check.current_tokens
        data["total_tokens"] = data["text_tokens"] + data.get("documents_total", 0)
        data["skipped"] = [item.to_dict() for item in skipped]
        return data

    # =========================================================================
    # Configuration
    # =========================================================================

    def _config_payload(self, config: ContextConfiguration, version: int) -> Dict[str, Any]:
        return {
            "configuration": config.to_dict(),
            "version": version,
            "min_relevance_score": config.min_relevance_score,
            "context_budgets": {name: config.context_budget(name) for name in sorted(config.model_categories)},
        }

    def get_config(self) -> Dict[str, Any]:
        config, version = self.store.snapshot()
        return self._config_payload(config, version)

    def update_config(
        self,
        patch: Any,
        *,
        actor: str = "system",
        expected_version: Any = None,
    ) -> Dict[str, Any]:
        """Apply a validated configuration patch.

        Raises:
            ConfigurationError: If the patch is invalid (nothing changes)
            VersionConflictError: If expected_version is stale
        """
        expected = _optional_int(expected_version, "expected_version")
        self.store.update(patch, actor=actor, expected_version=expected)
        return self.get_config()

    def reset_config(self, *, actor: str = "system", expected_version: Any = None) -> Dict[str, Any]:
        expected = _optional_int(expected_version, "expected_version")
        self.store.reset(actor=actor, expected_version=expected)
        return self.get_config()

    def get_config_history(self, limit: Any = None) -> Dict[str, Any]:
        limit = _optional_int(limit, "limit")
        if limit is not None and limit <= 0:
            raise ValidationError("limit must be positive", field="limit")
        entries = self.store.history(limit)
        return {
            "history": [entry.to_dict() for entry in entries],
            "count": len(entries),
            "version": self.store.version,
        }

    # =========================================================================
    # Analytics
    # =========================================================================

    def get_overflow_stats(self, project_id: Any = None, hours: Any = None) -> Dict[str, Any]:
        if project_id is not None:
            project_id = _require_project_id(project_id)
        return self.recorder.aggregate(project_id, _optional_positive_number(hours, "hours"))

    def get_dashboard(self, hours: Any = 24, project_id: Any = None) -> Dict[str, Any]:
        window = _optional_positive_number(hours, "hours")
        if project_id is not None:
            project_id = _require_project_id(project_id)
        return self.recorder.dashboard_snapshot(window if window is not None else 24, project_id)

    def get_performance_trends(self, project_id: Any = None, hours: Any = 24) -> Dict[str, Any]:
        window = _optional_positive_number(hours, "hours")
        if project_id is not None:
            project_id = _require_project_id(project_id)
        return self.recorder.performance_trends(project_id, window if window is not None else 24)

    def get_realtime_metrics(self, project_id: Any = None) -> Dict[str, Any]:
        if project_id is not None:
            project_id = _require_project_id(project_id)
        return self.recorder.realtime_metrics(project_id)

    def export_analytics(
        self,
        hours: Any = 24,
        project_id: Any = None,
        include_raw_data: bool = False,
    ) -> Dict[str, Any]:
        """Dashboard, trends and (optionally) the raw records in one document."""
        window = _optional_positive_number(hours, "hours")
        if project_id is not None:
            project_id = _require_project_id(project_id)
        return self.recorder.export(
            window if window is not None else 24,
            project_id,
            include_raw_data=bool(include_raw_data),
        )

    def record_context_build(
        self,
        project_id: Any,
        duration_ms: Any,
        token_count: Any = 0,
        document_count: Any = 0,
        success: bool = True,
        document_type: Optional[str] = None,
        error_message: Optional[str] = None,
        cache_hit: bool = False,
    ) -> Dict[str, Any]:
        """Record one context build for the performance dashboard."""
        project_id = _require_project_id(project_id)
        if isinstance(duration_ms, bool) or not isinstance(duration_ms, (int, float)) or duration_ms < 0:
            raise ValidationError("duration_ms must be a non-negative number", field="duration_ms")
        for name, value in (("token_count", token_count), ("document_count", document_count)):
            if _optional_int(value, name) is None or value < 0:
                raise ValidationError(f"{name} must be a non-negative integer", field=name)

        metric = ContextBuildMetric(
            project_id=project_id,
            duration_ms=float(duration_ms),
            token_count=token_count,
            document_count=document_count,
            success=bool(success),
            document_type=document_type,
            error_message=error_message,
            cache_hit=bool(cache_hit),
        )
        return {"event_id": metric.event_id, "recorded": self.recorder.record_context_build(metric)}

    def close(self) -> None:
        self.recorder.close()


# =============================================================================
# Construction from server configuration
# =============================================================================


def create_engine(config: "ServerConfig") -> ContextOverflowEngine:
    """Build an engine wired to the storage described by *config*."""
    storage_dir = config.storage.storage_dir

    persistence = None
    if config.storage.persist_config:
        persistence = FileConfigurationPersistence(storage_dir / "configuration.json")
    store = ConfigurationStore(
        persistence=persistence,
        history_limit=config.engine.history_limit,
    )

    analytics = config.analytics
    recorder = AnalyticsRecorder(
        JsonlAnalyticsPersistence(storage_dir / "analytics") if config.storage.persist_analytics else None,
        max_records=analytics.max_records,
        queue_size=analytics.queue_size,
        max_retries=analytics.max_retries,
        base_delay=analytics.base_delay,
        max_delay=analytics.max_delay,
        poll_interval_seconds=analytics.poll_interval_seconds,
    )
    recorder.load()

    provider = None
    if config.engine.documents_file is not None:
        provider = JsonFileDocumentProvider(config.engine.documents_file)

    return ContextOverflowEngine(
        store,
        recorder,
        provider,
        chars_per_token=config.engine.chars_per_token,
    )


_engine: Optional[ContextOverflowEngine] = None
_engine_lock = threading.Lock()


def get_engine(config: Optional["ServerConfig"] = None) -> ContextOverflowEngine:
    """Return the process-wide engine, creating it from *config* on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            if config is None:
                from context_gate_mcp.config.server import get_config

                config = get_config()
            _engine = create_engine(config)
        return _engine


def set_engine(engine: Optional[ContextOverflowEngine]) -> None:
    """Replace the process-wide engine (None clears it)."""
    global _engine
    with _engine_lock:
        _engine = engine
