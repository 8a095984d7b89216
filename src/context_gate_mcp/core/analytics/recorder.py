"""Analytics recorder.

Records overflow events, selection outcomes and context-build metrics in
bounded in-memory lists and hands them to a background worker for
persistence. Recording is fire-and-forget: the ``record_*`` methods return
whether the record was accepted and never raise into the caller.

Persistence failures are retried with exponential backoff and jitter on the
worker thread; a record whose retries are exhausted is logged and counted
as failed, and stays in memory.
"""

from __future__ import annotations

import logging
import math
import queue
import random
import threading
import time
from collections import Counter, OrderedDict, deque
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from context_gate_mcp.core.errors.storage import TransientPersistenceFailure
from context_gate_mcp.core.observability import get_metrics
from context_gate_mcp.core.observability.metrics import ANALYTICS_PERSIST, ANALYTICS_RECORDED
from context_gate_mcp.core.resilience import retry_with_backoff

from .models import ContextBuildMetric, OverflowEvent, SelectionOutcome
from .persistence import KIND_BUILD, KIND_OVERFLOW, KIND_SELECTION, JsonlAnalyticsPersistence

logger = logging.getLogger(__name__)

# Most recent records kept in memory per kind
DEFAULT_MAX_RECORDS = 1000

DEFAULT_QUEUE_SIZE = 1000

# Event ids remembered for duplicate detection, independent of max_records
DEFAULT_SEEN_IDS = 100_000

# Dashboard poll contract (seconds between client refreshes)
DEFAULT_POLL_INTERVAL_SECONDS = 30

REALTIME_WINDOW_MINUTES = 5

# Relative change (percent) between recent and earlier values that counts as a trend
TREND_CHANGE_PERCENT = 10

EXPORT_FORMAT_VERSION = "1.0"

_STOP = object()

R = TypeVar("R", OverflowEvent, SelectionOutcome, ContextBuildMetric)


def _mean(values: Sequence[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return float(ordered[mid])
    return (ordered[mid - 1] + ordered[mid]) / 2


def _percentile(values: Sequence[float], percentile: float) -> float:
    """Nearest-rank percentile."""
    if not values:
        return 0.0
    ordered = sorted(values)
    index = math.ceil(percentile / 100 * len(ordered)) - 1
    return float(ordered[max(0, index)])


def _trend(values: Sequence[float]) -> str:
    """Label a series ``increasing``, ``decreasing`` or ``stable``.

    Compares the mean of the last (up to three) values with the mean of the
    values before them. A relative change beyond ``TREND_CHANGE_PERCENT``
    is a trend.
    """
    if len(values) < 2:
        return "stable"
    window = min(3, len(values) - 1)
    recent = sum(values[-window:]) / window
    earlier_values = values[:-window]
    earlier = sum(earlier_values) / len(earlier_values)
    if earlier == 0:
        return "increasing" if recent > 0 else "stable"
    change = (recent - earlier) / earlier * 100
    if change > TREND_CHANGE_PERCENT:
        return "increasing"
    if change < -TREND_CHANGE_PERCENT:
        return "decreasing"
    return "stable"


def _hour_bucket(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.replace(minute=0, second=0, microsecond=0)


class AnalyticsRecorder:
    """Collects analytics records and persists them in the background.

    Args:
        persistence: Ledger storage; records stay in memory only when None
        max_records: Most recent records kept in memory per kind
        seen_ids: Event ids remembered for duplicate detection; at least
            max_records. Ids outlive the records evicted from memory
        queue_size: Capacity of the persistence queue; records arriving
            while it is full are not persisted (counted as dropped)
        max_retries: Retries for a transient persistence failure
        base_delay: First backoff delay in seconds
        max_delay: Backoff delay cap in seconds
        poll_interval_seconds: Refresh interval advertised to dashboards
        rng: Random source for backoff jitter (tests)
        sleep_func: Sleep used between retries (tests)
        clock: Current-time source for time-window filtering (tests)
    """

    def __init__(
        self,
        persistence: Optional[JsonlAnalyticsPersistence] = None,
        *,
        max_records: int = DEFAULT_MAX_RECORDS,
        seen_ids: int = DEFAULT_SEEN_IDS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        max_retries: int = 3,
        base_delay: float = 0.1,
        max_delay: float = 5.0,
        poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS,
        rng: Optional[random.Random] = None,
        sleep_func: Optional[Callable[[float], None]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._persistence = persistence
        self._max_records = max_records
        self._seen_limit = max(seen_ids, max_records)
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
        self.poll_interval_seconds = poll_interval_seconds
        self._rng = rng
        self._sleep = sleep_func
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._lock = threading.Lock()
        self._overflows: Deque[OverflowEvent] = deque()
        self._selections: Deque[SelectionOutcome] = deque()
        self._builds: Deque[ContextBuildMetric] = deque()
        self._seen: "OrderedDict[str, None]" = OrderedDict()
        self._sequence = 0

        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=queue_size)
        self._worker: Optional[threading.Thread] = None
        self._worker_lock = threading.Lock()
        self._closed = False
        self._persisted = 0
        self._failed = 0
        self._dropped = 0
        self._metrics = get_metrics()

    # =========================================================================
    # Recording
    # =========================================================================

    def record_overflow(self, event: OverflowEvent) -> bool:
        """Record an overflow event. Returns False for duplicates or errors."""
        return self._record(event, self._overflows, KIND_OVERFLOW)

    def record_selection(self, outcome: SelectionOutcome) -> bool:
        """Record the document set a caller finally used."""
        return self._record(outcome, self._selections, KIND_SELECTION)

    def record_context_build(self, metric: ContextBuildMetric) -> bool:
        """Record the timing and size of a context build."""
        return self._record(metric, self._builds, KIND_BUILD)

    def _record(self, record: R, target: Deque[R], kind: str) -> bool:
        try:
            if not self._remember(record, target):
                logger.debug("Ignoring duplicate %s record %s", kind, record.event_id)
                return False
            self._metrics.counter(ANALYTICS_RECORDED, labels={"kind": kind})
            if self._persistence is not None:
                self._enqueue(kind, record.to_dict())
            return True
        except Exception:
            logger.exception("Failed to record %s analytics", kind)
            return False

    def _remember(self, record: R, target: Deque[R]) -> bool:
        with self._lock:
            if record.event_id in self._seen:
                return False
            target.append(record)
            self._seen[record.event_id] = None
            while len(target) > self._max_records:
                target.popleft()
            while len(self._seen) > self._seen_limit:
                self._seen.popitem(last=False)
            self._sequence += 1
            return True

    def _enqueue(self, kind: str, payload: Dict[str, Any]) -> None:
        if self._closed:
            self._count_dropped(kind, "recorder closed")
            return
        self._ensure_worker()
        try:
            self._queue.put_nowait((kind, payload))
        except queue.Full:
            self._count_dropped(kind, "persistence queue full")

    def _count_dropped(self, kind: str, reason: str) -> None:
        with self._lock:
            self._dropped += 1
        self._metrics.counter(ANALYTICS_PERSIST, labels={"kind": kind, "status": "dropped"})
        logger.warning("Not persisting %s record: %s", kind, reason)

    # =========================================================================
    # Background persistence
    # =========================================================================

    def _ensure_worker(self) -> None:
        with self._worker_lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(
                    target=self._run,
                    name="context-gate-analytics",
                    daemon=True,
                )
                self._worker.start()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                kind, payload = item
                self._persist(kind, payload)
            finally:
                self._queue.task_done()

    def _persist(self, kind: str, payload: Dict[str, Any]) -> None:
        persistence = self._persistence
        if persistence is None:
            return
        try:
            retry_with_backoff(
                lambda: persistence.append(kind, payload),
                max_retries=self._max_retries,
                base_delay=self._base_delay,
                max_delay=self._max_delay,
                retryable_exceptions=[TransientPersistenceFailure],
                rng=self._rng,
                sleep_func=self._sleep,
            )
        except Exception as exc:
            # Keep the worker alive
            with self._lock:
                self._failed += 1
            self._metrics.counter(ANALYTICS_PERSIST, labels={"kind": kind, "status": "error"})
            logger.error(
                "Giving up persisting %s record %s after %d retries: %s",
                kind,
                payload.get("event_id"),
                self._max_retries,
                exc,
            )
            return

        with self._lock:
            self._persisted += 1
        self._metrics.counter(ANALYTICS_PERSIST, labels={"kind": kind, "status": "success"})

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until every queued record has been handled.

        Returns:
            True if the queue drained, False if *timeout* elapsed first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                if deadline is None:
                    self._queue.all_tasks_done.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Drain the queue and stop the worker. Later records stay in memory."""
        if self._closed:
            return
        drained = self.flush(timeout)
        self._closed = True
        worker = self._worker
        if worker is not None and worker.is_alive():
            self._queue.put(_STOP)
            worker.join(timeout)
        if not drained:
            logger.warning("Analytics recorder closed with %d records still queued", self._queue.qsize())

    def load(self) -> int:
        """Rehydrate in-memory records from persistence.

        Returns:
            Number of records loaded
        """
        if self._persistence is None:
            return 0
        loaded = 0
        sources: Tuple[Tuple[str, Callable[[Dict[str, Any]], Any], Deque[Any]], ...] = (
            (KIND_OVERFLOW, OverflowEvent.from_dict, self._overflows),
            (KIND_SELECTION, SelectionOutcome.from_dict, self._selections),
            (KIND_BUILD, ContextBuildMetric.from_dict, self._builds),
        )
        for kind, parse, target in sources:
            try:
                rows = self._persistence.read(kind)
            except TransientPersistenceFailure as exc:
                logger.error("Could not load %s analytics: %s", kind, exc)
                continue
            for row in rows:
                try:
                    record = parse(row)
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning("Skipping unreadable %s record: %s", kind, exc)
                    continue
                if self._remember(record, target):
                    loaded += 1
        logger.info("Loaded %d analytics records from %s", loaded, self._persistence.storage_dir)
        return loaded

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def sequence(self) -> int:
        """Monotonic count of accepted records; changes whenever data does."""
        return self._sequence

    def stats(self) -> Dict[str, Any]:
        """Persistence counters."""
        with self._lock:
            return {
                "enabled": self._persistence is not None,
                "persisted": self._persisted,
                "failed": self._failed,
                "dropped": self._dropped,
                "pending": self._queue.unfinished_tasks,
            }

    def overflow_events(self, project_id: Optional[str] = None, hours: Optional[float] = None) -> List[OverflowEvent]:
        with self._lock:
            records = list(self._overflows)
        return self._filter(records, project_id, hours)

    def selection_outcomes(
        self, project_id: Optional[str] = None, hours: Optional[float] = None
    ) -> List[SelectionOutcome]:
        with self._lock:
            records = list(self._selections)
        return self._filter(records, project_id, hours)

    def context_builds(
        self, project_id: Optional[str] = None, hours: Optional[float] = None
    ) -> List[ContextBuildMetric]:
        with self._lock:
            records = list(self._builds)
        return self._filter(records, project_id, hours)

    def _filter(self, records: Iterable[R], project_id: Optional[str], hours: Optional[float]) -> List[R]:
        cutoff = self._clock() - timedelta(hours=hours) if hours is not None else None
        return [
            record
            for record in records
            if (project_id is None or record.project_id == project_id)
            and (cutoff is None or record.timestamp >= cutoff)
        ]

    def aggregate(self, project_id: Optional[str] = None, hours: Optional[float] = None) -> Dict[str, Any]:
        """Overflow and selection statistics.

        An overflow event counts as overridden when it was flagged so at
        record time or when the selection resolving it differs from the
        recommendation. Its resolution time comes from the event itself or
        from that selection.
        """
        events = self.overflow_events(project_id, hours)
        selections = self.selection_outcomes(project_id, hours)
        resolutions = {s.overflow_event_id: s for s in selections if s.overflow_event_id}

        overridden = 0
        resolution_times: List[float] = []
        for event in events:
            outcome = resolutions.get(event.event_id)
            if event.user_override or (outcome is not None and not outcome.accepted):
                overridden += 1
            if event.resolution_time_ms is not None:
                resolution_times.append(event.resolution_time_ms)
            elif outcome is not None and outcome.resolution_time_ms is not None:
                resolution_times.append(outcome.resolution_time_ms)

        amounts = [event.overflow_amount for event in events]
        accepted = sum(1 for s in selections if s.accepted)
        return {
            "project_id": project_id,
            "total_overflow_events": len(events),
            "resolved_overflow_events": sum(1 for e in events if e.event_id in resolutions),
            "average_overflow_amount": _mean(amounts),
            "max_overflow_amount": max(amounts, default=0),
            "average_resolution_time_ms": _mean(resolution_times),
            "user_override_rate": _percent(overridden, len(events)),
            "total_selections": len(selections),
            "recommendation_acceptance_rate": _percent(accepted, len(selections)),
        }

    def build_performance(self, project_id: Optional[str] = None, hours: Optional[float] = None) -> Dict[str, Any]:
        """Context-build duration, size and error statistics."""
        builds = self.context_builds(project_id, hours)
        durations = [b.duration_ms for b in builds]
        failed = [b for b in builds if not b.success]

        by_type: Dict[str, List[ContextBuildMetric]] = {}
        for build in builds:
            by_type.setdefault(build.document_type or "unknown", []).append(build)

        return {
            "total_builds": len(builds),
            "average_duration_ms": _mean(durations),
            "median_duration_ms": _median(durations),
            "p95_duration_ms": _percentile(durations, 95),
            "average_tokens": _mean([b.token_count for b in builds]),
            "max_tokens": max((b.token_count for b in builds), default=0),
            "error_rate": _percent(len(failed), len(builds)),
            "error_types": dict(Counter(b.error_message or "unknown" for b in failed)),
            "performance_by_document_type": {
                doc_type: {
                    "count": len(group),
                    "average_duration_ms": _mean([b.duration_ms for b in group]),
                    "success_rate": _percent(sum(1 for b in group if b.success), len(group)),
                }
                for doc_type, group in sorted(by_type.items())
            },
        }

    def dashboard_snapshot(self, hours: float = 24, project_id: Optional[str] = None) -> Dict[str, Any]:
        """System overview for dashboards polling every ``poll_interval_seconds``.

        ``sequence`` increases whenever a new record is accepted, so a client
        can skip re-rendering when it has not changed.
        """
        builds = self.context_builds(project_id, hours)
        events = self.overflow_events(project_id, hours)
        successful = sum(1 for b in builds if b.success)

        overview = {
            "total_context_builds": len(builds),
            "successful_builds": successful,
            "failed_builds": len(builds) - successful,
            "success_rate": _percent(successful, len(builds)),
            "overflow_events": len(events),
            "average_overflow_amount": _mean([e.overflow_amount for e in events]),
            "total_tokens_processed": sum(b.token_count for b in builds),
            "total_documents_processed": sum(b.document_count for b in builds),
            "average_build_time_ms": _mean([b.duration_ms for b in builds]),
            "cache_hit_rate": _percent(sum(1 for b in builds if b.cache_hit), len(builds)),
        }
        return {
            "generated_at": self._clock().isoformat(),
            "time_range_hours": hours,
            "project_filter": project_id,
            "sequence": self.sequence,
            "poll_interval_seconds": self.poll_interval_seconds,
            "system_overview": overview,
            "context_performance": self.build_performance(project_id, hours),
            "overflow_analytics": self.aggregate(project_id, hours),
            "persistence": self.stats(),
        }

    def performance_trends(self, project_id: Optional[str] = None, hours: float = 24) -> Dict[str, Any]:
        """Context builds bucketed by UTC hour, with duration and volume trends."""
        buckets: Dict[datetime, List[ContextBuildMetric]] = {}
        for build in self.context_builds(project_id, hours):
            buckets.setdefault(_hour_bucket(build.timestamp), []).append(build)

        ordered = sorted(buckets.items())
        durations = [sum(b.duration_ms for b in group) / len(group) for _, group in ordered]
        return {
            "time_range_hours": hours,
            "project_filter": project_id,
            "performance_over_time": [
                {
                    "hour": hour.isoformat(),
                    "build_count": len(group),
                    "average_duration_ms": round(duration, 2),
                    "success_rate": _percent(sum(1 for b in group if b.success), len(group)),
                }
                for (hour, group), duration in zip(ordered, durations)
            ],
            "duration_trend": _trend(durations),
            "build_volume_trend": _trend([len(group) for _, group in ordered]),
        }

    def realtime_metrics(self, project_id: Optional[str] = None) -> Dict[str, Any]:
        """Activity over the last ``REALTIME_WINDOW_MINUTES`` minutes."""
        window_hours = REALTIME_WINDOW_MINUTES / 60
        builds = self.context_builds(project_id, window_hours)
        return {
            "window_minutes": REALTIME_WINDOW_MINUTES,
            "project_filter": project_id,
            "active_builds": len(builds),
            "failed_builds": sum(1 for b in builds if not b.success),
            "builds_per_minute": round(len(builds) / REALTIME_WINDOW_MINUTES, 2),
            "overflow_events": len(self.overflow_events(project_id, window_hours)),
            "selections": len(self.selection_outcomes(project_id, window_hours)),
            "sequence": self.sequence,
            "last_update_time": self._clock().isoformat(),
        }

    def export(
        self,
        hours: float = 24,
        project_id: Optional[str] = None,
        *,
        include_raw_data: bool = False,
    ) -> Dict[str, Any]:
        """Dashboard snapshot plus trends, optionally with the raw records."""
        data = self.dashboard_snapshot(hours, project_id)
        data["performance_trends"] = self.performance_trends(project_id, hours)
        if include_raw_data:
            data["raw_data"] = {
                "overflow_events": [e.to_dict() for e in self.overflow_events(project_id, hours)],
                "selection_outcomes": [s.to_dict() for s in self.selection_outcomes(project_id, hours)],
                "context_builds": [b.to_dict() for b in self.context_builds(project_id, hours)],
            }
        data["export_metadata"] = {
            "format": "json",
            "version": EXPORT_FORMAT_VERSION,
            "exported_at": self._clock().isoformat(),
            "time_range_hours": hours,
            "include_raw_data": include_raw_data,
        }
        return data
