"""Overflow, selection and context-build analytics."""

from .models import ContextBuildMetric, OverflowEvent, SelectionOutcome
from .persistence import RECORD_KINDS, JsonlAnalyticsPersistence
from .recorder import AnalyticsRecorder

__all__ = [
    "AnalyticsRecorder",
    "ContextBuildMetric",
    "JsonlAnalyticsPersistence",
    "OverflowEvent",
    "RECORD_KINDS",
    "SelectionOutcome",
]
