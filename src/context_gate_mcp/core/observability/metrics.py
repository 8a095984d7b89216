"""Metrics collection for observability.

Provides structured metric emission to the standard logger, and the names
of the metrics context-gate emits. Every name is prefixed with
``context_gate.`` on output.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

# Tool and CLI surfaces
TOOL_INVOCATIONS = "tool.invocations"
TOOL_LATENCY = "tool.latency"
CLI_INVOCATIONS = "cli.invocations"
CLI_LATENCY = "cli.latency"

# Decision engine (labels: overflow, strict)
ENGINE_CHECK = "engine.check"
ENGINE_RECOMMEND = "engine.recommend"
# Budget usage of a checked selection, in percent
ENGINE_USAGE_PERCENT = "engine.usage_percent"

# Configuration store (labels: status, action)
CONFIG_UPDATE = "config.update"
CONFIG_PERSIST = "config.persist"

# Analytics recorder (labels: kind, status)
ANALYTICS_RECORDED = "analytics.recorded"
ANALYTICS_PERSIST = "analytics.persist"


class MetricType(Enum):
    """Types of metrics that can be emitted."""

    COUNTER = "counter"
    GAUGE = "gauge"
    TIMER = "timer"


@dataclass
class Metric:
    """Structured metric data."""

    name: str
    value: Union[int, float]
    metric_type: MetricType
    labels: Dict[str, str] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "value": self.value,
            "type": self.metric_type.value,
            "labels": self.labels,
            "timestamp": self.timestamp,
        }


class MetricsCollector:
    """
    Collects and emits metrics to the standard logger.

    Metrics are logged as structured records for easy parsing by
    log aggregation systems (e.g., Datadog, Splunk, CloudWatch).
    """

    def __init__(self, prefix: str = "context_gate"):
        self.prefix = prefix
        self._logger = logging.getLogger(f"{__name__}.metrics")

    def emit(self, metric: Metric) -> None:
        """Emit a metric to the logger.

        Args:
            metric: The Metric to emit
        """
        self._logger.info(f"METRIC: {self.prefix}.{metric.name}", extra={"metric": metric.to_dict()})

    def counter(self, name: str, value: int = 1, labels: Optional[Dict[str, str]] = None) -> None:
        """Emit a counter metric."""
        self.emit(
            Metric(
                name=name,
                value=value,
                metric_type=MetricType.COUNTER,
                labels=labels or {},
            )
        )

    def gauge(
        self,
        name: str,
        value: Union[int, float],
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        """Emit a gauge metric."""
        self.emit(
            Metric(
                name=name,
                value=value,
                metric_type=MetricType.GAUGE,
                labels=labels or {},
            )
        )

    def timer(self, name: str, duration_ms: float, labels: Optional[Dict[str, str]] = None) -> None:
        """Emit a timer metric (duration in milliseconds)."""
        self.emit(
            Metric(
                name=name,
                value=duration_ms,
                metric_type=MetricType.TIMER,
                labels=labels or {},
            )
        )


# Global metrics collector
_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return _metrics
