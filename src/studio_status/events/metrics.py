"""Prometheus metrics for status workflow observability.

Metrics Defined:
- studio_status_transitions_total: Counter of committed status transitions
- studio_transitions_rejected_total: Counter of rejected transitions
- studio_notifications_total: Counter of notification dispatch outcomes
- studio_projects_by_status: Gauge of current projects per status

The MetricsEventEmitter updates the counters from workflow events. The
per-status gauge is refreshed by the aggregation service whenever it
computes status statistics.
"""

import logging
from typing import Dict, Mapping, Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)

from studio_status.events.emitter import EventEmitter
from studio_status.events.models import EventType, StatusEvent


logger = logging.getLogger(__name__)


# Project statuses for the gauge metric
# These match ProjectStatus values from status/vocabulary.py
PROJECT_STATUSES = (
    "draft",
    "shooting_scheduled",
    "shooting_completed",
    "in_editing",
    "editing_completed",
    "delivered",
    "completed",
)


class StudioMetrics:
    """Container for all status workflow Prometheus metrics.

    Supports custom registries so tests can inspect metric values without
    touching the process-wide default registry.

    Metrics:
        status_transitions_total: Committed transitions.
            Labels: from_status, to_status

        transitions_rejected_total: Refused transitions.
            Labels: reason (illegal, concurrent)

        notifications_total: Notification dispatch outcomes.
            Labels: result (sent, failed)

        projects_by_status: Current count of projects per status.
            Labels: status

    Example:
        >>> metrics = StudioMetrics(registry=CollectorRegistry())
        >>> metrics.record_transition("draft", "shooting_scheduled")
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or REGISTRY

        self.status_transitions_total = Counter(
            "studio_status_transitions_total",
            "Total number of committed project status transitions",
            labelnames=["from_status", "to_status"],
            registry=self.registry,
        )

        self.transitions_rejected_total = Counter(
            "studio_transitions_rejected_total",
            "Total number of rejected project status transitions",
            labelnames=["reason"],
            registry=self.registry,
        )

        self.notifications_total = Counter(
            "studio_notifications_total",
            "Total number of status notifications by outcome",
            labelnames=["result"],
            registry=self.registry,
        )

        self.projects_by_status = Gauge(
            "studio_projects_by_status",
            "Current number of projects in each status",
            labelnames=["status"],
            registry=self.registry,
        )

        for status in PROJECT_STATUSES:
            self.projects_by_status.labels(status=status).set(0)

    def record_transition(self, from_status: str, to_status: str) -> None:
        """Record a committed status transition."""
        self.status_transitions_total.labels(
            from_status=from_status,
            to_status=to_status,
        ).inc()

    def record_rejection(self, reason: str) -> None:
        """Record a rejected transition."""
        self.transitions_rejected_total.labels(reason=reason).inc()

    def record_notification(self, sent: bool) -> None:
        """Record a notification dispatch outcome."""
        result = "sent" if sent else "failed"
        self.notifications_total.labels(result=result).inc()

    def set_status_counts(self, counts: Mapping[str, int]) -> None:
        """Set the per-status gauge from a statistics snapshot.

        Args:
            counts: Count per status, keyed by ProjectStatus or its value.
                    Statuses missing from the mapping are set to 0.
        """
        by_value: Dict[str, int] = {
            getattr(status, "value", status): count
            for status, count in counts.items()
        }
        for status in PROJECT_STATUSES:
            self.projects_by_status.labels(status=status).set(
                max(0, by_value.get(status, 0))
            )


# Global metrics instance for the default registry
_default_metrics: Optional[StudioMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> StudioMetrics:
    """Get or create the workflow metrics instance.

    Args:
        registry: Optional Prometheus registry. If None, returns the
                  global metrics instance for the default registry.

    Returns:
        StudioMetrics: The metrics instance.
    """
    global _default_metrics

    if registry is not None:
        return StudioMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = StudioMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Generate Prometheus text-format output for scraping."""
    return generate_latest(registry or REGISTRY)


class MetricsEventEmitter(EventEmitter):
    """Event emitter that updates Prometheus metrics.

    - STATUS_CHANGED: Increments status_transitions_total
    - TRANSITION_REJECTED: Increments transitions_rejected_total
    - NOTIFICATION_SENT / NOTIFICATION_FAILED: Increments notifications_total
    - PERSISTENCE_ERROR: Not counted

    Example:
        >>> emitter = MetricsEventEmitter(metrics=StudioMetrics(CollectorRegistry()))
        >>> await emitter.emit(event)
    """

    def __init__(
        self,
        metrics: Optional[StudioMetrics] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        if metrics is not None:
            self._metrics = metrics
        else:
            self._metrics = get_metrics(registry)

    @property
    def metrics(self) -> StudioMetrics:
        return self._metrics

    async def emit(self, event: StatusEvent) -> None:
        """Update metrics based on the workflow event."""
        try:
            if event.event_type == EventType.STATUS_CHANGED:
                self._metrics.record_transition(
                    event.details.get("from_status", "unknown"),
                    event.details.get("to_status", "unknown"),
                )
            elif event.event_type == EventType.TRANSITION_REJECTED:
                self._metrics.record_rejection(
                    event.details.get("reason", "unknown")
                )
            elif event.event_type == EventType.NOTIFICATION_SENT:
                self._metrics.record_notification(sent=True)
            elif event.event_type == EventType.NOTIFICATION_FAILED:
                self._metrics.record_notification(sent=False)
        except Exception as e:
            logger.error(
                "Failed to update metrics for event %s: %s",
                event.event_type.value,
                str(e),
                extra={
                    "event_type": event.event_type.value,
                    "project_id": event.project_id,
                    "error": str(e),
                },
            )
