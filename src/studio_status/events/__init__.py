"""Status workflow event emission and metrics.

Event Emitters:
- EventEmitter: Abstract base class for event emission
- LoggingEventEmitter: Emits events as structured log entries
- CompositeEventEmitter: Emits to multiple sinks simultaneously
- MetricsEventEmitter: Emits events as Prometheus metrics
- NullEventEmitter: Discards events (for testing)

Metrics:
- StudioMetrics: Container for all Prometheus metrics
- get_metrics: Get or create the metrics instance
- generate_metrics_output: Generate Prometheus text-format output
"""

from studio_status.events.emitter import (
    CompositeEventEmitter,
    EventEmitter,
    EventSinkType,
    LoggingEventEmitter,
    NullEventEmitter,
    create_event_emitter,
)
from studio_status.events.metrics import (
    MetricsEventEmitter,
    StudioMetrics,
    generate_metrics_output,
    get_metrics,
)
from studio_status.events.models import EventType, StatusEvent

__all__ = [
    # Event models
    "EventType",
    "StatusEvent",
    # Event emitters
    "EventEmitter",
    "LoggingEventEmitter",
    "CompositeEventEmitter",
    "MetricsEventEmitter",
    "NullEventEmitter",
    # Metrics
    "StudioMetrics",
    "get_metrics",
    "generate_metrics_output",
    # Factory and configuration
    "EventSinkType",
    "create_event_emitter",
]
