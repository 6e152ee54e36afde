"""Event emitter implementations for status workflow observability.

This module defines an abstract EventEmitter interface and concrete
implementations for different event sinks:

- LoggingEventEmitter: Emits events as structured log entries
- CompositeEventEmitter: Emits to multiple sinks simultaneously
- NullEventEmitter: Discards events

The emitter abstraction lets the workflow report what happened without
coupling to specific monitoring infrastructure.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from studio_status.events.models import EventType, StatusEvent


logger = logging.getLogger(__name__)


class EventSinkType(str, Enum):
    """Types of event sinks supported by the workflow.

    Attributes:
        LOGGING: Emit events as structured log entries.
        METRICS: Emit events as Prometheus metrics.
    """

    LOGGING = "logging"
    METRICS = "metrics"


class EventEmitter(ABC):
    """Abstract base class for workflow event emitters.

    Implementations should be:
    - Async-safe: emit() is called from async contexts
    - Non-blocking: emit() should not hold up a status transition
    - Fault-tolerant: emit() failures should not fail a transition

    Example:
        >>> class MyEmitter(EventEmitter):
        ...     async def emit(self, event: StatusEvent) -> None:
        ...         pass
    """

    @abstractmethod
    async def emit(self, event: StatusEvent) -> None:
        """Emit a workflow event.

        Args:
            event: The workflow event to emit.
        """
        pass

    async def close(self) -> None:
        """Close the emitter and release resources.

        The default implementation does nothing.
        """
        pass


class LoggingEventEmitter(EventEmitter):
    """Event emitter that logs events using structured logging.

    Events are logged at different levels based on event type:

    - STATUS_CHANGED: INFO level
    - NOTIFICATION_SENT: INFO level
    - TRANSITION_REJECTED: WARNING level
    - NOTIFICATION_FAILED: WARNING level
    - PERSISTENCE_ERROR: ERROR level

    Example:
        >>> emitter = LoggingEventEmitter()
        >>> await emitter.emit(event)
        # Logs: INFO - Status event: status_changed for wedding-2024-017
    """

    def __init__(self, logger_name: Optional[str] = None):
        """Initialize the logging event emitter.

        Args:
            logger_name: Optional logger name. If not provided, uses
                         the module logger.
        """
        self._logger = (
            logging.getLogger(logger_name)
            if logger_name
            else logger
        )
        self._log_level_map = {
            EventType.STATUS_CHANGED: logging.INFO,
            EventType.NOTIFICATION_SENT: logging.INFO,
            EventType.TRANSITION_REJECTED: logging.WARNING,
            EventType.NOTIFICATION_FAILED: logging.WARNING,
            EventType.PERSISTENCE_ERROR: logging.ERROR,
        }

    async def emit(self, event: StatusEvent) -> None:
        """Emit event as a structured log entry.

        Args:
            event: The workflow event to log.
        """
        log_level = self._log_level_map.get(event.event_type, logging.INFO)

        self._logger.log(
            log_level,
            "Status event: %s for %s",
            event.event_type.value,
            event.project_id,
            extra=event.to_log_dict(),
        )


class CompositeEventEmitter(EventEmitter):
    """Event emitter that delegates to multiple child emitters.

    Failures in one emitter do not affect others. Each emitter is called
    independently and errors are logged but not propagated.

    Example:
        >>> composite = CompositeEventEmitter(
        ...     [LoggingEventEmitter(), MetricsEventEmitter()]
        ... )
        >>> await composite.emit(event)  # Emits to both sinks
    """

    def __init__(self, emitters: Optional[List[EventEmitter]] = None):
        self._emitters: List[EventEmitter] = emitters or []

    def add_emitter(self, emitter: EventEmitter) -> None:
        """Add a child emitter to the composite."""
        self._emitters.append(emitter)

    @property
    def emitters(self) -> List[EventEmitter]:
        """Child emitters (copy)."""
        return list(self._emitters)

    async def emit(self, event: StatusEvent) -> None:
        """Emit event to all child emitters.

        Args:
            event: The workflow event to emit.
        """
        for emitter in self._emitters:
            try:
                await emitter.emit(event)
            except Exception as e:
                logger.error(
                    "Failed to emit event to %s: %s",
                    type(emitter).__name__,
                    str(e),
                    extra={
                        "emitter_type": type(emitter).__name__,
                        "event_type": event.event_type.value,
                        "project_id": event.project_id,
                        "error": str(e),
                    },
                )

    async def close(self) -> None:
        """Close all child emitters, logging any failures."""
        for emitter in self._emitters:
            try:
                await emitter.close()
            except Exception as e:
                logger.error(
                    "Failed to close emitter %s: %s",
                    type(emitter).__name__,
                    str(e),
                )


class NullEventEmitter(EventEmitter):
    """Event emitter that discards all events."""

    async def emit(self, event: StatusEvent) -> None:
        pass


def create_event_emitter(
    sink_types: Optional[List[EventSinkType]] = None,
    logger_name: Optional[str] = None,
) -> EventEmitter:
    """Create an event emitter for the requested sinks.

    If multiple sink types are requested, a CompositeEventEmitter is
    returned that delegates to all of them.

    Args:
        sink_types: Event sink types to enable. If None or empty,
                    returns a LoggingEventEmitter as the default.
        logger_name: Optional logger name for the LoggingEventEmitter.

    Returns:
        An EventEmitter configured for the requested sinks.

    Example:
        >>> emitter = create_event_emitter([EventSinkType.LOGGING])
        >>> isinstance(emitter, LoggingEventEmitter)
        True
    """
    if not sink_types:
        return LoggingEventEmitter(logger_name=logger_name)

    emitters: List[EventEmitter] = []

    for sink_type in sink_types:
        if sink_type == EventSinkType.LOGGING:
            emitters.append(LoggingEventEmitter(logger_name=logger_name))
        elif sink_type == EventSinkType.METRICS:
            # Imported here because metrics.py imports from this module
            from studio_status.events.metrics import MetricsEventEmitter
            emitters.append(MetricsEventEmitter())
        else:
            logger.warning(
                "Unknown event sink type: %s, skipping",
                sink_type,
            )

    if len(emitters) == 1:
        return emitters[0]

    return CompositeEventEmitter(emitters)
