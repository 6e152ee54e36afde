"""Status workflow event models for observability.

This module defines the data models for workflow events:
- EventType: Enum of all event types emitted by the status workflow
- StatusEvent: Structured event with all required metadata

Events are emitted for monitoring, alerting, and debugging. They are
separate from the status ledger: the ledger is the audit trail, events
are telemetry and may be dropped by a sink without losing history.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events emitted by the status workflow.

    Attributes:
        STATUS_CHANGED: A project moved to a new status.
        TRANSITION_REJECTED: A transition was refused (illegal or concurrent).
        NOTIFICATION_SENT: A client notification was dispatched.
        NOTIFICATION_FAILED: A client notification could not be dispatched.
        PERSISTENCE_ERROR: The repository failed to read or write a project.
    """

    STATUS_CHANGED = "status_changed"
    TRANSITION_REJECTED = "transition_rejected"
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_FAILED = "notification_failed"
    PERSISTENCE_ERROR = "persistence_error"


class StatusEvent(BaseModel):
    """Structured event emitted by the status workflow.

    Attributes:
        event_type: The category of event.
        project_id: The project the event is about.
        timestamp: When the event occurred (UTC timezone).
        details: Additional context specific to the event type.

    Details Field Conventions:
        For STATUS_CHANGED events:
            - from_status, to_status: The transition
            - changed_by: Acting user
            - progress: Progress percentage after the change

        For TRANSITION_REJECTED events:
            - reason: "illegal" or "concurrent"
            - from_status, to_status: The rejected pair, when known

        For NOTIFICATION_SENT / NOTIFICATION_FAILED events:
            - status: The status the notification was about
            - error: Error message (failures only)

        For PERSISTENCE_ERROR events:
            - operation: "load" or "save"
            - error: Error message
    """

    event_type: EventType = Field(
        ...,
        description="The category of event being emitted",
    )

    project_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the project the event is about",
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC timezone)",
    )

    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context specific to the event type",
    )

    def to_log_dict(self) -> Dict[str, Any]:
        """Convert event to a flat dictionary for structured logging.

        Example:
            >>> event = StatusEvent(
            ...     event_type=EventType.STATUS_CHANGED,
            ...     project_id="wedding-2024-017",
            ...     details={"to_status": "delivered"},
            ... )
            >>> event.to_log_dict()["event_type"]
            'status_changed'
        """
        return {
            "event_type": self.event_type.value,
            "project_id": self.project_id,
            "timestamp": self.timestamp.isoformat(),
            **self.details,
        }
