"""Project status workflow.

This package manages a studio project's progression through production:
- draft → shooting_scheduled → shooting_completed → in_editing
- → editing_completed → delivered → completed

Every forward move has one legal undo. Each transition is recorded in
the project's append-only status history, and client notifications are
dispatched in the background for the statuses a client cares about.
"""

from studio_status.status.aggregation import StatusAggregationService, summarize
from studio_status.status.engine import propose_transition
from studio_status.status.errors import (
    ConcurrentTransitionError,
    IllegalTransitionError,
    LedgerMismatchError,
    NotificationError,
    PersistenceError,
    ProjectNotFoundError,
    StatusWorkflowError,
)
from studio_status.status.ledger import (
    append_change,
    build_timeline,
    chronological,
    entry_for,
    replay_status,
)
from studio_status.status.models import (
    Project,
    ProjectPriority,
    StatusChange,
    StatusSummary,
    TimelineStep,
)
from studio_status.status.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NotificationTrigger,
    requires_notification,
)
from studio_status.status.repository import (
    InMemoryProjectRepository,
    PostgresProjectRepository,
    ProjectRepository,
)
from studio_status.status.view import ProjectStatusView, TransitionOutcome, ViewState
from studio_status.status.vocabulary import (
    ACTIVE_STATUSES,
    COMPLETED_STATUSES,
    FORWARD_TRANSITIONS,
    NOTIFY_STATUSES,
    STATUS_INFO,
    STATUS_ORDER,
    VALID_TRANSITIONS,
    ProjectStatus,
    StatusInfo,
    allowed_next_statuses,
    canonical_index,
    is_valid_transition,
    progress_percent,
    status_info,
    status_step,
)

__all__ = [
    # Vocabulary
    "ACTIVE_STATUSES",
    "COMPLETED_STATUSES",
    "FORWARD_TRANSITIONS",
    "NOTIFY_STATUSES",
    "STATUS_INFO",
    "STATUS_ORDER",
    "VALID_TRANSITIONS",
    "ProjectStatus",
    "StatusInfo",
    "allowed_next_statuses",
    "canonical_index",
    "is_valid_transition",
    "progress_percent",
    "status_info",
    "status_step",
    # Models
    "Project",
    "ProjectPriority",
    "StatusChange",
    "StatusSummary",
    "TimelineStep",
    # Engine and ledger
    "propose_transition",
    "append_change",
    "build_timeline",
    "chronological",
    "entry_for",
    "replay_status",
    # Notifications
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "NotificationTrigger",
    "requires_notification",
    # Persistence
    "InMemoryProjectRepository",
    "PostgresProjectRepository",
    "ProjectRepository",
    # Aggregation and orchestration
    "StatusAggregationService",
    "summarize",
    "ProjectStatusView",
    "TransitionOutcome",
    "ViewState",
    # Errors
    "ConcurrentTransitionError",
    "IllegalTransitionError",
    "LedgerMismatchError",
    "NotificationError",
    "PersistenceError",
    "ProjectNotFoundError",
    "StatusWorkflowError",
]
