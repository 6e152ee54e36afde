"""Project status vocabulary and transition table.

This module defines the closed set of production statuses a studio project
moves through, the hand-authored table of legal transitions, and the
canonical pipeline ordering used for progress reporting:

- ProjectStatus: Enum of all production statuses
- STATUS_ORDER: Canonical pipeline ordering (progress computation only)
- VALID_TRANSITIONS: Map defining allowed status transitions
- STATUS_INFO: Display label and description for every status

The transition table is pure data. Nothing here touches persistence.
"""

from enum import Enum
from typing import Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict


class ProjectStatus(str, Enum):
    """Production statuses a studio project progresses through.

    Status Flow:
        draft → shooting_scheduled → shooting_completed → in_editing
        → editing_completed → delivered → completed

    Every forward status can step back exactly one position to correct
    a mistaken advance. ``completed`` can be reopened to ``delivered``.

    Attributes:
        DRAFT: Project is being planned.
        SHOOTING_SCHEDULED: Shoot date confirmed with the client.
        SHOOTING_COMPLETED: Shoot done, material ready for editing.
        IN_EDITING: Material is being edited.
        EDITING_COMPLETED: Editing finished, ready for delivery.
        DELIVERED: Final material handed to the client.
        COMPLETED: Project fully closed.
    """

    DRAFT = "draft"
    SHOOTING_SCHEDULED = "shooting_scheduled"
    SHOOTING_COMPLETED = "shooting_completed"
    IN_EDITING = "in_editing"
    EDITING_COMPLETED = "editing_completed"
    DELIVERED = "delivered"
    COMPLETED = "completed"


StatusLike = Union[ProjectStatus, str]


# Canonical pipeline ordering. Used solely for progress and timeline
# position; legality of a move is decided by VALID_TRANSITIONS.
STATUS_ORDER: Tuple[ProjectStatus, ...] = (
    ProjectStatus.DRAFT,
    ProjectStatus.SHOOTING_SCHEDULED,
    ProjectStatus.SHOOTING_COMPLETED,
    ProjectStatus.IN_EDITING,
    ProjectStatus.EDITING_COMPLETED,
    ProjectStatus.DELIVERED,
    ProjectStatus.COMPLETED,
)


# Valid status transitions map
#
# Key design decisions:
# - Each status has one forward move (its successor in STATUS_ORDER)
# - Each status past DRAFT has one backward move (its predecessor)
# - No skipping: a shoot cannot be marked completed before it is scheduled
# - COMPLETED is terminal-but-reopenable, it can only go back to DELIVERED
VALID_TRANSITIONS: Dict[ProjectStatus, Tuple[ProjectStatus, ...]] = {
    ProjectStatus.DRAFT: (
        ProjectStatus.SHOOTING_SCHEDULED,
    ),
    ProjectStatus.SHOOTING_SCHEDULED: (
        ProjectStatus.SHOOTING_COMPLETED,
        ProjectStatus.DRAFT,
    ),
    ProjectStatus.SHOOTING_COMPLETED: (
        ProjectStatus.IN_EDITING,
        ProjectStatus.SHOOTING_SCHEDULED,
    ),
    ProjectStatus.IN_EDITING: (
        ProjectStatus.EDITING_COMPLETED,
        ProjectStatus.SHOOTING_COMPLETED,
    ),
    ProjectStatus.EDITING_COMPLETED: (
        ProjectStatus.DELIVERED,
        ProjectStatus.IN_EDITING,
    ),
    ProjectStatus.DELIVERED: (
        ProjectStatus.COMPLETED,
        ProjectStatus.EDITING_COMPLETED,
    ),
    ProjectStatus.COMPLETED: (
        ProjectStatus.DELIVERED,
    ),
}


# Successor along the canonical pipeline, None at the end.
FORWARD_TRANSITIONS: Dict[ProjectStatus, Optional[ProjectStatus]] = {
    status: STATUS_ORDER[index + 1] if index + 1 < len(STATUS_ORDER) else None
    for index, status in enumerate(STATUS_ORDER)
}


# Statuses counted as "active" on the dashboard.
ACTIVE_STATUSES: Tuple[ProjectStatus, ...] = (
    ProjectStatus.DRAFT,
    ProjectStatus.SHOOTING_SCHEDULED,
    ProjectStatus.IN_EDITING,
)

# Statuses counted as "completed" for the completion rate.
COMPLETED_STATUSES: Tuple[ProjectStatus, ...] = (
    ProjectStatus.DELIVERED,
    ProjectStatus.COMPLETED,
)

# Statuses a client or stakeholder is told about.
NOTIFY_STATUSES = frozenset(
    {
        ProjectStatus.SHOOTING_SCHEDULED,
        ProjectStatus.SHOOTING_COMPLETED,
        ProjectStatus.DELIVERED,
        ProjectStatus.COMPLETED,
    }
)


class StatusInfo(BaseModel):
    """Display metadata for a status.

    Attributes:
        label: Short human-readable label.
        description: One-line explanation shown next to the label.
    """

    model_config = ConfigDict(frozen=True)

    label: str
    description: str


STATUS_INFO: Dict[ProjectStatus, StatusInfo] = {
    ProjectStatus.DRAFT: StatusInfo(
        label="Borrador",
        description="Proyecto en fase de planificación",
    ),
    ProjectStatus.SHOOTING_SCHEDULED: StatusInfo(
        label="Shooting Programado",
        description="Shooting programado y confirmado",
    ),
    ProjectStatus.SHOOTING_COMPLETED: StatusInfo(
        label="Shooting Completado",
        description="Shooting realizado, listo para edición",
    ),
    ProjectStatus.IN_EDITING: StatusInfo(
        label="En Edición",
        description="Proyecto en fase de edición",
    ),
    ProjectStatus.EDITING_COMPLETED: StatusInfo(
        label="Edición Completada",
        description="Edición finalizada, listo para entrega",
    ),
    ProjectStatus.DELIVERED: StatusInfo(
        label="Entregado",
        description="Proyecto entregado al cliente",
    ),
    ProjectStatus.COMPLETED: StatusInfo(
        label="Completado",
        description="Proyecto completamente finalizado",
    ),
}


def coerce_status(status: StatusLike) -> ProjectStatus:
    """Convert a status value or enum member to a ProjectStatus.

    Args:
        status: A ProjectStatus member or its string value.

    Returns:
        ProjectStatus: The matching enum member.

    Raises:
        ValueError: If the value is not a known status.
    """
    if isinstance(status, ProjectStatus):
        return status
    try:
        return ProjectStatus(status)
    except ValueError:
        raise ValueError(f"Unknown project status: {status!r}") from None


def allowed_next_statuses(status: StatusLike) -> Tuple[ProjectStatus, ...]:
    """Return the statuses a project may legally move to next.

    An unrecognised status is a programming error and fails fast.

    Args:
        status: The current status.

    Returns:
        Tuple of legal target statuses, forward move first.

    Raises:
        ValueError: If the status is not a known ProjectStatus.

    Example:
        >>> allowed_next_statuses(ProjectStatus.DRAFT)
        (<ProjectStatus.SHOOTING_SCHEDULED: 'shooting_scheduled'>,)
    """
    return VALID_TRANSITIONS[coerce_status(status)]


def is_valid_transition(from_status: StatusLike, to_status: StatusLike) -> bool:
    """Check if a status transition is allowed by VALID_TRANSITIONS.

    Example:
        >>> is_valid_transition(ProjectStatus.DRAFT, ProjectStatus.SHOOTING_SCHEDULED)
        True
        >>> is_valid_transition(ProjectStatus.DRAFT, ProjectStatus.COMPLETED)
        False
    """
    return coerce_status(to_status) in allowed_next_statuses(from_status)


def canonical_index(status: StatusLike) -> int:
    """Zero-based position of a status in STATUS_ORDER."""
    return STATUS_ORDER.index(coerce_status(status))


def progress_percent(status: StatusLike) -> int:
    """Progress percentage for a status.

    Computed as ``round(100 * (index + 1) / 7)`` over the canonical
    ordering. The reading follows the current status only, so a project
    that regresses shows reduced progress.

    Example:
        >>> progress_percent(ProjectStatus.SHOOTING_SCHEDULED)
        29
        >>> progress_percent(ProjectStatus.COMPLETED)
        100
    """
    return round(100 * (canonical_index(status) + 1) / len(STATUS_ORDER))


def status_step(status: StatusLike) -> Tuple[int, int]:
    """Return ``(position, total)`` for "step N of 7" displays."""
    return canonical_index(status) + 1, len(STATUS_ORDER)


def status_info(status: StatusLike) -> StatusInfo:
    """Display metadata for a status."""
    return STATUS_INFO[coerce_status(status)]
