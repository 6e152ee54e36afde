"""Project status data models.

This module defines the records the status workflow operates on:
- StatusChange: Immutable ledger entry for one status transition
- Project: The aggregate whose status and history this core manages
- TimelineStep: One row of a per-project status timeline
- StatusSummary: Dashboard rollup derived from status statistics

The models use Pydantic for validation, consistent with the vocabulary's
StatusInfo and the event models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from studio_status.status.vocabulary import ProjectStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProjectPriority(str, Enum):
    """Scheduling priority of a project."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class StatusChange(BaseModel):
    """Record of a single project status transition.

    Each change captures who moved the project, when, from which status
    to which, with optional notes. Changes are created once by the
    transition engine and never edited afterwards.

    Attributes:
        id: Unique identifier, never reused.
        project_id: The project this change belongs to.
        from_status: The status before the transition.
        to_status: The status after the transition.
        timestamp: When the transition occurred (UTC).
        changed_by: Opaque identifier of the acting user.
        notes: Optional free-text notes.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Unique identifier of this status change",
    )

    project_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the project this change belongs to",
    )

    from_status: ProjectStatus = Field(
        ...,
        description="The project status before this transition",
    )

    to_status: ProjectStatus = Field(
        ...,
        description="The project status after this transition",
    )

    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the transition occurred (UTC timezone)",
    )

    changed_by: str = Field(
        ...,
        min_length=1,
        description="Identifier of the user who made the change",
    )

    notes: Optional[str] = Field(
        default=None,
        description="Optional free-text notes about the change",
    )

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class Project(BaseModel):
    """A studio project as seen by the status workflow.

    Only ``status`` and ``status_history`` are owned by this core. The
    remaining fields are descriptive metadata that the workflow reads but
    never changes.

    Attributes:
        id: Unique project identifier.
        title: Display title.
        status: Current status, always the newest history entry's target.
        status_history: Status changes, newest first.
        client_name: Name of the client, if known.
        client_email: Contact email of the client, if known.
        assignee: Studio member responsible for the project.
        priority: Scheduling priority.
        shooting_date: Planned or actual shoot date.
        delivery_date: Planned or actual delivery date.
        created_at: When the project was created (UTC).
        updated_at: When the project was last updated (UTC).
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Unique project identifier",
    )

    title: str = Field(
        default="",
        description="Display title of the project",
    )

    status: ProjectStatus = Field(
        default=ProjectStatus.DRAFT,
        description="Current status of the project",
    )

    status_history: List[StatusChange] = Field(
        default_factory=list,
        description="Status changes, newest first",
    )

    client_name: Optional[str] = None
    client_email: Optional[str] = None
    assignee: Optional[str] = None

    priority: ProjectPriority = Field(
        default=ProjectPriority.MEDIUM,
        description="Scheduling priority of the project",
    )

    shooting_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None

    created_at: datetime = Field(
        default_factory=_utcnow,
        description="When the project was created (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=_utcnow,
        description="When the project was last updated (UTC)",
    )

    @model_validator(mode="after")
    def check_status_matches_history(self) -> "Project":
        """Status must agree with the newest ledger entry."""
        expected = (
            self.status_history[0].to_status
            if self.status_history
            else ProjectStatus.DRAFT
        )
        if self.status != expected:
            raise ValueError(
                f"status {self.status.value} does not match status history "
                f"(expected {expected.value})"
            )
        return self


class TimelineStep(BaseModel):
    """One canonical status as it appears on a project's timeline.

    Attributes:
        status: The status this step represents.
        position: 1-based position in the canonical ordering.
        label: Display label for the status.
        description: Display description for the status.
        reached: Whether the project's current status is at or past this one.
        current: Whether this is the project's current status.
        change: Most recent ledger entry that entered this status, if any.
    """

    status: ProjectStatus
    position: int = Field(..., ge=1)
    label: str
    description: str
    reached: bool
    current: bool
    change: Optional[StatusChange] = None


class StatusSummary(BaseModel):
    """Dashboard rollup of project counts.

    Attributes:
        by_status: Count of projects per status, all statuses present.
        total: Total number of projects.
        active: Projects in draft, shooting_scheduled or in_editing.
        completed: Projects in delivered or completed.
        completion_rate: ``round(100 * completed / total)``, 0 when empty.
    """

    by_status: Dict[ProjectStatus, int]
    total: int = Field(..., ge=0)
    active: int = Field(..., ge=0)
    completed: int = Field(..., ge=0)
    completion_rate: int = Field(..., ge=0, le=100)
