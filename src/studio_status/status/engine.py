"""Status transition engine.

Validates a proposed status change against the transition table and
builds the ledger entry for it. The engine never persists anything and
never mutates the project it is given; appending and saving belong to
the per-project status view.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from studio_status.status.errors import IllegalTransitionError
from studio_status.status.models import Project, StatusChange
from studio_status.status.vocabulary import (
    StatusLike,
    allowed_next_statuses,
    coerce_status,
    progress_percent,
)


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def new_change_id() -> str:
    """Generate a fresh status change identifier."""
    return uuid.uuid4().hex


def _normalize_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    notes = notes.strip()
    return notes or None


def propose_transition(
    project: Project,
    target_status: StatusLike,
    actor: str,
    notes: Optional[str] = None,
    *,
    clock: Optional[Clock] = None,
) -> StatusChange:
    """Validate a status change and build its ledger entry.

    Args:
        project: The project in its current state.
        target_status: The status to move to.
        actor: Identifier of the acting user.
        notes: Optional free-text notes; blank notes are dropped.
        clock: Time source, defaults to the current UTC time.

    Returns:
        The StatusChange to append to the project's ledger.

    Raises:
        IllegalTransitionError: If ``target_status`` is not reachable from
            the project's current status.
        ValueError: If ``actor`` is empty or the target is not a status.

    Example:
        >>> change = propose_transition(
        ...     project,
        ...     ProjectStatus.SHOOTING_SCHEDULED,
        ...     actor="admin",
        ...     notes="confirmed Jan 15",
        ... )
        >>> change.from_status, change.to_status
        (<ProjectStatus.DRAFT: 'draft'>, <ProjectStatus.SHOOTING_SCHEDULED: 'shooting_scheduled'>)
    """
    to_status = coerce_status(target_status)
    from_status = project.status

    if not actor or not actor.strip():
        raise ValueError("actor cannot be empty")

    allowed = allowed_next_statuses(from_status)
    if to_status not in allowed:
        logger.warning(
            "Illegal status transition proposed",
            extra={
                "project_id": project.id,
                "from_status": from_status.value,
                "to_status": to_status.value,
            },
        )
        raise IllegalTransitionError(from_status, to_status, allowed)

    timestamp = (clock or utc_now)()
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    # Keep the ledger non-decreasing even if the clock steps backwards.
    if project.status_history and timestamp < project.status_history[0].timestamp:
        timestamp = project.status_history[0].timestamp

    return StatusChange(
        id=new_change_id(),
        project_id=project.id,
        from_status=from_status,
        to_status=to_status,
        timestamp=timestamp,
        changed_by=actor,
        notes=_normalize_notes(notes),
    )

