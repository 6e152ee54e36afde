"""Append-only status change ledger.

A project's ledger is its ``status_history``: newest entry first for
presentation, replayed oldest first. Entries are only ever prepended;
nothing in this module edits or removes an existing entry.
"""

from typing import List, Optional, Sequence

from studio_status.status.errors import LedgerMismatchError
from studio_status.status.models import Project, StatusChange, TimelineStep
from studio_status.status.vocabulary import (
    STATUS_INFO,
    STATUS_ORDER,
    ProjectStatus,
    canonical_index,
)


def append_change(project: Project, change: StatusChange) -> Project:
    """Append a status change to a project's ledger.

    Returns a new Project with the change at the front of its history and
    ``status`` set to the change's target. The given project is left
    untouched, so a caller that fails to persist the result still holds
    the prior state.

    Args:
        project: The project the change was proposed for.
        change: The status change to append.

    Returns:
        The updated project.

    Raises:
        LedgerMismatchError: If the change belongs to another project or
            does not start from the project's current status.
    """
    if change.project_id != project.id:
        raise LedgerMismatchError(
            f"Status change {change.id} belongs to project {change.project_id}, "
            f"not {project.id}"
        )
    if change.from_status != project.status:
        raise LedgerMismatchError(
            f"Status change {change.id} starts from {change.from_status.value} "
            f"but project {project.id} is {project.status.value}"
        )

    return project.model_copy(
        update={
            "status": change.to_status,
            "status_history": [change, *project.status_history],
            "updated_at": change.timestamp,
        }
    )


def entry_for(
    history: Sequence[StatusChange],
    status: ProjectStatus,
) -> Optional[StatusChange]:
    """Most recent change whose target is ``status``.

    When a status was entered more than once (regress then re-advance),
    the latest entry wins.

    Args:
        history: Status history, newest first.
        status: The status to look up.

    Returns:
        The matching change, or None if the status was never entered.
    """
    for change in history:
        if change.to_status == status:
            return change
    return None


def chronological(history: Sequence[StatusChange]) -> List[StatusChange]:
    """Return the history oldest first, for replay."""
    return list(reversed(history))


def replay_status(history: Sequence[StatusChange]) -> ProjectStatus:
    """Status implied by a ledger, ``draft`` when it is empty."""
    if not history:
        return ProjectStatus.DRAFT
    return history[0].to_status


def build_timeline(project: Project) -> List[TimelineStep]:
    """Build the canonical status timeline for a project.

    One step per status in STATUS_ORDER. A step is reached when its
    canonical position is at or before the current status, and is
    annotated with the most recent change that entered it.
    """
    current_index = canonical_index(project.status)
    steps = []
    for index, status in enumerate(STATUS_ORDER):
        info = STATUS_INFO[status]
        steps.append(
            TimelineStep(
                status=status,
                position=index + 1,
                label=info.label,
                description=info.description,
                reached=index <= current_index,
                current=status == project.status,
                change=entry_for(project.status_history, status),
            )
        )
    return steps
