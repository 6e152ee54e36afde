"""Exceptions raised by the project status workflow.

All exceptions derive from StatusWorkflowError so presentation code can
catch workflow failures with a single handler while still branching on
the specific type.
"""

from typing import Optional, Sequence, Tuple

from studio_status.status.vocabulary import ProjectStatus


class StatusWorkflowError(Exception):
    """Base class for all status workflow errors."""


class IllegalTransitionError(StatusWorkflowError):
    """Raised when a requested status change is not in the transition table.

    The error carries the statuses that are legal from the current one so
    the caller can present them instead of the rejected choice.

    Attributes:
        from_status: The current status.
        to_status: The rejected target status.
        allowed: Statuses reachable from ``from_status``.
        message: Human-readable error message.
    """

    def __init__(
        self,
        from_status: ProjectStatus,
        to_status: ProjectStatus,
        allowed: Sequence[ProjectStatus] = (),
        message: Optional[str] = None,
    ):
        self.from_status = from_status
        self.to_status = to_status
        self.allowed: Tuple[ProjectStatus, ...] = tuple(allowed)
        allowed_text = ", ".join(s.value for s in self.allowed) or "none"
        self.message = message or (
            f"Illegal transition from {from_status.value} to {to_status.value} "
            f"(allowed: {allowed_text})"
        )
        super().__init__(self.message)


class ConcurrentTransitionError(StatusWorkflowError):
    """Raised when a transition is requested while another is in flight.

    Attributes:
        project_id: The project with the in-flight transition.
    """

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(
            f"A status transition is already in progress for project: {project_id}"
        )


class PersistenceError(StatusWorkflowError):
    """Raised when the persistence collaborator cannot read or write.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.original_error = original_error
        super().__init__(message)


class ProjectNotFoundError(PersistenceError):
    """Raised when a project does not exist in the repository.

    Attributes:
        project_id: The project ID that was not found.
    """

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class NotificationError(StatusWorkflowError):
    """Describes a failed notification dispatch.

    Dispatch is best-effort: this error is logged and emitted as an event,
    never raised to the caller of a transition.

    Attributes:
        project_id: The project the notification was about.
        status: The status the project moved to.
        original_error: The exception raised by the dispatcher.
    """

    def __init__(
        self,
        project_id: str,
        status: ProjectStatus,
        original_error: Optional[BaseException] = None,
    ):
        self.project_id = project_id
        self.status = status
        self.original_error = original_error
        super().__init__(
            f"Failed to notify status {status.value} for project {project_id}: "
            f"{original_error}"
        )


class LedgerMismatchError(StatusWorkflowError, ValueError):
    """Raised when a status change does not line up with the project.

    A change can only be appended to the project it was proposed for and
    only while that project is still in the change's ``from_status``.
    """
