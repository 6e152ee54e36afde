"""Per-project status view.

The view is the only component that changes a project's status. It
orchestrates one transition at a time for its project:

    IDLE → LOADING → READY → TRANSITIONING → READY        (success)
                     READY → TRANSITIONING → ERROR → READY (failure)

A transition requested while another is in flight is rejected, not
queued, because validity depends on the status read at the start of the
transition. The busy check and the switch to TRANSITIONING happen before
the first await, which makes them atomic within the event loop.
A cancelled load or transition settles the view the same way a failed one
does, so the next call is not rejected as concurrent.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

from studio_status.events.emitter import EventEmitter, NullEventEmitter
from studio_status.events.models import EventType, StatusEvent
from studio_status.status.engine import Clock, propose_transition
from studio_status.status.errors import (
    ConcurrentTransitionError,
    IllegalTransitionError,
    PersistenceError,
    ProjectNotFoundError,
)
from studio_status.status.ledger import append_change, build_timeline
from studio_status.status.models import Project, StatusChange, TimelineStep
from studio_status.status.notifications import NotificationTrigger
from studio_status.status.repository import ProjectRepository
from studio_status.status.vocabulary import (
    ProjectStatus,
    StatusLike,
    allowed_next_statuses,
    progress_percent,
)


logger = logging.getLogger(__name__)


class ViewState(str, Enum):
    """Orchestration states of a ProjectStatusView.

    Attributes:
        IDLE: Nothing loaded yet.
        LOADING: Fetching the project from the repository.
        READY: Project loaded, transitions accepted.
        TRANSITIONING: A transition is in flight; new ones are rejected.
        ERROR: The last transition failed; passes back to READY.
    """

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    TRANSITIONING = "transitioning"
    ERROR = "error"


class TransitionOutcome(BaseModel):
    """Result of a committed transition.

    Attributes:
        project: The project after the transition.
        change: The ledger entry that was appended.
        progress: Progress percentage of the new status.
        notified: Whether a client notification was scheduled.
    """

    project: Project
    change: StatusChange
    progress: int
    notified: bool


class ProjectStatusView:
    """Loads, transitions and describes the status of a single project.

    Attributes:
        project_id: The project this view manages.
        repository: Persistence collaborator.
        notification_trigger: Schedules client notifications, optional.
        event_emitter: Receives workflow events.

    Example:
        >>> view = ProjectStatusView("wedding-2024-017", repository, trigger)
        >>> await view.load()
        >>> outcome = await view.transition(
        ...     ProjectStatus.SHOOTING_SCHEDULED,
        ...     actor="admin",
        ...     notes="confirmed Jan 15",
        ... )
        >>> outcome.progress
        29
    """

    def __init__(
        self,
        project_id: str,
        repository: ProjectRepository,
        notification_trigger: Optional[NotificationTrigger] = None,
        event_emitter: Optional[EventEmitter] = None,
        clock: Optional[Clock] = None,
    ):
        if not project_id:
            raise ValueError("project_id cannot be empty")

        self.project_id = project_id
        self.repository = repository
        self.notification_trigger = notification_trigger
        self.event_emitter = event_emitter or NullEventEmitter()
        self._clock = clock
        self._state = ViewState.IDLE
        self._project: Optional[Project] = None
        self._last_error: Optional[Exception] = None

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def project(self) -> Optional[Project]:
        """The last loaded or committed project snapshot."""
        return self._project

    @property
    def last_error(self) -> Optional[Exception]:
        """The error from the most recent failed operation, if any."""
        return self._last_error

    @property
    def progress(self) -> int:
        """Progress percentage of the current status."""
        return progress_percent(self._require_project().status)

    def available_transitions(self) -> Tuple[ProjectStatus, ...]:
        """Statuses the project can legally move to next."""
        return allowed_next_statuses(self._require_project().status)

    def timeline(self) -> List[TimelineStep]:
        """Canonical status timeline of the project."""
        return build_timeline(self._require_project())

    def _require_project(self) -> Project:
        if self._project is None:
            raise RuntimeError(
                f"Project {self.project_id} is not loaded; call load() first"
            )
        return self._project

    def _settle(self) -> None:
        self._state = ViewState.READY if self._project is not None else ViewState.IDLE

    async def load(self) -> Project:
        """Fetch the current project and its ledger.

        Returns:
            The loaded project.

        Raises:
            ConcurrentTransitionError: If a load or transition is in flight.
            ProjectNotFoundError: If the project does not exist.
            PersistenceError: If the repository read fails.
        """
        if self._state in (ViewState.LOADING, ViewState.TRANSITIONING):
            raise ConcurrentTransitionError(self.project_id)

        self._state = ViewState.LOADING
        try:
            project = await self._fetch()
        except asyncio.CancelledError:
            self._settle()
            raise
        except Exception as e:
            self._last_error = e
            self._settle()
            raise

        self._project = project
        self._state = ViewState.READY
        logger.debug(
            "Loaded project status",
            extra={"project_id": self.project_id, "status": project.status.value},
        )
        return project

    async def transition(
        self,
        target_status: StatusLike,
        actor: str,
        notes: Optional[str] = None,
    ) -> TransitionOutcome:
        """Move the project to ``target_status``.

        Re-reads the project, validates the move, persists the ledger entry
        together with the new status, then schedules a client notification
        if the new status calls for one.

        Args:
            target_status: The status to move to.
            actor: Identifier of the acting user.
            notes: Optional free-text notes for the ledger.

        Returns:
            TransitionOutcome with the updated project and appended change.

        Raises:
            ConcurrentTransitionError: If a transition is already in flight.
            IllegalTransitionError: If the move is not in the transition table.
            ProjectNotFoundError: If the project no longer exists.
            PersistenceError: If the repository read or write fails.
        """
        if self._state in (ViewState.LOADING, ViewState.TRANSITIONING):
            logger.warning(
                "Rejected concurrent status transition",
                extra={"project_id": self.project_id},
            )
            await self._emit(
                EventType.TRANSITION_REJECTED,
                {"reason": "concurrent"},
            )
            raise ConcurrentTransitionError(self.project_id)

        self._state = ViewState.TRANSITIONING
        try:
            current = await self._fetch()
            self._project = current

            change = propose_transition(
                current,
                target_status,
                actor,
                notes,
                clock=self._clock,
            )
            updated = append_change(current, change)
            await self._save(change)
        except IllegalTransitionError as e:
            await self._fail(
                e,
                {
                    "reason": "illegal",
                    "from_status": e.from_status.value,
                    "to_status": e.to_status.value,
                    "allowed": [s.value for s in e.allowed],
                },
            )
            raise
        except asyncio.CancelledError:
            # cancelled mid-flight; nothing was appended locally
            self._settle()
            raise
        except Exception as e:
            await self._fail(e)
            raise

        self._project = updated
        self._last_error = None
        self._state = ViewState.READY

        progress = progress_percent(updated.status)
        logger.info(
            "Project status changed",
            extra={
                "project_id": self.project_id,
                "from_status": change.from_status.value,
                "to_status": change.to_status.value,
                "changed_by": change.changed_by,
            },
        )
        await self._emit(
            EventType.STATUS_CHANGED,
            {
                "from_status": change.from_status.value,
                "to_status": change.to_status.value,
                "changed_by": change.changed_by,
                "progress": progress,
            },
        )

        notified = False
        if self.notification_trigger is not None:
            notified = self.notification_trigger.evaluate(updated, change.to_status)

        return TransitionOutcome(
            project=updated,
            change=change,
            progress=progress,
            notified=notified,
        )

    async def _fetch(self) -> Project:
        try:
            project = await self.repository.get_project(self.project_id)
        except PersistenceError as e:
            await self._emit_persistence_error("load", e)
            raise
        except Exception as e:
            await self._emit_persistence_error("load", e)
            raise PersistenceError(
                f"Failed to load project {self.project_id}: {e}",
                original_error=e,
            ) from e

        if project is None:
            raise ProjectNotFoundError(self.project_id)
        return project

    async def _save(self, change: StatusChange) -> None:
        try:
            saved = await self.repository.save_project_status(
                self.project_id,
                change.to_status,
                change,
            )
        except PersistenceError as e:
            await self._emit_persistence_error("save", e)
            raise
        except Exception as e:
            await self._emit_persistence_error("save", e)
            raise PersistenceError(
                f"Failed to save status for project {self.project_id}: {e}",
                original_error=e,
            ) from e

        if not saved:
            raise ProjectNotFoundError(self.project_id)

    async def _fail(
        self,
        error: Exception,
        rejection: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._state = ViewState.ERROR
        self._last_error = error
        if rejection is not None:
            await self._emit(EventType.TRANSITION_REJECTED, rejection)
        logger.info(
            "Status transition failed",
            extra={
                "project_id": self.project_id,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )
        self._settle()

    async def _emit_persistence_error(self, operation: str, error: Exception) -> None:
        await self._emit(
            EventType.PERSISTENCE_ERROR,
            {"operation": operation, "error": str(error)},
        )

    async def _emit(self, event_type: EventType, details: Dict[str, Any]) -> None:
        try:
            await self.event_emitter.emit(
                StatusEvent(
                    event_type=event_type,
                    project_id=self.project_id,
                    details=details,
                )
            )
        except Exception:
            logger.exception(
                "Failed to emit status event",
                extra={"project_id": self.project_id, "event_type": event_type.value},
            )
