"""Client notification trigger for status changes.

Decides whether a committed status change warrants telling the client,
and hands the dispatch to a NotificationDispatcher in the background.
Dispatch is best-effort: a failure is logged and reported as an event,
it is never retried here and never undoes the committed transition.
"""

import asyncio
import logging
from typing import Optional, Protocol, Set, runtime_checkable

from studio_status.events.emitter import EventEmitter, NullEventEmitter
from studio_status.events.models import EventType, StatusEvent
from studio_status.status.errors import NotificationError
from studio_status.status.models import Project
from studio_status.status.vocabulary import (
    NOTIFY_STATUSES,
    ProjectStatus,
    StatusLike,
    coerce_status,
)


logger = logging.getLogger(__name__)


def requires_notification(to_status: StatusLike) -> bool:
    """Whether moving to ``to_status`` should notify the client.

    Example:
        >>> requires_notification(ProjectStatus.DELIVERED)
        True
        >>> requires_notification(ProjectStatus.IN_EDITING)
        False
    """
    return coerce_status(to_status) in NOTIFY_STATUSES


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Protocol for the collaborator that actually sends notifications.

    Retry policy, if any, belongs to the implementation.
    """

    async def notify(self, project: Project, new_status: ProjectStatus) -> None:
        """Send a notification that ``project`` moved to ``new_status``."""
        ...


class LoggingNotificationDispatcher:
    """Dispatcher that records notifications in the log.

    Used when no delivery channel is configured.
    """

    def __init__(self, logger_name: Optional[str] = None):
        self._logger = logging.getLogger(logger_name) if logger_name else logger

    async def notify(self, project: Project, new_status: ProjectStatus) -> None:
        self._logger.info(
            "Sending notification for project %s status change to %s",
            project.id,
            new_status.value,
            extra={
                "project_id": project.id,
                "status": new_status.value,
                "client_email": project.client_email,
            },
        )


class NotificationTrigger:
    """Evaluates status changes and dispatches notifications in the background.

    Each dispatch runs as its own asyncio task so the caller of a
    transition never waits on it. Outstanding tasks are tracked so they
    can be drained on shutdown.

    Attributes:
        dispatcher: Collaborator that sends the notification.
        event_emitter: Receives NOTIFICATION_SENT / NOTIFICATION_FAILED events.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        event_emitter: Optional[EventEmitter] = None,
    ):
        self.dispatcher = dispatcher
        self.event_emitter = event_emitter or NullEventEmitter()
        self._tasks: Set["asyncio.Task[None]"] = set()

    @property
    def pending(self) -> int:
        """Number of dispatches still running."""
        return len(self._tasks)

    def evaluate(self, project: Project, to_status: ProjectStatus) -> bool:
        """Schedule a notification if ``to_status`` requires one.

        Must be called from within a running event loop.

        Args:
            project: The project after the committed transition.
            to_status: The status the project moved to.

        Returns:
            True if a dispatch was scheduled, False otherwise.
        """
        if not requires_notification(to_status):
            return False

        task = asyncio.get_running_loop().create_task(
            self._dispatch(project, to_status)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def drain(self) -> None:
        """Wait for all outstanding dispatches to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _dispatch(self, project: Project, status: ProjectStatus) -> None:
        try:
            await self.dispatcher.notify(project, status)
        except Exception as e:
            error = NotificationError(project.id, status, e)
            logger.warning(
                "Status notification failed",
                extra={
                    "project_id": project.id,
                    "status": status.value,
                    "error": str(error),
                },
            )
            await self._emit(
                EventType.NOTIFICATION_FAILED,
                project.id,
                {"status": status.value, "error": str(e)},
            )
            return

        await self._emit(
            EventType.NOTIFICATION_SENT,
            project.id,
            {"status": status.value},
        )

    async def _emit(self, event_type: EventType, project_id: str, details: dict) -> None:
        try:
            await self.event_emitter.emit(
                StatusEvent(event_type=event_type, project_id=project_id, details=details)
            )
        except Exception:
            logger.exception(
                "Failed to emit notification event",
                extra={"project_id": project_id},
            )
