"""Wiring for the project status workflow.

Builds the repository, event emitter, notification trigger, aggregation
service and per-project views from StudioSettings, and owns their
lifecycle. Presentation code holds one StatusWorkflow per process and
asks it for views and dashboard queries.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from studio_status.config import StudioSettings, get_settings
from studio_status.events.emitter import (
    EventEmitter,
    EventSinkType,
    create_event_emitter,
)
from studio_status.events.metrics import StudioMetrics, get_metrics
from studio_status.status.aggregation import StatusAggregationService
from studio_status.status.engine import Clock, utc_now
from studio_status.status.models import Project, ProjectPriority
from studio_status.status.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NotificationTrigger,
)
from studio_status.status.repository import (
    InMemoryProjectRepository,
    PostgresProjectRepository,
    ProjectRepository,
)
from studio_status.status.view import ProjectStatusView


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the workflow."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: StudioSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Status workflow configuration:")
    if settings.database_url:
        logger.info(f"  Database URL: {_redact_secret(settings.database_url)}")
        logger.info(
            f"  Pool Size: {settings.db_min_pool_size}-{settings.db_max_pool_size}"
        )
    else:
        logger.info("  Database URL: not set (in-memory repository)")
    logger.info(f"  Recent Changes Limit: {settings.recent_changes_limit}")
    logger.info(
        f"  Event Sinks: {', '.join(s.value for s in settings.event_sinks)}"
    )
    logger.info(f"  Log Level: {settings.log_level}")


def create_repository(settings: StudioSettings) -> ProjectRepository:
    """Create the repository selected by the settings."""
    if settings.database_url:
        return PostgresProjectRepository(
            settings.database_url,
            min_pool_size=settings.db_min_pool_size,
            max_pool_size=settings.db_max_pool_size,
        )
    return InMemoryProjectRepository()


class StatusWorkflow:
    """Entry point for presentation code.

    Keeps one ProjectStatusView per project id so that every caller in
    the process goes through the same single writer for a project.

    Attributes:
        settings: The settings the workflow was built from.
        repository: The project repository.
        event_emitter: Receives workflow events.
        notification_trigger: Schedules client notifications.
        aggregation: Dashboard queries.

    Example:
        >>> async with StatusWorkflow.from_settings() as workflow:
        ...     view = workflow.view_for("wedding-2024-017")
        ...     await view.load()
        ...     summary = await workflow.aggregation.summary()
    """

    def __init__(
        self,
        settings: StudioSettings,
        repository: ProjectRepository,
        event_emitter: EventEmitter,
        dispatcher: Optional[NotificationDispatcher] = None,
        metrics: Optional[StudioMetrics] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings
        self.repository = repository
        self.event_emitter = event_emitter
        self.notification_trigger = NotificationTrigger(
            dispatcher or LoggingNotificationDispatcher(),
            event_emitter,
        )
        self.aggregation = StatusAggregationService(
            repository,
            metrics=metrics,
            default_limit=settings.recent_changes_limit,
        )
        self._clock = clock
        self._views: Dict[str, ProjectStatusView] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Optional[StudioSettings] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ) -> "StatusWorkflow":
        """Build a workflow from settings, reading the environment if omitted."""
        settings = settings or get_settings()
        configure_logging(settings.log_level)
        _log_configuration(settings)

        metrics = (
            get_metrics()
            if EventSinkType.METRICS in settings.event_sinks
            else None
        )
        return cls(
            settings=settings,
            repository=create_repository(settings),
            event_emitter=create_event_emitter(settings.event_sinks),
            dispatcher=dispatcher,
            metrics=metrics,
        )

    async def start(self) -> None:
        """Open repository connections, if the repository needs any."""
        if isinstance(self.repository, PostgresProjectRepository):
            await self.repository.connect()
        logger.info("Status workflow started")

    async def close(self) -> None:
        """Wait for pending notifications and release resources."""
        await self.notification_trigger.drain()
        await self.event_emitter.close()
        if isinstance(self.repository, PostgresProjectRepository):
            await self.repository.disconnect()
        logger.info("Status workflow closed")

    async def __aenter__(self) -> "StatusWorkflow":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def view_for(self, project_id: str) -> ProjectStatusView:
        """Return the status view for a project, creating it on first use."""
        view = self._views.get(project_id)
        if view is None:
            view = ProjectStatusView(
                project_id,
                self.repository,
                notification_trigger=self.notification_trigger,
                event_emitter=self.event_emitter,
                clock=self._clock,
            )
            self._views[project_id] = view
        return view

    async def create_project(
        self,
        project_id: str,
        title: str = "",
        client_name: Optional[str] = None,
        client_email: Optional[str] = None,
        assignee: Optional[str] = None,
        priority: ProjectPriority = ProjectPriority.MEDIUM,
        shooting_date: Optional[datetime] = None,
        delivery_date: Optional[datetime] = None,
    ) -> Project:
        """Create a new project in ``draft`` with an empty status history.

        Raises:
            PersistenceError: If the project already exists or the write fails.
        """
        now = (self._clock or utc_now)()
        project = Project(
            id=project_id,
            title=title,
            client_name=client_name,
            client_email=client_email,
            assignee=assignee,
            priority=priority,
            shooting_date=shooting_date,
            delivery_date=delivery_date,
            created_at=now,
            updated_at=now,
        )
        await self.repository.create_project(project)
        logger.info(
            "Created project",
            extra={"project_id": project_id, "status": project.status.value},
        )
        return project
