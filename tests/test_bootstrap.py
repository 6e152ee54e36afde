"""Tests for wiring the status workflow from settings."""

import asyncio
import logging
from typing import List, Tuple

import pytest

from studio_status.bootstrap import (
    LOG_FORMAT,
    StatusWorkflow,
    _redact_secret,
    configure_logging,
    create_repository,
)
from studio_status.config import StudioSettings
from studio_status.events.emitter import (
    CompositeEventEmitter,
    EventSinkType,
    LoggingEventEmitter,
)
from studio_status.status import (
    InMemoryProjectRepository,
    PersistenceError,
    PostgresProjectRepository,
    Project,
    ProjectPriority,
    ProjectStatus,
)


def run_async(coro):
    return asyncio.run(coro)


class RecordingDispatcher:
    def __init__(self) -> None:
        self.calls: List[Tuple[str, ProjectStatus]] = []

    async def notify(self, project: Project, new_status: ProjectStatus) -> None:
        await asyncio.sleep(0)
        self.calls.append((project.id, new_status))


@pytest.fixture
def settings() -> StudioSettings:
    return StudioSettings(
        database_url=None,
        recent_changes_limit=3,
        event_sinks=[EventSinkType.LOGGING],
    )


class TestFactories:
    def test_in_memory_without_database_url(self, settings) -> None:
        assert isinstance(create_repository(settings), InMemoryProjectRepository)

    def test_postgres_with_database_url(self) -> None:
        settings = StudioSettings(
            database_url="postgresql://studio@db/studio",
            db_min_pool_size=1,
            db_max_pool_size=4,
        )

        repository = create_repository(settings)

        assert isinstance(repository, PostgresProjectRepository)
        assert repository.min_pool_size == 1
        assert repository.max_pool_size == 4

    def test_redact_secret(self) -> None:
        assert _redact_secret("postgresql://x") == "post" + "*" * 10
        assert _redact_secret("abc") == "***"

    def test_configure_logging(self, monkeypatch) -> None:
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        configure_logging("DEBUG")

        assert calls == [{"level": "DEBUG", "format": LOG_FORMAT}]

    def test_from_settings_with_metrics(self) -> None:
        workflow = StatusWorkflow.from_settings(
            StudioSettings(event_sinks=[EventSinkType.LOGGING, EventSinkType.METRICS])
        )

        assert isinstance(workflow.event_emitter, CompositeEventEmitter)
        assert workflow.aggregation.metrics is not None

    def test_from_settings_logging_only(self, settings) -> None:
        workflow = StatusWorkflow.from_settings(settings)

        assert isinstance(workflow.event_emitter, LoggingEventEmitter)
        assert workflow.aggregation.metrics is None
        assert workflow.aggregation.default_limit == 3


class TestStatusWorkflow:
    def test_end_to_end(self, settings, clock) -> None:
        dispatcher = RecordingDispatcher()
        workflow = StatusWorkflow(
            settings,
            InMemoryProjectRepository(),
            LoggingEventEmitter(),
            dispatcher=dispatcher,
            clock=clock,
        )

        async def test():
            async with workflow:
                project = await workflow.create_project(
                    "wedding-2024-017",
                    title="Boda García",
                    client_email="ana@example.com",
                    priority=ProjectPriority.HIGH,
                )
                view = workflow.view_for(project.id)
                await view.load()
                await view.transition(ProjectStatus.SHOOTING_SCHEDULED, "admin")
                await view.transition(ProjectStatus.SHOOTING_COMPLETED, "admin")
                summary = await workflow.aggregation.summary()
                recent = await workflow.aggregation.recent_status_changes()
            return project, summary, recent

        project, summary, recent = run_async(test())

        assert project.status == ProjectStatus.DRAFT
        assert project.status_history == []
        assert summary.total == 1
        assert summary.by_status[ProjectStatus.SHOOTING_COMPLETED] == 1
        assert [c.to_status for c in recent] == [
            ProjectStatus.SHOOTING_COMPLETED,
            ProjectStatus.SHOOTING_SCHEDULED,
        ]
        # close() drained both notifications
        assert dispatcher.calls == [
            ("wedding-2024-017", ProjectStatus.SHOOTING_SCHEDULED),
            ("wedding-2024-017", ProjectStatus.SHOOTING_COMPLETED),
        ]

    def test_one_view_per_project(self, settings) -> None:
        workflow = StatusWorkflow(settings, InMemoryProjectRepository(), LoggingEventEmitter())

        assert workflow.view_for("a") is workflow.view_for("a")
        assert workflow.view_for("a") is not workflow.view_for("b")

    def test_duplicate_project_rejected(self, settings) -> None:
        workflow = StatusWorkflow(settings, InMemoryProjectRepository(), LoggingEventEmitter())

        async def test():
            await workflow.create_project("p")
            await workflow.create_project("p")

        with pytest.raises(PersistenceError):
            run_async(test())
