"""Unit tests for the per-project status view.

Covers the orchestration flow (load, transition, settle), rejection of
concurrent transitions, and the guarantee that a failed persistence
call or a failed notification leaves the committed state consistent.
"""

import asyncio
from typing import List, Optional, Tuple

import pytest

from studio_status.events.emitter import EventEmitter
from studio_status.events.models import EventType, StatusEvent
from studio_status.status import (
    ConcurrentTransitionError,
    IllegalTransitionError,
    InMemoryProjectRepository,
    PersistenceError,
    Project,
    ProjectNotFoundError,
    ProjectStatus,
    ProjectStatusView,
    NotificationTrigger,
    StatusChange,
    ViewState,
)


def run_async(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class RecordingEmitter(EventEmitter):
    def __init__(self) -> None:
        self.events: List[StatusEvent] = []

    async def emit(self, event: StatusEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> List[StatusEvent]:
        return [e for e in self.events if e.event_type == event_type]


class RecordingDispatcher:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: List[Tuple[str, ProjectStatus]] = []

    async def notify(self, project: Project, new_status: ProjectStatus) -> None:
        self.calls.append((project.id, new_status))
        if self.fail:
            raise ConnectionError("mail server unreachable")


class FailingSaveRepository(InMemoryProjectRepository):
    async def save_project_status(
        self,
        project_id: str,
        new_status: ProjectStatus,
        change: StatusChange,
    ) -> bool:
        raise ConnectionError("connection reset")


class SlowSaveRepository(InMemoryProjectRepository):
    """Sleeps before saving while ``delay`` is non-zero."""

    def __init__(self, projects=None) -> None:
        super().__init__(projects)
        self.delay = 1.0

    async def save_project_status(
        self,
        project_id: str,
        new_status: ProjectStatus,
        change: StatusChange,
    ) -> bool:
        if self.delay:
            await asyncio.sleep(self.delay)
        return await super().save_project_status(project_id, new_status, change)


class GatedRepository(InMemoryProjectRepository):
    """Blocks get_project until the gate opens, once armed."""

    def __init__(self, projects=None) -> None:
        super().__init__(projects)
        self.gate: Optional[asyncio.Event] = None

    async def get_project(self, project_id: str) -> Optional[Project]:
        if self.gate is not None:
            await self.gate.wait()
        return await super().get_project(project_id)


def _view(
    repository,
    dispatcher: Optional[RecordingDispatcher] = None,
    emitter: Optional[RecordingEmitter] = None,
    clock=None,
) -> ProjectStatusView:
    trigger = NotificationTrigger(dispatcher, emitter) if dispatcher else None
    return ProjectStatusView(
        "wedding-2024-017",
        repository,
        notification_trigger=trigger,
        event_emitter=emitter,
        clock=clock,
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestLoad:
    def test_starts_idle(self, repository) -> None:
        view = _view(repository)
        assert view.state == ViewState.IDLE
        assert view.project is None
        with pytest.raises(RuntimeError):
            view.available_transitions()

    def test_load_reads_project(self, project_at) -> None:
        project = project_at(ProjectStatus.IN_EDITING)
        view = _view(InMemoryProjectRepository([project]))

        loaded = run_async(view.load())

        assert loaded == project
        assert view.state == ViewState.READY
        assert view.progress == 57
        assert view.available_transitions() == (
            ProjectStatus.EDITING_COMPLETED,
            ProjectStatus.SHOOTING_COMPLETED,
        )
        assert view.timeline()[3].current

    def test_load_missing_project(self, repository) -> None:
        view = _view(repository)

        with pytest.raises(ProjectNotFoundError):
            run_async(view.load())

        assert view.state == ViewState.IDLE
        assert isinstance(view.last_error, ProjectNotFoundError)

    def test_empty_project_id_rejected(self, repository) -> None:
        with pytest.raises(ValueError):
            ProjectStatusView("", repository)


class TestTransition:
    def test_schedule_shoot(self, clock) -> None:
        repository = InMemoryProjectRepository([Project(id="wedding-2024-017")])
        dispatcher = RecordingDispatcher()
        emitter = RecordingEmitter()
        view = _view(repository, dispatcher, emitter, clock)

        async def test():
            await view.load()
            outcome = await view.transition(
                ProjectStatus.SHOOTING_SCHEDULED,
                actor="admin",
                notes="confirmed Jan 15",
            )
            await view.notification_trigger.drain()
            stored = await repository.get_project("wedding-2024-017")
            return outcome, stored

        outcome, stored = run_async(test())

        assert outcome.progress == 29
        assert outcome.notified is True
        assert outcome.change.changed_by == "admin"
        assert outcome.change.notes == "confirmed Jan 15"
        assert stored.status == ProjectStatus.SHOOTING_SCHEDULED
        assert len(stored.status_history) == 1
        assert view.state == ViewState.READY
        assert view.project == stored
        assert dispatcher.calls == [("wedding-2024-017", ProjectStatus.SHOOTING_SCHEDULED)]

        changed = emitter.of_type(EventType.STATUS_CHANGED)
        assert len(changed) == 1
        assert changed[0].details["to_status"] == "shooting_scheduled"
        assert changed[0].details["progress"] == 29
        assert len(emitter.of_type(EventType.NOTIFICATION_SENT)) == 1

    def test_transition_without_prior_load(self, project_at) -> None:
        repository = InMemoryProjectRepository(
            [project_at(ProjectStatus.SHOOTING_SCHEDULED)]
        )
        view = _view(repository)

        outcome = run_async(view.transition(ProjectStatus.SHOOTING_COMPLETED, "admin"))

        assert outcome.project.status == ProjectStatus.SHOOTING_COMPLETED
        assert outcome.notified is False

    def test_illegal_transition_leaves_store_unchanged(self) -> None:
        project = Project(id="wedding-2024-017")
        repository = InMemoryProjectRepository([project])
        emitter = RecordingEmitter()
        view = _view(repository, emitter=emitter)

        async def test():
            await view.load()
            with pytest.raises(IllegalTransitionError):
                await view.transition(ProjectStatus.SHOOTING_COMPLETED, "admin")
            return await repository.get_project(project.id)

        stored = run_async(test())

        assert stored.model_dump() == project.model_dump()
        assert view.state == ViewState.READY
        assert isinstance(view.last_error, IllegalTransitionError)
        rejected = emitter.of_type(EventType.TRANSITION_REJECTED)
        assert rejected[0].details["reason"] == "illegal"
        assert rejected[0].details["allowed"] == ["shooting_scheduled"]

    def test_persistence_failure_keeps_prior_state(self, project_at) -> None:
        project = project_at(ProjectStatus.IN_EDITING)
        repository = FailingSaveRepository([project])
        dispatcher = RecordingDispatcher()
        emitter = RecordingEmitter()
        view = _view(repository, dispatcher, emitter)

        async def test():
            await view.load()
            with pytest.raises(PersistenceError) as exc_info:
                await view.transition(ProjectStatus.EDITING_COMPLETED, "editor")
            return exc_info.value, await repository.get_project(project.id)

        error, stored = run_async(test())

        assert isinstance(error.original_error, ConnectionError)
        assert stored == project
        assert view.project.status == ProjectStatus.IN_EDITING
        assert view.state == ViewState.READY
        assert dispatcher.calls == []
        assert emitter.of_type(EventType.PERSISTENCE_ERROR)[0].details["operation"] == "save"
        assert emitter.of_type(EventType.STATUS_CHANGED) == []

    def test_notification_failure_does_not_undo_transition(self, project_at) -> None:
        repository = InMemoryProjectRepository(
            [project_at(ProjectStatus.EDITING_COMPLETED)]
        )
        dispatcher = RecordingDispatcher(fail=True)
        emitter = RecordingEmitter()
        view = _view(repository, dispatcher, emitter)

        async def test():
            outcome = await view.transition(ProjectStatus.DELIVERED, "admin")
            await view.notification_trigger.drain()
            return outcome, await repository.get_project("wedding-2024-017")

        outcome, stored = run_async(test())

        assert outcome.notified is True
        assert stored.status == ProjectStatus.DELIVERED
        assert len(emitter.of_type(EventType.NOTIFICATION_FAILED)) == 1
        assert view.state == ViewState.READY

    def test_regression_lowers_progress(self, project_at) -> None:
        repository = InMemoryProjectRepository([project_at(ProjectStatus.DELIVERED)])
        view = _view(repository)

        async def test():
            await view.load()
            before = view.progress
            outcome = await view.transition(ProjectStatus.EDITING_COMPLETED, "admin")
            return before, outcome

        before, outcome = run_async(test())

        assert before == 86
        assert outcome.progress == 71
        assert len(outcome.project.status_history) == 6

    def test_transition_reads_fresh_status(self, project_at) -> None:
        """A stale cached project does not decide legality."""
        project = project_at(ProjectStatus.SHOOTING_SCHEDULED)
        repository = InMemoryProjectRepository([project])
        first = _view(repository)
        second = _view(repository)

        async def test():
            await first.load()
            await second.load()
            await second.transition(ProjectStatus.SHOOTING_COMPLETED, "editor")
            with pytest.raises(IllegalTransitionError):
                await first.transition(ProjectStatus.SHOOTING_COMPLETED, "admin")

        run_async(test())

        assert first.project.status == ProjectStatus.SHOOTING_COMPLETED

    def test_missing_project_on_transition(self, repository) -> None:
        view = _view(repository)

        with pytest.raises(ProjectNotFoundError):
            run_async(view.transition(ProjectStatus.SHOOTING_SCHEDULED, "admin"))

        assert view.state == ViewState.IDLE


class TestConcurrency:
    def test_second_transition_rejected_while_in_flight(self, project_at) -> None:
        repository = GatedRepository([project_at(ProjectStatus.SHOOTING_SCHEDULED)])
        emitter = RecordingEmitter()
        view = _view(repository, emitter=emitter)

        async def test():
            await view.load()
            repository.gate = asyncio.Event()

            in_flight = asyncio.create_task(
                view.transition(ProjectStatus.SHOOTING_COMPLETED, "admin")
            )
            await asyncio.sleep(0)
            assert view.state == ViewState.TRANSITIONING

            with pytest.raises(ConcurrentTransitionError):
                await view.transition(ProjectStatus.DRAFT, "editor")
            with pytest.raises(ConcurrentTransitionError):
                await view.load()

            repository.gate.set()
            return await in_flight

        outcome = run_async(test())

        assert outcome.project.status == ProjectStatus.SHOOTING_COMPLETED
        assert len(outcome.project.status_history) == 2
        assert view.state == ViewState.READY
        rejected = emitter.of_type(EventType.TRANSITION_REJECTED)
        assert [e.details["reason"] for e in rejected] == ["concurrent"]

    def test_cancelled_transition_releases_view(self, project_at) -> None:
        repository = SlowSaveRepository([project_at(ProjectStatus.SHOOTING_SCHEDULED)])
        view = _view(repository)

        async def test():
            await view.load()
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(
                    view.transition(ProjectStatus.SHOOTING_COMPLETED, "admin"),
                    0.05,
                )
            state_after_cancel = view.state

            repository.delay = 0
            outcome = await view.transition(ProjectStatus.SHOOTING_COMPLETED, "admin")
            return state_after_cancel, outcome

        state_after_cancel, outcome = run_async(test())

        assert state_after_cancel == ViewState.READY
        assert outcome.project.status == ProjectStatus.SHOOTING_COMPLETED
        assert len(outcome.project.status_history) == 2
        assert view.state == ViewState.READY

    def test_cancelled_load_releases_view(self, project_at) -> None:
        repository = GatedRepository([project_at(ProjectStatus.DRAFT)])
        view = _view(repository)

        async def test():
            repository.gate = asyncio.Event()
            loading = asyncio.create_task(view.load())
            await asyncio.sleep(0)
            assert view.state == ViewState.LOADING

            loading.cancel()
            with pytest.raises(asyncio.CancelledError):
                await loading
            state_after_cancel = view.state

            repository.gate = None
            return state_after_cancel, await view.load()

        state_after_cancel, project = run_async(test())

        assert state_after_cancel == ViewState.IDLE
        assert project.status == ProjectStatus.DRAFT
        assert view.state == ViewState.READY
