"""Pytest configuration and shared fixtures for all tests."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

import pytest

from studio_status.status.engine import propose_transition
from studio_status.status.ledger import append_change
from studio_status.status.models import Project
from studio_status.status.repository import InMemoryProjectRepository
from studio_status.status.vocabulary import STATUS_ORDER, ProjectStatus


BASE_TIME = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock that advances one minute per reading."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(minutes=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


def build_project_at(
    status: ProjectStatus,
    project_id: str = "wedding-2024-017",
    actor: str = "admin",
    clock: Optional[Callable[[], datetime]] = None,
    **fields,
) -> Project:
    """Build a project that reached ``status`` along the forward pipeline."""
    clock = clock or FakeClock()
    project = Project(id=project_id, created_at=BASE_TIME, updated_at=BASE_TIME, **fields)
    for target in STATUS_ORDER[1 : STATUS_ORDER.index(status) + 1]:
        change = propose_transition(project, target, actor, clock=clock)
        project = append_change(project, change)
    return project


@pytest.fixture(scope="session")
def project_at() -> Callable[..., Project]:
    """Factory fixture: build a project at a given status with history."""
    return build_project_at


@pytest.fixture
def clock() -> FakeClock:
    """A fresh deterministic clock."""
    return FakeClock()


@pytest.fixture
def repository() -> InMemoryProjectRepository:
    """An empty in-memory project repository."""
    return InMemoryProjectRepository()


@pytest.fixture
def status_env(monkeypatch: pytest.MonkeyPatch) -> Dict[str, str]:
    """Populate STUDIO_ environment variables for settings tests."""
    env = {
        "STUDIO_DATABASE_URL": "postgresql://studio:secret@db:5432/studio",
        "STUDIO_DB_MIN_POOL_SIZE": "1",
        "STUDIO_DB_MAX_POOL_SIZE": "5",
        "STUDIO_RECENT_CHANGES_LIMIT": "5",
        "STUDIO_EVENT_SINKS": '["logging", "metrics"]',
        "STUDIO_LOG_LEVEL": "debug",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env
