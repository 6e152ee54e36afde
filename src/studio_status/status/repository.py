"""Project persistence for the status workflow.

This module defines the ProjectRepository protocol the workflow depends
on and two implementations:

- InMemoryProjectRepository: dict-backed store for development and tests
- PostgresProjectRepository: asyncpg-backed store with connection pooling

The Postgres schema lives in migrations/001_project_status.sql. Writing a
status change inserts the history row and updates the project's status
column inside one transaction, so a failed save never leaves a partial
append behind.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

import asyncpg

from studio_status.status.errors import PersistenceError
from studio_status.status.models import Project, ProjectPriority, StatusChange
from studio_status.status.vocabulary import STATUS_ORDER, ProjectStatus


logger = logging.getLogger(__name__)


@runtime_checkable
class ProjectRepository(Protocol):
    """Protocol defining the persistence collaborator for the workflow.

    Implementations must offer read-after-write consistency for a single
    project. Multi-operation transactions across projects are not assumed.
    """

    async def get_project(self, project_id: str) -> Optional[Project]:
        """Get a project with its full status history, newest first.

        Returns:
            The project if found, None otherwise.

        Raises:
            PersistenceError: If the read fails.
        """
        ...

    async def create_project(self, project: Project) -> None:
        """Store a new project.

        Raises:
            PersistenceError: If the project exists or the write fails.
        """
        ...

    async def save_project_status(
        self,
        project_id: str,
        new_status: ProjectStatus,
        change: StatusChange,
    ) -> bool:
        """Append a status change and update the project's status atomically.

        Returns:
            True if committed, False if the project does not exist.

        Raises:
            PersistenceError: If the write fails. Nothing is committed.
        """
        ...

    async def query_projects_by_status(
        self,
        statuses: Sequence[ProjectStatus],
    ) -> List[Project]:
        """List projects whose status is one of ``statuses``.

        Returns:
            Matching projects, most recently updated first.
        """
        ...

    async def count_projects_by_status(self) -> Dict[ProjectStatus, int]:
        """Count projects grouped by current status."""
        ...

    async def recent_changes(self, limit: int) -> List[StatusChange]:
        """Most recent status changes across all projects, newest first."""
        ...


class InMemoryProjectRepository:
    """In-memory implementation of the ProjectRepository protocol.

    Projects are stored as immutable snapshots; every status write
    replaces the stored snapshot in one assignment.
    """

    def __init__(self, projects: Optional[Sequence[Project]] = None) -> None:
        self._projects: Dict[str, Project] = {}
        # Global append order, used to break timestamp ties in the feed
        self._changes: List[StatusChange] = []
        for project in projects or ():
            self._store_new(project)

    def _store_new(self, project: Project) -> None:
        self._projects[project.id] = project
        self._changes.extend(reversed(project.status_history))

    async def get_project(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)

    async def create_project(self, project: Project) -> None:
        if project.id in self._projects:
            raise PersistenceError(f"Project already exists: {project.id}")
        self._store_new(project)

    async def save_project_status(
        self,
        project_id: str,
        new_status: ProjectStatus,
        change: StatusChange,
    ) -> bool:
        existing = self._projects.get(project_id)
        if existing is None:
            return False

        self._projects[project_id] = existing.model_copy(
            update={
                "status": new_status,
                "status_history": [change, *existing.status_history],
                "updated_at": change.timestamp,
            }
        )
        self._changes.append(change)
        return True

    async def query_projects_by_status(
        self,
        statuses: Sequence[ProjectStatus],
    ) -> List[Project]:
        wanted = set(statuses)
        matches = [p for p in self._projects.values() if p.status in wanted]
        return sorted(matches, key=lambda p: p.updated_at, reverse=True)

    async def count_projects_by_status(self) -> Dict[ProjectStatus, int]:
        counts = {status: 0 for status in STATUS_ORDER}
        for project in self._projects.values():
            counts[project.status] += 1
        return counts

    async def recent_changes(self, limit: int) -> List[StatusChange]:
        ordered = sorted(
            enumerate(self._changes),
            key=lambda item: (item[1].timestamp, item[0]),
            reverse=True,
        )
        return [change for _, change in ordered[:limit]]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row_to_change(row: Any) -> StatusChange:
    return StatusChange(
        id=row["id"],
        project_id=row["project_id"],
        from_status=ProjectStatus(row["from_status"]),
        to_status=ProjectStatus(row["to_status"]),
        timestamp=_as_utc(row["timestamp"]),
        changed_by=row["changed_by"],
        notes=row["notes"],
    )


def _row_to_project(row: Any, history: List[StatusChange]) -> Project:
    return Project(
        id=row["id"],
        title=row["title"] or "",
        status=ProjectStatus(row["status"]),
        status_history=history,
        client_name=row["client_name"],
        client_email=row["client_email"],
        assignee=row["assignee"],
        priority=ProjectPriority(row["priority"] or ProjectPriority.MEDIUM.value),
        shooting_date=_as_utc(row["shooting_date"]),
        delivery_date=_as_utc(row["delivery_date"]),
        created_at=_as_utc(row["created_at"]),
        updated_at=_as_utc(row["updated_at"]),
    )


_PROJECT_COLUMNS = """
    id,
    title,
    status,
    client_name,
    client_email,
    assignee,
    priority,
    shooting_date,
    delivery_date,
    created_at,
    updated_at
"""

_CHANGE_COLUMNS = """
    id,
    project_id,
    from_status,
    to_status,
    timestamp,
    changed_by,
    notes
"""

_INSERT_CHANGE = """
    INSERT INTO project_status_history (
        id,
        project_id,
        from_status,
        to_status,
        timestamp,
        changed_by,
        notes
    ) VALUES ($1, $2, $3, $4, $5, $6, $7)
"""


class PostgresProjectRepository:
    """PostgreSQL implementation of the ProjectRepository protocol.

    Projects live in the ``projects`` table and their ledgers in
    ``project_status_history``. History rows are only ever inserted.

    Attributes:
        connection_string: PostgreSQL connection URL.
        min_pool_size: Minimum connections in pool.
        max_pool_size: Maximum connections in pool.

    Example:
        >>> async with PostgresProjectRepository("postgresql://...") as repo:
        ...     project = await repo.get_project("wedding-2024-017")
    """

    def __init__(
        self,
        connection_string: str,
        min_pool_size: int = 2,
        max_pool_size: int = 10,
    ):
        self.connection_string = connection_string
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool, raising if not connected.

        Raises:
            PersistenceError: If the pool is not initialized.
        """
        if self._pool is None:
            raise PersistenceError(
                "Database pool not initialized. Call connect() first."
            )
        return self._pool

    async def connect(self) -> None:
        """Initialize the connection pool.

        Raises:
            PersistenceError: If connection fails.
        """
        if self._pool is not None:
            logger.warning("Connection pool already initialized")
            return

        try:
            logger.info(
                "Connecting to PostgreSQL",
                extra={
                    "min_pool_size": self.min_pool_size,
                    "max_pool_size": self.max_pool_size,
                },
            )
            self._pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
            )
            logger.info("PostgreSQL connection pool established")
        except Exception as e:
            logger.error(
                "Failed to connect to PostgreSQL",
                extra={"error": str(e)},
            )
            raise PersistenceError(
                f"Failed to connect to PostgreSQL: {e}",
                original_error=e,
            ) from e

    async def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            logger.info("Closing PostgreSQL connection pool")
            await self._pool.close()
            self._pool = None

    async def __aenter__(self) -> "PostgresProjectRepository":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection with an active transaction."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def _load_projects(
        self,
        conn: asyncpg.Connection,
        rows: Sequence[Any],
    ) -> List[Project]:
        """Build projects from rows, fetching all their histories at once.

        Per-project history is ordered by ``seq``. A save takes the row
        lock on ``projects`` before inserting, so ``seq`` follows commit
        order and the newest entry always matches ``projects.status``,
        even when two writers stamped their changes out of order.
        """
        if not rows:
            return []

        ids = [row["id"] for row in rows]
        change_rows = await conn.fetch(
            f"""
            SELECT {_CHANGE_COLUMNS}
            FROM project_status_history
            WHERE project_id = ANY($1::text[])
            ORDER BY seq DESC
            """,
            ids,
        )

        histories: Dict[str, List[StatusChange]] = {pid: [] for pid in ids}
        for change_row in change_rows:
            histories[change_row["project_id"]].append(_row_to_change(change_row))

        return [_row_to_project(row, histories[row["id"]]) for row in rows]

    async def get_project(self, project_id: str) -> Optional[Project]:
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    SELECT {_PROJECT_COLUMNS}
                    FROM projects
                    WHERE id = $1
                    """,
                    project_id,
                )
                if row is None:
                    return None

                projects = await self._load_projects(conn, [row])
                return projects[0]

        except PersistenceError:
            raise
        except Exception as e:
            logger.error(
                "Failed to get project",
                extra={"project_id": project_id, "error": str(e)},
            )
            raise PersistenceError(
                f"Failed to get project: {e}",
                original_error=e,
            ) from e

    async def create_project(self, project: Project) -> None:
        try:
            async with self._transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO projects (
                        id,
                        title,
                        status,
                        client_name,
                        client_email,
                        assignee,
                        priority,
                        shooting_date,
                        delivery_date,
                        created_at,
                        updated_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                    """,
                    project.id,
                    project.title,
                    project.status.value,
                    project.client_name,
                    project.client_email,
                    project.assignee,
                    project.priority.value,
                    project.shooting_date,
                    project.delivery_date,
                    project.created_at,
                    project.updated_at,
                )

                for change in reversed(project.status_history):
                    await conn.execute(
                        _INSERT_CHANGE,
                        change.id,
                        change.project_id,
                        change.from_status.value,
                        change.to_status.value,
                        change.timestamp,
                        change.changed_by,
                        change.notes,
                    )

                logger.info(
                    "Created project",
                    extra={
                        "project_id": project.id,
                        "status": project.status.value,
                    },
                )

        except asyncpg.UniqueViolationError as e:
            raise PersistenceError(
                f"Project already exists: {project.id}",
                original_error=e,
            ) from e
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(
                "Failed to create project",
                extra={"project_id": project.id, "error": str(e)},
            )
            raise PersistenceError(
                f"Failed to create project: {e}",
                original_error=e,
            ) from e

    async def save_project_status(
        self,
        project_id: str,
        new_status: ProjectStatus,
        change: StatusChange,
    ) -> bool:
        try:
            async with self._transaction() as conn:
                result = await conn.execute(
                    """
                    UPDATE projects
                    SET status = $2, updated_at = $3
                    WHERE id = $1
                    """,
                    project_id,
                    new_status.value,
                    change.timestamp,
                )

                rows_affected = int(result.split()[-1])
                if rows_affected == 0:
                    logger.warning(
                        "Status save for missing project",
                        extra={"project_id": project_id},
                    )
                    return False

                await conn.execute(
                    _INSERT_CHANGE,
                    change.id,
                    project_id,
                    change.from_status.value,
                    change.to_status.value,
                    change.timestamp,
                    change.changed_by,
                    change.notes,
                )

                logger.info(
                    "Saved project status",
                    extra={
                        "project_id": project_id,
                        "status": new_status.value,
                        "change_id": change.id,
                    },
                )
                return True

        except PersistenceError:
            raise
        except Exception as e:
            logger.error(
                "Failed to save project status",
                extra={"project_id": project_id, "error": str(e)},
            )
            raise PersistenceError(
                f"Failed to save project status: {e}",
                original_error=e,
            ) from e

    async def query_projects_by_status(
        self,
        statuses: Sequence[ProjectStatus],
    ) -> List[Project]:
        values = [status.value for status in statuses]
        if not values:
            return []

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_PROJECT_COLUMNS}
                    FROM projects
                    WHERE status = ANY($1::text[])
                    ORDER BY updated_at DESC
                    """,
                    values,
                )
                projects = await self._load_projects(conn, rows)

                logger.debug(
                    "Listed projects by status",
                    extra={"statuses": values, "count": len(projects)},
                )
                return projects

        except PersistenceError:
            raise
        except Exception as e:
            logger.error(
                "Failed to list projects by status",
                extra={"statuses": values, "error": str(e)},
            )
            raise PersistenceError(
                f"Failed to list projects by status: {e}",
                original_error=e,
            ) from e

    async def count_projects_by_status(self) -> Dict[ProjectStatus, int]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT status, COUNT(*) AS count
                    FROM projects
                    GROUP BY status
                    """
                )
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(
                "Failed to count projects by status",
                extra={"error": str(e)},
            )
            raise PersistenceError(
                f"Failed to count projects by status: {e}",
                original_error=e,
            ) from e

        counts = {status: 0 for status in STATUS_ORDER}
        for row in rows:
            counts[ProjectStatus(row["status"])] = int(row["count"])
        return counts

    async def recent_changes(self, limit: int) -> List[StatusChange]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_CHANGE_COLUMNS}
                    FROM project_status_history
                    ORDER BY timestamp DESC, seq DESC
                    LIMIT $1
                    """,
                    limit,
                )
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(
                "Failed to get recent status changes",
                extra={"limit": limit, "error": str(e)},
            )
            raise PersistenceError(
                f"Failed to get recent status changes: {e}",
                original_error=e,
            ) from e

        return [_row_to_change(row) for row in rows]

    async def health_check(self) -> bool:
        """Check if the database connection is healthy."""
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception as e:
            logger.warning(
                "Database health check failed",
                extra={"error": str(e)},
            )
            return False
