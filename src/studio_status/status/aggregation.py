"""Read-only aggregation over the full project collection.

Feeds the status dashboard: per-status counts, active/completed rollups,
completion rate, filtered project lists and the global activity feed.
Nothing here writes to the repository, and nothing is cached between
calls, so a snapshot is only as fresh as the call that produced it.
"""

import logging
from typing import Dict, List, Optional, Sequence

from studio_status.events.metrics import StudioMetrics
from studio_status.status.models import Project, StatusChange, StatusSummary
from studio_status.status.repository import ProjectRepository
from studio_status.status.vocabulary import (
    ACTIVE_STATUSES,
    COMPLETED_STATUSES,
    STATUS_ORDER,
    ProjectStatus,
    StatusLike,
    coerce_status,
)


logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 10


def summarize(counts: Dict[ProjectStatus, int]) -> StatusSummary:
    """Build the dashboard rollup from per-status counts.

    Example:
        >>> summarize({ProjectStatus.DRAFT: 1, ProjectStatus.DELIVERED: 1}).completion_rate
        50
    """
    by_status = {status: counts.get(status, 0) for status in STATUS_ORDER}
    total = sum(by_status.values())
    active = sum(by_status[status] for status in ACTIVE_STATUSES)
    completed = sum(by_status[status] for status in COMPLETED_STATUSES)
    completion_rate = round(100 * completed / total) if total else 0

    return StatusSummary(
        by_status=by_status,
        total=total,
        active=active,
        completed=completed,
        completion_rate=completion_rate,
    )


class StatusAggregationService:
    """Dashboard queries over all projects.

    Attributes:
        repository: The project repository to read from.
        metrics: Optional metrics whose per-status gauge is refreshed
            every time statistics are computed.
        default_limit: Feed size used when no limit is given.

    Example:
        >>> service = StatusAggregationService(repository)
        >>> stats = await service.status_statistics()
        >>> stats[ProjectStatus.DRAFT]
        1
    """

    def __init__(
        self,
        repository: ProjectRepository,
        metrics: Optional[StudioMetrics] = None,
        default_limit: int = DEFAULT_RECENT_LIMIT,
    ):
        self.repository = repository
        self.metrics = metrics
        self.default_limit = default_limit

    async def status_statistics(self) -> Dict[ProjectStatus, int]:
        """Count projects per status.

        Every status is present in the result; statuses with no projects
        map to 0.
        """
        raw = await self.repository.count_projects_by_status()
        stats = {status: int(raw.get(status, 0)) for status in STATUS_ORDER}

        if self.metrics is not None:
            self.metrics.set_status_counts(stats)

        logger.debug(
            "Computed status statistics",
            extra={"stats": {s.value: c for s, c in stats.items()}},
        )
        return stats

    async def summary(self) -> StatusSummary:
        """Totals, active/completed rollups and completion rate."""
        return summarize(await self.status_statistics())

    async def recent_status_changes(
        self,
        limit: Optional[int] = None,
    ) -> List[StatusChange]:
        """Most recent status changes across all projects, newest first.

        Args:
            limit: Maximum number of changes; defaults to ``default_limit``.

        Raises:
            ValueError: If ``limit`` is negative.
        """
        if limit is None:
            limit = self.default_limit
        if limit < 0:
            raise ValueError("limit must not be negative")
        if limit == 0:
            return []

        changes = await self.repository.recent_changes(limit)
        return list(changes[:limit])

    async def projects_by_status(self, status: StatusLike) -> List[Project]:
        """Projects currently in ``status``, most recently updated first."""
        return await self.repository.query_projects_by_status([coerce_status(status)])

    async def projects_by_status_range(
        self,
        statuses: Sequence[StatusLike],
    ) -> List[Project]:
        """Projects currently in any of ``statuses``.

        An empty range yields an empty list without querying.
        """
        wanted = list(dict.fromkeys(coerce_status(s) for s in statuses))
        if not wanted:
            return []
        return await self.repository.query_projects_by_status(wanted)

    async def active_projects(self) -> List[Project]:
        """Projects in draft, shooting_scheduled or in_editing."""
        return await self.projects_by_status_range(ACTIVE_STATUSES)

    async def completed_projects(self) -> List[Project]:
        """Projects in delivered or completed."""
        return await self.projects_by_status_range(COMPLETED_STATUSES)
