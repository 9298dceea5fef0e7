"""Lesson counts by status for dashboards."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutoring_engine.models import Lesson
from tutoring_engine.retry import RetryPolicy, run_with_retry
from tutoring_engine.services.state_machine import LessonStatus

logger = logging.getLogger(__name__)


def as_utc(ts: datetime | None) -> datetime | None:
    """Treat a naive window bound as UTC."""
    if ts is None or ts.tzinfo is not None:
        return ts
    return ts.replace(tzinfo=timezone.utc)


class StoreMonitor(Protocol):
    async def ensure_connected(self) -> None:
        ...


@dataclass(frozen=True)
class LessonStatistics:
    """Lesson counts over a filter window."""

    total: int
    completed: int
    cancelled: int
    missed: int
    in_progress: int
    scheduled: int
    completion_rate: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def build_statistics(
    total: int, completed: int, cancelled: int, missed: int, in_progress: int
) -> LessonStatistics:
    """Derive scheduled count and completion rate from the five queried counts.

    completion_rate rounds half up and is 0 for an empty window.
    """
    scheduled = total - completed - cancelled - missed - in_progress
    rate = math.floor(100 * completed / total + 0.5) if total else 0
    return LessonStatistics(
        total=total,
        completed=completed,
        cancelled=cancelled,
        missed=missed,
        in_progress=in_progress,
        scheduled=scheduled,
        completion_rate=rate,
    )


class LessonStatisticsService:
    """Resilient read path for lesson statistics.

    Each attempt checks the connection first, resetting the pool if it was
    dropped, then runs the five counts concurrently, one session per count.
    Transient disconnects are retried per the retry policy.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        monitor: StoreMonitor,
        retry_policy: RetryPolicy | None = None,
    ):
        self.session_factory = session_factory
        self.monitor = monitor
        self.retry_policy = retry_policy or RetryPolicy.from_settings()

    async def lesson_statistics(
        self,
        teacher_id: UUID | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> LessonStatistics:
        """Count lessons by status, optionally for one teacher and a scheduled_at window."""
        date_from = as_utc(date_from)
        date_to = as_utc(date_to)
        filters = []
        if teacher_id is not None:
            filters.append(Lesson.teacher_id == teacher_id)
        if date_from is not None:
            filters.append(Lesson.scheduled_at >= date_from)
        if date_to is not None:
            filters.append(Lesson.scheduled_at <= date_to)

        async def attempt() -> LessonStatistics:
            await self.monitor.ensure_connected()
            return await self._query_counts(filters)

        stats = await run_with_retry(attempt, self.retry_policy, name="lesson statistics")
        logger.debug("Lesson statistics %s", stats)
        return stats

    async def _query_counts(self, filters: list[Any]) -> LessonStatistics:
        total, completed, cancelled, missed, in_progress = await asyncio.gather(
            self._count(filters),
            self._count(filters, LessonStatus.COMPLETED),
            self._count(filters, LessonStatus.CANCELLED),
            self._count(filters, LessonStatus.MISSED),
            self._count(filters, LessonStatus.IN_PROGRESS),
        )
        return build_statistics(total, completed, cancelled, missed, in_progress)

    async def _count(self, filters: list[Any], status: LessonStatus | None = None) -> int:
        stmt = select(func.count()).select_from(Lesson).where(*filters)
        if status is not None:
            stmt = stmt.where(Lesson.status == status.value)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())
