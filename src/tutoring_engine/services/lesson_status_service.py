"""Lesson status service - drives lessons through the state machine."""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tutoring_engine.config import get_settings
from tutoring_engine.exceptions import InvalidStateError, NotFoundError
from tutoring_engine.models import Lesson
from tutoring_engine.retry import RetryPolicy, run_with_retry
from tutoring_engine.services.identity import Caller, authorize
from tutoring_engine.services.obligation_locks import LessonView, enrich_lesson
from tutoring_engine.services.salary_service import SalaryService
from tutoring_engine.services.state_machine import LessonOperation, LessonStateMachine

logger = logging.getLogger(__name__)


class LessonStatusService:
    """Service for managing the lesson lifecycle.

    Operations:
    - start: SCHEDULED → IN_PROGRESS (admin or assigned teacher)
    - complete: → COMPLETED, stamps completed_at, recalculates the month's salary
    - cancel: → CANCELLED with a reason in notes (admin only)
    - mark_missed: SCHEDULED → MISSED (scheduler or admin)

    Each transition is a conditional update on the lesson's current
    status, so two racing transitions cannot both pass a stale check.
    """

    def __init__(
        self,
        session: AsyncSession,
        salary_service: SalaryService | None = None,
        retry_policy: RetryPolicy | None = None,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.session = session
        self.tz = tz if tz is not None else get_settings().tzinfo
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.salary_service = salary_service or SalaryService(session, tz=self.tz, clock=self.clock)
        self.retry_policy = retry_policy or RetryPolicy.from_settings()

    async def get_lesson(self, lesson_id: UUID) -> Lesson:
        """Load a lesson, retrying dropped connections."""

        async def load() -> Lesson | None:
            result = await self.session.execute(select(Lesson).where(Lesson.id == lesson_id))
            return result.scalar_one_or_none()

        async def reset(_exc: BaseException, _attempt: int) -> None:
            await self.session.rollback()

        lesson = await run_with_retry(load, self.retry_policy, on_retry=reset, name="load lesson")
        if lesson is None:
            raise NotFoundError("Lesson", lesson_id)
        return lesson

    async def get_lesson_view(self, lesson_id: UUID) -> LessonView:
        """Lesson with its lock indicators as of now."""
        lesson = await self.get_lesson(lesson_id)
        return enrich_lesson(lesson, self.clock(), self.tz)

    async def start(self, lesson_id: UUID, caller: Caller) -> Lesson:
        """Start a scheduled lesson."""
        lesson = await self.get_lesson(lesson_id)
        await authorize(self.session, LessonOperation.START, caller, lesson.teacher_id)
        return await self._transition(lesson, LessonOperation.START, caller)

    async def complete(
        self, lesson_id: UUID, caller: Caller, notes: str | None = None
    ) -> LessonView:
        """Complete a lesson, freezing its unfinished obligations.

        The salary recalculation that follows is best effort: a failure is
        logged and does not undo the completion.
        """
        lesson = await self.get_lesson(lesson_id)
        await authorize(self.session, LessonOperation.COMPLETE, caller, lesson.teacher_id)

        now = self.clock()
        values: dict[str, Any] = {"completed_at": now}
        if notes is not None:
            values["notes"] = notes
        lesson = await self._transition(lesson, LessonOperation.COMPLETE, caller, values)

        await self.salary_service.recalculate_for_lesson(lesson)
        return enrich_lesson(lesson, now, self.tz)

    async def cancel(
        self, lesson_id: UUID, caller: Caller, reason: str | None = None
    ) -> Lesson:
        """Cancel a lesson that is neither completed nor already cancelled."""
        lesson = await self.get_lesson(lesson_id)
        await authorize(self.session, LessonOperation.CANCEL, caller, lesson.teacher_id)
        notes = f"Cancelled: {reason}" if reason else "Cancelled"
        return await self._transition(lesson, LessonOperation.CANCEL, caller, {"notes": notes})

    async def mark_missed(self, lesson_id: UUID, caller: Caller | None = None) -> Lesson:
        """Mark a scheduled lesson as missed. ``caller`` None means the scheduler."""
        caller = caller or Caller.system()
        lesson = await self.get_lesson(lesson_id)
        await authorize(self.session, LessonOperation.MARK_MISSED, caller, lesson.teacher_id)
        return await self._transition(lesson, LessonOperation.MARK_MISSED, caller)

    async def _transition(
        self,
        lesson: Lesson,
        operation: LessonOperation,
        caller: Caller,
        values: dict[str, Any] | None = None,
    ) -> Lesson:
        from_status = lesson.status
        target = LessonStateMachine.validate(operation, from_status)
        sources = [s.value for s in LessonStateMachine.source_statuses(operation)]

        result = await self.session.execute(
            update(Lesson)
            .where(Lesson.id == lesson.id, Lesson.status.in_(sources))
            .values(status=target.value, **(values or {}))
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            # Status moved or the row is gone; report against the fresh value.
            current = await self.session.scalar(
                select(Lesson.status).where(Lesson.id == lesson.id)
            )
            if current is None:
                raise NotFoundError("Lesson", lesson.id)
            await self.session.refresh(lesson)
            LessonStateMachine.validate(operation, lesson.status)
            raise InvalidStateError(operation.value, lesson.status)

        await self.session.refresh(lesson)

        logger.info(
            "Lesson %s %s: %s -> %s by %s",
            lesson.id,
            operation.value,
            from_status,
            target.value,
            caller.user_id or caller.role.value,
        )
        return lesson
