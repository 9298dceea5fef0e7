"""Marking lesson obligations done."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Callable
from uuid import UUID

from tutoring_engine.calculators.types import Obligation
from tutoring_engine.config import get_settings
from tutoring_engine.exceptions import ForbiddenError
from tutoring_engine.services.identity import Caller, teacher_id_for_user
from tutoring_engine.services.lesson_status_service import LessonStatusService
from tutoring_engine.services.obligation_locks import LessonView, enrich_lesson
from tutoring_engine.services.salary_service import SalaryService
from tutoring_engine.services.state_machine import LessonStatus, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObligationDetail:
    """One obligation of a lesson as shown to staff."""

    obligation: Obligation
    done: bool
    done_at: datetime | None
    locked: bool


class ObligationService:
    """Records obligations as done on behalf of teachers and admins.

    A flag only ever goes from False to True; re-marking keeps the first
    timestamp. Teachers cannot mark a locked obligation, admins can.
    """

    def __init__(
        self,
        lessons: LessonStatusService,
        salary_service: SalaryService | None = None,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.lessons = lessons
        self.session = lessons.session
        self.tz = tz if tz is not None else get_settings().tzinfo
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.salary_service = salary_service or lessons.salary_service

    async def mark_obligation(
        self, lesson_id: UUID, obligation: Obligation, caller: Caller
    ) -> LessonView:
        """Mark ``obligation`` done and return the refreshed lesson view."""
        lesson = await self.lessons.get_lesson(lesson_id)
        now = self.clock()

        if caller.role == UserRole.STUDENT:
            raise ForbiddenError("Students cannot mark lesson obligations")
        if caller.is_teacher:
            teacher_id = await teacher_id_for_user(self.session, caller.user_id)
            if teacher_id is None or teacher_id != lesson.teacher_id:
                raise ForbiddenError("You are not assigned to this lesson")
            view = enrich_lesson(lesson, now, self.tz)
            if view.locked(obligation):
                raise ForbiddenError(f"The {obligation.value} obligation is locked for this lesson")

        if getattr(lesson, obligation.flag_attr):
            return enrich_lesson(lesson, now, self.tz)

        setattr(lesson, obligation.flag_attr, True)
        setattr(lesson, obligation.timestamp_attr, now)
        await self.session.flush()
        logger.info(
            "Lesson %s obligation %s marked by %s",
            lesson.id,
            obligation.value,
            caller.user_id or caller.role.value,
        )

        # Completed lessons are already in a salary record.
        if lesson.status == LessonStatus.COMPLETED:
            await self.salary_service.recalculate_for_lesson(lesson)
        return enrich_lesson(lesson, now, self.tz)

    async def lesson_obligations(self, lesson_id: UUID) -> list[ObligationDetail]:
        lesson = await self.lessons.get_lesson(lesson_id)
        view = enrich_lesson(lesson, self.clock(), self.tz)
        return [
            ObligationDetail(
                obligation=o,
                done=bool(getattr(lesson, o.flag_attr)),
                done_at=getattr(lesson, o.timestamp_attr),
                locked=view.locked(o),
            )
            for o in Obligation
        ]
