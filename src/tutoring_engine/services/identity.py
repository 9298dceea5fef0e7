"""Caller identity as resolved by the upstream auth middleware."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tutoring_engine.exceptions import ForbiddenError
from tutoring_engine.models import Teacher
from tutoring_engine.services.state_machine import LessonOperation, LessonStateMachine, UserRole


@dataclass(frozen=True)
class Caller:
    """Who is asking. ``user_id`` is None for the scheduler."""

    role: UserRole
    user_id: UUID | None = None

    @classmethod
    def system(cls) -> Caller:
        return cls(role=UserRole.ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER


async def teacher_id_for_user(session: AsyncSession, user_id: UUID | None) -> UUID | None:
    """Look up the teacher profile id of a user account."""
    if user_id is None:
        return None
    result = await session.execute(select(Teacher.id).where(Teacher.user_id == user_id))
    return result.scalar_one_or_none()


async def authorize(
    session: AsyncSession,
    operation: LessonOperation,
    caller: Caller,
    lesson_teacher_id: UUID,
) -> None:
    """Raise ForbiddenError unless ``caller`` may run ``operation`` on the lesson."""
    if not LessonStateMachine.role_allowed(operation, caller.role):
        raise ForbiddenError(f"Role {caller.role.value} may not {operation.value.replace('_', ' ')} lessons")

    if LessonStateMachine.requires_assignment(operation, caller.role):
        teacher_id = await teacher_id_for_user(session, caller.user_id)
        if teacher_id is None or teacher_id != lesson_teacher_id:
            raise ForbiddenError("You are not assigned to this lesson")
