"""Lesson model: schedule, status and the four post-lesson obligations."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutoring_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from tutoring_engine.models.teacher import Teacher


class Lesson(Base, TimestampMixin):
    """A scheduled lesson.

    Obligation flags only ever move from False to True; each has a
    timestamp recording when it was first satisfied. completed_at is set
    exactly when status is 'COMPLETED'.
    """

    __tablename__ = "lesson"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    group_id: Mapped[UUID] = mapped_column(nullable=False)
    teacher_id: Mapped[UUID] = mapped_column(
        ForeignKey("teacher.id", ondelete="CASCADE"),
        nullable=False,
    )
    scheduled_at: Mapped[datetime] = mapped_column(nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    topic: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="SCHEDULED")
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Obligations
    absence_marked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    absence_marked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    feedbacks_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    feedbacks_completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    voice_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    voice_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    text_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    text_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('SCHEDULED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED', 'MISSED')",
            name="lesson_status_check",
        ),
        CheckConstraint("duration > 0", name="lesson_duration_check"),
        CheckConstraint(
            "(status = 'COMPLETED') = (completed_at IS NOT NULL)",
            name="lesson_completed_at_check",
        ),
        Index("ix_lesson_teacher_scheduled", "teacher_id", "scheduled_at"),
    )

    # Relationships
    teacher: Mapped[Teacher] = relationship(back_populates="lessons")
