"""Teacher profile model."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutoring_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from tutoring_engine.models.lesson import Lesson
    from tutoring_engine.models.salary import SalaryRecord


class Teacher(Base, TimestampMixin):
    """Teacher profile, linked to the user account that signs in."""

    __tablename__ = "teacher"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    # Fixed price per lesson; NULL means the configured default rate applies.
    lesson_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    lessons: Mapped[list[Lesson]] = relationship(back_populates="teacher")
    salary_records: Mapped[list[SalaryRecord]] = relationship(back_populates="teacher")
