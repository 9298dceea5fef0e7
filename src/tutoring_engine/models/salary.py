"""Monthly teacher salary record."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutoring_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from tutoring_engine.models.teacher import Teacher


class SalaryRecord(Base, TimestampMixin):
    """One salary record per teacher per calendar month."""

    __tablename__ = "salary_record"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    teacher_id: Mapped[UUID] = mapped_column(
        ForeignKey("teacher.id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    lessons_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gross_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    net_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    action_breakdown: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    obligations_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("teacher_id", "year", "month", name="salary_record_teacher_month_unique"),
        CheckConstraint("month BETWEEN 1 AND 12", name="salary_record_month_check"),
        CheckConstraint("status IN ('PENDING', 'PAID')", name="salary_record_status_check"),
        CheckConstraint("net_amount >= 0", name="salary_record_net_non_negative"),
    )

    # Relationships
    teacher: Mapped[Teacher] = relationship(back_populates="salary_records")
