"""Admin-tunable obligation weights."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Integer
from sqlalchemy.orm import Mapped, mapped_column

from tutoring_engine.models.base import Base, TimestampMixin


class ObligationPercentConfig(Base, TimestampMixin):
    """Share of the per-lesson rate carried by each obligation.

    A single row is active; the four values add up to 100.
    """

    __tablename__ = "obligation_percent_config"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    absence_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=25)
    feedbacks_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=25)
    voice_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=25)
    text_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=25)

    __table_args__ = (
        CheckConstraint(
            "absence_percent >= 0 AND feedbacks_percent >= 0 "
            "AND voice_percent >= 0 AND text_percent >= 0",
            name="obligation_percent_non_negative",
        ),
        CheckConstraint(
            "absence_percent + feedbacks_percent + voice_percent + text_percent = 100",
            name="obligation_percent_total_check",
        ),
    )
