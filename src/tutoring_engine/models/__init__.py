"""SQLAlchemy ORM models."""

from tutoring_engine.models.base import Base, TimestampMixin
from tutoring_engine.models.lesson import Lesson
from tutoring_engine.models.salary import SalaryRecord
from tutoring_engine.models.settings import ObligationPercentConfig
from tutoring_engine.models.teacher import Teacher

__all__ = [
    "Base",
    "TimestampMixin",
    "Lesson",
    "ObligationPercentConfig",
    "SalaryRecord",
    "Teacher",
]
