"""Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tutoring_engine.services.obligation_locks import LessonView


# ============================================================================
# Lesson schemas
# ============================================================================


class LessonResponse(BaseModel):
    """Lesson with its derived lock indicators."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    group_id: UUID
    teacher_id: UUID
    scheduled_at: datetime
    duration: int
    topic: str | None = None
    status: str
    completed_at: datetime | None = None
    notes: str | None = None
    absence_marked: bool
    absence_marked_at: datetime | None = None
    feedbacks_completed: bool
    feedbacks_completed_at: datetime | None = None
    voice_sent: bool
    voice_sent_at: datetime | None = None
    text_sent: bool
    text_sent_at: datetime | None = None

    is_locked_for_teacher: bool = False
    completion_status: str = "NONE"
    is_absence_locked: bool = False
    is_feedback_locked: bool = False
    is_voice_locked: bool = False
    is_text_locked: bool = False

    @classmethod
    def from_view(cls, view: LessonView) -> "LessonResponse":
        base = cls.model_validate(view.lesson)
        return base.model_copy(
            update={
                "is_locked_for_teacher": view.is_locked_for_teacher,
                "completion_status": view.completion_status.value,
                "is_absence_locked": view.is_absence_locked,
                "is_feedback_locked": view.is_feedback_locked,
                "is_voice_locked": view.is_voice_locked,
                "is_text_locked": view.is_text_locked,
            }
        )


class CompleteLessonRequest(BaseModel):
    """Schema for completing a lesson."""

    notes: str | None = None


class CancelLessonRequest(BaseModel):
    """Schema for cancelling a lesson."""

    reason: str | None = None


class ObligationDetailResponse(BaseModel):
    """One obligation of a lesson."""

    obligation: str
    done: bool
    done_at: datetime | None = None
    locked: bool


class LessonStatisticsResponse(BaseModel):
    """Lesson counts by status."""

    model_config = ConfigDict(from_attributes=True)

    total: int
    completed: int
    cancelled: int
    missed: int
    in_progress: int
    scheduled: int
    completion_rate: int


# ============================================================================
# Settings schemas
# ============================================================================


class ObligationPercentsResponse(BaseModel):
    """Active obligation weights."""

    model_config = ConfigDict(from_attributes=True)

    absence_percent: int
    feedbacks_percent: int
    voice_percent: int
    text_percent: int


class ObligationPercentsUpdate(BaseModel):
    """New obligation weights. Must total 100."""

    absence_percent: int
    feedbacks_percent: int
    voice_percent: int
    text_percent: int


# ============================================================================
# Salary schemas
# ============================================================================


class SalaryRecordResponse(BaseModel):
    """Schema for salary record response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    teacher_id: UUID
    year: int
    month: int
    lessons_count: int
    gross_amount: Decimal
    total_deductions: Decimal
    net_amount: Decimal
    status: str
    paid_at: datetime | None = None
    action_breakdown: dict[str, Any]
    obligations_info: dict[str, Any]


class RecalculateSalaryRequest(BaseModel):
    """Schema for recalculating one teacher-month."""

    teacher_id: UUID
    year: int
    month: int = Field(ge=1, le=12)


class GenerateSalariesRequest(BaseModel):
    """Schema for the monthly rollup."""

    year: int
    month: int = Field(ge=1, le=12)


class RollupErrorResponse(BaseModel):
    teacher_id: UUID
    error: str


class MonthlyRollupResponse(BaseModel):
    """Outcome of the monthly rollup."""

    year: int
    month: int
    generated: int
    errors: int
    error_details: list[RollupErrorResponse]


class LessonPayResponse(BaseModel):
    """Pay line for one completed lesson."""

    model_config = ConfigDict(from_attributes=True)

    lesson_id: UUID
    obligations_completed: int
    obligations_total: int
    base: Decimal
    deduction: Decimal
    total: Decimal


class SalaryBreakdownResponse(BaseModel):
    """Per-lesson breakdown of a teacher-month."""

    teacher_id: UUID
    year: int
    month: int
    lessons_count: int
    gross_amount: Decimal
    deductions: dict[str, Decimal]
    total_deductions: Decimal
    net_amount: Decimal
    action_breakdown: dict[str, Any]
    obligations_info: dict[str, Any]
    lessons: list[LessonPayResponse]


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    detail: str
    code: str | None = None
