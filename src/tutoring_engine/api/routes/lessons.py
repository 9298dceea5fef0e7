"""Lesson lifecycle API endpoints."""

from datetime import datetime, timezone
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from tutoring_engine.api.dependencies import CurrentCaller, DbSession, Monitor, SessionFactory
from tutoring_engine.api.schemas import (
    CancelLessonRequest,
    CompleteLessonRequest,
    ErrorResponse,
    LessonResponse,
    LessonStatisticsResponse,
    ObligationDetailResponse,
)
from tutoring_engine.calculators.types import Obligation
from tutoring_engine.config import get_settings
from tutoring_engine.models import Lesson
from tutoring_engine.services.lesson_status_service import LessonStatusService
from tutoring_engine.services.obligation_locks import enrich_lesson
from tutoring_engine.services.obligation_service import ObligationService
from tutoring_engine.services.statistics_service import LessonStatisticsService

router = APIRouter(prefix="/lessons", tags=["lessons"])

LessonId = Annotated[UUID, Path()]


def _response(lesson: Lesson) -> LessonResponse:
    view = enrich_lesson(lesson, datetime.now(timezone.utc), get_settings().tzinfo)
    return LessonResponse.from_view(view)


# ============================================================================
# Statistics
# ============================================================================


@router.get(
    "/statistics",
    response_model=LessonStatisticsResponse,
    responses={503: {"model": ErrorResponse}},
)
async def lesson_statistics(
    factory: SessionFactory,
    monitor: Monitor,
    teacher_id: UUID | None = None,
    date_from: Annotated[datetime | None, Query()] = None,
    date_to: Annotated[datetime | None, Query()] = None,
) -> LessonStatisticsResponse:
    """Lesson counts by status, optionally per teacher and date window."""
    service = LessonStatisticsService(factory, monitor)
    stats = await service.lesson_statistics(teacher_id, date_from, date_to)
    return LessonStatisticsResponse.model_validate(stats)


# ============================================================================
# Lifecycle
# ============================================================================


@router.get(
    "/{lesson_id}",
    response_model=LessonResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_lesson(db: DbSession, lesson_id: LessonId) -> LessonResponse:
    """Get a lesson with its lock indicators."""
    view = await LessonStatusService(db).get_lesson_view(lesson_id)
    return LessonResponse.from_view(view)


@router.post(
    "/{lesson_id}/start",
    response_model=LessonResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def start_lesson(
    db: DbSession, caller: CurrentCaller, lesson_id: LessonId
) -> LessonResponse:
    """Start a scheduled lesson."""
    lesson = await LessonStatusService(db).start(lesson_id, caller)
    await db.commit()
    return _response(lesson)


@router.post(
    "/{lesson_id}/complete",
    response_model=LessonResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def complete_lesson(
    db: DbSession,
    caller: CurrentCaller,
    lesson_id: LessonId,
    payload: CompleteLessonRequest | None = None,
) -> LessonResponse:
    """Complete a lesson and refresh the month's salary record."""
    notes = payload.notes if payload else None
    view = await LessonStatusService(db).complete(lesson_id, caller, notes)
    await db.commit()
    return LessonResponse.from_view(view)


@router.post(
    "/{lesson_id}/cancel",
    response_model=LessonResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_lesson(
    db: DbSession,
    caller: CurrentCaller,
    lesson_id: LessonId,
    payload: CancelLessonRequest | None = None,
) -> LessonResponse:
    """Cancel a lesson (admin only)."""
    reason = payload.reason if payload else None
    lesson = await LessonStatusService(db).cancel(lesson_id, caller, reason)
    await db.commit()
    return _response(lesson)


@router.post(
    "/{lesson_id}/missed",
    response_model=LessonResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def mark_lesson_missed(
    db: DbSession, caller: CurrentCaller, lesson_id: LessonId
) -> LessonResponse:
    """Mark a scheduled lesson as missed (admin only)."""
    lesson = await LessonStatusService(db).mark_missed(lesson_id, caller)
    await db.commit()
    return _response(lesson)


# ============================================================================
# Obligations
# ============================================================================


@router.get(
    "/{lesson_id}/obligations",
    response_model=list[ObligationDetailResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_obligations(db: DbSession, lesson_id: LessonId) -> list[ObligationDetailResponse]:
    """Obligation flags of a lesson with their lock state."""
    service = ObligationService(LessonStatusService(db))
    details = await service.lesson_obligations(lesson_id)
    return [
        ObligationDetailResponse(
            obligation=d.obligation.value,
            done=d.done,
            done_at=d.done_at,
            locked=d.locked,
        )
        for d in details
    ]


@router.post(
    "/{lesson_id}/obligations/{obligation}",
    response_model=LessonResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def mark_obligation(
    db: DbSession,
    caller: CurrentCaller,
    lesson_id: LessonId,
    obligation: Obligation,
) -> LessonResponse:
    """Mark one obligation of a lesson as done."""
    service = ObligationService(LessonStatusService(db))
    view = await service.mark_obligation(lesson_id, obligation, caller)
    await db.commit()
    return LessonResponse.from_view(view)
