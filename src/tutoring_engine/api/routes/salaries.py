"""Salary record API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from tutoring_engine.api.dependencies import CurrentCaller, DbSession, require_admin
from tutoring_engine.api.schemas import (
    ErrorResponse,
    GenerateSalariesRequest,
    LessonPayResponse,
    MonthlyRollupResponse,
    RecalculateSalaryRequest,
    RollupErrorResponse,
    SalaryBreakdownResponse,
    SalaryRecordResponse,
)
from tutoring_engine.exceptions import ForbiddenError
from tutoring_engine.services.identity import Caller, teacher_id_for_user
from tutoring_engine.services.salary_service import SalaryService

router = APIRouter(prefix="/salaries", tags=["salaries"])


async def _require_admin_or_owner(db: AsyncSession, caller: Caller, teacher_id: UUID) -> None:
    if caller.is_admin:
        return
    if caller.is_teacher and await teacher_id_for_user(db, caller.user_id) == teacher_id:
        return
    raise ForbiddenError("You may only view your own salary")


@router.post(
    "/recalculate",
    response_model=SalaryRecordResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def recalculate_salary(
    db: DbSession,
    caller: CurrentCaller,
    payload: RecalculateSalaryRequest,
) -> SalaryRecordResponse:
    """Recompute one teacher-month from its completed lessons."""
    require_admin(caller)
    record = await SalaryService(db).recalculate_salary_for_month(
        payload.teacher_id, payload.month, payload.year
    )
    await db.commit()
    return SalaryRecordResponse.model_validate(record)


@router.post(
    "/generate",
    response_model=MonthlyRollupResponse,
    status_code=status.HTTP_200_OK,
    responses={403: {"model": ErrorResponse}},
)
async def generate_salaries(
    db: DbSession,
    caller: CurrentCaller,
    payload: GenerateSalariesRequest,
) -> MonthlyRollupResponse:
    """Recalculate every active teacher for a month."""
    require_admin(caller)
    rollup = await SalaryService(db).generate_monthly_salaries(payload.year, payload.month)
    await db.commit()
    return MonthlyRollupResponse(
        year=rollup.year,
        month=rollup.month,
        generated=rollup.generated,
        errors=rollup.errors,
        error_details=[RollupErrorResponse(**e) for e in rollup.error_details],
    )


@router.get(
    "/breakdown/{teacher_id}/{year}/{month}",
    response_model=SalaryBreakdownResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def salary_breakdown(
    db: DbSession,
    caller: CurrentCaller,
    teacher_id: Annotated[UUID, Path()],
    year: Annotated[int, Path()],
    month: Annotated[int, Path(ge=1, le=12)],
) -> SalaryBreakdownResponse:
    """Per-lesson pay of a teacher-month without storing anything."""
    await _require_admin_or_owner(db, caller, teacher_id)
    result = await SalaryService(db).salary_breakdown(teacher_id, month, year)
    return SalaryBreakdownResponse(
        teacher_id=teacher_id,
        year=year,
        month=month,
        lessons_count=result.lessons_count,
        gross_amount=result.gross_amount,
        deductions={o.value: amount for o, amount in result.deductions.items()},
        total_deductions=result.total_deductions,
        net_amount=result.net_amount,
        action_breakdown=result.action_breakdown,
        obligations_info=result.obligations_info,
        lessons=[LessonPayResponse.model_validate(line) for line in result.lessons],
    )


@router.get(
    "/{record_id}",
    response_model=SalaryRecordResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_salary_record(
    db: DbSession,
    caller: CurrentCaller,
    record_id: Annotated[UUID, Path()],
) -> SalaryRecordResponse:
    """Get a stored salary record."""
    record = await SalaryService(db).get_record(record_id)
    await _require_admin_or_owner(db, caller, record.teacher_id)
    return SalaryRecordResponse.model_validate(record)


@router.post(
    "/{record_id}/pay",
    response_model=SalaryRecordResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def pay_salary(
    db: DbSession,
    caller: CurrentCaller,
    record_id: Annotated[UUID, Path()],
) -> SalaryRecordResponse:
    """Mark a salary record as paid."""
    require_admin(caller)
    record = await SalaryService(db).mark_paid(record_id)
    await db.commit()
    return SalaryRecordResponse.model_validate(record)
