"""Monthly salary recalculation from completed lessons."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutoring_engine.calculators.compensation import CompensationCalculator, CompensationResult
from tutoring_engine.calculators.types import ObligationFlags
from tutoring_engine.config import get_settings
from tutoring_engine.database import acquire_xact_lock
from tutoring_engine.exceptions import InvalidStateError, NotFoundError, ValidationError
from tutoring_engine.models import Lesson, SalaryRecord, Teacher
from tutoring_engine.services.obligation_config_service import ObligationConfigService
from tutoring_engine.services.obligation_locks import local_date
from tutoring_engine.services.state_machine import LessonStatus

logger = logging.getLogger(__name__)


class SalaryStatus(str, Enum):
    """Salary record status values."""

    PENDING = "PENDING"
    PAID = "PAID"


class RateProvider(Protocol):
    """Supplies the fixed per-lesson rate of a teacher."""

    async def rate_for(self, teacher_id: UUID) -> Decimal:
        ...


class TeacherRateProvider:
    """Reads the rate off the teacher profile, falling back to the configured default."""

    def __init__(self, session: AsyncSession, default_rate: Decimal | None = None):
        self.session = session
        self.default_rate = (
            default_rate if default_rate is not None else get_settings().default_lesson_rate
        )

    async def rate_for(self, teacher_id: UUID) -> Decimal:
        teacher = await self.session.get(Teacher, teacher_id)
        if teacher is None:
            raise NotFoundError("Teacher", teacher_id)
        if teacher.lesson_rate is not None:
            return Decimal(teacher.lesson_rate)
        return Decimal(self.default_rate)


def month_window(year: int, month: int, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    """[start, end) of a calendar month in ``tz``, expressed in UTC."""
    if not 1 <= month <= 12:
        raise ValidationError(f"month must be between 1 and 12. Received: {month}", field="month")
    tz = tz or timezone.utc
    start = datetime(year, month, 1, tzinfo=tz)
    end = datetime(year + 1, 1, 1, tzinfo=tz) if month == 12 else datetime(year, month + 1, 1, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


@dataclass
class MonthlyRollup:
    """Outcome of recalculating every active teacher for one month."""

    year: int
    month: int
    records: list[SalaryRecord] = field(default_factory=list)
    error_details: list[dict[str, Any]] = field(default_factory=list)

    @property
    def generated(self) -> int:
        return len(self.records)

    @property
    def errors(self) -> int:
        return len(self.error_details)


class SalaryService:
    """Derives SalaryRecords from completed lessons and obligation weights.

    Every recalculation recomputes from the source lessons, so calling it
    repeatedly for the same month converges on the same record.
    """

    def __init__(
        self,
        session: AsyncSession,
        rate_provider: RateProvider | None = None,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.session = session
        self.rate_provider = rate_provider or TeacherRateProvider(session)
        self.tz = tz if tz is not None else get_settings().tzinfo
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def recalculate_salary_for_month(
        self, teacher_id: UUID, month: int, year: int
    ) -> SalaryRecord:
        """Recompute and store the salary record for a teacher-month."""
        start, end = month_window(year, month, self.tz)

        # Concurrent recalculations of the same month serialize here.
        await acquire_xact_lock(self.session, "salary", teacher_id, year, month)

        result = await self._calculate(teacher_id, start, end)
        record = await self._upsert(teacher_id, year, month, result)
        logger.info(
            "Salary for teacher %s %04d-%02d: %d lesson(s), gross=%s deductions=%s net=%s",
            teacher_id,
            year,
            month,
            result.lessons_count,
            result.gross_amount,
            result.total_deductions,
            result.net_amount,
        )
        return record

    async def recalculate_for_lesson(self, lesson: Lesson) -> SalaryRecord | None:
        """Best-effort recalculation of the month a lesson belongs to.

        Runs in a savepoint; a failure is logged and rolled back without
        touching the caller's pending changes.
        """
        lesson_day = local_date(lesson.scheduled_at, self.tz)
        try:
            async with self.session.begin_nested():
                return await self.recalculate_salary_for_month(
                    lesson.teacher_id, lesson_day.month, lesson_day.year
                )
        except Exception:
            logger.exception(
                "Failed to recalculate salary for teacher %s, month %04d-%02d",
                lesson.teacher_id,
                lesson_day.year,
                lesson_day.month,
            )
            return None

    async def generate_monthly_salaries(self, year: int, month: int) -> MonthlyRollup:
        """Recalculate every active teacher for a month, collecting failures."""
        month_window(year, month)  # validates month
        rollup = MonthlyRollup(year=year, month=month)

        result = await self.session.execute(
            select(Teacher.id).where(Teacher.is_active.is_(True)).order_by(Teacher.id)
        )
        for teacher_id in result.scalars().all():
            try:
                async with self.session.begin_nested():
                    record = await self.recalculate_salary_for_month(teacher_id, month, year)
                rollup.records.append(record)
            except Exception as exc:
                logger.error(
                    "Monthly rollup failed for teacher %s %04d-%02d: %s",
                    teacher_id,
                    year,
                    month,
                    exc,
                )
                rollup.error_details.append({"teacher_id": str(teacher_id), "error": str(exc)})

        logger.info(
            "Monthly rollup %04d-%02d: %d generated, %d error(s)",
            year,
            month,
            rollup.generated,
            rollup.errors,
        )
        return rollup

    async def salary_breakdown(self, teacher_id: UUID, month: int, year: int) -> CompensationResult:
        """Per-lesson view of a teacher-month, computed like the stored record."""
        start, end = month_window(year, month, self.tz)
        return await self._calculate(teacher_id, start, end, per_lesson=True)

    async def get_record(self, record_id: UUID) -> SalaryRecord:
        record = await self.session.get(SalaryRecord, record_id)
        if record is None:
            raise NotFoundError("Salary record", record_id)
        return record

    async def find_record(self, teacher_id: UUID, month: int, year: int) -> SalaryRecord | None:
        result = await self.session.execute(
            select(SalaryRecord).where(
                SalaryRecord.teacher_id == teacher_id,
                SalaryRecord.year == year,
                SalaryRecord.month == month,
            )
        )
        return result.scalar_one_or_none()

    async def mark_paid(self, record_id: UUID) -> SalaryRecord:
        """Mark a salary record as paid."""
        record = await self.get_record(record_id)
        if record.status == SalaryStatus.PAID:
            raise InvalidStateError("paid", record.status, "Salary is already paid")
        record.status = SalaryStatus.PAID.value
        record.paid_at = self.clock()
        await self.session.flush()
        logger.info("Salary record %s marked paid", record_id)
        return record

    async def completed_lessons(
        self, teacher_id: UUID, start: datetime, end: datetime
    ) -> list[Lesson]:
        """Completed lessons of a teacher scheduled in [start, end)."""
        result = await self.session.execute(
            select(Lesson)
            .where(
                Lesson.teacher_id == teacher_id,
                Lesson.status == LessonStatus.COMPLETED.value,
                Lesson.scheduled_at >= start,
                Lesson.scheduled_at < end,
            )
            .order_by(Lesson.scheduled_at, Lesson.id)
        )
        return list(result.scalars().all())

    async def _calculate(
        self,
        teacher_id: UUID,
        start: datetime,
        end: datetime,
        per_lesson: bool = False,
    ) -> CompensationResult:
        rate = await self.rate_provider.rate_for(teacher_id)
        lessons = await self.completed_lessons(teacher_id, start, end)
        # One weights read per calculation.
        weights = await ObligationConfigService(self.session).get_weights()

        calculator = CompensationCalculator(weights)
        return calculator.calculate(
            [ObligationFlags.from_lesson(lesson) for lesson in lessons],
            rate,
            lesson_ids=[lesson.id for lesson in lessons] if per_lesson else None,
        )

    async def _upsert(
        self, teacher_id: UUID, year: int, month: int, result: CompensationResult
    ) -> SalaryRecord:
        existing = await self.find_record(teacher_id, month, year)
        if existing is not None and existing.status == SalaryStatus.PAID:
            logger.warning(
                "Salary record %s for %04d-%02d is paid; leaving it unchanged",
                existing.id,
                year,
                month,
            )
            return existing

        if existing is None:
            record = SalaryRecord(
                teacher_id=teacher_id,
                year=year,
                month=month,
                status=SalaryStatus.PENDING.value,
            )
            self._apply(record, result)
            try:
                async with self.session.begin_nested():
                    self.session.add(record)
                    await self.session.flush()
                return record
            except IntegrityError:
                # Another writer inserted the row first; overwrite it below.
                existing = await self.find_record(teacher_id, month, year)
                if existing is None:
                    raise
                if existing.status == SalaryStatus.PAID:
                    return existing

        self._apply(existing, result)
        await self.session.flush()
        return existing

    @staticmethod
    def _apply(record: SalaryRecord, result: CompensationResult) -> None:
        record.lessons_count = result.lessons_count
        record.gross_amount = result.gross_amount
        record.total_deductions = result.total_deductions
        record.net_amount = result.net_amount
        record.action_breakdown = result.action_breakdown
        record.obligations_info = result.obligations_info
