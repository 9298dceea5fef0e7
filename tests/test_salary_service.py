"""Tests for monthly salary recalculation."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from tutoring_engine.exceptions import InvalidStateError, NotFoundError, ValidationError
from tutoring_engine.services.salary_service import (
    SalaryService,
    SalaryStatus,
    TeacherRateProvider,
    month_window,
)

from .conftest import all_done, fixed_clock


def march(day: int, hour: int = 10) -> datetime:
    return datetime(2024, 3, day, hour, 0, tzinfo=timezone.utc)


def no_voice() -> dict[str, bool]:
    flags = all_done()
    flags["voice_sent"] = False
    return flags


class FailingRateProvider:
    """Rate provider that blows up for one teacher."""

    def __init__(self, failing_teacher_id, rate=Decimal("1000")):
        self.failing_teacher_id = failing_teacher_id
        self.rate = rate

    async def rate_for(self, teacher_id):
        if teacher_id == self.failing_teacher_id:
            raise RuntimeError("rate service unavailable")
        return self.rate


@pytest.fixture
def salary_service(session) -> SalaryService:
    return SalaryService(session, tz=timezone.utc, clock=fixed_clock)


async def seed_march(make_teacher, make_lesson):
    """Four completed March lessons at 1000, one of them without a voice message."""
    teacher = await make_teacher(lesson_rate=Decimal("1000"))
    for day in (4, 6, 8):
        await make_lesson(teacher, march(day), status="COMPLETED", **all_done())
    await make_lesson(teacher, march(11), status="COMPLETED", **no_voice())
    return teacher


class TestMonthWindow:
    """Test calendar month bounds."""

    def test_utc_window(self):
        start, end = month_window(2024, 12)
        assert start == datetime(2024, 12, 1, tzinfo=timezone.utc)
        assert end == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_invalid_month(self):
        with pytest.raises(ValidationError):
            month_window(2024, 13)


class TestRecalculateSalary:
    """Test recalculation of one teacher-month."""

    async def test_one_missing_voice_message(self, salary_service, make_teacher, make_lesson):
        teacher = await seed_march(make_teacher, make_lesson)

        record = await salary_service.recalculate_salary_for_month(teacher.id, 3, 2024)

        assert record.lessons_count == 4
        assert record.gross_amount == Decimal("4000")
        assert record.total_deductions == Decimal("250")
        assert record.net_amount == Decimal("3750")
        assert record.status == SalaryStatus.PENDING
        assert record.action_breakdown["voiceSent"] == {"completed": 3, "required": 4}
        assert record.obligations_info["missing"] == 1

    async def test_recalculation_is_idempotent(self, salary_service, make_teacher, make_lesson):
        teacher = await seed_march(make_teacher, make_lesson)

        first = await salary_service.recalculate_salary_for_month(teacher.id, 3, 2024)
        snapshot = (
            first.id,
            first.lessons_count,
            first.gross_amount,
            first.total_deductions,
            first.net_amount,
            dict(first.action_breakdown),
        )
        second = await salary_service.recalculate_salary_for_month(teacher.id, 3, 2024)

        assert (
            second.id,
            second.lessons_count,
            second.gross_amount,
            second.total_deductions,
            second.net_amount,
            dict(second.action_breakdown),
        ) == snapshot

    async def test_only_completed_lessons_in_month_count(
        self, salary_service, make_teacher, make_lesson
    ):
        teacher = await make_teacher(lesson_rate=Decimal("1000"))
        await make_lesson(teacher, march(4), status="COMPLETED", **all_done())
        await make_lesson(teacher, march(5), status="SCHEDULED")
        await make_lesson(teacher, march(6), status="CANCELLED")
        await make_lesson(teacher, march(7), status="MISSED")
        await make_lesson(
            teacher,
            datetime(2024, 4, 1, 10, tzinfo=timezone.utc),
            status="COMPLETED",
            **all_done(),
        )

        record = await salary_service.recalculate_salary_for_month(teacher.id, 3, 2024)

        assert record.lessons_count == 1
        assert record.gross_amount == Decimal("1000")
        assert record.net_amount == Decimal("1000")

    async def test_picks_up_new_weights(self, session, salary_service, make_teacher, make_lesson):
        from tutoring_engine.services.obligation_config_service import ObligationConfigService

        teacher = await seed_march(make_teacher, make_lesson)
        await salary_service.recalculate_salary_for_month(teacher.id, 3, 2024)

        await ObligationConfigService(session).update_config(
            {"absence": 0, "feedbacks": 0, "voice": 100, "text": 0}
        )
        record = await salary_service.recalculate_salary_for_month(teacher.id, 3, 2024)

        assert record.total_deductions == Decimal("1000")
        assert record.net_amount == Decimal("3000")

    async def test_default_rate_when_teacher_has_none(self, session, make_teacher, make_lesson):
        teacher = await make_teacher(lesson_rate=None)
        await make_lesson(teacher, march(4), status="COMPLETED", **all_done())
        service = SalaryService(
            session,
            rate_provider=TeacherRateProvider(session, default_rate=Decimal("750")),
            tz=timezone.utc,
        )

        record = await service.recalculate_salary_for_month(teacher.id, 3, 2024)

        assert record.gross_amount == Decimal("750")

    async def test_unknown_teacher(self, salary_service):
        with pytest.raises(NotFoundError):
            await salary_service.recalculate_salary_for_month(uuid4(), 3, 2024)

    async def test_paid_record_left_unchanged(self, salary_service, make_teacher, make_lesson):
        teacher = await seed_march(make_teacher, make_lesson)
        record = await salary_service.recalculate_salary_for_month(teacher.id, 3, 2024)
        await salary_service.mark_paid(record.id)

        await make_lesson(teacher, march(20), status="COMPLETED", **all_done())
        again = await salary_service.recalculate_salary_for_month(teacher.id, 3, 2024)

        assert again.id == record.id
        assert again.status == SalaryStatus.PAID
        assert again.lessons_count == 4
        assert again.net_amount == Decimal("3750")


class TestMarkPaid:
    """Test salary payment."""

    async def test_mark_paid(self, salary_service, make_teacher, make_lesson):
        teacher = await seed_march(make_teacher, make_lesson)
        record = await salary_service.recalculate_salary_for_month(teacher.id, 3, 2024)

        paid = await salary_service.mark_paid(record.id)

        assert paid.status == SalaryStatus.PAID
        assert paid.paid_at == fixed_clock()

    async def test_cannot_pay_twice(self, salary_service, make_teacher, make_lesson):
        teacher = await seed_march(make_teacher, make_lesson)
        record = await salary_service.recalculate_salary_for_month(teacher.id, 3, 2024)
        await salary_service.mark_paid(record.id)

        with pytest.raises(InvalidStateError, match="already paid"):
            await salary_service.mark_paid(record.id)

    async def test_unknown_record(self, salary_service):
        with pytest.raises(NotFoundError):
            await salary_service.mark_paid(uuid4())


class TestMonthlyRollup:
    """Test recalculating every active teacher."""

    async def test_generates_for_active_teachers(self, salary_service, make_teacher, make_lesson):
        first = await seed_march(make_teacher, make_lesson)
        second = await make_teacher()
        await make_teacher(is_active=False)

        rollup = await salary_service.generate_monthly_salaries(2024, 3)

        assert rollup.generated == 2
        assert rollup.errors == 0
        assert {r.teacher_id for r in rollup.records} == {first.id, second.id}
        empty = next(r for r in rollup.records if r.teacher_id == second.id)
        assert empty.lessons_count == 0
        assert empty.net_amount == Decimal("0")

    async def test_failure_for_one_teacher_does_not_stop_others(
        self, session, make_teacher, make_lesson
    ):
        good = await seed_march(make_teacher, make_lesson)
        bad = await make_teacher()
        service = SalaryService(session, rate_provider=FailingRateProvider(bad.id), tz=timezone.utc)

        rollup = await service.generate_monthly_salaries(2024, 3)

        assert rollup.generated == 1
        assert rollup.records[0].teacher_id == good.id
        assert rollup.errors == 1
        assert rollup.error_details[0]["teacher_id"] == str(bad.id)
        assert "rate service unavailable" in rollup.error_details[0]["error"]
        assert await service.find_record(bad.id, 3, 2024) is None


class TestBestEffortRecalculation:
    """Test the recalculation triggered by lesson changes."""

    async def test_failure_is_logged_not_raised(self, session, make_teacher, make_lesson, caplog):
        teacher = await make_teacher()
        lesson = await make_lesson(teacher, march(4), status="COMPLETED", **all_done())
        service = SalaryService(
            session, rate_provider=FailingRateProvider(teacher.id), tz=timezone.utc
        )

        assert await service.recalculate_for_lesson(lesson) is None
        assert "Failed to recalculate salary" in caplog.text
        assert await service.find_record(teacher.id, 3, 2024) is None

    async def test_uses_lesson_month(self, salary_service, make_teacher, make_lesson):
        teacher = await make_teacher()
        lesson = await make_lesson(teacher, march(31, 22), status="COMPLETED", **all_done())

        record = await salary_service.recalculate_for_lesson(lesson)

        assert (record.year, record.month) == (2024, 3)
        assert record.lessons_count == 1


class TestSalaryBreakdown:
    """Test the per-lesson breakdown."""

    async def test_breakdown_lines(self, salary_service, make_teacher, make_lesson):
        teacher = await seed_march(make_teacher, make_lesson)

        result = await salary_service.salary_breakdown(teacher.id, 3, 2024)

        assert len(result.lessons) == 4
        assert [line.total for line in result.lessons] == [
            Decimal("1000.00"),
            Decimal("1000.00"),
            Decimal("1000.00"),
            Decimal("750.00"),
        ]
        assert result.net_amount == Decimal("3750.00")
        assert await salary_service.find_record(teacher.id, 3, 2024) is None
