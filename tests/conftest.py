"""Pytest fixtures for tutoring engine tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutoring_engine.database import create_session_factory, get_engine
from tutoring_engine.models import Base, Lesson, Teacher
from tutoring_engine.retry import RetryPolicy
from tutoring_engine.services.identity import Caller
from tutoring_engine.services.state_machine import UserRole

# Fixed "now" for every service under test: Friday 2024-03-15 12:00 UTC.
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeMonitor:
    """Connection monitor that only counts how often it was asked."""

    def __init__(self) -> None:
        self.calls = 0

    async def ensure_connected(self) -> None:
        self.calls += 1


@pytest_asyncio.fixture
async def engine(tmp_path):
    """SQLite file database, so separate sessions can read concurrently."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'tutoring.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_policy(recording_sleep: RecordingSleep) -> RetryPolicy:
    return RetryPolicy(max_retries=2, base_delay=0.1, sleep=recording_sleep)


@pytest.fixture
def admin() -> Caller:
    return Caller(role=UserRole.ADMIN, user_id=uuid4())


@pytest.fixture
def student() -> Caller:
    return Caller(role=UserRole.STUDENT, user_id=uuid4())


@pytest.fixture
def make_teacher(session: AsyncSession):
    """Factory for persisted teachers."""

    async def _make(
        user_id: UUID | None = None,
        lesson_rate: Decimal | None = Decimal("1000"),
        is_active: bool = True,
        display_name: str = "Teacher",
    ) -> Teacher:
        teacher = Teacher(
            user_id=user_id or uuid4(),
            display_name=display_name,
            lesson_rate=lesson_rate,
            is_active=is_active,
        )
        session.add(teacher)
        await session.flush()
        return teacher

    return _make


@pytest.fixture
def make_lesson(session: AsyncSession):
    """Factory for persisted lessons. COMPLETED lessons get a completed_at."""

    async def _make(
        teacher: Teacher,
        scheduled_at: datetime | None = None,
        status: str = "SCHEDULED",
        duration: int = 60,
        **fields: Any,
    ) -> Lesson:
        scheduled_at = scheduled_at or NOW + timedelta(hours=2)
        if status == "COMPLETED":
            fields.setdefault("completed_at", scheduled_at + timedelta(minutes=duration))
        lesson = Lesson(
            group_id=uuid4(),
            teacher_id=teacher.id,
            scheduled_at=scheduled_at,
            duration=duration,
            status=status,
            **fields,
        )
        session.add(lesson)
        await session.flush()
        return lesson

    return _make


def teacher_caller(teacher: Teacher) -> Caller:
    """Caller acting as the user account behind ``teacher``."""
    return Caller(role=UserRole.TEACHER, user_id=teacher.user_id)


def all_done() -> dict[str, bool]:
    return {
        "absence_marked": True,
        "feedbacks_completed": True,
        "voice_sent": True,
        "text_sent": True,
    }
