"""Midnight lock and completion-status rules for lesson obligations.

Pure functions of a lesson snapshot and the current instant; nothing here
touches the store or mutates the lesson.

Naive timestamps are treated as UTC. Calendar-day comparisons happen in
``tz`` (the configured local timezone) when given.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any

from tutoring_engine.calculators.types import Obligation, ObligationFlags
from tutoring_engine.services.state_machine import LessonStatus


class CompletionStatus(str, Enum):
    """Derived completion state of a lesson's obligations."""

    DONE = "DONE"
    IN_PROCESS = "IN_PROCESS"
    NONE = "NONE"


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def local_date(ts: datetime, tz: tzinfo | None = None) -> date:
    """Calendar date of ``ts`` in ``tz`` (UTC when tz is None)."""
    return _aware(ts).astimezone(tz or timezone.utc).date()


def is_locked_for_teacher(
    scheduled_at: datetime, now: datetime, tz: tzinfo | None = None
) -> bool:
    """True once the lesson's calendar day has fully elapsed."""
    return local_date(now, tz) > local_date(scheduled_at, tz)


def is_lesson_past(scheduled_at: datetime, duration_minutes: int, now: datetime) -> bool:
    """True once the lesson's end time lies strictly before ``now``."""
    ends_at = _aware(scheduled_at) + timedelta(minutes=duration_minutes)
    return ends_at < _aware(now)


def are_obligations_complete(flags: ObligationFlags) -> bool:
    """True iff all four obligations are satisfied."""
    return all(flags.is_done(o) for o in Obligation)


def completion_status(
    lesson: Any, now: datetime, tz: tzinfo | None = None
) -> CompletionStatus:
    """Classify a lesson as DONE, IN_PROCESS or NONE.

    Lessons that have not ended carry no completion status. A past lesson
    is DONE when every obligation is satisfied or when its day is over
    (whatever is missing stays missing); otherwise it is IN_PROCESS.
    """
    if not is_lesson_past(lesson.scheduled_at, lesson.duration, now):
        return CompletionStatus.NONE

    flags = ObligationFlags.from_lesson(lesson)
    if are_obligations_complete(flags) or is_locked_for_teacher(lesson.scheduled_at, now, tz):
        return CompletionStatus.DONE
    return CompletionStatus.IN_PROCESS


def is_obligation_locked(
    flag_value: bool,
    lesson_status: str,
    scheduled_at: datetime,
    now: datetime,
    tz: tzinfo | None = None,
) -> bool:
    """Decide whether an unfinished obligation is frozen.

    Priority:
    1. Obligation already done → not locked.
    2. Lesson status is COMPLETED → locked, whatever the date. Status wins
       over completed_at, which may be missing on older rows.
    3. Lesson day has passed → locked.
    4. Otherwise → open for the teacher.
    """
    if flag_value:
        return False
    if lesson_status == LessonStatus.COMPLETED:
        return True
    return is_locked_for_teacher(scheduled_at, now, tz)


@dataclass(frozen=True)
class LessonView:
    """A lesson with its derived lock indicators."""

    lesson: Any
    is_locked_for_teacher: bool
    completion_status: CompletionStatus
    is_absence_locked: bool
    is_feedback_locked: bool
    is_voice_locked: bool
    is_text_locked: bool

    def locked(self, obligation: Obligation) -> bool:
        return {
            Obligation.ABSENCE: self.is_absence_locked,
            Obligation.FEEDBACKS: self.is_feedback_locked,
            Obligation.VOICE: self.is_voice_locked,
            Obligation.TEXT: self.is_text_locked,
        }[obligation]


def obligation_locks(
    lesson: Any, now: datetime, tz: tzinfo | None = None
) -> dict[Obligation, bool]:
    """Lock state of each obligation of ``lesson``."""
    flags = ObligationFlags.from_lesson(lesson)
    return {
        o: is_obligation_locked(flags.is_done(o), lesson.status, lesson.scheduled_at, now, tz)
        for o in Obligation
    }


def enrich_lesson(lesson: Any, now: datetime, tz: tzinfo | None = None) -> LessonView:
    """Attach derived lock state to a lesson for display."""
    locks = obligation_locks(lesson, now, tz)
    return LessonView(
        lesson=lesson,
        is_locked_for_teacher=is_locked_for_teacher(lesson.scheduled_at, now, tz),
        completion_status=completion_status(lesson, now, tz),
        is_absence_locked=locks[Obligation.ABSENCE],
        is_feedback_locked=locks[Obligation.FEEDBACKS],
        is_voice_locked=locks[Obligation.VOICE],
        is_text_locked=locks[Obligation.TEXT],
    )
