"""Type definitions shared by the lock evaluator and the salary calculator."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


class Obligation(str, Enum):
    """Post-lesson actions a teacher owes for every lesson."""

    ABSENCE = "absence"
    FEEDBACKS = "feedbacks"
    VOICE = "voice"
    TEXT = "text"

    @property
    def flag_attr(self) -> str:
        """Name of the boolean lesson column holding this obligation."""
        return _FLAG_ATTRS[self]

    @property
    def timestamp_attr(self) -> str:
        """Name of the lesson column recording when it was satisfied."""
        return f"{_FLAG_ATTRS[self]}_at"

    @property
    def breakdown_key(self) -> str:
        """Key used in the stored action breakdown."""
        return _BREAKDOWN_KEYS[self]


_FLAG_ATTRS = {
    Obligation.ABSENCE: "absence_marked",
    Obligation.FEEDBACKS: "feedbacks_completed",
    Obligation.VOICE: "voice_sent",
    Obligation.TEXT: "text_sent",
}

_BREAKDOWN_KEYS = {
    Obligation.ABSENCE: "absenceMarked",
    Obligation.FEEDBACKS: "feedbacksCompleted",
    Obligation.VOICE: "voiceSent",
    Obligation.TEXT: "textSent",
}


@dataclass(frozen=True)
class ObligationFlags:
    """Completion state of the four obligations of one lesson."""

    absence_marked: bool = False
    feedbacks_completed: bool = False
    voice_sent: bool = False
    text_sent: bool = False

    @classmethod
    def from_lesson(cls, lesson: Any) -> ObligationFlags:
        """Read the flags off a lesson row or any object with the same attributes."""
        return cls(
            absence_marked=bool(getattr(lesson, "absence_marked", False)),
            feedbacks_completed=bool(getattr(lesson, "feedbacks_completed", False)),
            voice_sent=bool(getattr(lesson, "voice_sent", False)),
            text_sent=bool(getattr(lesson, "text_sent", False)),
        )

    def is_done(self, obligation: Obligation) -> bool:
        return bool(getattr(self, obligation.flag_attr))

    @property
    def completed_count(self) -> int:
        return sum(1 for o in Obligation if self.is_done(o))


@dataclass(frozen=True)
class ObligationWeights:
    """Snapshot of the obligation percentages used for one calculation."""

    absence: int = 25
    feedbacks: int = 25
    voice: int = 25
    text: int = 25

    def percent_for(self, obligation: Obligation) -> int:
        return getattr(self, obligation.value)

    @property
    def total(self) -> int:
        return self.absence + self.feedbacks + self.voice + self.text

    def as_dict(self) -> dict[str, int]:
        return {o.value: self.percent_for(o) for o in Obligation}


@dataclass(frozen=True)
class ObligationTally:
    """Completed vs required count for one obligation type."""

    completed: int
    required: int

    @property
    def missing(self) -> int:
        return self.required - self.completed

    def to_dict(self) -> dict[str, int]:
        return {"completed": self.completed, "required": self.required}


@dataclass(frozen=True)
class LessonPay:
    """Per-lesson compensation line used in the salary breakdown."""

    lesson_id: Any
    obligations_completed: int
    obligations_total: int
    base: Decimal
    deduction: Decimal
    total: Decimal
