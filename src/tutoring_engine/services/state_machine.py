"""Lesson status state machine with operation and role checks."""

from __future__ import annotations

from enum import Enum

from tutoring_engine.exceptions import InvalidStateError


class LessonStatus(str, Enum):
    """Lesson status values."""

    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    MISSED = "MISSED"


class LessonOperation(str, Enum):
    """Operations that move a lesson between statuses."""

    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    MARK_MISSED = "mark_missed"


class UserRole(str, Enum):
    """Caller roles resolved by the identity collaborator."""

    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


class LessonStateMachine:
    """State machine for lesson status transitions.

    Allowed transitions:
    - start:       SCHEDULED → IN_PROGRESS
    - complete:    SCHEDULED | IN_PROGRESS | CANCELLED | MISSED → COMPLETED
    - cancel:      SCHEDULED | IN_PROGRESS | MISSED → CANCELLED
    - mark_missed: SCHEDULED → MISSED

    Completing a cancelled or missed lesson is a retroactive correction
    by staff and needs no reopen step.
    """

    # {operation: (legal source statuses, target status)}
    TRANSITIONS: dict[LessonOperation, tuple[frozenset[LessonStatus], LessonStatus]] = {
        LessonOperation.START: (
            frozenset({LessonStatus.SCHEDULED}),
            LessonStatus.IN_PROGRESS,
        ),
        LessonOperation.COMPLETE: (
            frozenset(
                {
                    LessonStatus.SCHEDULED,
                    LessonStatus.IN_PROGRESS,
                    LessonStatus.CANCELLED,
                    LessonStatus.MISSED,
                }
            ),
            LessonStatus.COMPLETED,
        ),
        LessonOperation.CANCEL: (
            frozenset({LessonStatus.SCHEDULED, LessonStatus.IN_PROGRESS, LessonStatus.MISSED}),
            LessonStatus.CANCELLED,
        ),
        LessonOperation.MARK_MISSED: (
            frozenset({LessonStatus.SCHEDULED}),
            LessonStatus.MISSED,
        ),
    }

    # Roles allowed per operation. Teachers additionally must be assigned.
    ALLOWED_ROLES: dict[LessonOperation, frozenset[UserRole]] = {
        LessonOperation.START: frozenset({UserRole.ADMIN, UserRole.TEACHER}),
        LessonOperation.COMPLETE: frozenset({UserRole.ADMIN, UserRole.TEACHER}),
        LessonOperation.CANCEL: frozenset({UserRole.ADMIN}),
        LessonOperation.MARK_MISSED: frozenset({UserRole.ADMIN}),
    }

    # Statuses that automatic transitions never leave
    TERMINAL = frozenset({LessonStatus.COMPLETED, LessonStatus.CANCELLED})

    _FAILURE_MESSAGES = {
        LessonOperation.START: "Lesson cannot be started",
        LessonOperation.COMPLETE: "Lesson cannot be completed",
        LessonOperation.CANCEL: "Lesson cannot be cancelled",
        LessonOperation.MARK_MISSED: "Only scheduled lessons can be marked as missed",
    }

    @classmethod
    def source_statuses(cls, operation: LessonOperation) -> frozenset[LessonStatus]:
        """Statuses from which ``operation`` is legal."""
        return cls.TRANSITIONS[operation][0]

    @classmethod
    def target_status(cls, operation: LessonOperation) -> LessonStatus:
        """Status a lesson ends in after ``operation``."""
        return cls.TRANSITIONS[operation][1]

    @classmethod
    def can_apply(cls, operation: LessonOperation, from_status: str) -> bool:
        """Check if ``operation`` is legal from ``from_status``."""
        return from_status in cls.source_statuses(operation)

    @classmethod
    def validate(cls, operation: LessonOperation, from_status: str) -> LessonStatus:
        """Validate an operation, returning its target status.

        Raises InvalidStateError if the operation is not legal.
        """
        if not cls.can_apply(operation, from_status):
            raise InvalidStateError(
                operation.value,
                getattr(from_status, "value", from_status),
                cls._FAILURE_MESSAGES[operation],
            )
        return cls.target_status(operation)

    @classmethod
    def role_allowed(cls, operation: LessonOperation, role: str) -> bool:
        """Check if a role may attempt ``operation`` at all."""
        return role in cls.ALLOWED_ROLES[operation]

    @classmethod
    def requires_assignment(cls, operation: LessonOperation, role: str) -> bool:
        """Teachers may only act on lessons assigned to them."""
        return role == UserRole.TEACHER and cls.role_allowed(operation, role)

    @classmethod
    def get_operations(cls, current_status: str) -> list[LessonOperation]:
        """List the operations legal from ``current_status``."""
        return [op for op in LessonOperation if cls.can_apply(op, current_status)]

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL
