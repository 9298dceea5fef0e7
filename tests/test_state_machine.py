"""Tests for the lesson state machine."""

import pytest

from tutoring_engine.exceptions import InvalidStateError
from tutoring_engine.services.state_machine import (
    LessonOperation,
    LessonStateMachine,
    LessonStatus,
    UserRole,
)


class TestLessonStateMachine:
    """Test state machine transitions."""

    @pytest.mark.parametrize(
        "operation,from_status,target",
        [
            (LessonOperation.START, LessonStatus.SCHEDULED, LessonStatus.IN_PROGRESS),
            (LessonOperation.COMPLETE, LessonStatus.SCHEDULED, LessonStatus.COMPLETED),
            (LessonOperation.COMPLETE, LessonStatus.IN_PROGRESS, LessonStatus.COMPLETED),
            (LessonOperation.COMPLETE, LessonStatus.CANCELLED, LessonStatus.COMPLETED),
            (LessonOperation.COMPLETE, LessonStatus.MISSED, LessonStatus.COMPLETED),
            (LessonOperation.CANCEL, LessonStatus.SCHEDULED, LessonStatus.CANCELLED),
            (LessonOperation.CANCEL, LessonStatus.IN_PROGRESS, LessonStatus.CANCELLED),
            (LessonOperation.CANCEL, LessonStatus.MISSED, LessonStatus.CANCELLED),
            (LessonOperation.MARK_MISSED, LessonStatus.SCHEDULED, LessonStatus.MISSED),
        ],
    )
    def test_valid_transitions(self, operation, from_status, target):
        """Legal operations return their target status."""
        assert LessonStateMachine.can_apply(operation, from_status) is True
        assert LessonStateMachine.validate(operation, from_status) == target

    @pytest.mark.parametrize(
        "operation,from_status",
        [
            (LessonOperation.START, LessonStatus.IN_PROGRESS),
            (LessonOperation.START, LessonStatus.COMPLETED),
            (LessonOperation.START, LessonStatus.MISSED),
            (LessonOperation.COMPLETE, LessonStatus.COMPLETED),
            (LessonOperation.CANCEL, LessonStatus.COMPLETED),
            (LessonOperation.CANCEL, LessonStatus.CANCELLED),
            (LessonOperation.MARK_MISSED, LessonStatus.IN_PROGRESS),
            (LessonOperation.MARK_MISSED, LessonStatus.MISSED),
        ],
    )
    def test_invalid_transitions(self, operation, from_status):
        """Illegal operations are rejected."""
        assert LessonStateMachine.can_apply(operation, from_status) is False
        with pytest.raises(InvalidStateError):
            LessonStateMachine.validate(operation, from_status)

    def test_plain_string_statuses(self):
        """Statuses read from the database are plain strings."""
        assert LessonStateMachine.can_apply(LessonOperation.START, "SCHEDULED") is True
        assert LessonStateMachine.can_apply(LessonOperation.START, "COMPLETED") is False

    def test_validate_error_details(self):
        """The error names the operation and the status it was attempted from."""
        with pytest.raises(InvalidStateError) as exc_info:
            LessonStateMachine.validate(LessonOperation.MARK_MISSED, LessonStatus.COMPLETED)

        assert exc_info.value.operation == "mark_missed"
        assert exc_info.value.from_status == "COMPLETED"
        assert str(exc_info.value) == "Only scheduled lessons can be marked as missed"

    def test_cancel_is_admin_only(self):
        """Teachers may start and complete but not cancel or mark missed."""
        assert LessonStateMachine.role_allowed(LessonOperation.START, UserRole.TEACHER)
        assert LessonStateMachine.role_allowed(LessonOperation.COMPLETE, UserRole.TEACHER)
        assert not LessonStateMachine.role_allowed(LessonOperation.CANCEL, UserRole.TEACHER)
        assert not LessonStateMachine.role_allowed(LessonOperation.MARK_MISSED, UserRole.TEACHER)
        assert LessonStateMachine.role_allowed(LessonOperation.CANCEL, UserRole.ADMIN)

    def test_students_may_not_transition(self):
        for operation in LessonOperation:
            assert not LessonStateMachine.role_allowed(operation, UserRole.STUDENT)

    def test_assignment_required_for_teachers_only(self):
        assert LessonStateMachine.requires_assignment(LessonOperation.START, UserRole.TEACHER)
        assert not LessonStateMachine.requires_assignment(LessonOperation.START, UserRole.ADMIN)

    def test_get_operations(self):
        """Operations available from each status."""
        assert set(LessonStateMachine.get_operations(LessonStatus.SCHEDULED)) == set(LessonOperation)
        assert LessonStateMachine.get_operations(LessonStatus.COMPLETED) == []
        assert LessonStateMachine.get_operations(LessonStatus.CANCELLED) == [LessonOperation.COMPLETE]

    def test_terminal_statuses(self):
        assert LessonStateMachine.is_terminal(LessonStatus.COMPLETED)
        assert LessonStateMachine.is_terminal(LessonStatus.CANCELLED)
        assert not LessonStateMachine.is_terminal(LessonStatus.MISSED)
