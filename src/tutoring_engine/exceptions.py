"""Error taxonomy for the lesson lifecycle and compensation engine."""

from __future__ import annotations


class LessonEngineError(Exception):
    """Base class for errors raised by the engine."""


class NotFoundError(LessonEngineError):
    """Raised when a referenced lesson, teacher or salary record does not exist."""

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ForbiddenError(LessonEngineError):
    """Raised when the caller may not perform the requested operation."""


class InvalidStateError(LessonEngineError):
    """Raised when an operation is not legal from the current status."""

    def __init__(self, operation: str, from_status: str, reason: str | None = None):
        self.operation = operation
        self.from_status = from_status
        self.reason = reason
        msg = reason or f"Lesson cannot be {operation} from status '{from_status}'"
        super().__init__(msg)


class ValidationError(LessonEngineError):
    """Raised when submitted configuration values are rejected."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class TransientStoreError(LessonEngineError):
    """Raised when the store stayed unreachable after all retries.

    Safe to retry from the client side.
    """

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Store connection unavailable during {operation} after {attempts} attempt(s)"
        )
