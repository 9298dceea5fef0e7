"""Lesson lifecycle and compensation services."""

from tutoring_engine.services.state_machine import LessonOperation, LessonStateMachine, LessonStatus, UserRole
from tutoring_engine.services.identity import Caller
from tutoring_engine.services.obligation_locks import CompletionStatus, LessonView, enrich_lesson
from tutoring_engine.services.obligation_config_service import ObligationConfigService, validate_weights
from tutoring_engine.services.salary_service import SalaryService, SalaryStatus
from tutoring_engine.services.lesson_status_service import LessonStatusService
from tutoring_engine.services.obligation_service import ObligationService
from tutoring_engine.services.statistics_service import LessonStatistics, LessonStatisticsService

__all__ = [
    "LessonOperation",
    "LessonStateMachine",
    "LessonStatus",
    "UserRole",
    "Caller",
    "CompletionStatus",
    "LessonView",
    "enrich_lesson",
    "ObligationConfigService",
    "validate_weights",
    "SalaryService",
    "SalaryStatus",
    "LessonStatusService",
    "ObligationService",
    "LessonStatistics",
    "LessonStatisticsService",
]
