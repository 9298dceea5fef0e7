"""API routes."""

from tutoring_engine.api.routes.health import router as health_router
from tutoring_engine.api.routes.lessons import router as lessons_router
from tutoring_engine.api.routes.salaries import router as salaries_router
from tutoring_engine.api.routes.settings import router as settings_router

__all__ = ["health_router", "lessons_router", "salaries_router", "settings_router"]
