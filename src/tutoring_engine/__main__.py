"""Entry point for running the application with uvicorn."""

import uvicorn

from tutoring_engine.config import configure_logging, settings


def main() -> None:
    """Run the application."""
    configure_logging()
    uvicorn.run(
        "tutoring_engine.api.app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    main()
