"""Tutoring engine command line interface.

Scheduler entry points:
- Monthly salary rollup
- Marking a lesson as missed
- Lesson statistics

Usage:
    python -m tutoring_engine.cli rollup --year 2024 --month 3
    python -m tutoring_engine.cli mark-missed --lesson-id X
    python -m tutoring_engine.cli statistics --teacher-id X --date-from 2024-03-01
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime
from typing import Any, Awaitable, Callable, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tutoring_engine.config import configure_logging
from tutoring_engine.database import ConnectionMonitor, create_session_factory, get_engine
from tutoring_engine.exceptions import LessonEngineError
from tutoring_engine.models import Lesson
from tutoring_engine.services.lesson_status_service import LessonStatusService
from tutoring_engine.services.salary_service import MonthlyRollup, SalaryService
from tutoring_engine.services.statistics_service import LessonStatistics, LessonStatisticsService

T = TypeVar("T")


def parse_datetime(s: str) -> datetime:
    """Parse ISO datetime string."""
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class TutoringCli:
    """Tutoring engine command line interface."""

    def __init__(self, engine_factory: Callable[[], AsyncEngine] | None = None) -> None:
        self.parser = self._build_parser()
        self.engine_factory = engine_factory or get_engine

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m tutoring_engine.cli",
            description="Tutoring engine scheduler tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # rollup command
        rollup = subparsers.add_parser(
            "rollup",
            help="Recalculate salaries of every active teacher for a month",
        )
        rollup.add_argument("--year", type=int, required=True, help="Calendar year")
        rollup.add_argument(
            "--month",
            type=int,
            required=True,
            choices=range(1, 13),
            metavar="MONTH",
            help="Calendar month (1-12)",
        )

        # mark-missed command
        missed = subparsers.add_parser(
            "mark-missed",
            help="Mark a scheduled lesson as missed",
        )
        missed.add_argument(
            "--lesson-id",
            type=parse_uuid,
            required=True,
            help="Lesson ID",
        )

        # statistics command
        stats = subparsers.add_parser(
            "statistics",
            help="Print lesson counts by status",
        )
        stats.add_argument("--teacher-id", type=parse_uuid, help="Only this teacher's lessons")
        stats.add_argument(
            "--date-from",
            type=parse_datetime,
            help="Lessons scheduled at or after this timestamp (ISO format)",
        )
        stats.add_argument(
            "--date-to",
            type=parse_datetime,
            help="Lessons scheduled at or before this timestamp (ISO format)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        handlers: dict[str, Callable[..., int]] = {
            "rollup": self._cmd_rollup,
            "mark-missed": self._cmd_mark_missed,
            "statistics": self._cmd_statistics,
        }

        handler = handlers.get(parsed.command)
        if handler:
            try:
                return handler(parsed)
            except LessonEngineError as e:
                print(f"ERROR: {e}", file=sys.stderr)
                return 1

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _with_store(
        self,
        work: Callable[[async_sessionmaker[AsyncSession], ConnectionMonitor], Awaitable[T]],
    ) -> T:
        """Run ``work`` on a fresh engine, disposed before the loop closes."""

        async def run() -> T:
            engine = self.engine_factory()
            try:
                return await work(create_session_factory(engine), ConnectionMonitor(engine))
            finally:
                await engine.dispose()

        return asyncio.run(run())

    def _print_json(self, payload: dict[str, Any]) -> None:
        print(json.dumps(payload, indent=2, default=str))

    def _cmd_rollup(self, args: argparse.Namespace) -> int:
        """Run the monthly salary rollup."""

        async def work(factory, _monitor) -> MonthlyRollup:
            async with factory() as session:
                rollup = await SalaryService(session).generate_monthly_salaries(
                    args.year, args.month
                )
                await session.commit()
                return rollup

        rollup = self._with_store(work)
        self._print_json(
            {
                "year": rollup.year,
                "month": rollup.month,
                "generated": rollup.generated,
                "errors": rollup.errors,
                "error_details": rollup.error_details,
            }
        )
        return 0 if rollup.errors == 0 else 2

    def _cmd_mark_missed(self, args: argparse.Namespace) -> int:
        """Mark a lesson missed on behalf of the scheduler."""

        async def work(factory, _monitor) -> Lesson:
            async with factory() as session:
                lesson = await LessonStatusService(session).mark_missed(args.lesson_id)
                await session.commit()
                return lesson

        lesson = self._with_store(work)
        print(f"Lesson {lesson.id} marked {lesson.status}")
        return 0

    def _cmd_statistics(self, args: argparse.Namespace) -> int:
        """Print lesson statistics."""

        async def work(factory, monitor) -> LessonStatistics:
            service = LessonStatisticsService(factory, monitor)
            return await service.lesson_statistics(args.teacher_id, args.date_from, args.date_to)

        stats = self._with_store(work)
        self._print_json(stats.to_dict())
        return 0


def main() -> int:
    """CLI entry point."""
    configure_logging()
    cli = TutoringCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
