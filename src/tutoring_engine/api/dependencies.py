"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutoring_engine.database import ConnectionMonitor, init_db
from tutoring_engine.exceptions import ForbiddenError
from tutoring_engine.services.identity import Caller
from tutoring_engine.services.state_machine import UserRole


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for read paths that open their own sessions."""
    _, factory = init_db()
    return factory


def get_connection_monitor() -> ConnectionMonitor:
    engine, _ = init_db()
    return ConnectionMonitor(engine)


async def get_caller(
    x_user_role: Annotated[str | None, Header()] = None,
    x_user_id: Annotated[str | None, Header()] = None,
) -> Caller:
    """Build the caller from the headers set by the auth gateway."""
    if not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Role header is required",
        )
    try:
        role = UserRole(x_user_role.upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-Role value",
        )

    user_id = None
    if x_user_id:
        try:
            user_id = UUID(x_user_id)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid X-User-ID format",
            )
    return Caller(role=role, user_id=user_id)


def require_admin(caller: Caller) -> None:
    if not caller.is_admin:
        raise ForbiddenError("Only administrators may perform this action")


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
Monitor = Annotated[ConnectionMonitor, Depends(get_connection_monitor)]
CurrentCaller = Annotated[Caller, Depends(get_caller)]
