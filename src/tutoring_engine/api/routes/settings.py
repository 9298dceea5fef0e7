"""Obligation percent settings endpoints."""

from fastapi import APIRouter

from tutoring_engine.api.dependencies import CurrentCaller, DbSession, require_admin
from tutoring_engine.api.schemas import (
    ErrorResponse,
    ObligationPercentsResponse,
    ObligationPercentsUpdate,
)
from tutoring_engine.services.obligation_config_service import ObligationConfigService

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/obligation-percents", response_model=ObligationPercentsResponse)
async def get_obligation_percents(db: DbSession) -> ObligationPercentsResponse:
    """Active obligation weights, creating the default on first read."""
    config = await ObligationConfigService(db).get_config()
    await db.commit()
    return ObligationPercentsResponse.model_validate(config)


@router.put(
    "/obligation-percents",
    response_model=ObligationPercentsResponse,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_obligation_percents(
    db: DbSession,
    caller: CurrentCaller,
    payload: ObligationPercentsUpdate,
) -> ObligationPercentsResponse:
    """Replace the obligation weights (admin only)."""
    require_admin(caller)
    config = await ObligationConfigService(db).update_config(payload.model_dump())
    await db.commit()
    return ObligationPercentsResponse.model_validate(config)
