"""Obligation percentage configuration."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tutoring_engine.calculators.types import Obligation, ObligationWeights
from tutoring_engine.exceptions import ValidationError
from tutoring_engine.models import ObligationPercentConfig

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = ObligationWeights()


def validate_weights(values: Mapping[str, Any] | ObligationWeights) -> ObligationWeights:
    """Validate the four percentages, returning a weights snapshot.

    Accepts keys ``absence`` or ``absence_percent`` (and likewise for the
    other obligations). Each value must be an integer in 0..100 and the
    four must total exactly 100.
    """
    if isinstance(values, ObligationWeights):
        values = values.as_dict()

    parsed: dict[str, int] = {}
    for obligation in Obligation:
        key = obligation.value
        field = f"{key}_percent"
        if key in values:
            raw = values[key]
        elif field in values:
            raw = values[field]
        else:
            raise ValidationError(f"{field} is required", field=field)

        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ValidationError(f"{field} must be an integer. Received: {raw!r}", field=field)
        if raw < 0 or raw > 100:
            raise ValidationError(
                f"{field} must be between 0 and 100. Received: {raw}", field=field
            )
        parsed[key] = raw

    weights = ObligationWeights(**parsed)
    if weights.total != 100:
        raise ValidationError(f"Total must equal exactly 100. Current total: {weights.total}")
    return weights


def weights_from_config(config: ObligationPercentConfig) -> ObligationWeights:
    """Snapshot the weights held by a config row."""
    return ObligationWeights(
        absence=config.absence_percent,
        feedbacks=config.feedbacks_percent,
        voice=config.voice_percent,
        text=config.text_percent,
    )


class ObligationConfigService:
    """Reads and updates the single active obligation config row."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_config(self) -> ObligationPercentConfig:
        """Return the active config, creating the 25/25/25/25 default if none exists."""
        result = await self.session.execute(
            select(ObligationPercentConfig)
            .order_by(ObligationPercentConfig.created_at.desc())
            .limit(1)
        )
        config = result.scalar_one_or_none()
        if config is None:
            config = ObligationPercentConfig(
                absence_percent=DEFAULT_WEIGHTS.absence,
                feedbacks_percent=DEFAULT_WEIGHTS.feedbacks,
                voice_percent=DEFAULT_WEIGHTS.voice,
                text_percent=DEFAULT_WEIGHTS.text,
            )
            self.session.add(config)
            await self.session.flush()
            logger.info("Created default obligation percent config")
        return config

    async def get_weights(self) -> ObligationWeights:
        """Fresh weights snapshot; never cached between calculations."""
        return weights_from_config(await self.get_config())

    async def update_config(
        self, values: Mapping[str, Any] | ObligationWeights
    ) -> ObligationPercentConfig:
        """Validate and persist new weights.

        Raises ValidationError when a value is negative, not an integer,
        or the total is not 100.
        """
        weights = validate_weights(values)
        config = await self.get_config()
        config.absence_percent = weights.absence
        config.feedbacks_percent = weights.feedbacks
        config.voice_percent = weights.voice
        config.text_percent = weights.text
        await self.session.flush()
        logger.info("Updated obligation percents to %s", weights.as_dict())
        return config
