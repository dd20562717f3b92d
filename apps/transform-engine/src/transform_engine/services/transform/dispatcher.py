"""Outcome type to executor lookup."""

import logging
from typing import Awaitable, Callable, Dict, Mapping, Optional

from transform_engine.core.errors import UnknownOutcomeTypeError
from transform_engine.schemas.job import JobOutput
from transform_engine.schemas.outcome import OutcomeType
from transform_engine.services.transform.context import OutcomeContext
from transform_engine.services.transform.outcomes import (
    ai_image_outcome,
    ai_video_outcome,
    gif_outcome,
    photo_outcome,
)

logger = logging.getLogger(__name__)

OutcomeExecutor = Callable[[OutcomeContext], Awaitable[JobOutput]]

OUTCOME_EXECUTORS: Dict[OutcomeType, OutcomeExecutor] = {
    OutcomeType.PHOTO: photo_outcome,
    OutcomeType.GIF: gif_outcome,
    OutcomeType.AI_IMAGE: ai_image_outcome,
    OutcomeType.AI_VIDEO: ai_video_outcome,
}


async def dispatch(
    outcome_type: str,
    ctx: OutcomeContext,
    executors: Optional[Mapping[OutcomeType, OutcomeExecutor]] = None,
) -> JobOutput:
    """Run the executor registered for ``outcome_type``."""
    executors = OUTCOME_EXECUTORS if executors is None else executors
    try:
        executor = executors[OutcomeType(outcome_type)]
    except (KeyError, ValueError):
        raise UnknownOutcomeTypeError(f"No executor registered for outcome type {outcome_type!r}")

    logger.info("Job %s: running %s outcome", ctx.job.id, outcome_type)
    return await executor(ctx)
