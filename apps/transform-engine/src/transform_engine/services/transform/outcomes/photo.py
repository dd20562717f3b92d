"""Photo outcome: the captured photo, cropped to the outcome aspect ratio."""

import logging

from transform_engine.schemas.job import JobOutput, OutputFormat
from transform_engine.schemas.outcome import PhotoOutcomeConfig
from transform_engine.services.transform.context import OutcomeContext
from transform_engine.services.transform.helpers import (
    apply_overlay_if_present,
    download_media,
    get_source_media,
    upload_output,
)

logger = logging.getLogger(__name__)


async def photo_outcome(ctx: OutcomeContext) -> JobOutput:
    config: PhotoOutcomeConfig = ctx.snapshot.outcome
    source = get_source_media(ctx.snapshot.session_responses, config.capture_step_id)

    await ctx.report_progress("downloading", 20, "Preparing photo...")
    source_path = await download_media(ctx, source, "source")

    await ctx.report_progress("processing", 50, "Processing photo...")
    scaled_path = ctx.tmp_dir / "photo.jpg"
    dimensions = await ctx.services.media.scale_and_crop(source_path, scaled_path, config.aspect_ratio)
    output_path = await apply_overlay_if_present(ctx, scaled_path)

    await ctx.report_progress("uploading", 80, "Saving photo...")
    return await upload_output(ctx, output_path, OutputFormat.IMAGE, dimensions)
