"""AI image outcome: one generated image based on the guest's photo."""

import logging

from transform_engine.core.errors import InvalidInputError
from transform_engine.schemas.job import JobOutput, OutputFormat
from transform_engine.schemas.outcome import AIImageOutcomeConfig, ImageGenerationConfig
from transform_engine.services.providers.base import LabeledImage
from transform_engine.services.transform.context import OutcomeContext
from transform_engine.services.transform.helpers import (
    apply_overlay_if_present,
    download_media,
    get_source_media,
    upload_output,
)
from transform_engine.services.transform.operations import SOURCE_IMAGE_LABEL, generate_image

logger = logging.getLogger(__name__)


async def ai_image_outcome(ctx: OutcomeContext) -> JobOutput:
    config: AIImageOutcomeConfig = ctx.snapshot.outcome
    if not config.prompt.strip():
        raise InvalidInputError("AI image outcome has no prompt", step="validation")
    source = get_source_media(ctx.snapshot.session_responses, config.capture_step_id)

    await ctx.report_progress("downloading", 20, "Preparing photo...")
    source_path = await download_media(ctx, source, "source")

    await ctx.report_progress("generating-image", 30, "Generating image...")
    image = await generate_image(
        ctx,
        ImageGenerationConfig(
            prompt=config.prompt,
            model=config.model,
            aspect_ratio=config.aspect_ratio,
            reference_media=config.reference_media,
        ),
        output_name="generated",
        fallback_aspect_ratio=config.aspect_ratio,
        source=LabeledImage(path=source_path, label=SOURCE_IMAGE_LABEL, mime_type=source.mime_type),
    )

    output_path = await apply_overlay_if_present(ctx, image.path)

    await ctx.report_progress("uploading", 80, "Saving image...")
    return await upload_output(ctx, output_path, OutputFormat.IMAGE, (image.width, image.height))
