"""AI video outcome.

The tasks share the same tail (video generation, upload) and differ in which
images drive the generation:

- animate: the guest photo is the start frame, no end frame.
- transform: the guest photo is the start frame, the end frame is generated from it.
- reimagine: both frames are generated from the guest photo, concurrently.
- ref-images-to-video: no start frame; the guest photo and the configured
  reference media go to the provider as asset reference images.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from transform_engine.core.errors import InvalidInputError
from transform_engine.schemas.job import JobOutput, OutputFormat
from transform_engine.schemas.outcome import AIVideoOutcomeConfig, AIVideoTask, ImageGenerationConfig
from transform_engine.schemas.session import MediaReference
from transform_engine.services.providers.base import LabeledImage, VideoGenerationRequest
from transform_engine.services.storage import scratch_prefix
from transform_engine.services.transform.context import OutcomeContext
from transform_engine.services.transform.helpers import download_media, get_source_media, upload_output
from transform_engine.services.transform.operations import (
    SOURCE_IMAGE_LABEL,
    generate_image,
    generate_video,
)
from transform_engine.services.transform.prompts import resolve_prompt_mentions

logger = logging.getLogger(__name__)


@dataclass
class VideoInputs:
    """Images handed to the video provider."""
    start_frame: Optional[LabeledImage] = None
    end_frame: Optional[LabeledImage] = None
    reference_images: List[LabeledImage] = field(default_factory=list)


@dataclass
class ValidatedVideoOutcome:
    source: MediaReference
    prompt: str


def _require_frame_config(config: Optional[ImageGenerationConfig], name: str) -> ImageGenerationConfig:
    if config is None:
        raise InvalidInputError(f"{name} image generation config is required", step="validation")
    if not config.prompt.strip():
        raise InvalidInputError(f"{name} image generation prompt is empty", step="validation")
    return config


def validate_video_outcome(ctx: OutcomeContext, config: AIVideoOutcomeConfig) -> ValidatedVideoOutcome:
    """Check everything the task needs before any external call.

    Returns the subject media and the video prompt with its step mentions
    resolved. Reference mentions are dropped: the video provider does not
    label its reference images.
    """
    source = get_source_media(ctx.snapshot.session_responses, config.capture_step_id)
    if not config.video_generation.prompt.strip():
        raise InvalidInputError("Video generation prompt is empty", step="validation")

    if config.task == AIVideoTask.TRANSFORM:
        _require_frame_config(config.end_frame_image_gen, "End frame")
    elif config.task == AIVideoTask.REIMAGINE:
        _require_frame_config(config.start_frame_image_gen, "Start frame")
        _require_frame_config(config.end_frame_image_gen, "End frame")

    prompt = resolve_prompt_mentions(config.video_generation.prompt, ctx.snapshot.session_responses).text
    if not prompt:
        raise InvalidInputError("Video prompt is empty after resolving mentions", step="validation")
    return ValidatedVideoOutcome(source=source, prompt=prompt)


async def _animate_inputs(ctx: OutcomeContext, config: AIVideoOutcomeConfig, subject: LabeledImage) -> VideoInputs:
    await ctx.report_progress("starting", 20, "Starting video generation...")
    return VideoInputs(start_frame=subject)


async def _transform_inputs(ctx: OutcomeContext, config: AIVideoOutcomeConfig, subject: LabeledImage) -> VideoInputs:
    await ctx.report_progress("generating-end-frame", 25, "Generating end frame...")
    end_frame = await generate_image(
        ctx,
        config.end_frame_image_gen,
        output_name="end-frame",
        fallback_aspect_ratio=config.aspect_ratio,
        source=subject,
    )
    return VideoInputs(start_frame=subject, end_frame=end_frame.labeled("end_frame"))


async def _reimagine_inputs(ctx: OutcomeContext, config: AIVideoOutcomeConfig, subject: LabeledImage) -> VideoInputs:
    await ctx.report_progress("generating-frames", 25, "Generating start and end frames...")
    results = await asyncio.gather(
        generate_image(
            ctx,
            config.start_frame_image_gen,
            output_name="start-frame",
            fallback_aspect_ratio=config.aspect_ratio,
            source=subject,
        ),
        generate_image(
            ctx,
            config.end_frame_image_gen,
            output_name="end-frame",
            fallback_aspect_ratio=config.aspect_ratio,
            source=subject,
        ),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result

    start_frame, end_frame = results
    return VideoInputs(start_frame=start_frame.labeled("start_frame"), end_frame=end_frame.labeled("end_frame"))


async def _remix_inputs(ctx: OutcomeContext, config: AIVideoOutcomeConfig, subject: LabeledImage) -> VideoInputs:
    ref_media = config.video_generation.ref_media
    await ctx.report_progress("starting", 20, f"Preparing {len(ref_media) + 1} reference images...")
    references = [subject]
    for i, ref in enumerate(ref_media):
        path = await download_media(ctx, ref, f"video-ref-{i}")
        references.append(LabeledImage(path=path, label=f"ref_{ref.display_name}", mime_type=ref.mime_type))
    return VideoInputs(reference_images=references)


InputBuilder = Callable[[OutcomeContext, AIVideoOutcomeConfig, LabeledImage], Awaitable[VideoInputs]]

INPUT_BUILDERS: Dict[AIVideoTask, InputBuilder] = {
    AIVideoTask.ANIMATE: _animate_inputs,
    AIVideoTask.TRANSFORM: _transform_inputs,
    AIVideoTask.REIMAGINE: _reimagine_inputs,
    AIVideoTask.REMIX: _remix_inputs,
}


async def ai_video_outcome(ctx: OutcomeContext) -> JobOutput:
    config: AIVideoOutcomeConfig = ctx.snapshot.outcome
    job = ctx.job
    validated = validate_video_outcome(ctx, config)
    video_config = config.video_generation

    logger.info("Job %s: ai.video task=%s model=%s", job.id, config.task.value, video_config.model)
    if ctx.snapshot.overlay_choice is not None:
        logger.warning("Job %s: overlays are not applied to video outcomes, skipping", job.id)

    source = validated.source
    source_path = await download_media(ctx, source, "source")
    subject = LabeledImage(path=source_path, label=SOURCE_IMAGE_LABEL, mime_type=source.mime_type)

    inputs = await INPUT_BUILDERS[config.task](ctx, config, subject)

    await ctx.report_progress("generating-video", 50, "Generating video...")
    video = await generate_video(
        ctx,
        VideoGenerationRequest(
            prompt=validated.prompt,
            model=video_config.model,
            aspect_ratio=video_config.aspect_ratio or config.aspect_ratio,
            duration=video_config.duration,
            start_frame=inputs.start_frame,
            end_frame=inputs.end_frame,
            reference_images=inputs.reference_images,
            output_prefix=scratch_prefix(job.project_id, job.session_id, job.id),
        ),
    )

    await ctx.report_progress("uploading", 85, "Saving video...")
    return await upload_output(ctx, video.path, OutputFormat.VIDEO, (video.width, video.height))
