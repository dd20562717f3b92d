"""Image and video generation steps reused across outcome executors."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from transform_engine.core.errors import (
    AIModelError,
    GenerationTimeoutError,
    InvalidInputError,
    SafetyFilteredError,
)
from transform_engine.schemas.outcome import ImageGenerationConfig
from transform_engine.services.providers.base import (
    GeneratedVideoRef,
    ImageGenerationRequest,
    LabeledImage,
    VideoGenerationProvider,
    VideoGenerationRequest,
    VideoOperation,
)
from transform_engine.services.storage import download_from_store
from transform_engine.services.transform.context import OutcomeContext, PollPolicy
from transform_engine.services.transform.helpers import download_media
from transform_engine.services.transform.prompts import resolve_prompt_mentions

logger = logging.getLogger(__name__)

SOURCE_IMAGE_LABEL = "source_image"


@dataclass
class GeneratedImage:
    path: Path
    width: int
    height: int
    mime_type: str = "image/jpeg"

    def labeled(self, label: str) -> LabeledImage:
        return LabeledImage(path=self.path, label=label, mime_type=self.mime_type)


@dataclass
class GeneratedVideo:
    path: Path
    width: int
    height: int
    duration: Optional[float] = None


async def generate_image(
    ctx: OutcomeContext,
    config: ImageGenerationConfig,
    *,
    output_name: str,
    fallback_aspect_ratio: str,
    source: Optional[LabeledImage] = None,
) -> GeneratedImage:
    """Resolve the prompt, fetch its references, and run one image generation.

    ``output_name`` must be unique within the job: it names every local file
    this call writes, so concurrent calls never share paths.
    """
    resolved = resolve_prompt_mentions(
        config.prompt,
        ctx.snapshot.session_responses,
        config.reference_media,
    )
    if not resolved.text:
        raise InvalidInputError("Image prompt is empty after resolving mentions", step=output_name)

    references: List[LabeledImage] = []
    for i, ref in enumerate(resolved.media_refs):
        path = await download_media(ctx, ref, f"{output_name}-ref-{i}")
        references.append(LabeledImage(path=path, label=f"ref_{ref.display_name}", mime_type=ref.mime_type))

    request = ImageGenerationRequest(
        prompt=resolved.text,
        model=config.model,
        aspect_ratio=config.aspect_ratio or fallback_aspect_ratio,
        source_image=source,
        reference_images=references,
    )
    logger.info(
        "Generating %s with %s (%d references)", output_name, request.model, len(references)
    )
    result = await ctx.services.image_provider.generate(request)

    output_path = ctx.tmp_dir / f"{output_name}.jpg"
    await asyncio.to_thread(output_path.write_bytes, result.data)

    info = await ctx.services.media.probe_dimensions_and_duration(output_path)
    return GeneratedImage(path=output_path, width=info.width, height=info.height, mime_type=result.mime_type)


async def poll_until_done(
    provider: VideoGenerationProvider,
    operation: VideoOperation,
    policy: PollPolicy,
) -> VideoOperation:
    """Poll a long-running operation until it reports done.

    Raises GenerationTimeoutError once ``policy.timeout`` has elapsed on
    ``policy.clock`` without completion.
    """
    started = policy.clock()
    polls = 0
    while not operation.done:
        if policy.clock() - started >= policy.timeout:
            raise GenerationTimeoutError(
                f"Video generation {operation.name} not done after {policy.timeout:.0f}s",
                step="generate-video",
            )
        await policy.sleep(policy.interval)
        operation = await provider.poll(operation)
        polls += 1
        logger.debug("Poll %d for %s: done=%s", polls, operation.name, operation.done)
    return operation


def _select_video(operation: VideoOperation) -> GeneratedVideoRef:
    if operation.error:
        raise AIModelError(f"Video generation failed: {operation.error}", step="generate-video")
    if not operation.videos:
        reasons = ", ".join(operation.filtered_reasons) or "no reason given"
        raise SafetyFilteredError(f"No video returned ({reasons})", step="generate-video")
    return operation.videos[0]


async def generate_video(ctx: OutcomeContext, request: VideoGenerationRequest) -> GeneratedVideo:
    """Submit a video generation, wait for it, and bring the result into the temp dir."""
    services = ctx.services
    operation = await services.video_provider.submit(request)
    logger.info("Submitted video generation %s", operation.name)

    local_path = ctx.tmp_dir / "output.mp4"
    try:
        operation = await poll_until_done(services.video_provider, operation, services.video_poll)
        video = _select_video(operation)
        if video.data:
            await asyncio.to_thread(local_path.write_bytes, video.data)
        elif video.uri:
            await download_from_store(services.store, services.store.path_from_uri(video.uri), local_path)
        else:
            raise AIModelError("Generated video has neither data nor URI", step="generate-video")
    finally:
        if request.output_prefix:
            await _delete_scratch(ctx, request.output_prefix)

    info = await services.media.probe_dimensions_and_duration(local_path)
    logger.info("Video ready: %dx%d, %.1fs", info.width, info.height, info.duration or 0)
    return GeneratedVideo(path=local_path, width=info.width, height=info.height, duration=info.duration)


async def _delete_scratch(ctx: OutcomeContext, prefix: str) -> None:
    try:
        await ctx.services.store.delete(prefix)
    except Exception as e:
        logger.warning("Failed to clean up provider output under %s: %s", prefix, e)
