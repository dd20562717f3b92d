"""GIF outcome: the capture step's frames encoded as a looping animation."""

import logging
from typing import List

from transform_engine.schemas.job import JobOutput, OutputFormat
from transform_engine.schemas.outcome import GifOutcomeConfig
from transform_engine.services.transform.context import OutcomeContext
from transform_engine.services.transform.helpers import (
    apply_overlay_if_present,
    download_media,
    download_overlay,
    get_capture_media,
    upload_output,
)

logger = logging.getLogger(__name__)


def boomerang_sequence(frames: List) -> List:
    """Forward then backward, without repeating the turning frames."""
    if len(frames) < 3:
        return list(frames)
    return list(frames) + list(reversed(frames[1:-1]))


async def gif_outcome(ctx: OutcomeContext) -> JobOutput:
    config: GifOutcomeConfig = ctx.snapshot.outcome
    media = get_capture_media(ctx.snapshot.session_responses, config.capture_step_id)
    services = ctx.services

    await ctx.report_progress("downloading", 20, f"Preparing {len(media)} frames...")
    overlay_path = await download_overlay(ctx)
    frames = []
    for i, item in enumerate(media):
        frame_path = await download_media(ctx, item, f"frame-{i:03d}-src")
        scaled_path = ctx.tmp_dir / f"frame-{i:03d}.jpg"
        await services.media.scale_and_crop(frame_path, scaled_path, config.aspect_ratio)
        frames.append(await apply_overlay_if_present(
            ctx, scaled_path, name=f"frame-{i:03d}-overlaid", overlay_path=overlay_path
        ))

    if config.boomerang:
        frames = boomerang_sequence(frames)

    await ctx.report_progress("encoding", 50, "Creating GIF...")
    output_path = ctx.tmp_dir / "output.gif"
    await services.media.encode_animated_image(
        frames, output_path, width=services.gif_width, fps=services.gif_fps
    )
    logger.debug("Encoded %d frames into %s", len(frames), output_path.name)

    await ctx.report_progress("uploading", 80, "Saving GIF...")
    return await upload_output(ctx, output_path, OutputFormat.GIF)
