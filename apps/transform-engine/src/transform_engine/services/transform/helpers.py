"""Media plumbing shared by the outcome executors."""

import logging
import mimetypes
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from transform_engine.core.errors import InvalidInputError
from transform_engine.schemas.job import Dimensions, JobOutput, OutputFormat
from transform_engine.schemas.session import MediaReference, SessionResponse
from transform_engine.services.storage import download_from_store, output_storage_path, upload_to_store
from transform_engine.services.transform.context import OutcomeContext

logger = logging.getLogger(__name__)

OUTPUT_CONTENT_TYPES = {
    OutputFormat.IMAGE: ("jpg", "image/jpeg"),
    OutputFormat.GIF: ("gif", "image/gif"),
    OutputFormat.VIDEO: ("mp4", "video/mp4"),
}


def get_capture_media(
    responses: Sequence[SessionResponse],
    capture_step_id: Optional[str],
) -> List[MediaReference]:
    """All media captured by ``capture_step_id``.

    Raises InvalidInputError when the step is unset, unknown, or captured nothing.
    """
    if not capture_step_id:
        raise InvalidInputError("No capture step configured", step="validation")

    response = next((r for r in responses if r.step_id == capture_step_id), None)
    if response is None:
        raise InvalidInputError(f"Capture step {capture_step_id} not found in session", step="validation")

    media = response.media
    if not media:
        raise InvalidInputError(f"Capture step {capture_step_id} has no media", step="validation")
    return media


def get_source_media(
    responses: Sequence[SessionResponse],
    capture_step_id: Optional[str],
) -> MediaReference:
    """First media item of the capture step."""
    return get_capture_media(responses, capture_step_id)[0]


def _extension_for(mime_type: str, default: str = ".jpg") -> str:
    if mime_type == "image/jpeg":
        return ".jpg"
    return mimetypes.guess_extension(mime_type) or default


async def download_media(ctx: OutcomeContext, media: MediaReference, name: str) -> Path:
    """Fetch a stored asset into the job's temp dir as ``{name}{ext}``."""
    local_path = ctx.tmp_dir / f"{name}{_extension_for(media.mime_type)}"
    return await download_from_store(ctx.services.store, media.file_path, local_path)


async def download_overlay(ctx: OutcomeContext) -> Optional[Path]:
    """Fetch the job's overlay once, or None when the job has none."""
    overlay = ctx.snapshot.overlay_choice
    if overlay is None:
        return None
    return await download_media(ctx, overlay, "overlay")


async def apply_overlay_if_present(
    ctx: OutcomeContext,
    image_path: Path,
    name: str = "overlaid",
    overlay_path: Optional[Path] = None,
) -> Path:
    """Composite the job's overlay onto an image, or return it unchanged.

    Pass ``overlay_path`` from ``download_overlay`` when compositing several images.
    """
    overlay = ctx.snapshot.overlay_choice
    if overlay is None:
        return image_path

    if overlay_path is None:
        overlay_path = await download_overlay(ctx)
    output_path = image_path.with_name(f"{name}{image_path.suffix}")
    await ctx.services.media.apply_overlay(image_path, overlay_path, output_path)
    logger.debug("Applied overlay %s to %s", overlay.media_asset_id, image_path.name)
    return output_path


async def upload_output(
    ctx: OutcomeContext,
    output_path: Path,
    output_format: OutputFormat,
    dimensions: Optional[Tuple[int, int]] = None,
) -> JobOutput:
    """Upload the final artifact and its thumbnail, and describe it as a job output."""
    services = ctx.services
    job = ctx.job
    extension, content_type = OUTPUT_CONTENT_TYPES[output_format]

    if dimensions is None:
        info = await services.media.probe_dimensions_and_duration(output_path)
        dimensions = (info.width, info.height)

    thumb_path = ctx.tmp_dir / "thumb.jpg"
    await services.media.generate_thumbnail(output_path, thumb_path, width=services.thumbnail_width)

    stored = await upload_to_store(
        services.store,
        output_path,
        output_storage_path(job.project_id, job.session_id, job.id, "output", extension),
        content_type=content_type,
    )
    thumb = await upload_to_store(
        services.store,
        thumb_path,
        output_storage_path(job.project_id, job.session_id, job.id, "thumb", "jpg"),
        content_type="image/jpeg",
    )

    width, height = dimensions
    output = JobOutput(
        asset_id=stored.asset_id,
        url=stored.url,
        file_path=stored.path,
        format=output_format,
        dimensions=Dimensions(width=width, height=height),
        size_bytes=output_path.stat().st_size,
        thumbnail_url=thumb.url,
        processing_time_ms=ctx.elapsed_ms(),
    )
    logger.info(
        "Job %s output %s (%dx%d, %d bytes)",
        job.id, output.file_path, width, height, output.size_bytes,
    )
    return output
