"""Video generation via Veo on Vertex AI."""

import asyncio
import logging
from typing import Any, Dict, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from transform_engine.core.config import settings
from transform_engine.core.errors import AIModelError
from transform_engine.services.providers.base import (
    GeneratedVideoRef,
    LabeledImage,
    VideoGenerationRequest,
    VideoOperation,
)

logger = logging.getLogger(__name__)


async def _to_image(image: LabeledImage) -> types.Image:
    data = await asyncio.to_thread(image.path.read_bytes)
    return types.Image(image_bytes=data, mime_type=image.mime_type)


async def build_generate_params(request: VideoGenerationRequest, output_bucket: Optional[str] = None) -> Dict[str, Any]:
    """Keyword arguments for ``generate_videos``.

    Reference images go in ``config.reference_images`` with no start image.
    Otherwise the start frame is the input image, plus ``last_frame`` when
    there is an end frame.
    """
    config = types.GenerateVideosConfig(
        aspect_ratio=request.aspect_ratio,
        duration_seconds=request.duration,
        person_generation="allow_adult",
        number_of_videos=1,
    )
    if output_bucket and request.output_prefix:
        config.output_gcs_uri = f"gs://{output_bucket}/{request.output_prefix}"

    params: Dict[str, Any] = {"model": request.model, "prompt": request.prompt, "config": config}

    if request.reference_images:
        config.reference_images = [
            types.VideoGenerationReferenceImage(image=await _to_image(ref), reference_type="ASSET")
            for ref in request.reference_images
        ]
        return params

    if request.start_frame is None:
        raise AIModelError("Video generation needs a start frame or reference images", step="generate-video")
    params["image"] = await _to_image(request.start_frame)
    if request.end_frame is not None:
        config.last_frame = await _to_image(request.end_frame)
    return params


class VeoVideoProvider:
    """Submits Veo generations and polls their long-running operations.

    With ``output_bucket`` set, Veo writes the video to
    ``gs://{output_bucket}/{request.output_prefix}`` and the operation reports a URI.
    Otherwise the video bytes come back inline.
    """

    def __init__(
        self,
        project: Optional[str] = None,
        location: Optional[str] = None,
        output_bucket: Optional[str] = None,
    ):
        self.project = project or settings.GOOGLE_CLOUD_PROJECT
        if not self.project:
            raise RuntimeError("GOOGLE_CLOUD_PROJECT is required for Veo video generation")
        self.location = location or settings.VEO_LOCATION
        self.output_bucket = output_bucket
        self.client = genai.Client(vertexai=True, project=self.project, location=self.location)

    async def submit(self, request: VideoGenerationRequest) -> VideoOperation:
        params = await build_generate_params(request, self.output_bucket)
        logger.info(
            "Submitting Veo %s (%ss, aspect %s, end frame: %s, %d reference images)",
            request.model, request.duration, request.aspect_ratio,
            request.end_frame is not None, len(request.reference_images),
        )

        try:
            operation = await self.client.aio.models.generate_videos(**params)
        except genai_errors.APIError as e:
            logger.error("Veo submit error %s: %s", getattr(e, "code", None), e)
            raise AIModelError(f"Video generation request failed: {e}", step="generate-video") from e

        return self._to_operation(operation)

    async def poll(self, operation: VideoOperation) -> VideoOperation:
        try:
            refreshed = await self.client.aio.operations.get(operation.raw)
        except genai_errors.APIError as e:
            logger.error("Veo poll error for %s: %s", operation.name, e)
            raise AIModelError(f"Video generation status check failed: {e}", step="generate-video") from e
        return self._to_operation(refreshed)

    @staticmethod
    def _to_operation(operation: types.GenerateVideosOperation) -> VideoOperation:
        result = VideoOperation(name=operation.name or "", done=bool(operation.done), raw=operation)

        if operation.error:
            result.error = str(operation.error.get("message") or "Unknown error")

        response = operation.response
        if response is not None:
            for generated in response.generated_videos or []:
                video = generated.video
                if video is None:
                    continue
                result.videos.append(
                    GeneratedVideoRef(
                        uri=video.uri,
                        data=video.video_bytes,
                        mime_type=video.mime_type or "video/mp4",
                    )
                )
            result.filtered_reasons = list(response.rai_media_filtered_reasons or [])

        return result
