"""Generative providers.

SDK-backed providers are imported lazily so the engine (and its tests) load
without Vertex AI credentials.
"""

from transform_engine.core.config import settings
from transform_engine.services.providers.base import (
    GeneratedImageData,
    GeneratedVideoRef,
    ImageGenerationProvider,
    ImageGenerationRequest,
    LabeledImage,
    VideoGenerationProvider,
    VideoGenerationRequest,
    VideoOperation,
)


def get_image_provider() -> ImageGenerationProvider:
    from transform_engine.services.providers.gemini import GeminiImageProvider
    return GeminiImageProvider()


def get_video_provider() -> VideoGenerationProvider:
    from transform_engine.services.providers.veo import VeoVideoProvider
    bucket = settings.STORAGE_BUCKET if settings.STORAGE_BACKEND == "gcs" else None
    return VeoVideoProvider(output_bucket=bucket)


__all__ = [
    "GeneratedImageData",
    "GeneratedVideoRef",
    "ImageGenerationProvider",
    "ImageGenerationRequest",
    "LabeledImage",
    "VideoGenerationProvider",
    "VideoGenerationRequest",
    "VideoOperation",
    "get_image_provider",
    "get_video_provider",
]
