"""Transform Engine services."""

from transform_engine.services.ffmpeg import FFmpegService
from transform_engine.services.storage import get_object_store


# Lazy imports for services requiring cloud SDK credentials
def get_image_provider():
    from transform_engine.services.providers import get_image_provider
    return get_image_provider()


def get_video_provider():
    from transform_engine.services.providers import get_video_provider
    return get_video_provider()


__all__ = [
    "FFmpegService",
    "get_object_store",
    "get_image_provider",
    "get_video_provider",
]
