"""Provider-neutral contracts for image and video generation."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Protocol


@dataclass
class LabeledImage:
    """A local image plus the label the prompt uses to refer to it."""
    path: Path
    label: str
    mime_type: str = "image/jpeg"


@dataclass
class ImageGenerationRequest:
    prompt: str
    model: str
    aspect_ratio: str
    source_image: Optional[LabeledImage] = None
    reference_images: List[LabeledImage] = field(default_factory=list)


@dataclass
class GeneratedImageData:
    data: bytes
    mime_type: str = "image/jpeg"


class ImageGenerationProvider(Protocol):
    async def generate(self, request: ImageGenerationRequest) -> GeneratedImageData:
        """Single synchronous generation call. Raises AIModelError / SafetyFilteredError."""
        ...


@dataclass
class VideoGenerationRequest:
    prompt: str
    model: str
    aspect_ratio: str
    duration: int
    # Image-to-video start frame; unset when reference images drive the generation
    start_frame: Optional[LabeledImage] = None
    end_frame: Optional[LabeledImage] = None
    reference_images: List[LabeledImage] = field(default_factory=list)
    # Store prefix the provider may write its raw output under
    output_prefix: Optional[str] = None


@dataclass
class GeneratedVideoRef:
    """One produced video: inline bytes or a store URI."""
    uri: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: str = "video/mp4"


@dataclass
class VideoOperation:
    """Handle for a long-running video generation."""
    name: str
    done: bool = False
    error: Optional[str] = None
    videos: List[GeneratedVideoRef] = field(default_factory=list)
    filtered_reasons: List[str] = field(default_factory=list)
    # Provider SDK object, needed to poll
    raw: Any = None


class VideoGenerationProvider(Protocol):
    async def submit(self, request: VideoGenerationRequest) -> VideoOperation:
        ...

    async def poll(self, operation: VideoOperation) -> VideoOperation:
        ...
