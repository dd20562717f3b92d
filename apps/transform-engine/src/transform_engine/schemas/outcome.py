"""Outcome configuration, discriminated by outcome type."""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import Field, field_validator

from transform_engine.schemas.session import DocumentModel, MediaReference


class OutcomeType(str, Enum):
    """Outcome type enumeration."""
    PHOTO = "photo"
    GIF = "gif"
    AI_IMAGE = "ai.image"
    AI_VIDEO = "ai.video"


class AIVideoTask(str, Enum):
    """AI video task enumeration."""
    ANIMATE = "animate"
    TRANSFORM = "transform"
    REIMAGINE = "reimagine"
    # Guest photo plus configured images as Veo asset references
    REMIX = "ref-images-to-video"


VALID_VIDEO_DURATIONS = (4, 6, 8)

DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_VIDEO_MODEL = "veo-3.1-fast-generate-001"


class ImageGenerationConfig(DocumentModel):
    """Parameters for one image generation call (AI image outcome or a video frame)."""

    prompt: str = ""
    model: str = DEFAULT_IMAGE_MODEL
    # None = inherit from the parent outcome
    aspect_ratio: Optional[str] = None
    reference_media: List[MediaReference] = Field(default_factory=list)


class VideoGenerationConfig(DocumentModel):
    """Parameters for the video generation call."""

    prompt: str = ""
    model: str = DEFAULT_VIDEO_MODEL
    duration: int = 6
    aspect_ratio: Optional[str] = None
    ref_media: List[MediaReference] = Field(default_factory=list)

    @field_validator("duration", mode="before")
    @classmethod
    def snap_duration(cls, value):
        """Coerce any number to the nearest supported duration."""
        clamped = max(4.0, min(8.0, float(value)))
        return min(VALID_VIDEO_DURATIONS, key=lambda d: abs(d - clamped))


class PhotoOutcomeConfig(DocumentModel):
    type: Literal["photo"] = "photo"
    capture_step_id: Optional[str] = None
    aspect_ratio: str = "1:1"


class GifOutcomeConfig(DocumentModel):
    type: Literal["gif"] = "gif"
    capture_step_id: Optional[str] = None
    aspect_ratio: str = "1:1"
    boomerang: bool = False


class AIImageOutcomeConfig(DocumentModel):
    type: Literal["ai.image"] = "ai.image"
    capture_step_id: Optional[str] = None
    prompt: str = ""
    model: str = DEFAULT_IMAGE_MODEL
    aspect_ratio: str = "1:1"
    reference_media: List[MediaReference] = Field(default_factory=list)


class AIVideoOutcomeConfig(DocumentModel):
    type: Literal["ai.video"] = "ai.video"
    task: AIVideoTask = AIVideoTask.ANIMATE
    capture_step_id: Optional[str] = None
    aspect_ratio: str = "9:16"
    video_generation: VideoGenerationConfig = Field(default_factory=VideoGenerationConfig)
    start_frame_image_gen: Optional[ImageGenerationConfig] = None
    end_frame_image_gen: Optional[ImageGenerationConfig] = None

    @field_validator("task", mode="before")
    @classmethod
    def read_legacy_task(cls, value):
        # Older experiences stored animate as "image-to-video"
        if value == "image-to-video":
            return AIVideoTask.ANIMATE.value
        return value


OutcomeConfig = Annotated[
    Union[PhotoOutcomeConfig, GifOutcomeConfig, AIImageOutcomeConfig, AIVideoOutcomeConfig],
    Field(discriminator="type"),
]
