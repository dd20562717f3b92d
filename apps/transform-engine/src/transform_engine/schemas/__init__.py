"""Document models shared by the job store, executors and API."""

from transform_engine.schemas.job import (
    Dimensions,
    Job,
    JobError,
    JobOutput,
    JobProgress,
    JobSnapshot,
    JobStatus,
    OutputFormat,
)
from transform_engine.schemas.outcome import (
    AIImageOutcomeConfig,
    AIVideoOutcomeConfig,
    AIVideoTask,
    GifOutcomeConfig,
    ImageGenerationConfig,
    OutcomeType,
    PhotoOutcomeConfig,
    VideoGenerationConfig,
)
from transform_engine.schemas.session import (
    MediaReference,
    MultiSelectOption,
    OverlayReference,
    SessionResponse,
)

__all__ = [
    "Dimensions",
    "Job",
    "JobError",
    "JobOutput",
    "JobProgress",
    "JobSnapshot",
    "JobStatus",
    "OutputFormat",
    "AIImageOutcomeConfig",
    "AIVideoOutcomeConfig",
    "AIVideoTask",
    "GifOutcomeConfig",
    "ImageGenerationConfig",
    "OutcomeType",
    "PhotoOutcomeConfig",
    "VideoGenerationConfig",
    "MediaReference",
    "MultiSelectOption",
    "OverlayReference",
    "SessionResponse",
]
