"""Job document and its parts."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from transform_engine.schemas.outcome import OutcomeConfig
from transform_engine.schemas.session import DocumentModel, OverlayReference, SessionResponse


class JobStatus(str, Enum):
    """Job status enumeration."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class OutputFormat(str, Enum):
    IMAGE = "image"
    GIF = "gif"
    VIDEO = "video"


class Dimensions(DocumentModel):
    width: int
    height: int


class JobProgress(DocumentModel):
    current_step: str
    percentage: float = Field(ge=0, le=100)
    message: Optional[str] = None


class JobOutput(DocumentModel):
    asset_id: str
    url: str
    file_path: str
    format: OutputFormat
    dimensions: Dimensions
    size_bytes: int
    thumbnail_url: Optional[str] = None
    processing_time_ms: int


class JobError(DocumentModel):
    code: str
    message: str
    step: Optional[str] = None
    is_retryable: bool = False
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class JobSnapshot(DocumentModel):
    """Immutable copy of everything an executor needs, captured at job creation."""

    session_responses: List[SessionResponse] = Field(default_factory=list)
    outcome: OutcomeConfig
    overlay_choice: Optional[OverlayReference] = None
    experience_version: int = 1


class Job(DocumentModel):
    """A single transform request/execution record."""

    id: str
    project_id: str
    session_id: str
    experience_id: str
    step_id: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    progress: Optional[JobProgress] = None
    output: Optional[JobOutput] = None
    error: Optional[JobError] = None
    snapshot: JobSnapshot
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
