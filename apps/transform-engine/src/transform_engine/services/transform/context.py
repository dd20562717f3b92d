"""Execution context handed to outcome executors."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional

from transform_engine.core.config import settings
from transform_engine.core.jobs import JobRepository
from transform_engine.schemas.job import Job, JobProgress, JobSnapshot
from transform_engine.services.ffmpeg import FFmpegService
from transform_engine.services.providers.base import ImageGenerationProvider, VideoGenerationProvider
from transform_engine.services.storage import ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class PollPolicy:
    """Bounds for polling a long-running provider operation."""
    interval: float = 15.0
    timeout: float = 300.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def from_settings(cls) -> "PollPolicy":
        return cls(
            interval=settings.VIDEO_POLL_INTERVAL_SECONDS,
            timeout=settings.VIDEO_POLL_TIMEOUT_SECONDS,
        )


@dataclass
class ExecutorServices:
    """Collaborators the executors call out to."""
    store: ObjectStore
    media: FFmpegService
    image_provider: ImageGenerationProvider
    video_provider: VideoGenerationProvider
    video_poll: PollPolicy = field(default_factory=PollPolicy.from_settings)
    thumbnail_width: int = 300
    gif_width: int = 640
    gif_fps: int = 2


class ProgressReporter:
    """Best-effort progress writes for one job.

    Percentages never go backwards: a lower value than the last one reported
    is raised to it. Store failures are logged and dropped.
    """

    def __init__(self, repository: JobRepository, job_id: str, initial: float = 0.0):
        self._repository = repository
        self._job_id = job_id
        self.last_percentage = initial

    async def __call__(self, current_step: str, percentage: float, message: Optional[str] = None) -> None:
        percentage = max(float(percentage), self.last_percentage)
        self.last_percentage = percentage
        progress = JobProgress(current_step=current_step, percentage=percentage, message=message)
        try:
            await self._repository.update_job_progress(self._job_id, progress)
        except Exception as e:
            logger.warning("Failed to update progress for %s (%s): %s", self._job_id, current_step, e)


@dataclass
class OutcomeContext:
    job: Job
    snapshot: JobSnapshot
    tmp_dir: Path
    start_time: float
    report_progress: ProgressReporter
    services: ExecutorServices

    def elapsed_ms(self) -> int:
        return max(1, int((time.monotonic() - self.start_time) * 1000))
