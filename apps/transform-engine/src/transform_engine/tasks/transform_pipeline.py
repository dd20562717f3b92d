"""Queue task handler: runs one transform job end to end."""

import asyncio
import logging
import shutil
import tempfile
import time
from pathlib import Path
from typing import Mapping, Optional

import psutil
from pydantic import ValidationError

from transform_engine.core.config import settings
from transform_engine.core.errors import classify_error
from transform_engine.core.jobs import JobRepository, mark_completed, mark_failed, mark_running
from transform_engine.schemas.job import Job, JobOutput, JobProgress, JobStatus
from transform_engine.schemas.outcome import OutcomeType
from transform_engine.services.transform.context import ExecutorServices, OutcomeContext, ProgressReporter
from transform_engine.services.transform.dispatcher import OutcomeExecutor, dispatch

logger = logging.getLogger(__name__)

INITIAL_PROGRESS = JobProgress(current_step="processing", percentage=10, message="Processing...")


class JobNotFoundError(LookupError):
    """The delivered job ID does not exist in the job store."""


class TransformTaskHandler:
    """Runs delivered job IDs through load, claim, execute and record.

    A job that is not pending when delivered (already running elsewhere, or
    terminal) is skipped. Failures are recorded on the job and not raised, so
    the queue never redelivers. The job's temp directory is always removed.
    """

    def __init__(
        self,
        repository: JobRepository,
        services: ExecutorServices,
        executors: Optional[Mapping[OutcomeType, OutcomeExecutor]] = None,
        temp_root: Optional[Path] = None,
        job_timeout: Optional[float] = None,
        memory_limit_mb: Optional[int] = None,
    ):
        self.repository = repository
        self.services = services
        self.executors = executors
        self.temp_root = Path(temp_root or settings.TEMP_PATH)
        self.job_timeout = job_timeout if job_timeout is not None else settings.JOB_TIMEOUT_SECONDS
        self.memory_limit_mb = memory_limit_mb or settings.JOB_MEMORY_LIMIT_MB

    async def handle(self, job_id: str) -> None:
        try:
            job = await self.repository.get_job(job_id)
        except ValidationError as e:
            logger.error("Job %s has an unreadable snapshot: %s", job_id, e)
            await mark_failed(self.repository, job_id, classify_error(e, step="load"), expected_status=JobStatus.PENDING)
            return

        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}")

        if job.status != JobStatus.PENDING:
            logger.info("Job %s is %s, skipping", job_id, job.status.value)
            return

        if not await mark_running(self.repository, job_id, INITIAL_PROGRESS):
            logger.info("Job %s was claimed by another delivery, skipping", job_id)
            return

        self.temp_root.mkdir(parents=True, exist_ok=True)
        tmp_dir = Path(tempfile.mkdtemp(prefix=f"transform-{job_id}-", dir=self.temp_root))
        start_time = time.monotonic()
        logger.info("Job %s started (%s)", job_id, job.snapshot.outcome.type)

        try:
            ctx = OutcomeContext(
                job=job,
                snapshot=job.snapshot,
                tmp_dir=tmp_dir,
                start_time=start_time,
                report_progress=ProgressReporter(self.repository, job_id, initial=INITIAL_PROGRESS.percentage),
                services=self.services,
            )
            try:
                output = await asyncio.wait_for(
                    dispatch(job.snapshot.outcome.type, ctx, self.executors),
                    timeout=self.job_timeout,
                )
            except Exception as e:
                await self._record_failure(job, e, time.monotonic() - start_time)
                return

            await self._record_success(job, output, time.monotonic() - start_time)
        finally:
            self._cleanup(tmp_dir)
            self._log_memory_usage(job_id)

    async def _record_success(self, job: Job, output: JobOutput, elapsed: float) -> None:
        if await mark_completed(self.repository, job.id, output):
            logger.info("Job %s completed in %.1fs: %s", job.id, elapsed, output.url)
        else:
            logger.warning("Job %s finished but was no longer running, output discarded", job.id)

    async def _record_failure(self, job: Job, exc: Exception, elapsed: float) -> None:
        # Raw details stay in the logs; the stored error is sanitized
        logger.exception("Job %s failed after %.1fs: %s", job.id, elapsed, exc)
        error = classify_error(exc)
        await mark_failed(self.repository, job.id, error)
        logger.info("Job %s marked failed: %s (step %s)", job.id, error.code, error.step)

    def _cleanup(self, tmp_dir: Path) -> None:
        try:
            shutil.rmtree(tmp_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove temp dir %s: %s", tmp_dir, e)

    def _log_memory_usage(self, job_id: str) -> None:
        rss_mb = psutil.Process().memory_info().rss / (1024 * 1024)
        if rss_mb > self.memory_limit_mb:
            logger.warning(
                "Job %s: process RSS %.0f MB exceeds limit of %d MB", job_id, rss_mb, self.memory_limit_mb
            )
        else:
            logger.debug("Job %s: process RSS %.0f MB", job_id, rss_mb)


def build_task_handler() -> TransformTaskHandler:
    """Task handler wired to the configured store, ffmpeg and Vertex AI providers."""
    from transform_engine.core.jobs import SqlJobRepository
    from transform_engine.services.ffmpeg import FFmpegService
    from transform_engine.services.providers import get_image_provider, get_video_provider
    from transform_engine.services.storage import get_object_store

    services = ExecutorServices(
        store=get_object_store(),
        media=FFmpegService.get_instance(),
        image_provider=get_image_provider(),
        video_provider=get_video_provider(),
        thumbnail_width=settings.THUMBNAIL_WIDTH,
        gif_width=settings.GIF_WIDTH,
        gif_fps=settings.GIF_FPS,
    )
    return TransformTaskHandler(SqlJobRepository(), services)
