"""Tests for the transform task handler lifecycle."""

import asyncio
import logging

import pytest
from pydantic import ValidationError

from fakes import FakeRepository, build_job, capture_response
from transform_engine.core.errors import (
    REASON_MESSAGES,
    SANITIZED_MESSAGES,
    AIModelError,
    FFmpegError,
)
from transform_engine.schemas.job import Job, JobStatus
from transform_engine.schemas.outcome import OutcomeType
from transform_engine.services.transform.context import ProgressReporter
from transform_engine.tasks.transform_pipeline import JobNotFoundError, TransformTaskHandler

PHOTO = {"type": "photo", "captureStepId": "step-capture"}
ANIMATE = {
    "type": "ai.video",
    "task": "animate",
    "captureStepId": "step-capture",
    "videoGeneration": {"prompt": "make it glow", "duration": 8},
}
AI_IMAGE = {"type": "ai.image", "captureStepId": "step-capture", "prompt": "a cat"}


@pytest.fixture
def work_dir(tmp_path):
    return tmp_path / "work"


@pytest.fixture
def make_handler(repository, services, work_dir):
    def _make(job=None, **kwargs):
        if job is not None:
            repository.jobs[job.id] = job
        return TransformTaskHandler(repository, services, temp_root=work_dir, **kwargs)

    return _make


def leftover_dirs(work_dir):
    return list(work_dir.iterdir()) if work_dir.exists() else []


class TestLifecycle:
    """Tests for load, claim, execute and record."""

    def test_photo_job_completes(self, make_handler, repository, work_dir):
        handler = make_handler(build_job(PHOTO))

        asyncio.run(handler.handle("job-1"))

        job = repository.jobs["job-1"]
        assert job.status == JobStatus.COMPLETED
        assert job.output.format.value == "image"
        assert job.progress.percentage == 100
        assert job.started_at is not None
        assert job.completed_at is not None
        assert job.error is None
        assert leftover_dirs(work_dir) == []

    def test_animate_job_completes(self, make_handler, repository):
        handler = make_handler(build_job(ANIMATE))

        asyncio.run(handler.handle("job-1"))

        job = repository.jobs["job-1"]
        assert job.status == JobStatus.COMPLETED
        assert job.output.format.value == "video"
        assert job.output.processing_time_ms > 0
        assert (job.output.dimensions.width, job.output.dimensions.height) == (1024, 1792)

    def test_progress_is_monotonic_and_ends_at_100(self, make_handler, repository):
        outcome = dict(ANIMATE, task="reimagine", startFrameImageGen={"prompt": "dawn"}, endFrameImageGen={"prompt": "dusk"})
        handler = make_handler(build_job(outcome))

        asyncio.run(handler.handle("job-1"))

        percentages = [p.percentage for p in repository.progress_history]
        assert percentages == sorted(percentages)
        assert percentages[-1] == 100
        assert repository.progress_history[-1].current_step == "completed"

    def test_status_transitions(self, make_handler, repository):
        handler = make_handler(build_job(PHOTO))

        asyncio.run(handler.handle("job-1"))

        assert repository.status_history == [JobStatus.RUNNING, JobStatus.COMPLETED]

    def test_executor_gets_private_temp_dir(self, make_handler, repository, work_dir):
        seen = {}

        async def executor(ctx):
            seen["tmp_dir"] = ctx.tmp_dir
            seen["exists"] = ctx.tmp_dir.is_dir()
            (ctx.tmp_dir / "scratch.bin").write_bytes(b"x")
            raise RuntimeError("boom")

        handler = make_handler(build_job(PHOTO), executors={OutcomeType.PHOTO: executor})

        asyncio.run(handler.handle("job-1"))

        assert seen["exists"]
        assert seen["tmp_dir"].parent == work_dir
        assert "job-1" in seen["tmp_dir"].name
        assert not seen["tmp_dir"].exists()


class TestRedelivery:
    @pytest.mark.parametrize("status", ["running", "completed", "failed"])
    def test_non_pending_job_is_skipped(self, make_handler, repository, media, status):
        handler = make_handler(build_job(PHOTO, status=status))

        asyncio.run(handler.handle("job-1"))

        assert repository.jobs["job-1"].status.value == status
        assert repository.status_history == []
        assert media.calls == []

    def test_lost_claim_is_skipped(self, services, media, work_dir):
        class RacingRepository(FakeRepository):
            async def get_job(self, job_id):
                # Another delivery claims the job right after we read it
                job = await super().get_job(job_id)
                self.jobs[job_id] = job.model_copy(update={"status": JobStatus.RUNNING})
                return job

        repository = RacingRepository([build_job(PHOTO)])
        handler = TransformTaskHandler(repository, services, temp_root=work_dir)

        asyncio.run(handler.handle("job-1"))

        assert media.calls == []
        assert repository.status_history == []

    def test_missing_job(self, make_handler):
        with pytest.raises(JobNotFoundError):
            asyncio.run(make_handler().handle("nope"))

    def test_unreadable_snapshot_fails_job(self, make_handler, repository):
        try:
            Job.model_validate({"id": "job-1"})
        except ValidationError as e:
            repository.raise_on_get = e
        repository.jobs["job-1"] = build_job(PHOTO)

        asyncio.run(make_handler().handle("job-1"))

        job = repository.jobs["job-1"]
        assert job.status == JobStatus.FAILED
        assert job.error.code == "INVALID_INPUT"
        assert job.error.step == "load"


class TestFailures:
    """Every failure ends in a sanitized error and a removed temp dir."""

    def _run_failed(self, handler, repository, work_dir):
        asyncio.run(handler.handle("job-1"))
        job = repository.jobs["job-1"]
        assert job.status == JobStatus.FAILED
        assert job.output is None
        assert job.completed_at is not None
        assert leftover_dirs(work_dir) == []
        return job.error

    def test_invalid_input(self, make_handler, repository, work_dir):
        handler = make_handler(build_job(dict(PHOTO, captureStepId="step-missing")))

        error = self._run_failed(handler, repository, work_dir)

        assert error.code == "INVALID_INPUT"
        assert error.message == SANITIZED_MESSAGES["INVALID_INPUT"]

    def test_download_failure(self, make_handler, repository, store, work_dir):
        store.objects.clear()
        handler = make_handler(build_job(PHOTO))

        error = self._run_failed(handler, repository, work_dir)

        assert error.code == "PROCESSING_FAILED"

    def test_ffmpeg_failure_does_not_leak_stderr(self, make_handler, repository, media, work_dir):
        media.errors["scale_and_crop"] = FFmpegError(
            "Image scaling failed", "validation", {"stderr": "/srv/tmp/source.jpg: Invalid data"}
        )
        handler = make_handler(build_job(PHOTO))

        error = self._run_failed(handler, repository, work_dir)

        assert error.code == "PROCESSING_FAILED"
        assert "/srv" not in error.message

    def test_thumbnail_failure(self, make_handler, repository, media, work_dir):
        media.errors["generate_thumbnail"] = FFmpegError("Thumbnail generation failed", "unknown")
        handler = make_handler(build_job(PHOTO))

        assert self._run_failed(handler, repository, work_dir).code == "PROCESSING_FAILED"

    def test_upload_failure(self, make_handler, repository, store, work_dir):
        store.fail_uploads = True
        handler = make_handler(build_job(PHOTO))

        error = self._run_failed(handler, repository, work_dir)

        assert error.code == "PROCESSING_FAILED"
        assert error.step == "storage"

    def test_image_generation_failure(self, make_handler, repository, image_provider, work_dir):
        image_provider.errors["cat"] = AIModelError("429 RESOURCE_EXHAUSTED for project 1234")
        handler = make_handler(build_job(AI_IMAGE))

        error = self._run_failed(handler, repository, work_dir)

        assert error.code == "AI_MODEL_ERROR"
        assert "1234" not in error.message

    def test_safety_filtered_video(self, make_handler, repository, video_provider, work_dir):
        video_provider.result = "filtered"
        handler = make_handler(build_job(ANIMATE))

        error = self._run_failed(handler, repository, work_dir)

        assert error.code == "AI_MODEL_ERROR"
        assert error.message == REASON_MESSAGES["safety_filtered"]

    def test_video_provider_error(self, make_handler, repository, video_provider, work_dir):
        video_provider.result = "error"
        handler = make_handler(build_job(ANIMATE))

        error = self._run_failed(handler, repository, work_dir)

        assert error.code == "AI_MODEL_ERROR"
        assert error.message == SANITIZED_MESSAGES["AI_MODEL_ERROR"]
        assert "worker.py" not in error.message

    def test_poll_timeout(self, make_handler, repository, video_provider, work_dir):
        video_provider.result = "never"
        handler = make_handler(build_job(ANIMATE))

        error = self._run_failed(handler, repository, work_dir)

        assert error.code == "PROCESSING_FAILED"
        assert error.message == REASON_MESSAGES["timeout"]

    def test_transform_without_end_frame(self, make_handler, repository, video_provider, image_provider, work_dir):
        handler = make_handler(build_job(dict(ANIMATE, task="transform")))

        error = self._run_failed(handler, repository, work_dir)

        assert error.code == "INVALID_INPUT"
        assert video_provider.requests == []
        assert image_provider.requests == []

    def test_wall_clock_timeout(self, make_handler, repository, work_dir):
        async def slow(ctx):
            await asyncio.sleep(5)

        handler = make_handler(build_job(PHOTO), executors={OutcomeType.PHOTO: slow}, job_timeout=0.01)

        error = self._run_failed(handler, repository, work_dir)

        assert error.code == "PROCESSING_FAILED"
        assert error.message == REASON_MESSAGES["timeout"]

    def test_multiple_capture_steps_use_configured_one(self, make_handler, repository, store):
        other = dict(capture_response(), stepId="step-other", data=[])
        handler = make_handler(build_job(PHOTO, responses=[other, capture_response()]))

        asyncio.run(handler.handle("job-1"))

        assert repository.jobs["job-1"].status == JobStatus.COMPLETED


class TestBestEffort:
    def test_progress_write_failures_do_not_fail_job(self, make_handler, repository):
        repository.fail_progress = True
        handler = make_handler(build_job(ANIMATE))

        asyncio.run(handler.handle("job-1"))

        job = repository.jobs["job-1"]
        assert job.status == JobStatus.COMPLETED
        assert job.progress.percentage == 100

    def test_memory_warning(self, make_handler, repository, caplog):
        handler = make_handler(build_job(PHOTO), memory_limit_mb=1)

        with caplog.at_level(logging.WARNING, logger="transform_engine.tasks.transform_pipeline"):
            asyncio.run(handler.handle("job-1"))

        assert any("exceeds limit" in r.getMessage() for r in caplog.records)


class TestProgressReporter:
    def test_lower_percentage_is_clamped(self, repository):
        repository.jobs["job-1"] = build_job(PHOTO)
        reporter = ProgressReporter(repository, "job-1", initial=10)

        async def report():
            await reporter("generating-frames", 25)
            await reporter("late-write", 20)
            await reporter("uploading", 85)

        asyncio.run(report())

        assert [p.percentage for p in repository.progress_history] == [25, 25, 85]
