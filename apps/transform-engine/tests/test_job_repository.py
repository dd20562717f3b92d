"""Tests for the SQLite job repository."""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fakes import build_job
from transform_engine.core.database import close_db, init_db
from transform_engine.core.errors import InvalidInputError, classify_error
from transform_engine.core.jobs import SqlJobRepository, mark_completed, mark_failed, mark_running
from transform_engine.schemas.job import Dimensions, JobOutput, JobProgress, JobStatus, OutputFormat

PHOTO = {"type": "photo", "captureStepId": "step-capture", "aspectRatio": "4:5"}


def run_with_repository(tmp_path, scenario):
    """Run ``scenario(repository)`` against a fresh database file."""

    async def _run():
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
        await init_db(engine)
        try:
            repository = SqlJobRepository(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
            return await scenario(repository)
        finally:
            await close_db(engine)

    return asyncio.run(_run())


def _output():
    return JobOutput(
        asset_id="asset-9",
        url="https://cdn.test/output.jpg",
        file_path="projects/p1/sessions/s1/results/job-1/output.jpg",
        format=OutputFormat.IMAGE,
        dimensions=Dimensions(width=1024, height=1280),
        size_bytes=2048,
        processing_time_ms=1500,
    )


class TestSqlJobRepository:
    """Tests for SqlJobRepository."""

    def test_create_and_get(self, tmp_path):
        async def scenario(repository):
            await repository.create_job(build_job(PHOTO))
            return await repository.get_job("job-1")

        job = run_with_repository(tmp_path, scenario)

        assert job.status == JobStatus.PENDING
        assert job.snapshot.outcome.aspect_ratio == "4:5"
        assert job.snapshot.session_responses[0].media[0].file_path.endswith("photo.jpg")

    def test_missing_job(self, tmp_path):
        async def scenario(repository):
            return await repository.get_job("nope")

        assert run_with_repository(tmp_path, scenario) is None

    def test_claim_is_compare_and_set(self, tmp_path):
        async def scenario(repository):
            await repository.create_job(build_job(PHOTO))
            progress = JobProgress(current_step="processing", percentage=10)
            first = await mark_running(repository, "job-1", progress)
            second = await mark_running(repository, "job-1", progress)
            return first, second, await repository.get_job("job-1")

        first, second, job = run_with_repository(tmp_path, scenario)

        assert first is True
        assert second is False
        assert job.status == JobStatus.RUNNING
        assert job.started_at is not None
        assert job.progress.percentage == 10

    def test_complete(self, tmp_path):
        async def scenario(repository):
            await repository.create_job(build_job(PHOTO))
            await mark_running(repository, "job-1", JobProgress(current_step="processing", percentage=10))
            await repository.update_job_progress("job-1", JobProgress(current_step="uploading", percentage=80))
            await mark_completed(repository, "job-1", _output())
            return await repository.get_job("job-1")

        job = run_with_repository(tmp_path, scenario)

        assert job.status == JobStatus.COMPLETED
        assert job.output == _output()
        assert job.progress.percentage == 100
        assert job.completed_at is not None

    def test_terminal_job_cannot_change(self, tmp_path):
        async def scenario(repository):
            await repository.create_job(build_job(PHOTO))
            await mark_running(repository, "job-1", JobProgress(current_step="processing", percentage=10))
            await mark_completed(repository, "job-1", _output())
            failed = await mark_failed(repository, "job-1", classify_error(InvalidInputError("late")))
            return failed, await repository.get_job("job-1")

        failed, job = run_with_repository(tmp_path, scenario)

        assert failed is False
        assert job.status == JobStatus.COMPLETED
        assert job.error is None

    def test_fail(self, tmp_path):
        async def scenario(repository):
            await repository.create_job(build_job(PHOTO))
            await mark_running(repository, "job-1", JobProgress(current_step="processing", percentage=10))
            await mark_failed(repository, "job-1", classify_error(InvalidInputError("no media", step="validation")))
            return await repository.get_job("job-1")

        job = run_with_repository(tmp_path, scenario)

        assert job.status == JobStatus.FAILED
        assert job.error.code == "INVALID_INPUT"
        assert job.error.step == "validation"
        assert job.to_document()["error"]["isRetryable"] is False
