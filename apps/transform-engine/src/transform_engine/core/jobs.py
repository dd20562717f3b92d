"""Job store access (SQLite persistence behind a narrow repository interface)."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transform_engine.core.database import async_session_maker
from transform_engine.models.job import JobRecord
from transform_engine.schemas.job import Job, JobError, JobOutput, JobProgress, JobStatus

logger = logging.getLogger(__name__)


class JobRepository(Protocol):
    """What the task handler needs from the job store."""

    async def get_job(self, job_id: str) -> Optional[Job]:
        ...

    async def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        expected_status: Optional[JobStatus] = None,
        **fields: Any,
    ) -> bool:
        """Set status plus extra fields; with ``expected_status`` only if the row still has it."""
        ...

    async def update_job_progress(self, job_id: str, progress: JobProgress) -> None:
        ...


def _to_column(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    return value


class SqlJobRepository:
    """Job repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession] = async_session_maker):
        self._session_maker = session_maker

    async def create_job(self, job: Job) -> Job:
        """Insert a pending job (the submission path's side of the contract)."""
        async with self._session_maker() as db:
            record = JobRecord(
                id=job.id,
                project_id=job.project_id,
                session_id=job.session_id,
                experience_id=job.experience_id,
                step_id=job.step_id,
                status=job.status.value,
                progress=_to_column(job.progress),
                snapshot=_to_column(job.snapshot),
                created_at=job.created_at,
                updated_at=job.updated_at,
            )
            db.add(record)
            await db.commit()

        logger.info("Created job %s for session %s", job.id, job.session_id)
        return job

    async def get_job(self, job_id: str) -> Optional[Job]:
        """Fetch and parse a job document. Raises ValidationError on a malformed document."""
        async with self._session_maker() as db:
            result = await db.execute(select(JobRecord).where(JobRecord.id == job_id))
            record = result.scalar_one_or_none()
            if not record:
                return None
            return Job.model_validate(record.to_dict())

    async def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        expected_status: Optional[JobStatus] = None,
        **fields: Any,
    ) -> bool:
        values: Dict[str, Any] = {key: _to_column(value) for key, value in fields.items()}
        values["status"] = status.value
        values["updated_at"] = datetime.utcnow()

        stmt = update(JobRecord).where(JobRecord.id == job_id)
        if expected_status is not None:
            stmt = stmt.where(JobRecord.status == expected_status.value)

        async with self._session_maker() as db:
            result = await db.execute(stmt.values(**values))
            await db.commit()

        updated = result.rowcount > 0
        if not updated:
            logger.warning(
                "Job %s not moved to %s (expected status %s)",
                job_id, status.value, expected_status.value if expected_status else None,
            )
        return updated

    async def update_job_progress(self, job_id: str, progress: JobProgress) -> None:
        async with self._session_maker() as db:
            await db.execute(
                update(JobRecord)
                .where(JobRecord.id == job_id)
                .values(progress=_to_column(progress), updated_at=datetime.utcnow())
            )
            await db.commit()


COMPLETED_PROGRESS = JobProgress(current_step="completed", percentage=100, message="Complete")


async def mark_running(repository: JobRepository, job_id: str, progress: JobProgress) -> bool:
    """Claim a pending job. False when another delivery already claimed or finished it."""
    return await repository.update_job_status(
        job_id,
        JobStatus.RUNNING,
        expected_status=JobStatus.PENDING,
        started_at=datetime.utcnow(),
        progress=progress,
    )


async def mark_completed(repository: JobRepository, job_id: str, output: JobOutput) -> bool:
    return await repository.update_job_status(
        job_id,
        JobStatus.COMPLETED,
        expected_status=JobStatus.RUNNING,
        output=output,
        progress=COMPLETED_PROGRESS,
        completed_at=datetime.utcnow(),
    )


async def mark_failed(
    repository: JobRepository,
    job_id: str,
    error: JobError,
    expected_status: Optional[JobStatus] = JobStatus.RUNNING,
) -> bool:
    return await repository.update_job_status(
        job_id,
        JobStatus.FAILED,
        expected_status=expected_status,
        error=error,
        completed_at=datetime.utcnow(),
    )
