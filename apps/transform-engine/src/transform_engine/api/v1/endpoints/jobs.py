"""Job endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from transform_engine.core.jobs import JobRepository, SqlJobRepository

router = APIRouter()


def get_job_repository() -> JobRepository:
    return SqlJobRepository()


@router.get("/{job_id}")
async def get_job(job_id: str, repository: JobRepository = Depends(get_job_repository)) -> dict:
    """Get job status, progress and result."""
    job = await repository.get_job(job_id)

    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    return {"success": True, "data": job.to_document()}
