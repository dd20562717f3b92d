"""Queue push endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from transform_engine.tasks.transform_pipeline import JobNotFoundError, TransformTaskHandler, build_task_handler

logger = logging.getLogger(__name__)

router = APIRouter()

_handler: Optional[TransformTaskHandler] = None


def get_task_handler() -> TransformTaskHandler:
    global _handler
    if _handler is None:
        _handler = build_task_handler()
    return _handler


class TransformPipelineTask(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str
    project_id: Optional[str] = None
    session_id: Optional[str] = None


@router.post("/transform-pipeline-job")
async def transform_pipeline_job(
    task: TransformPipelineTask,
    handler: TransformTaskHandler = Depends(get_task_handler),
) -> dict:
    """Run one delivered job. Any 2xx acknowledges the delivery."""
    logger.info("Received transform job %s (project %s)", task.job_id, task.project_id)
    try:
        await handler.handle(task.job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")

    return {"success": True, "data": {"jobId": task.job_id}}
