"""Main API router for v1."""

from fastapi import APIRouter

from transform_engine.api.v1.endpoints import jobs, tasks

api_router = APIRouter()

api_router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])
