"""SQLAlchemy models for the Transform Engine."""

from transform_engine.models.job import JobRecord

__all__ = [
    "JobRecord",
]
