"""Core components for the Transform Engine."""

from transform_engine.core.config import settings
from transform_engine.core.jobs import JobRepository, SqlJobRepository

__all__ = ["settings", "JobRepository", "SqlJobRepository"]
