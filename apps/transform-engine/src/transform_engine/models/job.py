"""Job record model for persistence."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from transform_engine.core.database import Base


class JobRecord(Base):
    """Job record model - persistent job document storage."""

    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    session_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    experience_id: Mapped[str] = mapped_column(String(64), nullable=False)
    step_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Status tracking
    status: Mapped[str] = mapped_column(String(20), default="pending")
    progress: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Results
    output: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Execution snapshot
    snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def to_dict(self) -> dict:
        """Convert to the job document shape."""
        return {
            "id": self.id,
            "projectId": self.project_id,
            "sessionId": self.session_id,
            "experienceId": self.experience_id,
            "stepId": self.step_id,
            "status": self.status,
            "progress": self.progress,
            "output": self.output,
            "error": self.error,
            "snapshot": self.snapshot,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
        }
