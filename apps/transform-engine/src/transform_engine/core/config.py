"""Application configuration."""

import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App info
    VERSION: str = "1.0.0"
    APP_NAME: str = "Transform Engine"
    DEBUG: bool = False

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 8080

    # Paths
    DATA_PATH: Path = Path.home() / ".transform-engine"
    DATABASE_PATH: Path = Path.home() / ".transform-engine" / "jobs.db"
    TEMP_PATH: Path = Path.home() / ".transform-engine" / "tmp"

    # FFmpeg
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_PATH: str = "ffprobe"
    THUMBNAIL_WIDTH: int = 300
    GIF_WIDTH: int = 640
    GIF_FPS: int = 2

    # Object store
    STORAGE_BACKEND: str = "local"  # local, gcs
    STORAGE_BUCKET: Optional[str] = None
    STORAGE_LOCAL_ROOT: Path = Path.home() / ".transform-engine" / "storage"
    PUBLIC_BASE_URL: str = "http://127.0.0.1:8080/storage"

    # Generative providers (Vertex AI)
    GOOGLE_CLOUD_PROJECT: Optional[str] = None
    VERTEX_AI_LOCATION: str = "us-central1"
    # Veo 3+ is only served from us-central1
    VEO_LOCATION: str = "us-central1"

    # Job budget
    JOB_TIMEOUT_SECONDS: int = 540  # 9 minutes
    JOB_MEMORY_LIMIT_MB: int = 1024
    VIDEO_POLL_INTERVAL_SECONDS: float = 15.0
    VIDEO_POLL_TIMEOUT_SECONDS: float = 300.0  # 5 minutes

    class Config:
        env_prefix = "TRANSFORM_"
        env_file = ".env"
        case_sensitive = True

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Update derived paths if data path changed
        if "DATA_PATH" in kwargs:
            self.DATABASE_PATH = self.DATA_PATH / "jobs.db"
            self.TEMP_PATH = self.DATA_PATH / "tmp"
            self.STORAGE_LOCAL_ROOT = self.DATA_PATH / "storage"

        # Create directories
        self.DATA_PATH.mkdir(parents=True, exist_ok=True)
        self.TEMP_PATH.mkdir(parents=True, exist_ok=True)
        if self.STORAGE_BACKEND == "local":
            self.STORAGE_LOCAL_ROOT.mkdir(parents=True, exist_ok=True)


# Override paths from environment
if os.environ.get("TRANSFORM_DATA_PATH"):
    settings = Settings(DATA_PATH=Path(os.environ["TRANSFORM_DATA_PATH"]))
else:
    settings = Settings()

# Cloud Run / Functions expose the project under one of these names
if not settings.GOOGLE_CLOUD_PROJECT:
    settings.GOOGLE_CLOUD_PROJECT = (
        os.environ.get("GOOGLE_CLOUD_PROJECT") or os.environ.get("GCLOUD_PROJECT")
    )
