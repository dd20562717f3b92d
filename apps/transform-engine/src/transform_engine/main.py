"""Transform Engine - Main FastAPI Application."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from transform_engine.api.v1.router import api_router
from transform_engine.core.config import settings
from transform_engine.core.database import close_db, init_db
from transform_engine.services.ffmpeg import FFmpegService

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Starting Transform Engine v%s", settings.VERSION)

    await init_db()
    logger.info("Database initialized at %s", settings.DATABASE_PATH)

    ffmpeg = FFmpegService.get_instance()
    if await ffmpeg.check_availability():
        logger.info("FFmpeg available")
    else:
        logger.warning("FFmpeg not found! Media processing will fail.")

    yield

    logger.info("Shutting down Transform Engine...")
    await close_db()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Transform Engine",
        description="Transform pipeline job execution for guest experiences",
        version=settings.VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    @app.get("/health")
    async def health_check():
        ffmpeg = FFmpegService.get_instance()
        return {
            "status": "healthy",
            "version": settings.VERSION,
            "services": {
                "ffmpeg": await ffmpeg.check_availability(),
                "storage": settings.STORAGE_BACKEND,
                "database": True,
            },
        }

    app.include_router(api_router, prefix="/v1")

    # Serve locally stored outputs under the public base URL
    if settings.STORAGE_BACKEND == "local" and settings.STORAGE_LOCAL_ROOT.exists():
        app.mount("/storage", StaticFiles(directory=str(settings.STORAGE_LOCAL_ROOT)), name="storage")
        logger.info("Local storage mounted at /storage: %s", settings.STORAGE_LOCAL_ROOT)

    return app


# Create app instance
app = create_app()


def main():
    """Run the application."""
    import uvicorn

    uvicorn.run(
        "transform_engine.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info",
    )


if __name__ == "__main__":
    main()
