"""Pytest configuration and fixtures."""

import os
import sys
import tempfile
import time
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Keep settings directories out of the home dir
os.environ.setdefault("TRANSFORM_DATA_PATH", tempfile.mkdtemp(prefix="transform-engine-tests-"))

from fakes import (  # noqa: E402
    LOGO_PATH,
    OVERLAY_PATH,
    PHOTO_PATH,
    FakeClock,
    FakeImageProvider,
    FakeMedia,
    FakeRepository,
    FakeStore,
    FakeVideoProvider,
)

from transform_engine.schemas.job import Job  # noqa: E402
from transform_engine.services.transform.context import (  # noqa: E402
    ExecutorServices,
    OutcomeContext,
    PollPolicy,
    ProgressReporter,
)


@pytest.fixture
def store():
    objects = {
        PHOTO_PATH: b"photo-bytes",
        OVERLAY_PATH: b"overlay-bytes",
        LOGO_PATH: b"logo-bytes",
        "scratch/video.mp4": b"stored-video-bytes",
    }
    for i in range(1, 4):
        objects[f"projects/p1/sessions/s1/uploads/photo-{i}.jpg"] = f"photo-{i}-bytes".encode()
    return FakeStore(objects)


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def image_provider():
    return FakeImageProvider()


@pytest.fixture
def video_provider():
    return FakeVideoProvider()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def services(store, media, image_provider, video_provider, clock):
    return ExecutorServices(
        store=store,
        media=media,
        image_provider=image_provider,
        video_provider=video_provider,
        video_poll=PollPolicy(interval=15, timeout=300, sleep=clock.sleep, clock=clock),
    )


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def make_context(tmp_path, services, repository):
    """Build an OutcomeContext for a job, registering it with the fake repository."""

    def _make(job: Job) -> OutcomeContext:
        repository.jobs[job.id] = job
        work_dir = tmp_path / job.id
        work_dir.mkdir(exist_ok=True)
        return OutcomeContext(
            job=job,
            snapshot=job.snapshot,
            tmp_dir=work_dir,
            start_time=time.monotonic() - 0.5,
            report_progress=ProgressReporter(repository, job.id),
            services=services,
        )

    return _make
