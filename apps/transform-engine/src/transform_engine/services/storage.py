"""Durable object store backends (local filesystem or Google Cloud Storage)."""

import asyncio
import logging
import mimetypes
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

from transform_engine.core.config import settings
from transform_engine.core.errors import StorageError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class StoredObject:
    """Result of an upload."""
    path: str
    url: str
    asset_id: str


class ObjectStore(Protocol):
    async def download(self, path: str, local_path: PathLike) -> None:
        ...

    async def upload(self, local_path: PathLike, path: str, content_type: Optional[str] = None) -> StoredObject:
        ...

    async def delete(self, prefix: str) -> None:
        ...

    def path_from_uri(self, uri: str) -> str:
        ...


def output_storage_path(project_id: str, session_id: str, job_id: str, name: str, extension: str) -> str:
    """Canonical storage path for a job artifact."""
    return f"projects/{project_id}/sessions/{session_id}/results/{job_id}/{name}.{extension}"


def scratch_prefix(project_id: str, session_id: str, job_id: str) -> str:
    """Prefix where providers may write intermediate output."""
    return f"projects/{project_id}/sessions/{session_id}/scratch/{job_id}/"


def _guess_content_type(local_path: PathLike) -> str:
    return mimetypes.guess_type(str(local_path))[0] or "application/octet-stream"


# ------------------------------------------------------------------------------
# Local filesystem
# ------------------------------------------------------------------------------

class LocalObjectStore:
    """Object store rooted at a local directory, served under a public base URL."""

    def __init__(self, root: PathLike, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        resolved = (self.root / path.lstrip("/")).resolve()
        if self.root.resolve() not in resolved.parents and resolved != self.root.resolve():
            raise StorageError(f"Path escapes storage root: {path}", step="storage")
        return resolved

    async def download(self, path: str, local_path: PathLike) -> None:
        source = self._resolve(path)
        if not source.is_file():
            raise StorageError(f"Object not found: {path}", step="storage")
        await asyncio.to_thread(shutil.copyfile, source, local_path)

    async def upload(self, local_path: PathLike, path: str, content_type: Optional[str] = None) -> StoredObject:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.copyfile, local_path, target)
        return StoredObject(path=path, url=f"{self.public_base_url}/{path}", asset_id=uuid.uuid4().hex)

    async def delete(self, prefix: str) -> None:
        target = self._resolve(prefix)
        if target.is_dir():
            await asyncio.to_thread(shutil.rmtree, target)
        elif target.exists():
            target.unlink()

    def path_from_uri(self, uri: str) -> str:
        for base in ("file://" + str(self.root.resolve()) + "/", self.public_base_url + "/"):
            if uri.startswith(base):
                return uri[len(base):]
        return uri


# ------------------------------------------------------------------------------
# Google Cloud Storage
# ------------------------------------------------------------------------------

class GCSObjectStore:
    """Object store backed by a GCS bucket. Uploaded objects are made public."""

    def __init__(self, bucket_name: str, client=None):
        from google.cloud import storage as gcs

        self.bucket_name = bucket_name
        self._client = client or gcs.Client()
        self._bucket = self._client.bucket(bucket_name)

    @property
    def uri_prefix(self) -> str:
        return f"gs://{self.bucket_name}/"

    async def download(self, path: str, local_path: PathLike) -> None:
        blob = self._bucket.blob(path)
        await asyncio.to_thread(blob.download_to_filename, str(local_path))

    async def upload(self, local_path: PathLike, path: str, content_type: Optional[str] = None) -> StoredObject:
        asset_id = uuid.uuid4().hex
        blob = self._bucket.blob(path)
        blob.metadata = {"assetId": asset_id}

        def _upload():
            blob.upload_from_filename(str(local_path), content_type=content_type or _guess_content_type(local_path))
            blob.make_public()

        await asyncio.to_thread(_upload)
        url = f"https://storage.googleapis.com/{self.bucket_name}/{path}"
        return StoredObject(path=path, url=url, asset_id=asset_id)

    async def delete(self, prefix: str) -> None:
        def _delete():
            for blob in self._client.list_blobs(self.bucket_name, prefix=prefix):
                blob.delete()

        await asyncio.to_thread(_delete)

    def path_from_uri(self, uri: str) -> str:
        if uri.startswith(self.uri_prefix):
            return uri[len(self.uri_prefix):]
        if uri.startswith("gs://"):
            return uri[len("gs://"):].split("/", 1)[-1]
        return uri


def get_object_store() -> ObjectStore:
    """Object store for the configured backend."""
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "gcs":
        if not settings.STORAGE_BUCKET:
            raise RuntimeError("TRANSFORM_STORAGE_BUCKET is required for the gcs storage backend")
        return GCSObjectStore(settings.STORAGE_BUCKET)
    if backend == "local":
        return LocalObjectStore(settings.STORAGE_LOCAL_ROOT, settings.PUBLIC_BASE_URL)
    raise RuntimeError(f"Unknown storage backend: {settings.STORAGE_BACKEND}")


async def download_from_store(store: ObjectStore, path: str, local_path: PathLike) -> Path:
    """Copy an object into a local temp file."""
    local_path = Path(local_path)
    try:
        await store.download(path, local_path)
    except StorageError:
        raise
    except Exception as e:
        logger.error("Download of %s failed: %s", path, e)
        raise StorageError(f"Download failed: {path}", step="storage") from e

    if not local_path.exists() or local_path.stat().st_size == 0:
        raise StorageError(f"Downloaded object is empty: {path}", step="storage")

    logger.debug("Downloaded %s -> %s (%d bytes)", path, local_path, local_path.stat().st_size)
    return local_path


async def upload_to_store(
    store: ObjectStore,
    local_path: PathLike,
    path: str,
    content_type: Optional[str] = None,
) -> StoredObject:
    """Upload a local file and return its public URL and asset ID."""
    try:
        stored = await store.upload(local_path, path, content_type=content_type)
    except StorageError:
        raise
    except Exception as e:
        logger.error("Upload to %s failed: %s", path, e)
        raise StorageError(f"Upload failed: {path}", step="storage") from e

    logger.debug("Uploaded %s -> %s", local_path, stored.url)
    return stored
