"""
Blob Storage

Content-addressed artifact storage on GridFS. Every namespace (packages,
templates) is its own GridFS bucket; a blob is addressed by its filename.

Uploads are streamed chunk by chunk while a SHA-1 digest is computed over
the bytes actually written, so the checksum declared by the CI client is
verified against what landed in storage, not against what was announced.
"""

import asyncio
import hashlib
import logging
import re
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Protocol

from gridfs.errors import NoFile
from motor.motor_asyncio import AsyncIOMotorGridFSBucket, AsyncIOMotorGridOut

from app.core.constants import UPLOAD_CHUNK_SIZE
from app.core.exceptions import ChecksumMismatchError, UploadError
from app.core.metrics import publish_upload_bytes_total, publish_upload_failures_total

logger = logging.getLogger(__name__)


class AsyncReadable(Protocol):
    """Anything with an awaitable ``read(size)``, e.g. starlette's UploadFile."""

    async def read(self, size: int = -1) -> bytes: ...


class BytesSource:
    """In-memory AsyncReadable, used for rendered template bundles."""

    def __init__(self, data: bytes):
        self._data = data
        self._offset = 0

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data) - self._offset
        chunk = self._data[self._offset : self._offset + size]
        self._offset += len(chunk)
        return chunk


@dataclass
class StoredBlob:
    key: str
    file_id: object
    size: int
    sha1: str


class BlobStore:
    """Key -> bytes store backed by one GridFS bucket."""

    def __init__(self, bucket: AsyncIOMotorGridFSBucket, name: str):
        self.bucket = bucket
        self.name = name

    async def put(
        self,
        key: str,
        source: AsyncReadable,
        checksum: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> StoredBlob:
        """
        Stream ``source`` into the bucket under ``key``.

        Args:
            key: Blob key (GridFS filename)
            source: Stream to read from until exhausted
            checksum: Expected SHA-1 hex digest of the content, if any
            content_type: Stored in the file metadata for downloads

        Returns:
            The stored blob

        Raises:
            ChecksumMismatchError: if the written bytes do not hash to ``checksum``.
                The partially written file is removed.
        """
        metadata = {"contentType": content_type}
        if checksum:
            metadata["sha1"] = checksum.lower()

        grid_in = self.bucket.open_upload_stream(key, metadata=metadata)
        digest = hashlib.sha1()
        size = 0
        try:
            while True:
                chunk = await source.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                digest.update(chunk)
                size += len(chunk)
                await grid_in.write(chunk)

            actual = digest.hexdigest()
            if checksum and actual != checksum.lower():
                raise ChecksumMismatchError(key, checksum, actual)

            await grid_in.close()
        except BaseException:
            await grid_in.abort()
            raise

        publish_upload_bytes_total.labels(bucket=self.name).inc(size)
        await self._remove_older_revisions(key, grid_in._id)
        return StoredBlob(key=key, file_id=grid_in._id, size=size, sha1=actual)

    async def put_bytes(self, key: str, data: bytes, content_type: Optional[str] = None) -> StoredBlob:
        return await self.put(key, BytesSource(data), content_type=content_type)

    async def _remove_older_revisions(self, key: str, keep_id: object) -> None:
        # Re-publishing a key replaces it; GridFS keeps revisions otherwise.
        # Only earlier ObjectIds are removed so a concurrent newer upload survives.
        older = await self.bucket.find({"filename": key, "_id": {"$lt": keep_id}}).to_list(None)
        for grid_out in older:
            try:
                await self.bucket.delete(grid_out._id)
            except NoFile:
                # Removed concurrently by another publish of the same key
                pass

    async def open(self, key: str) -> Optional[AsyncIOMotorGridOut]:
        """Open the latest revision of ``key`` for streaming, or None."""
        try:
            return await self.bucket.open_download_stream_by_name(key)
        except NoFile:
            return None

    async def get(self, key: str) -> Optional[bytes]:
        grid_out = await self.open(key)
        if grid_out is None:
            return None
        return await grid_out.read()

    async def has(self, key: str) -> bool:
        files = await self.bucket.find({"filename": key}, limit=1).to_list(1)
        return len(files) > 0

    async def remove(self, key: str) -> int:
        """Delete every revision of ``key``. Returns the number of files removed."""
        files = await self.bucket.find({"filename": key}).to_list(None)
        removed = 0
        for grid_out in files:
            try:
                await self.bucket.delete(grid_out._id)
                removed += 1
            except NoFile:
                pass
        return removed

    async def find_matching(self, pattern: str, limit: int = 1) -> List[str]:
        """Keys matching the regular expression ``pattern``, newest first."""
        files = await self.bucket.find(
            {"filename": {"$regex": pattern}},
            sort=[("uploadDate", -1)],
            limit=limit,
        ).to_list(limit)
        return [grid_out.filename for grid_out in files]

    async def find_by_prefix(self, prefix: str, limit: int = 1) -> List[str]:
        return await self.find_matching(f"^{re.escape(prefix)}", limit=limit)


async def iter_chunks(grid_out: AsyncIOMotorGridOut) -> AsyncIterator[bytes]:
    """Stream a stored file chunk by chunk, for StreamingResponse."""
    while True:
        chunk = await grid_out.readchunk()
        if not chunk:
            break
        yield chunk


@dataclass
class UploadJob:
    """One artifact to store: a package archive or a binary template asset."""

    name: str
    store: BlobStore
    key: str
    source: AsyncReadable
    checksum: Optional[str] = None
    content_type: Optional[str] = None


class UploadCoordinator:
    """Fan-out/fan-in of independent uploads for one publish request."""

    async def upload_all(self, jobs: List[UploadJob]) -> List[StoredBlob]:
        """
        Run every upload concurrently and wait for all of them to settle.

        No upload is cancelled when a sibling fails, so the caller sees the
        complete set of failures. Blobs that were written are left in place;
        their keys are content addressed, so a retried publish overwrites them.

        Raises:
            UploadError: if at least one upload failed
        """
        if not jobs:
            return []

        results = await asyncio.gather(
            *(job.store.put(job.key, job.source, job.checksum, job.content_type) for job in jobs),
            return_exceptions=True,
        )

        failures = []
        stored: List[StoredBlob] = []
        for job, result in zip(jobs, results):
            if isinstance(result, StoredBlob):
                stored.append(result)
                continue
            if not isinstance(result, Exception):
                raise result
            reason = "checksum" if isinstance(result, ChecksumMismatchError) else "storage"
            publish_upload_failures_total.labels(reason=reason).inc()
            logger.error(f"Upload of {job.name} to {job.store.name} failed: {result}")
            failures.append((job.name, result))

        if failures:
            raise UploadError(failures)

        return stored
