"""Single-shot and resumable multipart uploads."""

import asyncio
import io
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import IO, Protocol

from haos3.clients.abstract import (
    S3ClientException,
    S3MethodNotAllowedClientException,
    S3ObjectAlreadyExistsClientException,
    S3SizeMismatchClientException,
)
from haos3.clients.pydantic import S3CompleteMultipartUploadResponse, S3Part, S3PutObjectResponse, S3Upload
from haos3.signing.checksums import md5_hex, normalize_etag

MIN_PART_SIZE = 5 * 1024 * 1024
MAX_PART_SIZE = 5 * 1024 * 1024 * 1024
MAX_OBJECT_SIZE = 5 * 1024 * 1024 * 1024 * 1024
MAX_PART_COUNT = 10000
# Objects up to this size are sent with a single PUT.
MULTIPART_THRESHOLD = MIN_PART_SIZE


def calculate_part_size(size: int) -> int:
    """Return the part size for an object of ``size`` bytes.

    Never below the minimum part size and small enough to keep the part count
    within the protocol maximum.
    """
    if size < 0:
        msg = f"Size must not be negative, got {size}"
        raise ValueError(msg)
    return min(max(MIN_PART_SIZE, size // (MAX_PART_COUNT - 1)), MAX_PART_SIZE)


def calculate_part_count(size: int, part_size: int | None = None) -> int:
    part_size = part_size or calculate_part_size(size)
    return max(1, -(-size // part_size))


def read_exact(stream: IO[bytes], length: int) -> bytes:
    """Read up to ``length`` bytes, retrying short reads until end of stream."""
    chunks: list[bytes] = []
    remaining = length
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


async def read_chunk(stream: IO[bytes], length: int) -> bytes:
    """Read up to ``length`` bytes. Streams other than in-memory buffers are read in a worker thread."""
    if isinstance(stream, io.BytesIO):
        return read_exact(stream, length)
    return await asyncio.to_thread(read_exact, stream, length)


@dataclass
class UploadSession:
    """State of one multipart upload while it is being driven."""

    bucket: str
    key: str
    upload_id: str
    size: int
    part_size: int
    content_type: str | None = None
    reused: bool = False
    parts: list[S3Part] = field(default_factory=list)

    @property
    def uploaded_size(self) -> int:
        return sum(part.size or 0 for part in self.parts)

    @property
    def next_part_number(self) -> int:
        return len(self.parts) + 1


class AbstractMultipartApi(Protocol):
    """Requests the uploader is built from. Implemented by the S3 client."""

    async def put_single_object(
        self, bucket: str, key: str, data: bytes, content_type: str | None = None
    ) -> str | None:
        """Upload a whole object with one request and return its ETag."""
        ...

    def list_incomplete_uploads(
        self, bucket: str, prefix: str | None = None, *, recursive: bool = True
    ) -> AsyncIterator[S3Upload]:
        """List incomplete uploads lazily."""
        ...

    def list_parts(self, bucket: str, key: str, upload_id: str) -> AsyncIterator[S3Part]:
        """List uploaded parts lazily, in ascending part number order."""
        ...

    async def create_multipart_upload(self, bucket: str, key: str, content_type: str | None = None) -> str:
        """Start an upload session and return its upload id."""
        ...

    async def upload_part(self, bucket: str, key: str, upload_id: str, part_number: int, data: bytes) -> str:
        """Upload one part and return its ETag."""
        ...

    async def complete_multipart_upload(
        self, bucket: str, key: str, upload_id: str, parts: Sequence[S3Part]
    ) -> S3CompleteMultipartUploadResponse:
        """Assemble the object from the uploaded parts."""
        ...

    async def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort an upload session."""
        ...


def _object_already_exists(error: S3MethodNotAllowedClientException) -> S3ObjectAlreadyExistsClientException:
    return S3ObjectAlreadyExistsClientException(
        error.message,
        code=error.code,
        request_id=error.request_id,
        host_id=error.host_id,
        resource=error.resource,
        bucket_name=error.bucket_name,
        object_name=error.object_name,
        details=error.details,
    )


class MultipartUploader:
    """Uploads objects, resuming interrupted multipart sessions.

    Objects up to ``MULTIPART_THRESHOLD`` bytes are sent with one PUT. Larger
    objects reuse the latest incomplete session of the same key when there is
    one: parts already on the server are compared against the source and only
    the rest is uploaded. Network errors propagate without aborting the
    session, so a later call can resume it. A payload that does not match the
    declared size aborts the session.
    """

    def __init__(self, api: AbstractMultipartApi, concurrency: int = 1, logger: logging.Logger | None = None) -> None:
        """Initialize the uploader.

        Args:
            api: Client issuing the requests.
            concurrency: Parts uploaded at the same time. ``1`` uploads sequentially.
            logger: Logger to use instead of the module logger.

        """
        if concurrency < 1:
            msg = f"Concurrency must be at least 1, got {concurrency}"
            raise ValueError(msg)
        self._api = api
        self._concurrency = concurrency
        self._logger = logger or logging.getLogger(__name__)

    async def upload(
        self,
        bucket: str,
        key: str,
        data: bytes | IO[bytes],
        size: int | None = None,
        content_type: str | None = None,
    ) -> S3PutObjectResponse:
        """Upload an object.

        Args:
            bucket: Bucket name.
            key: Object key.
            data: Payload, either bytes or a binary stream read sequentially.
            size: Declared payload size. Defaults to ``len(data)`` for bytes.
            content_type: Content type of the object.

        Returns:
            The put object response.

        Raises:
            ValueError: If the size is missing, negative or above the maximum object size.
            S3SizeMismatchClientException: If the payload is shorter or longer than ``size``.
            S3ObjectAlreadyExistsClientException: If the server refuses to replace the object.

        """
        if isinstance(data, (bytes, bytearray, memoryview)):
            size = len(data) if size is None else size
            stream: IO[bytes] = io.BytesIO(data)
        else:
            stream = data
        if size is None:
            msg = "Size is required when uploading from a stream"
            raise ValueError(msg)
        if size < 0:
            msg = f"Size must not be negative, got {size}"
            raise ValueError(msg)
        if size > MAX_OBJECT_SIZE:
            msg = f"Size {size} exceeds the maximum object size of {MAX_OBJECT_SIZE} bytes"
            raise ValueError(msg)

        if size <= MULTIPART_THRESHOLD:
            return await self._upload_single(bucket, key, stream, size, content_type)
        return await self._upload_multipart(bucket, key, stream, size, content_type)

    async def _upload_single(
        self, bucket: str, key: str, stream: IO[bytes], size: int, content_type: str | None
    ) -> S3PutObjectResponse:
        payload = await read_chunk(stream, size)
        if len(payload) != size or await read_chunk(stream, 1):
            msg = f"Expected {size} bytes for {bucket}/{key}, got {'less' if len(payload) < size else 'more'}"
            raise S3SizeMismatchClientException(msg, bucket_name=bucket, object_name=key)
        try:
            etag = await self._api.put_single_object(bucket, key, payload, content_type)
        except S3MethodNotAllowedClientException as e:
            raise _object_already_exists(e) from e
        return S3PutObjectResponse(bucket=bucket, key=key, etag=etag)

    async def _upload_multipart(
        self, bucket: str, key: str, stream: IO[bytes], size: int, content_type: str | None
    ) -> S3PutObjectResponse:
        session = await self.open_session(bucket, key, size, content_type)
        try:
            pending = await self.reconcile(session, stream) if session.reused else None
            if self._concurrency == 1:
                await self._upload_sequential(session, stream, pending)
            else:
                await self._upload_concurrent(session, stream, pending)
            if session.uploaded_size != size:
                msg = f"Expected {size} bytes for {bucket}/{key}, got {session.uploaded_size}"
                raise S3SizeMismatchClientException(msg, bucket_name=bucket, object_name=key)
        except S3SizeMismatchClientException as e:
            await self._abort_quietly(session, e)
            raise

        manifest = sorted(session.parts, key=lambda part: part.part_number)
        try:
            result = await self._api.complete_multipart_upload(bucket, key, session.upload_id, manifest)
        except S3MethodNotAllowedClientException as e:
            raise _object_already_exists(e) from e
        return S3PutObjectResponse(
            bucket=bucket, key=key, etag=result.etag, upload_id=session.upload_id, parts=manifest
        )

    async def find_session(self, bucket: str, key: str) -> S3Upload | None:
        """Return the latest incomplete upload whose key is exactly ``key``."""
        latest: S3Upload | None = None
        async for upload in self._api.list_incomplete_uploads(bucket, prefix=key, recursive=True):
            if upload.key != key:
                continue
            if latest is None or (
                upload.initiated is not None and (latest.initiated is None or upload.initiated > latest.initiated)
            ):
                latest = upload
        return latest

    async def open_session(self, bucket: str, key: str, size: int, content_type: str | None = None) -> UploadSession:
        """Reuse the latest incomplete session of ``key`` or start a new one."""
        part_size = calculate_part_size(size)
        existing = await self.find_session(bucket, key)
        if existing is not None:
            self._logger.info("Resuming multipart upload %s of %s/%s", existing.upload_id, bucket, key)
            return UploadSession(
                bucket=bucket,
                key=key,
                upload_id=existing.upload_id,
                size=size,
                part_size=part_size,
                content_type=content_type,
                reused=True,
            )
        upload_id = await self._api.create_multipart_upload(bucket, key, content_type)
        self._logger.debug("Created multipart upload %s of %s/%s", upload_id, bucket, key)
        return UploadSession(
            bucket=bucket, key=key, upload_id=upload_id, size=size, part_size=part_size, content_type=content_type
        )

    async def reconcile(self, session: UploadSession, stream: IO[bytes]) -> bytes | None:
        """Match parts already on the server against the source.

        Parts are walked in ascending order. Matching parts go to the session
        manifest. Reconciliation stops at the first gap in part numbers, the
        first part of unexpected length, or the first part whose ETag differs
        from the source bytes. In the last case those bytes are returned so they
        are uploaded again under the same part number.

        Returns:
            Source bytes read but not matched, if any.

        Raises:
            S3SizeMismatchClientException: If the source ends before the declared size.

        """
        async for part in self._api.list_parts(session.bucket, session.key, session.upload_id):
            expected = min(session.part_size, session.size - session.uploaded_size)
            if part.part_number != session.next_part_number or expected <= 0 or part.size != expected:
                break
            chunk = await read_chunk(stream, expected)
            if len(chunk) != expected:
                msg = (
                    f"Expected {session.size} bytes for {session.bucket}/{session.key}, "
                    f"source ended after {session.uploaded_size + len(chunk)}"
                )
                raise S3SizeMismatchClientException(msg, bucket_name=session.bucket, object_name=session.key)
            if md5_hex(chunk) != normalize_etag(part.etag):
                self._logger.info(
                    "Part %d of upload %s differs from the source, uploading it again",
                    part.part_number,
                    session.upload_id,
                )
                self._log_reconciled(session)
                return chunk
            session.parts.append(S3Part(part_number=part.part_number, etag=part.etag, size=expected))
        self._log_reconciled(session)
        return None

    def _log_reconciled(self, session: UploadSession) -> None:
        self._logger.info(
            "Reconciled %d parts (%d bytes) of upload %s", len(session.parts), session.uploaded_size, session.upload_id
        )

    async def _next_chunk(self, session: UploadSession, stream: IO[bytes], offset: int) -> bytes:
        chunk = await read_chunk(stream, session.part_size)
        if not chunk:
            return chunk
        if offset + len(chunk) > session.size:
            msg = f"Expected {session.size} bytes for {session.bucket}/{session.key}, got more"
            raise S3SizeMismatchClientException(msg, bucket_name=session.bucket, object_name=session.key)
        if len(chunk) < session.part_size and offset + len(chunk) != session.size:
            msg = (
                f"Expected {session.size} bytes for {session.bucket}/{session.key}, "
                f"source ended after {offset + len(chunk)}"
            )
            raise S3SizeMismatchClientException(msg, bucket_name=session.bucket, object_name=session.key)
        return chunk

    async def _upload_part(self, session: UploadSession, part_number: int, chunk: bytes) -> S3Part:
        try:
            etag = await self._api.upload_part(session.bucket, session.key, session.upload_id, part_number, chunk)
        except S3ClientException as e:
            e.add_note(f"during part {part_number} of upload {session.upload_id}")
            raise
        return S3Part(part_number=part_number, etag=etag, size=len(chunk))

    async def _upload_sequential(self, session: UploadSession, stream: IO[bytes], pending: bytes | None) -> None:
        while True:
            if pending is not None:
                chunk, pending = pending, None
            else:
                chunk = await self._next_chunk(session, stream, session.uploaded_size)
            if not chunk:
                return
            session.parts.append(await self._upload_part(session, session.next_part_number, chunk))

    async def _upload_concurrent(self, session: UploadSession, stream: IO[bytes], pending: bytes | None) -> None:
        semaphore = asyncio.Semaphore(self._concurrency)
        uploaded: list[S3Part] = []
        part_number = session.next_part_number
        offset = session.uploaded_size

        async def worker(number: int, chunk: bytes) -> None:
            try:
                uploaded.append(await self._upload_part(session, number, chunk))
            finally:
                semaphore.release()

        try:
            async with asyncio.TaskGroup() as group:
                while True:
                    await semaphore.acquire()
                    try:
                        if pending is not None:
                            chunk, pending = pending, None
                        else:
                            chunk = await self._next_chunk(session, stream, offset)
                    except BaseException:
                        semaphore.release()
                        raise
                    if not chunk:
                        semaphore.release()
                        break
                    group.create_task(worker(part_number, chunk))
                    part_number += 1
                    offset += len(chunk)
        except BaseExceptionGroup as eg:
            first = eg.exceptions[0]
            first.add_note(f"{len(eg.exceptions)} of the concurrent part uploads of {session.upload_id} failed")
            raise first  # noqa: B904
        session.parts.extend(sorted(uploaded, key=lambda part: part.part_number))

    async def _abort_quietly(self, session: UploadSession, error: S3ClientException) -> None:
        try:
            await self._api.abort_multipart_upload(session.bucket, session.key, session.upload_id)
        except S3ClientException as abort_error:
            self._logger.warning("Failed to abort multipart upload %s: %s", session.upload_id, abort_error)
            error.add_note(f"aborting upload {session.upload_id} also failed: {abort_error}")
        else:
            self._logger.info("Aborted multipart upload %s of %s/%s", session.upload_id, session.bucket, session.key)
