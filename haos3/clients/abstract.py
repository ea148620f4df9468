"""Abstract S3 client and its error taxonomy."""

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from typing import IO, Any, ClassVar, Literal, Protocol

from haos3.clients.pydantic import (
    S3Bucket,
    S3CannedAcl,
    S3GetObjectResponse,
    S3Object,
    S3ObjectStat,
    S3Part,
    S3PutObjectResponse,
    S3Upload,
)
from haos3.signing.post_policy import PostPolicy


class S3ErrorKind(StrEnum):
    """Kinds of failures a caller can branch on."""

    BUCKET_NOT_FOUND = "BucketNotFound"
    OBJECT_NOT_FOUND = "ObjectNotFound"
    INVALID_BUCKET_NAME = "InvalidBucketName"
    INVALID_OBJECT_NAME = "InvalidObjectName"
    ACCESS_DENIED = "AccessDenied"
    BUCKET_ALREADY_EXISTS = "BucketAlreadyExists"
    BUCKET_ALREADY_OWNED_BY_YOU = "BucketAlreadyOwnedByYou"
    OBJECT_ALREADY_EXISTS = "ObjectAlreadyExists"
    INTERNAL_SERVER_ERROR = "InternalServerError"
    KEY_TOO_LONG = "KeyTooLong"
    TOO_MANY_BUCKETS = "TooManyBuckets"
    REDIRECT = "Redirect"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    SIZE_MISMATCH = "SizeMismatch"
    INTERNAL_CLIENT_ERROR = "InternalClientError"
    TRANSPORT_ERROR = "TransportError"


class S3ClientException(Exception):
    """Base exception for S3 client errors.

    Attributes:
        kind: Taxonomy kind of the error.
        code: Machine code reported by the server (e.g. ``NoSuchBucket``), if any.
        request_id: Server request identifier (``x-amz-request-id``), if any.
        host_id: Secondary diagnostic identifier (``x-amz-id-2``), if any.
        resource: Path of the resource the request addressed.
        bucket_name: Bucket derived from the resource path.
        object_name: Object key derived from the resource path.
        details: Extra diagnostics, e.g. the raw error envelope.

    """

    kind: ClassVar[S3ErrorKind]
    default_message: ClassVar[str] = "S3 request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        request_id: str | None = None,
        host_id: str | None = None,
        resource: str | None = None,
        bucket_name: str | None = None,
        object_name: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code
        self.request_id = request_id
        self.host_id = host_id
        self.resource = resource
        self.bucket_name = bucket_name
        self.object_name = object_name
        self.details = dict(details or {})
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.resource:
            parts.append(f"resource={self.resource}")
        if self.code:
            parts.append(f"code={self.code}")
        if self.request_id:
            parts.append(f"request_id={self.request_id}")
        return ", ".join(parts)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} ({self.kind})> {self}"


class S3BucketNotFoundClientException(S3ClientException):
    """Raised when the specified bucket does not exist."""

    kind = S3ErrorKind.BUCKET_NOT_FOUND
    default_message = "Bucket does not exist"


class S3ObjectNotFoundClientException(S3ClientException):
    """Raised when the specified object key does not exist."""

    kind = S3ErrorKind.OBJECT_NOT_FOUND
    default_message = "Object does not exist"


class S3InvalidBucketNameClientException(S3ClientException):
    """Raised when the bucket name is invalid."""

    kind = S3ErrorKind.INVALID_BUCKET_NAME
    default_message = "Invalid bucket name"


class S3InvalidObjectNameClientException(S3ClientException):
    """Raised when the object name is invalid."""

    kind = S3ErrorKind.INVALID_OBJECT_NAME
    default_message = "Invalid object name"


class S3AccessDeniedClientException(S3ClientException):
    """Raised when access is denied to the specified resource."""

    kind = S3ErrorKind.ACCESS_DENIED
    default_message = "Access denied"


class S3BucketAlreadyExistsClientException(S3ClientException):
    """Raised when attempting to create a bucket that already exists."""

    kind = S3ErrorKind.BUCKET_ALREADY_EXISTS
    default_message = "Bucket already exists"


class S3BucketAlreadyOwnedByYouClientException(S3ClientException):
    """Raised when attempting to create a bucket that you already own."""

    kind = S3ErrorKind.BUCKET_ALREADY_OWNED_BY_YOU
    default_message = "Bucket already owned by you"


class S3ObjectAlreadyExistsClientException(S3ClientException):
    """Raised when the server refuses to replace an existing object (e.g. object lock)."""

    kind = S3ErrorKind.OBJECT_ALREADY_EXISTS
    default_message = "Object already exists"


class S3InternalServerClientException(S3ClientException):
    """Raised when the server reports an internal error."""

    kind = S3ErrorKind.INTERNAL_SERVER_ERROR
    default_message = "Server reported an internal error"


class S3KeyTooLongClientException(S3ClientException):
    """Raised when the object key is longer than the server allows."""

    kind = S3ErrorKind.KEY_TOO_LONG
    default_message = "Object key is too long"


class S3TooManyBucketsClientException(S3ClientException):
    """Raised when the account has reached its bucket limit."""

    kind = S3ErrorKind.TOO_MANY_BUCKETS
    default_message = "Maximum number of buckets reached"


class S3RedirectClientException(S3ClientException):
    """Raised on redirects. Cross-region redirects are never followed."""

    kind = S3ErrorKind.REDIRECT
    default_message = "Server responded with a redirect"


class S3MethodNotAllowedClientException(S3ClientException):
    """Raised when the method is not allowed on the resource."""

    kind = S3ErrorKind.METHOD_NOT_ALLOWED
    default_message = "Method not allowed"


class S3SizeMismatchClientException(S3ClientException):
    """Raised when the payload length does not match the declared size."""

    kind = S3ErrorKind.SIZE_MISMATCH
    default_message = "Data size does not match the declared size"


class S3InternalClientException(S3ClientException):
    """Raised on client-side bugs and unparseable or unexpected server responses."""

    kind = S3ErrorKind.INTERNAL_CLIENT_ERROR
    default_message = "Unexpected response from server"


class S3TransportClientException(S3ClientException):
    """Raised on connection-level failures where no protocol response exists."""

    kind = S3ErrorKind.TRANSPORT_ERROR
    default_message = "Transport failure"


class S3InvalidEndpointClientException(ValueError):
    """Raised when an endpoint cannot be used to build a client."""


@dataclass(frozen=True)
class S3BucketExistence:
    """Tri-state outcome of a bucket existence probe.

    ``error`` is set only when the status is ``"error"``, i.e. the server
    answered with something other than success or "bucket not found".
    """

    status: Literal["exists", "not_exists", "error"]
    error: S3ClientException | None = None

    @property
    def exists(self) -> bool:
        return self.status == "exists"


class AbstractS3Client(Protocol):
    """Abstract S3 client.

    Listing methods return lazy async iterators: every call starts a fresh
    listing, and pages are only requested while the caller keeps iterating.
    """

    async def list_buckets(self) -> list[S3Bucket]:
        """List buckets owned by the caller.

        Returns:
            The buckets, in the order the server reports them.

        """
        ...

    async def probe_bucket(self, bucket: str) -> S3BucketExistence:
        """Check whether a bucket exists without raising.

        Args:
            bucket: The name of the bucket.

        Returns:
            ``exists``, ``not_exists``, or ``error`` carrying the exception when
            existence could not be determined.

        """
        ...

    async def bucket_exists(self, bucket: str) -> bool:
        """Check whether a bucket exists.

        Args:
            bucket: The name of the bucket.

        Returns:
            True if the bucket exists, False if the server reports it missing.

        Raises:
            S3ClientException: If existence could not be determined.

        """
        ...

    async def make_bucket(self, bucket: str, acl: S3CannedAcl = S3CannedAcl.PRIVATE) -> None:
        """Create a bucket.

        Args:
            bucket: The name of the bucket.
            acl: The canned ACL to apply to the bucket.

        Raises:
            S3BucketAlreadyExistsClientException: If the name is taken by another account.
            S3BucketAlreadyOwnedByYouClientException: If the caller already owns the bucket.

        """
        ...

    async def remove_bucket(self, bucket: str) -> None:
        """Remove an empty bucket.

        Args:
            bucket: The name of the bucket.

        Raises:
            S3BucketNotFoundClientException: If the bucket does not exist.

        """
        ...

    async def get_bucket_acl(self, bucket: str) -> S3CannedAcl:
        """Get the canned ACL of a bucket.

        Args:
            bucket: The name of the bucket.

        Returns:
            The canned ACL the bucket's grants correspond to.

        """
        ...

    async def set_bucket_acl(self, bucket: str, acl: S3CannedAcl) -> None:
        """Set the canned ACL of a bucket.

        Args:
            bucket: The name of the bucket.
            acl: The canned ACL to apply.

        """
        ...

    async def stat_object(self, bucket: str, key: str) -> S3ObjectStat:
        """Get object metadata.

        Args:
            bucket: The name of the bucket.
            key: The object key.

        Returns:
            Size, ETag, content type and modification time of the object.

        """
        ...

    async def get_object(self, bucket: str, key: str) -> S3GetObjectResponse:
        """Download an object.

        Args:
            bucket: The name of the bucket.
            key: The object key.

        Returns:
            The object body and its metadata.

        """
        ...

    async def get_partial_object(
        self, bucket: str, key: str, offset: int, length: int | None = None
    ) -> S3GetObjectResponse:
        """Download a byte range of an object.

        Args:
            bucket: The name of the bucket.
            key: The object key.
            offset: The first byte to download.
            length: The number of bytes to download. Defaults to the rest of the object.

        Returns:
            The requested bytes and the object metadata.

        """
        ...

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes | IO[bytes],
        size: int | None = None,
        content_type: str | None = None,
    ) -> S3PutObjectResponse:
        """Upload an object, resuming an interrupted multipart upload if one exists.

        Args:
            bucket: The name of the bucket.
            key: The object key.
            data: Object data, as bytes or a binary stream.
            size: Size of the data in bytes. Required for streams.
            content_type: A standard MIME type describing the format of the object data.

        Returns:
            The ETag of the object and, for multipart uploads, the upload id and parts.

        """
        ...

    async def remove_object(self, bucket: str, key: str) -> None:
        """Remove an object.

        Args:
            bucket: The name of the bucket.
            key: The object key.

        """
        ...

    def list_objects(
        self, bucket: str, prefix: str | None = None, *, recursive: bool = True
    ) -> AsyncIterator[S3Object]:
        """List objects lazily.

        Args:
            bucket: The name of the bucket.
            prefix: Limits the listing to keys that begin with the prefix.
            recursive: When false, keys are grouped at the next ``/`` into directory entries.

        Returns:
            An async iterator over the objects.

        """
        ...

    def list_incomplete_uploads(
        self, bucket: str, prefix: str | None = None, *, recursive: bool = True
    ) -> AsyncIterator[S3Upload]:
        """List incomplete multipart uploads lazily.

        Args:
            bucket: The name of the bucket.
            prefix: Limits the listing to keys that begin with the prefix.
            recursive: When false, only keys up to the next ``/`` are listed.

        Returns:
            An async iterator over the uploads.

        """
        ...

    def list_parts(self, bucket: str, key: str, upload_id: str) -> AsyncIterator[S3Part]:
        """List uploaded parts of a multipart upload lazily.

        Args:
            bucket: The name of the bucket.
            key: The object key.
            upload_id: The upload id.

        Returns:
            An async iterator over the parts in ascending part number order.

        """
        ...

    async def remove_incomplete_upload(self, bucket: str, key: str) -> None:
        """Abort every incomplete upload of a key.

        Args:
            bucket: The name of the bucket.
            key: The object key.

        """
        ...

    async def drop_incomplete_uploads(self, bucket: str, prefix: str | None = None) -> list[S3Upload]:
        """Abort every incomplete upload under a prefix.

        Args:
            bucket: The name of the bucket.
            prefix: Limits the cleanup to keys that begin with the prefix.

        Returns:
            The aborted uploads.

        """
        ...

    async def presigned_get_object(self, bucket: str, key: str, expires: timedelta = ...) -> str:
        """Build a presigned GET URL.

        Args:
            bucket: The name of the bucket.
            key: The object key.
            expires: Validity of the URL, from one second to seven days.

        Returns:
            The URL.

        """
        ...

    async def presigned_put_object(self, bucket: str, key: str, expires: timedelta = ...) -> str:
        """Build a presigned PUT URL.

        Args:
            bucket: The name of the bucket.
            key: The object key.
            expires: Validity of the URL, from one second to seven days.

        Returns:
            The URL.

        """
        ...

    async def presigned_post_policy(self, policy: PostPolicy) -> dict[str, str]:
        """Sign a policy for browser-based POST uploads.

        Args:
            policy: Upload conditions.

        Returns:
            Form fields including the encoded policy and its signature.

        """
        ...
