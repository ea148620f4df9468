"""Pydantic S3 client models."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict


class S3CannedAcl(StrEnum):
    """Canned access control policies supported for buckets."""

    PRIVATE = "private"
    PUBLIC_READ = "public-read"
    PUBLIC_READ_WRITE = "public-read-write"
    AUTHENTICATED_READ = "authenticated-read"


class S3Owner(BaseModel):
    """S3 owner."""

    display_name: str | None = None
    id: str | None = None


class S3Grantee(BaseModel):
    """S3 grantee."""

    display_name: str | None = None
    email_address: str | None = None
    id: str | None = None
    type: str | None = None
    uri: str | None = None


class S3Grant(BaseModel):
    """S3 grant."""

    grantee: S3Grantee
    permission: Literal["FULL_CONTROL", "WRITE", "WRITE_ACP", "READ", "READ_ACP"] | str


class S3AccessControlPolicy(BaseModel):
    """S3 access control policy."""

    owner: S3Owner | None = None
    grants: Sequence[S3Grant] = ()


class S3Bucket(BaseModel):
    """S3 bucket."""

    name: str
    creation_date: datetime | None = None


class S3Object(BaseModel):
    """S3 object entry of a listing.

    Common prefixes of a non-recursive listing are reported as entries with
    ``is_dir`` set and only ``key`` filled in.
    """

    key: str
    last_modified: datetime | None = None
    etag: str | None = None
    size: int | None = None
    storage_class: str | None = None
    owner: S3Owner | None = None
    is_dir: bool = False


class S3Upload(BaseModel):
    """Incomplete multipart upload session."""

    key: str
    upload_id: str
    initiated: datetime | None = None
    storage_class: str | None = None
    initiator: S3Owner | None = None
    owner: S3Owner | None = None


class S3Part(BaseModel):
    """Uploaded part of a multipart upload."""

    model_config = ConfigDict(frozen=True)

    part_number: int
    etag: str
    size: int | None = None
    last_modified: datetime | None = None


class S3ListObjectsResponse(BaseModel):
    """One page of a bucket listing (``ListBucketResult``)."""

    name: str | None = None
    prefix: str | None = None
    marker: str | None = None
    next_marker: str | None = None
    delimiter: str | None = None
    max_keys: int | None = None
    is_truncated: bool = False
    contents: Sequence[S3Object] = ()
    common_prefixes: Sequence[str] = ()


class S3ListMultipartUploadsResponse(BaseModel):
    """One page of an incomplete upload listing (``ListMultipartUploadsResult``)."""

    bucket: str | None = None
    key_marker: str | None = None
    upload_id_marker: str | None = None
    next_key_marker: str | None = None
    next_upload_id_marker: str | None = None
    prefix: str | None = None
    delimiter: str | None = None
    max_uploads: int | None = None
    is_truncated: bool = False
    uploads: Sequence[S3Upload] = ()
    common_prefixes: Sequence[str] = ()


class S3ListPartsResponse(BaseModel):
    """One page of a part listing (``ListPartsResult``)."""

    bucket: str | None = None
    key: str | None = None
    upload_id: str | None = None
    part_number_marker: int | None = None
    next_part_number_marker: int | None = None
    max_parts: int | None = None
    is_truncated: bool = False
    parts: Sequence[S3Part] = ()


class S3InitiateMultipartUploadResponse(BaseModel):
    """Result of initiating a multipart upload."""

    bucket: str | None = None
    key: str | None = None
    upload_id: str


class S3CompleteMultipartUploadResponse(BaseModel):
    """Result of completing a multipart upload."""

    location: str | None = None
    bucket: str | None = None
    key: str | None = None
    etag: str | None = None


class S3ErrorResponse(BaseModel):
    """S3 error envelope."""

    code: str
    message: str | None = None
    bucket_name: str | None = None
    key: str | None = None
    resource: str | None = None
    request_id: str | None = None
    host_id: str | None = None


class S3ObjectStat(BaseModel):
    """Object metadata from a HEAD request."""

    bucket: str
    key: str
    size: int
    etag: str | None = None
    content_type: str | None = None
    last_modified: datetime | None = None


class S3GetObjectResponse(BaseModel):
    """S3 get object response."""

    body: bytes
    content_length: int | None = None
    content_type: str | None = None
    content_range: str | None = None
    etag: str | None = None
    last_modified: datetime | None = None


class S3PutObjectResponse(BaseModel):
    """S3 put object response.

    ``upload_id`` is set when the object was assembled from a multipart upload,
    ``parts`` holds the completion manifest in that case.
    """

    bucket: str
    key: str
    etag: str | None = None
    upload_id: str | None = None
    parts: Sequence[S3Part] = ()
