"""Conftest for S3 tests."""

import hashlib
import itertools
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import format_datetime
from xml.etree import ElementTree as ET

import httpx
import pytest
import pytest_asyncio

from haos3.clients.httpx import HttpxS3Client
from haos3.clients.messages import S3_NAMESPACE
from haos3.signing.checksums import EMPTY_SHA256, md5_base64, md5_hex

ENDPOINT_URL = "http://s3.local:9000"
ACCESS_KEY = "AKIDEXAMPLE"
SECRET_KEY = "secret"  # noqa: S105
ALL_USERS_URI = "http://acs.amazonaws.com/groups/global/AllUsers"
AUTHENTICATED_USERS_URI = "http://acs.amazonaws.com/groups/global/AuthenticatedUsers"

type Fault = Callable[[httpx.Request], httpx.Response | None]


@dataclass
class MockObject:
    """Stored object."""

    data: bytes
    etag: str
    content_type: str = "binary/octet-stream"
    last_modified: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class MockUpload:
    """Incomplete multipart upload."""

    bucket: str
    key: str
    upload_id: str
    content_type: str | None
    initiated: datetime = field(default_factory=lambda: datetime.now(UTC))
    parts: dict[int, tuple[bytes, str]] = field(default_factory=dict)


def _xml(root: ET.Element) -> bytes:
    return ET.tostring(root, encoding="utf-8")


def _element(tag: str) -> ET.Element:
    return ET.Element(tag, xmlns=S3_NAMESPACE)


def _add(parent: ET.Element, tag: str, text: object = None) -> ET.Element:
    child = ET.SubElement(parent, tag)
    if text is not None:
        child.text = str(text).lower() if isinstance(text, bool) else str(text)
    return child


def _iso(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def error_response(status_code: int, code: str, resource: str, message: str | None = None) -> httpx.Response:
    """Build an S3 error envelope response."""
    root = ET.Element("Error")
    _add(root, "Code", code)
    _add(root, "Message", message or code)
    _add(root, "Resource", resource)
    _add(root, "RequestId", "mock-request-id")
    _add(root, "HostId", "mock-host-id")
    return httpx.Response(status_code, content=_xml(root), headers={"x-amz-request-id": "mock-request-id"})


class MockS3Server:
    """In-memory S3 server for testing.

    Used as the handler of an ``httpx.MockTransport``. Every request is
    recorded; ``fault`` lets a test intercept requests to inject failures.
    """

    def __init__(self) -> None:
        """Initialize the mock server."""
        self.buckets: dict[str, dict[str, MockObject]] = {}
        self.bucket_acls: dict[str, str] = {}
        self.uploads: dict[str, MockUpload] = {}
        self.requests: list[httpx.Request] = []
        self.fault: Fault | None = None
        self._upload_ids = itertools.count(1)

    def seed_object(self, bucket: str, key: str, data: bytes) -> None:
        """Store an object without going through HTTP."""
        self.buckets.setdefault(bucket, {})[key] = MockObject(data=data, etag=f'"{md5_hex(data)}"')

    def requests_matching(self, method: str, *query_keys: str) -> list[httpx.Request]:
        """Return recorded requests with the given method carrying all ``query_keys``."""
        return [
            request
            for request in self.requests
            if request.method == method and all(key in request.url.params for key in query_keys)
        ]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fault is not None and (response := self.fault(request)) is not None:
            return response

        if "authorization" not in request.headers or not request.headers["authorization"].startswith(
            "AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/"
        ):
            return error_response(403, "AccessDenied", request.url.path)
        body = request.content
        expected_hash = hashlib.sha256(body).hexdigest() if body else EMPTY_SHA256
        if request.headers.get("x-amz-content-sha256") != expected_hash:
            return error_response(400, "XAmzContentSHA256Mismatch", request.url.path)
        if "content-md5" in request.headers and request.headers["content-md5"] != md5_base64(body):
            return error_response(400, "BadDigest", request.url.path)

        segments = request.url.path.lstrip("/").split("/", 1)
        bucket = segments[0]
        key = segments[1] if len(segments) > 1 else ""
        if not bucket:
            return self._list_buckets()
        if not key:
            return self._handle_bucket(request, bucket)
        return self._handle_object(request, bucket, key)

    def _list_buckets(self) -> httpx.Response:
        root = _element("ListAllMyBucketsResult")
        owner = _add(root, "Owner")
        _add(owner, "ID", "mock-owner")
        buckets = _add(root, "Buckets")
        for name in sorted(self.buckets):
            bucket = _add(buckets, "Bucket")
            _add(bucket, "Name", name)
            _add(bucket, "CreationDate", "2024-01-01T00:00:00.000Z")
        return httpx.Response(200, content=_xml(root))

    def _handle_bucket(self, request: httpx.Request, bucket: str) -> httpx.Response:  # noqa: PLR0911
        params = request.url.params
        path = request.url.path
        if request.method == "PUT" and "acl" not in params:
            if bucket in self.buckets:
                return error_response(409, "BucketAlreadyOwnedByYou", path)
            self.buckets[bucket] = {}
            self.bucket_acls[bucket] = request.headers.get("x-amz-acl", "private")
            return httpx.Response(200)
        if bucket not in self.buckets:
            if request.method == "HEAD":
                return httpx.Response(404)
            return error_response(404, "NoSuchBucket", path)
        if request.method == "HEAD":
            return httpx.Response(200)
        if request.method == "DELETE":
            if self.buckets[bucket]:
                return error_response(409, "BucketNotEmpty", path)
            del self.buckets[bucket]
            return httpx.Response(204)
        if "acl" in params:
            if request.method == "PUT":
                self.bucket_acls[bucket] = request.headers["x-amz-acl"]
                return httpx.Response(200)
            return self._get_acl(bucket)
        if "uploads" in params:
            return self._list_uploads(request, bucket)
        return self._list_objects(request, bucket)

    def _get_acl(self, bucket: str) -> httpx.Response:
        grants = [("CanonicalUser", None, "FULL_CONTROL")]
        acl = self.bucket_acls[bucket]
        if acl == "public-read":
            grants.append(("Group", ALL_USERS_URI, "READ"))
        elif acl == "public-read-write":
            grants += [("Group", ALL_USERS_URI, "READ"), ("Group", ALL_USERS_URI, "WRITE")]
        elif acl == "authenticated-read":
            grants.append(("Group", AUTHENTICATED_USERS_URI, "READ"))

        root = _element("AccessControlPolicy")
        owner = _add(root, "Owner")
        _add(owner, "ID", "mock-owner")
        acl_node = _add(root, "AccessControlList")
        for grantee_type, uri, permission in grants:
            grant = _add(acl_node, "Grant")
            grantee = _add(grant, "Grantee")
            grantee.set("{http://www.w3.org/2001/XMLSchema-instance}type", grantee_type)
            if uri:
                _add(grantee, "URI", uri)
            else:
                _add(grantee, "ID", "mock-owner")
            _add(grant, "Permission", permission)
        return httpx.Response(200, content=_xml(root))

    def _list_objects(self, request: httpx.Request, bucket: str) -> httpx.Response:
        params = request.url.params
        prefix = params.get("prefix", "")
        marker = params.get("marker", "")
        delimiter = params.get("delimiter", "")
        max_keys = int(params.get("max-keys", "1000"))

        contents: list[tuple[str, MockObject]] = []
        prefixes: list[str] = []
        truncated = False
        for key in sorted(self.buckets[bucket]):
            if not key.startswith(prefix) or key <= marker:
                continue
            if delimiter and delimiter in key[len(prefix) :]:
                common = key[: key.index(delimiter, len(prefix)) + len(delimiter)]
                if common in prefixes or common <= marker:
                    continue
                if len(contents) + len(prefixes) == max_keys:
                    truncated = True
                    break
                prefixes.append(common)
                continue
            if len(contents) + len(prefixes) == max_keys:
                truncated = True
                break
            contents.append((key, self.buckets[bucket][key]))

        root = _element("ListBucketResult")
        _add(root, "Name", bucket)
        _add(root, "Prefix", prefix)
        _add(root, "Marker", marker)
        _add(root, "MaxKeys", max_keys)
        if delimiter:
            _add(root, "Delimiter", delimiter)
        _add(root, "IsTruncated", truncated)
        if truncated and delimiter:
            _add(root, "NextMarker", max([key for key, _ in contents[-1:]] + prefixes[-1:]))
        for key, obj in contents:
            node = _add(root, "Contents")
            _add(node, "Key", key)
            _add(node, "LastModified", _iso(obj.last_modified))
            _add(node, "ETag", obj.etag)
            _add(node, "Size", len(obj.data))
            _add(node, "StorageClass", "STANDARD")
        for common in prefixes:
            _add(_add(root, "CommonPrefixes"), "Prefix", common)
        return httpx.Response(200, content=_xml(root))

    def _list_uploads(self, request: httpx.Request, bucket: str) -> httpx.Response:
        params = request.url.params
        prefix = params.get("prefix", "")
        key_marker = params.get("key-marker", "")
        upload_id_marker = params.get("upload-id-marker", "")
        max_uploads = int(params.get("max-uploads", "1000"))

        candidates = sorted(
            (upload for upload in self.uploads.values() if upload.bucket == bucket and upload.key.startswith(prefix)),
            key=lambda upload: (upload.key, upload.upload_id),
        )
        candidates = [
            upload
            for upload in candidates
            if (upload.key, upload.upload_id) > (key_marker, upload_id_marker) or not key_marker
        ]
        page, truncated = candidates[:max_uploads], len(candidates) > max_uploads

        root = _element("ListMultipartUploadsResult")
        _add(root, "Bucket", bucket)
        _add(root, "KeyMarker", key_marker)
        _add(root, "UploadIdMarker", upload_id_marker)
        if truncated:
            _add(root, "NextKeyMarker", page[-1].key)
            _add(root, "NextUploadIdMarker", page[-1].upload_id)
        _add(root, "MaxUploads", max_uploads)
        _add(root, "IsTruncated", truncated)
        for upload in page:
            node = _add(root, "Upload")
            _add(node, "Key", upload.key)
            _add(node, "UploadId", upload.upload_id)
            _add(node, "Initiated", _iso(upload.initiated))
            _add(node, "StorageClass", "STANDARD")
        return httpx.Response(200, content=_xml(root))

    def _handle_object(self, request: httpx.Request, bucket: str, key: str) -> httpx.Response:  # noqa: PLR0911
        params = request.url.params
        path = request.url.path
        if bucket not in self.buckets:
            if request.method == "HEAD":
                return httpx.Response(404)
            return error_response(404, "NoSuchBucket", path)

        if request.method == "POST" and "uploads" in params:
            upload_id = f"upload-{next(self._upload_ids)}"
            self.uploads[upload_id] = MockUpload(bucket, key, upload_id, request.headers.get("content-type"))
            root = _element("InitiateMultipartUploadResult")
            _add(root, "Bucket", bucket)
            _add(root, "Key", key)
            _add(root, "UploadId", upload_id)
            return httpx.Response(200, content=_xml(root))

        if "uploadId" in params:
            upload = self.uploads.get(params["uploadId"])
            if upload is None or upload.key != key:
                return error_response(404, "NoSuchUpload", path)
            return self._handle_upload(request, upload)

        objects = self.buckets[bucket]
        if request.method == "PUT":
            objects[key] = MockObject(
                data=request.content,
                etag=f'"{md5_hex(request.content)}"',
                content_type=request.headers.get("content-type", "binary/octet-stream"),
            )
            return httpx.Response(200, headers={"ETag": objects[key].etag})

        obj = objects.get(key)
        if request.method == "DELETE":
            objects.pop(key, None)
            return httpx.Response(204)
        if obj is None:
            if request.method == "HEAD":
                return httpx.Response(404)
            return error_response(404, "NoSuchKey", path)

        headers = {
            "ETag": obj.etag,
            "Content-Type": obj.content_type,
            "Last-Modified": format_datetime(obj.last_modified, usegmt=True),
        }
        if request.method == "HEAD":
            return httpx.Response(200, headers={**headers, "Content-Length": str(len(obj.data))})
        if range_header := request.headers.get("range"):
            start, end = (int(value) for value in range_header.removeprefix("bytes=").split("-"))
            data = obj.data[start : end + 1]
            headers["Content-Range"] = f"bytes {start}-{start + len(data) - 1}/{len(obj.data)}"
            return httpx.Response(206, headers=headers, content=data)
        return httpx.Response(200, headers=headers, content=obj.data)

    def _handle_upload(self, request: httpx.Request, upload: MockUpload) -> httpx.Response:
        params = request.url.params
        if request.method == "PUT":
            etag = f'"{md5_hex(request.content)}"'
            upload.parts[int(params["partNumber"])] = (request.content, etag)
            return httpx.Response(200, headers={"ETag": etag})
        if request.method == "DELETE":
            del self.uploads[upload.upload_id]
            return httpx.Response(204)
        if request.method == "GET":
            return self._list_parts(request, upload)
        return self._complete(request, upload)

    def _list_parts(self, request: httpx.Request, upload: MockUpload) -> httpx.Response:
        params = request.url.params
        marker = int(params.get("part-number-marker", "0"))
        max_parts = int(params.get("max-parts", "1000"))
        numbers = [number for number in sorted(upload.parts) if number > marker]
        page, truncated = numbers[:max_parts], len(numbers) > max_parts

        root = _element("ListPartsResult")
        _add(root, "Bucket", upload.bucket)
        _add(root, "Key", upload.key)
        _add(root, "UploadId", upload.upload_id)
        _add(root, "PartNumberMarker", marker)
        if page:
            _add(root, "NextPartNumberMarker", page[-1])
        _add(root, "MaxParts", max_parts)
        _add(root, "IsTruncated", truncated)
        for number in page:
            data, etag = upload.parts[number]
            node = _add(root, "Part")
            _add(node, "PartNumber", number)
            _add(node, "LastModified", "2024-01-01T00:00:00.000Z")
            _add(node, "ETag", etag)
            _add(node, "Size", len(data))
        return httpx.Response(200, content=_xml(root))

    def _complete(self, request: httpx.Request, upload: MockUpload) -> httpx.Response:
        manifest = ET.fromstring(request.content)
        ns = f"{{{S3_NAMESPACE}}}"
        chunks, digests = [], []
        expected_number = 1
        for part in manifest.findall(f"{ns}Part"):
            number = int(part.findtext(f"{ns}PartNumber") or 0)
            etag = part.findtext(f"{ns}ETag")
            if number != expected_number or number not in upload.parts or upload.parts[number][1] != etag:
                return error_response(400, "InvalidPart", request.url.path)
            data, _ = upload.parts[number]
            chunks.append(data)
            digests.append(hashlib.md5(data, usedforsecurity=False).digest())
            expected_number += 1

        etag = f'"{hashlib.md5(b"".join(digests), usedforsecurity=False).hexdigest()}-{len(digests)}"'
        self.buckets[upload.bucket][upload.key] = MockObject(
            data=b"".join(chunks), etag=etag, content_type=upload.content_type or "binary/octet-stream"
        )
        del self.uploads[upload.upload_id]

        root = _element("CompleteMultipartUploadResult")
        _add(root, "Location", f"{ENDPOINT_URL}/{upload.bucket}/{upload.key}")
        _add(root, "Bucket", upload.bucket)
        _add(root, "Key", upload.key)
        _add(root, "ETag", etag)
        return httpx.Response(200, content=_xml(root))


@pytest.fixture
def s3_server() -> MockS3Server:
    """Fixture for the in-memory S3 server."""
    return MockS3Server()


@pytest_asyncio.fixture
async def http_client(s3_server: MockS3Server) -> AsyncGenerator[httpx.AsyncClient]:
    """Fixture for an HTTPX client routed to the in-memory S3 server."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(s3_server.handle)) as client:
        yield client


@pytest_asyncio.fixture
async def s3_client(http_client: httpx.AsyncClient) -> AsyncGenerator[HttpxS3Client]:
    """Fixture for the S3 client.

    Args:
        http_client: HTTPX client routed to the in-memory S3 server.

    Returns:
        S3 client talking to the in-memory S3 server.

    """
    async with HttpxS3Client(
        ENDPOINT_URL,
        aws_access_key_id=ACCESS_KEY,
        aws_secret_access_key=SECRET_KEY,
        http_client=http_client,
    ) as client:
        yield client


@pytest_asyncio.fixture
async def bucket(s3_client: HttpxS3Client) -> str:
    """Create a test bucket."""
    name = "test-bucket"
    await s3_client.make_bucket(name)
    return name
