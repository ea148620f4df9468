"""HTTPX S3 client."""

import logging
import platform
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime
from types import TracebackType
from typing import IO, Self

import httpx
from pydantic import ValidationError

from haos3.classifier import ResponseClassifier, classify_error
from haos3.clients.abstract import (
    S3BucketExistence,
    S3BucketNotFoundClientException,
    S3ClientException,
    S3InternalClientException,
    S3InvalidBucketNameClientException,
    S3InvalidObjectNameClientException,
)
from haos3.clients.messages import (
    S3XmlParseError,
    parse_access_control_policy,
    parse_complete_multipart_upload,
    parse_initiate_multipart_upload,
    parse_list_buckets,
    parse_list_multipart_uploads,
    parse_list_objects,
    parse_list_parts,
    serialize_complete_multipart_upload,
    serialize_create_bucket_configuration,
)
from haos3.clients.pydantic import (
    S3AccessControlPolicy,
    S3Bucket,
    S3CannedAcl,
    S3CompleteMultipartUploadResponse,
    S3GetObjectResponse,
    S3Object,
    S3ObjectStat,
    S3Part,
    S3PutObjectResponse,
    S3Upload,
)
from haos3.configs.s3 import S3Config
from haos3.credentials import (
    AbstractCredentialsProvider,
    AnonymousCredentialsProvider,
    StaticCredentialsProvider,
)
from haos3.endpoint import DEFAULT_REGION, Endpoint
from haos3.multipart import MAX_PART_COUNT, MultipartUploader
from haos3.pagination import Page, PaginationCursor
from haos3.signing.canonical import canonical_query_string, quote_path
from haos3.signing.checksums import md5_base64, sha256_hex
from haos3.signing.post_policy import PostPolicy
from haos3.signing.signer import MAX_PRESIGN_EXPIRY, presign_post_policy, presign_v4, sign_v4
from haos3.transport.abstract import AbstractTransport, TransportResponse
from haos3.transport.httpx import HttpxTransport
from haos3.version import __version__

type Query = dict[str, str | None]

ALL_USERS_URI = "http://acs.amazonaws.com/groups/global/AllUsers"
AUTHENTICATED_USERS_URI = "http://acs.amazonaws.com/groups/global/AuthenticatedUsers"


def build_user_agent(app_name: str | None = None, app_version: str | None = None) -> str:
    """Build the ``User-Agent`` header value."""
    user_agent = (
        f"haos3/{__version__} ({platform.system()}; {platform.machine()}) python/{platform.python_version()}"
    )
    if app_name and app_version:
        user_agent = f"{user_agent} {app_name}/{app_version}"
    return user_agent


def _validate_bucket(bucket: str) -> None:
    if not bucket or not bucket.strip():
        msg = "Bucket name must not be empty"
        raise S3InvalidBucketNameClientException(msg, bucket_name=bucket)


def _validate_key(bucket: str, key: str) -> None:
    if not key:
        msg = "Object name must not be empty"
        raise S3InvalidObjectNameClientException(msg, bucket_name=bucket, object_name=key)


def _parse_http_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def _int_header(headers: Mapping[str, str], name: str) -> int | None:
    value = headers.get(name)
    return int(value) if value and value.isdigit() else None


def canned_acl_from_policy(policy: S3AccessControlPolicy) -> S3CannedAcl:
    """Derive the canned ACL a bucket access control policy corresponds to.

    Raises:
        S3InternalClientException: If the grants match no canned ACL.

    """
    grants = list(policy.grants)
    public = {grant.permission for grant in grants if grant.grantee.uri == ALL_USERS_URI}
    authenticated = {grant.permission for grant in grants if grant.grantee.uri == AUTHENTICATED_USERS_URI}

    if len(grants) == 1:
        return S3CannedAcl.PRIVATE
    if len(grants) == 2:
        if "READ" in authenticated:
            return S3CannedAcl.AUTHENTICATED_READ
        if "READ" in public:
            return S3CannedAcl.PUBLIC_READ
    if len(grants) == 3 and {"READ", "WRITE"} <= public:
        return S3CannedAcl.PUBLIC_READ_WRITE

    msg = f"Access control policy with {len(grants)} grants matches no canned ACL"
    raise S3InternalClientException(msg, details={"policy": policy.model_dump(exclude_none=True)})


class HttpxS3Client:
    """HTTPX S3 client.

    Talks to any S3-compatible service over ``httpx`` and signs requests with
    AWS Signature Version 4. Requests are sent unsigned only when the
    credentials provider explicitly returns no credentials (anonymous mode).

    It implements all methods from the AbstractS3Client protocol.
    """

    def __init__(  # noqa: PLR0913
        self,
        endpoint_url: str,
        *,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        aws_session_token: str | None = None,
        aws_region: str | None = None,
        credentials_provider: AbstractCredentialsProvider | None = None,
        verify: bool | str = True,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        transport: AbstractTransport | None = None,
        multipart_concurrency: int = 1,
        app_name: str | None = None,
        app_version: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            endpoint_url: URL of the S3 service.
            aws_access_key_id: Access key ID. Ignored when ``credentials_provider`` is given.
            aws_secret_access_key: Secret access key. Ignored when ``credentials_provider`` is given.
            aws_session_token: Session token for temporary credentials.
            aws_region: Signing region. Derived from the endpoint host when omitted.
            credentials_provider: Source of credentials, asked before every request.
                Defaults to the static keys, or anonymous access without keys.
            verify: Whether to verify SSL certificates, or a CA bundle path.
            timeout: Request timeout in seconds.
            http_client: Preconfigured ``httpx.AsyncClient`` to send requests with.
            transport: Transport to use instead of one built on ``httpx``.
            multipart_concurrency: Parts uploaded at the same time by ``put_object``.
            app_name: Application name appended to the User-Agent.
            app_version: Application version appended to the User-Agent.
            logger: Logger to use. Defaults to this module's logger.

        Raises:
            S3InvalidEndpointClientException: If the endpoint is invalid.

        """
        self._endpoint = Endpoint.parse(endpoint_url)
        self._region = aws_region or self._endpoint.region
        if credentials_provider is not None:
            self._credentials_provider: AbstractCredentialsProvider = credentials_provider
        elif aws_access_key_id or aws_secret_access_key:
            self._credentials_provider = StaticCredentialsProvider(
                aws_access_key_id or "", aws_secret_access_key or "", aws_session_token
            )
        else:
            self._credentials_provider = AnonymousCredentialsProvider()
        self._transport = transport or HttpxTransport(http_client, verify=verify, timeout=timeout)
        self._classifier = ResponseClassifier()
        self._user_agent = build_user_agent(app_name, app_version)
        self._logger = logger or logging.getLogger(__name__)
        self._uploader = MultipartUploader(self, concurrency=multipart_concurrency, logger=self._logger)

    @classmethod
    def from_config(cls, config: S3Config, **kwargs: object) -> Self:
        """Build a client from a config.

        Args:
            config: S3 configuration.
            **kwargs: Extra constructor arguments, e.g. ``http_client`` or ``logger``.

        """
        return cls(
            config.endpoint_url,
            aws_access_key_id=config.aws_access_key_id,
            aws_secret_access_key=config.aws_secret_access_key,
            aws_session_token=config.aws_session_token,
            aws_region=config.aws_region,
            verify=config.verify,
            timeout=config.timeout,
            multipart_concurrency=config.multipart_concurrency,
            app_name=config.app_name,
            app_version=config.app_version,
            **kwargs,  # type: ignore[arg-type]
        )

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def region(self) -> str:
        return self._region

    async def __aenter__(self) -> Self:
        """Enter the context manager."""
        return self

    async def __aexit__(
        self, exc_type: type[BaseException] | None, exc_value: BaseException | None, traceback: TracebackType | None
    ) -> None:
        """Exit the context manager."""
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    def _resource(self, bucket: str | None = None, key: str | None = None) -> str:
        if bucket is None:
            return "/"
        _validate_bucket(bucket)
        if key is None:
            return quote_path(f"/{bucket}")
        _validate_key(bucket, key)
        return quote_path(f"/{bucket}/{key}")

    async def _execute(
        self,
        method: str,
        bucket: str | None = None,
        key: str | None = None,
        *,
        query: Query | None = None,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
        content_md5: bool = False,
    ) -> TransportResponse:
        """Sign, send and classify one request.

        Args:
            method: HTTP method.
            bucket: Bucket name, ``None`` for service-level requests.
            key: Object key, ``None`` for bucket-level requests.
            query: Unencoded query parameters. ``None`` values are sent as bare keys.
            headers: Extra headers.
            body: Request body.
            content_md5: Whether to send the ``Content-MD5`` of the body.

        Returns:
            The successful response. The caller must read or close it.

        Raises:
            S3ClientException: If the request failed.

        """
        path = self._resource(bucket, key)
        query = query or {}
        request_headers = {"Host": self._endpoint.host_header, "User-Agent": self._user_agent, **(headers or {})}
        if content_md5:
            request_headers["Content-MD5"] = md5_base64(body or b"")

        credentials = await self._credentials_provider.get_credentials()
        if credentials is not None:
            request_headers = sign_v4(
                method,
                path,
                query,
                request_headers,
                sha256_hex(body),
                credentials,
                self._region,
                datetime.now(UTC),
            )

        query_string = canonical_query_string(query)
        url = f"{self._endpoint.base_url}{path}" + (f"?{query_string}" if query_string else "")
        self._logger.debug("%s %s%s", method, path, f"?{query_string}" if query_string else "")
        response = await self._transport.execute(method, url, request_headers, body)
        if response is not None:
            self._logger.debug("%s %s -> %d", method, path, response.status_code)
        return await self._classifier.check(response, path)

    async def _read(self, response: TransportResponse) -> bytes:
        try:
            return await response.aread()
        finally:
            await response.aclose()

    async def _request(
        self,
        method: str,
        bucket: str | None = None,
        key: str | None = None,
        *,
        query: Query | None = None,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
        content_md5: bool = False,
    ) -> tuple[TransportResponse, bytes]:
        response = await self._execute(
            method, bucket, key, query=query, headers=headers, body=body, content_md5=content_md5
        )
        return response, await self._read(response)

    async def _request_xml[T](
        self,
        parser: Callable[[bytes], T],
        method: str,
        bucket: str | None = None,
        key: str | None = None,
        *,
        query: Query | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> T:
        """Send a request and parse its XML body.

        Raises:
            S3InternalClientException: If a successful response carries a body
                that is not the expected document. The status and raw body are
                kept in ``details``.

        """
        response, body = await self._request(method, bucket, key, query=query, headers=headers)
        try:
            return parser(body)
        except (S3XmlParseError, ValidationError) as e:
            path = self._resource(bucket, key)
            msg = f"Unparseable response to {method} {path}: {e}"
            raise S3InternalClientException(
                msg,
                resource=path,
                bucket_name=bucket,
                object_name=key,
                details={"status_code": response.status_code, "body": body.decode("utf-8", "replace")},
            ) from e

    async def list_buckets(self) -> list[S3Bucket]:
        """List buckets owned by the caller.

        Returns:
            The buckets.

        """
        return await self._request_xml(parse_list_buckets, "GET")

    async def probe_bucket(self, bucket: str) -> S3BucketExistence:
        """Check whether a bucket exists.

        Args:
            bucket: Bucket name.

        Returns:
            ``exists`` or ``not_exists``, or ``error`` with the exception for any
            other failure.

        """
        try:
            await self._request("HEAD", bucket)
        except S3BucketNotFoundClientException:
            return S3BucketExistence(status="not_exists")
        except S3ClientException as e:
            return S3BucketExistence(status="error", error=e)
        return S3BucketExistence(status="exists")

    async def bucket_exists(self, bucket: str) -> bool:
        """Return whether a bucket exists.

        Raises:
            S3ClientException: For failures other than "bucket not found".

        """
        existence = await self.probe_bucket(bucket)
        if existence.error is not None:
            raise existence.error
        return existence.exists

    async def make_bucket(self, bucket: str, acl: S3CannedAcl = S3CannedAcl.PRIVATE) -> None:
        """Create a bucket.

        Outside ``us-east-1`` the bucket is created with a location constraint
        naming the client region.

        Args:
            bucket: Bucket name.
            acl: Canned ACL of the new bucket.

        Raises:
            S3BucketAlreadyExistsClientException: If the name is taken.
            S3BucketAlreadyOwnedByYouClientException: If the caller already owns the bucket.

        """
        body = None
        if self._region != DEFAULT_REGION:
            body = serialize_create_bucket_configuration(self._region)
        await self._request(
            "PUT",
            bucket,
            headers={"x-amz-acl": S3CannedAcl(acl).value},
            body=body,
            content_md5=body is not None,
        )

    async def remove_bucket(self, bucket: str) -> None:
        """Remove an empty bucket."""
        await self._request("DELETE", bucket)

    async def get_bucket_acl(self, bucket: str) -> S3CannedAcl:
        """Get the canned ACL of a bucket.

        Raises:
            S3InternalClientException: If the bucket policy matches no canned ACL.

        """
        policy = await self._request_xml(parse_access_control_policy, "GET", bucket, query={"acl": None})
        return canned_acl_from_policy(policy)

    async def set_bucket_acl(self, bucket: str, acl: S3CannedAcl) -> None:
        """Set the canned ACL of a bucket."""
        await self._request("PUT", bucket, query={"acl": None}, headers={"x-amz-acl": S3CannedAcl(acl).value})

    async def stat_object(self, bucket: str, key: str) -> S3ObjectStat:
        """Get object metadata.

        Raises:
            S3ObjectNotFoundClientException: If the object does not exist.

        """
        response, _ = await self._request("HEAD", bucket, key)
        headers = response.headers
        size = _int_header(headers, "content-length")
        if size is None:
            msg = f"Missing content length for {bucket}/{key}"
            raise S3InternalClientException(msg, bucket_name=bucket, object_name=key)
        return S3ObjectStat(
            bucket=bucket,
            key=key,
            size=size,
            etag=headers.get("etag"),
            content_type=headers.get("content-type"),
            last_modified=_parse_http_date(headers.get("last-modified")),
        )

    def _object_response(self, response: TransportResponse, body: bytes) -> S3GetObjectResponse:
        headers = response.headers
        return S3GetObjectResponse(
            body=body,
            content_length=_int_header(headers, "content-length"),
            content_type=headers.get("content-type"),
            content_range=headers.get("content-range"),
            etag=headers.get("etag"),
            last_modified=_parse_http_date(headers.get("last-modified")),
        )

    async def get_object(self, bucket: str, key: str) -> S3GetObjectResponse:
        """Download an object."""
        return self._object_response(*await self._request("GET", bucket, key))

    async def get_partial_object(
        self, bucket: str, key: str, offset: int, length: int | None = None
    ) -> S3GetObjectResponse:
        """Download a byte range of an object.

        Args:
            bucket: Bucket name.
            key: Object key.
            offset: First byte to download.
            length: Number of bytes. Defaults to the rest of the object.

        Raises:
            ValueError: If ``offset`` is negative, ``length`` is not positive or
                ``offset`` lies past the end of the object.

        """
        if offset < 0:
            msg = f"Offset must not be negative, got {offset}"
            raise ValueError(msg)
        if length is not None and length <= 0:
            msg = f"Length must be positive, got {length}"
            raise ValueError(msg)
        if length is None:
            stat = await self.stat_object(bucket, key)
            length = stat.size - offset
            if length <= 0:
                msg = f"Offset {offset} is past the end of {bucket}/{key} ({stat.size} bytes)"
                raise ValueError(msg)
        headers = {"Range": f"bytes={offset}-{offset + length - 1}"}
        return self._object_response(*await self._request("GET", bucket, key, headers=headers))

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes | IO[bytes],
        size: int | None = None,
        content_type: str | None = None,
    ) -> S3PutObjectResponse:
        """Upload an object.

        Objects above the multipart threshold are uploaded in parts, resuming
        the latest incomplete upload of the same key when one exists.

        Args:
            bucket: Bucket name.
            key: Object key.
            data: Payload as bytes or a binary stream.
            size: Payload size, required for streams.
            content_type: Content type of the object.

        Raises:
            S3SizeMismatchClientException: If the payload does not match ``size``.
            S3ObjectAlreadyExistsClientException: If the server refuses to replace the object.

        """
        _validate_bucket(bucket)
        _validate_key(bucket, key)
        return await self._uploader.upload(bucket, key, data, size, content_type)

    async def put_single_object(
        self, bucket: str, key: str, data: bytes, content_type: str | None = None
    ) -> str | None:
        """Upload a whole object with one request.

        Returns:
            The ETag of the object.

        """
        headers = {"Content-Type": content_type} if content_type else None
        response, _ = await self._request("PUT", bucket, key, headers=headers, body=data, content_md5=True)
        return response.headers.get("etag")

    async def remove_object(self, bucket: str, key: str) -> None:
        """Remove an object."""
        await self._request("DELETE", bucket, key)

    def list_objects(
        self, bucket: str, prefix: str | None = None, *, recursive: bool = True
    ) -> PaginationCursor[S3Object, str]:
        """List objects lazily.

        Args:
            bucket: Bucket name.
            prefix: Only list keys starting with this prefix.
            recursive: When false, keys are grouped at the next ``/`` and each
                group is yielded once as an ``is_dir`` entry after the page's objects.

        Returns:
            A cursor over the objects.

        """
        _validate_bucket(bucket)
        delimiter = None if recursive else "/"

        async def fetch(marker: str | None, page_size: int) -> Page[S3Object, str]:
            query: Query = {"max-keys": str(page_size)}
            if prefix:
                query["prefix"] = prefix
            if delimiter:
                query["delimiter"] = delimiter
            if marker:
                query["marker"] = marker
            result = await self._request_xml(parse_list_objects, "GET", bucket, query=query)

            entries = list(result.contents)
            entries.extend(S3Object(key=common_prefix, is_dir=True) for common_prefix in result.common_prefixes)
            last_key = result.contents[-1].key if result.contents else None
            if delimiter:
                candidates = [value for value in (last_key, *result.common_prefixes[-1:]) if value]
                next_marker = result.next_marker or (max(candidates) if candidates else None)
            else:
                next_marker = last_key or result.next_marker
            return Page(entries=entries, is_truncated=result.is_truncated, next_marker=next_marker)

        return PaginationCursor(fetch)

    def list_incomplete_uploads(
        self, bucket: str, prefix: str | None = None, *, recursive: bool = True
    ) -> PaginationCursor[S3Upload, tuple[str, str]]:
        """List incomplete multipart uploads lazily.

        Args:
            bucket: Bucket name.
            prefix: Only list uploads of keys starting with this prefix.
            recursive: When false, only keys up to the next ``/`` are listed.

        Returns:
            A cursor over the uploads.

        """
        _validate_bucket(bucket)

        async def fetch(marker: tuple[str, str] | None, page_size: int) -> Page[S3Upload, tuple[str, str]]:
            query: Query = {"uploads": None, "max-uploads": str(page_size)}
            if prefix:
                query["prefix"] = prefix
            if not recursive:
                query["delimiter"] = "/"
            if marker:
                query["key-marker"], query["upload-id-marker"] = marker
            result = await self._request_xml(parse_list_multipart_uploads, "GET", bucket, query=query)

            next_marker = None
            if result.next_key_marker:
                next_marker = (result.next_key_marker, result.next_upload_id_marker or "")
            return Page(entries=list(result.uploads), is_truncated=result.is_truncated, next_marker=next_marker)

        return PaginationCursor(fetch)

    def list_parts(self, bucket: str, key: str, upload_id: str) -> PaginationCursor[S3Part, int]:
        """List uploaded parts of a multipart upload lazily.

        Returns:
            A cursor over the parts in ascending part number order.

        """
        _validate_bucket(bucket)
        _validate_key(bucket, key)

        async def fetch(marker: int | None, page_size: int) -> Page[S3Part, int]:
            query: Query = {"uploadId": upload_id, "max-parts": str(page_size)}
            if marker:
                query["part-number-marker"] = str(marker)
            result = await self._request_xml(parse_list_parts, "GET", bucket, key, query=query)

            next_marker = result.next_part_number_marker
            if next_marker is None and result.parts:
                next_marker = result.parts[-1].part_number
            return Page(entries=list(result.parts), is_truncated=result.is_truncated, next_marker=next_marker)

        return PaginationCursor(fetch)

    async def create_multipart_upload(self, bucket: str, key: str, content_type: str | None = None) -> str:
        """Start a multipart upload.

        Returns:
            The upload id.

        """
        headers = {"Content-Type": content_type} if content_type else None
        result = await self._request_xml(
            parse_initiate_multipart_upload, "POST", bucket, key, query={"uploads": None}, headers=headers
        )
        return result.upload_id

    async def upload_part(self, bucket: str, key: str, upload_id: str, part_number: int, data: bytes) -> str:
        """Upload one part of a multipart upload.

        Returns:
            The ETag of the part.

        Raises:
            ValueError: If the part number is out of range.

        """
        if not 1 <= part_number <= MAX_PART_COUNT:
            msg = f"Part number must be in range of 1 to {MAX_PART_COUNT}, got {part_number}"
            raise ValueError(msg)
        query: Query = {"partNumber": str(part_number), "uploadId": upload_id}
        response, _ = await self._request("PUT", bucket, key, query=query, body=data, content_md5=True)
        etag = response.headers.get("etag")
        if not etag:
            msg = f"No ETag returned for part {part_number} of upload {upload_id}"
            raise S3InternalClientException(msg, bucket_name=bucket, object_name=key)
        return etag

    async def complete_multipart_upload(
        self, bucket: str, key: str, upload_id: str, parts: Sequence[S3Part]
    ) -> S3CompleteMultipartUploadResponse:
        """Assemble an object from its uploaded parts.

        The server may report a failure inside a successful response; such a
        body is classified like any other error.
        """
        body = serialize_complete_multipart_upload(parts)
        response, content = await self._request(
            "POST", bucket, key, query={"uploadId": upload_id}, body=body, content_md5=True
        )
        try:
            return parse_complete_multipart_upload(content)
        except S3XmlParseError as e:
            raise classify_error(response.status_code, response.headers, content, self._resource(bucket, key)) from e

    async def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort a multipart upload."""
        await self._request("DELETE", bucket, key, query={"uploadId": upload_id})

    async def remove_incomplete_upload(self, bucket: str, key: str) -> None:
        """Abort every incomplete upload whose key is exactly ``key``."""
        _validate_key(bucket, key)
        uploads = [upload async for upload in self.list_incomplete_uploads(bucket, key) if upload.key == key]
        for upload in uploads:
            await self.abort_multipart_upload(bucket, upload.key, upload.upload_id)
            self._logger.info("Aborted multipart upload %s of %s/%s", upload.upload_id, bucket, upload.key)

    async def drop_incomplete_uploads(self, bucket: str, prefix: str | None = None) -> list[S3Upload]:
        """Abort every incomplete upload under a prefix.

        Returns:
            The aborted uploads.

        """
        uploads = [upload async for upload in self.list_incomplete_uploads(bucket, prefix)]
        for upload in uploads:
            await self.abort_multipart_upload(bucket, upload.key, upload.upload_id)
        self._logger.info("Dropped %d incomplete uploads in %s", len(uploads), bucket)
        return uploads

    async def _presign(self, method: str, bucket: str, key: str, expires: timedelta) -> str:
        path = self._resource(bucket, key)
        credentials = await self._credentials_provider.get_credentials()
        if credentials is None:
            msg = "Presigned URLs require credentials"
            raise S3InternalClientException(msg, resource=path, bucket_name=bucket, object_name=key)
        query = presign_v4(
            method, path, {}, self._endpoint.host_header, credentials, self._region, datetime.now(UTC), expires
        )
        return f"{self._endpoint.base_url}{path}?{canonical_query_string(query)}"

    async def presigned_get_object(
        self, bucket: str, key: str, expires: timedelta = MAX_PRESIGN_EXPIRY
    ) -> str:
        """Build a presigned GET URL.

        Args:
            bucket: Bucket name.
            key: Object key.
            expires: Validity of the URL, from one second to seven days.

        Raises:
            ValueError: If ``expires`` is out of range.

        """
        return await self._presign("GET", bucket, key, expires)

    async def presigned_put_object(
        self, bucket: str, key: str, expires: timedelta = MAX_PRESIGN_EXPIRY
    ) -> str:
        """Build a presigned PUT URL."""
        return await self._presign("PUT", bucket, key, expires)

    async def presigned_post_policy(self, policy: PostPolicy) -> dict[str, str]:
        """Sign a policy for browser-based POST uploads.

        The returned fields are sent as form data, together with the file, in a
        POST to the bucket URL.

        Args:
            policy: Upload conditions.

        Returns:
            Form fields including the encoded policy and its signature.

        Raises:
            S3InternalClientException: If the client has no credentials.
            ValueError: If the policy has already expired.

        """
        path = self._resource(policy.bucket)
        credentials = await self._credentials_provider.get_credentials()
        if credentials is None:
            msg = "Presigned POST policies require credentials"
            raise S3InternalClientException(msg, resource=path, bucket_name=policy.bucket)
        return presign_post_policy(policy, credentials, self._region, datetime.now(UTC))
