"""Mapping of S3 responses to the client error taxonomy."""

import logging
from collections.abc import Mapping
from urllib.parse import unquote

from haos3.clients.abstract import (
    S3AccessDeniedClientException,
    S3BucketAlreadyExistsClientException,
    S3BucketAlreadyOwnedByYouClientException,
    S3BucketNotFoundClientException,
    S3ClientException,
    S3InternalClientException,
    S3InternalServerClientException,
    S3InvalidBucketNameClientException,
    S3InvalidObjectNameClientException,
    S3KeyTooLongClientException,
    S3MethodNotAllowedClientException,
    S3ObjectAlreadyExistsClientException,
    S3ObjectNotFoundClientException,
    S3RedirectClientException,
    S3TooManyBucketsClientException,
    S3TransportClientException,
)
from haos3.clients.messages import S3XmlParseError, parse_error_response
from haos3.transport.abstract import TransportResponse

logger = logging.getLogger(__name__)

ERROR_CODE_MAP: Mapping[str, type[S3ClientException]] = {
    "NoSuchBucket": S3BucketNotFoundClientException,
    "NoSuchKey": S3ObjectNotFoundClientException,
    "InvalidBucketName": S3InvalidBucketNameClientException,
    "InvalidObjectName": S3InvalidObjectNameClientException,
    "AccessDenied": S3AccessDeniedClientException,
    "BucketAlreadyExists": S3BucketAlreadyExistsClientException,
    "BucketAlreadyOwnedByYou": S3BucketAlreadyOwnedByYouClientException,
    "ObjectAlreadyExists": S3ObjectAlreadyExistsClientException,
    "InternalError": S3InternalServerClientException,
    "KeyTooLong": S3KeyTooLongClientException,
    "TooManyBuckets": S3TooManyBucketsClientException,
    "PermanentRedirect": S3RedirectClientException,
    "TemporaryRedirect": S3RedirectClientException,
    "MethodNotAllowed": S3MethodNotAllowedClientException,
}


def split_resource(resource: str) -> tuple[str | None, str | None]:
    """Derive bucket and object names from a request path.

    The first non-empty segment is the bucket, the remaining segments joined
    with ``/`` are the object key.
    """
    segments = [segment for segment in resource.split("?", 1)[0].split("/") if segment]
    if not segments:
        return None, None
    bucket = unquote(segments[0])
    key = unquote("/".join(segments[1:])) if len(segments) > 1 else None
    return bucket, key


def _bodyless_error(status_code: int, resource: str) -> type[S3ClientException]:
    bucket, key = split_resource(resource)
    if status_code == 404:
        if key is not None:
            return S3ObjectNotFoundClientException
        if bucket is not None:
            return S3BucketNotFoundClientException
        return S3InternalClientException
    if status_code == 403:
        return S3AccessDeniedClientException
    if status_code in (405, 501):
        return S3MethodNotAllowedClientException
    return S3InternalClientException


def classify_error(
    status_code: int | None,
    headers: Mapping[str, str],
    body: bytes,
    resource: str,
) -> S3ClientException:
    """Build the exception describing a failed response.

    The error envelope's code wins whenever the body can be parsed; the status
    code and resource path are only used for bodyless or unparseable responses.
    Redirects are never parsed. The envelope's resource, bucket and key take
    precedence over the request path when present.

    Args:
        status_code: HTTP status, or ``None`` when no response was received.
        headers: Response headers.
        body: Response body, possibly empty.
        resource: Request path the response belongs to.

    Returns:
        The exception to raise. It is returned rather than raised so callers
        can add context first.

    """
    bucket, key = split_resource(resource)
    request_id = headers.get("x-amz-request-id")
    host_id = headers.get("x-amz-id-2")

    if status_code is None:
        msg = f"No response received for {resource}"
        return S3TransportClientException(msg, resource=resource, bucket_name=bucket, object_name=key)

    if 300 <= status_code < 400:
        location = headers.get("location")
        return S3RedirectClientException(
            f"Server responded with {status_code} redirect",
            code=str(status_code),
            request_id=request_id,
            host_id=host_id,
            resource=resource,
            bucket_name=bucket,
            object_name=key,
            details={"location": location} if location else None,
        )

    envelope = None
    if body.strip():
        try:
            envelope = parse_error_response(body)
        except S3XmlParseError:
            logger.debug("Unparseable error body for %s (status %s)", resource, status_code)

    if envelope is None:
        exception_class = _bodyless_error(status_code, resource)
        return exception_class(
            f"{exception_class.default_message} (status {status_code})",
            code=str(status_code),
            request_id=request_id,
            host_id=host_id,
            resource=resource,
            bucket_name=bucket,
            object_name=key,
            details={"body": body.decode("utf-8", "replace")} if body.strip() else None,
        )

    exception_class = ERROR_CODE_MAP.get(envelope.code, S3InternalClientException)
    details = None
    if exception_class is S3InternalClientException:
        details = {"status_code": status_code, "error": envelope.model_dump(exclude_none=True)}
    return exception_class(
        envelope.message or f"{envelope.code} (status {status_code})",
        code=envelope.code,
        request_id=envelope.request_id or request_id,
        host_id=envelope.host_id or host_id,
        resource=envelope.resource or resource,
        bucket_name=envelope.bucket_name or bucket,
        object_name=envelope.key or key,
        details=details,
    )


class ResponseClassifier:
    """Turns failed responses into exceptions and passes successful ones through."""

    async def check(self, response: TransportResponse | None, resource: str) -> TransportResponse:
        """Validate a response.

        Args:
            response: Response returned by the transport.
            resource: Request path, used for error context.

        Returns:
            The response, if it is a 2xx.

        Raises:
            S3ClientException: Subclass matching the failure.

        """
        if response is None:
            raise classify_error(None, {}, b"", resource)
        if 200 <= response.status_code < 300:
            return response
        try:
            body = b"" if 300 <= response.status_code < 400 else await response.aread()
        finally:
            await response.aclose()
        raise classify_error(response.status_code, response.headers, body, resource)
