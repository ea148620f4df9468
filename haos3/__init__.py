"""Async client for S3-compatible object storage."""

from haos3.clients.abstract import (
    AbstractS3Client,
    S3AccessDeniedClientException,
    S3BucketAlreadyExistsClientException,
    S3BucketAlreadyOwnedByYouClientException,
    S3BucketExistence,
    S3BucketNotFoundClientException,
    S3ClientException,
    S3ErrorKind,
    S3InternalClientException,
    S3InternalServerClientException,
    S3InvalidBucketNameClientException,
    S3InvalidEndpointClientException,
    S3InvalidObjectNameClientException,
    S3KeyTooLongClientException,
    S3MethodNotAllowedClientException,
    S3ObjectAlreadyExistsClientException,
    S3ObjectNotFoundClientException,
    S3RedirectClientException,
    S3SizeMismatchClientException,
    S3TooManyBucketsClientException,
    S3TransportClientException,
)
from haos3.clients.httpx import HttpxS3Client
from haos3.clients.pydantic import S3CannedAcl
from haos3.configs.s3 import S3Config
from haos3.credentials import (
    AbstractCredentialsProvider,
    AnonymousCredentialsProvider,
    Credentials,
    StaticCredentialsProvider,
)
from haos3.endpoint import Endpoint
from haos3.signing.post_policy import PostPolicy
from haos3.version import __version__

__all__ = [
    "AbstractCredentialsProvider",
    "AbstractS3Client",
    "AnonymousCredentialsProvider",
    "Credentials",
    "Endpoint",
    "HttpxS3Client",
    "PostPolicy",
    "S3AccessDeniedClientException",
    "S3BucketAlreadyExistsClientException",
    "S3BucketAlreadyOwnedByYouClientException",
    "S3BucketExistence",
    "S3BucketNotFoundClientException",
    "S3CannedAcl",
    "S3ClientException",
    "S3Config",
    "S3ErrorKind",
    "S3InternalClientException",
    "S3InternalServerClientException",
    "S3InvalidBucketNameClientException",
    "S3InvalidEndpointClientException",
    "S3InvalidObjectNameClientException",
    "S3KeyTooLongClientException",
    "S3MethodNotAllowedClientException",
    "S3ObjectAlreadyExistsClientException",
    "S3ObjectNotFoundClientException",
    "S3RedirectClientException",
    "S3SizeMismatchClientException",
    "S3TooManyBucketsClientException",
    "S3TransportClientException",
    "StaticCredentialsProvider",
    "__version__",
]
