"""Content hashes used for integrity headers and payload signing."""

import base64
import hashlib

EMPTY_SHA256 = hashlib.sha256(b"").hexdigest()
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"


def md5_hex(data: bytes) -> str:
    """Lower-case hex MD5 digest, the form S3 uses for part ETags."""
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def md5_base64(data: bytes) -> str:
    """Base64 MD5 digest for the ``Content-MD5`` header."""
    return base64.b64encode(hashlib.md5(data, usedforsecurity=False).digest()).decode("ascii")


def sha256_hex(data: bytes | None) -> str:
    """Lower-case hex SHA-256 digest of the payload. ``None`` hashes as empty."""
    if not data:
        return EMPTY_SHA256
    return hashlib.sha256(data).hexdigest()


def normalize_etag(etag: str | None) -> str:
    """Strip surrounding quotes and lower-case an ETag for comparison."""
    if not etag:
        return ""
    return etag.strip().strip('"').lower()
