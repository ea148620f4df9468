"""AWS Signature Version 4 for S3.

Signing keys depend only on the secret key, the UTC calendar day and the
region. Nothing is cached here: credentials are handed in for every request.
"""

import base64
import hashlib
import hmac
import json
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta

from haos3.credentials import Credentials
from haos3.signing.canonical import CanonicalRequest, canonical_request_string
from haos3.signing.checksums import UNSIGNED_PAYLOAD
from haos3.signing.post_policy import PostPolicy, format_expiration

ALGORITHM = "AWS4-HMAC-SHA256"
SERVICE = "s3"
TERMINATOR = "aws4_request"

AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
SCOPE_DATE_FORMAT = "%Y%m%d"

MAX_PRESIGN_EXPIRY = timedelta(days=7)


def _utc(date: datetime) -> datetime:
    if date.tzinfo is None:
        return date.replace(tzinfo=UTC)
    return date.astimezone(UTC)


def amz_date(date: datetime) -> str:
    """ISO-8601 basic timestamp used by ``x-amz-date``."""
    return _utc(date).strftime(AMZ_DATE_FORMAT)


def _hmac(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_key: str, date: datetime, region: str) -> bytes:
    """Derive the scoped signing key through the HMAC-SHA256 chain."""
    date_key = _hmac(f"AWS4{secret_key}".encode(), _utc(date).strftime(SCOPE_DATE_FORMAT))
    date_region_key = _hmac(date_key, region)
    date_region_service_key = _hmac(date_region_key, SERVICE)
    return _hmac(date_region_service_key, TERMINATOR)


def get_scope(date: datetime, region: str) -> str:
    """Credential scope ``YYYYMMDD/region/s3/aws4_request``."""
    return f"{_utc(date).strftime(SCOPE_DATE_FORMAT)}/{region}/{SERVICE}/{TERMINATOR}"


def get_string_to_sign(canonical_request_hash: str, date: datetime, scope: str) -> str:
    return f"{ALGORITHM}\n{amz_date(date)}\n{scope}\n{canonical_request_hash}"


def sign(canonical_request_hash: str, date: datetime, region: str, signing_key: bytes) -> str:
    """Sign a canonical request hash and return the hex signature."""
    string_to_sign = get_string_to_sign(canonical_request_hash, date, get_scope(date, region))
    return hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()


def build_authorization_header(access_key: str, scope: str, signed_headers: str, signature: str) -> str:
    return f"{ALGORITHM} Credential={access_key}/{scope}, SignedHeaders={signed_headers}, Signature={signature}"


def sign_v4(
    method: str,
    path: str,
    query: Mapping[str, str | None],
    headers: Mapping[str, str],
    payload_hash: str,
    credentials: Credentials,
    region: str,
    date: datetime,
) -> dict[str, str]:
    """Sign a request.

    The returned headers are the input headers plus ``x-amz-date``,
    ``x-amz-content-sha256``, ``x-amz-security-token`` (for session credentials)
    and ``Authorization``. ``headers`` must already contain ``Host``.

    Args:
        method: HTTP method.
        path: Percent-encoded request path.
        query: Unencoded query parameters.
        headers: Headers to send.
        payload_hash: Hex SHA-256 of the request body.
        credentials: Credentials fetched for this request.
        region: Signing region.
        date: Request time.

    Returns:
        The headers to send, including the signature.

    """
    signed = dict(headers)
    signed["x-amz-date"] = amz_date(date)
    signed["x-amz-content-sha256"] = payload_hash
    if credentials.session_token:
        signed["x-amz-security-token"] = credentials.session_token

    canonical = CanonicalRequest(method=method, path=path, query=query, headers=signed, payload_hash=payload_hash)
    canonical_hash = hashlib.sha256(canonical_request_string(canonical).encode("utf-8")).hexdigest()
    signature = sign(canonical_hash, date, region, derive_signing_key(credentials.secret_key, date, region))

    signed["Authorization"] = build_authorization_header(
        credentials.access_key, get_scope(date, region), canonical.signed_headers, signature
    )
    return signed


def presign_v4(
    method: str,
    path: str,
    query: Mapping[str, str | None],
    host: str,
    credentials: Credentials,
    region: str,
    date: datetime,
    expires: timedelta,
) -> dict[str, str | None]:
    """Build the query parameters of a presigned URL.

    Only ``host`` is signed and the payload is left unsigned, so the URL can be
    used by any HTTP agent until it expires.

    Raises:
        ValueError: If ``expires`` is not between one second and seven days.

    """
    seconds = int(expires.total_seconds())
    if seconds < 1 or expires > MAX_PRESIGN_EXPIRY:
        msg = f"Presigned URL expiry must be between 1 second and 7 days, got {expires}"
        raise ValueError(msg)

    scope = get_scope(date, region)
    presigned: dict[str, str | None] = dict(query)
    presigned.update(
        {
            "X-Amz-Algorithm": ALGORITHM,
            "X-Amz-Credential": f"{credentials.access_key}/{scope}",
            "X-Amz-Date": amz_date(date),
            "X-Amz-Expires": str(seconds),
            "X-Amz-SignedHeaders": "host",
        }
    )
    if credentials.session_token:
        presigned["X-Amz-Security-Token"] = credentials.session_token

    canonical = CanonicalRequest(
        method=method, path=path, query=presigned, headers={"host": host}, payload_hash=UNSIGNED_PAYLOAD
    )
    canonical_hash = hashlib.sha256(canonical_request_string(canonical).encode("utf-8")).hexdigest()
    presigned["X-Amz-Signature"] = sign(
        canonical_hash, date, region, derive_signing_key(credentials.secret_key, date, region)
    )
    return presigned


def sign_policy(policy: str, signing_key: bytes) -> str:
    """Sign a base64 POST policy document and return the hex signature."""
    return hmac.new(signing_key, policy.encode("utf-8"), hashlib.sha256).hexdigest()


def presign_post_policy(
    policy: PostPolicy,
    credentials: Credentials,
    region: str,
    date: datetime,
) -> dict[str, str]:
    """Build the form fields of a browser-based POST upload.

    The signing fields are added to the policy conditions, the policy document
    is base64 encoded and signed with the scoped signing key.

    Args:
        policy: Upload conditions.
        credentials: Credentials to sign with.
        region: Signing region.
        date: Signing time.

    Returns:
        Form fields to send with the upload, including ``policy`` and ``x-amz-signature``.

    Raises:
        ValueError: If the policy has already expired at ``date``.

    """
    if _utc(policy.expiration) <= _utc(date):
        msg = f"Policy expiration {format_expiration(policy.expiration)} is not after the signing time"
        raise ValueError(msg)

    fields = policy.form_data()
    fields["x-amz-algorithm"] = ALGORITHM
    fields["x-amz-credential"] = f"{credentials.access_key}/{get_scope(date, region)}"
    fields["x-amz-date"] = amz_date(date)
    if credentials.session_token:
        fields["x-amz-security-token"] = credentials.session_token

    conditions = policy.conditions()
    conditions.extend(
        ["eq", f"${name}", fields[name]]
        for name in ("x-amz-algorithm", "x-amz-credential", "x-amz-date", "x-amz-security-token")
        if name in fields
    )
    document = json.dumps(
        {"expiration": format_expiration(policy.expiration), "conditions": conditions}, separators=(",", ":")
    )
    fields["policy"] = base64.b64encode(document.encode("utf-8")).decode("ascii")
    fields["x-amz-signature"] = sign_policy(
        fields["policy"], derive_signing_key(credentials.secret_key, date, region)
    )
    return fields
