"""Request signing."""

from haos3.signing.canonical import CanonicalRequest, canonical_request_string
from haos3.signing.post_policy import PostPolicy
from haos3.signing.signer import derive_signing_key, presign_post_policy, presign_v4, sign, sign_v4

__all__ = [
    "CanonicalRequest",
    "PostPolicy",
    "canonical_request_string",
    "derive_signing_key",
    "presign_post_policy",
    "presign_v4",
    "sign",
    "sign_v4",
]
