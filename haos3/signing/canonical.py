"""Canonical request construction for AWS Signature Version 4.

The functions here are pure: the same request description always produces the
same canonical string, independent of the order headers or query parameters
were supplied in.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from urllib.parse import quote

# Headers that proxies, browsers or the transport itself may rewrite.
IGNORED_HEADERS = frozenset({"authorization", "content-type", "content-length", "user-agent"})

_UNRESERVED = "-_.~"

type QueryParams = Mapping[str, str | None] | Iterable[tuple[str, str | None]]
type HeaderItems = Mapping[str, str] | Iterable[tuple[str, str]]


def quote_path(path: str) -> str:
    """Percent-encode a request path, keeping ``/`` separators.

    S3 paths are encoded exactly once. Everything outside the RFC 3986
    unreserved set is escaped with upper-case hex.
    """
    return quote(path, safe="/" + _UNRESERVED)


def quote_value(value: str) -> str:
    """Percent-encode a query key or value, including ``/``."""
    return quote(value, safe=_UNRESERVED)


def _iter_items[T](items: Mapping[str, T] | Iterable[tuple[str, T]]) -> Iterable[tuple[str, T]]:
    if isinstance(items, Mapping):
        return items.items()
    return items


def canonical_query_string(params: QueryParams | None) -> str:
    """Build the canonical query string.

    Each pair is written as ``key=value`` with both sides percent-encoded; keys
    without a value (``None`` or empty) become ``key=``. Pairs are sorted by the
    full encoded pair and joined with ``&``.
    """
    if not params:
        return ""
    pairs = [f"{quote_value(key)}={quote_value(value or '')}" for key, value in _iter_items(params)]
    return "&".join(sorted(pairs))


def canonical_headers(headers: HeaderItems) -> tuple[str, str]:
    """Build the canonical headers block and the signed header list.

    Returns:
        A tuple of the header block (``name:value\\n`` per signed header, sorted by
        name) and the ``;``-joined signed header names.

    """
    collected: dict[str, list[str]] = {}
    for name, value in _iter_items(headers):
        key = name.strip().lower()
        if key in IGNORED_HEADERS:
            continue
        collected.setdefault(key, []).append(" ".join(str(value).split()))

    names = sorted(collected)
    block = "".join(f"{name}:{','.join(collected[name])}\n" for name in names)
    return block, ";".join(names)


@dataclass(frozen=True)
class CanonicalRequest:
    """Description of a request as it is hashed for signing.

    Attributes:
        method: HTTP method, upper case.
        path: Absolute, already percent-encoded request path.
        query: Query parameters, unencoded.
        headers: Request headers. Ignored headers are dropped during canonicalization.
        payload_hash: Hex SHA-256 of the payload, or ``UNSIGNED-PAYLOAD`` for presigned URLs.

    """

    method: str
    path: str
    payload_hash: str
    query: Mapping[str, str | None] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def signed_headers(self) -> str:
        """Semicolon separated names of the headers covered by the signature."""
        return canonical_headers(self.headers)[1]


def canonical_request_string(request: CanonicalRequest) -> str:
    """Render the canonical request that is hashed into the string to sign."""
    header_block, signed_headers = canonical_headers(request.headers)
    return "\n".join(
        [
            request.method.upper(),
            request.path or "/",
            canonical_query_string(request.query),
            header_block,
            signed_headers,
            request.payload_hash,
        ]
    )
