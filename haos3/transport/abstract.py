"""Abstract transport.

A transport issues exactly one HTTP request and hands back the raw response.
It never interprets status codes and never follows redirects; connection-level
failures are raised as ``S3TransportClientException``.
"""

from collections.abc import AsyncIterator, Mapping
from typing import Protocol


class TransportResponse(Protocol):
    """Raw HTTP response. ``httpx.Response`` satisfies this protocol."""

    @property
    def status_code(self) -> int: ...

    @property
    def headers(self) -> Mapping[str, str]: ...

    async def aread(self) -> bytes:
        """Read the whole body."""
        ...

    def aiter_bytes(self, chunk_size: int | None = None) -> AsyncIterator[bytes]:
        """Iterate over the body."""
        ...

    async def aclose(self) -> None:
        """Release the connection."""
        ...


class AbstractTransport(Protocol):
    """Issues one HTTP request per call."""

    async def execute(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> TransportResponse | None:
        """Send a request.

        Args:
            method: HTTP method.
            url: Absolute URL including the already encoded query string.
            headers: Headers to send as-is.
            body: Request body.

        Returns:
            The response, or ``None`` if the transport produced no response.

        Raises:
            S3TransportClientException: On connection-level failures.

        """
        ...

    async def aclose(self) -> None:
        """Release pooled connections."""
        ...
