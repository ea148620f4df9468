"""HTTPX transport."""

import logging
from collections.abc import AsyncIterator, Mapping

import httpx

from haos3.clients.abstract import S3TransportClientException

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)


def _transport_error(method: str, path: str, error: httpx.TransportError) -> S3TransportClientException:
    logger.debug("%s %s failed: %r", method, path, error)
    msg = f"{method} {path} failed: {error}"
    return S3TransportClientException(msg, resource=path)


class HttpxResponse:
    """Streamed ``httpx.Response`` whose body reads raise ``S3TransportClientException``.

    The request is sent before its body is read, so a connection dropped while
    reading surfaces here rather than in ``HttpxTransport.execute``.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._method = response.request.method
        self._path = response.request.url.path

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    async def aread(self) -> bytes:
        try:
            return await self._response.aread()
        except httpx.TransportError as e:
            raise _transport_error(self._method, self._path, e) from e

    async def aiter_bytes(self, chunk_size: int | None = None) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes(chunk_size):
                yield chunk
        except httpx.TransportError as e:
            raise _transport_error(self._method, self._path, e) from e

    async def aclose(self) -> None:
        await self._response.aclose()


class HttpxTransport:
    """Transport backed by ``httpx.AsyncClient``.

    Pass ``client`` to reuse a configured ``httpx.AsyncClient`` (for example one
    built on ``httpx.MockTransport`` in tests). A client passed in is not closed
    by ``aclose``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        verify: bool | str = True,
        timeout: float | httpx.Timeout | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            verify=verify,
            timeout=DEFAULT_TIMEOUT if timeout is None else timeout,
            follow_redirects=False,
        )

    async def execute(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> HttpxResponse:
        request = self._client.build_request(method, url, headers=dict(headers), content=body)
        try:
            response = await self._client.send(request, stream=True, follow_redirects=False)
        except httpx.TransportError as e:
            raise _transport_error(method, request.url.path, e) from e
        return HttpxResponse(response)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
