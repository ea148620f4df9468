"""Lazy pagination over S3 listing operations."""

from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Self

from haos3.clients.abstract import S3InternalClientException

# Protocol maximum for max-keys, max-uploads and max-parts.
MAX_PAGE_SIZE = 1000


@dataclass(frozen=True)
class Page[T_Entry, T_Marker]:
    """One fetched page.

    Attributes:
        entries: Entries of the page in server order.
        is_truncated: Whether the server has more entries.
        next_marker: Marker to continue from. Must be set when ``is_truncated``.

    """

    entries: Sequence[T_Entry]
    is_truncated: bool
    next_marker: T_Marker | None = None


type PageFetcher[T_Entry, T_Marker] = Callable[[T_Marker | None, int], Awaitable[Page[T_Entry, T_Marker]]]


class PaginationCursor[T_Entry, T_Marker]:
    """Async iterator that fetches pages on demand.

    A page is requested only when the buffer is empty and the server has not
    yet reported the end of the listing. A failed fetch ends the listing: the
    error is raised to the consumer and later iteration yields nothing.
    """

    def __init__(self, fetch: PageFetcher[T_Entry, T_Marker], page_size: int = MAX_PAGE_SIZE) -> None:
        """Initialize the cursor.

        Args:
            fetch: Called with the current marker (``None`` for the first page)
                and the page size.
            page_size: Entries to request per page.

        """
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            msg = f"Page size must be in range of 1 to {MAX_PAGE_SIZE}, got {page_size}"
            raise ValueError(msg)
        self._fetch = fetch
        self._page_size = page_size
        self._buffer: deque[T_Entry] = deque()
        self._marker: T_Marker | None = None
        self._complete = False
        self._fetch_count = 0

    @property
    def complete(self) -> bool:
        """Whether the server reported the end of the listing (or a fetch failed)."""
        return self._complete

    @property
    def fetch_count(self) -> int:
        return self._fetch_count

    @property
    def marker(self) -> T_Marker | None:
        return self._marker

    async def _fill(self) -> None:
        self._fetch_count += 1
        try:
            page = await self._fetch(self._marker, self._page_size)
        except BaseException:
            self._complete = True
            raise

        if page.is_truncated:
            if page.next_marker is None or page.next_marker == "":
                self._complete = True
                msg = "Truncated listing page carries no continuation marker"
                raise S3InternalClientException(msg)
            self._marker = page.next_marker
        else:
            self._complete = True
        self._buffer.extend(page.entries)

    async def has_next(self) -> bool:
        """Return whether another entry is available, fetching pages as needed."""
        while not self._buffer and not self._complete:
            await self._fill()
        return bool(self._buffer)

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> T_Entry:
        if not await self.has_next():
            raise StopAsyncIteration
        return self._buffer.popleft()
