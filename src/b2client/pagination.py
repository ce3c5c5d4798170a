"""Cursor-based pagination over list endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    """One page of a list call.

    ``next_cursor`` is the value to pass back to the same call to get the
    following page (``nextPartNumber``, ``nextFileId``, ...). ``None`` means
    this is the last page.
    """

    items: list[T] = field(default_factory=list)
    next_cursor: Any | None = None

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


def _resolve_page_limit(
    *,
    page_size: int | None,
    limit: int | None,
    yielded_count: int,
) -> tuple[bool, int | None]:
    page_limit = page_size
    if limit is None:
        return False, page_limit

    remaining = limit - yielded_count
    if remaining <= 0:
        return True, None
    if page_limit is None or page_limit > remaining:
        page_limit = remaining
    return False, page_limit


class PagedResult(Generic[T]):
    """Lazy sequence of items spread over several pages.

    Pages are fetched on demand by ``fetch_page(cursor, page_size)``. Each
    call to ``iter()`` starts again from ``start_cursor``; ``next_cursor``
    holds the continuation of the last page fetched so iteration can be
    resumed later with ``restart(next_cursor)``.
    """

    def __init__(
        self,
        fetch_page: Callable[[Any | None, int | None], Page[T]],
        *,
        start_cursor: Any | None = None,
        page_size: int | None = None,
        limit: int | None = None,
    ) -> None:
        self._fetch_page = fetch_page
        self.start_cursor = start_cursor
        self.page_size = page_size
        self.limit = limit
        self.next_cursor: Any | None = start_cursor

    def restart(self, cursor: Any | None) -> PagedResult[T]:
        return PagedResult(
            self._fetch_page, start_cursor=cursor, page_size=self.page_size, limit=self.limit
        )

    def pages(self) -> Iterator[Page[T]]:
        cursor = self.start_cursor
        while True:
            page = self._fetch_page(cursor, self.page_size)
            self.next_cursor = page.next_cursor
            yield page
            if page.next_cursor is None:
                return
            cursor = page.next_cursor

    def __iter__(self) -> Iterator[T]:
        cursor = self.start_cursor
        yielded_count = 0

        while True:
            done, effective_limit = _resolve_page_limit(
                page_size=self.page_size,
                limit=self.limit,
                yielded_count=yielded_count,
            )
            if done:
                return

            page = self._fetch_page(cursor, effective_limit)
            self.next_cursor = page.next_cursor
            for item in page.items:
                yield item
                yielded_count += 1
                if self.limit is not None and yielded_count >= self.limit:
                    return

            if page.next_cursor is None:
                return
            cursor = page.next_cursor

    def to_list(self) -> list[T]:
        return list(self)


class AsyncPagedResult(Generic[T]):
    """Async counterpart of :class:`PagedResult`."""

    def __init__(
        self,
        fetch_page: Callable[[Any | None, int | None], Awaitable[Page[T]]],
        *,
        start_cursor: Any | None = None,
        page_size: int | None = None,
        limit: int | None = None,
    ) -> None:
        self._fetch_page = fetch_page
        self.start_cursor = start_cursor
        self.page_size = page_size
        self.limit = limit
        self.next_cursor: Any | None = start_cursor

    def restart(self, cursor: Any | None) -> AsyncPagedResult[T]:
        return AsyncPagedResult(
            self._fetch_page, start_cursor=cursor, page_size=self.page_size, limit=self.limit
        )

    async def pages(self) -> AsyncIterator[Page[T]]:
        cursor = self.start_cursor
        while True:
            page = await self._fetch_page(cursor, self.page_size)
            self.next_cursor = page.next_cursor
            yield page
            if page.next_cursor is None:
                return
            cursor = page.next_cursor

    async def __aiter__(self) -> AsyncIterator[T]:
        cursor = self.start_cursor
        yielded_count = 0

        while True:
            done, effective_limit = _resolve_page_limit(
                page_size=self.page_size,
                limit=self.limit,
                yielded_count=yielded_count,
            )
            if done:
                return

            page = await self._fetch_page(cursor, effective_limit)
            self.next_cursor = page.next_cursor
            for item in page.items:
                yield item
                yielded_count += 1
                if self.limit is not None and yielded_count >= self.limit:
                    return

            if page.next_cursor is None:
                return
            cursor = page.next_cursor

    async def to_list(self) -> list[T]:
        return [item async for item in self]


__all__ = ["Page", "PagedResult", "AsyncPagedResult"]
