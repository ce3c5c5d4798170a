"""HTTP transport implementations for sync and async clients."""

from __future__ import annotations

import abc
from collections.abc import AsyncIterator, Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, BinaryIO

import httpx

from .config import DEFAULT_TIMEOUT, USER_AGENT


@dataclass(frozen=True, slots=True)
class JSONBody:
    """JSON request body - sent with Content-Type application/json."""

    data: Any


@dataclass(frozen=True, slots=True)
class BytesBody:
    """Raw bytes request body with explicit content type."""

    data: bytes
    content_type: str | None = "application/octet-stream"


@dataclass(frozen=True, slots=True)
class StreamBody:
    """Streamed request body.

    ``open_chunks`` is called once per attempt and must return a fresh chunk
    iterator, so a retried request sends the whole body again.
    """

    open_chunks: Callable[[], Iterable[bytes]]
    content_type: str | None = "application/octet-stream"


RequestBody = JSONBody | BytesBody | StreamBody | None


class BaseTransport(abc.ABC):
    """Abstract transport with an async interface over httpx."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._timeout = timeout
        self._default_headers = {"user-agent": USER_AGENT, **(headers or {})}

    def _build_request_kwargs(
        self,
        *,
        params: Mapping[str, Any] | None,
        body: RequestBody,
        headers: Mapping[str, str] | None,
        timeout: float | None,
    ) -> dict[str, Any]:
        request_headers = dict(self._default_headers)
        if headers:
            request_headers.update(headers)

        json_data: Any | None = None
        raw_content: Any | None = None
        if isinstance(body, JSONBody):
            json_data = body.data
        elif isinstance(body, (BytesBody, StreamBody)):
            if isinstance(body, StreamBody):
                raw_content = self.stream_content(body.open_chunks())
            else:
                raw_content = body.data
            if body.content_type is not None:
                request_headers.setdefault("Content-Type", body.content_type)

        effective_timeout = timeout if timeout is not None else self._timeout
        return {
            "params": dict(params) if params else None,
            "json": json_data,
            "content": raw_content,
            "headers": request_headers,
            "timeout": httpx.Timeout(effective_timeout),
        }

    @abc.abstractmethod
    def stream_content(self, chunks: Iterable[bytes]) -> Any:
        """Adapt a chunk iterator to what the underlying httpx client accepts."""
        ...

    @abc.abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: RequestBody = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        stream: bool = False,
    ) -> httpx.Response:
        """Send an HTTP request to an absolute URL and return the response.

        With ``stream=True`` a successful response is returned unread and must be
        consumed with :meth:`copy_body`. Unsuccessful responses are always read.
        """
        ...

    @abc.abstractmethod
    async def copy_body(self, response: httpx.Response, sink: BinaryIO) -> int:
        """Write a streamed response body to ``sink``, close it and return the byte count."""
        ...

    @abc.abstractmethod
    async def close(self) -> None: ...


class BlockingTransport(BaseTransport):
    """
    Synchronous HTTP transport using httpx.Client.

    Methods are declared async but never suspend, so they can be driven by
    iter_coroutine().
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Mapping[str, str] | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__(timeout=timeout, headers=headers)
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=httpx.Timeout(self._timeout))
        return self._client

    def stream_content(self, chunks: Iterable[bytes]) -> Iterator[bytes]:
        return iter(chunks)

    async def send(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: RequestBody = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        stream: bool = False,
    ) -> httpx.Response:
        kwargs = self._build_request_kwargs(
            params=params, body=body, headers=headers, timeout=timeout
        )
        client = self._get_client()
        if not stream:
            return client.request(method, url, **kwargs)
        response = client.send(client.build_request(method, url, **kwargs), stream=True)
        if not response.is_success:
            response.read()
            response.close()
        return response

    async def copy_body(self, response: httpx.Response, sink: BinaryIO) -> int:
        written = 0
        try:
            for chunk in response.iter_bytes():
                sink.write(chunk)
                written += len(chunk)
        finally:
            response.close()
        return written

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None


class AsyncTransport(BaseTransport):
    """Asynchronous HTTP transport using httpx.AsyncClient."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Mapping[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout=timeout, headers=headers)
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    def stream_content(self, chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
        async def _iterate() -> AsyncIterator[bytes]:
            for chunk in chunks:
                yield chunk

        return _iterate()

    async def send(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: RequestBody = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        stream: bool = False,
    ) -> httpx.Response:
        kwargs = self._build_request_kwargs(
            params=params, body=body, headers=headers, timeout=timeout
        )
        client = self._get_client()
        if not stream:
            return await client.request(method, url, **kwargs)
        response = await client.send(client.build_request(method, url, **kwargs), stream=True)
        if not response.is_success:
            await response.aread()
            await response.aclose()
        return response

    async def copy_body(self, response: httpx.Response, sink: BinaryIO) -> int:
        written = 0
        try:
            async for chunk in response.aiter_bytes():
                sink.write(chunk)
                written += len(chunk)
        finally:
            await response.aclose()
        return written

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


__all__ = [
    "BaseTransport",
    "BlockingTransport",
    "AsyncTransport",
    "JSONBody",
    "BytesBody",
    "StreamBody",
    "RequestBody",
]
