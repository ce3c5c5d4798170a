"""Upload bodies: length and SHA-1 computed before anything is sent."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import IO, Any, Union

from .._http import BytesBody, StreamBody
from .._http.transport import RequestBody

READ_CHUNK_SIZE = 1024 * 1024

UploadBody = Union[bytes, bytearray, memoryview, str, IO[bytes]]


@dataclass(frozen=True, slots=True)
class UploadSource:
    """An upload body whose length and SHA-1 are known.

    The same source is reused for every attempt of an upload. In-memory data
    is sent as-is; a stream is rewound to its starting offset each time.
    """

    content_length: int
    content_sha1: str
    data: bytes | None = None
    stream: IO[bytes] | None = None
    offset: int = 0

    def request_body(self, content_type: str | None = "application/octet-stream") -> RequestBody:
        if self.data is not None:
            return BytesBody(self.data, content_type=content_type)
        return StreamBody(self._open_chunks, content_type=content_type)

    def _open_chunks(self) -> Iterator[bytes]:
        stream = self.stream
        if stream is None:
            raise ValueError("in-memory upload sources have no stream to reopen")
        stream.seek(self.offset)
        remaining = self.content_length
        while remaining > 0:
            chunk = stream.read(min(READ_CHUNK_SIZE, remaining))
            if not chunk:
                raise ValueError("upload stream ended before its measured length")
            remaining -= len(chunk)
            yield bytes(chunk)


def prepare_upload_source(body: Any) -> UploadSource:
    """Measure and hash ``body``.

    Accepts bytes-like objects, ``str`` (sent as UTF-8) and seekable binary
    file objects. A file object is read once from its current position to
    EOF to hash it, then rewound for sending.
    """
    if isinstance(body, UploadSource):
        return body
    if isinstance(body, str):
        body = body.encode("utf-8")
    if isinstance(body, (bytes, bytearray, memoryview)):
        data = bytes(body)
        return UploadSource(
            content_length=len(data),
            content_sha1=hashlib.sha1(data).hexdigest(),
            data=data,
        )
    if hasattr(body, "read"):
        if not (hasattr(body, "seek") and getattr(body, "seekable", lambda: True)()):
            raise ValueError("file-like upload bodies must be seekable")
        offset = body.tell()
        digest = hashlib.sha1()
        length = 0
        while True:
            chunk = body.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            if isinstance(chunk, str):
                raise TypeError("file-like upload bodies must be opened in binary mode")
            digest.update(chunk)
            length += len(chunk)
        body.seek(offset)
        return UploadSource(
            content_length=length,
            content_sha1=digest.hexdigest(),
            stream=body,
            offset=offset,
        )
    raise TypeError(f"unsupported upload body type: {type(body).__name__}")


def upload_headers(source: UploadSource, *, authorization_token: str) -> dict[str, str]:
    return {
        "Authorization": authorization_token,
        "Content-Length": str(source.content_length),
        "X-Bz-Content-Sha1": source.content_sha1,
    }


def iter_part_bytes(body: Any, part_size: int) -> Iterator[bytes]:
    """Split ``body`` into consecutive parts of exactly ``part_size`` bytes.

    Only the last part may be shorter. Short reads from file objects are
    buffered until a whole part is available.
    """
    if part_size <= 0:
        raise ValueError("part_size must be positive")
    if isinstance(body, str):
        body = body.encode("utf-8")
    if isinstance(body, (bytes, bytearray, memoryview)):
        view = memoryview(body)
        for start in range(0, len(view), part_size):
            yield bytes(view[start : start + part_size])
        return

    if hasattr(body, "read"):
        chunks: Iterable[bytes] = iter(lambda: body.read(READ_CHUNK_SIZE) or b"", b"")
    elif isinstance(body, Iterable):
        chunks = body
    else:
        raise TypeError(f"unsupported upload body type: {type(body).__name__}")

    pending = bytearray()
    for chunk in chunks:
        pending.extend(chunk)
        while len(pending) >= part_size:
            yield bytes(pending[:part_size])
            del pending[:part_size]
    if pending:
        yield bytes(pending)


__all__ = [
    "READ_CHUNK_SIZE",
    "UploadBody",
    "UploadSource",
    "prepare_upload_source",
    "upload_headers",
    "iter_part_bytes",
]
