import hashlib
import io

import pytest

from b2client._core.uploads import (
    UploadSource,
    iter_part_bytes,
    prepare_upload_source,
    upload_headers,
)
from b2client._http import BytesBody, StreamBody


class TestPrepareUploadSource:
    def test_bytes(self) -> None:
        source = prepare_upload_source(b"hello world")
        assert source.content_length == 11
        assert source.content_sha1 == hashlib.sha1(b"hello world").hexdigest()
        body = source.request_body()
        assert isinstance(body, BytesBody)
        assert body.data == b"hello world"

    def test_str_is_utf8(self) -> None:
        source = prepare_upload_source("naïve")
        assert source.content_length == len("naïve".encode("utf-8"))

    def test_stream_is_hashed_from_current_offset_and_rewound(self) -> None:
        stream = io.BytesIO(b"skip:" + b"x" * 3_000_000)
        stream.seek(5)

        source = prepare_upload_source(stream)

        assert stream.tell() == 5
        assert source.content_length == 3_000_000
        assert source.content_sha1 == hashlib.sha1(b"x" * 3_000_000).hexdigest()
        body = source.request_body()
        assert isinstance(body, StreamBody)
        # Each attempt reopens the stream from the same offset.
        assert b"".join(body.open_chunks()) == b"x" * 3_000_000
        assert b"".join(body.open_chunks()) == b"x" * 3_000_000

    def test_unseekable_stream_rejected(self) -> None:
        class Pipe(io.RawIOBase):
            def readable(self) -> bool:
                return True

            def seekable(self) -> bool:
                return False

        with pytest.raises(ValueError):
            prepare_upload_source(Pipe())

    def test_reopening_an_in_memory_source_fails(self) -> None:
        source = UploadSource(content_length=3, content_sha1="a9993e364706816aba3e25717850c26c9cd0d89d")
        with pytest.raises(ValueError):
            next(source._open_chunks())

    def test_unsupported_type_rejected(self) -> None:
        with pytest.raises(TypeError):
            prepare_upload_source(12345)

    def test_headers(self) -> None:
        source = prepare_upload_source(b"abc")
        assert upload_headers(source, authorization_token="grant") == {
            "Authorization": "grant",
            "Content-Length": "3",
            "X-Bz-Content-Sha1": "a9993e364706816aba3e25717850c26c9cd0d89d",
        }


class TestIterPartBytes:
    def test_bytes(self) -> None:
        assert list(iter_part_bytes(b"abcdefg", 3)) == [b"abc", b"def", b"g"]

    def test_file_like(self) -> None:
        assert list(iter_part_bytes(io.BytesIO(b"abcdef"), 3)) == [b"abc", b"def"]

    def test_iterable_of_chunks_is_regrouped(self) -> None:
        chunks = [b"a", b"bcd", b"efghi"]
        assert list(iter_part_bytes(iter(chunks), 4)) == [b"abcd", b"efgh", b"i"]

    def test_empty_body_yields_nothing(self) -> None:
        assert list(iter_part_bytes(b"", 4)) == []

    def test_short_reads_are_buffered_into_whole_parts(self) -> None:
        class TrickleReader(io.RawIOBase):
            def __init__(self, data: bytes) -> None:
                self._data = data

            def readable(self) -> bool:
                return True

            def read(self, size: int = -1) -> bytes:
                chunk, self._data = self._data[:2], self._data[2:]
                return chunk

        parts = list(iter_part_bytes(TrickleReader(b"abcdefghij"), 4))
        assert parts == [b"abcd", b"efgh", b"ij"]
