"""End-to-end large file flow against the in-memory B2 fake."""

from __future__ import annotations

import hashlib
import io

import pytest

from b2client import (
    AsyncB2Client,
    B2APIError,
    B2Client,
    CustomInfoLimitError,
    LargeFileStateError,
    ValidationError,
)


MB = 1000 * 1000
ZEROS = bytes(5 * MB)
ZEROS_SHA1 = hashlib.sha1(ZEROS).hexdigest()


class TestMovieScenario:
    def test_sync_start_upload_finish(self, fake_b2, client_kwargs) -> None:
        with B2Client(**client_kwargs) as client:
            started = client.large_files.start_large_file("bucket-1", "movie.mp4")
            assert started.action == "start"
            assert started.content_type == "b2/x-auto"
            file_id = started.file_id
            assert file_id.startswith("4_z27c")

            part1 = client.large_files.upload_part(ZEROS, file_id, 1)
            part2 = client.large_files.upload_part(ZEROS, file_id, 2)
            assert part1.part_number == 1
            assert part1.content_sha1 == ZEROS_SHA1
            assert len(part1.content_sha1) == 40
            assert part2.part_number == 2

            finished = client.large_files.finish_large_file(
                file_id, [part1.content_sha1, part2.content_sha1]
            )

        assert finished.file_id == file_id
        assert finished.file_name == "movie.mp4"
        assert finished.action == "upload"
        assert finished.size == 10 * MB

    @pytest.mark.asyncio
    async def test_async_start_upload_finish(self, fake_b2, client_kwargs) -> None:
        async with AsyncB2Client(**client_kwargs) as client:
            started = await client.large_files.start_large_file("bucket-1", "movie.mp4")
            grant = await client.large_files.get_upload_part_url(started.file_id)

            part1 = await client.large_files.upload_part(ZEROS, started.file_id, 1, grant=grant)
            part2 = await client.large_files.upload_part(ZEROS, started.file_id, 2, grant=grant)
            finished = await client.large_files.finish_large_file(
                started.file_id, [part1.content_sha1, part2.content_sha1]
            )

        assert finished.action == "upload"
        assert finished.file_name == "movie.mp4"
        # One grant served both parts.
        assert fake_b2.grant_count == 1

    def test_upload_part_sends_precomputed_headers(self, fake_b2, client_kwargs) -> None:
        with B2Client(**client_kwargs) as client:
            started = client.large_files.start_large_file("bucket-1", "movie.mp4")
            client.large_files.upload_part(b"hello world", started.file_id, 7)

        request = fake_b2.upload_route.calls.last.request
        assert request.headers["X-Bz-Part-Number"] == "7"
        assert request.headers["Content-Length"] == "11"
        assert request.headers["X-Bz-Content-Sha1"] == hashlib.sha1(b"hello world").hexdigest()
        assert request.headers["Authorization"] == "4_grant_token_1"

    def test_file_like_body_is_hashed_then_sent_from_its_offset(self, fake_b2, client_kwargs) -> None:
        stream = io.BytesIO(b"HEADER" + b"payload bytes")
        stream.seek(6)
        with B2Client(**client_kwargs) as client:
            started = client.large_files.start_large_file("bucket-1", "movie.mp4")
            part = client.large_files.upload_part(stream, started.file_id, 1)

        assert part.content_length == len(b"payload bytes")
        assert part.content_sha1 == hashlib.sha1(b"payload bytes").hexdigest()


class TestFinishOrdering:
    def _upload(self, client, numbers: list[int]) -> tuple[str, dict[int, str]]:
        started = client.large_files.start_large_file("bucket-1", "movie.mp4")
        sha1s = {}
        for number in numbers:
            data = f"part-{number}".encode() * 1000
            sha1s[number] = client.large_files.upload_part(data, started.file_id, number).content_sha1
        return started.file_id, sha1s

    def test_parts_uploaded_out_of_order_finish_in_ascending_order(self, fake_b2, client_kwargs) -> None:
        with B2Client(**client_kwargs) as client:
            file_id, sha1s = self._upload(client, [3, 1, 2])
            finished = client.large_files.finish_large_file(file_id, [sha1s[1], sha1s[2], sha1s[3]])
        assert finished.action == "upload"

    def test_hashes_out_of_order_fail_validation(self, fake_b2, client_kwargs) -> None:
        with B2Client(**client_kwargs) as client:
            file_id, sha1s = self._upload(client, [1, 2, 3])
            with pytest.raises(ValidationError):
                client.large_files.finish_large_file(file_id, [sha1s[2], sha1s[1], sha1s[3]])
        assert file_id in fake_b2.unfinished

    def test_gap_in_part_numbers_fails_validation(self, fake_b2, client_kwargs) -> None:
        with B2Client(**client_kwargs) as client:
            file_id, sha1s = self._upload(client, [1, 3])
            with pytest.raises(ValidationError) as exc_info:
                client.large_files.finish_large_file(file_id, [sha1s[1], sha1s[3]])
        assert exc_info.value.code == "bad_request"


class TestCancel:
    @pytest.mark.parametrize("part_count", [0, 1, 3])
    def test_cancel_leaves_no_parts(self, fake_b2, client_kwargs, part_count: int) -> None:
        with B2Client(**client_kwargs) as client:
            upload = client.large_files.start("bucket-1", "movie.mp4")
            for number in range(1, part_count + 1):
                upload.upload_part(number, b"x" * number)

            canceled = upload.cancel()

            assert upload.state == "canceled"
            assert canceled.file_id == upload.file_id
            assert fake_b2.parts_of(upload.file_id) == {}
            with pytest.raises(B2APIError):
                client.large_files.list_parts(upload.file_id)

    def test_session_rejects_use_after_cancel(self, fake_b2, client_kwargs) -> None:
        with B2Client(**client_kwargs) as client:
            upload = client.large_files.start("bucket-1", "movie.mp4")
            upload.cancel()
            with pytest.raises(LargeFileStateError):
                upload.upload_part(1, b"late")
            with pytest.raises(LargeFileStateError):
                upload.finish()


class TestListParts:
    def test_max_part_count_one_returns_continuation(self, fake_b2, client_kwargs) -> None:
        with B2Client(**client_kwargs) as client:
            started = client.large_files.start_large_file("bucket-1", "movie.mp4")
            for number in (1, 2, 3):
                client.large_files.upload_part(b"p" * number, started.file_id, number)

            first = client.large_files.list_parts(started.file_id, max_part_count=1)
            assert [p.part_number for p in first.items] == [1]
            assert first.next_cursor == 2

            second = client.large_files.list_parts(
                started.file_id, start_part_number=first.next_cursor, max_part_count=1
            )
            assert [p.part_number for p in second.items] == [2]

    def test_iter_parts_walks_every_page(self, fake_b2, client_kwargs) -> None:
        with B2Client(**client_kwargs) as client:
            started = client.large_files.start_large_file("bucket-1", "movie.mp4")
            for number in range(1, 6):
                client.large_files.upload_part(b"p" * number, started.file_id, number)

            parts = client.large_files.iter_parts(started.file_id, page_size=2)
            assert [p.part_number for p in parts] == [1, 2, 3, 4, 5]
            assert parts.next_cursor is None
            assert fake_b2.route("b2_list_parts").call_count == 3

            limited = client.large_files.iter_parts(started.file_id, page_size=2, limit=3)
            assert [p.part_number for p in limited] == [1, 2, 3]

            resumed = parts.restart(4)
            assert [p.part_number for p in resumed] == [4, 5]

    @pytest.mark.asyncio
    async def test_async_iter_parts(self, fake_b2, client_kwargs) -> None:
        async with AsyncB2Client(**client_kwargs) as client:
            started = await client.large_files.start_large_file("bucket-1", "movie.mp4")
            for number in (1, 2, 3):
                await client.large_files.upload_part(b"p", started.file_id, number)

            numbers = [p.part_number async for p in client.large_files.iter_parts(started.file_id, page_size=1)]

        assert numbers == [1, 2, 3]


class TestListUnfinished:
    def test_pages_through_unfinished_files(self, fake_b2, client_kwargs) -> None:
        with B2Client(**client_kwargs) as client:
            ids = [
                client.large_files.start_large_file("bucket-1", f"videos/{n}.mp4").file_id
                for n in range(3)
            ]
            client.large_files.start_large_file("bucket-1", "other.bin")
            client.large_files.start_large_file("bucket-2", "videos/x.mp4")

            page = client.large_files.list_unfinished_large_files(
                "bucket-1", name_prefix="videos/", max_file_count=2
            )
            assert len(page) == 2
            assert page.has_more

            everything = client.large_files.iter_unfinished_large_files(
                "bucket-1", name_prefix="videos/", page_size=2
            ).to_list()

        assert sorted(f.file_id for f in everything) == sorted(ids)
        assert all(f.action == "start" for f in everything)


class TestStartValidation:
    def test_custom_info_checked_before_request(self, fake_b2, client_kwargs) -> None:
        info = {f"k{i}": "v" for i in range(11)}
        with B2Client(**client_kwargs) as client:
            with pytest.raises(CustomInfoLimitError):
                client.large_files.start_large_file("bucket-1", "movie.mp4", file_info=info)

        assert fake_b2.authorize_count == 0
        assert not fake_b2.route("b2_start_large_file").called

    def test_file_info_and_content_type_are_sent(self, fake_b2, client_kwargs) -> None:
        with B2Client(**client_kwargs) as client:
            started = client.large_files.start_large_file(
                "bucket-1",
                "movie.mp4",
                content_type="video/mp4",
                file_info={"src_last_modified_millis": "1700000000000"},
            )

        assert started.content_type == "video/mp4"
        assert started.file_info == {"src_last_modified_millis": "1700000000000"}
