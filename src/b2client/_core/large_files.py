"""Large file (multipart) upload API client."""

from __future__ import annotations

import itertools
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, cast

from .._http import Request
from .._http.iter_coroutine import iter_coroutine
from .._logging import get_logger
from ..errors import (
    B2ConnectionError,
    LargeFileStateError,
    ServiceUnavailableError,
    UnauthorizedError,
)
from ..file_info import CustomInfo
from ..models import CONTENT_TYPE_AUTO, File, Part, ServerSideEncryption, UploadPartUrl
from ..pagination import AsyncPagedResult, Page, PagedResult
from .session import ByteRange, range_value, sse_dict
from .uploads import UploadSource, iter_part_bytes, prepare_upload_source, upload_headers

if TYPE_CHECKING:
    from .session import B2Session

logger = get_logger("large_files")

# Upload failures that may be caused by a stale or overloaded upload URL.
GRANT_REFRESH_ERRORS = (UnauthorizedError, B2ConnectionError, ServiceUnavailableError)


class BaseLargeFilesClient:
    """Base large files client with shared async business logic."""

    def __init__(self, session: B2Session):
        self._session = session

    async def _start_large_file(
        self,
        bucket_id: str,
        file_name: str,
        *,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        file_retention: Mapping[str, Any] | None = None,
        legal_hold: str | None = None,
    ) -> File:
        # Checked before anything is sent.
        info = CustomInfo.coerce(file_info)
        data = await self._session.call_api(
            "b2_start_large_file",
            {
                "bucketId": bucket_id,
                "fileName": file_name,
                "contentType": content_type or CONTENT_TYPE_AUTO,
                "fileInfo": info.to_dict(),
                "serverSideEncryption": sse_dict(server_side_encryption),
                "fileRetention": file_retention,
                "legalHold": legal_hold,
            },
        )
        return File.model_validate(data)

    async def _get_upload_part_url(self, file_id: str) -> UploadPartUrl:
        data = await self._session.call_api("b2_get_upload_part_url", {"fileId": file_id})
        return UploadPartUrl.model_validate(data)

    async def _upload_part(
        self,
        body: Any,
        file_id: str,
        part_number: int,
        *,
        grant: UploadPartUrl | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> Part:
        source = prepare_upload_source(body)
        if grant is None:
            grant = await self._get_upload_part_url(file_id)
        return await self._upload_prepared_part(
            source, grant, part_number, server_side_encryption=server_side_encryption
        )

    async def _upload_prepared_part(
        self,
        source: UploadSource,
        grant: UploadPartUrl,
        part_number: int,
        *,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> Part:
        headers = upload_headers(source, authorization_token=grant.authorization_token)
        headers["X-Bz-Part-Number"] = str(part_number)
        if server_side_encryption is not None:
            headers.update(server_side_encryption.to_headers())
        request = Request(
            "POST",
            grant.upload_url,
            body=source.request_body(content_type=None),
            headers=headers,
            timeout=self._session.config.timeout,
        )
        response = await self._session.send(request)
        return Part.model_validate(response.json())

    async def _copy_part(
        self,
        source_file_id: str,
        large_file_id: str,
        part_number: int,
        *,
        range: ByteRange | None = None,
        source_server_side_encryption: ServerSideEncryption | None = None,
        destination_server_side_encryption: ServerSideEncryption | None = None,
    ) -> Part:
        data = await self._session.call_api(
            "b2_copy_part",
            {
                "sourceFileId": source_file_id,
                "largeFileId": large_file_id,
                "partNumber": part_number,
                "range": range_value(range),
                "sourceServerSideEncryption": sse_dict(source_server_side_encryption),
                "destinationServerSideEncryption": sse_dict(destination_server_side_encryption),
            },
        )
        return Part.model_validate(data)

    async def _finish_large_file(self, file_id: str, part_sha1_array: Iterable[str]) -> File:
        data = await self._session.call_api(
            "b2_finish_large_file",
            {"fileId": file_id, "partSha1Array": list(part_sha1_array)},
        )
        return File.model_validate(data)

    async def _cancel_large_file(self, file_id: str) -> File:
        data = await self._session.call_api("b2_cancel_large_file", {"fileId": file_id})
        return File.model_validate(data)

    async def _get_file(self, file_id: str) -> File:
        data = await self._session.call_api("b2_get_file_info", {"fileId": file_id})
        return File.model_validate(data)

    async def _list_parts(
        self,
        file_id: str,
        *,
        start_part_number: int | None = None,
        max_part_count: int | None = None,
    ) -> Page[Part]:
        data = await self._session.call_api(
            "b2_list_parts",
            {
                "fileId": file_id,
                "startPartNumber": start_part_number,
                "maxPartCount": max_part_count,
            },
        )
        return Page(
            items=[Part.model_validate(p) for p in data.get("parts", [])],
            next_cursor=data.get("nextPartNumber"),
        )

    async def _list_unfinished_large_files(
        self,
        bucket_id: str,
        *,
        name_prefix: str | None = None,
        start_file_id: str | None = None,
        max_file_count: int | None = None,
    ) -> Page[File]:
        data = await self._session.call_api(
            "b2_list_unfinished_large_files",
            {
                "bucketId": bucket_id,
                "namePrefix": name_prefix,
                "startFileId": start_file_id,
                "maxFileCount": max_file_count,
            },
        )
        return Page(
            items=[File.model_validate(f) for f in data.get("files", [])],
            next_cursor=data.get("nextFileId"),
        )

    async def _collect_parts(self, file_id: str) -> list[Part]:
        parts: list[Part] = []
        cursor: int | None = None
        while True:
            page = await self._list_parts(file_id, start_part_number=cursor)
            parts.extend(page.items)
            if page.next_cursor is None:
                return parts
            cursor = page.next_cursor

    async def _resume(
        self,
        file: File | str,
        *,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> BaseLargeFileUpload:
        if isinstance(file, str):
            file = await self._get_file(file)
        if file.file_id is None:
            raise ValueError(f"cannot resume {file.file_name!r} without its file id")
        parts = await self._collect_parts(file.file_id)
        return self._new_upload(file, parts, server_side_encryption=server_side_encryption)

    async def _start(
        self,
        bucket_id: str,
        file_name: str,
        *,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        file_retention: Mapping[str, Any] | None = None,
        legal_hold: str | None = None,
    ) -> BaseLargeFileUpload:
        file = await self._start_large_file(
            bucket_id,
            file_name,
            content_type=content_type,
            file_info=file_info,
            server_side_encryption=server_side_encryption,
            file_retention=file_retention,
            legal_hold=legal_hold,
        )
        return self._new_upload(file, [], server_side_encryption=server_side_encryption)

    async def _upload_large_file(
        self,
        body: Any,
        bucket_id: str,
        file_name: str,
        *,
        part_size: int | None = None,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> File:
        authorization = await self._session.current_authorization()
        part_size = part_size or authorization.recommended_part_size
        if part_size < authorization.absolute_minimum_part_size:
            raise ValueError(
                f"part_size {part_size} is below the account minimum of "
                f"{authorization.absolute_minimum_part_size} bytes"
            )
        chunks = iter_part_bytes(body, part_size)
        first = next(chunks, None)
        if first is None:
            # B2 rejects finishing a large file with no parts.
            raise ValueError("cannot upload an empty body as a large file; use files.upload_file")
        upload = await self._start(
            bucket_id,
            file_name,
            content_type=content_type,
            file_info=file_info,
            server_side_encryption=server_side_encryption,
        )
        for part_number, chunk in enumerate(itertools.chain([first], chunks), start=1):
            await upload._upload_part(part_number, chunk)
        return await upload._finish()

    def _new_upload(
        self,
        file: File,
        parts: Iterable[Part],
        *,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> BaseLargeFileUpload:
        return BaseLargeFileUpload(
            self, file, parts=parts, server_side_encryption=server_side_encryption
        )


class BaseLargeFileUpload:
    """One in-progress large file and the parts uploaded to it so far.

    Keeps an upload grant between parts. When a part upload fails in a way
    that points at the grant (401, 503 or a connection failure) the grant is
    dropped and a fresh one is requested, up to
    ``ClientConfig.max_grant_refreshes`` times per part. Failed parts are
    never recorded.

    Not thread-safe. Callers uploading parts concurrently must use separate
    part numbers.
    """

    def __init__(
        self,
        client: BaseLargeFilesClient,
        file: File,
        *,
        parts: Iterable[Part] = (),
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> None:
        if file.file_id is None:
            raise ValueError("a large file upload needs the file id returned by start")
        self._client = client
        self._file_id: str = file.file_id
        self.file = file
        self._server_side_encryption = server_side_encryption
        self._grant: UploadPartUrl | None = None
        self._parts: dict[int, Part] = {p.part_number: p for p in parts}
        self._state = "open"

    @property
    def file_id(self) -> str:
        return self._file_id

    @property
    def state(self) -> str:
        return self._state

    @property
    def parts(self) -> list[Part]:
        return [self._parts[n] for n in sorted(self._parts)]

    def part_sha1_array(self) -> list[str]:
        return [part.content_sha1 for part in self.parts]

    def _ensure_open(self) -> None:
        if self._state != "open":
            raise LargeFileStateError(f"large file {self.file_id} is already {self._state}")

    async def _current_grant(self) -> UploadPartUrl:
        if self._grant is None:
            self._grant = await self._client._get_upload_part_url(self.file_id)
        return self._grant

    async def _upload_part(self, part_number: int, body: Any) -> Part:
        self._ensure_open()
        source = prepare_upload_source(body)
        max_refreshes = self._client._session.config.max_grant_refreshes
        refreshes = 0
        while True:
            grant = await self._current_grant()
            try:
                part = await self._client._upload_prepared_part(
                    source,
                    grant,
                    part_number,
                    server_side_encryption=self._server_side_encryption,
                )
            except GRANT_REFRESH_ERRORS as exc:
                self._grant = None
                if refreshes >= max_refreshes:
                    raise
                refreshes += 1
                logger.debug(
                    "part %d of %s failed (%s), requesting a new upload URL",
                    part_number,
                    self.file_id,
                    exc,
                )
                continue
            self._parts[part.part_number] = part
            return part

    async def _copy_part(
        self,
        part_number: int,
        source_file_id: str,
        *,
        range: ByteRange | None = None,
        source_server_side_encryption: ServerSideEncryption | None = None,
    ) -> Part:
        self._ensure_open()
        part = await self._client._copy_part(
            source_file_id,
            self.file_id,
            part_number,
            range=range,
            source_server_side_encryption=source_server_side_encryption,
            destination_server_side_encryption=self._server_side_encryption,
        )
        self._parts[part.part_number] = part
        return part

    async def _finish(self) -> File:
        self._ensure_open()
        file = await self._client._finish_large_file(self.file_id, self.part_sha1_array())
        self._state = "finished"
        return file

    async def _cancel(self) -> File:
        self._ensure_open()
        file = await self._client._cancel_large_file(self.file_id)
        self._state = "canceled"
        self._parts.clear()
        return file


class LargeFileUpload(BaseLargeFileUpload):
    def upload_part(self, part_number: int, body: Any) -> Part:
        return iter_coroutine(self._upload_part(part_number, body))

    def copy_part(
        self,
        part_number: int,
        source_file_id: str,
        *,
        range: ByteRange | None = None,
        source_server_side_encryption: ServerSideEncryption | None = None,
    ) -> Part:
        return iter_coroutine(
            self._copy_part(
                part_number,
                source_file_id,
                range=range,
                source_server_side_encryption=source_server_side_encryption,
            )
        )

    def finish(self) -> File:
        return iter_coroutine(self._finish())

    def cancel(self) -> File:
        return iter_coroutine(self._cancel())


class AsyncLargeFileUpload(BaseLargeFileUpload):
    async def upload_part(self, part_number: int, body: Any) -> Part:
        return await self._upload_part(part_number, body)

    async def copy_part(
        self,
        part_number: int,
        source_file_id: str,
        *,
        range: ByteRange | None = None,
        source_server_side_encryption: ServerSideEncryption | None = None,
    ) -> Part:
        return await self._copy_part(
            part_number,
            source_file_id,
            range=range,
            source_server_side_encryption=source_server_side_encryption,
        )

    async def finish(self) -> File:
        return await self._finish()

    async def cancel(self) -> File:
        return await self._cancel()


class LargeFilesClient(BaseLargeFilesClient):
    def _new_upload(
        self,
        file: File,
        parts: Iterable[Part],
        *,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> LargeFileUpload:
        return LargeFileUpload(
            self, file, parts=parts, server_side_encryption=server_side_encryption
        )

    def start_large_file(
        self,
        bucket_id: str,
        file_name: str,
        *,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        file_retention: Mapping[str, Any] | None = None,
        legal_hold: str | None = None,
    ) -> File:
        return iter_coroutine(
            self._start_large_file(
                bucket_id,
                file_name,
                content_type=content_type,
                file_info=file_info,
                server_side_encryption=server_side_encryption,
                file_retention=file_retention,
                legal_hold=legal_hold,
            )
        )

    def get_upload_part_url(self, file_id: str) -> UploadPartUrl:
        return iter_coroutine(self._get_upload_part_url(file_id))

    def upload_part(
        self,
        body: Any,
        file_id: str,
        part_number: int,
        *,
        grant: UploadPartUrl | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> Part:
        return iter_coroutine(
            self._upload_part(
                body,
                file_id,
                part_number,
                grant=grant,
                server_side_encryption=server_side_encryption,
            )
        )

    def copy_part(
        self,
        source_file_id: str,
        large_file_id: str,
        part_number: int,
        *,
        range: ByteRange | None = None,
        source_server_side_encryption: ServerSideEncryption | None = None,
        destination_server_side_encryption: ServerSideEncryption | None = None,
    ) -> Part:
        return iter_coroutine(
            self._copy_part(
                source_file_id,
                large_file_id,
                part_number,
                range=range,
                source_server_side_encryption=source_server_side_encryption,
                destination_server_side_encryption=destination_server_side_encryption,
            )
        )

    def finish_large_file(self, file_id: str, part_sha1_array: Iterable[str]) -> File:
        return iter_coroutine(self._finish_large_file(file_id, part_sha1_array))

    def cancel_large_file(self, file_id: str) -> File:
        return iter_coroutine(self._cancel_large_file(file_id))

    def list_parts(
        self,
        file_id: str,
        *,
        start_part_number: int | None = None,
        max_part_count: int | None = None,
    ) -> Page[Part]:
        return iter_coroutine(
            self._list_parts(
                file_id, start_part_number=start_part_number, max_part_count=max_part_count
            )
        )

    def iter_parts(
        self,
        file_id: str,
        *,
        start_part_number: int | None = None,
        page_size: int | None = None,
        limit: int | None = None,
    ) -> PagedResult[Part]:
        return PagedResult(
            lambda cursor, size: self.list_parts(
                file_id, start_part_number=cursor, max_part_count=size
            ),
            start_cursor=start_part_number,
            page_size=page_size,
            limit=limit,
        )

    def list_unfinished_large_files(
        self,
        bucket_id: str,
        *,
        name_prefix: str | None = None,
        start_file_id: str | None = None,
        max_file_count: int | None = None,
    ) -> Page[File]:
        return iter_coroutine(
            self._list_unfinished_large_files(
                bucket_id,
                name_prefix=name_prefix,
                start_file_id=start_file_id,
                max_file_count=max_file_count,
            )
        )

    def iter_unfinished_large_files(
        self,
        bucket_id: str,
        *,
        name_prefix: str | None = None,
        start_file_id: str | None = None,
        page_size: int | None = None,
        limit: int | None = None,
    ) -> PagedResult[File]:
        return PagedResult(
            lambda cursor, size: self.list_unfinished_large_files(
                bucket_id, name_prefix=name_prefix, start_file_id=cursor, max_file_count=size
            ),
            start_cursor=start_file_id,
            page_size=page_size,
            limit=limit,
        )

    def start(
        self,
        bucket_id: str,
        file_name: str,
        *,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        file_retention: Mapping[str, Any] | None = None,
        legal_hold: str | None = None,
    ) -> LargeFileUpload:
        """Start a large file and return a session for uploading its parts."""
        upload = iter_coroutine(
            self._start(
                bucket_id,
                file_name,
                content_type=content_type,
                file_info=file_info,
                server_side_encryption=server_side_encryption,
                file_retention=file_retention,
                legal_hold=legal_hold,
            )
        )
        return cast(LargeFileUpload, upload)

    def resume(
        self,
        file: File | str,
        *,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> LargeFileUpload:
        """Rebuild a session for an unfinished large file from its uploaded parts.

        SSE-C files need the same ``server_side_encryption`` they were started
        with; B2 never returns the customer key.
        """
        upload = iter_coroutine(
            self._resume(file, server_side_encryption=server_side_encryption)
        )
        return cast(LargeFileUpload, upload)

    def upload_large_file(
        self,
        body: Any,
        bucket_id: str,
        file_name: str,
        *,
        part_size: int | None = None,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> File:
        """Upload ``body`` as a large file, one part at a time, then finish it.

        The large file is left unfinished (not canceled) if a part fails;
        use :meth:`resume` or :meth:`cancel_large_file` to recover.
        """
        return iter_coroutine(
            self._upload_large_file(
                body,
                bucket_id,
                file_name,
                part_size=part_size,
                content_type=content_type,
                file_info=file_info,
                server_side_encryption=server_side_encryption,
            )
        )


class AsyncLargeFilesClient(BaseLargeFilesClient):
    def _new_upload(
        self,
        file: File,
        parts: Iterable[Part],
        *,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> AsyncLargeFileUpload:
        return AsyncLargeFileUpload(
            self, file, parts=parts, server_side_encryption=server_side_encryption
        )

    async def start_large_file(
        self,
        bucket_id: str,
        file_name: str,
        *,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        file_retention: Mapping[str, Any] | None = None,
        legal_hold: str | None = None,
    ) -> File:
        return await self._start_large_file(
            bucket_id,
            file_name,
            content_type=content_type,
            file_info=file_info,
            server_side_encryption=server_side_encryption,
            file_retention=file_retention,
            legal_hold=legal_hold,
        )

    async def get_upload_part_url(self, file_id: str) -> UploadPartUrl:
        return await self._get_upload_part_url(file_id)

    async def upload_part(
        self,
        body: Any,
        file_id: str,
        part_number: int,
        *,
        grant: UploadPartUrl | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> Part:
        return await self._upload_part(
            body,
            file_id,
            part_number,
            grant=grant,
            server_side_encryption=server_side_encryption,
        )

    async def copy_part(
        self,
        source_file_id: str,
        large_file_id: str,
        part_number: int,
        *,
        range: ByteRange | None = None,
        source_server_side_encryption: ServerSideEncryption | None = None,
        destination_server_side_encryption: ServerSideEncryption | None = None,
    ) -> Part:
        return await self._copy_part(
            source_file_id,
            large_file_id,
            part_number,
            range=range,
            source_server_side_encryption=source_server_side_encryption,
            destination_server_side_encryption=destination_server_side_encryption,
        )

    async def finish_large_file(self, file_id: str, part_sha1_array: Iterable[str]) -> File:
        return await self._finish_large_file(file_id, part_sha1_array)

    async def cancel_large_file(self, file_id: str) -> File:
        return await self._cancel_large_file(file_id)

    async def list_parts(
        self,
        file_id: str,
        *,
        start_part_number: int | None = None,
        max_part_count: int | None = None,
    ) -> Page[Part]:
        return await self._list_parts(
            file_id, start_part_number=start_part_number, max_part_count=max_part_count
        )

    def iter_parts(
        self,
        file_id: str,
        *,
        start_part_number: int | None = None,
        page_size: int | None = None,
        limit: int | None = None,
    ) -> AsyncPagedResult[Part]:
        return AsyncPagedResult(
            lambda cursor, size: self._list_parts(
                file_id, start_part_number=cursor, max_part_count=size
            ),
            start_cursor=start_part_number,
            page_size=page_size,
            limit=limit,
        )

    async def list_unfinished_large_files(
        self,
        bucket_id: str,
        *,
        name_prefix: str | None = None,
        start_file_id: str | None = None,
        max_file_count: int | None = None,
    ) -> Page[File]:
        return await self._list_unfinished_large_files(
            bucket_id,
            name_prefix=name_prefix,
            start_file_id=start_file_id,
            max_file_count=max_file_count,
        )

    def iter_unfinished_large_files(
        self,
        bucket_id: str,
        *,
        name_prefix: str | None = None,
        start_file_id: str | None = None,
        page_size: int | None = None,
        limit: int | None = None,
    ) -> AsyncPagedResult[File]:
        return AsyncPagedResult(
            lambda cursor, size: self._list_unfinished_large_files(
                bucket_id, name_prefix=name_prefix, start_file_id=cursor, max_file_count=size
            ),
            start_cursor=start_file_id,
            page_size=page_size,
            limit=limit,
        )

    async def start(
        self,
        bucket_id: str,
        file_name: str,
        *,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        file_retention: Mapping[str, Any] | None = None,
        legal_hold: str | None = None,
    ) -> AsyncLargeFileUpload:
        upload = await self._start(
            bucket_id,
            file_name,
            content_type=content_type,
            file_info=file_info,
            server_side_encryption=server_side_encryption,
            file_retention=file_retention,
            legal_hold=legal_hold,
        )
        return cast(AsyncLargeFileUpload, upload)

    async def resume(
        self,
        file: File | str,
        *,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> AsyncLargeFileUpload:
        upload = await self._resume(file, server_side_encryption=server_side_encryption)
        return cast(AsyncLargeFileUpload, upload)

    async def upload_large_file(
        self,
        body: Any,
        bucket_id: str,
        file_name: str,
        *,
        part_size: int | None = None,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
    ) -> File:
        return await self._upload_large_file(
            body,
            bucket_id,
            file_name,
            part_size=part_size,
            content_type=content_type,
            file_info=file_info,
            server_side_encryption=server_side_encryption,
        )
