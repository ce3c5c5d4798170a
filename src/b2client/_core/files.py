"""Files API client: simple uploads, listing, copying, hiding and downloads."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, BinaryIO
from urllib.parse import quote

import httpx

from .._http import Request
from .._http.iter_coroutine import iter_coroutine
from .._logging import get_logger
from ..file_info import CustomInfo
from ..models import (
    CONTENT_TYPE_AUTO,
    DownloadAuthorization,
    DownloadedFile,
    DownloadOptions,
    File,
    ServerSideEncryption,
    UploadUrl,
)
from ..pagination import AsyncPagedResult, Page, PagedResult
from .large_files import GRANT_REFRESH_ERRORS
from .session import ByteRange, range_value, sse_dict
from .uploads import UploadSource, prepare_upload_source, upload_headers

if TYPE_CHECKING:
    from .session import B2Session

logger = get_logger("files")

VersionCursor = tuple[str, str | None]

# A writable binary file object, or a path saved to atomically.
DownloadSink = BinaryIO | str | os.PathLike[str]


class BaseFilesClient:
    """Base files client with shared async business logic."""

    def __init__(self, session: B2Session):
        self._session = session

    async def _get_upload_url(self, bucket_id: str) -> UploadUrl:
        data = await self._session.call_api("b2_get_upload_url", {"bucketId": bucket_id})
        return UploadUrl.model_validate(data)

    async def _send_upload(
        self,
        source: UploadSource,
        upload_url: UploadUrl,
        file_name: str,
        *,
        content_type: str,
        info: CustomInfo,
        server_side_encryption: ServerSideEncryption | None,
    ) -> File:
        headers = upload_headers(source, authorization_token=upload_url.authorization_token)
        headers["X-Bz-File-Name"] = quote(file_name, safe="/")
        headers.update(info.to_headers())
        if server_side_encryption is not None:
            headers.update(server_side_encryption.to_headers())
        request = Request(
            "POST",
            upload_url.upload_url,
            body=source.request_body(content_type=content_type),
            headers=headers,
            timeout=self._session.config.timeout,
        )
        response = await self._session.send(request)
        return File.model_validate(response.json())

    async def _upload_file(
        self,
        body: Any,
        bucket_id: str,
        file_name: str,
        *,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        upload_url: UploadUrl | None = None,
    ) -> File:
        info = CustomInfo.coerce(file_info)
        source = prepare_upload_source(body)
        max_refreshes = self._session.config.max_grant_refreshes
        refreshes = 0
        while True:
            if upload_url is None:
                upload_url = await self._get_upload_url(bucket_id)
            try:
                return await self._send_upload(
                    source,
                    upload_url,
                    file_name,
                    content_type=content_type or CONTENT_TYPE_AUTO,
                    info=info,
                    server_side_encryption=server_side_encryption,
                )
            except GRANT_REFRESH_ERRORS as exc:
                if refreshes >= max_refreshes:
                    raise
                refreshes += 1
                upload_url = None
                logger.debug("upload of %s failed (%s), requesting a new upload URL", file_name, exc)

    async def _get_file_info(self, file_id: str) -> File:
        data = await self._session.call_api("b2_get_file_info", {"fileId": file_id})
        return File.model_validate(data)

    async def _delete_file_version(
        self, file_name: str, file_id: str, *, bypass_governance: bool = False
    ) -> File:
        data = await self._session.call_api(
            "b2_delete_file_version",
            {
                "fileName": file_name,
                "fileId": file_id,
                "bypassGovernance": bypass_governance or None,
            },
        )
        return File.model_validate(data)

    async def _hide_file(self, bucket_id: str, file_name: str) -> File:
        data = await self._session.call_api(
            "b2_hide_file", {"bucketId": bucket_id, "fileName": file_name}
        )
        return File.model_validate(data)

    async def _copy_file(
        self,
        source_file_id: str,
        file_name: str,
        *,
        destination_bucket_id: str | None = None,
        range: ByteRange | None = None,
        metadata_directive: str | None = None,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        file_retention: Mapping[str, Any] | None = None,
        legal_hold: str | None = None,
        source_server_side_encryption: ServerSideEncryption | None = None,
        destination_server_side_encryption: ServerSideEncryption | None = None,
    ) -> File:
        info = CustomInfo.coerce(file_info) if file_info is not None else None
        if metadata_directive is None and (content_type is not None or info is not None):
            metadata_directive = "REPLACE"
        if metadata_directive == "REPLACE" and content_type is None:
            content_type = CONTENT_TYPE_AUTO
        data = await self._session.call_api(
            "b2_copy_file",
            {
                "sourceFileId": source_file_id,
                "fileName": file_name,
                "destinationBucketId": destination_bucket_id,
                "range": range_value(range),
                "metadataDirective": metadata_directive,
                "contentType": content_type,
                "fileInfo": info.to_dict() if info is not None else None,
                "fileRetention": file_retention,
                "legalHold": legal_hold,
                "sourceServerSideEncryption": sse_dict(source_server_side_encryption),
                "destinationServerSideEncryption": sse_dict(destination_server_side_encryption),
            },
        )
        return File.model_validate(data)

    async def _list_file_names(
        self,
        bucket_id: str,
        *,
        start_file_name: str | None = None,
        max_file_count: int | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
    ) -> Page[File]:
        data = await self._session.call_api(
            "b2_list_file_names",
            {
                "bucketId": bucket_id,
                "startFileName": start_file_name,
                "maxFileCount": max_file_count,
                "prefix": prefix,
                "delimiter": delimiter,
            },
        )
        return Page(
            items=[File.model_validate(f) for f in data.get("files", [])],
            next_cursor=data.get("nextFileName"),
        )

    async def _list_file_versions(
        self,
        bucket_id: str,
        *,
        start_file_name: str | None = None,
        start_file_id: str | None = None,
        max_file_count: int | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
    ) -> Page[File]:
        """List file versions; the page cursor is ``(nextFileName, nextFileId)``."""
        data = await self._session.call_api(
            "b2_list_file_versions",
            {
                "bucketId": bucket_id,
                "startFileName": start_file_name,
                "startFileId": start_file_id,
                "maxFileCount": max_file_count,
                "prefix": prefix,
                "delimiter": delimiter,
            },
        )
        next_name = data.get("nextFileName")
        return Page(
            items=[File.model_validate(f) for f in data.get("files", [])],
            next_cursor=(next_name, data.get("nextFileId")) if next_name is not None else None,
        )

    async def _list_versions_page(
        self,
        bucket_id: str,
        cursor: VersionCursor | None,
        page_size: int | None,
        prefix: str | None,
        delimiter: str | None,
    ) -> Page[File]:
        start_name, start_id = cursor if cursor is not None else (None, None)
        return await self._list_file_versions(
            bucket_id,
            start_file_name=start_name,
            start_file_id=start_id,
            max_file_count=page_size,
            prefix=prefix,
            delimiter=delimiter,
        )

    async def _get_download_authorization(
        self,
        bucket_id: str,
        file_name_prefix: str,
        valid_duration_in_seconds: int,
        *,
        b2_content_disposition: str | None = None,
        b2_content_language: str | None = None,
        b2_expires: str | None = None,
        b2_cache_control: str | None = None,
        b2_content_encoding: str | None = None,
        b2_content_type: str | None = None,
    ) -> DownloadAuthorization:
        data = await self._session.call_api(
            "b2_get_download_authorization",
            {
                "bucketId": bucket_id,
                "fileNamePrefix": file_name_prefix,
                "validDurationInSeconds": valid_duration_in_seconds,
                "b2ContentDisposition": b2_content_disposition,
                "b2ContentLanguage": b2_content_language,
                "b2Expires": b2_expires,
                "b2CacheControl": b2_cache_control,
                "b2ContentEncoding": b2_content_encoding,
                "b2ContentType": b2_content_type,
            },
        )
        return DownloadAuthorization.model_validate(data)

    async def _download_file_by_id(
        self,
        file_id: str,
        *,
        range: ByteRange | None = None,
        options: DownloadOptions | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        sink: DownloadSink | None = None,
        headers_only: bool = False,
    ) -> DownloadedFile:
        response = await self._session.download_by_id(
            file_id,
            byte_range=range,
            options=options,
            server_side_encryption=server_side_encryption,
            headers_only=headers_only,
            stream=sink is not None,
        )
        return await self._downloaded(response, sink, headers_only)

    async def _download_file_by_name(
        self,
        bucket_name: str,
        file_name: str,
        *,
        range: ByteRange | None = None,
        options: DownloadOptions | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        sink: DownloadSink | None = None,
        headers_only: bool = False,
    ) -> DownloadedFile:
        response = await self._session.download_by_name(
            bucket_name,
            file_name,
            byte_range=range,
            options=options,
            server_side_encryption=server_side_encryption,
            headers_only=headers_only,
            stream=sink is not None,
        )
        return await self._downloaded(response, sink, headers_only)

    async def _downloaded(
        self, response: httpx.Response, sink: DownloadSink | None, headers_only: bool
    ) -> DownloadedFile:
        if headers_only or sink is None:
            return DownloadedFile.from_response(response)
        if not isinstance(sink, (str, os.PathLike)):
            written = await self._session.copy_body(response, sink)
            logger.debug("streamed %d bytes to %r", written, sink)
            return DownloadedFile.from_response(response, content=b"")

        dst = os.fspath(sink)
        tmp = dst + ".part"
        try:
            with open(tmp, "wb") as f:
                written = await self._session.copy_body(response, f)
            os.replace(tmp, dst)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
        logger.debug("saved %d bytes to %s", written, dst)
        return DownloadedFile.from_response(response, content=b"")

    async def _update_file_legal_hold(self, file_name: str, file_id: str, legal_hold: str) -> File:
        data = await self._session.call_api(
            "b2_update_file_legal_hold",
            {"fileName": file_name, "fileId": file_id, "legalHold": legal_hold},
        )
        return File.model_validate(data)

    async def _update_file_retention(
        self,
        file_name: str,
        file_id: str,
        file_retention: Mapping[str, Any],
        *,
        bypass_governance: bool = False,
    ) -> File:
        data = await self._session.call_api(
            "b2_update_file_retention",
            {
                "fileName": file_name,
                "fileId": file_id,
                "fileRetention": dict(file_retention),
                "bypassGovernance": bypass_governance or None,
            },
        )
        return File.model_validate(data)


class FilesClient(BaseFilesClient):
    def get_upload_url(self, bucket_id: str) -> UploadUrl:
        return iter_coroutine(self._get_upload_url(bucket_id))

    def upload_file(
        self,
        body: Any,
        bucket_id: str,
        file_name: str,
        *,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        upload_url: UploadUrl | None = None,
    ) -> File:
        return iter_coroutine(
            self._upload_file(
                body,
                bucket_id,
                file_name,
                content_type=content_type,
                file_info=file_info,
                server_side_encryption=server_side_encryption,
                upload_url=upload_url,
            )
        )

    def get_file_info(self, file_id: str) -> File:
        return iter_coroutine(self._get_file_info(file_id))

    def delete_file_version(
        self, file_name: str, file_id: str, *, bypass_governance: bool = False
    ) -> File:
        return iter_coroutine(
            self._delete_file_version(file_name, file_id, bypass_governance=bypass_governance)
        )

    def hide_file(self, bucket_id: str, file_name: str) -> File:
        return iter_coroutine(self._hide_file(bucket_id, file_name))

    def copy_file(
        self,
        source_file_id: str,
        file_name: str,
        *,
        destination_bucket_id: str | None = None,
        range: ByteRange | None = None,
        metadata_directive: str | None = None,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        file_retention: Mapping[str, Any] | None = None,
        legal_hold: str | None = None,
        source_server_side_encryption: ServerSideEncryption | None = None,
        destination_server_side_encryption: ServerSideEncryption | None = None,
    ) -> File:
        return iter_coroutine(
            self._copy_file(
                source_file_id,
                file_name,
                destination_bucket_id=destination_bucket_id,
                range=range,
                metadata_directive=metadata_directive,
                content_type=content_type,
                file_info=file_info,
                file_retention=file_retention,
                legal_hold=legal_hold,
                source_server_side_encryption=source_server_side_encryption,
                destination_server_side_encryption=destination_server_side_encryption,
            )
        )

    def list_file_names(
        self,
        bucket_id: str,
        *,
        start_file_name: str | None = None,
        max_file_count: int | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
    ) -> Page[File]:
        return iter_coroutine(
            self._list_file_names(
                bucket_id,
                start_file_name=start_file_name,
                max_file_count=max_file_count,
                prefix=prefix,
                delimiter=delimiter,
            )
        )

    def iter_file_names(
        self,
        bucket_id: str,
        *,
        start_file_name: str | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
        page_size: int | None = None,
        limit: int | None = None,
    ) -> PagedResult[File]:
        return PagedResult(
            lambda cursor, size: self.list_file_names(
                bucket_id,
                start_file_name=cursor,
                max_file_count=size,
                prefix=prefix,
                delimiter=delimiter,
            ),
            start_cursor=start_file_name,
            page_size=page_size,
            limit=limit,
        )

    def list_file_versions(
        self,
        bucket_id: str,
        *,
        start_file_name: str | None = None,
        start_file_id: str | None = None,
        max_file_count: int | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
    ) -> Page[File]:
        return iter_coroutine(
            self._list_file_versions(
                bucket_id,
                start_file_name=start_file_name,
                start_file_id=start_file_id,
                max_file_count=max_file_count,
                prefix=prefix,
                delimiter=delimiter,
            )
        )

    def iter_file_versions(
        self,
        bucket_id: str,
        *,
        start_file_name: str | None = None,
        start_file_id: str | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
        page_size: int | None = None,
        limit: int | None = None,
    ) -> PagedResult[File]:
        return PagedResult(
            lambda cursor, size: iter_coroutine(
                self._list_versions_page(bucket_id, cursor, size, prefix, delimiter)
            ),
            start_cursor=(start_file_name, start_file_id) if start_file_name else None,
            page_size=page_size,
            limit=limit,
        )

    def get_download_authorization(
        self,
        bucket_id: str,
        file_name_prefix: str,
        valid_duration_in_seconds: int,
        *,
        b2_content_disposition: str | None = None,
        b2_content_language: str | None = None,
        b2_expires: str | None = None,
        b2_cache_control: str | None = None,
        b2_content_encoding: str | None = None,
        b2_content_type: str | None = None,
    ) -> DownloadAuthorization:
        return iter_coroutine(
            self._get_download_authorization(
                bucket_id,
                file_name_prefix,
                valid_duration_in_seconds,
                b2_content_disposition=b2_content_disposition,
                b2_content_language=b2_content_language,
                b2_expires=b2_expires,
                b2_cache_control=b2_cache_control,
                b2_content_encoding=b2_content_encoding,
                b2_content_type=b2_content_type,
            )
        )

    def download_file_by_id(
        self,
        file_id: str,
        *,
        range: ByteRange | None = None,
        options: DownloadOptions | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        sink: DownloadSink | None = None,
        headers_only: bool = False,
    ) -> DownloadedFile:
        """Download a file version by id.

        With ``sink`` the body is streamed to a writable binary file object or
        saved to a path, and ``content`` is left empty. ``headers_only`` sends a
        HEAD request and returns the metadata alone.
        """
        return iter_coroutine(
            self._download_file_by_id(
                file_id,
                range=range,
                options=options,
                server_side_encryption=server_side_encryption,
                sink=sink,
                headers_only=headers_only,
            )
        )

    def download_file_by_name(
        self,
        bucket_name: str,
        file_name: str,
        *,
        range: ByteRange | None = None,
        options: DownloadOptions | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        sink: DownloadSink | None = None,
        headers_only: bool = False,
    ) -> DownloadedFile:
        return iter_coroutine(
            self._download_file_by_name(
                bucket_name,
                file_name,
                range=range,
                options=options,
                server_side_encryption=server_side_encryption,
                sink=sink,
                headers_only=headers_only,
            )
        )

    def update_file_legal_hold(self, file_name: str, file_id: str, legal_hold: str) -> File:
        return iter_coroutine(self._update_file_legal_hold(file_name, file_id, legal_hold))

    def update_file_retention(
        self,
        file_name: str,
        file_id: str,
        file_retention: Mapping[str, Any],
        *,
        bypass_governance: bool = False,
    ) -> File:
        return iter_coroutine(
            self._update_file_retention(
                file_name, file_id, file_retention, bypass_governance=bypass_governance
            )
        )


class AsyncFilesClient(BaseFilesClient):
    async def get_upload_url(self, bucket_id: str) -> UploadUrl:
        return await self._get_upload_url(bucket_id)

    async def upload_file(
        self,
        body: Any,
        bucket_id: str,
        file_name: str,
        *,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        upload_url: UploadUrl | None = None,
    ) -> File:
        return await self._upload_file(
            body,
            bucket_id,
            file_name,
            content_type=content_type,
            file_info=file_info,
            server_side_encryption=server_side_encryption,
            upload_url=upload_url,
        )

    async def get_file_info(self, file_id: str) -> File:
        return await self._get_file_info(file_id)

    async def delete_file_version(
        self, file_name: str, file_id: str, *, bypass_governance: bool = False
    ) -> File:
        return await self._delete_file_version(
            file_name, file_id, bypass_governance=bypass_governance
        )

    async def hide_file(self, bucket_id: str, file_name: str) -> File:
        return await self._hide_file(bucket_id, file_name)

    async def copy_file(
        self,
        source_file_id: str,
        file_name: str,
        *,
        destination_bucket_id: str | None = None,
        range: ByteRange | None = None,
        metadata_directive: str | None = None,
        content_type: str | None = None,
        file_info: Mapping[str, str] | None = None,
        file_retention: Mapping[str, Any] | None = None,
        legal_hold: str | None = None,
        source_server_side_encryption: ServerSideEncryption | None = None,
        destination_server_side_encryption: ServerSideEncryption | None = None,
    ) -> File:
        return await self._copy_file(
            source_file_id,
            file_name,
            destination_bucket_id=destination_bucket_id,
            range=range,
            metadata_directive=metadata_directive,
            content_type=content_type,
            file_info=file_info,
            file_retention=file_retention,
            legal_hold=legal_hold,
            source_server_side_encryption=source_server_side_encryption,
            destination_server_side_encryption=destination_server_side_encryption,
        )

    async def list_file_names(
        self,
        bucket_id: str,
        *,
        start_file_name: str | None = None,
        max_file_count: int | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
    ) -> Page[File]:
        return await self._list_file_names(
            bucket_id,
            start_file_name=start_file_name,
            max_file_count=max_file_count,
            prefix=prefix,
            delimiter=delimiter,
        )

    def iter_file_names(
        self,
        bucket_id: str,
        *,
        start_file_name: str | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
        page_size: int | None = None,
        limit: int | None = None,
    ) -> AsyncPagedResult[File]:
        return AsyncPagedResult(
            lambda cursor, size: self._list_file_names(
                bucket_id,
                start_file_name=cursor,
                max_file_count=size,
                prefix=prefix,
                delimiter=delimiter,
            ),
            start_cursor=start_file_name,
            page_size=page_size,
            limit=limit,
        )

    async def list_file_versions(
        self,
        bucket_id: str,
        *,
        start_file_name: str | None = None,
        start_file_id: str | None = None,
        max_file_count: int | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
    ) -> Page[File]:
        return await self._list_file_versions(
            bucket_id,
            start_file_name=start_file_name,
            start_file_id=start_file_id,
            max_file_count=max_file_count,
            prefix=prefix,
            delimiter=delimiter,
        )

    def iter_file_versions(
        self,
        bucket_id: str,
        *,
        start_file_name: str | None = None,
        start_file_id: str | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
        page_size: int | None = None,
        limit: int | None = None,
    ) -> AsyncPagedResult[File]:
        return AsyncPagedResult(
            lambda cursor, size: self._list_versions_page(
                bucket_id, cursor, size, prefix, delimiter
            ),
            start_cursor=(start_file_name, start_file_id) if start_file_name else None,
            page_size=page_size,
            limit=limit,
        )

    async def get_download_authorization(
        self,
        bucket_id: str,
        file_name_prefix: str,
        valid_duration_in_seconds: int,
        *,
        b2_content_disposition: str | None = None,
        b2_content_language: str | None = None,
        b2_expires: str | None = None,
        b2_cache_control: str | None = None,
        b2_content_encoding: str | None = None,
        b2_content_type: str | None = None,
    ) -> DownloadAuthorization:
        return await self._get_download_authorization(
            bucket_id,
            file_name_prefix,
            valid_duration_in_seconds,
            b2_content_disposition=b2_content_disposition,
            b2_content_language=b2_content_language,
            b2_expires=b2_expires,
            b2_cache_control=b2_cache_control,
            b2_content_encoding=b2_content_encoding,
            b2_content_type=b2_content_type,
        )

    async def download_file_by_id(
        self,
        file_id: str,
        *,
        range: ByteRange | None = None,
        options: DownloadOptions | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        sink: DownloadSink | None = None,
        headers_only: bool = False,
    ) -> DownloadedFile:
        return await self._download_file_by_id(
            file_id,
            range=range,
            options=options,
            server_side_encryption=server_side_encryption,
            sink=sink,
            headers_only=headers_only,
        )

    async def download_file_by_name(
        self,
        bucket_name: str,
        file_name: str,
        *,
        range: ByteRange | None = None,
        options: DownloadOptions | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        sink: DownloadSink | None = None,
        headers_only: bool = False,
    ) -> DownloadedFile:
        return await self._download_file_by_name(
            bucket_name,
            file_name,
            range=range,
            options=options,
            server_side_encryption=server_side_encryption,
            sink=sink,
            headers_only=headers_only,
        )

    async def update_file_legal_hold(self, file_name: str, file_id: str, legal_hold: str) -> File:
        return await self._update_file_legal_hold(file_name, file_id, legal_hold)

    async def update_file_retention(
        self,
        file_name: str,
        file_id: str,
        file_retention: Mapping[str, Any],
        *,
        bypass_governance: bool = False,
    ) -> File:
        return await self._update_file_retention(
            file_name, file_id, file_retention, bypass_governance=bypass_governance
        )
