"""Account session: authorization cache plus the request pipeline."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, BinaryIO
from urllib.parse import quote

import httpx

from .._http import (
    ErrorInterceptor,
    JSONBody,
    LoggingInterceptor,
    ReauthorizeInterceptor,
    Request,
    RetryInterceptor,
    SleepFn,
    api_endpoint,
    build_pipeline,
    transport_handler,
)
from .._http.config import API_VERSION_PATH
from .._http.transport import BaseTransport
from .._logging import configure_from_env, get_logger
from ..errors import B2ConnectionError, B2TimeoutError
from ..models import AccountAuthorization, DownloadOptions, ServerSideEncryption
from .config import ClientConfig

logger = get_logger("session")

ByteRange = tuple[int, int] | str


def compact(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Drop unset (``None``) optional fields from a request body."""
    return {key: value for key, value in fields.items() if value is not None}


def range_value(byte_range: ByteRange | None) -> str | None:
    """Render a byte range as ``bytes=start-end`` (both ends inclusive)."""
    if byte_range is None or isinstance(byte_range, str):
        return byte_range
    start, end = byte_range
    return f"bytes={start}-{end}"


def range_header(byte_range: ByteRange | None) -> dict[str, str]:
    value = range_value(byte_range)
    return {"Range": value} if value is not None else {}


def sse_dict(sse: ServerSideEncryption | None) -> dict[str, Any] | None:
    return sse.to_dict() if sse is not None else None


class B2Session:
    """Shared state behind every sub-client of one :class:`B2Client`.

    Holds the account authorization, re-authorizing on demand, and sends
    every request through the interceptor pipeline::

        ErrorInterceptor -> ReauthorizeInterceptor -> RetryInterceptor
            -> LoggingInterceptor -> transport
    """

    def __init__(self, config: ClientConfig, transport: BaseTransport, *, sleep_fn: SleepFn):
        configure_from_env()
        self.config = config
        self._transport = transport
        self._authorization: AccountAuthorization | None = None
        self._handler = build_pipeline(
            [
                ErrorInterceptor(),
                ReauthorizeInterceptor(self),
                RetryInterceptor(
                    max_retries=config.max_retries,
                    retry_interval=config.retry_interval,
                    sleep_fn=sleep_fn,
                ),
                LoggingInterceptor(),
            ],
            transport_handler(transport),
        )

    @property
    def authorization(self) -> AccountAuthorization | None:
        return self._authorization

    async def authorize_account(self) -> AccountAuthorization:
        request = Request(
            "GET",
            api_endpoint(self.config.api_url, "b2_authorize_account"),
            headers={"Authorization": self.config.basic_auth_header()},
            timeout=self.config.timeout,
        )
        response = await self._handler(request)
        self._authorization = AccountAuthorization.model_validate(response.json())
        logger.debug(
            "authorized account %s (api %s)",
            self._authorization.account_id,
            self._authorization.api_url,
        )
        return self._authorization

    async def current_authorization(self) -> AccountAuthorization:
        if self._authorization is None:
            return await self.authorize_account()
        return self._authorization

    async def reauthorize(self) -> AccountAuthorization:
        self._authorization = None
        return await self.authorize_account()

    async def call_api(self, api_name: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        """POST ``payload`` to a native API call and return the decoded JSON."""

        def resolve(authorization: AccountAuthorization) -> str:
            return api_endpoint(authorization.api_url, api_name)

        request = Request(
            "POST",
            body=JSONBody(compact(payload)),
            timeout=self.config.timeout,
            resolve_url=resolve,
        )
        response = await self._handler(request)
        return response.json()

    async def download_by_id(
        self,
        file_id: str,
        *,
        byte_range: ByteRange | None = None,
        options: DownloadOptions | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        headers_only: bool = False,
        stream: bool = False,
    ) -> httpx.Response:
        def resolve(authorization: AccountAuthorization) -> str:
            return f"{authorization.download_url.rstrip('/')}{API_VERSION_PATH}/b2_download_file_by_id"

        return await self._download(
            resolve,
            {"fileId": file_id},
            byte_range=byte_range,
            options=options,
            server_side_encryption=server_side_encryption,
            headers_only=headers_only,
            stream=stream,
        )

    async def download_by_name(
        self,
        bucket_name: str,
        file_name: str,
        *,
        byte_range: ByteRange | None = None,
        options: DownloadOptions | None = None,
        server_side_encryption: ServerSideEncryption | None = None,
        headers_only: bool = False,
        stream: bool = False,
    ) -> httpx.Response:
        path = f"/file/{quote(bucket_name, safe='')}/{quote(file_name, safe='/')}"

        def resolve(authorization: AccountAuthorization) -> str:
            return authorization.download_url.rstrip("/") + path

        return await self._download(
            resolve,
            {},
            byte_range=byte_range,
            options=options,
            server_side_encryption=server_side_encryption,
            headers_only=headers_only,
            stream=stream,
        )

    async def _download(
        self,
        resolve: Callable[[AccountAuthorization], str],
        params: dict[str, Any],
        *,
        byte_range: ByteRange | None,
        options: DownloadOptions | None,
        server_side_encryption: ServerSideEncryption | None,
        headers_only: bool,
        stream: bool,
    ) -> httpx.Response:
        if options is not None:
            params.update(options.to_dict())
        headers = range_header(byte_range)
        if server_side_encryption is not None:
            headers.update(server_side_encryption.download_headers())
        request = Request(
            "HEAD" if headers_only else "GET",
            params=params or None,
            headers=headers,
            timeout=self.config.timeout,
            resolve_url=resolve,
            stream=stream and not headers_only,
        )
        return await self._handler(request)

    async def copy_body(self, response: httpx.Response, sink: BinaryIO) -> int:
        """Drain a streamed download into ``sink``."""
        try:
            return await self._transport.copy_body(response, sink)
        except httpx.TimeoutException as exc:
            raise B2TimeoutError(f"reading {response.url} timed out") from exc
        except httpx.TransportError as exc:
            raise B2ConnectionError(f"reading {response.url} failed: {exc}") from exc

    async def send(self, request: Request) -> httpx.Response:
        """Send a request that carries its own URL and token (upload URLs)."""
        return await self._handler(request)

    async def close(self) -> None:
        await self._transport.close()
