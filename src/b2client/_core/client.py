"""B2 API clients with namespaced sub-clients."""

from __future__ import annotations

import time
from typing import Any

import anyio
import httpx

from .._http import AsyncTransport, BlockingTransport
from .._http.iter_coroutine import iter_coroutine
from ..models import AccountAuthorization
from .buckets import AsyncBucketsClient, BucketsClient
from .config import ClientConfig
from .files import AsyncFilesClient, FilesClient
from .keys import AsyncKeysClient, KeysClient
from .large_files import AsyncLargeFilesClient, LargeFilesClient
from .session import B2Session


class B2Client:
    """Synchronous B2 SDK client.

    Credentials fall back to ``B2_APPLICATION_KEY_ID`` / ``B2_APPLICATION_KEY``.
    The account is authorized lazily on the first call.
    """

    def __init__(
        self,
        application_key_id: str | None = None,
        application_key: str | None = None,
        *,
        api_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_interval: float | None = None,
        max_grant_refreshes: int | None = None,
        headers: dict[str, str] | None = None,
        http_client: httpx.Client | None = None,
    ):
        self._config = ClientConfig.from_env(
            application_key_id=application_key_id,
            application_key=application_key,
            api_url=api_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_interval=retry_interval,
            max_grant_refreshes=max_grant_refreshes,
            headers=headers,
        )
        self._transport = BlockingTransport(
            timeout=self._config.timeout, headers=self._config.headers, client=http_client
        )
        self._session = B2Session(self._config, self._transport, sleep_fn=time.sleep)
        self.files = FilesClient(self._session)
        self.large_files = LargeFilesClient(self._session)
        self.buckets = BucketsClient(self._session)
        self.keys = KeysClient(self._session)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def authorization(self) -> AccountAuthorization | None:
        return self._session.authorization

    def authorize_account(self) -> AccountAuthorization:
        return iter_coroutine(self._session.authorize_account())

    def close(self) -> None:
        iter_coroutine(self._session.close())

    def __enter__(self) -> B2Client:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class AsyncB2Client:
    """Asynchronous B2 SDK client."""

    def __init__(
        self,
        application_key_id: str | None = None,
        application_key: str | None = None,
        *,
        api_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_interval: float | None = None,
        max_grant_refreshes: int | None = None,
        headers: dict[str, str] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._config = ClientConfig.from_env(
            application_key_id=application_key_id,
            application_key=application_key,
            api_url=api_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_interval=retry_interval,
            max_grant_refreshes=max_grant_refreshes,
            headers=headers,
        )
        self._transport = AsyncTransport(
            timeout=self._config.timeout, headers=self._config.headers, client=http_client
        )
        self._session = B2Session(self._config, self._transport, sleep_fn=anyio.sleep)
        self.files = AsyncFilesClient(self._session)
        self.large_files = AsyncLargeFilesClient(self._session)
        self.buckets = AsyncBucketsClient(self._session)
        self.keys = AsyncKeysClient(self._session)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def authorization(self) -> AccountAuthorization | None:
        return self._session.authorization

    async def authorize_account(self) -> AccountAuthorization:
        return await self._session.authorize_account()

    async def close(self) -> None:
        await self._session.close()

    async def __aenter__(self) -> AsyncB2Client:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
