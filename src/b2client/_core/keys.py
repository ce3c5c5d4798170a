"""Application keys API client."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from .._http.iter_coroutine import iter_coroutine
from ..models import Key
from ..pagination import AsyncPagedResult, Page, PagedResult

if TYPE_CHECKING:
    from .session import B2Session


class BaseKeysClient:
    """Base keys client with shared async business logic."""

    def __init__(self, session: B2Session):
        self._session = session

    async def _list(
        self,
        *,
        max_key_count: int | None = None,
        start_application_key_id: str | None = None,
    ) -> Page[Key]:
        authorization = await self._session.current_authorization()
        data = await self._session.call_api(
            "b2_list_keys",
            {
                "accountId": authorization.account_id,
                "maxKeyCount": max_key_count,
                "startApplicationKeyId": start_application_key_id,
            },
        )
        return Page(
            items=[Key.model_validate(k) for k in data.get("keys", [])],
            next_cursor=data.get("nextApplicationKeyId"),
        )

    async def _create(
        self,
        capabilities: Iterable[str],
        key_name: str,
        *,
        valid_duration_in_seconds: int | None = None,
        bucket_id: str | None = None,
        name_prefix: str | None = None,
    ) -> Key:
        authorization = await self._session.current_authorization()
        data = await self._session.call_api(
            "b2_create_key",
            {
                "accountId": authorization.account_id,
                "capabilities": list(capabilities),
                "keyName": key_name,
                "validDurationInSeconds": valid_duration_in_seconds,
                "bucketId": bucket_id,
                "namePrefix": name_prefix,
            },
        )
        return Key.model_validate(data)

    async def _delete(self, application_key_id: str) -> Key:
        data = await self._session.call_api(
            "b2_delete_key", {"applicationKeyId": application_key_id}
        )
        return Key.model_validate(data)


class KeysClient(BaseKeysClient):
    def list(
        self,
        *,
        max_key_count: int | None = None,
        start_application_key_id: str | None = None,
    ) -> Page[Key]:
        return iter_coroutine(
            self._list(
                max_key_count=max_key_count, start_application_key_id=start_application_key_id
            )
        )

    def iter(
        self,
        *,
        start_application_key_id: str | None = None,
        page_size: int | None = None,
        limit: int | None = None,
    ) -> PagedResult[Key]:
        return PagedResult(
            lambda cursor, size: self.list(max_key_count=size, start_application_key_id=cursor),
            start_cursor=start_application_key_id,
            page_size=page_size,
            limit=limit,
        )

    def create(
        self,
        capabilities: Iterable[str],
        key_name: str,
        *,
        valid_duration_in_seconds: int | None = None,
        bucket_id: str | None = None,
        name_prefix: str | None = None,
    ) -> Key:
        return iter_coroutine(
            self._create(
                capabilities,
                key_name,
                valid_duration_in_seconds=valid_duration_in_seconds,
                bucket_id=bucket_id,
                name_prefix=name_prefix,
            )
        )

    def delete(self, application_key_id: str) -> Key:
        return iter_coroutine(self._delete(application_key_id))


class AsyncKeysClient(BaseKeysClient):
    async def list(
        self,
        *,
        max_key_count: int | None = None,
        start_application_key_id: str | None = None,
    ) -> Page[Key]:
        return await self._list(
            max_key_count=max_key_count, start_application_key_id=start_application_key_id
        )

    def iter(
        self,
        *,
        start_application_key_id: str | None = None,
        page_size: int | None = None,
        limit: int | None = None,
    ) -> AsyncPagedResult[Key]:
        return AsyncPagedResult(
            lambda cursor, size: self._list(max_key_count=size, start_application_key_id=cursor),
            start_cursor=start_application_key_id,
            page_size=page_size,
            limit=limit,
        )

    async def create(
        self,
        capabilities: Iterable[str],
        key_name: str,
        *,
        valid_duration_in_seconds: int | None = None,
        bucket_id: str | None = None,
        name_prefix: str | None = None,
    ) -> Key:
        return await self._create(
            capabilities,
            key_name,
            valid_duration_in_seconds=valid_duration_in_seconds,
            bucket_id=bucket_id,
            name_prefix=name_prefix,
        )

    async def delete(self, application_key_id: str) -> Key:
        return await self._delete(application_key_id)
