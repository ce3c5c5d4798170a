"""Buckets API client."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from .._http.iter_coroutine import iter_coroutine
from ..models import Bucket, ServerSideEncryption
from .session import sse_dict

if TYPE_CHECKING:
    from .session import B2Session


class BaseBucketsClient:
    """Base buckets client with shared async business logic."""

    def __init__(self, session: B2Session):
        self._session = session

    async def _account_id(self) -> str:
        authorization = await self._session.current_authorization()
        return authorization.account_id

    async def _list(
        self,
        *,
        bucket_id: str | None = None,
        bucket_name: str | None = None,
        bucket_types: Iterable[str] | None = None,
    ) -> list[Bucket]:
        data = await self._session.call_api(
            "b2_list_buckets",
            {
                "accountId": await self._account_id(),
                "bucketId": bucket_id,
                "bucketName": bucket_name,
                "bucketTypes": list(bucket_types) if bucket_types is not None else None,
            },
        )
        return [Bucket.model_validate(b) for b in data.get("buckets", [])]

    async def _create(
        self,
        bucket_name: str,
        bucket_type: str,
        *,
        bucket_info: Mapping[str, str] | None = None,
        cors_rules: Sequence[Mapping[str, Any]] | None = None,
        lifecycle_rules: Sequence[Mapping[str, Any]] | None = None,
        file_lock_enabled: bool | None = None,
        default_server_side_encryption: ServerSideEncryption | None = None,
    ) -> Bucket:
        data = await self._session.call_api(
            "b2_create_bucket",
            {
                "accountId": await self._account_id(),
                "bucketName": bucket_name,
                "bucketType": bucket_type,
                "bucketInfo": dict(bucket_info) if bucket_info is not None else None,
                "corsRules": [dict(r) for r in cors_rules] if cors_rules is not None else None,
                "lifecycleRules": (
                    [dict(r) for r in lifecycle_rules] if lifecycle_rules is not None else None
                ),
                "fileLockEnabled": file_lock_enabled,
                "defaultServerSideEncryption": sse_dict(default_server_side_encryption),
            },
        )
        return Bucket.model_validate(data)

    async def _update(
        self,
        bucket_id: str,
        *,
        bucket_type: str | None = None,
        bucket_info: Mapping[str, str] | None = None,
        cors_rules: Sequence[Mapping[str, Any]] | None = None,
        lifecycle_rules: Sequence[Mapping[str, Any]] | None = None,
        default_server_side_encryption: ServerSideEncryption | None = None,
        if_revision_is: int | None = None,
    ) -> Bucket:
        data = await self._session.call_api(
            "b2_update_bucket",
            {
                "accountId": await self._account_id(),
                "bucketId": bucket_id,
                "bucketType": bucket_type,
                "bucketInfo": dict(bucket_info) if bucket_info is not None else None,
                "corsRules": [dict(r) for r in cors_rules] if cors_rules is not None else None,
                "lifecycleRules": (
                    [dict(r) for r in lifecycle_rules] if lifecycle_rules is not None else None
                ),
                "defaultServerSideEncryption": sse_dict(default_server_side_encryption),
                "ifRevisionIs": if_revision_is,
            },
        )
        return Bucket.model_validate(data)

    async def _delete(self, bucket_id: str) -> Bucket:
        data = await self._session.call_api(
            "b2_delete_bucket",
            {"accountId": await self._account_id(), "bucketId": bucket_id},
        )
        return Bucket.model_validate(data)


class BucketsClient(BaseBucketsClient):
    def list(
        self,
        *,
        bucket_id: str | None = None,
        bucket_name: str | None = None,
        bucket_types: Iterable[str] | None = None,
    ) -> list[Bucket]:
        return iter_coroutine(
            self._list(bucket_id=bucket_id, bucket_name=bucket_name, bucket_types=bucket_types)
        )

    def create(
        self,
        bucket_name: str,
        bucket_type: str,
        *,
        bucket_info: Mapping[str, str] | None = None,
        cors_rules: Sequence[Mapping[str, Any]] | None = None,
        lifecycle_rules: Sequence[Mapping[str, Any]] | None = None,
        file_lock_enabled: bool | None = None,
        default_server_side_encryption: ServerSideEncryption | None = None,
    ) -> Bucket:
        return iter_coroutine(
            self._create(
                bucket_name,
                bucket_type,
                bucket_info=bucket_info,
                cors_rules=cors_rules,
                lifecycle_rules=lifecycle_rules,
                file_lock_enabled=file_lock_enabled,
                default_server_side_encryption=default_server_side_encryption,
            )
        )

    def update(
        self,
        bucket_id: str,
        *,
        bucket_type: str | None = None,
        bucket_info: Mapping[str, str] | None = None,
        cors_rules: Sequence[Mapping[str, Any]] | None = None,
        lifecycle_rules: Sequence[Mapping[str, Any]] | None = None,
        default_server_side_encryption: ServerSideEncryption | None = None,
        if_revision_is: int | None = None,
    ) -> Bucket:
        return iter_coroutine(
            self._update(
                bucket_id,
                bucket_type=bucket_type,
                bucket_info=bucket_info,
                cors_rules=cors_rules,
                lifecycle_rules=lifecycle_rules,
                default_server_side_encryption=default_server_side_encryption,
                if_revision_is=if_revision_is,
            )
        )

    def delete(self, bucket_id: str) -> Bucket:
        return iter_coroutine(self._delete(bucket_id))


class AsyncBucketsClient(BaseBucketsClient):
    async def list(
        self,
        *,
        bucket_id: str | None = None,
        bucket_name: str | None = None,
        bucket_types: Iterable[str] | None = None,
    ) -> list[Bucket]:
        return await self._list(
            bucket_id=bucket_id, bucket_name=bucket_name, bucket_types=bucket_types
        )

    async def create(
        self,
        bucket_name: str,
        bucket_type: str,
        *,
        bucket_info: Mapping[str, str] | None = None,
        cors_rules: Sequence[Mapping[str, Any]] | None = None,
        lifecycle_rules: Sequence[Mapping[str, Any]] | None = None,
        file_lock_enabled: bool | None = None,
        default_server_side_encryption: ServerSideEncryption | None = None,
    ) -> Bucket:
        return await self._create(
            bucket_name,
            bucket_type,
            bucket_info=bucket_info,
            cors_rules=cors_rules,
            lifecycle_rules=lifecycle_rules,
            file_lock_enabled=file_lock_enabled,
            default_server_side_encryption=default_server_side_encryption,
        )

    async def update(
        self,
        bucket_id: str,
        *,
        bucket_type: str | None = None,
        bucket_info: Mapping[str, str] | None = None,
        cors_rules: Sequence[Mapping[str, Any]] | None = None,
        lifecycle_rules: Sequence[Mapping[str, Any]] | None = None,
        default_server_side_encryption: ServerSideEncryption | None = None,
        if_revision_is: int | None = None,
    ) -> Bucket:
        return await self._update(
            bucket_id,
            bucket_type=bucket_type,
            bucket_info=bucket_info,
            cors_rules=cors_rules,
            lifecycle_rules=lifecycle_rules,
            default_server_side_encryption=default_server_side_encryption,
            if_revision_is=if_revision_is,
        )

    async def delete(self, bucket_id: str) -> Bucket:
        return await self._delete(bucket_id)
