"""Tests for client.buckets and client.keys."""

from __future__ import annotations

import json

import httpx
import pytest

from b2client import AsyncB2Client, B2Client, BucketAlreadyExistsError, BucketNotEmptyError

from conftest import API_URL

BUCKET = {
    "accountId": "4aa9865d6f0c",
    "bucketId": "e73ede9c9c8412db49f60715",
    "bucketName": "my-bucket",
    "bucketType": "allPrivate",
    "bucketInfo": {},
    "corsRules": [],
    "lifecycleRules": [],
    "revision": 1,
    "options": ["s3"],
}


def _sent_json(route) -> dict:
    return json.loads(route.calls.last.request.content)


class TestBuckets:
    def test_list_sends_account_id(self, fake_b2, client_kwargs) -> None:
        route = fake_b2.router.post(f"{API_URL}/b2api/v2/b2_list_buckets").mock(
            return_value=httpx.Response(200, json={"buckets": [BUCKET]})
        )
        with B2Client(**client_kwargs) as client:
            buckets = client.buckets.list(bucket_name="my-bucket")

        assert [b.bucket_name for b in buckets] == ["my-bucket"]
        assert _sent_json(route) == {"accountId": "4aa9865d6f0c", "bucketName": "my-bucket"}

    def test_create_duplicate(self, fake_b2, client_kwargs) -> None:
        fake_b2.router.post(f"{API_URL}/b2api/v2/b2_create_bucket").mock(
            return_value=httpx.Response(
                400,
                json={"status": 400, "code": "duplicate_bucket_name", "message": "exists"},
            )
        )
        with B2Client(**client_kwargs) as client:
            with pytest.raises(BucketAlreadyExistsError):
                client.buckets.create("my-bucket", "allPrivate")

    def test_update_with_revision(self, fake_b2, client_kwargs) -> None:
        route = fake_b2.router.post(f"{API_URL}/b2api/v2/b2_update_bucket").mock(
            return_value=httpx.Response(200, json={**BUCKET, "bucketType": "allPublic", "revision": 2})
        )
        with B2Client(**client_kwargs) as client:
            bucket = client.buckets.update(BUCKET["bucketId"], bucket_type="allPublic", if_revision_is=1)

        assert bucket.revision == 2
        assert _sent_json(route)["ifRevisionIs"] == 1

    @pytest.mark.asyncio
    async def test_delete_non_empty(self, fake_b2, client_kwargs) -> None:
        fake_b2.router.post(f"{API_URL}/b2api/v2/b2_delete_bucket").mock(
            return_value=httpx.Response(
                400,
                json={"status": 400, "code": "cannot_delete_non_empty_bucket", "message": "not empty"},
            )
        )
        async with AsyncB2Client(**client_kwargs) as client:
            with pytest.raises(BucketNotEmptyError):
                await client.buckets.delete(BUCKET["bucketId"])


def _key(n: int) -> dict:
    return {
        "accountId": "4aa9865d6f0c",
        "applicationKeyId": f"0014aa9865d6f0000000000{n:02d}",
        "keyName": f"key-{n}",
        "capabilities": ["listFiles", "readFiles"],
        "expirationTimestamp": None,
        "bucketId": None,
        "namePrefix": None,
        "options": ["s3"],
    }


class TestKeys:
    def test_iter_pages_by_application_key_id(self, fake_b2, client_kwargs) -> None:
        def list_keys(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            if body.get("startApplicationKeyId") is None:
                return httpx.Response(
                    200,
                    json={"keys": [_key(1), _key(2)], "nextApplicationKeyId": _key(3)["applicationKeyId"]},
                )
            return httpx.Response(200, json={"keys": [_key(3)], "nextApplicationKeyId": None})

        fake_b2.router.post(f"{API_URL}/b2api/v2/b2_list_keys").mock(side_effect=list_keys)
        with B2Client(**client_kwargs) as client:
            names = [k.key_name for k in client.keys.iter(page_size=2)]

        assert names == ["key-1", "key-2", "key-3"]

    @pytest.mark.asyncio
    async def test_create_and_delete(self, fake_b2, client_kwargs) -> None:
        create = fake_b2.router.post(f"{API_URL}/b2api/v2/b2_create_key").mock(
            return_value=httpx.Response(200, json={**_key(7), "applicationKey": "K001secret"})
        )
        fake_b2.router.post(f"{API_URL}/b2api/v2/b2_delete_key").mock(
            return_value=httpx.Response(200, json=_key(7))
        )
        async with AsyncB2Client(**client_kwargs) as client:
            key = await client.keys.create(["listFiles"], "key-7", valid_duration_in_seconds=86400)
            deleted = await client.keys.delete(key.application_key_id)

        assert key.application_key == "K001secret"
        assert deleted.application_key is None
        assert _sent_json(create) == {
            "accountId": "4aa9865d6f0c",
            "capabilities": ["listFiles"],
            "keyName": "key-7",
            "validDurationInSeconds": 86400,
        }
