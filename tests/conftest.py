"""Shared fixtures for all tests."""

from __future__ import annotations

import base64
import hashlib
import json
from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest
import respx

MB = 1000 * 1000

AUTH_URL = "https://api.backblazeb2.com/b2api/v2/b2_authorize_account"
API_URL = "https://api001.backblazeb2.com"
DOWNLOAD_URL = "https://f001.backblazeb2.com"
UPLOAD_HOST = "https://pod-000-1016-09.backblaze.com"

KEY_ID = "0014aa9865d6f00000000000b"
APPLICATION_KEY = "K001testapplicationkey"


def error_response(status: int, code: str, message: str) -> httpx.Response:
    return httpx.Response(status, json={"status": status, "code": code, "message": message})


class FakeB2:
    """In-memory stand-in for the parts of the B2 API the large file flow uses.

    Installed as respx side effects, so the clients under test talk to it
    through their real transports.
    """

    def __init__(self, router: respx.MockRouter) -> None:
        self.router = router
        self.account_id = "4aa9865d6f0c"
        self.recommended_part_size = 100 * MB
        self.absolute_minimum_part_size = 5 * MB

        self.authorize_count = 0
        self.valid_tokens: set[str] = set()
        self.reject_all_tokens = False

        self.grant_count = 0
        self.valid_grants: set[str] = set()
        # Statuses returned (or httpx errors raised), in order, by the next part uploads.
        self.part_upload_failures: list[int | type[httpx.TransportError]] = []

        self.unfinished: dict[str, dict[str, Any]] = {}
        self.finished: dict[str, dict[str, Any]] = {}
        self._ids = 0

        router.get(AUTH_URL).mock(side_effect=self._authorize)
        self._api("b2_start_large_file", self._start_large_file)
        self._api("b2_get_upload_part_url", self._get_upload_part_url)
        self._api("b2_finish_large_file", self._finish_large_file)
        self._api("b2_cancel_large_file", self._cancel_large_file)
        self._api("b2_list_parts", self._list_parts)
        self._api("b2_list_unfinished_large_files", self._list_unfinished)
        self._api("b2_get_file_info", self._get_file_info)
        self._api("b2_copy_part", self._copy_part)
        self.upload_route = router.post(url__regex=rf"^{UPLOAD_HOST}/b2api/v2/b2_upload_part/").mock(
            side_effect=self._upload_part
        )

    # -- helpers ---------------------------------------------------------

    def route(self, api_name: str) -> respx.Route:
        return self.router.routes[api_name]

    def _api(self, api_name: str, handler: Callable[[dict[str, Any]], httpx.Response]) -> None:
        def side_effect(request: httpx.Request) -> httpx.Response:
            token = request.headers.get("Authorization")
            if self.reject_all_tokens or token not in self.valid_tokens:
                return error_response(401, "expired_auth_token", "Authorization token has expired")
            return handler(json.loads(request.content))

        self.router.post(f"{API_URL}/b2api/v2/{api_name}", name=api_name).mock(
            side_effect=side_effect
        )

    def _new_id(self, prefix: str) -> str:
        self._ids += 1
        return f"{prefix}_z27c88f1d182b150646ff0b16_f2000{self._ids:08d}"

    def expire_tokens(self) -> None:
        self.valid_tokens.clear()

    def parts_of(self, file_id: str) -> dict[int, dict[str, Any]]:
        entry = self.unfinished.get(file_id)
        return dict(entry["parts"]) if entry else {}

    # -- handlers --------------------------------------------------------

    def _authorize(self, request: httpx.Request) -> httpx.Response:
        expected = base64.b64encode(f"{KEY_ID}:{APPLICATION_KEY}".encode()).decode()
        if request.headers.get("Authorization") != f"Basic {expected}":
            return error_response(401, "unauthorized", "invalid application key")
        self.authorize_count += 1
        token = f"4_account_token_{self.authorize_count}"
        self.valid_tokens = {token}
        return httpx.Response(
            200,
            json={
                "accountId": self.account_id,
                "authorizationToken": token,
                "apiUrl": API_URL,
                "downloadUrl": DOWNLOAD_URL,
                "s3ApiUrl": "https://s3.us-west-001.backblazeb2.com",
                "recommendedPartSize": self.recommended_part_size,
                "absoluteMinimumPartSize": self.absolute_minimum_part_size,
                "allowed": {"capabilities": ["listBuckets", "writeFiles"], "bucketId": None},
            },
        )

    def _file_json(self, file_id: str, entry: dict[str, Any], action: str) -> dict[str, Any]:
        return {
            "fileId": file_id,
            "fileName": entry["fileName"],
            "accountId": self.account_id,
            "bucketId": entry["bucketId"],
            "contentType": entry["contentType"],
            "contentLength": entry.get("contentLength", 0),
            "contentSha1": entry.get("contentSha1", "none"),
            "fileInfo": entry["fileInfo"],
            "action": action,
            "uploadTimestamp": 1700000000000,
        }

    def _start_large_file(self, body: dict[str, Any]) -> httpx.Response:
        if len(body.get("fileInfo", {})) > 10:
            return error_response(400, "bad_request", "too many file info entries")
        file_id = self._new_id("4")
        entry = {
            "fileName": body["fileName"],
            "bucketId": body["bucketId"],
            "contentType": body["contentType"],
            "fileInfo": body.get("fileInfo", {}),
            "parts": {},
        }
        self.unfinished[file_id] = entry
        return httpx.Response(200, json=self._file_json(file_id, entry, "start"))

    def _get_upload_part_url(self, body: dict[str, Any]) -> httpx.Response:
        file_id = body["fileId"]
        if file_id not in self.unfinished:
            return error_response(400, "bad_request", f"No active upload for: {file_id}")
        self.grant_count += 1
        grant = f"4_grant_token_{self.grant_count}"
        self.valid_grants.add(grant)
        return httpx.Response(
            200,
            json={
                "fileId": file_id,
                "uploadUrl": f"{UPLOAD_HOST}/b2api/v2/b2_upload_part/{file_id}/0037",
                "authorizationToken": grant,
            },
        )

    def _upload_part(self, request: httpx.Request) -> httpx.Response:
        if self.part_upload_failures:
            status = self.part_upload_failures.pop(0)
            if not isinstance(status, int):
                raise status("upload connection dropped", request=request)
            if status == 401:
                return error_response(401, "expired_auth_token", "upload token expired")
            return error_response(status, "service_unavailable", "no tomes available")
        grant = request.headers.get("Authorization")
        if grant not in self.valid_grants:
            return error_response(401, "bad_auth_token", "invalid upload token")
        file_id = request.url.path.split("/")[-2]
        entry = self.unfinished.get(file_id)
        if entry is None:
            return error_response(400, "bad_request", f"No active upload for: {file_id}")
        data = request.content
        sha1 = hashlib.sha1(data).hexdigest()
        if request.headers.get("X-Bz-Content-Sha1") != sha1:
            return error_response(400, "bad_request", "Sha1 did not match data received")
        if int(request.headers["Content-Length"]) != len(data):
            return error_response(400, "bad_request", "Content-Length did not match data received")
        part_number = int(request.headers["X-Bz-Part-Number"])
        if not 1 <= part_number <= 10000:
            return error_response(400, "bad_value", f"bad part number: {part_number}")
        part = {
            "fileId": file_id,
            "partNumber": part_number,
            "contentLength": len(data),
            "contentSha1": sha1,
            "contentMd5": hashlib.md5(data).hexdigest(),
            "uploadTimestamp": 1700000000000 + part_number,
        }
        entry["parts"][part_number] = part
        return httpx.Response(200, json=part)

    def _finish_large_file(self, body: dict[str, Any]) -> httpx.Response:
        file_id = body["fileId"]
        entry = self.unfinished.get(file_id)
        if entry is None:
            return error_response(400, "bad_request", f"No active upload for: {file_id}")
        sha1s = body["partSha1Array"]
        parts = entry["parts"]
        for number in range(1, len(sha1s) + 1):
            if number not in parts:
                return error_response(400, "bad_request", f"Part number {number} has not been uploaded")
            if parts[number]["contentSha1"] != sha1s[number - 1]:
                return error_response(400, "bad_request", f"Part {number} sha1 does not match")
        if len(sha1s) != len(parts):
            return error_response(400, "bad_request", "partSha1Array does not cover every part")
        del self.unfinished[file_id]
        entry["contentLength"] = sum(p["contentLength"] for p in parts.values())
        self.finished[file_id] = entry
        return httpx.Response(200, json=self._file_json(file_id, entry, "upload"))

    def _cancel_large_file(self, body: dict[str, Any]) -> httpx.Response:
        file_id = body["fileId"]
        entry = self.unfinished.pop(file_id, None)
        if entry is None:
            return error_response(400, "bad_request", f"No active upload for: {file_id}")
        return httpx.Response(
            200,
            json={
                "fileId": file_id,
                "accountId": self.account_id,
                "bucketId": entry["bucketId"],
                "fileName": entry["fileName"],
            },
        )

    def _list_parts(self, body: dict[str, Any]) -> httpx.Response:
        entry = self.unfinished.get(body["fileId"])
        if entry is None:
            return error_response(400, "bad_request", f"No active upload for: {body['fileId']}")
        start = body.get("startPartNumber", 1)
        count = body.get("maxPartCount", 100)
        numbers = sorted(n for n in entry["parts"] if n >= start)
        page, rest = numbers[:count], numbers[count:]
        return httpx.Response(
            200,
            json={
                "parts": [entry["parts"][n] for n in page],
                "nextPartNumber": rest[0] if rest else None,
            },
        )

    def _list_unfinished(self, body: dict[str, Any]) -> httpx.Response:
        prefix = body.get("namePrefix", "")
        start = body.get("startFileId")
        count = body.get("maxFileCount", 100)
        ids = sorted(
            file_id
            for file_id, entry in self.unfinished.items()
            if entry["bucketId"] == body["bucketId"]
            and entry["fileName"].startswith(prefix)
            and (start is None or file_id >= start)
        )
        page, rest = ids[:count], ids[count:]
        return httpx.Response(
            200,
            json={
                "files": [self._file_json(i, self.unfinished[i], "start") for i in page],
                "nextFileId": rest[0] if rest else None,
            },
        )

    def _copy_part(self, body: dict[str, Any]) -> httpx.Response:
        entry = self.unfinished.get(body["largeFileId"])
        if entry is None:
            return error_response(400, "bad_request", f"No active upload for: {body['largeFileId']}")
        source = self.finished.get(body["sourceFileId"])
        if source is None:
            return error_response(400, "bad_request", f"Invalid sourceFileId: {body['sourceFileId']}")
        byte_range = body.get("range")
        if byte_range is None:
            length = source["contentLength"]
        else:
            start, end = byte_range.removeprefix("bytes=").split("-")
            length = int(end) - int(start) + 1
        part_number = body["partNumber"]
        part = {
            "fileId": body["largeFileId"],
            "partNumber": part_number,
            "contentLength": length,
            "contentSha1": hashlib.sha1(f"{body['sourceFileId']}:{byte_range}".encode()).hexdigest(),
            "uploadTimestamp": 1700000000000 + part_number,
        }
        entry["parts"][part_number] = part
        return httpx.Response(200, json=part)

    def _get_file_info(self, body: dict[str, Any]) -> httpx.Response:
        file_id = body["fileId"]
        if file_id in self.unfinished:
            return httpx.Response(200, json=self._file_json(file_id, self.unfinished[file_id], "start"))
        if file_id in self.finished:
            return httpx.Response(200, json=self._file_json(file_id, self.finished[file_id], "upload"))
        return error_response(404, "not_found", f"File not present: {file_id}")


@pytest.fixture
def mock_env_clear(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Clear B2 environment variables so tests never pick up real credentials."""
    for var in (
        "B2_APPLICATION_KEY_ID",
        "B2_APPLICATION_KEY",
        "B2_API_URL",
        "B2_MAX_RETRIES",
        "B2_RETRY_INTERVAL",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def fake_b2(mock_env_clear: None) -> Generator[FakeB2, None, None]:
    with respx.mock(assert_all_called=False) as router:
        yield FakeB2(router)


@pytest.fixture
def client_kwargs() -> dict[str, Any]:
    return {
        "application_key_id": KEY_ID,
        "application_key": APPLICATION_KEY,
        "retry_interval": 0.0,
    }
