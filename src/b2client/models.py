"""Wire models for B2 API responses."""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal
from urllib.parse import unquote

import httpx
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer

from .file_info import FILE_INFO_HEADER_PREFIX, CustomInfo

CONTENT_TYPE_AUTO = "b2/x-auto"

FileAction = Literal["start", "upload", "hide", "folder", "copy"]
BucketType = Literal["allPublic", "allPrivate", "snapshot", "shared", "restricted"]

# fileInfo is parsed into the capped CustomInfo mapping and dumped back as a plain dict.
FileInfo = Annotated[
    CustomInfo,
    BeforeValidator(CustomInfo.coerce),
    PlainSerializer(lambda info: info.to_dict(), return_type=dict[str, str]),
]


class B2Model(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True, frozen=True, extra="ignore", arbitrary_types_allowed=True
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the API's JSON shape, leaving out unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ServerSideEncryption(B2Model):
    """Server-side encryption settings (SSE-B2 or SSE-C)."""

    mode: Literal["SSE-B2", "SSE-C"] | None = None
    algorithm: str | None = "AES256"
    customer_key: str | None = Field(default=None, alias="customerKey")
    customer_key_md5: str | None = Field(default=None, alias="customerKeyMd5")

    @classmethod
    def sse_b2(cls) -> ServerSideEncryption:
        return cls(mode="SSE-B2")

    @classmethod
    def sse_c(cls, key: bytes) -> ServerSideEncryption:
        """SSE-C settings for a raw 256-bit customer key."""
        return cls(
            mode="SSE-C",
            customer_key=base64.b64encode(key).decode(),
            customer_key_md5=base64.b64encode(hashlib.md5(key).digest()).decode(),
        )

    def to_headers(self) -> dict[str, str]:
        """Headers for upload calls (``b2_upload_file`` / ``b2_upload_part``)."""
        if self.mode == "SSE-B2":
            return {"X-Bz-Server-Side-Encryption": self.algorithm or "AES256"}
        if self.mode == "SSE-C":
            headers = {
                "X-Bz-Server-Side-Encryption-Customer-Algorithm": self.algorithm or "AES256",
            }
            if self.customer_key:
                headers["X-Bz-Server-Side-Encryption-Customer-Key"] = self.customer_key
            if self.customer_key_md5:
                headers["X-Bz-Server-Side-Encryption-Customer-Key-Md5"] = self.customer_key_md5
            return headers
        return {}

    def download_headers(self) -> dict[str, str]:
        """Headers needed to read an SSE-C file back; empty for other modes."""
        return self.to_headers() if self.mode == "SSE-C" else {}


class AccountAuthorization(B2Model):
    account_id: str = Field(alias="accountId")
    authorization_token: str = Field(alias="authorizationToken")
    api_url: str = Field(alias="apiUrl")
    download_url: str = Field(alias="downloadUrl")
    recommended_part_size: int = Field(alias="recommendedPartSize")
    absolute_minimum_part_size: int = Field(alias="absoluteMinimumPartSize")
    s3_api_url: str | None = Field(default=None, alias="s3ApiUrl")
    allowed: dict[str, Any] | None = None


class File(B2Model):
    """Snapshot of a file version as returned by the API."""

    file_id: str | None = Field(default=None, alias="fileId")
    file_name: str = Field(alias="fileName")
    account_id: str | None = Field(default=None, alias="accountId")
    bucket_id: str | None = Field(default=None, alias="bucketId")
    content_type: str | None = Field(default=None, alias="contentType")
    content_length: int | None = Field(default=None, alias="contentLength")
    content_sha1: str | None = Field(default=None, alias="contentSha1")
    content_md5: str | None = Field(default=None, alias="contentMd5")
    file_info: FileInfo = Field(default_factory=CustomInfo, alias="fileInfo")
    action: FileAction | None = None
    upload_timestamp: int | None = Field(default=None, alias="uploadTimestamp")
    legal_hold: Any | None = Field(default=None, alias="legalHold")
    file_retention: Any | None = Field(default=None, alias="fileRetention")
    server_side_encryption: ServerSideEncryption | None = Field(
        default=None, alias="serverSideEncryption"
    )
    part_number: int | None = Field(default=None, alias="partNumber")

    @property
    def size(self) -> int | None:
        return self.content_length


class UploadUrl(B2Model):
    bucket_id: str = Field(alias="bucketId")
    upload_url: str = Field(alias="uploadUrl")
    authorization_token: str = Field(alias="authorizationToken")


class UploadPartUrl(B2Model):
    """Grant to upload parts of one large file."""

    file_id: str = Field(alias="fileId")
    upload_url: str = Field(alias="uploadUrl")
    authorization_token: str = Field(alias="authorizationToken")


class Part(B2Model):
    file_id: str | None = Field(default=None, alias="fileId")
    part_number: int = Field(alias="partNumber")
    content_length: int = Field(alias="contentLength")
    content_sha1: str = Field(alias="contentSha1")
    content_md5: str | None = Field(default=None, alias="contentMd5")
    upload_timestamp: int | None = Field(default=None, alias="uploadTimestamp")
    server_side_encryption: ServerSideEncryption | None = Field(
        default=None, alias="serverSideEncryption"
    )


class Bucket(B2Model):
    account_id: str = Field(alias="accountId")
    bucket_id: str = Field(alias="bucketId")
    bucket_name: str = Field(alias="bucketName")
    bucket_type: str = Field(alias="bucketType")
    bucket_info: dict[str, str] = Field(default_factory=dict, alias="bucketInfo")
    cors_rules: list[dict[str, Any]] = Field(default_factory=list, alias="corsRules")
    lifecycle_rules: list[dict[str, Any]] = Field(default_factory=list, alias="lifecycleRules")
    revision: int | None = None
    options: list[str] = Field(default_factory=list)
    file_lock_configuration: Any | None = Field(default=None, alias="fileLockConfiguration")
    default_server_side_encryption: Any | None = Field(
        default=None, alias="defaultServerSideEncryption"
    )


class Key(B2Model):
    key_name: str = Field(alias="keyName")
    application_key_id: str = Field(alias="applicationKeyId")
    capabilities: list[str] = Field(default_factory=list)
    account_id: str | None = Field(default=None, alias="accountId")
    expiration_timestamp: int | None = Field(default=None, alias="expirationTimestamp")
    bucket_id: str | None = Field(default=None, alias="bucketId")
    name_prefix: str | None = Field(default=None, alias="namePrefix")
    options: list[str] = Field(default_factory=list)
    # Only present in the b2_create_key response.
    application_key: str | None = Field(default=None, alias="applicationKey")


class DownloadAuthorization(B2Model):
    bucket_id: str = Field(alias="bucketId")
    file_name_prefix: str = Field(alias="fileNamePrefix")
    authorization_token: str = Field(alias="authorizationToken")


class DownloadOptions(B2Model):
    """Response header overrides for a download, sent as ``b2*`` query parameters."""

    content_disposition: str | None = Field(default=None, alias="b2ContentDisposition")
    content_language: str | None = Field(default=None, alias="b2ContentLanguage")
    expires: str | None = Field(default=None, alias="b2Expires")
    cache_control: str | None = Field(default=None, alias="b2CacheControl")
    content_encoding: str | None = Field(default=None, alias="b2ContentEncoding")
    content_type: str | None = Field(default=None, alias="b2ContentType")


@dataclass(slots=True)
class DownloadedFile:
    """A downloaded file: its body (empty when streamed to a sink or headers only) and metadata."""

    content: bytes
    status_code: int
    file_id: str | None
    file_name: str | None
    content_type: str | None
    content_length: int | None
    content_sha1: str | None
    upload_timestamp: int | None
    file_info: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_response(
        cls, response: httpx.Response, *, content: bytes | None = None
    ) -> DownloadedFile:
        headers = response.headers
        prefix = FILE_INFO_HEADER_PREFIX.lower()
        info = {
            name[len(prefix) :]: unquote(value)
            for name, value in headers.items()
            if name.lower().startswith(prefix)
        }
        file_name = headers.get("x-bz-file-name")
        length = headers.get("content-length")
        timestamp = headers.get("x-bz-upload-timestamp")
        return cls(
            content=response.content if content is None else content,
            status_code=response.status_code,
            file_id=headers.get("x-bz-file-id"),
            file_name=unquote(file_name) if file_name is not None else None,
            content_type=headers.get("content-type"),
            content_length=int(length) if length is not None else None,
            content_sha1=headers.get("x-bz-content-sha1"),
            upload_timestamp=int(timestamp) if timestamp is not None else None,
            file_info=info,
        )


__all__ = [
    "CONTENT_TYPE_AUTO",
    "FileAction",
    "BucketType",
    "B2Model",
    "ServerSideEncryption",
    "AccountAuthorization",
    "File",
    "UploadUrl",
    "UploadPartUrl",
    "Part",
    "Bucket",
    "Key",
    "DownloadAuthorization",
    "DownloadOptions",
    "DownloadedFile",
]
