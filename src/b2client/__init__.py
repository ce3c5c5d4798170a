"""Python client for the Backblaze B2 native API."""

from ._core import AsyncB2Client, AsyncLargeFileUpload, B2Client, ClientConfig, LargeFileUpload
from ._version import __version__
from .errors import (
    B2APIError,
    B2ConnectionError,
    B2Error,
    B2TimeoutError,
    BadJsonError,
    BadValueError,
    BucketAlreadyExistsError,
    BucketNotEmptyError,
    CustomInfoLimitError,
    FileNotPresentError,
    LargeFileStateError,
    MissingCredentialsError,
    NotFoundError,
    ServiceUnavailableError,
    TooManyRequestsError,
    UnauthorizedError,
    ValidationError,
)
from .file_info import CustomInfo
from .models import (
    CONTENT_TYPE_AUTO,
    AccountAuthorization,
    Bucket,
    DownloadAuthorization,
    DownloadedFile,
    DownloadOptions,
    File,
    Key,
    Part,
    ServerSideEncryption,
    UploadPartUrl,
    UploadUrl,
)
from .pagination import AsyncPagedResult, Page, PagedResult

__all__ = [
    "__version__",
    # Clients
    "B2Client",
    "AsyncB2Client",
    "ClientConfig",
    "LargeFileUpload",
    "AsyncLargeFileUpload",
    # Models
    "CONTENT_TYPE_AUTO",
    "AccountAuthorization",
    "Bucket",
    "CustomInfo",
    "DownloadAuthorization",
    "DownloadedFile",
    "DownloadOptions",
    "File",
    "Key",
    "Part",
    "ServerSideEncryption",
    "UploadPartUrl",
    "UploadUrl",
    "Page",
    "PagedResult",
    "AsyncPagedResult",
    # Errors
    "B2Error",
    "B2APIError",
    "B2ConnectionError",
    "B2TimeoutError",
    "BadJsonError",
    "BadValueError",
    "BucketAlreadyExistsError",
    "BucketNotEmptyError",
    "CustomInfoLimitError",
    "FileNotPresentError",
    "LargeFileStateError",
    "MissingCredentialsError",
    "NotFoundError",
    "ServiceUnavailableError",
    "TooManyRequestsError",
    "UnauthorizedError",
    "ValidationError",
]
