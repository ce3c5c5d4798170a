"""Core SDK infrastructure with shared code between sync and async clients."""

from __future__ import annotations

from .client import AsyncB2Client, B2Client
from .config import ClientConfig
from .large_files import AsyncLargeFileUpload, LargeFileUpload

__all__ = [
    "B2Client",
    "AsyncB2Client",
    "ClientConfig",
    "LargeFileUpload",
    "AsyncLargeFileUpload",
]
