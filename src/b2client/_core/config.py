"""Client configuration."""

from __future__ import annotations

import base64
import os
from dataclasses import dataclass, field

from .._http.config import (
    DEFAULT_API_URL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_INTERVAL,
    DEFAULT_TIMEOUT,
)
from ..errors import MissingCredentialsError


@dataclass
class ClientConfig:
    """SDK configuration."""

    application_key_id: str | None = None
    application_key: str | None = None
    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_interval: float = DEFAULT_RETRY_INTERVAL
    # Fresh upload grants a large-file session may request for one part.
    max_grant_refreshes: int = 1
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(
        cls,
        *,
        application_key_id: str | None = None,
        application_key: str | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_interval: float | None = None,
        max_grant_refreshes: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> ClientConfig:
        """Build a config from arguments, falling back to ``B2_*`` env vars."""
        env_retries = os.getenv("B2_MAX_RETRIES")
        env_interval = os.getenv("B2_RETRY_INTERVAL")
        if max_retries is None and env_retries:
            max_retries = int(env_retries)
        if retry_interval is None and env_interval:
            retry_interval = float(env_interval)
        return cls(
            application_key_id=application_key_id,
            application_key=application_key,
            api_url=api_url or os.getenv("B2_API_URL") or DEFAULT_API_URL,
            timeout=timeout or DEFAULT_TIMEOUT,
            max_retries=DEFAULT_MAX_RETRIES if max_retries is None else max_retries,
            retry_interval=DEFAULT_RETRY_INTERVAL if retry_interval is None else retry_interval,
            max_grant_refreshes=1 if max_grant_refreshes is None else max_grant_refreshes,
            headers=dict(headers or {}),
        )

    def resolve_credentials(self) -> tuple[str, str]:
        key_id = self.application_key_id or os.getenv("B2_APPLICATION_KEY_ID")
        key = self.application_key or os.getenv("B2_APPLICATION_KEY")
        if not key_id or not key:
            raise MissingCredentialsError()
        return key_id, key

    def basic_auth_header(self) -> str:
        key_id, key = self.resolve_credentials()
        encoded = base64.b64encode(f"{key_id}:{key}".encode()).decode("ascii")
        return f"Basic {encoded}"
