"""HTTP defaults for the B2 native API."""

from __future__ import annotations

import platform

from .._version import __version__

DEFAULT_API_URL = "https://api.backblazeb2.com"
API_VERSION_PATH = "/b2api/v2"
DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_RETRIES = 5
DEFAULT_RETRY_INTERVAL = 1.0

USER_AGENT = f"b2client/{__version__} python/{platform.python_version()}"

# Responses worth another attempt; every other 4xx is final.
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def api_endpoint(api_url: str, api_name: str) -> str:
    """Build the URL of a native API call, e.g. ``b2_list_parts``."""
    return f"{api_url.rstrip('/')}{API_VERSION_PATH}/{api_name}"


__all__ = [
    "DEFAULT_API_URL",
    "API_VERSION_PATH",
    "DEFAULT_TIMEOUT",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_INTERVAL",
    "USER_AGENT",
    "RETRYABLE_STATUS_CODES",
    "api_endpoint",
]
