"""Exceptions raised by the B2 client."""

from __future__ import annotations

from typing import Any

import httpx


class B2Error(Exception):
    """Base class for every error raised by b2client."""


class MissingCredentialsError(B2Error):
    def __init__(self) -> None:
        super().__init__(
            "Missing B2 credentials. Pass application_key_id=... and application_key=... "
            "or set B2_APPLICATION_KEY_ID and B2_APPLICATION_KEY."
        )


class CustomInfoLimitError(B2Error, ValueError):
    """Custom file info would exceed the 10 key/value pair limit."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Custom file information can only be up to {limit} key/value pairs.")
        self.limit = limit


class LargeFileStateError(B2Error):
    """A large file upload session was used after it was finished or canceled."""


class B2ConnectionError(B2Error):
    """The request could not be completed at the transport level."""


class B2TimeoutError(B2ConnectionError):
    pass


class B2APIError(B2Error):
    """Non-2xx response from the B2 API.

    Attributes:
        status_code: HTTP status of the response.
        code: Machine-readable error code from the response body, if any.
        body: Decoded JSON body, or the raw text when it was not JSON.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        code: str | None = None,
        body: Any | None = None,
        response: httpx.Response | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.body = body
        self.response = response

    def __str__(self) -> str:
        prefix = f"HTTP {self.status_code}"
        if self.code:
            prefix = f"{prefix} ({self.code})"
        return f"{prefix}: {self.message}" if self.message else prefix


class ValidationError(B2APIError):
    """The request was rejected as invalid; ``details`` holds the decoded body."""

    @property
    def details(self) -> Any:
        return self.body


class BadJsonError(ValidationError):
    pass


class BadValueError(ValidationError):
    pass


class NotFoundError(B2APIError):
    pass


class FileNotPresentError(NotFoundError):
    pass


class UnauthorizedError(B2APIError):
    pass


class BucketAlreadyExistsError(B2APIError):
    pass


class BucketNotEmptyError(B2APIError):
    pass


class TooManyRequestsError(B2APIError):
    pass


class ServiceUnavailableError(B2APIError):
    pass


_ERRORS_BY_CODE: dict[str, type[B2APIError]] = {
    "bad_json": BadJsonError,
    "bad_value": BadValueError,
    "bad_request": ValidationError,
    "duplicate_bucket_name": BucketAlreadyExistsError,
    "not_found": NotFoundError,
    "file_not_present": FileNotPresentError,
    "cannot_delete_non_empty_bucket": BucketNotEmptyError,
}

_ERRORS_BY_STATUS: dict[int, type[B2APIError]] = {
    401: UnauthorizedError,
    404: NotFoundError,
    422: ValidationError,
    429: TooManyRequestsError,
    503: ServiceUnavailableError,
}


def _decode_error_body(response: httpx.Response) -> tuple[Any, str | None, str]:
    try:
        data = response.json()
    except ValueError:
        text = response.text
        return text, None, text[:500]

    if not isinstance(data, dict):
        return data, None, ""
    code = data.get("code")
    message = data.get("message") or ""
    return data, code if isinstance(code, str) else None, str(message)


def error_from_response(response: httpx.Response) -> B2APIError:
    """Classify an error response.

    The status decides first (401, 404, 422, 429, 503). For the remaining
    statuses the ``code`` field of the JSON body picks a more specific class.
    """
    body, code, message = _decode_error_body(response)
    status = response.status_code

    error_cls = _ERRORS_BY_STATUS.get(status)
    if error_cls is None and code is not None:
        error_cls = _ERRORS_BY_CODE.get(code)
    if error_cls is NotFoundError and code == "file_not_present":
        error_cls = FileNotPresentError

    return (error_cls or B2APIError)(
        message or response.reason_phrase,
        status_code=status,
        code=code,
        body=body,
        response=response,
    )


__all__ = [
    "B2Error",
    "MissingCredentialsError",
    "CustomInfoLimitError",
    "LargeFileStateError",
    "B2ConnectionError",
    "B2TimeoutError",
    "B2APIError",
    "ValidationError",
    "BadJsonError",
    "BadValueError",
    "NotFoundError",
    "FileNotPresentError",
    "UnauthorizedError",
    "BucketAlreadyExistsError",
    "BucketNotEmptyError",
    "TooManyRequestsError",
    "ServiceUnavailableError",
    "error_from_response",
]
