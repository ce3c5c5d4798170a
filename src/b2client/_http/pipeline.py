"""Request interceptor pipeline.

Every request passes through an ordered list of interceptors before it
reaches the transport. An interceptor is any object with::

    async def __call__(self, request: Request, call_next: Handler) -> httpx.Response

and does one of three things: pass the request through unchanged, raise to
short-circuit, or call ``call_next`` again with a modified request.
"""

from __future__ import annotations

import inspect
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Protocol, cast

import httpx

from .._logging import get_logger
from ..errors import B2ConnectionError, B2TimeoutError, error_from_response
from .config import RETRYABLE_STATUS_CODES
from .transport import BaseTransport, RequestBody

if TYPE_CHECKING:
    from ..models import AccountAuthorization

logger = get_logger("http")

SleepFn = Callable[[float], Awaitable[None] | None]


@dataclass(frozen=True)
class Request:
    """A request on its way through the pipeline.

    Requests made under the account authorization set ``resolve_url``: the
    URL is derived from the current authorization (API URL or download URL)
    every time the request is sent, and the account token is attached.
    Requests to upload URLs carry their own grant token and leave it unset.
    """

    method: str
    url: str = ""
    params: Mapping[str, Any] | None = None
    body: RequestBody = None
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout: float | None = None
    resolve_url: Callable[[AccountAuthorization], str] | None = None
    stream: bool = False

    def with_headers(self, **headers: str) -> Request:
        merged = dict(self.headers)
        merged.update(headers)
        return replace(self, headers=merged)


Handler = Callable[[Request], Awaitable[httpx.Response]]


class Interceptor(Protocol):
    async def __call__(self, request: Request, call_next: Handler) -> httpx.Response: ...


class Authorizer(Protocol):
    """What the re-authorization step needs from the session."""

    async def current_authorization(self) -> AccountAuthorization:
        """Return the cached account authorization, authorizing if needed."""
        ...

    async def reauthorize(self) -> AccountAuthorization:
        """Discard the cached authorization and authorize again."""
        ...


async def _await_if_necessary(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await cast(Awaitable[Any], value)
    return value


class ErrorInterceptor:
    """Turn every non-2xx response into a typed :class:`B2APIError`."""

    async def __call__(self, request: Request, call_next: Handler) -> httpx.Response:
        response = await call_next(request)
        if response.is_success:
            return response
        raise error_from_response(response)


class ReauthorizeInterceptor:
    """Attach the account token; on 401 re-authorize once and retry."""

    def __init__(self, authorizer: Authorizer) -> None:
        self._authorizer = authorizer

    @staticmethod
    def _prepare(
        request: Request,
        resolve_url: Callable[[AccountAuthorization], str],
        authorization: AccountAuthorization,
    ) -> Request:
        return replace(
            request.with_headers(Authorization=authorization.authorization_token),
            url=resolve_url(authorization),
        )

    async def __call__(self, request: Request, call_next: Handler) -> httpx.Response:
        resolve_url = request.resolve_url
        if resolve_url is None:
            return await call_next(request)

        authorization = await self._authorizer.current_authorization()
        prepared = self._prepare(request, resolve_url, authorization)
        response = await call_next(prepared)
        if response.status_code != 401:
            return response

        logger.debug("%s returned 401, re-authorizing account", prepared.url)
        authorization = await self._authorizer.reauthorize()
        return await call_next(self._prepare(request, resolve_url, authorization))


class RetryInterceptor:
    """Retry connection failures and transient statuses with linear backoff.

    The delay before retry ``n`` (1-based) is ``n * retry_interval``.
    """

    def __init__(self, *, max_retries: int, retry_interval: float, sleep_fn: SleepFn) -> None:
        self._max_retries = max(0, max_retries)
        self._retry_interval = retry_interval
        self._sleep_fn = sleep_fn

    async def _backoff(self, attempt: int) -> None:
        await _await_if_necessary(self._sleep_fn(attempt * self._retry_interval))

    async def __call__(self, request: Request, call_next: Handler) -> httpx.Response:
        attempt = 0
        while True:
            try:
                response = await call_next(request)
            except httpx.TransportError as exc:
                if attempt >= self._max_retries:
                    if isinstance(exc, httpx.TimeoutException):
                        raise B2TimeoutError(f"{request.method} {request.url} timed out") from exc
                    raise B2ConnectionError(f"{request.method} {request.url} failed: {exc}") from exc
                attempt += 1
                logger.debug("retrying %s (attempt %d): %s", request.url, attempt, exc)
                await self._backoff(attempt)
                continue

            if response.status_code in RETRYABLE_STATUS_CODES and attempt < self._max_retries:
                attempt += 1
                logger.debug(
                    "retrying %s (attempt %d): HTTP %d",
                    request.url,
                    attempt,
                    response.status_code,
                )
                await self._backoff(attempt)
                continue
            return response


class LoggingInterceptor:
    async def __call__(self, request: Request, call_next: Handler) -> httpx.Response:
        started = time.monotonic()
        response = await call_next(request)
        logger.debug(
            "%s %s -> %d (%.0f ms)",
            request.method,
            request.url,
            response.status_code,
            (time.monotonic() - started) * 1000,
        )
        return response


def transport_handler(transport: BaseTransport) -> Handler:
    async def send(request: Request) -> httpx.Response:
        return await transport.send(
            request.method,
            request.url,
            params=request.params,
            body=request.body,
            headers=request.headers,
            timeout=request.timeout,
            stream=request.stream,
        )

    return send


def build_pipeline(interceptors: Sequence[Interceptor], terminal: Handler) -> Handler:
    """Compose ``interceptors`` around ``terminal``; the first one runs outermost."""

    def link(interceptor: Interceptor, call_next: Handler) -> Handler:
        async def handler(request: Request) -> httpx.Response:
            return await interceptor(request, call_next)

        return handler

    handler = terminal
    for interceptor in reversed(interceptors):
        handler = link(interceptor, handler)
    return handler


__all__ = [
    "Request",
    "Handler",
    "Interceptor",
    "Authorizer",
    "SleepFn",
    "ErrorInterceptor",
    "ReauthorizeInterceptor",
    "RetryInterceptor",
    "LoggingInterceptor",
    "transport_handler",
    "build_pipeline",
]
