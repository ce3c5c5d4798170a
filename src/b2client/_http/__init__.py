"""Shared HTTP infrastructure for the B2 clients."""

from .config import (
    API_VERSION_PATH,
    DEFAULT_API_URL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_INTERVAL,
    DEFAULT_TIMEOUT,
    USER_AGENT,
    api_endpoint,
)
from .iter_coroutine import iter_coroutine
from .pipeline import (
    ErrorInterceptor,
    Handler,
    Interceptor,
    LoggingInterceptor,
    ReauthorizeInterceptor,
    Request,
    RetryInterceptor,
    SleepFn,
    build_pipeline,
    transport_handler,
)
from .transport import (
    AsyncTransport,
    BaseTransport,
    BlockingTransport,
    BytesBody,
    JSONBody,
    RequestBody,
    StreamBody,
)

__all__ = [
    "API_VERSION_PATH",
    "DEFAULT_API_URL",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_INTERVAL",
    "DEFAULT_TIMEOUT",
    "USER_AGENT",
    "api_endpoint",
    "iter_coroutine",
    "BaseTransport",
    "BlockingTransport",
    "AsyncTransport",
    "JSONBody",
    "BytesBody",
    "StreamBody",
    "RequestBody",
    "Request",
    "Handler",
    "Interceptor",
    "SleepFn",
    "ErrorInterceptor",
    "ReauthorizeInterceptor",
    "RetryInterceptor",
    "LoggingInterceptor",
    "build_pipeline",
    "transport_handler",
]
