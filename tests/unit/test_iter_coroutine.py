import httpx
import pytest

from b2client._http import (
    BlockingTransport,
    Request,
    RetryInterceptor,
    build_pipeline,
    transport_handler,
)
from b2client._http.iter_coroutine import iter_coroutine


class _Yield:
    def __await__(self):
        yield None


def _pipeline(handler, sleep_fn):
    transport = BlockingTransport(client=httpx.Client(transport=httpx.MockTransport(handler)))
    return build_pipeline(
        [RetryInterceptor(max_retries=2, retry_interval=0.5, sleep_fn=sleep_fn)],
        transport_handler(transport),
    )


def test_blocking_pipeline_runs_without_event_loop() -> None:
    statuses = iter([503, 200])
    slept: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(statuses), json={})

    send = _pipeline(handler, slept.append)
    response = iter_coroutine(send(Request("GET", "https://api001.backblazeb2.com/b2api/v2/x")))

    assert response.status_code == 200
    assert slept == [0.5]


def test_async_sleep_on_blocking_client_is_rejected() -> None:
    calls: list[httpx.Request] = []
    closed = False

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503, json={})

    async def async_sleep(delay: float) -> None:
        nonlocal closed
        try:
            await _Yield()
        finally:
            closed = True

    send = _pipeline(handler, async_sleep)
    with pytest.raises(RuntimeError, match="cannot run on a blocking client"):
        iter_coroutine(send(Request("GET", "https://api001.backblazeb2.com/b2api/v2/x")))

    assert len(calls) == 1
    assert closed


def test_result_is_returned_and_coroutine_closed() -> None:
    closed = False

    async def authorize() -> str:
        nonlocal closed
        try:
            return "4_account_token_1"
        finally:
            closed = True

    assert iter_coroutine(authorize()) == "4_account_token_1"
    assert closed
