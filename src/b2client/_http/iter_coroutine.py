"""Drive non-suspending coroutines from synchronous code."""

from __future__ import annotations

import typing

_T = typing.TypeVar("_T")


def iter_coroutine(coro: typing.Coroutine[None, None, _T]) -> _T:
    """
    Run ``coro`` to completion without an event loop.

    The sync clients share their request logic with the async clients by
    writing it as coroutines that never suspend: the blocking transport does
    its I/O inline and the injected sleep function is ``time.sleep``. Such a
    coroutine finishes on its first ``send(None)``.

    Raises:
        RuntimeError: If the coroutine yields instead of returning, which
            means an async-only awaitable leaked into the sync path.
    """
    try:
        coro.send(None)
    except StopIteration as stop:
        return stop.value  # type: ignore [no-any-return]
    else:
        raise RuntimeError(f"coroutine {coro!r} suspended; it cannot run on a blocking client")
    finally:
        coro.close()


__all__ = ["iter_coroutine"]
