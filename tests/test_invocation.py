import functools
import threading

import pytest

from revctl.invocation import invoke, is_async_fn


async def coroutine_fn(value):
    return value


def sync_fn(value):
    return value, threading.current_thread()


class AsyncCallable:
    async def __call__(self, value):
        return value


def test_is_async_fn():
    assert is_async_fn(coroutine_fn)
    assert is_async_fn(functools.partial(coroutine_fn, 1))
    assert is_async_fn(AsyncCallable())
    assert not is_async_fn(sync_fn)
    assert not is_async_fn(None)


@pytest.mark.anyio
async def test_invoke_async():
    assert await invoke(coroutine_fn, 1) == 1
    assert await invoke(AsyncCallable(), 2) == 2


@pytest.mark.anyio
async def test_invoke_sync_runs_in_thread():
    value, thread = await invoke(sync_fn, 3)

    assert value == 3
    assert thread is not threading.main_thread()
