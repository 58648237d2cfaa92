import functools
import inspect

import anyio


def is_async_fn(fn) -> bool:
    if fn is None:
        return False
    elif isinstance(fn, functools.partial):
        return is_async_fn(fn.func)
    elif hasattr(fn, '__wrapped__'):  # @functools.wraps()
        return is_async_fn(fn.__wrapped__)
    elif inspect.isfunction(fn) or inspect.ismethod(fn):
        return inspect.iscoroutinefunction(fn)
    else:
        # Callable objects.
        return inspect.iscoroutinefunction(getattr(fn, '__call__', None))


async def invoke(func, *args, **kwargs):
    """Call the given function, sync functions are run in a worker thread."""
    if is_async_fn(func):
        return await func(*args, **kwargs)
    else:
        return await anyio.to_thread.run_sync(
            functools.partial(func, *args, **kwargs)
        )
