from __future__ import annotations

import inspect
from typing import Any, Callable


async def maybe_await(value: Any) -> Any:
    """Await ``value`` when it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


async def call_maybe_async(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Invoke a plain or coroutine function and return its resolved result."""
    return await maybe_await(fn(*args, **kwargs))
