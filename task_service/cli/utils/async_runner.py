"""Bridge between click's synchronous callbacks and async command bodies."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
import functools
from typing import Any


def coro[T](command: Callable[..., Coroutine[Any, Any, T]]) -> Callable[..., T]:
    """Run an ``async def`` click command on a fresh event loop.

    Apply it below the click decorators so click sees the synchronous wrapper::

        @cli.command()
        @coro
        async def scan() -> None: ...
    """

    @functools.wraps(command)
    def run_command(*args: Any, **kwargs: Any) -> T:
        return asyncio.run(command(*args, **kwargs))

    return run_command
