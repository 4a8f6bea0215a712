"""Bridge between Click's synchronous commands and the async engine."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, TypeVar

from cpb_ai.engine import open_engine

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine

    from cpb_ai.engine import Engine
    from cpb_ai.settings import EngineSettings

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Drive *coro* to completion on a fresh event loop."""
    return asyncio.run(coro)


def with_engine(settings: EngineSettings, work: Callable[[Engine], Awaitable[T]]) -> T:
    """Open an engine for *settings*, await ``work(engine)`` and close it again.

    One engine per command invocation: the history database connection
    and the artifact directory are released before the command prints.
    """

    async def _session() -> T:
        async with open_engine(settings) as engine:
            return await work(engine)

    return run_async(_session())
