"""Revocable handle for one in-flight round-trip."""

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable
from typing import Any, TypeVar

from chatloop.errors import AbortedError

T = TypeVar("T")
logger = logging.getLogger(__name__)

_EXHAUSTED = object()


async def _next_item(iterator: AsyncIterator[Any]) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _EXHAUSTED


class CancellationToken:
    """Cancelled flag plus a way to interrupt whatever is awaited under it.

    ``run`` races an awaitable against ``cancel()``; the loser is cancelled
    and the caller sees ``AbortedError``.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise AbortedError()

    async def run(self, awaitable: Awaitable[T]) -> T:
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise AbortedError()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            task.cancel()
            waiter.cancel()
            raise
        if task in done:
            waiter.cancel()
            return task.result()
        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            logger.debug("operation failed while being aborted: %r", task.exception())
        raise AbortedError()

    async def iterate(self, source: AsyncIterable[T]) -> AsyncIterator[T]:
        iterator = source.__aiter__()
        while True:
            item = await self.run(_next_item(iterator))
            if item is _EXHAUSTED:
                return
            yield item
