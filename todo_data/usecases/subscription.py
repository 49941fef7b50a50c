from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Generic, Optional, Set, Tuple, TypeVar

from todo_data.domain.outcome import LOADING, Outcome
from todo_data.domain.ports import StoreChange

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    """Live, restartable sequence of outcomes for one repository query.

    Every ``async for`` starts over: it yields ``LOADING``, then the result of
    a cache-aside read, then a fresh local snapshot after each change to the
    repository's collection in the local store, whoever made it. A snapshot
    holding expired rows is replaced by another cache-aside read. The
    sequence never ends on its own; :meth:`close` ends every running
    iteration and releases the store listeners.
    """

    def __init__(self, repository: Any, query: Any) -> None:
        self._repository = repository
        self.query = query
        self._closed = False
        self._streams: Set[Tuple[asyncio.AbstractEventLoop, "asyncio.Queue[Any]"]] = set()

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[Outcome[T]]:
        return self._stream()

    async def _stream(self) -> AsyncIterator[Outcome[T]]:
        if self._closed:
            return
        repository = self._repository
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[Any]" = asyncio.Queue()
        stream = (loop, queue)

        def listener(change: StoreChange) -> None:
            if change.collection != repository.collection:
                return
            _deliver(loop, queue, change)

        unsubscribe = repository.store.subscribe(listener)
        self._streams.add(stream)
        try:
            yield LOADING
            result = await repository.read(self.query)
            # the read already reflects changes made while it ran
            if _drain(queue):
                return
            yield result
            while not self._closed:
                item = await queue.get()
                if item is _CLOSED or _drain(queue):
                    return
                outcome = repository.snapshot(self.query)
                if outcome.stale:
                    # expired rows go back through the cache-aside read first
                    outcome = await repository.read(self.query)
                    if _drain(queue):
                        return
                yield outcome
        finally:
            unsubscribe()
            self._streams.discard(stream)

    def close(self) -> None:
        """End all running iterations; later iterations yield nothing."""
        self._closed = True
        for loop, queue in list(self._streams):
            _deliver(loop, queue, _CLOSED)

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()


def _deliver(loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[Any]", item: Any) -> None:
    try:
        running: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        queue.put_nowait(item)
    elif not loop.is_closed():
        loop.call_soon_threadsafe(queue.put_nowait, item)


def _drain(queue: "asyncio.Queue[Any]") -> bool:
    """Empty ``queue``; True when a close marker was among the items."""
    closed = False
    while True:
        try:
            item = queue.get_nowait()
        except asyncio.QueueEmpty:
            return closed
        if item is _CLOSED:
            closed = True


__all__ = ["Subscription"]
