"""Producer/consumer channel used by both NDJSON streams.

A pipeline writes events into an :class:`EventSink`; an
:class:`EventStream` runs that producer in its own task and hands the
events to the consumer through a one-slot queue, so the producer never
runs more than one event ahead of the reader. Closing the stream sets
the sink's ``cancelled`` flag and cancels the producer task, which in
turn cancels whatever request the producer is awaiting.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")

_END = object()


class StreamCancelled(Exception):
    """Raised inside a producer that tries to emit after the consumer left."""


class EventSink(Generic[E]):
    def __init__(self, queue: asyncio.Queue) -> None:
        self._queue = queue
        self.cancelled = False

    async def emit(self, event: E) -> None:
        if self.cancelled:
            raise StreamCancelled()
        await self._queue.put(event)


Producer = Callable[[EventSink[E]], Awaitable[None]]


class EventStream(Generic[E]):
    """Async iterator over the events a producer emits.

    The producer task starts on first iteration. It must report its own
    failures as events; an exception escaping it is logged and ends the
    stream.
    """

    def __init__(self, producer: Producer[E]) -> None:
        self._producer = producer
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._sink: EventSink[E] = EventSink(self._queue)
        self._task: asyncio.Task | None = None
        self._finished = False

    @property
    def cancelled(self) -> bool:
        return self._sink.cancelled

    def __aiter__(self) -> EventStream[E]:
        return self

    async def __anext__(self) -> E:
        if self._finished:
            raise StopAsyncIteration
        if self._task is None:
            self._task = asyncio.create_task(self._run())
        item = await self._queue.get()
        if item is _END:
            self._finished = True
            await asyncio.wait([self._task])
            raise StopAsyncIteration
        return item

    async def _run(self) -> None:
        try:
            await self._producer(self._sink)
        except StreamCancelled:
            pass
        except Exception:
            logger.exception("Event producer failed")
        finally:
            # Also reached when the producer is cancelled by something
            # other than aclose(); the reader must still see the end.
            if not self._sink.cancelled:
                await self._queue.put(_END)

    async def aclose(self) -> None:
        """Stop the producer; no further events are produced or persisted."""
        self._finished = True
        if self._task is None or self._task.done():
            return
        self._sink.cancelled = True
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            if asyncio.current_task() is not None and asyncio.current_task().cancelling():
                raise
        logger.debug("Event stream closed before completion")

    async def collect(self) -> list[E]:
        """Drain the stream into a list, closing it if the caller stops early."""
        try:
            return [event async for event in self]
        finally:
            await self.aclose()
