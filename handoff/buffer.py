"""Asynchronous hand-off buffer.

A `Buffer` sits between a synchronous producer and one or more asynchronous
consumers. The producer calls `push` whenever it has a value; consumers call
`next` (or iterate with `async for`) and are suspended while the buffer is
empty. Closing the buffer with `end` wakes every suspended consumer; values
that were pushed before closing can still be drained.

At any moment the buffer either holds values that nobody asked for yet, or
waiters that asked for a value before there was one, but never both: a push
goes straight to the oldest waiter if there is one, and a request is served
straight from the buffered values if there are any.
"""

from __future__ import annotations
from typing import Generic, Optional, TypeVar, Union

import asyncio
import collections
import contextlib
import dataclasses
import logging


T = TypeVar("T")


class ClosedBufferWriteError(Exception):
    """Raised by `Buffer.push` after the buffer was closed."""


@dataclasses.dataclass(frozen=True)
class Yielded(Generic[T]):
    """A delivered value."""

    value: T

    done = False


@dataclasses.dataclass(frozen=True)
class Terminated:
    """End of the sequence; carries no value."""

    done = True
    value = None


TERMINATED = Terminated()

Result = Union[Yielded[T], Terminated]


class _Values(collections.deque):
    """Buffered values, oldest first."""


class _Waiters(collections.deque):
    """Futures of suspended `next` calls, oldest first."""


class Buffer(Generic[T]):
    """Unbounded FIFO hand-off queue that implements the async iterator protocol.

    The buffer is bound to the event loop of its consumers; a producer running
    in another thread should use `loop.call_soon_threadsafe(buffer.push, value)`.
    """

    def __init__(self):
        # Either `_Values` or `_Waiters`; an empty deque of either kind means
        # that the buffer is idle.
        self._pending: Union[_Values, _Waiters] = _Values()
        self._closed = False

    def __repr__(self):
        cls = self.__class__.__name__
        info = [
            f"values={len(self)}",
            f"waiters={self._waiting()}",
            f"closed={self._closed}",
        ]
        return f"<{cls} object at {hex(id(self))} with {', '.join(info)}>"

    def __len__(self):
        if isinstance(self._pending, _Values):
            return len(self._pending)
        return 0

    def _waiting(self) -> int:
        if isinstance(self._pending, _Waiters):
            return len(self._pending)
        return 0

    def _pop_waiter(self) -> Optional[asyncio.Future]:
        if not isinstance(self._pending, _Waiters):
            return None
        while self._pending:
            waiter = self._pending.popleft()
            if not waiter.done():
                return waiter
            logging.debug("%r discarded a cancelled waiter", self)
        return None

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, value: T) -> None:
        """Hand `value` to the oldest waiter, or buffer it if there is none.

        Raises `ClosedBufferWriteError` if the buffer is closed.
        """
        if self._closed:
            raise ClosedBufferWriteError("Buffer is already closed.")
        if (waiter := self._pop_waiter()) is not None:
            waiter.set_result(Yielded(value))
            return
        if not isinstance(self._pending, _Values):
            self._pending = _Values()
        self._pending.append(value)

    def end(self) -> None:
        """Close the buffer and terminate all pending `next` calls.

        Buffered values are kept. Calling `end` more than once is a no-op.
        """
        self._closed = True
        flushed = 0
        while (waiter := self._pop_waiter()) is not None:
            waiter.set_result(TERMINATED)
            flushed += 1
        if flushed:
            logging.debug("%r terminated %d waiter(s)", self, flushed)

    async def next(self) -> Result[T]:
        """Return the next value, waiting for one if necessary.

        Returns `TERMINATED` once the buffer is closed and drained.
        """
        if isinstance(self._pending, _Values) and self._pending:
            return Yielded(self._pending.popleft())
        if self._closed:
            return TERMINATED
        if not isinstance(self._pending, _Waiters):
            self._pending = _Waiters()
        waiter = asyncio.get_running_loop().create_future()
        self._pending.append(waiter)
        try:
            return await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Cancelled after `push` resolved the waiter but before the
                # task resumed; the value goes back to the head of the line.
                if not (result := waiter.result()).done:
                    self._give_back(result.value)
            else:
                with contextlib.suppress(ValueError):
                    self._pending.remove(waiter)
            raise

    def _give_back(self, value: T) -> None:
        if (waiter := self._pop_waiter()) is not None:
            waiter.set_result(Yielded(value))
            return
        if not isinstance(self._pending, _Values):
            self._pending = _Values()
        self._pending.appendleft(value)

    async def aclose(self) -> Terminated:
        """Close the buffer early.

        Values that are still buffered are not discarded; they can be drained
        with further calls to `next`.
        """
        self.end()
        return TERMINATED

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        result = await self.next()
        if result.done:
            raise StopAsyncIteration
        return result.value
