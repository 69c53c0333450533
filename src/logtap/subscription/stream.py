"""The live subscription handle.

A `Subscription` is what an external producer (the log poller, the head
poller, a websocket reader, a test script) fills and what the multiplexer
drains:

- `push(item)`: deliver one item and wait until the consumer has handled it;
- `fail(exc)`: report that the upstream stream broke;
- `unsubscribe()`: release the handle; later pushes are refused.

`push` is a rendezvous. It returns True only after the consumer called
`ack()` for that item, and False when the handle was closed before the item
was handled, so a producer always learns whether its item got through.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Generic, TypeVar

from logtap.core.models import BlockInfo, LogRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription(Generic[T]):
    """Bounded item queue plus a one-shot error slot.

    Each queued item travels with a future that `ack()` resolves to True and
    `unsubscribe()` resolves to False.
    """

    def __init__(self, maxsize: int = 1) -> None:
        self._items: asyncio.Queue[tuple[T, asyncio.Future[bool]]] = asyncio.Queue(maxsize)
        self._in_flight: asyncio.Future[bool] | None = None
        self._failed = asyncio.Event()
        self._error: BaseException | None = None
        self._closed = False
        self._on_close: list[Callable[[], None]] = []

    # ---------- producer side ----------

    async def push(self, item: T) -> bool:
        """Hand one item to the consumer. Returns False once unsubscribed."""
        if self._closed:
            return False
        handled: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        await self._items.put((item, handled))
        if self._closed:
            # Unsubscribed while this producer waited for room.
            self._refuse_queued()
        return await handled

    def fail(self, exc: BaseException) -> None:
        """Report an upstream error. Only the first error is kept."""
        if self._closed or self._error is not None:
            logger.debug("ignoring subscription error after first/close: %r", exc)
            return
        self._error = exc
        self._failed.set()

    def add_close_callback(self, cb: Callable[[], None]) -> None:
        """Run `cb` on unsubscribe (e.g. to cancel the producer task)."""
        self._on_close.append(cb)

    # ---------- consumer side ----------

    async def next_record(self) -> T:
        """Take the next item. The caller must `ack()` it once handled."""
        item, handled = await self._items.get()
        self._in_flight = handled
        return item

    def ack(self) -> None:
        """Release the producer of the item last returned by `next_record`."""
        handled, self._in_flight = self._in_flight, None
        if handled is not None and not handled.done():
            handled.set_result(True)

    async def wait_error(self) -> BaseException:
        await self._failed.wait()
        assert self._error is not None
        return self._error

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def closed(self) -> bool:
        return self._closed

    def _refuse_queued(self) -> None:
        refused = 0
        while not self._items.empty():
            _, handled = self._items.get_nowait()
            if not handled.done():
                handled.set_result(False)
            refused += 1
        if refused:
            logger.debug("unsubscribe refused %d queued item(s)", refused)

    def unsubscribe(self) -> None:
        """Close the handle and tell every waiting producer its item was refused."""
        if self._closed:
            return
        self._closed = True
        if self._in_flight is not None and not self._in_flight.done():
            self._in_flight.set_result(False)
        self._in_flight = None
        self._refuse_queued()
        for cb in self._on_close:
            cb()


LogSubscription = Subscription[LogRecord]
HeadSubscription = Subscription[BlockInfo]
