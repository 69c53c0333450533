"""Subscription multiplexer: the long-running decode loop of the live path.

State machine
-------------
IDLE → RUNNING → (DRAINING →) TERMINATED

While RUNNING, every iteration waits on all four sources at once and services
one of them:

1. a record arrives        → decode it, emit the result, keep going;
2. the subscription fails  → TERMINATED, `SubscriptionBroken` is raised;
3. shutdown is requested   → DRAINING → TERMINATED, nothing more is decoded;
4. cancellation is set     → TERMINATED.

Records are decoded one at a time in arrival order. A record the loop has
already taken is always dispatched, even when a termination source fires in
the same iteration; termination is checked before the next read. Records
still queued at that point are refused and their producers see `push`
return False. TERMINATED is absorbing: the subscription is released and the
loop cannot be restarted.

`HeadMultiplexer` runs the same loop over new block headers and emits each
`BlockInfo` unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from logtap.core.errors import SubscriptionBroken
from logtap.core.interfaces import IEventSink
from logtap.core.models import BlockInfo, DecodedEvent, LogRecord, MalformedEvent, UnknownEvent
from logtap.decoding.decoder import decode_log
from logtap.decoding.specs import EventRegistry
from logtap.subscription.stream import LogSubscription, Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MultiplexerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


class TerminationReason(Enum):
    SHUTDOWN = "shutdown"
    CANCELLED = "cancelled"
    SUBSCRIPTION_ERROR = "subscription_error"


@dataclass(kw_only=True)
class MultiplexerStats:
    """Counters by outcome; every dispatched item lands in exactly one."""

    decoded: int = 0
    unknown: int = 0
    malformed: int = 0
    heads: int = 0

    @property
    def dispatched(self) -> int:
        return self.decoded + self.unknown + self.malformed + self.heads


class Multiplexer(Generic[T]):
    """
    Shared run loop: take items from a `Subscription` one at a time, hand
    each to `_handle` and acknowledge it, until a termination source fires.

    Parameters
    ----------
    subscription : Subscription
        Live item stream plus its error slot. Released when the loop ends.
    sink : IEventSink
        Receives whatever `_handle` emits, in arrival order.
    shutdown : asyncio.Event | None
        External shutdown request (e.g. set from a SIGINT handler).
    cancel : asyncio.Event | None
        Governing cancellation flag, possibly shared with a range fetcher.
    """

    stream_name = "subscription"

    def __init__(
        self,
        subscription: Subscription[T],
        sink: IEventSink,
        *,
        shutdown: asyncio.Event | None = None,
        cancel: asyncio.Event | None = None,
    ) -> None:
        self._subscription = subscription
        self._sink = sink
        self._shutdown = shutdown if shutdown is not None else asyncio.Event()
        self._cancel = cancel if cancel is not None else asyncio.Event()
        self._state = MultiplexerState.IDLE
        self.reason: TerminationReason | None = None
        self.stats = MultiplexerStats()

    @property
    def state(self) -> MultiplexerState:
        return self._state

    # ---------- dispatch ----------

    def _handle(self, item: T) -> None:
        raise NotImplementedError

    def _dispatch(self, item: T) -> None:
        try:
            self._handle(item)
        finally:
            self._subscription.ack()

    # ---------- termination ----------

    def _pending_termination(self) -> TerminationReason | None:
        """Termination sources that are already signalled, in a fixed order."""
        if self._subscription.error is not None:
            return TerminationReason.SUBSCRIPTION_ERROR
        if self._shutdown.is_set():
            return TerminationReason.SHUTDOWN
        if self._cancel.is_set():
            return TerminationReason.CANCELLED
        return None

    def _terminate(self, reason: TerminationReason) -> None:
        if reason is TerminationReason.SHUTDOWN:
            self._state = MultiplexerState.DRAINING
            logger.info("shutdown requested, draining")
        elif reason is TerminationReason.CANCELLED:
            logger.info("context cancelled, exiting")
        else:
            logger.error("%s error: %r", self.stream_name, self._subscription.error)
        self.reason = reason
        self._state = MultiplexerState.TERMINATED

    # ---------- main loop ----------

    async def run(self) -> TerminationReason:
        """Run until a termination source fires.

        Returns the reason for shutdown / cancellation; raises
        `SubscriptionBroken` if the upstream subscription failed.
        """
        if self._state is not MultiplexerState.IDLE:
            raise RuntimeError(f"multiplexer already {self._state.value}")
        self._state = MultiplexerState.RUNNING

        item_task: asyncio.Task[T] | None = None
        error_task = asyncio.create_task(self._subscription.wait_error())
        shutdown_task = asyncio.create_task(self._shutdown.wait())
        cancel_task = asyncio.create_task(self._cancel.wait())
        try:
            while True:
                reason = self._pending_termination()
                if reason is not None:
                    self._terminate(reason)
                    break

                # A pending read survives iterations won by another source.
                if item_task is None:
                    item_task = asyncio.create_task(self._subscription.next_record())
                await asyncio.wait(
                    {item_task, error_task, shutdown_task, cancel_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if item_task.done():
                    item = item_task.result()
                    item_task = None
                    self._dispatch(item)
        finally:
            pending = [t for t in (item_task, error_task, shutdown_task, cancel_task) if t is not None]
            for t in pending:
                t.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            self._subscription.unsubscribe()
            self._state = MultiplexerState.TERMINATED
            logger.info(
                "multiplexer stopped: decoded=%d unknown=%d malformed=%d heads=%d",
                self.stats.decoded, self.stats.unknown, self.stats.malformed, self.stats.heads,
            )

        if self.reason is TerminationReason.SUBSCRIPTION_ERROR:
            err = self._subscription.error
            raise SubscriptionBroken(f"{self.stream_name} subscription failed: {err!r}") from err
        assert self.reason is not None
        return self.reason


class SubscriptionMultiplexer(Multiplexer[LogRecord]):
    """
    Consume a `LogSubscription`, decode each record through the registry and
    hand the result to the sink.

    The sink receives DecodedEvent / UnknownEvent / MalformedEvent. The
    registry is frozen and shared read-only.
    """

    stream_name = "log"

    def __init__(
        self,
        subscription: LogSubscription,
        registry: EventRegistry,
        sink: IEventSink,
        *,
        shutdown: asyncio.Event | None = None,
        cancel: asyncio.Event | None = None,
    ) -> None:
        super().__init__(subscription, sink, shutdown=shutdown, cancel=cancel)
        self._registry = registry

    def _handle(self, record: LogRecord) -> None:
        result = decode_log(record, self._registry)
        match result:
            case DecodedEvent():
                self.stats.decoded += 1
            case UnknownEvent():
                self.stats.unknown += 1
            case MalformedEvent():
                self.stats.malformed += 1
        self._sink.emit(result)


class HeadMultiplexer(Multiplexer[BlockInfo]):
    """Consume a `HeadSubscription` and emit every new header to the sink."""

    stream_name = "head"

    def _handle(self, block: BlockInfo) -> None:
        self.stats.heads += 1
        self._sink.emit(block)
