import asyncio
from typing import Any, Callable

import pytest
from eth_utils import keccak

from logtap.core.errors import SubscriptionBroken
from logtap.core.models import BlockInfo, DecodedEvent, LogRecord, MalformedEvent, UnknownEvent
from logtap.decoding.specs import EventRegistry
from logtap.presentation.console import CollectingSink
from logtap.subscription.multiplexer import (
    HeadMultiplexer,
    MultiplexerState,
    SubscriptionMultiplexer,
    TerminationReason,
)
from logtap.subscription.stream import HeadSubscription, LogSubscription


class StopAfter(CollectingSink):
    """Collects results and sets `event` once `n` have been emitted."""

    def __init__(self, n: int, event: asyncio.Event) -> None:
        super().__init__()
        self.n = n
        self.event = event

    def emit(self, obj: Any) -> None:
        super().emit(obj)
        if len(self.items) == self.n:
            self.event.set()


async def _produce(sub: LogSubscription, records: list[LogRecord]) -> int:
    pushed = 0
    for rec in records:
        if not await sub.push(rec):
            break
        pushed += 1
    return pushed


@pytest.mark.asyncio
async def test_cancel_after_sixth_record_stops_dispatch(
    erc20_registry: EventRegistry, make_transfer: Callable[..., LogRecord]
) -> None:
    records = [make_transfer(i, log_index=i) for i in range(10)]
    cancel = asyncio.Event()
    sub = LogSubscription()
    sink = StopAfter(6, cancel)
    mux = SubscriptionMultiplexer(sub, erc20_registry, sink, cancel=cancel)

    producer = asyncio.create_task(_produce(sub, records))
    reason = await mux.run()
    await asyncio.wait_for(producer, timeout=1)

    assert reason is TerminationReason.CANCELLED
    assert mux.state is MultiplexerState.TERMINATED
    assert len(sink.items) == 6
    assert all(isinstance(e, DecodedEvent) for e in sink.items)
    assert [e.provenance.log_index for e in sink.items] == list(range(6))
    assert [e.values()["value"] for e in sink.items] == list(range(6))
    assert sub.closed


@pytest.mark.asyncio
async def test_every_outcome_is_counted(
    erc20_registry: EventRegistry,
    make_transfer: Callable[..., LogRecord],
    make_record: Callable[..., LogRecord],
) -> None:
    transfer = make_transfer(5, log_index=0)
    unknown = make_record([keccak(text="Sync(uint112,uint112)")], log_index=1)
    malformed = make_record([transfer.topics[0]], log_index=2)
    cancel = asyncio.Event()
    sub = LogSubscription()
    sink = StopAfter(3, cancel)
    mux = SubscriptionMultiplexer(sub, erc20_registry, sink, cancel=cancel)

    asyncio.create_task(_produce(sub, [transfer, unknown, malformed]))
    await mux.run()

    assert [type(e) for e in sink.items] == [DecodedEvent, UnknownEvent, MalformedEvent]
    assert (mux.stats.decoded, mux.stats.unknown, mux.stats.malformed) == (1, 1, 1)
    assert mux.stats.dispatched == 3


@pytest.mark.asyncio
async def test_shutdown_request_returns_shutdown(
    erc20_registry: EventRegistry, make_transfer: Callable[..., LogRecord]
) -> None:
    shutdown = asyncio.Event()
    sub = LogSubscription()
    sink = StopAfter(1, shutdown)
    mux = SubscriptionMultiplexer(sub, erc20_registry, sink, shutdown=shutdown)

    asyncio.create_task(_produce(sub, [make_transfer(i, log_index=i) for i in range(5)]))
    reason = await mux.run()

    assert reason is TerminationReason.SHUTDOWN
    assert len(sink.items) == 1
    assert mux.state is MultiplexerState.TERMINATED


@pytest.mark.asyncio
async def test_shutdown_while_idle(erc20_registry: EventRegistry, sink: CollectingSink) -> None:
    shutdown = asyncio.Event()
    mux = SubscriptionMultiplexer(LogSubscription(), erc20_registry, sink, shutdown=shutdown)

    asyncio.get_running_loop().call_later(0.01, shutdown.set)
    reason = await asyncio.wait_for(mux.run(), timeout=1)

    assert reason is TerminationReason.SHUTDOWN
    assert sink.items == []


@pytest.mark.asyncio
async def test_subscription_error_is_raised(erc20_registry: EventRegistry, sink: CollectingSink) -> None:
    sub = LogSubscription()
    mux = SubscriptionMultiplexer(sub, erc20_registry, sink)
    boom = ConnectionError("websocket closed")

    asyncio.get_running_loop().call_later(0.01, sub.fail, boom)
    with pytest.raises(SubscriptionBroken) as exc:
        await asyncio.wait_for(mux.run(), timeout=1)

    assert exc.value.__cause__ is boom
    assert mux.reason is TerminationReason.SUBSCRIPTION_ERROR
    assert mux.state is MultiplexerState.TERMINATED
    assert sub.closed


@pytest.mark.asyncio
async def test_terminated_multiplexer_cannot_restart(erc20_registry: EventRegistry, sink: CollectingSink) -> None:
    cancel = asyncio.Event()
    cancel.set()
    mux = SubscriptionMultiplexer(LogSubscription(), erc20_registry, sink, cancel=cancel)

    assert await mux.run() is TerminationReason.CANCELLED
    with pytest.raises(RuntimeError):
        await mux.run()




@pytest.mark.asyncio
async def test_records_pushed_before_cancel_are_all_dispatched(
    erc20_registry: EventRegistry,
    make_transfer: Callable[..., LogRecord],
    make_record: Callable[..., LogRecord],
    sink: CollectingSink,
) -> None:
    records = [make_transfer(i, log_index=i) for i in range(5)]
    records.append(make_record([keccak(text="Sync(uint112,uint112)")], log_index=5))
    cancel = asyncio.Event()
    sub = LogSubscription()
    mux = SubscriptionMultiplexer(sub, erc20_registry, sink, cancel=cancel)

    async def push_then_cancel() -> list[bool]:
        accepted = [await sub.push(rec) for rec in records]
        cancel.set()
        return accepted

    producer = asyncio.create_task(push_then_cancel())
    reason = await asyncio.wait_for(mux.run(), timeout=1)

    assert reason is TerminationReason.CANCELLED
    assert await producer == [True] * 6
    assert [type(e) for e in sink.items] == [DecodedEvent] * 5 + [UnknownEvent]
    assert [e.provenance.log_index for e in sink.items] == list(range(6))
    assert (mux.stats.decoded, mux.stats.unknown) == (5, 1)


@pytest.mark.asyncio
async def test_error_before_read_refuses_queued_record(
    erc20_registry: EventRegistry, make_transfer: Callable[..., LogRecord], sink: CollectingSink
) -> None:
    sub = LogSubscription()
    producer = asyncio.create_task(sub.push(make_transfer(1)))
    await asyncio.sleep(0)
    sub.fail(RuntimeError("gone"))
    mux = SubscriptionMultiplexer(sub, erc20_registry, sink)

    with pytest.raises(SubscriptionBroken):
        await mux.run()

    assert sink.items == []
    assert await asyncio.wait_for(producer, timeout=1) is False


@pytest.mark.asyncio
async def test_push_returns_after_consumer_acknowledges(make_transfer: Callable[..., LogRecord]) -> None:
    sub = LogSubscription()
    rec = make_transfer(1)
    push = asyncio.create_task(sub.push(rec))

    assert await asyncio.wait_for(sub.next_record(), timeout=1) is rec
    await asyncio.sleep(0)
    assert not push.done()

    sub.ack()
    assert await asyncio.wait_for(push, timeout=1) is True


@pytest.mark.asyncio
async def test_unsubscribe_refuses_unhandled_and_later_pushes(make_transfer: Callable[..., LogRecord]) -> None:
    sub = LogSubscription()
    closed: list[bool] = []
    sub.add_close_callback(lambda: closed.append(True))
    taken = asyncio.create_task(sub.push(make_transfer(1)))
    await asyncio.wait_for(sub.next_record(), timeout=1)

    sub.unsubscribe()
    sub.unsubscribe()

    assert closed == [True]
    assert await asyncio.wait_for(taken, timeout=1) is False
    assert await sub.push(make_transfer(2)) is False


def _head(number: int) -> BlockInfo:
    return BlockInfo(
        number=number,
        hash=f"0x{number:064x}",
        parent_hash=f"0x{number - 1:064x}",
        timestamp=1_700_000_000 + 12 * number,
        tx_count=0,
        gas_used=0,
        gas_limit=30_000_000,
        miner="0x95222290dd7278aa3ddd389cc1e1d165cc4bafe5",
    )


@pytest.mark.asyncio
async def test_head_multiplexer_emits_headers_in_order(sink: CollectingSink) -> None:
    cancel = asyncio.Event()
    sub = HeadSubscription()
    mux = HeadMultiplexer(sub, sink, cancel=cancel)

    async def push_then_cancel() -> None:
        for n in (100, 101, 102):
            await sub.push(_head(n))
        cancel.set()

    asyncio.create_task(push_then_cancel())
    reason = await asyncio.wait_for(mux.run(), timeout=1)

    assert reason is TerminationReason.CANCELLED
    assert [b.number for b in sink.items] == [100, 101, 102]
    assert mux.stats.heads == 3 and mux.stats.dispatched == 3


@pytest.mark.asyncio
async def test_head_subscription_error_names_the_stream(sink: CollectingSink) -> None:
    sub = HeadSubscription()
    mux = HeadMultiplexer(sub, sink)

    asyncio.get_running_loop().call_later(0.01, sub.fail, ConnectionError("node down"))
    with pytest.raises(SubscriptionBroken, match="head subscription failed"):
        await asyncio.wait_for(mux.run(), timeout=1)
