"""Head-following producers.

Both pollers turn JSON-RPC polling into a live stream feeding a
`Subscription`:

- `LogPoller`: each round reads the chain head, fetches the logs of the new
  blocks with `eth_getLogs` and pushes them in (block, log index) order.
- `HeadPoller`: each round reads the chain head and pushes the header of
  every block it has not reported yet.

Any provider error is handed to `subscription.fail`, which ends polling and
lets the multiplexer terminate.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from logtap.core.interfaces import IHeadsProvider, ILogsProvider
from logtap.subscription.stream import HeadSubscription, LogSubscription, Subscription

logger = logging.getLogger(__name__)


class _Poller:
    """Polling loop shared by the log and head producers."""

    task_name = "poller"

    def __init__(
        self,
        subscription: Subscription,
        *,
        interval_s: float,
        start_block: int | None,
        sleep: Callable[[float], Awaitable[None]],
    ) -> None:
        self.subscription = subscription
        self.interval_s = interval_s
        self.next_block = start_block
        self._sleep = sleep

    async def _poll_once(self) -> bool:
        """One polling round. Returns False once the subscription refuses items."""
        raise NotImplementedError

    async def run(self) -> None:
        """Poll until the subscription is closed or the provider fails."""
        try:
            while not self.subscription.closed:
                if not await self._poll_once():
                    break
                await self._sleep(self.interval_s)
        except Exception as e:
            logger.error("%s failed: %r", self.task_name, e)
            self.subscription.fail(e)

    def start(self) -> asyncio.Task[None]:
        """Run in a background task that is cancelled on unsubscribe."""
        task = asyncio.create_task(self.run(), name=self.task_name)
        self.subscription.add_close_callback(task.cancel)
        return task


class LogPoller(_Poller):
    """
    Parameters
    ----------
    provider : ILogsProvider
        Usually `RPC`.
    subscription : LogSubscription
        Destination of the records.
    address : str
        Contract whose logs are followed.
    topic0s : Sequence[str]
        Optional topic0 filter; empty means every log of the contract.
    interval_s : float
        Pause between polling rounds.
    start_block : int | None
        First block to scan; defaults to the block after the current head.
    """

    task_name = "log-poller"

    def __init__(
        self,
        provider: ILogsProvider,
        subscription: LogSubscription,
        *,
        address: str,
        topic0s: Sequence[str] = (),
        interval_s: float = 2.0,
        start_block: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        super().__init__(subscription, interval_s=interval_s, start_block=start_block, sleep=sleep)
        self.provider = provider
        self.address = address
        self.topic0s = list(topic0s)

    async def _poll_once(self) -> bool:
        head = await self.provider.latest_block()
        if self.next_block is None:
            self.next_block = head + 1
            logger.info("following %s from block %d", self.address, self.next_block)
            return True
        if head < self.next_block:
            return True

        logs = await self.provider.get_logs(
            address=self.address,
            topic0s=self.topic0s,
            from_block=self.next_block,
            to_block=head,
        )
        logger.debug("blocks [%d, %d]: %d log(s)", self.next_block, head, len(logs))
        for rec in sorted(logs, key=lambda r: (r.block_number, r.log_index)):
            if not await self.subscription.push(rec):
                return False
        self.next_block = head + 1
        return True


class HeadPoller(_Poller):
    """Push the header of every new block, oldest first.

    Blocks between two polls are not skipped: if the head jumped by three,
    three headers are pushed.
    """

    task_name = "head-poller"

    def __init__(
        self,
        provider: IHeadsProvider,
        subscription: HeadSubscription,
        *,
        interval_s: float = 2.0,
        start_block: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        super().__init__(subscription, interval_s=interval_s, start_block=start_block, sleep=sleep)
        self.provider = provider

    async def _poll_once(self) -> bool:
        head = await self.provider.latest_block()
        if self.next_block is None:
            self.next_block = head + 1
            logger.info("following new heads from block %d", self.next_block)
            return True
        while self.next_block <= head:
            block = await self.provider.get_block(self.next_block)
            if not await self.subscription.push(block):
                return False
            self.next_block += 1
        return True
