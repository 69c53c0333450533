"""Resilient historical range fetcher.

For each height of an inclusive `[start, end]` range, in ascending order:

1. wait for the next rate-limit tick;
2. fetch with up to `max_retries` attempts, each under its own deadline,
   sleeping `attempt * base_backoff_s` between attempts;
3. on exhaustion count the height as skipped and move on;
4. stop early, with a partial summary, once the cancellation flag is set.

Per-height failures never escape `fetch_range`; they show up in the summary
counts, in the sink and in the manifest.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from logtap.core.config import RangeFetchConfig
from logtap.core.errors import FetchExhausted, InvalidRange
from logtap.core.interfaces import IEventSink, IFetchManifest, IRangeSource
from logtap.core.models import FetchOutcome, FetchRecord, FetchSummary
from logtap.fetching.ticker import RateTicker

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def _create_record(outcome: FetchOutcome) -> FetchRecord:
    """Manifest line for one processed height."""
    return FetchRecord(
        height=outcome.height,
        status="done" if outcome.ok else "failed",
        attempts=outcome.attempts,
        error=None if outcome.error is None else str(outcome.error),
        updated_at=time.time(),
    )


class RangeFetcher:
    """
    Fetch one item per height across a closed range.

    Parameters
    ----------
    source : IRangeSource
        Point query `fetch_at(height)`.
    config : RangeFetchConfig
        Timeout, rate interval, retry count and backoff step.
    sink : IEventSink | None
        Receives every FetchOutcome, then the FetchSummary.
    manifest : IFetchManifest | None
        Optional journal of one FetchRecord per processed height.
    cancel : asyncio.Event | None
        Cooperative cancellation, checked after each height.
    sleep : callable
        Backoff sleep; injectable for tests.
    """

    def __init__(
        self,
        source: IRangeSource,
        config: RangeFetchConfig | None = None,
        *,
        sink: IEventSink | None = None,
        manifest: IFetchManifest | None = None,
        cancel: asyncio.Event | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._source = source
        self._config = config or RangeFetchConfig()
        self._sink = sink
        self._manifest = manifest
        self._cancel = cancel if cancel is not None else asyncio.Event()
        self._sleep = sleep

    @property
    def config(self) -> RangeFetchConfig:
        return self._config

    async def _attempt(self, height: int) -> object:
        timeout = self._config.per_item_timeout_s
        try:
            return await asyncio.wait_for(self._source.fetch_at(height), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"fetch of height {height} timed out after {timeout}s") from e

    async def fetch_one(self, height: int) -> FetchOutcome:
        """Fetch one height with bounded retry and linear backoff.

        Never raises for fetch failures: an exhausted height comes back as a
        failed outcome whose `error` is a `FetchExhausted`.
        """
        max_retries = self._config.max_retries
        last_error: Exception | None = None
        for attempt in range(1, max_retries + 1):
            try:
                item = await self._attempt(height)
                return FetchOutcome(height=height, ok=True, item=item, attempts=attempt)
            except Exception as e:
                last_error = e

            if attempt < max_retries:
                backoff = attempt * self._config.base_backoff_s
                logger.warning(
                    "failed to fetch height %d, retry %d/%d after %.2fs: %r",
                    height, attempt, max_retries, backoff, last_error,
                )
                await self._sleep(backoff)

        exhausted = FetchExhausted(height, max_retries, last_error)
        exhausted.__cause__ = last_error
        return FetchOutcome(height=height, ok=False, error=exhausted, attempts=max_retries)

    async def fetch_range(self, start: int, end: int) -> FetchSummary:
        """Scan `[start, end]` and return the success/skip summary."""
        if start > end:
            raise InvalidRange(f"range start {start} must be <= end {end}")

        ticker = RateTicker(self._config.rate_interval_s)
        succeeded = 0
        skipped = 0
        cancelled = False
        logger.info(
            "fetching range [%d, %d] at one item per %.3fs", start, end, self._config.rate_interval_s
        )

        for height in range(start, end + 1):
            await ticker.tick()
            outcome = await self.fetch_one(height)
            if outcome.ok:
                succeeded += 1
            else:
                skipped += 1
                logger.error("height %d skipped: %s", height, outcome.error)

            if self._sink is not None:
                self._sink.emit(outcome)
            if self._manifest is not None:
                await self._manifest.append(_create_record(outcome))

            if self._cancel.is_set():
                logger.info("cancelled, stopping at height %d", height)
                cancelled = True
                break

        summary = FetchSummary(
            start=start,
            end=end,
            succeeded=succeeded,
            skipped=skipped,
            cancelled=cancelled,
        )
        if self._sink is not None:
            self._sink.emit(summary)
        return summary


async def fetch_range(
    source: IRangeSource,
    start: int,
    end: int,
    *,
    per_item_timeout: float,
    rate_interval: float,
    max_retries: int,
    base_backoff: float = 0.5,
    sink: IEventSink | None = None,
    manifest: IFetchManifest | None = None,
    cancel: asyncio.Event | None = None,
) -> FetchSummary:
    """Functional form of `RangeFetcher.fetch_range`."""
    config = RangeFetchConfig(
        per_item_timeout_s=per_item_timeout,
        rate_interval_s=rate_interval,
        max_retries=max_retries,
        base_backoff_s=base_backoff,
    )
    fetcher = RangeFetcher(source, config, sink=sink, manifest=manifest, cancel=cancel)
    return await fetcher.fetch_range(start, end)
