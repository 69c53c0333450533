from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from logtap.core.models import BlockInfo, FetchRecord, LogRecord


# ---------------------------------------------------------------------------
# ILogsProvider
# ---------------------------------------------------------------------------

@runtime_checkable
class ILogsProvider(Protocol):
    """
    Abstract provider of raw EVM logs, used to follow the chain head.

    Domain expectations:
    - It returns LogRecord objects already mapped into internal models.
    - It hides the underlying RPC technology.
    """

    async def get_logs(
        self,
        *,
        address: str,
        topic0s: list[str],
        from_block: int,
        to_block: int,
    ) -> list[LogRecord]:
        """Return all logs for (address, topic0s) over the inclusive block range."""
        ...

    async def latest_block(self) -> int:
        """Return the current chain head height."""
        ...


# ---------------------------------------------------------------------------
# IHeadsProvider
# ---------------------------------------------------------------------------

@runtime_checkable
class IHeadsProvider(Protocol):
    """
    Source of chain head headers, used by the head poller.

    Implementations:
    - RPC (eth_blockNumber + eth_getBlockByNumber)
    """

    async def latest_block(self) -> int:
        ...

    async def get_block(self, number: int) -> BlockInfo:
        """Return the header summary of block `number` or raise."""
        ...


# ---------------------------------------------------------------------------
# IRangeSource
# ---------------------------------------------------------------------------

@runtime_checkable
class IRangeSource(Protocol):
    """
    Point-query capability used by the range fetcher.

    Implementations:
    - BlockSource (eth_getBlockByNumber through RPC)
    - In-memory or scripted source for testing
    """

    async def fetch_at(self, height: int) -> Any:
        """Return the item at `height` or raise."""
        ...


# ---------------------------------------------------------------------------
# IEventSink
# ---------------------------------------------------------------------------

@runtime_checkable
class IEventSink(Protocol):
    """
    Outbound presentation capability.

    Receives DecodedEvent / UnknownEvent / MalformedEvent from the live path,
    FetchOutcome and FetchSummary from the historical path. How they are
    rendered or stored is up to the implementation.
    """

    def emit(self, obj: Any) -> None:
        ...


# ---------------------------------------------------------------------------
# IFetchManifest
# ---------------------------------------------------------------------------

@runtime_checkable
class IFetchManifest(Protocol):
    """
    Append-only journal of per-height fetch records.

    Implementations:
    - LiveManifest (JSONL file writer)
    """

    async def append(self, record: FetchRecord) -> None:
        ...
