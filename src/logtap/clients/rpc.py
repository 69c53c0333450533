"""Lightweight JSON-RPC client for Ethereum-compatible nodes.

This module provides:
- `RPC`: an async client with sane timeouts/connection limits
- `BlockSource`: adapts `RPC.get_block` to the range fetcher's point query
- Helper utilities to format block numbers and topics

It returns `LogRecord`, `BlockInfo`, `TransactionInfo` and `ReceiptInfo`
values ready for downstream decoding and display.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx

from logtap.core.errors import RPCError
from logtap.core.models import BlockInfo, LogRecord, ReceiptInfo, TransactionInfo


def to_hex_block(x: int) -> str:
    """Return a 0x-prefixed hex block number."""
    return hex(x)


def topics_param(topic0s: Sequence[str]) -> list[list[str]]:
    """Format topic0 signatures for eth_getLogs RPC call."""
    return [[t.lower() for t in topic0s]]


class RPC:
    """Minimal async RPC client.

    Parameters
    ----------
    url : str
        RPC endpoint URL.
    timeout_s : int
        Per-operation timeout in seconds (connect/read/write).
    max_connections : int
        Maximum concurrent connections to keep in the pool.
    transport : httpx.AsyncBaseTransport | None
        Optional transport override (e.g. `httpx.MockTransport` in tests).
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_s: int = 20,
        max_connections: int = 64,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self._next_id = 0
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=timeout_s,
                read=timeout_s,
                write=timeout_s,
                pool=max(30, timeout_s * 3),
            ),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
            http2=True,
            transport=transport,
        )

    async def _call(self, method: str, params: list[Any]) -> Any:
        self._next_id += 1
        payload = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        r = await self.client.post(self.url, json=payload)
        r.raise_for_status()
        data = r.json()
        if "error" in data:
            e = data["error"] or {}
            raise RPCError(method, e.get("code"), e.get("message"))
        return data.get("result")

    async def chain_id(self) -> int:
        """Return the chain id as an int."""
        return int(await self._call("eth_chainId", []), 16)

    async def latest_block(self) -> int:
        """Return the latest block number as an int."""
        return int(await self._call("eth_blockNumber", []), 16)

    async def get_logs(
        self,
        *,
        address: str,
        topic0s: Sequence[str],
        from_block: int,
        to_block: int,
    ) -> list[LogRecord]:
        """Fetch logs for an address and a set of topic0 signatures within a block range.

        An empty `topic0s` matches every log emitted by the address.
        """
        flt: dict[str, Any] = {
            "address": address.lower(),
            "fromBlock": to_hex_block(from_block),
            "toBlock": to_hex_block(to_block),
        }
        if topic0s:
            flt["topics"] = topics_param(topic0s)
        result = await self._call("eth_getLogs", [flt])
        return [LogRecord.from_rpc(rl) for rl in result or []]

    async def get_block(self, number: int) -> BlockInfo:
        """Fetch the header summary of block `number` (without transaction bodies)."""
        rb = await self._call("eth_getBlockByNumber", [to_hex_block(number), False])
        if rb is None:
            raise LookupError(f"block {number} not found")
        return BlockInfo.from_rpc(rb)

    async def get_transaction(self, tx_hash: str) -> TransactionInfo:
        """Fetch a transaction by hash; pending transactions have no block number."""
        rt = await self._call("eth_getTransactionByHash", [tx_hash])
        if rt is None:
            raise LookupError(f"transaction {tx_hash} not found")
        return TransactionInfo.from_rpc(rt)

    async def get_receipt(self, tx_hash: str) -> ReceiptInfo | None:
        """Fetch the receipt of a mined transaction, or None while it is pending."""
        rr = await self._call("eth_getTransactionReceipt", [tx_hash])
        return None if rr is None else ReceiptInfo.from_rpc(rr)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()


class BlockSource:
    """`IRangeSource` over blocks: `fetch_at(h)` is `eth_getBlockByNumber(h)`."""

    def __init__(self, rpc: RPC) -> None:
        self.rpc = rpc

    async def fetch_at(self, height: int) -> BlockInfo:
        return await self.rpc.get_block(height)
