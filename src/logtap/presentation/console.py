"""Sinks that show results to a person or keep them in memory.

- `ConsoleSink`: rich rendering of every result kind the pipelines emit.
- `CollectingSink`: list-backed sink for tests and embedding.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from rich.console import Console

from logtap.core.models import (
    BlockInfo,
    DecodedEvent,
    FetchOutcome,
    FetchSummary,
    MalformedEvent,
    ReceiptInfo,
    TransactionInfo,
    UnknownEvent,
)

RULE = "━" * 56


def gas_saturation(block: BlockInfo) -> str:
    """Classify block fullness by gas usage."""
    pct = block.gas_usage_percent
    if pct > 95:
        return "saturated"
    if pct > 75:
        return "busy"
    if pct > 50:
        return "normal"
    return "idle"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class ConsoleSink:
    """Render pipeline output with a rich Console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def emit(self, obj: Any) -> None:
        match obj:
            case DecodedEvent():
                self._decoded(obj)
            case UnknownEvent():
                p = obj.provenance
                self.console.print(
                    f"[yellow][{_now()}] Unknown Event[/] - Block: {p.block_number}, "
                    f"Tx: {p.tx_hash}, Topic[0]: {obj.topic0 or '-'}"
                )
            case MalformedEvent():
                p = obj.provenance
                self.console.print(
                    f"[red][{_now()}] Malformed {obj.name}[/] - Block: {p.block_number}, "
                    f"Tx: {p.tx_hash}, Log Index: {p.log_index}: {obj.error}"
                )
            case FetchOutcome(ok=True, item=BlockInfo() as block):
                self.block(block)
            case FetchOutcome(ok=True):
                self.console.print(f"[green]height {obj.height}[/]: {obj.item!r}")
            case FetchOutcome():
                self.console.print(f"[red]height {obj.height} skipped[/]: {obj.error}")
            case FetchSummary():
                self._summary(obj)
            case BlockInfo():
                self.console.print(
                    f"[{_now()}] New Block - Number: {obj.number}, Hash: {obj.hash}", markup=False
                )
            case TransactionInfo():
                self.transaction(obj)
            case ReceiptInfo():
                self.receipt(obj)
            case _:
                self.console.print(obj)

    def _decoded(self, ev: DecodedEvent) -> None:
        p = ev.provenance
        c = self.console
        c.print(RULE)
        c.print(f"[{_now()}] Event: [bold]{ev.name}[/]")
        c.print(f"  Block Number: {p.block_number}")
        c.print(f"  Tx Hash     : {p.tx_hash}")
        c.print(f"  Log Index   : {p.log_index}")
        c.print(f"  Contract    : {p.address}")

        indexed = [q for q in ev.params if q.indexed]
        data = [q for q in ev.params if not q.indexed]
        if indexed:
            c.print("\n  Indexed Parameters (from Topics):")
            for i, q in enumerate(indexed, 1):
                c.print(f"    [{i}] {q.name} ({q.type.value}): {q.display()}", markup=False)
        if data:
            c.print("\n  Non-Indexed Parameters (from Data):")
            for i, q in enumerate(data, 1):
                c.print(f"    [{i}] {q.name} ({q.type.value}): {q.display()}", markup=False)
        else:
            c.print("\n  Non-Indexed Parameters: None")
        c.print(RULE + "\n")

    def block(self, b: BlockInfo) -> None:
        ts = datetime.fromtimestamp(b.timestamp, tz=timezone.utc).isoformat()
        c = self.console
        c.print(f"[bold]Block {b.number}[/]")
        c.print(f"  Hash        : {b.hash}")
        c.print(f"  Parent Hash : {b.parent_hash}")
        if b.miner:
            c.print(f"  Miner       : {b.miner}")
        c.print(f"  Time        : {ts}")
        c.print(f"  Gas Used    : {b.gas_used} ({b.gas_usage_percent:.4f}%) [{gas_saturation(b)}]", markup=False)
        c.print(f"  Gas Limit   : {b.gas_limit}")
        if b.base_fee_per_gas is not None:
            c.print(f"  Base Fee    : {b.base_fee_per_gas}")
        c.print(f"  Tx Count    : {b.tx_count}")

    def transaction(self, tx: TransactionInfo) -> None:
        c = self.console
        c.print("=== Transaction ===")
        c.print(f"  Hash        : {tx.hash}")
        c.print(f"  From        : {tx.sender}")
        c.print(f"  To          : {tx.to or '(contract creation)'}")
        c.print(f"  Nonce       : {tx.nonce}")
        c.print(f"  Gas         : {tx.gas}")
        c.print(f"  Gas Price   : {tx.gas_price}")
        c.print(f"  Value (Wei) : {tx.value}")
        c.print(f"  Data Len    : {tx.data_len} bytes")
        c.print(f"  Pending     : {str(tx.pending).lower()}")

    def receipt(self, r: ReceiptInfo) -> None:
        c = self.console
        c.print("=== Receipt ===")
        c.print(f"  Status      : {r.status} ({'success' if r.status == 1 else 'reverted'})")
        c.print(f"  Block Number: {r.block_number}")
        c.print(f"  Block Hash  : {r.block_hash}")
        c.print(f"  Tx Index    : {r.tx_index}")
        c.print(f"  Gas Used    : {r.gas_used}")
        if r.contract_address:
            c.print(f"  Contract    : {r.contract_address}")
        c.print(f"  Logs        : {r.log_count}")
        if r.first_log_address:
            c.print(f"  First Log Address : {r.first_log_address}")

    def _summary(self, s: FetchSummary) -> None:
        c = self.console
        c.print("\n[bold]=== Summary ===[/]")
        c.print(f"Success: {s.succeeded} blocks")
        c.print(f"Skipped: {s.skipped} blocks")
        c.print(f"Total: {s.total} blocks")
        c.print(f"Range: {s.end - s.start + 1} blocks [{s.start}, {s.end}]", markup=False)
        if s.cancelled:
            c.print(f"[yellow]cancelled after {s.total} blocks[/]")


class CollectingSink:
    """Keep every emitted object in `items`, in emission order."""

    def __init__(self) -> None:
        self.items: list[Any] = []

    def emit(self, obj: Any) -> None:
        self.items.append(obj)

    def of_type(self, cls: type) -> list[Any]:
        return [o for o in self.items if isinstance(o, cls)]
