"""Core data models.

This module defines:
- `LogRecord`: one raw log as delivered by the node (topics + opaque data).
- `DecodedParameter` / `RawWord`: typed values produced by the decoders.
- `DecodedEvent`, `UnknownEvent`, `MalformedEvent`: per-record decode results.
- `BlockInfo`: the item fetched per height by the block range source, also
  the item of the new-head stream.
- `TransactionInfo`, `ReceiptInfo`: one transaction and its execution result.
- `FetchOutcome`, `FetchSummary`, `FetchRecord`: range-fetch results and the
  manifest line persisted per height.

Design notes
------------
- Everything is frozen: a record is owned by the single dispatch that decodes
  it, and decode results are plain values with no identity beyond provenance.
- Topics and data are kept as bytes; hex is only used at the RPC boundary.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from logtap.decoding.types import ParameterType

Status = Literal["done", "failed"]

MAX_TOPICS = 4
WORD_SIZE = 32


def hex_to_bytes(value: str | bytes | None) -> bytes:
    """Decode "0x…" hex (or pass bytes through); None/"0x" → b""."""
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    h = value[2:] if value[:2].lower() == "0x" else value
    if len(h) % 2:
        h = "0" + h
    return bytes.fromhex(h) if h else b""


def _hex_int(value: Any) -> int:
    """Parse an RPC quantity given as "0x…" or a plain int."""
    if isinstance(value, int):
        return value
    s = str(value)
    return int(s, 16) if s[:2].lower() == "0x" else int(s)


# === Raw log ===


@dataclass(frozen=True, slots=True)
class LogRecord:
    """Raw log as received from the node, minimally normalized."""

    address: str  # lowercased 0x...
    topics: tuple[bytes, ...]  # 0..4 words of 32 bytes; topics[0] is the signature digest
    data: bytes
    block_number: int
    tx_hash: str  # lowercased 0x...
    log_index: int

    def __post_init__(self) -> None:
        if len(self.topics) > MAX_TOPICS:
            raise ValueError(f"a log carries at most {MAX_TOPICS} topics, got {len(self.topics)}")
        for i, t in enumerate(self.topics):
            if len(t) != WORD_SIZE:
                raise ValueError(f"topic {i} is {len(t)} bytes, expected {WORD_SIZE}")

    @property
    def topic0(self) -> bytes | None:
        return self.topics[0] if self.topics else None

    @classmethod
    def from_rpc(cls, rl: dict[str, Any]) -> LogRecord:
        """Build from an eth_getLogs / eth_subscribe("logs") JSON object."""
        return cls(
            address=str(rl["address"]).lower(),
            topics=tuple(hex_to_bytes(t) for t in rl.get("topics", [])),
            data=hex_to_bytes(rl.get("data") or "0x"),
            block_number=_hex_int(rl["blockNumber"]),
            tx_hash=str(rl.get("transactionHash") or rl.get("transaction_hash") or "").lower(),
            log_index=_hex_int(rl["logIndex"]),
        )


# === Decoded values ===


@dataclass(frozen=True, slots=True)
class RawWord:
    """A value surfaced undecoded, marked as raw."""

    hex: str  # 0x-prefixed

    def __str__(self) -> str:
        return f"{self.hex} (raw)"


DecodedValue = str | int | bool | bytes | RawWord


@dataclass(frozen=True, slots=True)
class DecodedParameter:
    name: str
    type: ParameterType
    value: DecodedValue
    indexed: bool = False

    def display(self) -> str:
        """Human-readable rendering of the value."""
        v = self.value
        if isinstance(v, bytes):
            return "0x" + v.hex()
        return str(v) if not isinstance(v, bool) else str(v).lower()


@dataclass(frozen=True, slots=True)
class Provenance:
    """Where a log came from."""

    block_number: int
    tx_hash: str
    log_index: int
    address: str

    @classmethod
    def of(cls, record: LogRecord) -> Provenance:
        return cls(
            block_number=record.block_number,
            tx_hash=record.tx_hash,
            log_index=record.log_index,
            address=record.address,
        )


@dataclass(frozen=True, slots=True)
class DecodedEvent:
    """A recognized event with its parameters in declaration order."""

    name: str
    params: tuple[DecodedParameter, ...]
    provenance: Provenance

    def values(self) -> dict[str, DecodedValue]:
        return {p.name: p.value for p in self.params}


@dataclass(frozen=True, slots=True)
class UnknownEvent:
    """A log whose topic0 is not in the registry (or that has no topics)."""

    provenance: Provenance
    topic0: str | None  # 0x-hex, None for anonymous logs


@dataclass(frozen=True, slots=True)
class MalformedEvent:
    """A recognized event whose topics/data could not be decoded."""

    name: str
    provenance: Provenance
    error: str


DecodeResult = DecodedEvent | UnknownEvent | MalformedEvent


# === Historical fetch ===


@dataclass(frozen=True, slots=True)
class BlockInfo:
    """Block header summary fetched per height."""

    number: int
    hash: str
    parent_hash: str
    timestamp: int
    tx_count: int
    gas_used: int
    gas_limit: int
    miner: str
    base_fee_per_gas: int | None = None

    @property
    def gas_usage_percent(self) -> float:
        return self.gas_used / self.gas_limit * 100 if self.gas_limit else 0.0

    @classmethod
    def from_rpc(cls, rb: dict[str, Any]) -> BlockInfo:
        """Build from an eth_getBlockByNumber(…, false) JSON object."""
        base_fee = rb.get("baseFeePerGas")
        return cls(
            number=_hex_int(rb["number"]),
            hash=str(rb["hash"]).lower(),
            parent_hash=str(rb.get("parentHash") or "").lower(),
            timestamp=_hex_int(rb["timestamp"]),
            tx_count=len(rb.get("transactions") or []),
            gas_used=_hex_int(rb.get("gasUsed") or 0),
            gas_limit=_hex_int(rb.get("gasLimit") or 0),
            miner=str(rb.get("miner") or "").lower(),
            base_fee_per_gas=None if base_fee is None else _hex_int(base_fee),
        )


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    """Result of fetching one height (created per height, consumed immediately)."""

    height: int
    ok: bool
    item: Any = None
    error: BaseException | None = None
    attempts: int = 0


@dataclass(frozen=True, slots=True)
class FetchSummary:
    """Counts over the heights actually processed."""

    start: int
    end: int
    succeeded: int = 0
    skipped: int = 0
    cancelled: bool = False

    @property
    def total(self) -> int:
        return self.succeeded + self.skipped


# === Transactions ===


@dataclass(frozen=True, slots=True)
class TransactionInfo:
    """Transaction body as returned by eth_getTransactionByHash."""

    hash: str
    nonce: int
    gas: int
    gas_price: int
    sender: str
    to: str | None  # None for contract creation
    value: int
    data_len: int
    block_number: int | None = None  # None while pending

    @property
    def pending(self) -> bool:
        return self.block_number is None

    @classmethod
    def from_rpc(cls, rt: dict[str, Any]) -> TransactionInfo:
        block = rt.get("blockNumber")
        to = rt.get("to")
        return cls(
            hash=str(rt["hash"]).lower(),
            nonce=_hex_int(rt.get("nonce") or 0),
            gas=_hex_int(rt.get("gas") or 0),
            gas_price=_hex_int(rt.get("gasPrice") or 0),
            sender=str(rt.get("from") or "").lower(),
            to=None if to is None else str(to).lower(),
            value=_hex_int(rt.get("value") or 0),
            data_len=len(hex_to_bytes(rt.get("input"))),
            block_number=None if block is None else _hex_int(block),
        )


@dataclass(frozen=True, slots=True)
class ReceiptInfo:
    """Execution result of a mined transaction (eth_getTransactionReceipt)."""

    tx_hash: str
    status: int  # 1 success, 0 reverted
    block_number: int
    block_hash: str
    tx_index: int
    gas_used: int
    log_count: int
    first_log_address: str | None = None
    contract_address: str | None = None

    @classmethod
    def from_rpc(cls, rr: dict[str, Any]) -> ReceiptInfo:
        logs = rr.get("logs") or []
        created = rr.get("contractAddress")
        return cls(
            tx_hash=str(rr["transactionHash"]).lower(),
            status=_hex_int(rr.get("status") or 0),
            block_number=_hex_int(rr["blockNumber"]),
            block_hash=str(rr.get("blockHash") or "").lower(),
            tx_index=_hex_int(rr.get("transactionIndex") or 0),
            gas_used=_hex_int(rr.get("gasUsed") or 0),
            log_count=len(logs),
            first_log_address=str(logs[0]["address"]).lower() if logs else None,
            contract_address=None if created is None else str(created).lower(),
        )


# === Manifest record ===


@dataclass(slots=True)
class FetchRecord:
    """A single height execution record persisted to the live manifest."""

    height: int
    status: Status
    attempts: int
    error: str | None
    updated_at: float
    extra: dict[str, Any] = field(default_factory=dict)

    def to_json_line(self) -> str:
        """Serialize as a compact JSON line."""
        return json.dumps(asdict(self), separators=(",", ":")) + "\n"
