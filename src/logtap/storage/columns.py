from __future__ import annotations

from dataclasses import dataclass, field

import pyarrow as pa

from logtap.core.models import DecodedEvent

_BASE_FIELDS: list[tuple[str, pa.DataType]] = [
    ("block_number", pa.uint64()),
    ("tx_hash", pa.string()),
    ("log_index", pa.uint64()),
    ("contract", pa.string()),
    ("event", pa.string()),
]
_BASE_NAMES = frozenset(n for n, _ in _BASE_FIELDS)


@dataclass
class Column:
    """Dynamic columnar buffer of decoded events.

    - Base columns (provenance + event name) are always present and typed.
    - Every parameter name becomes a dynamic column on first appearance.
    - Dynamic values are stored as strings (or None) so uint256 stays exact
      and events with different layouts can share one table.
    """

    block_number: list[int] = field(default_factory=list)
    tx_hash: list[str] = field(default_factory=list)
    log_index: list[int] = field(default_factory=list)
    contract: list[str] = field(default_factory=list)
    event: list[str] = field(default_factory=list)

    dyn: dict[str, list[str | None]] = field(default_factory=dict)
    _rows: int = 0

    @staticmethod
    def empty() -> Column:
        return Column()

    def size(self) -> int:
        return self._rows

    def _ensure_dyn_col(self, name: str) -> list[str | None]:
        col = self.dyn.get(name)
        if col is None:
            col = [None] * self._rows
            self.dyn[name] = col
        return col

    def append_event(self, ev: DecodedEvent) -> None:
        """Append one decoded event; its parameters become columns."""
        p = ev.provenance
        self.block_number.append(p.block_number)
        self.tx_hash.append(p.tx_hash)
        self.log_index.append(p.log_index)
        self.contract.append(p.address)
        self.event.append(ev.name)
        self._rows += 1
        for col in self.dyn.values():
            col.append(None)
        for param in ev.params:
            name = f"param_{param.name}" if param.name in _BASE_NAMES else param.name
            self._ensure_dyn_col(name)[-1] = param.display()

    def take_first(self, n: int) -> Column:
        """Detach and return the first `n` rows as a new buffer slice."""
        out = Column()
        out.block_number, self.block_number = self.block_number[:n], self.block_number[n:]
        out.tx_hash, self.tx_hash = self.tx_hash[:n], self.tx_hash[n:]
        out.log_index, self.log_index = self.log_index[:n], self.log_index[n:]
        out.contract, self.contract = self.contract[:n], self.contract[n:]
        out.event, self.event = self.event[:n], self.event[n:]
        for k, col in self.dyn.items():
            out.dyn[k] = col[:n]
            self.dyn[k] = col[n:]
        out._rows = min(n, self._rows)
        self._rows -= out._rows
        return out

    def to_arrow_table(self) -> pa.Table:
        """Convert the buffer to a sorted Arrow table with deterministic schema."""
        fields = [pa.field(n, t) for n, t in _BASE_FIELDS]
        arrays: dict[str, pa.Array] = {
            "block_number": pa.array(self.block_number, type=pa.uint64()),
            "tx_hash": pa.array(self.tx_hash, type=pa.string()),
            "log_index": pa.array(self.log_index, type=pa.uint64()),
            "contract": pa.array(self.contract, type=pa.string()),
            "event": pa.array(self.event, type=pa.string()),
        }
        for name in sorted(self.dyn.keys()):
            fields.append(pa.field(name, pa.string()))
            arrays[name] = pa.array(self.dyn[name], type=pa.string())
        schema = pa.schema(fields)
        return pa.Table.from_pydict(arrays, schema=schema).sort_by(
            [("block_number", "ascending"), ("log_index", "ascending")]
        )
