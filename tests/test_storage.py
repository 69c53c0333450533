import json
from pathlib import Path
from typing import Callable

import pyarrow.parquet as pq
import pytest

from logtap.core.models import (
    DecodedEvent,
    DecodedParameter,
    FetchRecord,
    LogRecord,
    Provenance,
    UnknownEvent,
)
from logtap.decoding.decoder import decode_log
from logtap.decoding.specs import EventRegistry
from logtap.decoding.types import ParameterType
from logtap.storage.columns import Column
from logtap.storage.manifest import LiveManifest
from logtap.storage.shards import ParquetEventSink


@pytest.mark.asyncio
async def test_manifest_appends_json_lines(tmp_path: Path) -> None:
    path = tmp_path / "manifests" / "blocks.jsonl"
    manifest = LiveManifest(str(path))

    await manifest.append(FetchRecord(height=5, status="done", attempts=1, error=None, updated_at=1.0))
    await manifest.append(FetchRecord(height=6, status="failed", attempts=3, error="boom", updated_at=2.0))

    lines = [json.loads(line) for line in path.read_text().splitlines()]
    assert [(r["height"], r["status"], r["attempts"], r["error"]) for r in lines] == [
        (5, "done", 1, None),
        (6, "failed", 3, "boom"),
    ]


def test_parquet_sink_writes_full_and_final_shards(
    tmp_path: Path, erc20_registry: EventRegistry, make_transfer: Callable[..., LogRecord]
) -> None:
    sink = ParquetEventSink(tmp_path / "shards", rows_per_shard=2)
    events = [decode_log(make_transfer(10 + i, block_number=100 - i, log_index=i), erc20_registry) for i in range(3)]

    sink.emit(events[0])
    sink.emit(UnknownEvent(provenance=events[0].provenance, topic0=None))
    sink.emit(events[1])
    assert len(sink.written) == 1
    sink.emit(events[2])
    last = sink.close()

    assert last == tmp_path / "shards" / "shard_00001.parquet"
    first = pq.read_table(sink.written[0])
    assert first.num_rows == 2
    assert {"block_number", "tx_hash", "log_index", "contract", "event", "from", "to", "value"} <= set(
        first.column_names
    )
    # Sorted by block within the shard.
    assert first.column("block_number").to_pylist() == [99, 100]
    assert first.column("value").to_pylist() == ["11", "10"]
    assert pq.read_table(last).num_rows == 1
    assert sink.close() is None


def test_parquet_sink_continues_after_existing_shards(
    tmp_path: Path, erc20_registry: EventRegistry, make_transfer: Callable[..., LogRecord]
) -> None:
    first = ParquetEventSink(tmp_path, rows_per_shard=1)
    first.emit(decode_log(make_transfer(1), erc20_registry))

    second = ParquetEventSink(tmp_path, rows_per_shard=1)
    assert second.shard_idx == 1


def test_column_keeps_parameter_named_like_base_column() -> None:
    prov = Provenance(block_number=1, tx_hash="0x01", log_index=0, address="0xabc")
    ev = DecodedEvent(
        name="Weird",
        params=(DecodedParameter("event", ParameterType.UINT, 3),),
        provenance=prov,
    )
    col = Column.empty()
    col.append_event(ev)

    table = col.to_arrow_table()
    assert table.column("event").to_pylist() == ["Weird"]
    assert table.column("param_event").to_pylist() == ["3"]


def test_column_pads_missing_parameters() -> None:
    prov = Provenance(block_number=1, tx_hash="0x01", log_index=0, address="0xabc")
    col = Column.empty()
    col.append_event(DecodedEvent("A", (DecodedParameter("x", ParameterType.UINT, 1),), prov))
    col.append_event(DecodedEvent("B", (DecodedParameter("y", ParameterType.BOOL, True),), prov))

    head = col.take_first(1)
    assert head.size() == 1 and col.size() == 1
    assert col.dyn == {"x": [None], "y": ["true"]}
