from __future__ import annotations

import glob
import logging
import os
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.parquet as pq

from logtap.core.models import DecodedEvent
from logtap.storage.columns import Column

logger = logging.getLogger(__name__)


class ShardsDir:
    """Directory of `shard_00000.parquet`, `shard_00001.parquet`, ..."""

    def __init__(self, shards_dir: Path):
        self.shards_dir = shards_dir
        self.shards_dir.mkdir(exist_ok=True, parents=True)

    def shards_files_pattern(self) -> str:
        return (self.shards_dir / "shard_*.parquet").as_posix()

    def list_shards(self) -> list[str]:
        return sorted(glob.glob(self.shards_files_pattern()))

    def shard_path(self, idx: int) -> Path:
        return self.shards_dir / f"shard_{idx:05d}.parquet"


class ParquetEventSink:
    """
    Event sink persisting decoded events as Parquet shards.

    - Only `DecodedEvent` rows are stored; unknown and malformed results have
      no parameter layout and are skipped.
    - Rows are buffered in a dynamic `Column`; every `rows_per_shard` rows a
      shard is written atomically (tmp + replace).
    - `close()` writes the remaining rows as a final, shorter shard.
    - A new sink over an existing directory continues after the last shard.
    """

    def __init__(
        self,
        out_dir: Path | str,
        *,
        rows_per_shard: int = 250_000,
        codec: str = "zstd",
    ) -> None:
        if rows_per_shard < 1:
            raise ValueError("rows_per_shard must be >= 1")
        self.rows_per_shard = rows_per_shard
        self.codec = codec
        self.shards_dir = ShardsDir(Path(out_dir))
        self.buf = Column.empty()
        self.written: list[Path] = []
        self.shard_idx = self._init_from_existing()

    def _init_from_existing(self) -> int:
        existing = self.shards_dir.list_shards()
        if not existing:
            return 0
        last_idx = int(os.path.basename(existing[-1]).split("_")[1].split(".")[0])
        return last_idx + 1

    def _atomic_write(self, out_path: Path, table: pa.Table) -> Path | None:
        """Write Parquet atomically (tmp + replace)."""
        if len(table) == 0:
            return None
        tmp = out_path.with_suffix(".tmp")
        pq.write_table(table, tmp, compression=self.codec)
        os.replace(tmp, out_path)
        logger.info("wrote %s (rows=%d, cols=%d)", out_path, len(table), len(table.schema))
        return out_path

    def _write_shard(self, n: int) -> None:
        tbl = self.buf.take_first(n).to_arrow_table()
        out_path = self._atomic_write(self.shards_dir.shard_path(self.shard_idx), tbl)
        if out_path:
            self.written.append(out_path)
            self.shard_idx += 1

    def emit(self, obj: Any) -> None:
        if not isinstance(obj, DecodedEvent):
            return
        self.buf.append_event(obj)
        if self.buf.size() >= self.rows_per_shard:
            self._write_shard(self.rows_per_shard)

    def close(self) -> Path | None:
        """Flush remaining rows. Returns the last shard path written (if any)."""
        remaining = self.buf.size()
        if remaining == 0:
            return None
        self._write_shard(remaining)
        return self.written[-1]
