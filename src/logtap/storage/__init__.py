"""Storage components for the fetch manifest and Parquet event shards.

This package provides:
- LiveManifest: JSONL journal of per-height fetch records
- ParquetEventSink: event sink writing decoded events as Parquet shards
"""

from logtap.storage.columns import Column
from logtap.storage.manifest import LiveManifest
from logtap.storage.shards import ParquetEventSink, ShardsDir

__all__ = [
    "Column",
    "LiveManifest",
    "ParquetEventSink",
    "ShardsDir",
]
