from __future__ import annotations

import asyncio
import os

from logtap.core.models import FetchRecord


class LiveManifest:
    """Append-only JSONL journal of per-height fetch records.

    Each line is flushed and fsynced before `append` returns, so a crash
    leaves at most the line being written incomplete.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        open(self.path, "a").close()
        self._lock = asyncio.Lock()

    async def append(self, rec: FetchRecord) -> None:
        """Append one fetch record to the manifest."""
        line = rec.to_json_line()
        async with self._lock:
            await asyncio.to_thread(self._write_line, self.path, line)

    @staticmethod
    def _write_line(path: str, line: str) -> None:
        with open(path, "a", buffering=1) as f:
            f.write(line)
            f.flush()
            os.fsync(f.fileno())
