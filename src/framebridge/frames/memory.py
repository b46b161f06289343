"""In-memory frame store.

Keeps headers and sealed partitions in a dictionary. Segments sealed by
threads of the local engine are visible immediately; segments sealed in
another process are not, so this store cannot back a Spark job.
"""

from __future__ import annotations

import dataclasses
import threading
from typing import TYPE_CHECKING

from framebridge.frames.base import BaseFrameStore, FrameHeader

if TYPE_CHECKING:
    import pyarrow as pa


class MemoryFrameStore(BaseFrameStore):
    """Frame store backed by process memory.

    Example:
        >>> store = MemoryFrameStore()
        >>> frame = records_to_frame(points, Point, store=store)
        >>> store.list_frames()
        ['frame_...']
    """

    is_process_shared = False

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._headers: dict[str, FrameHeader] = {}
        self._partitions: dict[str, dict[int, "pa.RecordBatch"]] = {}

    def _read_header(self, key: str) -> FrameHeader | None:
        with self._lock:
            header = self._headers.get(key)
            return dataclasses.replace(header) if header is not None else None

    def _write_header(self, header: FrameHeader) -> None:
        with self._lock:
            self._headers[header.key] = dataclasses.replace(header)
            self._partitions.setdefault(header.key, {})

    def _write_partition(self, key: str, partition_index: int, batch: "pa.RecordBatch") -> None:
        with self._lock:
            self._partitions.setdefault(key, {})[partition_index] = batch

    def _read_partition(self, key: str, partition_index: int) -> "pa.RecordBatch | None":
        with self._lock:
            return self._partitions.get(key, {}).get(partition_index)

    def _partition_indexes(self, key: str) -> set[int]:
        with self._lock:
            return set(self._partitions.get(key, {}))

    def _delete(self, key: str) -> bool:
        with self._lock:
            self._partitions.pop(key, None)
            return self._headers.pop(key, None) is not None

    def list_frames(self) -> list[str]:
        with self._lock:
            return list(self._headers)

    def clear(self) -> None:
        """Remove all frames."""
        with self._lock:
            self._headers.clear()
            self._partitions.clear()

    def __repr__(self) -> str:
        return f"MemoryFrameStore(frames={len(self._headers)})"
