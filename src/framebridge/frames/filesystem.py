"""Filesystem frame store using Arrow IPC files.

Layout under ``base_path``::

    <key>/_header.json         frame header
    <key>/part-00000.arrow     sealed segments of partition 0
    <key>/part-00001.arrow     ...

Every write goes to a temporary file that is renamed into place, so a reader
never sees a half-written partition. The store only carries its path and
options, so it pickles cleanly into Spark tasks; ``base_path`` must be
visible to every executor (local mode, or a shared mount).
"""

from __future__ import annotations

import json
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from framebridge.errors import FrameStoreError
from framebridge.frames.base import BaseFrameStore, FrameHeader

if TYPE_CHECKING:
    import pyarrow as pa

HEADER_FILE = "_header.json"
_PARTITION_RE = re.compile(r"^part-(\d+)\.arrow$")

COMPRESSIONS = (None, "lz4", "zstd")


def _atomic_write(path: Path, data: bytes) -> None:
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class FileSystemFrameStore(BaseFrameStore):
    """Frame store persisting segments as Arrow IPC files.

    Example:
        >>> store = FileSystemFrameStore("/mnt/shared/frames", compression="zstd")
        >>> frame = table_to_frame(spark_df, store=store)
    """

    is_process_shared = True

    def __init__(
        self,
        base_path: str | os.PathLike[str] = ".framebridge/frames",
        compression: str | None = None,
        create_dirs: bool = True,
    ) -> None:
        """Initialize the filesystem store.

        Args:
            base_path: Base directory for frames.
            compression: IPC buffer compression (None, "lz4", "zstd").
            create_dirs: Whether to create ``base_path`` if missing.
        """
        if compression not in COMPRESSIONS:
            raise FrameStoreError(f"Unsupported compression: {compression}")

        self._base_path = Path(base_path)
        self._compression = compression
        if create_dirs:
            self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _frame_dir(self, key: str) -> Path:
        return self._base_path / key

    def _partition_path(self, key: str, partition_index: int) -> Path:
        return self._frame_dir(key) / f"part-{partition_index:05d}.arrow"

    # -------------------------------------------------------------------------
    # Storage Primitives
    # -------------------------------------------------------------------------

    def _read_header(self, key: str) -> FrameHeader | None:
        path = self._frame_dir(key) / HEADER_FILE
        try:
            with open(path, encoding="utf-8") as f:
                return FrameHeader.from_dict(json.load(f))
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            raise FrameStoreError(f"Corrupted header for frame {key}: {e}") from e

    def _write_header(self, header: FrameHeader) -> None:
        frame_dir = self._frame_dir(header.key)
        frame_dir.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(header.to_dict(), indent=2).encode("utf-8")
        _atomic_write(frame_dir / HEADER_FILE, payload)

    def _write_partition(self, key: str, partition_index: int, batch: "pa.RecordBatch") -> None:
        import pyarrow as pa

        sink = pa.BufferOutputStream()
        options = pa.ipc.IpcWriteOptions(compression=self._compression)
        with pa.ipc.new_file(sink, batch.schema, options=options) as writer:
            writer.write_batch(batch)
        _atomic_write(self._partition_path(key, partition_index), sink.getvalue().to_pybytes())

    def _read_partition(self, key: str, partition_index: int) -> "pa.RecordBatch | None":
        import pyarrow as pa

        path = self._partition_path(key, partition_index)
        if not path.exists():
            return None

        with pa.OSFile(str(path), "rb") as source:
            table = pa.ipc.open_file(source).read_all()

        batches = table.combine_chunks().to_batches()
        if not batches:
            return pa.RecordBatch.from_arrays(
                [pa.array([], type=f.type) for f in table.schema], schema=table.schema
            )
        return batches[0]

    def _partition_indexes(self, key: str) -> set[int]:
        frame_dir = self._frame_dir(key)
        if not frame_dir.exists():
            return set()
        indexes = set()
        for entry in frame_dir.iterdir():
            match = _PARTITION_RE.match(entry.name)
            if match:
                indexes.add(int(match.group(1)))
        return indexes

    def _delete(self, key: str) -> bool:
        frame_dir = self._frame_dir(key)
        if not frame_dir.exists():
            return False
        shutil.rmtree(frame_dir)
        return True

    def list_frames(self) -> list[str]:
        if not self._base_path.exists():
            return []
        return sorted(
            entry.name
            for entry in self._base_path.iterdir()
            if (entry / HEADER_FILE).exists()
        )

    def __repr__(self) -> str:
        return f"FileSystemFrameStore({str(self._base_path)!r}, compression={self._compression!r})"
