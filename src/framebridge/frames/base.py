"""Base classes for frame stores.

A frame store is the column-table engine: it registers frame headers, hands
out segments to partition tasks, keeps the sealed segments of every partition
and finalizes frames once all row counts are known.

Lifecycle of a frame:

    prepare(key, names)            header PREPARED, not readable
    create_segments(key, p)        one open segment per column  } per task,
    seal_segments(key, p, segs)    partition p stored           } in parallel
    finalize(key, row_counts)      header FINALIZED, readable

Subclasses implement the raw storage primitives (``_write_header``,
``_write_partition``, ...); the state checks live here.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable
from uuid import uuid4

from framebridge.errors import (
    FrameNotFoundError,
    FrameNotReadyError,
    FrameStateError,
    FrameStoreError,
)
from framebridge.frames.segment import Segment
from framebridge.frames.table import ColumnTable
from framebridge.protocols import FrameState

if TYPE_CHECKING:
    import pyarrow as pa

logger = logging.getLogger(__name__)


def new_frame_key(prefix: str = "frame") -> str:
    """Generate a process-unique frame key."""
    return f"{prefix}_{uuid4().hex}"


# =============================================================================
# Frame Header
# =============================================================================


@dataclass
class FrameHeader:
    """Metadata of a frame.

    Attributes:
        key: Frame key.
        column_names: Ordered column names.
        state: Lifecycle state.
        row_counts: Per-partition row counts (set on finalize).
        degraded_count: Values stored as NaN for lack of a numeric mapping.
        created_at: Creation timestamp.
    """

    key: str
    column_names: tuple[str, ...]
    state: FrameState = FrameState.PREPARED
    row_counts: tuple[int, ...] = ()
    degraded_count: int = 0
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "column_names": list(self.column_names),
            "state": self.state.value,
            "row_counts": list(self.row_counts),
            "degraded_count": self.degraded_count,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FrameHeader":
        return cls(
            key=data["key"],
            column_names=tuple(data["column_names"]),
            state=FrameState(data["state"]),
            row_counts=tuple(data.get("row_counts", ())),
            degraded_count=data.get("degraded_count", 0),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


# =============================================================================
# Base Frame Store
# =============================================================================


class BaseFrameStore(ABC):
    """Abstract base class for frame stores."""

    #: Whether segments sealed in another process are visible to the driver.
    is_process_shared: bool = False

    # -------------------------------------------------------------------------
    # Abstract Methods - Storage Primitives
    # -------------------------------------------------------------------------

    @abstractmethod
    def _read_header(self, key: str) -> FrameHeader | None:
        """Read a header, or None if the key is unknown."""
        pass

    @abstractmethod
    def _write_header(self, header: FrameHeader) -> None:
        pass

    @abstractmethod
    def _write_partition(self, key: str, partition_index: int, batch: "pa.RecordBatch") -> None:
        pass

    @abstractmethod
    def _read_partition(self, key: str, partition_index: int) -> "pa.RecordBatch | None":
        """Read a stored partition, or None if it was never sealed."""
        pass

    @abstractmethod
    def _partition_indexes(self, key: str) -> set[int]:
        """Get the indexes of all sealed partitions of a frame."""
        pass

    @abstractmethod
    def _delete(self, key: str) -> bool:
        pass

    @abstractmethod
    def list_frames(self) -> list[str]:
        """List the keys of all registered frames."""
        pass

    # -------------------------------------------------------------------------
    # Frame Lifecycle
    # -------------------------------------------------------------------------

    def prepare(self, key: str, column_names: Iterable[str]) -> FrameHeader:
        """Register a frame header with no data.

        Raises:
            FrameStateError: If the key is already registered.
        """
        if self._read_header(key) is not None:
            raise FrameStateError(f"Frame already exists: {key}")

        header = FrameHeader(key=key, column_names=tuple(column_names))
        self._write_header(header)
        logger.debug(f"Prepared frame {key} with columns {list(header.column_names)}")
        return header

    def create_segments(self, key: str, partition_index: int) -> list[Segment]:
        """Open one new segment per column for a partition.

        Raises:
            FrameNotFoundError: If the key is unknown.
            FrameStateError: If the frame is already finalized.
        """
        header = self._require_prepared(key)
        return [Segment(name, partition_index) for name in header.column_names]

    def seal_segments(self, key: str, partition_index: int, segments: list[Segment]) -> int:
        """Seal the segments of a partition and store them.

        Returns:
            Number of rows in the partition.

        Raises:
            FrameStateError: If the segments do not match the header columns
                or have different lengths.
        """
        import pyarrow as pa

        header = self._require_prepared(key)

        names = tuple(s.column for s in segments)
        if names != header.column_names:
            raise FrameStateError(
                f"Segments {list(names)} do not match frame columns "
                f"{list(header.column_names)}"
            )

        lengths = {len(s) for s in segments}
        if len(lengths) > 1:
            raise FrameStateError(
                f"Partition {partition_index} of {key} has ragged segments: {sorted(lengths)}"
            )

        arrays = [s.seal() for s in segments]
        batch = pa.RecordBatch.from_arrays(arrays, names=list(names))
        self._write_partition(key, partition_index, batch)
        return batch.num_rows

    def finalize(
        self,
        key: str,
        row_counts: list[int],
        degraded_count: int = 0,
    ) -> ColumnTable:
        """Fix the row counts of a frame and make it readable.

        Args:
            key: Frame key.
            row_counts: Row count of every partition, in partition order.
            degraded_count: Values stored as NaN for lack of a numeric mapping.

        Raises:
            FrameStateError: If a partition is missing, unexpected, or holds a
                different number of rows than declared.
        """
        header = self._require_prepared(key)

        stored = self._partition_indexes(key)
        expected = set(range(len(row_counts)))
        if stored != expected:
            missing = sorted(expected - stored)
            extra = sorted(stored - expected)
            raise FrameStateError(
                f"Cannot finalize {key}: missing partitions {missing}, unexpected {extra}"
            )

        for i, count in enumerate(row_counts):
            batch = self._read_partition(key, i)
            if batch is None or batch.num_rows != count:
                actual = None if batch is None else batch.num_rows
                raise FrameStateError(
                    f"Cannot finalize {key}: partition {i} holds {actual} rows, expected {count}"
                )

        header.state = FrameState.FINALIZED
        header.row_counts = tuple(int(c) for c in row_counts)
        header.degraded_count = degraded_count
        self._write_header(header)
        logger.debug(f"Finalized frame {key}: {sum(row_counts)} rows in {len(row_counts)} partitions")
        return self._to_table(header)

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def exists(self, key: str) -> bool:
        return self._read_header(key) is not None

    def is_finalized(self, key: str) -> bool:
        header = self._read_header(key)
        return header is not None and header.state == FrameState.FINALIZED

    def header(self, key: str) -> FrameHeader:
        header = self._read_header(key)
        if header is None:
            raise FrameNotFoundError(key)
        return header

    def load(self, key: str) -> ColumnTable:
        """Get the handle of a finalized frame.

        Raises:
            FrameNotFoundError: If the key is unknown.
            FrameNotReadyError: If the frame is not finalized.
        """
        return self._to_table(self._require_finalized(key))

    def read_partition(self, key: str, partition_index: int) -> "pa.RecordBatch":
        """Read the sealed segments of one partition of a finalized frame."""
        header = self._require_finalized(key)
        if not 0 <= partition_index < len(header.row_counts):
            raise FrameStoreError(
                f"Partition {partition_index} out of range for {key} "
                f"({len(header.row_counts)} partitions)"
            )
        batch = self._read_partition(key, partition_index)
        if batch is None:
            raise FrameStoreError(f"Partition {partition_index} of {key} is missing")
        return batch

    def delete(self, key: str) -> bool:
        """Delete a frame and its segments.

        Returns:
            True if the frame existed.
        """
        deleted = self._delete(key)
        if deleted:
            logger.debug(f"Deleted frame {key}")
        return deleted

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require_prepared(self, key: str) -> FrameHeader:
        header = self.header(key)
        if header.state != FrameState.PREPARED:
            raise FrameStateError(f"Frame {key} is already finalized")
        return header

    def _require_finalized(self, key: str) -> FrameHeader:
        header = self.header(key)
        if header.state != FrameState.FINALIZED:
            raise FrameNotReadyError(key)
        return header

    def _to_table(self, header: FrameHeader) -> ColumnTable:
        return ColumnTable(
            key=header.key,
            names=header.column_names,
            row_counts=header.row_counts,
            store=self,
            degraded_count=header.degraded_count,
        )
