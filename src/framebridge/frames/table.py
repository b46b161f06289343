"""Finalized column tables.

A :class:`ColumnTable` is the handle returned by a materialization. Its data
stays in the frame store; the handle only knows the key, the column names and
the per-partition row counts. Row ``r`` of the table lives in the partition
``p`` with ``partition_offsets[p] <= r < partition_offsets[p + 1]``, so the
physical row order is partition 0's rows, then partition 1's, and so on.
"""

from __future__ import annotations

from itertools import accumulate
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    import numpy as np
    import polars as pl
    import pyarrow as pa

    from framebridge.frames.base import BaseFrameStore


class ColumnTable:
    """Read-only handle to a finalized frame.

    Example:
        >>> frame = records_to_frame(points, Point)
        >>> frame.num_rows, frame.names
        (3, ('x', 'y'))
        >>> frame.to_polars()
    """

    def __init__(
        self,
        key: str,
        names: tuple[str, ...],
        row_counts: tuple[int, ...],
        store: "BaseFrameStore",
        degraded_count: int = 0,
    ) -> None:
        self._key = key
        self._names = tuple(names)
        self._row_counts = tuple(row_counts)
        self._store = store
        self._degraded_count = degraded_count

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def key(self) -> str:
        return self._key

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    @property
    def store(self) -> "BaseFrameStore":
        return self._store

    @property
    def row_counts(self) -> tuple[int, ...]:
        """Row count of every partition, in partition order."""
        return self._row_counts

    @property
    def partition_offsets(self) -> tuple[int, ...]:
        """Start row of every partition, followed by the total row count."""
        return (0, *accumulate(self._row_counts))

    @property
    def num_partitions(self) -> int:
        return len(self._row_counts)

    @property
    def num_rows(self) -> int:
        return sum(self._row_counts)

    @property
    def num_cols(self) -> int:
        return len(self._names)

    @property
    def degraded_count(self) -> int:
        """Values that had no numeric mapping and were stored as NaN."""
        return self._degraded_count

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def read_partition(self, partition_index: int) -> "pa.RecordBatch":
        """Read the segments of one partition as a record batch."""
        return self._store.read_partition(self._key, partition_index)

    def iter_partitions(self) -> Iterator["pa.RecordBatch"]:
        for i in range(self.num_partitions):
            yield self.read_partition(i)

    def to_arrow(self) -> "pa.Table":
        """Get the frame as an Arrow table.

        Every column is a chunked array with one chunk per partition.
        """
        import pyarrow as pa

        from framebridge.schema import Schema

        schema = Schema(self._names).to_arrow()
        return pa.Table.from_batches(list(self.iter_partitions()), schema=schema)

    def to_polars(self, lazy: bool = False) -> "pl.DataFrame | pl.LazyFrame":
        import polars as pl

        df = pl.from_arrow(self.to_arrow(), rechunk=False)
        return df.lazy() if lazy else df

    def to_numpy(self) -> "np.ndarray":
        """Get the frame as a ``(num_rows, num_cols)`` float64 matrix."""
        import numpy as np

        table = self.to_arrow()
        if table.num_rows == 0:
            return np.empty((0, self.num_cols), dtype=np.float64)
        return np.column_stack(
            [col.to_numpy() for col in table.columns]
        ).astype(np.float64, copy=False)

    def column(self, name: str) -> "pa.ChunkedArray":
        """Get one column as a chunked array."""
        return self.to_arrow().column(name)

    def __len__(self) -> int:
        return self.num_rows

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnTable):
            return NotImplemented
        return self._key == other._key and self._store is other._store

    def __hash__(self) -> int:
        return hash(self._key)

    def __repr__(self) -> str:
        return (
            f"ColumnTable(key={self._key!r}, rows={self.num_rows}, "
            f"cols={list(self._names)}, partitions={self.num_partitions})"
        )
