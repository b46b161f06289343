"""Partition-local column segments.

A segment is the run of one column's values contributed by one partition.
It is written by a single task, append-only, and becomes an immutable Arrow
array once sealed.
"""

from __future__ import annotations

from array import array
from typing import TYPE_CHECKING, Iterable

import numpy as np

from framebridge.errors import SegmentSealedError

if TYPE_CHECKING:
    import pyarrow as pa


class Segment:
    """Append-only buffer of doubles for one column of one partition.

    Example:
        >>> seg = Segment("x", partition_index=0)
        >>> seg.append(1.0)
        >>> seg.append(float("nan"))
        >>> arr = seg.seal()
        >>> len(arr)
        2
    """

    __slots__ = ("column", "partition_index", "_buffer", "_sealed")

    def __init__(self, column: str, partition_index: int) -> None:
        self.column = column
        self.partition_index = partition_index
        self._buffer = array("d")
        self._sealed: "pa.Array | None" = None

    @property
    def sealed(self) -> bool:
        return self._sealed is not None

    def append(self, value: float) -> None:
        """Append one value.

        Raises:
            SegmentSealedError: If the segment has been sealed.
        """
        if self._sealed is not None:
            raise SegmentSealedError(
                f"Segment {self.column}[{self.partition_index}] is sealed"
            )
        self._buffer.append(value)

    def extend(self, values: Iterable[float]) -> None:
        if self._sealed is not None:
            raise SegmentSealedError(
                f"Segment {self.column}[{self.partition_index}] is sealed"
            )
        self._buffer.extend(values)

    def seal(self) -> "pa.Array":
        """Freeze the buffer into a ``float64`` Arrow array.

        Sealing twice returns the same array. NaN values are kept as NaN,
        not converted to nulls.
        """
        import pyarrow as pa

        if self._sealed is None:
            values = np.frombuffer(self._buffer, dtype=np.float64).copy()
            self._sealed = pa.array(values, type=pa.float64())
            self._buffer = array("d")
        return self._sealed

    def __len__(self) -> int:
        if self._sealed is not None:
            return len(self._sealed)
        return len(self._buffer)

    def __repr__(self) -> str:
        state = "sealed" if self.sealed else "open"
        return f"Segment({self.column!r}, partition={self.partition_index}, len={len(self)}, {state})"
