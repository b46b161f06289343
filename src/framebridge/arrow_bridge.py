"""Arrow bridge between frames, Polars and local row collections.

Frames keep their partitions as Arrow record batches, so exporting a frame
is a zero-copy assembly of those batches into an Arrow table (one chunk per
partition), which Polars can wrap without copying.

In the other direction, Arrow tables and Polars DataFrames are typed
tables: the bridge derives their schema (failing fast on columns with no
numeric mapping) and slices them into a local row collection for the
typed-table materialization path.

Example:
    >>> bridge = FrameArrowBridge()
    >>> df = bridge.to_polars(frame)
    >>> schema, rows = bridge.table_to_collection(arrow_table, num_partitions=4)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any, Iterator

from framebridge.engines.local import LocalCollection
from framebridge.errors import BridgeError
from framebridge.frames.table import ColumnTable
from framebridge.schema import Schema

if TYPE_CHECKING:
    import numpy as np
    import polars as pl
    import pyarrow as pa

logger = logging.getLogger(__name__)


@dataclass
class ArrowBridgeConfig:
    """Configuration for the Arrow bridge.

    Attributes:
        rechunk: Combine partition chunks into one contiguous chunk per
            column when exporting to Polars.
    """

    rechunk: bool = False


def is_arrow_table(data: Any) -> bool:
    try:
        import pyarrow as pa
    except ImportError:
        return False
    return isinstance(data, (pa.Table, pa.RecordBatch))


def is_polars_frame(data: Any) -> bool:
    try:
        import polars as pl
    except ImportError:
        return False
    return isinstance(data, (pl.DataFrame, pl.LazyFrame))


def _iter_rows(table: "pa.Table", offset: int, length: int) -> Iterator[tuple[Any, ...]]:
    chunk = table.slice(offset, length)
    columns = [col.to_pylist() for col in chunk.columns]
    return zip(*columns)


class FrameArrowBridge:
    """Conversions between frames and Arrow/Polars data."""

    def __init__(self, config: ArrowBridgeConfig | None = None) -> None:
        self._config = config or ArrowBridgeConfig()

    @property
    def config(self) -> ArrowBridgeConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Frame -> Arrow / Polars / NumPy
    # -------------------------------------------------------------------------

    def to_arrow(self, data: Any) -> "pa.Table":
        """Convert a frame, Polars frame or Arrow batch to an Arrow table."""
        import pyarrow as pa

        if isinstance(data, ColumnTable):
            return data.to_arrow()

        if isinstance(data, pa.Table):
            return data

        if isinstance(data, pa.RecordBatch):
            return pa.Table.from_batches([data])

        if is_polars_frame(data):
            import polars as pl

            if isinstance(data, pl.LazyFrame):
                data = data.collect()
            return data.to_arrow()

        raise BridgeError(f"Cannot convert {type(data).__name__} to Arrow")

    def to_polars(self, frame: ColumnTable, lazy: bool = False) -> "pl.DataFrame | pl.LazyFrame":
        import polars as pl

        df = pl.from_arrow(frame.to_arrow(), rechunk=self._config.rechunk)
        return df.lazy() if lazy else df

    def to_numpy(self, frame: ColumnTable) -> "np.ndarray":
        return frame.to_numpy()

    # -------------------------------------------------------------------------
    # Arrow / Polars -> Local Rows
    # -------------------------------------------------------------------------

    def table_to_collection(
        self,
        data: Any,
        num_partitions: int,
    ) -> tuple[Schema, LocalCollection]:
        """Split a typed table into a local row collection.

        Args:
            data: Arrow table/batch or Polars DataFrame/LazyFrame.
            num_partitions: Number of partitions.

        Returns:
            The table's schema and a collection of row tuples.

        Raises:
            UnsupportedColumnTypeError: If a column has no numeric mapping.
        """
        table = self.to_arrow(data)
        schema = Schema.from_arrow(table.schema)

        n = table.num_rows
        bounds = [(i * n) // num_partitions for i in range(num_partitions + 1)]
        partitions = [
            partial(_iter_rows, table, bounds[i], bounds[i + 1] - bounds[i])
            for i in range(num_partitions)
        ]
        logger.debug(f"Split {n} rows into {num_partitions} local partitions")
        return schema, LocalCollection(partitions)
