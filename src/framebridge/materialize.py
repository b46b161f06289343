"""Row-to-column and column-to-row materialization.

Materializing records into a frame runs in three phases:

1. Driver: resolve the schema and register an empty frame header under a
   fresh key. Schema problems fail here, before anything is dispatched.
2. Tasks: one task per source partition opens a segment per column, appends
   the coerced value of every field of every record, seals the segments and
   returns ``(partition_index, row_count)``.
3. Driver: wait for every task, place each row count at its partition index
   and finalize the frame. Partition 0's rows come first, then partition
   1's, and so on, whatever order the tasks finished in.

The physical row order of a frame therefore depends on how the source was
partitioned; the rows themselves and the total count do not.

Example:
    >>> from dataclasses import dataclass
    >>> from framebridge import LocalCollection, frame_to_records, records_to_frame
    >>>
    >>> @dataclass
    ... class Point:
    ...     x: float | None
    ...     y: bool
    >>>
    >>> points = LocalCollection.from_sequence(
    ...     [Point(1.0, True), Point(2.0, False), Point(None, True)], num_partitions=2
    ... )
    >>> frame = records_to_frame(points, Point)
    >>> frame.to_numpy()
    array([[ 1.,  1.],
           [ 2.,  0.],
           [nan,  1.]])
    >>> frame_to_records(frame, Point).collect()
    [Point(x=1.0, y=1.0), Point(x=2.0, y=0.0), Point(x=None, y=1.0)]
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Sequence, Union

from framebridge.arrow_bridge import FrameArrowBridge, is_arrow_table, is_polars_frame
from framebridge.coercion import CoercionStats, get_coercer
from framebridge.config import BridgeConfig, get_config
from framebridge.engines import as_collection, resolve_dispatcher
from framebridge.engines.base import BaseDispatcher
from framebridge.engines.local import LocalDispatcher
from framebridge.errors import BridgeError, FrameStateError, SchemaError
from framebridge.frames import store_from_config
from framebridge.frames.base import BaseFrameStore, new_frame_key
from framebridge.frames.table import ColumnTable
from framebridge.logging import get_logger, log_context
from framebridge.metrics import MaterializationMetrics
from framebridge.protocols import PartitionResult, TaskContext
from framebridge.schema import Schema

logger = get_logger(__name__)

SchemaLike = Union[Schema, type, Sequence[Any]]


# =============================================================================
# Partition Tasks
# =============================================================================


@dataclass
class PartitionWriter:
    """Task writing one source partition into frame segments.

    Instances are shipped to workers, so they only carry the store, the frame
    key and the schema.
    """

    store: BaseFrameStore
    key: str
    schema: Schema
    parse_strings: bool = False

    def __call__(self, context: TaskContext, records: Iterator[Any]) -> PartitionResult:
        # Log context is thread-local; tasks run off the driver thread.
        with log_context(frame_key=self.key, partition=context.partition_index):
            return self._write(context, records)

    def _write(self, context: TaskContext, records: Iterator[Any]) -> PartitionResult:
        start = time.perf_counter()
        coerce = get_coercer(self.parse_strings)
        extract = self.schema.extract
        segments = self.store.create_segments(self.key, context.partition_index)
        stats = CoercionStats()

        for record in records:
            for segment, value in zip(segments, extract(record)):
                number, degraded = coerce(value)
                segment.append(number)
                if value is None:
                    stats.nulls += 1
                elif degraded:
                    stats.degraded += 1
            stats.values += len(segments)

        row_count = self.store.seal_segments(self.key, context.partition_index, segments)
        duration_ms = (time.perf_counter() - start) * 1000

        logger.debug(
            f"Partition {context.partition_index}/{context.num_partitions} of {self.key}: "
            f"{row_count} rows, {stats.nulls} nulls, {stats.degraded} degraded"
        )
        return PartitionResult(
            partition_index=context.partition_index,
            row_count=row_count,
            degraded_count=stats.degraded,
            duration_ms=duration_ms,
        )


@dataclass
class PartitionRecordReader:
    """Reader producing the records of one frame partition.

    NaN cells come back as ``None``; every other cell as a float. Records of
    ``record_type`` are built with keyword arguments named by ``field_names``.
    """

    store: BaseFrameStore
    key: str
    positions: tuple[int, ...]
    record_type: Callable[..., Any] | None = None
    field_names: tuple[str, ...] = ()

    def __call__(self, partition_index: int) -> Iterator[Any]:
        batch = self.store.read_partition(self.key, partition_index)
        columns = [batch.column(p).to_pylist() for p in self.positions]
        make = self.record_type

        for row in zip(*columns):
            values = tuple(None if v is None or math.isnan(v) else v for v in row)
            if make is None:
                yield values
            else:
                yield make(**dict(zip(self.field_names, values)))


def collect_row_counts(results: Sequence[PartitionResult], num_partitions: int) -> list[int]:
    """Order partition results by partition index.

    Args:
        results: Task results in any order.
        num_partitions: Number of dispatched partitions.

    Returns:
        Row count of every partition, in partition order.

    Raises:
        FrameStateError: If a partition is missing, duplicated or out of range.
    """
    row_counts: list[int | None] = [None] * num_partitions
    for result in results:
        index = result.partition_index
        if not 0 <= index < num_partitions:
            raise FrameStateError(f"Partition index {index} out of range ({num_partitions})")
        if row_counts[index] is not None:
            raise FrameStateError(f"Duplicate result for partition {index}")
        row_counts[index] = result.row_count

    missing = [i for i, count in enumerate(row_counts) if count is None]
    if missing:
        raise FrameStateError(f"No result for partitions {missing}")
    return [int(c) for c in row_counts if c is not None]


# =============================================================================
# Materializers
# =============================================================================


class _MetricsMixin:
    _lock: threading.Lock
    _metrics: list[MaterializationMetrics]

    def _start_metrics(self, operation: str) -> MaterializationMetrics:
        return MaterializationMetrics(operation=operation, start_time=time.time())

    def _end_metrics(self, metrics: MaterializationMetrics) -> None:
        metrics.end_time = time.time()
        with self._lock:
            self._metrics.append(metrics)

    @property
    def metrics(self) -> list[MaterializationMetrics]:
        """Metrics of every call made through this materializer."""
        with self._lock:
            return list(self._metrics)

    def clear_metrics(self) -> None:
        with self._lock:
            self._metrics.clear()


class RowToColumnMaterializer(_MetricsMixin):
    """Convert distributed records or typed rows into a frame.

    Example:
        >>> materializer = RowToColumnMaterializer(store=FileSystemFrameStore("/shared"))
        >>> frame = materializer.materialize(rdd, Point, dispatcher=SparkDispatcher(spark))
    """

    def __init__(
        self,
        store: BaseFrameStore | None = None,
        config: BridgeConfig | None = None,
    ) -> None:
        """Initialize materializer.

        Args:
            store: Frame store receiving the segments (default from config).
            config: Optional configuration (default from environment).
        """
        self._config = config or get_config()
        self._store = store or store_from_config(self._config)
        self._bridge = FrameArrowBridge()
        self._lock = threading.Lock()
        self._metrics: list[MaterializationMetrics] = []

    @property
    def store(self) -> BaseFrameStore:
        return self._store

    @property
    def config(self) -> BridgeConfig:
        return self._config

    def materialize(
        self,
        collection: Any,
        schema: SchemaLike,
        dispatcher: BaseDispatcher | None = None,
    ) -> ColumnTable:
        """Materialize a collection of records.

        Args:
            collection: LocalCollection, Spark RDD/DataFrame, or a plain
                iterable of records (split into ``default_partitions``).
            schema: Schema, record type, or list of names / (name, type).
            dispatcher: Dispatcher to use (inferred from the collection).

        Returns:
            The finalized frame.

        Raises:
            SchemaError: If the schema is unusable (nothing is dispatched).
        """
        schema = Schema.coerce(schema)
        collection = as_collection(collection, self._config.default_partitions)
        dispatcher = resolve_dispatcher(collection, dispatcher, self._config.max_workers)

        return self._run(
            "records_to_frame",
            collection,
            schema,
            dispatcher,
            parse_strings=self._config.parse_strings,
        )

    def materialize_table(
        self,
        table: Any,
        dispatcher: BaseDispatcher | None = None,
    ) -> ColumnTable:
        """Materialize a schema-typed table.

        Every declared column type must map onto doubles; the check runs on
        the driver before any frame header is registered.

        Args:
            table: Spark DataFrame, Arrow table, or Polars DataFrame.
            dispatcher: Dispatcher to use (inferred from the table).

        Raises:
            UnsupportedColumnTypeError: If a column has no numeric mapping.
        """
        from framebridge.engines.spark import is_spark_dataframe

        if is_spark_dataframe(table):
            schema = Schema.from_spark(table.schema)
            collection = table
        elif is_arrow_table(table) or is_polars_frame(table):
            schema, collection = self._bridge.table_to_collection(
                table, self._config.default_partitions
            )
        else:
            raise SchemaError(f"{type(table).__name__} is not a schema-typed table")

        schema.require_numeric()
        dispatcher = resolve_dispatcher(collection, dispatcher, self._config.max_workers)
        return self._run("table_to_frame", collection, schema, dispatcher, parse_strings=False)

    def _run(
        self,
        operation: str,
        collection: Any,
        schema: Schema,
        dispatcher: BaseDispatcher,
        parse_strings: bool,
    ) -> ColumnTable:
        dispatcher.check_store(self._store)

        key = new_frame_key(self._config.key_prefix)
        metrics = self._start_metrics(operation)
        metrics.frame_key = key
        metrics.backend = dispatcher.backend_type.value
        prepared = False

        with log_context(frame_key=key, operation=operation):
            try:
                num_partitions = dispatcher.num_partitions(collection)
                self._store.prepare(key, schema.names)
                prepared = True
                logger.info(
                    f"Materializing {num_partitions} partitions into {key} "
                    f"({len(schema)} columns, {metrics.backend})"
                )

                writer = PartitionWriter(self._store, key, schema, parse_strings)
                results = dispatcher.run_job(collection, writer)
                row_counts = collect_row_counts(results, num_partitions)
                degraded = sum(r.degraded_count for r in results)
                frame = self._store.finalize(key, row_counts, degraded)
            except Exception as e:
                metrics.errors.append(str(e))
                logger.error(f"Materialization of {key} failed: {e}")
                if prepared and self._config.discard_on_failure:
                    self._store.delete(key)
                raise
            finally:
                self._end_metrics(metrics)

            metrics.partitions_processed = len(results)
            metrics.rows_processed = frame.num_rows
            metrics.degraded_values = degraded

            if degraded and self._config.warn_on_degraded:
                logger.warning(
                    f"{degraded} values in {key} had no numeric mapping and were stored as NaN"
                )
            logger.info(
                f"Finalized {key}: {frame.num_rows} rows in {metrics.duration_ms:.1f}ms"
            )

        return frame


class ColumnToRowMaterializer(_MetricsMixin):
    """Convert a frame back into a lazy distributed collection of records."""

    def __init__(self, config: BridgeConfig | None = None) -> None:
        self._config = config or get_config()
        self._lock = threading.Lock()
        self._metrics: list[MaterializationMetrics] = []

    @staticmethod
    def bind_columns(frame: ColumnTable, schema: Schema) -> tuple[int, ...]:
        """Get the frame column position of every schema field.

        Fields are bound by name when every name is a frame column, and by
        position when the field count equals the column count.

        Raises:
            SchemaError: If neither binding applies.
        """
        names = frame.names
        if all(name in names for name in schema.names):
            return tuple(names.index(name) for name in schema.names)
        if len(schema) == frame.num_cols:
            return tuple(range(frame.num_cols))
        raise SchemaError(
            f"Cannot bind record fields {list(schema.names)} to frame columns {list(names)}"
        )

    def materialize(
        self,
        frame: ColumnTable,
        shape: SchemaLike | None = None,
        dispatcher: BaseDispatcher | None = None,
    ) -> Any:
        """Build a lazy collection with one record per frame row.

        Args:
            frame: Finalized frame.
            shape: Record type (instances are built with the field values as
                positional arguments), Schema, or list of names. Defaults to
                all frame columns as plain tuples.
            dispatcher: Dispatcher building the collection (local by default).

        Returns:
            A LocalCollection or Spark RDD, depending on the dispatcher.
        """
        metrics = self._start_metrics("frame_to_records")
        metrics.frame_key = frame.key
        try:
            record_type = shape if isinstance(shape, type) else None
            schema = Schema(frame.names) if shape is None else Schema.coerce(shape)
            positions = self.bind_columns(frame, schema)

            # Validates the frame is registered and finalized.
            frame = frame.store.load(frame.key)

            dispatcher = dispatcher or LocalDispatcher(self._config.max_workers)
            dispatcher.check_store(frame.store)
            metrics.backend = dispatcher.backend_type.value

            reader = PartitionRecordReader(
                frame.store, frame.key, positions, record_type, schema.names
            )
            collection = dispatcher.parallelize_partitions(frame.num_partitions, reader)
        except BridgeError as e:
            metrics.errors.append(str(e))
            raise
        finally:
            self._end_metrics(metrics)

        metrics.partitions_processed = frame.num_partitions
        metrics.rows_processed = frame.num_rows
        logger.debug(f"Bound {frame.key} to {len(positions)} record fields")
        return collection


# =============================================================================
# Conversion Functions
# =============================================================================


def records_to_frame(
    collection: Any,
    schema: SchemaLike,
    *,
    store: BaseFrameStore | None = None,
    dispatcher: BaseDispatcher | None = None,
    config: BridgeConfig | None = None,
) -> ColumnTable:
    """Convert a distributed collection of records into a frame.

    See :meth:`RowToColumnMaterializer.materialize`.
    """
    return RowToColumnMaterializer(store, config).materialize(collection, schema, dispatcher)


def table_to_frame(
    table: Any,
    *,
    store: BaseFrameStore | None = None,
    dispatcher: BaseDispatcher | None = None,
    config: BridgeConfig | None = None,
) -> ColumnTable:
    """Convert a schema-typed table into a frame.

    See :meth:`RowToColumnMaterializer.materialize_table`.
    """
    return RowToColumnMaterializer(store, config).materialize_table(table, dispatcher)


def frame_to_records(
    frame: ColumnTable,
    shape: SchemaLike | None = None,
    *,
    dispatcher: BaseDispatcher | None = None,
    config: BridgeConfig | None = None,
) -> Any:
    """Convert a frame into a lazy distributed collection of records.

    See :meth:`ColumnToRowMaterializer.materialize`.
    """
    return ColumnToRowMaterializer(config).materialize(frame, shape, dispatcher)
