"""Spark dispatcher.

Runs partition tasks through ``RDD.mapPartitionsWithIndex`` and gathers the
task results with ``collect()``. Tasks execute in Spark's Python workers, so
the frame store must be shared across processes (see
:class:`~framebridge.frames.filesystem.FileSystemFrameStore`).

Example:
    >>> from pyspark.sql import SparkSession
    >>> spark = SparkSession.builder.master("local[2]").getOrCreate()
    >>> dispatcher = SparkDispatcher(spark)
    >>> rdd = spark.sparkContext.parallelize(points, 2)
    >>> frame = records_to_frame(rdd, Point, dispatcher=dispatcher, store=store)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterator

from framebridge.engines.base import BaseDispatcher
from framebridge.errors import DispatchError
from framebridge.protocols import (
    ComputeBackend,
    PartitionReader,
    PartitionResult,
    PartitionTask,
    TaskContext,
)

if TYPE_CHECKING:
    from pyspark import RDD, SparkContext
    from pyspark.sql import SparkSession

logger = logging.getLogger(__name__)


def _check_pyspark_available() -> None:
    """Check if PySpark is available."""
    try:
        import pyspark  # noqa: F401
    except ImportError:
        raise DispatchError(
            "pyspark is required for SparkDispatcher. Install with: pip install framebridge[spark]"
        )


def is_spark_dataframe(data: Any) -> bool:
    return hasattr(data, "sparkSession") and hasattr(data, "rdd") and hasattr(data, "schema")


def is_spark_rdd(data: Any) -> bool:
    return hasattr(data, "mapPartitionsWithIndex") and hasattr(data, "getNumPartitions")


class SparkDispatcher(BaseDispatcher):
    """Dispatcher backed by a Spark context."""

    requires_shared_store = True

    def __init__(self, spark: "SparkSession | SparkContext | None" = None) -> None:
        """Initialize Spark dispatcher.

        Args:
            spark: SparkSession or SparkContext. Defaults to the active
                context when a reverse conversion needs one.
        """
        _check_pyspark_available()
        self._spark = spark

    @property
    def backend_type(self) -> ComputeBackend:
        return ComputeBackend.SPARK

    @property
    def spark_context(self) -> "SparkContext":
        if self._spark is None:
            from pyspark import SparkContext

            return SparkContext.getOrCreate()
        if hasattr(self._spark, "sparkContext"):
            return self._spark.sparkContext
        return self._spark

    def _rdd(self, collection: Any) -> "RDD":
        if is_spark_dataframe(collection):
            return collection.rdd
        if is_spark_rdd(collection):
            return collection
        raise DispatchError(
            f"SparkDispatcher expects an RDD or a DataFrame, got {type(collection).__name__}"
        )

    def num_partitions(self, collection: Any) -> int:
        return self._rdd(collection).getNumPartitions()

    def run_job(self, collection: Any, task: PartitionTask) -> list[PartitionResult]:
        rdd = self._rdd(collection)
        n = rdd.getNumPartitions()

        def run_partition(index: int, iterator: Iterator[Any]) -> Iterator[PartitionResult]:
            yield task(TaskContext(index, n), iterator)

        # Eager: the driver blocks until every partition task has finished.
        results = rdd.mapPartitionsWithIndex(run_partition).collect()
        logger.debug(f"Spark job finished: {n} partitions")
        return results

    def parallelize_partitions(self, num_partitions: int, reader: PartitionReader) -> "RDD":
        sc = self.spark_context
        if num_partitions == 0:
            return sc.emptyRDD()

        def read_partition(index: int, _: Iterator[int]) -> Any:
            return reader(index)

        return sc.parallelize(range(num_partitions), num_partitions).mapPartitionsWithIndex(
            read_partition, preservesPartitioning=True
        )
