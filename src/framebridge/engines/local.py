"""In-process distributed collection engine.

``LocalCollection`` is a list of partitions; ``LocalDispatcher`` runs one
task per partition on a thread pool and returns the results in completion
order, like a cluster scheduler would.

Example:
    >>> points = LocalCollection.from_sequence(records, num_partitions=4)
    >>> frame = records_to_frame(points, Point)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from functools import partial
from typing import Any, Callable, Iterable, Iterator, Sequence, Union

from framebridge.engines.base import BaseDispatcher
from framebridge.errors import DispatchError
from framebridge.protocols import (
    ComputeBackend,
    PartitionReader,
    PartitionResult,
    PartitionTask,
    TaskContext,
)

logger = logging.getLogger(__name__)

PartitionSource = Union[Iterable[Any], Callable[[], Iterable[Any]]]


class LocalCollection:
    """A partitioned in-memory collection.

    Partitions are either materialized iterables or zero-argument callables
    that produce the partition's items each time it is iterated.
    """

    def __init__(self, partitions: Sequence[PartitionSource]) -> None:
        self._partitions = list(partitions)

    @classmethod
    def from_sequence(cls, items: Iterable[Any], num_partitions: int = 4) -> "LocalCollection":
        """Split items into contiguous partitions.

        Partition ``i`` holds ``items[i*n//k : (i+1)*n//k]``, the same slicing
        Spark uses for ``parallelize``.
        """
        if num_partitions < 1:
            raise DispatchError(f"num_partitions must be >= 1, got {num_partitions}")

        items = list(items)
        n = len(items)
        return cls(
            [
                items[(i * n) // num_partitions : ((i + 1) * n) // num_partitions]
                for i in range(num_partitions)
            ]
        )

    @property
    def num_partitions(self) -> int:
        return len(self._partitions)

    def iter_partition(self, index: int) -> Iterator[Any]:
        source = self._partitions[index]
        if callable(source):
            return iter(source())
        return iter(source)

    def glom(self) -> list[list[Any]]:
        """Get the items of every partition."""
        return [list(self.iter_partition(i)) for i in range(self.num_partitions)]

    def collect(self) -> list[Any]:
        """Get all items in partition order."""
        return [item for i in range(self.num_partitions) for item in self.iter_partition(i)]

    def count(self) -> int:
        return sum(1 for _ in self)

    def __iter__(self) -> Iterator[Any]:
        for i in range(self.num_partitions):
            yield from self.iter_partition(i)

    def __repr__(self) -> str:
        return f"LocalCollection(partitions={self.num_partitions})"


class LocalDispatcher(BaseDispatcher):
    """Dispatcher running partition tasks on a thread pool."""

    requires_shared_store = False

    def __init__(self, max_workers: int = 0) -> None:
        """Initialize local dispatcher.

        Args:
            max_workers: Thread-pool size (0 = executor default).
        """
        self._max_workers = max_workers or None

    @property
    def backend_type(self) -> ComputeBackend:
        return ComputeBackend.LOCAL

    def _collection(self, collection: Any) -> LocalCollection:
        if not isinstance(collection, LocalCollection):
            raise DispatchError(
                f"LocalDispatcher expects a LocalCollection, got {type(collection).__name__}"
            )
        return collection

    def num_partitions(self, collection: Any) -> int:
        return self._collection(collection).num_partitions

    def run_job(self, collection: Any, task: PartitionTask) -> list[PartitionResult]:
        collection = self._collection(collection)
        n = collection.num_partitions
        if n == 0:
            return []

        results: list[PartitionResult] = []
        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="framebridge"
        ) as executor:
            futures = [
                executor.submit(task, TaskContext(i, n), collection.iter_partition(i))
                for i in range(n)
            ]
            for future in as_completed(futures):
                results.append(future.result())

        logger.debug(f"Local job finished: {n} partitions")
        return results

    def parallelize_partitions(self, num_partitions: int, reader: PartitionReader) -> LocalCollection:
        return LocalCollection([partial(reader, i) for i in range(num_partitions)])
