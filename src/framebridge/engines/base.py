"""Base class for dispatchers.

A dispatcher wraps the task-dispatch primitive of a distributed collection
engine. It runs one task per partition and hands every task result back to
the driver; it adds no retry, cancellation or timeout of its own.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from framebridge.errors import DispatchError
from framebridge.frames.base import BaseFrameStore
from framebridge.protocols import ComputeBackend, PartitionReader, PartitionResult, PartitionTask

logger = logging.getLogger(__name__)


class BaseDispatcher(ABC):
    """Abstract base class for dispatchers.

    Subclasses must implement:
    - backend_type: The compute backend
    - num_partitions(): Partition count of a collection
    - run_job(): Run a task on every partition
    - parallelize_partitions(): Build a lazy collection from a reader
    """

    #: Whether tasks run outside the driver process.
    requires_shared_store: bool = False

    @property
    @abstractmethod
    def backend_type(self) -> ComputeBackend:
        pass

    @abstractmethod
    def num_partitions(self, collection: Any) -> int:
        pass

    @abstractmethod
    def run_job(self, collection: Any, task: PartitionTask) -> list[PartitionResult]:
        """Run ``task`` once per partition of ``collection``.

        Returns:
            Task results in completion order.
        """
        pass

    @abstractmethod
    def parallelize_partitions(self, num_partitions: int, reader: PartitionReader) -> Any:
        pass

    def check_store(self, store: BaseFrameStore) -> None:
        """Check that tasks of this dispatcher can write into ``store``.

        Raises:
            DispatchError: If tasks run in other processes and the store is
                not shared across processes.
        """
        if self.requires_shared_store and not store.is_process_shared:
            raise DispatchError(
                f"{type(self).__name__} runs tasks outside the driver process; "
                f"{type(store).__name__} is not shared across processes. "
                "Use FileSystemFrameStore on a path visible to all executors."
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(backend={self.backend_type.value})"
