"""Protocol definitions shared by dispatchers, stores and materializers.

The two host engines are only reached through the narrow interfaces below:

- a dispatcher runs one task per partition of a distributed collection and
  gathers the task results at the driver
- a frame store holds frame headers and the per-partition segments written
  by tasks
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator, Protocol, runtime_checkable

if TYPE_CHECKING:
    import pyarrow as pa

    from framebridge.frames.segment import Segment
    from framebridge.frames.table import ColumnTable


# =============================================================================
# Enums
# =============================================================================


class ComputeBackend(str, Enum):
    """Supported distributed collection engines."""

    SPARK = "spark"
    LOCAL = "local"


class FrameState(str, Enum):
    """Lifecycle states of a frame header."""

    PREPARED = "prepared"  # Header registered, not readable
    FINALIZED = "finalized"  # Row counts fixed, readable


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class TaskContext:
    """Identity of a running partition task.

    Attributes:
        partition_index: Index of the partition this task processes.
        num_partitions: Total number of partitions in the job.
    """

    partition_index: int
    num_partitions: int


@dataclass(frozen=True)
class PartitionResult:
    """Result returned by one partition task.

    Attributes:
        partition_index: Source partition index.
        row_count: Number of rows written by the task.
        degraded_count: Values with no numeric mapping, stored as NaN.
        duration_ms: Task duration in milliseconds.
    """

    partition_index: int
    row_count: int
    degraded_count: int = 0
    duration_ms: float = 0.0


PartitionTask = Callable[[TaskContext, Iterator[Any]], PartitionResult]
PartitionReader = Callable[[int], Iterable[Any]]


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class DispatcherProtocol(Protocol):
    """Protocol for distributed collection engines."""

    @property
    def backend_type(self) -> ComputeBackend: ...

    def num_partitions(self, collection: Any) -> int:
        """Get the number of partitions of a collection."""
        ...

    def run_job(self, collection: Any, task: PartitionTask) -> list[PartitionResult]:
        """Run ``task`` once per partition.

        Results are returned in task completion order.
        """
        ...

    def parallelize_partitions(self, num_partitions: int, reader: PartitionReader) -> Any:
        """Build a lazy collection whose partition ``i`` yields ``reader(i)``."""
        ...


@runtime_checkable
class FrameStoreProtocol(Protocol):
    """Protocol for column-table engines."""

    @property
    def is_process_shared(self) -> bool: ...

    def prepare(self, key: str, column_names: Iterable[str]) -> Any: ...

    def create_segments(self, key: str, partition_index: int) -> list["Segment"]: ...

    def seal_segments(self, key: str, partition_index: int, segments: list["Segment"]) -> int: ...

    def finalize(self, key: str, row_counts: list[int], degraded_count: int = 0) -> "ColumnTable": ...

    def read_partition(self, key: str, partition_index: int) -> "pa.RecordBatch": ...

    def delete(self, key: str) -> bool: ...
