"""Metrics collected by materializations."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class MaterializationMetrics:
    """Metrics of one materialization call.

    Attributes:
        operation: Operation name.
        frame_key: Key of the frame written or read.
        backend: Compute backend that ran the tasks.
        start_time: Start timestamp.
        end_time: End timestamp.
        partitions_processed: Number of partition tasks that completed.
        rows_processed: Total rows written.
        degraded_values: Values stored as NaN for lack of a numeric mapping.
        errors: Errors encountered.
    """

    operation: str
    frame_key: str = ""
    backend: str = ""
    start_time: float = 0.0
    end_time: float = 0.0
    partitions_processed: int = 0
    rows_processed: int = 0
    degraded_values: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def duration_ms(self) -> float:
        """Get duration in milliseconds."""
        return (self.end_time - self.start_time) * 1000

    @property
    def success(self) -> bool:
        """Check if operation succeeded."""
        return len(self.errors) == 0
