"""Distributed collection engines.

Example:
    >>> from framebridge.engines import resolve_dispatcher
    >>> dispatcher = resolve_dispatcher(rdd)        # SparkDispatcher
    >>> dispatcher = resolve_dispatcher(local)      # LocalDispatcher
"""

from __future__ import annotations

from typing import Any, Iterable

from framebridge.engines.base import BaseDispatcher
from framebridge.engines.local import LocalCollection, LocalDispatcher
from framebridge.errors import DispatchError
from framebridge.protocols import ComputeBackend


def _is_spark(collection: Any) -> bool:
    from framebridge.engines.spark import is_spark_dataframe, is_spark_rdd

    return is_spark_rdd(collection) or is_spark_dataframe(collection)


def infer_backend(collection: Any) -> ComputeBackend:
    """Infer the compute backend that owns a collection.

    Raises:
        DispatchError: If the collection type is not supported.
    """
    if isinstance(collection, LocalCollection):
        return ComputeBackend.LOCAL
    if _is_spark(collection):
        return ComputeBackend.SPARK
    raise DispatchError(f"Cannot infer a dispatcher for {type(collection).__name__}")


def get_dispatcher(backend: ComputeBackend | str, **kwargs: Any) -> BaseDispatcher:
    """Create a dispatcher for a backend."""
    backend = ComputeBackend(backend)
    if backend == ComputeBackend.LOCAL:
        return LocalDispatcher(**kwargs)
    if backend == ComputeBackend.SPARK:
        from framebridge.engines.spark import SparkDispatcher

        return SparkDispatcher(**kwargs)
    raise DispatchError(f"No dispatcher for backend: {backend.value}")


def resolve_dispatcher(
    collection: Any,
    dispatcher: BaseDispatcher | None = None,
    max_workers: int = 0,
) -> BaseDispatcher:
    """Get the dispatcher to use for a collection."""
    if dispatcher is not None:
        return dispatcher

    backend = infer_backend(collection)
    if backend == ComputeBackend.LOCAL:
        return LocalDispatcher(max_workers=max_workers)
    return get_dispatcher(backend)


def as_collection(data: Any, num_partitions: int) -> Any:
    """Wrap plain Python iterables into a LocalCollection.

    Local and Spark collections are returned unchanged.
    """
    if isinstance(data, LocalCollection) or _is_spark(data):
        return data
    if hasattr(data, "to_arrow") or hasattr(data, "column_names"):
        raise DispatchError(
            f"{type(data).__name__} is a columnar table; materialize it with table_to_frame"
        )
    if isinstance(data, (str, bytes)) or not isinstance(data, Iterable):
        raise DispatchError(f"Cannot materialize {type(data).__name__} as a collection")
    return LocalCollection.from_sequence(data, num_partitions)


__all__ = [
    "BaseDispatcher",
    "LocalCollection",
    "LocalDispatcher",
    "as_collection",
    "get_dispatcher",
    "infer_backend",
    "resolve_dispatcher",
]
