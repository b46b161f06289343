"""Tests for the in-process collection engine."""

from __future__ import annotations

import threading
import time

import pytest

from framebridge.engines import (
    LocalCollection,
    LocalDispatcher,
    as_collection,
    get_dispatcher,
    infer_backend,
    resolve_dispatcher,
)
from framebridge.errors import DispatchError
from framebridge.frames import FileSystemFrameStore, MemoryFrameStore
from framebridge.protocols import ComputeBackend, DispatcherProtocol, PartitionResult


def counting_task(context, records):
    return PartitionResult(context.partition_index, sum(1 for _ in records))


class TestLocalCollection:
    """Tests for LocalCollection."""

    def test_from_sequence_slicing(self):
        """Test contiguous slicing matches parallelize semantics."""
        collection = LocalCollection.from_sequence(range(10), num_partitions=3)

        assert collection.num_partitions == 3
        assert collection.glom() == [[0, 1, 2], [3, 4, 5], [6, 7, 8, 9]]
        assert collection.collect() == list(range(10))
        assert collection.count() == 10

    def test_more_partitions_than_items(self):
        collection = LocalCollection.from_sequence([1, 2], num_partitions=4)

        assert collection.num_partitions == 4
        assert collection.glom() == [[], [1], [], [2]]

    def test_invalid_partition_count(self):
        with pytest.raises(DispatchError):
            LocalCollection.from_sequence([1], num_partitions=0)

    def test_callable_partitions_are_reiterable(self):
        collection = LocalCollection([lambda: iter([1, 2]), lambda: iter([3])])

        assert list(collection) == [1, 2, 3]
        assert list(collection) == [1, 2, 3]


class TestLocalDispatcher:
    """Tests for LocalDispatcher."""

    def test_conforms_to_protocol(self):
        assert isinstance(LocalDispatcher(), DispatcherProtocol)
        assert LocalDispatcher().backend_type == ComputeBackend.LOCAL

    def test_run_job(self):
        collection = LocalCollection.from_sequence(range(7), num_partitions=3)
        results = LocalDispatcher(max_workers=2).run_job(collection, counting_task)

        by_index = {r.partition_index: r.row_count for r in results}
        assert by_index == {0: 2, 1: 2, 2: 3}

    def test_results_in_completion_order(self):
        """Test a slow first partition finishes last."""
        collection = LocalCollection([[0], [1]])

        def task(context, records):
            if context.partition_index == 0:
                time.sleep(0.2)
            return counting_task(context, records)

        results = LocalDispatcher(max_workers=2).run_job(collection, task)
        assert [r.partition_index for r in results] == [1, 0]

    def test_tasks_run_on_worker_threads(self):
        names = []
        collection = LocalCollection([[0], [1]])

        def task(context, records):
            names.append(threading.current_thread().name)
            return counting_task(context, records)

        LocalDispatcher().run_job(collection, task)
        assert all(name.startswith("framebridge") for name in names)

    def test_task_error_propagates_unchanged(self):
        collection = LocalCollection([[0], [1]])

        def task(context, records):
            raise MemoryError("worker out of memory")

        with pytest.raises(MemoryError, match="worker out of memory"):
            LocalDispatcher().run_job(collection, task)

    def test_zero_partitions(self):
        assert LocalDispatcher().run_job(LocalCollection([]), counting_task) == []

    def test_rejects_foreign_collections(self):
        with pytest.raises(DispatchError):
            LocalDispatcher().run_job([1, 2, 3], counting_task)

    def test_parallelize_partitions(self):
        collection = LocalDispatcher().parallelize_partitions(3, lambda i: iter([i] * i))

        assert collection.glom() == [[], [1], [2, 2]]

    def test_accepts_any_store(self, tmp_path):
        dispatcher = LocalDispatcher()
        dispatcher.check_store(MemoryFrameStore())
        dispatcher.check_store(FileSystemFrameStore(tmp_path))


class TestDispatcherResolution:
    """Tests for backend inference and collection wrapping."""

    def test_infer_local(self):
        assert infer_backend(LocalCollection([])) == ComputeBackend.LOCAL

    def test_infer_unknown(self):
        with pytest.raises(DispatchError):
            infer_backend(object())

    def test_resolve_keeps_explicit_dispatcher(self):
        dispatcher = LocalDispatcher()
        assert resolve_dispatcher(LocalCollection([]), dispatcher) is dispatcher

    def test_resolve_local(self):
        assert isinstance(resolve_dispatcher(LocalCollection([])), LocalDispatcher)

    def test_get_dispatcher(self):
        assert isinstance(get_dispatcher("local", max_workers=2), LocalDispatcher)
        with pytest.raises(ValueError):
            get_dispatcher("dask")

    def test_every_backend_has_a_dispatcher(self):
        assert {b.value for b in ComputeBackend} == {"local", "spark"}
        with pytest.raises(ValueError):
            get_dispatcher("auto")

    def test_as_collection_wraps_sequences(self):
        collection = as_collection([1, 2, 3, 4], num_partitions=2)

        assert isinstance(collection, LocalCollection)
        assert collection.glom() == [[1, 2], [3, 4]]

    def test_as_collection_passes_collections_through(self):
        collection = LocalCollection([[1]])
        assert as_collection(collection, 4) is collection

    @pytest.mark.parametrize("data", ["abc", b"abc", 42])
    def test_as_collection_rejects_non_collections(self, data):
        with pytest.raises(DispatchError):
            as_collection(data, 2)

    def test_as_collection_rejects_tables(self):
        pa = pytest.importorskip("pyarrow")

        with pytest.raises(DispatchError, match="table_to_frame"):
            as_collection(pa.table({"x": [1.0]}), 2)
