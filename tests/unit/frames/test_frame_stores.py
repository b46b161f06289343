"""Tests for frame stores and finalized column tables.

Every lifecycle test runs against both the memory and the filesystem store
through the parametrized ``store`` fixture.
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from framebridge.config import BridgeConfig
from framebridge.errors import (
    FrameNotFoundError,
    FrameNotReadyError,
    FrameStateError,
    FrameStoreError,
)
from framebridge.frames import (
    FileSystemFrameStore,
    MemoryFrameStore,
    get_store,
    list_stores,
    new_frame_key,
    store_from_config,
)
from framebridge.protocols import FrameState


def write_partition(store, key, partition_index, rows):
    """Write rows of (x, y) values into one partition."""
    segments = store.create_segments(key, partition_index)
    for row in rows:
        for segment, value in zip(segments, row):
            segment.append(value)
    return store.seal_segments(key, partition_index, segments)


# =============================================================================
# Lifecycle
# =============================================================================


class TestFrameLifecycle:
    """Tests for prepare, seal and finalize."""

    def test_prepare_registers_unreadable_header(self, store):
        key = new_frame_key()
        header = store.prepare(key, ["x", "y"])

        assert header.state == FrameState.PREPARED
        assert store.exists(key)
        assert not store.is_finalized(key)
        with pytest.raises(FrameNotReadyError):
            store.load(key)
        with pytest.raises(FrameNotReadyError):
            store.read_partition(key, 0)

    def test_prepare_twice_fails(self, store):
        store.prepare("frame_a", ["x"])
        with pytest.raises(FrameStateError):
            store.prepare("frame_a", ["x"])

    def test_create_segments_for_unknown_key(self, store):
        with pytest.raises(FrameNotFoundError):
            store.create_segments("missing", 0)

    def test_create_segments_follow_header(self, store):
        store.prepare("frame_a", ["x", "y", "z"])
        segments = store.create_segments("frame_a", 3)

        assert [s.column for s in segments] == ["x", "y", "z"]
        assert all(s.partition_index == 3 for s in segments)

    def test_finalize_partitions_in_index_order(self, store):
        """Test row order follows partition index, not write order."""
        store.prepare("frame_a", ["x", "y"])
        assert write_partition(store, "frame_a", 1, [(2.0, 0.0), (math.nan, 1.0)]) == 2
        assert write_partition(store, "frame_a", 0, [(1.0, 1.0)]) == 1

        frame = store.finalize("frame_a", [1, 2])

        assert frame.row_counts == (1, 2)
        assert frame.partition_offsets == (0, 1, 3)
        assert frame.num_rows == 3
        assert frame.names == ("x", "y")
        assert store.is_finalized("frame_a")

        matrix = frame.to_numpy()
        assert matrix.shape == (3, 2)
        np.testing.assert_array_equal(matrix[:, 1], [1.0, 0.0, 1.0])
        assert matrix[0, 0] == 1.0
        assert matrix[1, 0] == 2.0
        assert math.isnan(matrix[2, 0])

    def test_finalize_with_empty_partition(self, store):
        store.prepare("frame_a", ["x", "y"])
        write_partition(store, "frame_a", 0, [])
        write_partition(store, "frame_a", 1, [(1.0, 2.0)])

        frame = store.finalize("frame_a", [0, 1])

        assert frame.num_rows == 1
        assert frame.read_partition(0).num_rows == 0
        assert frame.to_arrow().num_rows == 1

    def test_finalize_zero_partitions(self, store):
        store.prepare("frame_a", ["x"])
        frame = store.finalize("frame_a", [])

        assert frame.num_rows == 0
        assert frame.to_numpy().shape == (0, 1)

    def test_finalize_missing_partition(self, store):
        store.prepare("frame_a", ["x", "y"])
        write_partition(store, "frame_a", 0, [(1.0, 1.0)])

        with pytest.raises(FrameStateError, match="missing partitions"):
            store.finalize("frame_a", [1, 0])

    def test_finalize_row_count_mismatch(self, store):
        store.prepare("frame_a", ["x", "y"])
        write_partition(store, "frame_a", 0, [(1.0, 1.0)])

        with pytest.raises(FrameStateError, match="expected 5"):
            store.finalize("frame_a", [5])

    def test_finalize_twice_fails(self, store):
        store.prepare("frame_a", ["x"])
        store.finalize("frame_a", [])

        with pytest.raises(FrameStateError):
            store.finalize("frame_a", [])
        with pytest.raises(FrameStateError):
            store.create_segments("frame_a", 0)

    def test_ragged_segments_rejected(self, store):
        store.prepare("frame_a", ["x", "y"])
        x, y = store.create_segments("frame_a", 0)
        x.append(1.0)

        with pytest.raises(FrameStateError, match="ragged"):
            store.seal_segments("frame_a", 0, [x, y])

    def test_foreign_segments_rejected(self, store):
        store.prepare("frame_a", ["x", "y"])
        store.prepare("frame_b", ["y", "x"])
        segments = store.create_segments("frame_b", 0)

        with pytest.raises(FrameStateError):
            store.seal_segments("frame_a", 0, segments)

    def test_degraded_count_is_kept(self, store):
        store.prepare("frame_a", ["x"])
        store.finalize("frame_a", [], degraded_count=4)

        assert store.load("frame_a").degraded_count == 4

    def test_delete(self, store):
        store.prepare("frame_a", ["x"])
        write_partition(store, "frame_a", 0, [(1.0,)])

        assert store.delete("frame_a")
        assert not store.exists("frame_a")
        assert not store.delete("frame_a")
        assert store.list_frames() == []

    def test_list_frames(self, store):
        store.prepare("frame_a", ["x"])
        store.prepare("frame_b", ["x"])
        assert sorted(store.list_frames()) == ["frame_a", "frame_b"]

    def test_read_partition_out_of_range(self, store):
        store.prepare("frame_a", ["x"])
        write_partition(store, "frame_a", 0, [(1.0,)])
        store.finalize("frame_a", [1])

        with pytest.raises(FrameStoreError):
            store.read_partition("frame_a", 1)


# =============================================================================
# Column Tables
# =============================================================================


class TestColumnTable:
    """Tests for the finalized frame handle."""

    @pytest.fixture
    def frame(self, store):
        store.prepare("frame_t", ["a", "b"])
        write_partition(store, "frame_t", 0, [(1.0, 10.0), (2.0, 20.0)])
        write_partition(store, "frame_t", 1, [(3.0, 30.0)])
        return store.finalize("frame_t", [2, 1])

    def test_to_arrow_keeps_partition_chunks(self, frame):
        pa = pytest.importorskip("pyarrow")

        table = frame.to_arrow()
        assert table.schema.names == ["a", "b"]
        assert table.schema.field("a").type == pa.float64()
        assert table.column("a").num_chunks == 2
        assert table.column("b").to_pylist() == [10.0, 20.0, 30.0]

    def test_to_polars(self, frame):
        pytest.importorskip("polars")

        df = frame.to_polars()
        assert df.columns == ["a", "b"]
        assert df["a"].to_list() == [1.0, 2.0, 3.0]

        lazy = frame.to_polars(lazy=True)
        assert lazy.collect().height == 3

    def test_column(self, frame):
        assert frame.column("b").to_pylist() == [10.0, 20.0, 30.0]

    def test_iter_partitions(self, frame):
        assert [b.num_rows for b in frame.iter_partitions()] == [2, 1]

    def test_len_and_repr(self, frame):
        assert len(frame) == 3
        assert frame.num_cols == 2
        assert "frame_t" in repr(frame)

    def test_equality(self, frame, store):
        assert frame == store.load("frame_t")
        assert hash(frame) == hash(store.load("frame_t"))


# =============================================================================
# Store Specifics
# =============================================================================


class TestFileSystemFrameStore:
    """Tests specific to the filesystem store."""

    def test_is_process_shared(self, fs_store):
        assert fs_store.is_process_shared
        assert not MemoryFrameStore.is_process_shared

    def test_layout(self, fs_store):
        fs_store.prepare("frame_a", ["x"])
        write_partition(fs_store, "frame_a", 0, [(1.0,)])

        frame_dir = fs_store.base_path / "frame_a"
        assert (frame_dir / "_header.json").exists()
        assert (frame_dir / "part-00000.arrow").exists()
        assert not list(frame_dir.glob("*.tmp"))

    def test_frames_visible_to_second_instance(self, tmp_path):
        """Test a frame written by one store instance is readable by another."""
        writer = FileSystemFrameStore(tmp_path / "shared", compression="lz4")
        writer.prepare("frame_a", ["x"])
        write_partition(writer, "frame_a", 0, [(1.0,), (2.0,)])
        writer.finalize("frame_a", [2])

        reader = FileSystemFrameStore(tmp_path / "shared")
        assert reader.load("frame_a").column("x").to_pylist() == [1.0, 2.0]

    def test_corrupted_header(self, fs_store):
        fs_store.prepare("frame_a", ["x"])
        (fs_store.base_path / "frame_a" / "_header.json").write_text("{not json")

        with pytest.raises(FrameStoreError, match="Corrupted"):
            fs_store.header("frame_a")

    def test_unsupported_compression(self, tmp_path):
        with pytest.raises(FrameStoreError):
            FileSystemFrameStore(tmp_path, compression="snappy")


class TestStoreFactory:
    """Tests for store lookup."""

    def test_get_store(self, tmp_path):
        assert isinstance(get_store("memory"), MemoryFrameStore)
        assert isinstance(get_store("FileSystem", base_path=tmp_path), FileSystemFrameStore)

    def test_unknown_store(self):
        with pytest.raises(FrameStoreError, match="Unknown frame store"):
            get_store("redis")

    def test_list_stores(self):
        assert {"memory", "filesystem"} <= set(list_stores())

    def test_store_from_config(self, tmp_path):
        config = BridgeConfig(store_backend="filesystem", store_path=str(tmp_path / "cfg"))
        store = store_from_config(config)

        assert isinstance(store, FileSystemFrameStore)
        assert store.base_path == tmp_path / "cfg"
        assert isinstance(store_from_config(BridgeConfig()), MemoryFrameStore)

    def test_new_frame_key(self):
        key = new_frame_key("points")
        assert key.startswith("points_")
        assert key != new_frame_key("points")

    def test_register_store(self, monkeypatch):
        from framebridge import frames

        monkeypatch.setitem(frames._store_registry, "scratch", MemoryFrameStore)

        @frames.register_store("scratch")
        class ScratchFrameStore(MemoryFrameStore):
            pass

        assert isinstance(get_store("scratch"), ScratchFrameStore)

    def test_stores_conform_to_protocol(self, store):
        from framebridge.protocols import FrameStoreProtocol

        assert isinstance(store, FrameStoreProtocol)
