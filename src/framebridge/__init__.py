"""framebridge - Partition-parallel conversion between distributed records and column frames."""

from framebridge.config import BridgeConfig, get_config, set_config
from framebridge.engines import LocalCollection, LocalDispatcher, resolve_dispatcher
from framebridge.errors import (
    BridgeError,
    ConfigError,
    DispatchError,
    FrameNotFoundError,
    FrameNotReadyError,
    FrameStateError,
    FrameStoreError,
    SchemaError,
    SegmentSealedError,
    UnsupportedColumnTypeError,
)
from framebridge.frames import (
    ColumnTable,
    FileSystemFrameStore,
    MemoryFrameStore,
    Segment,
    get_store,
)
from framebridge.materialize import (
    ColumnToRowMaterializer,
    RowToColumnMaterializer,
    frame_to_records,
    records_to_frame,
    table_to_frame,
)
from framebridge.protocols import PartitionResult, TaskContext
from framebridge.schema import ColumnType, Field, Schema

__version__ = "0.1.0"

__all__ = [
    # Conversion functions
    "records_to_frame",
    "table_to_frame",
    "frame_to_records",
    "RowToColumnMaterializer",
    "ColumnToRowMaterializer",
    # Schema
    "Schema",
    "Field",
    "ColumnType",
    # Frames
    "ColumnTable",
    "Segment",
    "MemoryFrameStore",
    "FileSystemFrameStore",
    "get_store",
    # Engines
    "LocalCollection",
    "LocalDispatcher",
    "resolve_dispatcher",
    "PartitionResult",
    "TaskContext",
    # Config
    "BridgeConfig",
    "get_config",
    "set_config",
    # Errors
    "BridgeError",
    "SchemaError",
    "UnsupportedColumnTypeError",
    "FrameStoreError",
    "FrameNotFoundError",
    "FrameNotReadyError",
    "FrameStateError",
    "SegmentSealedError",
    "DispatchError",
    "ConfigError",
]
