"""Column-table engine: frame stores, segments and finalized tables.

Example:
    >>> from framebridge.frames import get_store
    >>>
    >>> store = get_store("memory")
    >>> store = get_store("filesystem", base_path="/mnt/shared/frames")
"""

from __future__ import annotations

from typing import Any, Callable

from framebridge.config import BridgeConfig
from framebridge.errors import FrameStoreError
from framebridge.frames.base import BaseFrameStore, FrameHeader, new_frame_key
from framebridge.frames.filesystem import FileSystemFrameStore
from framebridge.frames.memory import MemoryFrameStore
from framebridge.frames.segment import Segment
from framebridge.frames.table import ColumnTable

StoreConstructor = Callable[..., BaseFrameStore]

_store_registry: dict[str, StoreConstructor] = {
    "memory": MemoryFrameStore,
    "filesystem": FileSystemFrameStore,
}


def register_store(name: str) -> Callable[[StoreConstructor], StoreConstructor]:
    """Decorator to register a frame store backend.

    Example:
        >>> @register_store("shm")
        ... class SharedMemoryFrameStore(BaseFrameStore):
        ...     ...
    """

    def decorator(cls: StoreConstructor) -> StoreConstructor:
        _store_registry[name] = cls
        return cls

    return decorator


def get_store(backend: str, **kwargs: Any) -> BaseFrameStore:
    """Create a frame store for the given backend.

    Args:
        backend: Backend name ("memory", "filesystem", or a registered name).
        **kwargs: Backend-specific options.

    Raises:
        FrameStoreError: If the backend is unknown.
    """
    backend = backend.lower().strip()
    if backend not in _store_registry:
        raise FrameStoreError(
            f"Unknown frame store backend: {backend}. "
            f"Available: {', '.join(sorted(_store_registry))}"
        )
    return _store_registry[backend](**kwargs)


def list_stores() -> list[str]:
    return sorted(_store_registry)


def store_from_config(config: BridgeConfig) -> BaseFrameStore:
    """Create the default frame store described by a configuration."""
    if config.store_backend == "filesystem":
        return get_store("filesystem", base_path=config.store_path)
    return get_store(config.store_backend)


__all__ = [
    "BaseFrameStore",
    "ColumnTable",
    "FileSystemFrameStore",
    "FrameHeader",
    "MemoryFrameStore",
    "Segment",
    "get_store",
    "list_stores",
    "new_frame_key",
    "register_store",
    "store_from_config",
]
