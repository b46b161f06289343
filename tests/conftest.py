"""Shared pytest fixtures for framebridge tests."""

from __future__ import annotations

import os

import pytest

from framebridge.config import BridgeConfig, set_config
from framebridge.frames import FileSystemFrameStore, MemoryFrameStore


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep FRAMEBRIDGE_* variables of the host out of the tests."""
    for key in list(os.environ):
        if key.startswith("FRAMEBRIDGE_"):
            monkeypatch.delenv(key)
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def config() -> BridgeConfig:
    return BridgeConfig(default_partitions=3, max_workers=4)


@pytest.fixture
def memory_store() -> MemoryFrameStore:
    return MemoryFrameStore()


@pytest.fixture
def fs_store(tmp_path) -> FileSystemFrameStore:
    return FileSystemFrameStore(tmp_path / "frames")


@pytest.fixture(params=["memory", "filesystem"])
def store(request, tmp_path):
    """Run a test against every frame store backend."""
    if request.param == "memory":
        return MemoryFrameStore()
    return FileSystemFrameStore(tmp_path / "frames", compression="zstd")
