"""Exception hierarchy for framebridge.

Every error raised by this package derives from :class:`BridgeError`.
Failures raised inside partition tasks by the host engine (out of memory,
serialization problems, user code errors) are not wrapped: they propagate
unchanged through the dispatcher to the caller.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base exception for all framebridge errors."""

    pass


# =============================================================================
# Schema Errors
# =============================================================================


class SchemaError(BridgeError):
    """Raised when a schema cannot be used for a materialization.

    Always raised on the driver before any partition task is dispatched.
    """

    def __init__(self, message: str, column: str | None = None) -> None:
        self.column = column
        super().__init__(message)


class UnsupportedColumnTypeError(SchemaError):
    """Raised when a declared column type has no numeric mapping."""

    def __init__(self, column: str, dtype: object) -> None:
        self.dtype = dtype
        super().__init__(f"Unsupported type {dtype} for column '{column}'", column)


# =============================================================================
# Frame Store Errors
# =============================================================================


class FrameStoreError(BridgeError):
    """Base exception for frame store errors."""

    pass


class FrameNotFoundError(FrameStoreError):
    """Raised when a frame key is not registered in the store."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Frame not found: {key}")


class FrameNotReadyError(FrameStoreError):
    """Raised when reading a frame that has not been finalized."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Frame is not finalized: {key}")


class FrameStateError(FrameStoreError):
    """Raised when a frame operation is invalid for its current state."""

    pass


class SegmentSealedError(FrameStoreError):
    """Raised when appending to a segment that has already been sealed."""

    pass


# =============================================================================
# Dispatch and Configuration Errors
# =============================================================================


class DispatchError(BridgeError):
    """Raised when a dispatcher cannot run a partition job."""

    pass


class ConfigError(BridgeError):
    """Raised for invalid configuration values."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__(f"Configuration validation failed: {', '.join(errors)}")
