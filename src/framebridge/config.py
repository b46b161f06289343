"""Configuration for framebridge.

Configuration is a plain dataclass. Values can be overridden from
environment variables with the ``FRAMEBRIDGE_`` prefix:

    FRAMEBRIDGE_DEFAULT_PARTITIONS=8
    FRAMEBRIDGE_STORE_BACKEND=filesystem
    FRAMEBRIDGE_STORE_PATH=/shared/frames
    FRAMEBRIDGE_PARSE_STRINGS=true

Example:
    >>> from framebridge.config import BridgeConfig
    >>> config = BridgeConfig.from_env()
    >>> config.default_partitions
    4
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping

from framebridge.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "FRAMEBRIDGE"

STORE_BACKENDS = ("memory", "filesystem")


def parse_env_value(value: str) -> Any:
    """Parse an environment string to the most specific type."""
    # Boolean
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    # None
    if value.lower() in ("null", "none", ""):
        return None

    # Number
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        pass

    # JSON array/object
    if value.startswith(("[", "{")):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            pass

    return value


def load_env(prefix: str = ENV_PREFIX, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect prefixed environment variables as lowercase keys."""
    environ = os.environ if environ is None else environ
    head = f"{prefix}_"
    return {
        key[len(head):].lower(): parse_env_value(value)
        for key, value in environ.items()
        if key.startswith(head)
    }


@dataclass
class BridgeConfig:
    """Configuration for materializations.

    Attributes:
        default_partitions: Partitions used when a plain sequence or an
            Arrow/Polars table is materialized locally.
        max_workers: Local thread-pool size (0 = executor default).
        key_prefix: Prefix of generated frame keys.
        store_backend: Default frame store ("memory" or "filesystem").
        store_path: Base directory of the filesystem store.
        parse_strings: Parse string fields into numbers/booleans instead of
            degrading them to NaN.
        warn_on_degraded: Log a warning when values were degraded to NaN.
        discard_on_failure: Delete the unfinalized frame header when a
            partition task fails.
    """

    default_partitions: int = 4
    max_workers: int = 0
    key_prefix: str = "frame"
    store_backend: str = "memory"
    store_path: str = ".framebridge/frames"
    parse_strings: bool = False
    warn_on_degraded: bool = True
    discard_on_failure: bool = True

    def validate(self) -> "BridgeConfig":
        """Validate configuration values.

        Raises:
            ConfigError: If any value is invalid.
        """
        errors = []
        if self.default_partitions < 1:
            errors.append(f"default_partitions must be >= 1, got {self.default_partitions}")
        if self.max_workers < 0:
            errors.append(f"max_workers must be >= 0, got {self.max_workers}")
        if not self.key_prefix:
            errors.append("key_prefix must not be empty")
        if self.store_backend not in STORE_BACKENDS:
            errors.append(
                f"store_backend must be one of {', '.join(STORE_BACKENDS)}, "
                f"got {self.store_backend!r}"
            )
        if errors:
            raise ConfigError(errors)
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BridgeConfig":
        """Create configuration from a mapping, ignoring unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.debug(f"Ignoring unknown config keys: {unknown}")
        return cls(**{k: v for k, v in data.items() if k in known}).validate()

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> "BridgeConfig":
        """Create configuration from environment variables.

        Args:
            prefix: Environment variable prefix.
            environ: Mapping to read instead of ``os.environ``.
            **overrides: Values taking precedence over the environment.
        """
        values = load_env(prefix, environ)
        values.update(overrides)
        return cls.from_dict(values)

    def replace(self, **changes: Any) -> "BridgeConfig":
        return dataclasses.replace(self, **changes).validate()


_default_config: BridgeConfig | None = None


def get_config() -> BridgeConfig:
    """Get the process-wide default configuration (loaded from env once)."""
    global _default_config
    if _default_config is None:
        _default_config = BridgeConfig.from_env()
    return _default_config


def set_config(config: BridgeConfig | None) -> None:
    """Replace the process-wide default configuration."""
    global _default_config
    _default_config = config.validate() if config is not None else None
