"""Data model for mailslot runtime configuration."""

from __future__ import annotations

from dataclasses import dataclass

from ..const import (
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_LOG_SYSLOG,
    DEFAULT_MESSAGE_SIZE,
    DEFAULT_METRICS_ENABLED,
    DEFAULT_METRICS_HOST,
    DEFAULT_METRICS_PORT,
    INSTANCES,
    MAXIMUM_MESSAGE_SIZE,
    MINIMUM_MESSAGE_SIZE,
)


@dataclass(slots=True)
class RuntimeConfig:
    """Strongly typed configuration for the mailslot engine and CLI."""

    instances: int = INSTANCES
    default_message_size: int = DEFAULT_MESSAGE_SIZE
    debug_logging: bool = DEFAULT_DEBUG_LOGGING
    log_syslog: bool = DEFAULT_LOG_SYSLOG
    metrics_enabled: bool = DEFAULT_METRICS_ENABLED
    metrics_host: str = DEFAULT_METRICS_HOST
    metrics_port: int = DEFAULT_METRICS_PORT

    def __post_init__(self) -> None:
        self.instances = self._require_positive("instances", int(self.instances))
        if not MINIMUM_MESSAGE_SIZE <= self.default_message_size <= MAXIMUM_MESSAGE_SIZE:
            raise ValueError(
                f"default_message_size must be within [{MINIMUM_MESSAGE_SIZE}, {MAXIMUM_MESSAGE_SIZE}]"
            )
        self.metrics_host = (self.metrics_host or "").strip()
        if not self.metrics_host:
            raise ValueError("metrics_host must be a non-empty string")
        if not 0 <= self.metrics_port <= 65535:
            raise ValueError("metrics_port must be within [0, 65535]")

    @staticmethod
    def _require_positive(name: str, value: int) -> int:
        if value <= 0:
            raise ValueError(f"{name} must be a positive integer")
        return value
