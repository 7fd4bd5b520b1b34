"""Shared constants for the mailslot engine and its collaborators."""

from __future__ import annotations

from typing import Final

DEVICE_NAME: Final[str] = "mailslot"
FIRST_MINOR: Final[int] = 0

# Registry sizing
INSTANCES: Final[int] = 256

# Per-slot policy
MAILSLOT_STORAGE: Final[int] = 64
DEFAULT_MESSAGE_SIZE: Final[int] = 128
MAXIMUM_MESSAGE_SIZE: Final[int] = 512
MINIMUM_MESSAGE_SIZE: Final[int] = 1

# Control surface
IOCTL_DRIVER_NUM: Final[int] = 75

# Runtime defaults
DEFAULT_DEBUG_LOGGING: Final[bool] = False
DEFAULT_LOG_SYSLOG: Final[bool] = False
DEFAULT_METRICS_ENABLED: Final[bool] = False
DEFAULT_METRICS_HOST: Final[str] = "127.0.0.1"
DEFAULT_METRICS_PORT: Final[int] = 9130
CONFIG_TABLE: Final[str] = "mailslot"

# Caller-side retry helper
RETRY_DEFAULT_ATTEMPTS: Final[int] = 50
RETRY_MIN_BACKOFF: Final[float] = 0.001
RETRY_MAX_BACKOFF: Final[float] = 0.05
