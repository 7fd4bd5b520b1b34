"""Configuration helpers for mailslot."""

from . import logging, settings  # noqa: F401  # pyright: ignore[reportUnusedImport]
from .model import RuntimeConfig
from .settings import get_default_config, load_runtime_config

__all__ = ["RuntimeConfig", "get_default_config", "load_runtime_config"]
