"""Settings loader for mailslot.

Configuration comes from an optional TOML file. Keys live under a
``[mailslot]`` table, or at the top level when that table is absent; anything
omitted falls back to the defaults on :class:`RuntimeConfig`.
"""

from __future__ import annotations

import dataclasses
import logging
import tomllib
from pathlib import Path
from typing import Any

from marshmallow import ValidationError

from ..const import CONFIG_TABLE
from .model import RuntimeConfig
from .schema import RuntimeConfigSchema

logger = logging.getLogger(__name__)


def get_default_config() -> dict[str, Any]:
    """Provide default mailslot configuration values."""
    return {field.name: field.default for field in dataclasses.fields(RuntimeConfig)}


def _load_raw_config(path: str | Path) -> dict[str, Any]:
    with open(path, "rb") as handle:
        document = tomllib.load(handle)
    table = document.get(CONFIG_TABLE, document)
    if not isinstance(table, dict):
        raise ValueError(f"[{CONFIG_TABLE}] must be a table")
    return table


def load_runtime_config(path: str | Path | None = None) -> RuntimeConfig:
    """Load configuration from a TOML file, or defaults when *path* is None."""

    raw: dict[str, Any] = {}
    if path is not None:
        try:
            raw = _load_raw_config(path)
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(f"invalid configuration file {path}: {exc}") from exc
        logger.debug("Loaded configuration from %s", path, extra={"keys": sorted(raw)})

    try:
        config = RuntimeConfigSchema().load(raw)
    except ValidationError as exc:
        raise ValueError(f"invalid mailslot configuration: {exc.messages}") from exc
    return config


__all__ = ["RuntimeConfig", "get_default_config", "load_runtime_config"]
