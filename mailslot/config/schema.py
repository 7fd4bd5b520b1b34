"""Marshmallow schema for RuntimeConfig validation."""

from __future__ import annotations

from typing import Any, Dict

from marshmallow import RAISE, Schema, fields, post_load, pre_load, validate

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
from .model import RuntimeConfig


class RuntimeConfigSchema(Schema):
    """Declarative validation schema for mailslot configuration."""

    class Meta:
        unknown = RAISE

    # Registry
    instances = fields.Int(load_default=INSTANCES, strict=True, validate=validate.Range(min=1))
    default_message_size = fields.Int(
        load_default=DEFAULT_MESSAGE_SIZE,
        strict=True,
        validate=validate.Range(min=MINIMUM_MESSAGE_SIZE, max=MAXIMUM_MESSAGE_SIZE),
    )

    # Logging
    debug_logging = fields.Bool(load_default=DEFAULT_DEBUG_LOGGING)
    log_syslog = fields.Bool(load_default=DEFAULT_LOG_SYSLOG)

    # Metrics
    metrics_enabled = fields.Bool(load_default=DEFAULT_METRICS_ENABLED)
    metrics_host = fields.Str(load_default=DEFAULT_METRICS_HOST, validate=validate.Length(min=1))
    metrics_port = fields.Int(load_default=DEFAULT_METRICS_PORT, strict=True, validate=validate.Range(min=0, max=65535))

    @pre_load
    def normalize_host(self, data: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
        if isinstance(data.get("metrics_host"), str):
            data = dict(data)
            data["metrics_host"] = data["metrics_host"].strip()
        return data

    @post_load
    def make_config(self, data: Dict[str, Any], **kwargs: Any) -> RuntimeConfig:
        return RuntimeConfig(**data)


__all__ = ["RuntimeConfigSchema"]
