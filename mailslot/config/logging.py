"""JSON log lines for mailslot.

Every record becomes one :class:`LogLine`. The ``slot`` and ``status``
extras that the engine attaches to each call are lifted to top-level keys
so a log shipper can filter on them; any other extras land under ``extra``.
Payload bytes are never decoded, they are rendered as hex.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from logging import Handler
from logging.config import dictConfig
from logging.handlers import SysLogHandler
from pathlib import Path
from typing import Any

import msgspec

from ..const import DEVICE_NAME
from .model import RuntimeConfig

SYSLOG_SOCKET = Path("/dev/log")
SYSLOG_SOCKET_FALLBACK = Path("/var/run/log")

# Longest payload rendered in full; longer ones are cut and tagged with the rest.
HEX_PREVIEW_BYTES = 32

# Third-party loggers that are chatty below WARNING.
QUIET_LOGGERS = ("asyncio", "transitions")

_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class LogLine(msgspec.Struct, omit_defaults=True):
    ts: str
    level: str
    logger: str
    message: str
    slot: int | None = None
    status: str | None = None
    extra: dict[str, Any] | None = None
    exception: str | None = None


_encoder = msgspec.json.Encoder()


def render_payload(value: bytes | bytearray | memoryview) -> str:
    data = bytes(value)
    shown = " ".join(f"{b:02X}" for b in data[:HEX_PREVIEW_BYTES])
    if len(data) > HEX_PREVIEW_BYTES:
        return f"[{shown} +{len(data) - HEX_PREVIEW_BYTES}]"
    return f"[{shown}]"


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return render_payload(value)
    return str(value)


class StructuredLogFormatter(logging.Formatter):
    """Render records as :class:`LogLine` JSON, dropping the package prefix."""

    PREFIX = f"{DEVICE_NAME}."

    def format(self, record: logging.LogRecord) -> str:
        extras = {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRIBUTES}
        slot = extras.pop("slot", None)
        status = extras.pop("status", None)

        line = LogLine(
            ts=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            level=record.levelname,
            logger=record.name.removeprefix(self.PREFIX),
            message=record.getMessage(),
            slot=slot if isinstance(slot, int) and not isinstance(slot, bool) else None,
            status=None if status is None else str(status),
            extra={key: _plain(value) for key, value in extras.items() if not key.startswith("_")} or None,
            exception=self.formatException(record.exc_info) if record.exc_info else None,
        )
        return _encoder.encode(line).decode("utf-8")


def _build_syslog_handler() -> Handler:
    socket_path = next((path for path in (SYSLOG_SOCKET, SYSLOG_SOCKET_FALLBACK) if path.exists()), None)
    if socket_path is None:
        return logging.StreamHandler()
    handler = SysLogHandler(address=str(socket_path), facility=SysLogHandler.LOG_DAEMON)
    handler.ident = f"{DEVICE_NAME} "
    return handler


def configure_logging(config: RuntimeConfig) -> None:
    """Route every logger through one structured handler."""
    level_name = "DEBUG" if config.debug_logging else "INFO"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": StructuredLogFormatter}},
            "handlers": {
                DEVICE_NAME: {
                    "()": _build_syslog_handler if config.log_syslog else logging.StreamHandler,
                    "formatter": "json",
                }
            },
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
            "root": {"level": level_name, "handlers": [DEVICE_NAME]},
        }
    )

    logging.getLogger(DEVICE_NAME).info("Logging configured at level %s", level_name)
