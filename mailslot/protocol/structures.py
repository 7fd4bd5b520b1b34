"""Mailslot data structures.

SINGLE SOURCE OF TRUTH for the records exchanged between the engine, the
registry and the observability layers. Binary layouts are described with
Construct and surfaced as typed Msgspec structs.
"""

from __future__ import annotations

from typing import Any, ClassVar, Type, TypeVar

import msgspec
from construct import (  # type: ignore
    BitsInteger,
    BitStruct,
    Construct,
)

T = TypeVar("T", bound="BaseStruct")


class BaseStruct(msgspec.Struct, frozen=True):
    """Base class for hybrid Msgspec/Construct structures."""

    # Subclasses must define this schema
    _SCHEMA: ClassVar[Construct[Any]]

    @classmethod
    def decode(cls: Type[T], data: bytes | bytearray | memoryview) -> T:
        """Decode binary data into a typed Msgspec struct."""
        if not data:
            raise ValueError("Empty payload")
        container: Any = cls._SCHEMA.parse(bytes(data))
        return cls(**{k: v for k, v in container.items() if not k.startswith("_")})

    def encode(self) -> bytes:
        """Encode the typed Msgspec struct into binary data."""
        return self._SCHEMA.build(msgspec.structs.asdict(self))


class IoctlNumber(BaseStruct, frozen=True):
    """Linux ioctl request number: ``dir:2 | size:14 | type:8 | nr:8``."""

    direction: int
    size: int
    type: int
    number: int

    _SCHEMA = BitStruct(
        "direction" / BitsInteger(2),
        "size" / BitsInteger(14),
        "type" / BitsInteger(8),
        "number" / BitsInteger(8),
    )

    @property
    def code(self) -> int:
        return int.from_bytes(self.encode(), "big")

    @classmethod
    def from_code(cls, code: int) -> IoctlNumber:
        if code < 0 or code > 0xFFFFFFFF:
            raise ValueError(f"ioctl code out of range: {code}")
        return cls.decode(code.to_bytes(4, "big"))


class Message(msgspec.Struct, frozen=True):
    """One undelivered datagram held by a slot queue."""

    payload: bytes
    length: int


class SlotStats(msgspec.Struct):
    """Mutable per-slot counters, updated under the slot lock."""

    messages_written: int = 0
    messages_read: int = 0
    bytes_written: int = 0
    bytes_read: int = 0
    failures: dict[str, int] = msgspec.field(default_factory=dict)

    def record_write(self, length: int) -> None:
        self.messages_written += 1
        self.bytes_written += length

    def record_read(self, length: int) -> None:
        self.messages_read += 1
        self.bytes_read += length

    def record_failure(self, status_name: str) -> None:
        self.failures[status_name] = self.failures.get(status_name, 0) + 1

    @property
    def touched(self) -> bool:
        return bool(self.messages_written or self.messages_read or self.failures)


class SlotSnapshot(msgspec.Struct, frozen=True):
    """Point-in-time view of one slot, used by metrics and diagnostics."""

    slot: int
    depth: int
    capacity: int
    bytes_queued: int
    max_message_size: int
    messages_written: int
    messages_read: int
    bytes_written: int
    bytes_read: int
    failures: dict[str, int]
    touched: bool = False

    def idle(self, default_message_size: int) -> bool:
        """Nothing queued, no traffic yet and the size policy never changed."""
        return not self.touched and self.depth == 0 and self.max_message_size == default_message_size

    def as_dict(self) -> dict[str, Any]:
        return msgspec.structs.asdict(self)


__all__ = [
    "BaseStruct",
    "IoctlNumber",
    "Message",
    "SlotSnapshot",
    "SlotStats",
]
