"""Mailslot status codes and control command surface."""

from __future__ import annotations

import ctypes
import errno
from enum import IntEnum

from ..const import IOCTL_DRIVER_NUM
from .structures import IoctlNumber

# Direction bits of an ioctl request number.
IOC_NONE = 0
IOC_WRITE = 1
IOC_READ = 2


def ioc(direction: int, type_: int, number: int, size: int) -> int:
    """Build an ioctl request number from its fields."""
    return IoctlNumber(direction=direction, size=size, type=type_, number=number).code


def io(type_: int, number: int) -> int:
    return ioc(IOC_NONE, type_, number, 0)


def iow(type_: int, number: int, size: int) -> int:
    return ioc(IOC_WRITE, type_, number, size)


def decode_command(code: int) -> IoctlNumber:
    """Split a control command code into direction, size, type and number."""
    return IoctlNumber.from_code(code)


class Status(IntEnum):
    OK = 0  # Operation completed successfully.
    INVALID_ARGUMENT = errno.EINVAL  # Zero length, null buffer, bad control argument.
    WOULD_BLOCK = errno.EAGAIN  # Non-blocking precondition unmet.
    INTERRUPTED = errno.EINTR  # Blocking wait cancelled.
    MESSAGE_TOO_LARGE = errno.EMSGSIZE  # Buffer too small or payload above slot limit.
    TRANSFER_FAULT = errno.EFAULT  # Boundary copy failed.
    UNSUPPORTED_OPERATION = errno.ENOTTY  # Unknown control command.
    RESOURCE_EXHAUSTED = errno.ENOMEM  # Allocation failed in blocking mode.
    NO_SUCH_SLOT = errno.ENXIO  # Handle does not map to a slot.

    @classmethod
    def from_errno(cls, value: int) -> Status:
        return cls(abs(value))


class ControlCommand(IntEnum):
    SET_BLOCKING = io(IOCTL_DRIVER_NUM, 2)
    SET_NONBLOCKING = io(IOCTL_DRIVER_NUM, 5)
    SET_MAXIMUM_MSG_SIZE = iow(IOCTL_DRIVER_NUM, 7, ctypes.sizeof(ctypes.c_int))


def resolve_command(code: int) -> ControlCommand | None:
    try:
        return ControlCommand(code)
    except ValueError:
        return None


__all__ = [
    "IOC_NONE",
    "IOC_READ",
    "IOC_WRITE",
    "ControlCommand",
    "Status",
    "decode_command",
    "io",
    "ioc",
    "iow",
    "resolve_command",
]
