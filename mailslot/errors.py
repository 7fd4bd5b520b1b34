"""Failure taxonomy for mailslot operations.

Every failure carries a :class:`~mailslot.protocol.Status` whose value is the
matching errno, so callers at a syscall-like boundary can return ``-exc.errno``.
"""

from __future__ import annotations

from typing import ClassVar

from .protocol.protocol import Status


class MailslotError(Exception):
    """Base class for all mailslot failures."""

    status: ClassVar[Status] = Status.INVALID_ARGUMENT

    def __init__(self, message: str, *, slot: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.slot = slot

    @property
    def errno(self) -> int:
        return int(self.status)


class InvalidArgumentError(MailslotError):
    """Zero-length request, missing buffer or out-of-range control argument."""

    status = Status.INVALID_ARGUMENT


class WouldBlockError(MailslotError):
    """Non-blocking call found the slot empty, full or locked."""

    status = Status.WOULD_BLOCK


class InterruptedCallError(MailslotError):
    """A blocking call was cancelled while waiting."""

    status = Status.INTERRUPTED


class MessageTooLargeError(MailslotError):
    """Read buffer smaller than the head message, or payload above slot limit."""

    status = Status.MESSAGE_TOO_LARGE


class TransferFaultError(MailslotError):
    """Copy across the caller boundary failed; the queue is untouched."""

    status = Status.TRANSFER_FAULT


class UnsupportedOperationError(MailslotError):
    status = Status.UNSUPPORTED_OPERATION


class ResourceExhaustedError(MailslotError):
    status = Status.RESOURCE_EXHAUSTED


class NoSuchSlotError(MailslotError):
    status = Status.NO_SUCH_SLOT


_BY_STATUS: dict[Status, type[MailslotError]] = {
    cls.status: cls
    for cls in (
        InvalidArgumentError,
        WouldBlockError,
        InterruptedCallError,
        MessageTooLargeError,
        TransferFaultError,
        UnsupportedOperationError,
        ResourceExhaustedError,
        NoSuchSlotError,
    )
}


def error_for_status(status: Status | int, message: str, *, slot: int | None = None) -> MailslotError:
    """Instantiate the exception class matching *status*.

    *status* may also be a raw errno of either sign, as returned across a
    syscall-like boundary.
    """
    resolved = Status.from_errno(status)
    try:
        cls = _BY_STATUS[resolved]
    except KeyError:
        raise ValueError(f"no error class for status {resolved!r}") from None
    return cls(message, slot=slot)


__all__ = [
    "InterruptedCallError",
    "InvalidArgumentError",
    "MailslotError",
    "MessageTooLargeError",
    "NoSuchSlotError",
    "ResourceExhaustedError",
    "TransferFaultError",
    "UnsupportedOperationError",
    "WouldBlockError",
    "error_for_status",
]
