"""Tests for control command encoding, status codes and error mapping."""

from __future__ import annotations

import errno

import pytest

from mailslot.errors import (
    InterruptedCallError,
    MailslotError,
    MessageTooLargeError,
    NoSuchSlotError,
    WouldBlockError,
    error_for_status,
)
from mailslot.protocol import ControlCommand, IoctlNumber, Status, decode_command, resolve_command
from mailslot.protocol.protocol import IOC_NONE, IOC_WRITE, io, iow


def test_control_codes_match_linux_ioctl_layout() -> None:
    # _IO(75, 2), _IO(75, 5) and _IOW(75, 7, int) as computed by <asm-generic/ioctl.h>.
    assert ControlCommand.SET_BLOCKING == 0x4B02
    assert ControlCommand.SET_NONBLOCKING == 0x4B05
    assert ControlCommand.SET_MAXIMUM_MSG_SIZE == 0x40044B07


def test_decode_command_splits_fields() -> None:
    fields = decode_command(ControlCommand.SET_MAXIMUM_MSG_SIZE)

    assert fields == IoctlNumber(direction=IOC_WRITE, size=4, type=75, number=7)
    assert fields.code == ControlCommand.SET_MAXIMUM_MSG_SIZE
    assert decode_command(ControlCommand.SET_BLOCKING).direction == IOC_NONE


def test_ioctl_number_encodes_big_endian() -> None:
    number = IoctlNumber(direction=IOC_NONE, size=0, type=75, number=5)

    assert number.encode() == b"\x00\x00\x4b\x05"
    assert IoctlNumber.decode(b"\x00\x00\x4b\x05") == number


@pytest.mark.parametrize("code", [-1, 0x1_0000_0000])
def test_decode_command_rejects_out_of_range_codes(code: int) -> None:
    with pytest.raises(ValueError):
        decode_command(code)


def test_resolve_command() -> None:
    assert resolve_command(0x4B02) is ControlCommand.SET_BLOCKING
    assert resolve_command(io(75, 5)) is ControlCommand.SET_NONBLOCKING
    assert resolve_command(iow(75, 7, 4)) is ControlCommand.SET_MAXIMUM_MSG_SIZE
    assert resolve_command(9) is None
    assert resolve_command(io(76, 2)) is None


def test_status_values_are_errno_codes() -> None:
    assert Status.OK == 0
    assert Status.INVALID_ARGUMENT == errno.EINVAL
    assert Status.WOULD_BLOCK == errno.EAGAIN
    assert Status.INTERRUPTED == errno.EINTR
    assert Status.MESSAGE_TOO_LARGE == errno.EMSGSIZE
    assert Status.TRANSFER_FAULT == errno.EFAULT
    assert Status.UNSUPPORTED_OPERATION == errno.ENOTTY
    assert Status.RESOURCE_EXHAUSTED == errno.ENOMEM
    assert Status.from_errno(-errno.EAGAIN) is Status.WOULD_BLOCK


def test_error_for_status_builds_matching_exception() -> None:
    exc = error_for_status(Status.MESSAGE_TOO_LARGE, "too big", slot=4)

    assert isinstance(exc, MessageTooLargeError)
    assert isinstance(exc, MailslotError)
    assert exc.slot == 4
    assert exc.errno == errno.EMSGSIZE
    assert str(exc) == "too big"

    assert isinstance(error_for_status(Status.WOULD_BLOCK, "busy"), WouldBlockError)
    assert isinstance(error_for_status(Status.INTERRUPTED, "cancelled"), InterruptedCallError)
    assert isinstance(error_for_status(Status.NO_SUCH_SLOT, "gone"), NoSuchSlotError)

    raw = error_for_status(-errno.EMSGSIZE, "too big", slot=1)
    assert isinstance(raw, MessageTooLargeError)
    assert raw.slot == 1

    with pytest.raises(ValueError):
        error_for_status(Status.OK, "fine")
    with pytest.raises(ValueError):
        error_for_status(errno.EPIPE, "not ours")
