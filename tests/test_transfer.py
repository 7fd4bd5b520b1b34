"""Tests for the default buffer transfer."""

from __future__ import annotations

import array

import pytest

from mailslot.transfer import BufferTransfer, Transfer


def test_buffer_transfer_satisfies_protocol() -> None:
    assert isinstance(BufferTransfer(), Transfer)


@pytest.mark.asyncio
async def test_transfer_in_copies_requested_prefix() -> None:
    staging = bytearray(3)
    copied = await BufferTransfer().transfer_in(staging, memoryview(b"abcdef"), 3, may_block=False)

    assert copied == 3
    assert staging == b"abc"


@pytest.mark.asyncio
async def test_transfer_in_reports_short_source() -> None:
    staging = bytearray(5)
    assert await BufferTransfer().transfer_in(staging, b"ab", 5, may_block=True) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("source", [None, "text", 42])
async def test_transfer_in_rejects_non_buffers(source) -> None:
    assert await BufferTransfer().transfer_in(bytearray(4), source, 4, may_block=True) == 0


@pytest.mark.asyncio
async def test_transfer_out_into_writable_buffers() -> None:
    transfer = BufferTransfer()

    target = bytearray(8)
    assert await transfer.transfer_out(target, b"hello", may_block=False) == 5
    assert target[:5] == b"hello"

    words = array.array("H", [0, 0, 0])
    assert await transfer.transfer_out(words, b"\x01\x00\x02\x00", may_block=False) == 4
    assert words[0] == int.from_bytes(b"\x01\x00", "little")


@pytest.mark.asyncio
async def test_transfer_out_short_or_readonly_destination() -> None:
    transfer = BufferTransfer()

    assert await transfer.transfer_out(bytearray(2), b"hello", may_block=True) == 2
    assert await transfer.transfer_out(b"\x00" * 8, b"hello", may_block=True) == 0
    assert await transfer.transfer_out(None, b"hello", may_block=True) == 0
