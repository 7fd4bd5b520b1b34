"""Per-slot access controller.

Serialises every read, write and policy change on one slot behind a single
``asyncio.Lock`` and implements blocking semantics with two conditions that
share it: ``read_ready`` (queue became non-empty) and ``write_ready`` (queue
gained a free entry). Each signal wakes exactly one waiter.

Non-blocking calls never suspend. The lock is try-acquired under a zero-length
timeout and the boundary copy runs under the same guard; any suspension turns
into :class:`WouldBlockError` or :class:`TransferFaultError` respectively.

A blocking caller that is woken and then fails passes the wake-up on to
the next waiter while the condition it was woken for still holds. After
:meth:`AccessController.close` every call fails with :class:`NoSuchSlotError`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from ..const import DEFAULT_MESSAGE_SIZE, MAILSLOT_STORAGE, MAXIMUM_MESSAGE_SIZE, MINIMUM_MESSAGE_SIZE
from ..errors import MailslotError, error_for_status
from ..protocol import ControlCommand, SlotSnapshot, SlotStats, Status, resolve_command
from ..transfer import BufferTransfer, Transfer
from .queues import MessageQueue

logger = logging.getLogger("mailslot.engine")

_FAILURE_LOG_LEVELS: dict[Status, int] = {
    Status.WOULD_BLOCK: logging.DEBUG,
    Status.INTERRUPTED: logging.DEBUG,
    Status.RESOURCE_EXHAUSTED: logging.ERROR,
}


@dataclass(slots=True)
class CallerContext:
    """Access mode of one caller; control commands flip ``blocking``."""

    slot: int
    blocking: bool = True


def valid_message_size(value: Any) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and MINIMUM_MESSAGE_SIZE <= value <= MAXIMUM_MESSAGE_SIZE
    )


class AccessController:
    """Owns one slot's queue, lock, wait conditions and counters."""

    def __init__(
        self,
        slot: int,
        transfer: Transfer | None = None,
        *,
        capacity: int = MAILSLOT_STORAGE,
        max_message_size: int = DEFAULT_MESSAGE_SIZE,
    ) -> None:
        if not valid_message_size(max_message_size):
            raise ValueError(f"max_message_size must be within [1, {MAXIMUM_MESSAGE_SIZE}]")
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.slot = slot
        self.queue = MessageQueue(capacity=capacity, max_message_size=max_message_size)
        self.stats = SlotStats()
        self._transfer: Transfer = transfer if transfer is not None else BufferTransfer()
        self._lock = asyncio.Lock()
        self._read_ready = asyncio.Condition(self._lock)
        self._write_ready = asyncio.Condition(self._lock)
        self._closed = False
        self._waiting = 0
        self._release_task: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"AccessController(slot={self.slot}, depth={len(self.queue)}, max={self.queue.max_message_size})"

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    # ------------------------------------------------------------------
    # Data path
    # ------------------------------------------------------------------

    async def read(self, buffer: Any, length: int, *, blocking: bool) -> int:
        """Deliver the oldest message into *buffer* and return its length.

        The message stays queued when the buffer is too small or the copy
        comes up short.
        """
        if buffer is None or length <= 0:
            raise self._fail(Status.INVALID_ARGUMENT, "read", "empty buffer or zero length")

        await self._acquire(blocking, "read")
        delivered = False
        try:
            self._check_open("read")
            if blocking:
                await self._wait_for(self._read_ready, lambda: bool(self.queue), "read")
            elif not self.queue:
                raise self._fail(Status.WOULD_BLOCK, "read", "slot is empty")

            message = self.queue.head
            assert message is not None
            if message.length > length:
                raise self._fail(
                    Status.MESSAGE_TOO_LARGE,
                    "read",
                    f"head message is {message.length} bytes, buffer holds {length}",
                )

            copied = await self._copy(
                lambda: self._transfer.transfer_out(buffer, message.payload, may_block=blocking),
                blocking,
                "read",
            )
            # The slot may have been drained while the copy was suspended.
            self._check_open("read")
            if copied != message.length:
                raise self._fail(Status.TRANSFER_FAULT, "read", f"copied {copied} of {message.length} bytes")

            self.queue.dequeue()
            self.stats.record_read(message.length)
            delivered = True
            self._write_ready.notify(1)
        finally:
            if not delivered and self.queue and not self._closed:
                self._read_ready.notify(1)
            self._lock.release()

        logger.debug(
            "Read %d bytes.",
            message.length,
            extra={"slot": self.slot, "depth": len(self.queue)},
        )
        return message.length

    async def write(self, buffer: Any, length: int, *, blocking: bool) -> int:
        """Queue the first *length* bytes of *buffer* as one message."""
        if buffer is None or length <= 0:
            raise self._fail(Status.INVALID_ARGUMENT, "write", "empty buffer or zero length")

        await self._acquire(blocking, "write")
        accepted = False
        try:
            self._check_open("write")
            if blocking:
                await self._wait_for(self._write_ready, lambda: not self.queue.is_full, "write")
            elif self.queue.is_full:
                raise self._fail(Status.WOULD_BLOCK, "write", "slot is full")

            if length > self.queue.max_message_size:
                raise self._fail(
                    Status.MESSAGE_TOO_LARGE,
                    "write",
                    f"{length} bytes exceeds slot limit {self.queue.max_message_size}",
                )

            try:
                staging = bytearray(length)
            except MemoryError as exc:
                status = Status.RESOURCE_EXHAUSTED if blocking else Status.WOULD_BLOCK
                raise self._fail(status, "write", "staging buffer allocation failed") from exc

            copied = await self._copy(
                lambda: self._transfer.transfer_in(staging, buffer, length, may_block=blocking),
                blocking,
                "write",
            )
            self._check_open("write")
            if copied != length:
                raise self._fail(Status.TRANSFER_FAULT, "write", f"copied {copied} of {length} bytes")

            self.queue.enqueue(staging)
            self.stats.record_write(length)
            accepted = True
            self._read_ready.notify(1)
        finally:
            if not accepted and not self.queue.is_full and not self._closed:
                self._write_ready.notify(1)
            self._lock.release()

        logger.debug(
            "Wrote %d bytes.",
            length,
            extra={"slot": self.slot, "depth": len(self.queue)},
        )
        return length

    # ------------------------------------------------------------------
    # Control path
    # ------------------------------------------------------------------

    async def control(self, command: int, argument: Any = None, *, context: CallerContext) -> int:
        """Apply one control command; mode switches only touch *context*."""
        resolved = resolve_command(command)
        if resolved is None:
            raise self._fail(Status.UNSUPPORTED_OPERATION, "control", f"unknown command {command!r}")

        if resolved is ControlCommand.SET_BLOCKING:
            context.blocking = True
            logger.debug("Caller switched to blocking mode.", extra={"slot": self.slot})
            return 0
        if resolved is ControlCommand.SET_NONBLOCKING:
            context.blocking = False
            logger.debug("Caller switched to non-blocking mode.", extra={"slot": self.slot})
            return 0

        if not valid_message_size(argument):
            raise self._fail(
                Status.INVALID_ARGUMENT,
                "control",
                f"maximum message size must be within [{MINIMUM_MESSAGE_SIZE}, {MAXIMUM_MESSAGE_SIZE}]",
            )

        await self._acquire(context.blocking, "control")
        try:
            self._check_open("control")
            previous = self.queue.max_message_size
            self.queue.set_max_message_size(argument)
        finally:
            self._lock.release()

        logger.info(
            "Maximum message size changed from %d to %d.",
            previous,
            argument,
            extra={"slot": self.slot},
        )
        return 0

    # ------------------------------------------------------------------
    # Diagnostics and teardown
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> SlotSnapshot:
        """Advisory view of the slot; taken without the lock."""
        return SlotSnapshot(
            slot=self.slot,
            depth=len(self.queue),
            capacity=self.queue.capacity,
            bytes_queued=self.queue.bytes_used,
            max_message_size=self.queue.max_message_size,
            messages_written=self.stats.messages_written,
            messages_read=self.stats.messages_read,
            bytes_written=self.stats.bytes_written,
            bytes_read=self.stats.bytes_read,
            failures=dict(self.stats.failures),
            touched=self.stats.touched,
        )

    def close(self) -> int:
        """Drop every queued message and fail current and later callers.

        A call suspended in a copy notices the close when the copy returns
        and leaves the (already empty) queue alone. Waiters are released by a
        task that takes the lock and wakes both conditions.
        """
        if self._closed:
            return 0
        self._closed = True
        dropped = self.queue.drain()
        if self._waiting:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # Waiters can only resume on a running loop.
                return dropped
            self._release_task = loop.create_task(self._release_waiters())
        return dropped

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _release_waiters(self) -> None:
        async with self._lock:
            self._read_ready.notify_all()
            self._write_ready.notify_all()

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise self._fail(Status.NO_SUCH_SLOT, operation, "slot was shut down")

    async def _acquire(self, blocking: bool, operation: str) -> None:
        self._check_open(operation)
        if not blocking:
            if self._lock.locked():
                raise self._fail(Status.WOULD_BLOCK, operation, "slot is busy")
            try:
                async with asyncio.timeout(0):
                    await self._lock.acquire()
            except TimeoutError as exc:
                raise self._fail(Status.WOULD_BLOCK, operation, "slot is busy") from exc
            return

        try:
            await self._lock.acquire()
        except asyncio.CancelledError as exc:
            raise self._fail(Status.INTERRUPTED, operation, "cancelled while waiting for the slot") from exc

    async def _wait_for(self, condition: asyncio.Condition, predicate: Callable[[], bool], operation: str) -> None:
        # Condition.wait re-acquires the lock even when cancelled. A caller
        # that fails after being woken hands the wake-up on in read/write.
        self._waiting += 1
        try:
            while True:
                self._check_open(operation)
                if predicate():
                    return
                await condition.wait()
        except asyncio.CancelledError as exc:
            raise self._fail(Status.INTERRUPTED, operation, "cancelled while waiting") from exc
        finally:
            self._waiting -= 1

    async def _copy(self, copy: Callable[[], Awaitable[int]], blocking: bool, operation: str) -> int:
        try:
            if blocking:
                return await copy()
            async with asyncio.timeout(0):
                return await copy()
        except TimeoutError as exc:
            raise self._fail(Status.TRANSFER_FAULT, operation, "copy would have blocked") from exc
        except asyncio.CancelledError as exc:
            raise self._fail(Status.INTERRUPTED, operation, "cancelled during copy") from exc
        except (BufferError, OSError, TypeError, ValueError) as exc:
            raise self._fail(Status.TRANSFER_FAULT, operation, f"copy failed: {exc}") from exc

    def _fail(self, status: Status, operation: str, reason: str) -> MailslotError:
        exc = error_for_status(status, f"{operation} on slot {self.slot}: {reason}", slot=self.slot)
        self.stats.record_failure(status.name)
        logger.log(
            _FAILURE_LOG_LEVELS.get(status, logging.WARNING),
            "%s rejected: %s",
            operation.capitalize(),
            reason,
            extra={"slot": self.slot, "status": status.name},
        )
        return exc


__all__ = ["AccessController", "CallerContext", "valid_message_size"]
