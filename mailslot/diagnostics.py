"""In-process diagnostics driven by the ``mailslot`` command.

``run_selftest`` walks one slot through the classic user-space client
scenario: size limits, mode switches, an unknown command, round trips,
degenerate arguments, boundary values and fill/drain in both modes.
``run_stress`` hammers one slot with concurrent producers and consumers
and checks that every message arrives exactly once.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from collections.abc import Awaitable, Callable
from typing import Any, TextIO

import msgspec

from .const import DEFAULT_MESSAGE_SIZE, MAILSLOT_STORAGE, MAXIMUM_MESSAGE_SIZE
from .errors import (
    InvalidArgumentError,
    MailslotError,
    MessageTooLargeError,
    UnsupportedOperationError,
    WouldBlockError,
)
from .protocol import ControlCommand
from .session import MailslotDevice, MailslotSession, retry_on_would_block

logger = logging.getLogger("mailslot.diagnostics")

# NUL-terminated strings of 4, 5 and 6 bytes.
THE = b"the\x00"
THIS = b"this\x00"
HELLO = b"hello\x00"

STRESS_RETRY_ATTEMPTS = 2000


class StressSummary(msgspec.Struct, frozen=True):
    slot: int
    writers: int
    readers: int
    messages: int
    blocking: bool
    sent: int
    delivered: int
    lost: int
    duplicated: int
    ordered: bool
    elapsed_seconds: float

    @property
    def ok(self) -> bool:
        return self.lost == 0 and self.duplicated == 0 and self.ordered and self.sent == self.delivered


class _Selftest:
    def __init__(self, session: MailslotSession, out: TextIO) -> None:
        self._session = session
        self._out = out
        self.passed = 0
        self.failed = 0

    def check(self, label: str, ok: bool) -> bool:
        if ok:
            self.passed += 1
        else:
            self.failed += 1
        print(f"{'[ok]' if ok else '[failed]'} {label}", file=self._out)
        return ok

    async def succeeds(self, label: str, call: Callable[[], Awaitable[Any]]) -> Any:
        try:
            result = await call()
        except MailslotError as exc:
            self.check(f"{label} (unexpected {exc.status.name})", False)
            return None
        self.check(label, True)
        return result

    async def rejects(self, label: str, call: Callable[[], Awaitable[Any]], error: type[MailslotError]) -> None:
        try:
            await call()
        except error:
            self.check(label, True)
        except MailslotError as exc:
            self.check(f"{label} (got {exc.status.name})", False)
        else:
            self.check(f"{label} (call succeeded)", False)

    async def run(self) -> bool:
        s = self._session
        await self._size_limits(s)
        await self._mode_switches(s)
        await self.rejects("unknown control command is rejected", lambda: s.ioctl(9), UnsupportedOperationError)
        await self._round_trip(s)
        await self._degenerate_arguments(s)
        await self._write_boundaries(s)
        await self._read_boundaries(s)
        await self._fill_and_drain(s, blocking=False)
        await self._fill_and_drain(s, blocking=True)
        await self._interleaved(s)
        await s.ioctl(ControlCommand.SET_MAXIMUM_MSG_SIZE, DEFAULT_MESSAGE_SIZE)
        await s.ioctl(ControlCommand.SET_BLOCKING)
        return self.failed == 0

    async def _size_limits(self, s: MailslotSession) -> None:
        for size in (-10, 0, MAXIMUM_MESSAGE_SIZE + 1, 2000):
            await self.rejects(
                f"maximum message size {size} is rejected",
                lambda size=size: s.ioctl(ControlCommand.SET_MAXIMUM_MSG_SIZE, size),
                InvalidArgumentError,
            )
        for size in (64, MAXIMUM_MESSAGE_SIZE):
            await self.succeeds(
                f"maximum message size {size} is accepted",
                lambda size=size: s.ioctl(ControlCommand.SET_MAXIMUM_MSG_SIZE, size),
            )

    async def _mode_switches(self, s: MailslotSession) -> None:
        await self.succeeds("switch to non-blocking mode", lambda: s.ioctl(ControlCommand.SET_NONBLOCKING))
        self.check("session reports non-blocking mode", s.resolve_handle()[1] is False)
        await self.succeeds("switch to blocking mode", lambda: s.ioctl(ControlCommand.SET_BLOCKING))
        self.check("session reports blocking mode", s.resolve_handle()[1] is True)

    async def _round_trip(self, s: MailslotSession) -> None:
        await self.succeeds("write a short message", lambda: s.write(THIS))
        received = await self.succeeds("read it back", lambda: s.read(len(THIS)))
        self.check("payload matches", received == THIS)

    async def _degenerate_arguments(self, s: MailslotSession) -> None:
        await s.write(THIS)
        await self.rejects("read of zero bytes is rejected", lambda: s.readinto(bytearray(5), 0), InvalidArgumentError)
        await self.rejects("read into no buffer is rejected", lambda: s.readinto(None, 5), InvalidArgumentError)
        await self.succeeds("pending message is still readable", lambda: s.read(len(THIS)))
        await self.rejects("write of zero bytes is rejected", lambda: s.write(THIS, 0), InvalidArgumentError)
        await self.rejects("write from no buffer is rejected", lambda: s.write(None, 5), InvalidArgumentError)

    async def _write_boundaries(self, s: MailslotSession) -> None:
        await s.ioctl(ControlCommand.SET_MAXIMUM_MSG_SIZE, 5)
        await self.succeeds("write 4 bytes with limit 5", lambda: s.write(THE))
        await self.succeeds("write 5 bytes with limit 5", lambda: s.write(THIS))
        await self.rejects("write 6 bytes with limit 5 is rejected", lambda: s.write(HELLO), MessageTooLargeError)
        await self._drain(s)

    async def _read_boundaries(self, s: MailslotSession) -> None:
        await s.ioctl(ControlCommand.SET_MAXIMUM_MSG_SIZE, 10)
        for _ in range(3):
            await s.write(THIS)
        await self.rejects("read 5 bytes into 4 is rejected", lambda: s.read(4), MessageTooLargeError)
        await self.succeeds("read 5 bytes into 5", lambda: s.read(5))
        await self.succeeds("read 5 bytes into 6", lambda: s.read(6))
        await self._drain(s)

    async def _drain(self, s: MailslotSession) -> None:
        blocking = s.blocking
        await s.ioctl(ControlCommand.SET_NONBLOCKING)
        try:
            while True:
                await s.read(MAXIMUM_MESSAGE_SIZE)
        except WouldBlockError:
            pass
        finally:
            await s.ioctl(ControlCommand.SET_BLOCKING if blocking else ControlCommand.SET_NONBLOCKING)

    async def _fill_and_drain(self, s: MailslotSession, *, blocking: bool) -> None:
        mode = "blocking" if blocking else "non-blocking"
        await s.ioctl(ControlCommand.SET_BLOCKING if blocking else ControlCommand.SET_NONBLOCKING)
        written = 0
        for _ in range(MAILSLOT_STORAGE):
            try:
                await s.write(THIS)
            except MailslotError:
                break
            written += 1
        self.check(f"{mode}: {MAILSLOT_STORAGE} writes fill the slot", written == MAILSLOT_STORAGE)
        if not blocking:
            await self.rejects(f"{mode}: write to a full slot would block", lambda: s.write(THIS), WouldBlockError)

        read = 0
        for _ in range(written):
            try:
                payload = await s.read(len(THIS))
            except MailslotError:
                break
            read += payload == THIS
        self.check(f"{mode}: {written} reads drain the slot", read == written)
        if not blocking:
            await self.rejects(f"{mode}: read from an empty slot would block", lambda: s.read(len(THIS)), WouldBlockError)

    async def _interleaved(self, s: MailslotSession) -> None:
        await s.ioctl(ControlCommand.SET_BLOCKING)
        total = 2 * MAILSLOT_STORAGE
        received: list[bytes] = []

        async def writer() -> None:
            for _ in range(total):
                await s.write(HELLO)

        async def reader() -> None:
            await asyncio.sleep(0.01)
            for _ in range(total):
                received.append(await s.read(len(HELLO)))

        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(writer())
                tg.create_task(reader())
        except* MailslotError as group:
            for exc in group.exceptions:
                logger.warning("Interleaved transfer failed: %s", exc)
        self.check(
            f"blocking writer and reader interleave {total} messages",
            len(received) == total and all(payload == HELLO for payload in received),
        )


async def run_selftest(device: MailslotDevice, slot: int, *, out: TextIO) -> bool:
    """Run the selftest on *slot*; True when every step passed."""
    async with device.open(slot) as session:
        selftest = _Selftest(session, out)
        ok = await selftest.run()
    print(f"{selftest.passed} passed, {selftest.failed} failed", file=out)
    logger.info(
        "Selftest finished.",
        extra={"slot": slot, "passed": selftest.passed, "failed": selftest.failed},
    )
    return ok


def _stress_payload(writer: int, sequence: int) -> bytes:
    return f"w{writer}:{sequence}".encode("ascii")


def _parse_stress_payload(payload: bytes) -> tuple[int, int]:
    writer, sequence = payload.decode("ascii")[1:].split(":")
    return int(writer), int(sequence)


async def run_stress(
    device: MailslotDevice,
    slot: int,
    *,
    writers: int,
    readers: int,
    messages: int,
    blocking: bool = True,
) -> StressSummary:
    """Move ``writers * messages`` messages through one slot concurrently."""
    if writers < 1 or readers < 1 or messages < 1:
        raise ValueError("writers, readers and messages must be positive")

    total = writers * messages
    shares = [total // readers + (1 if index < total % readers else 0) for index in range(readers)]
    received: list[list[bytes]] = [[] for _ in range(readers)]

    async def call(operation: Callable[[], Awaitable[Any]]) -> Any:
        if blocking:
            return await operation()
        return await retry_on_would_block(operation, attempts=STRESS_RETRY_ATTEMPTS)

    async def produce(session: MailslotSession, writer: int) -> None:
        for sequence in range(messages):
            payload = _stress_payload(writer, sequence)
            await call(lambda payload=payload: session.write(payload))

    async def consume(session: MailslotSession, reader: int) -> None:
        for _ in range(shares[reader]):
            received[reader].append(await call(lambda: session.read(MAXIMUM_MESSAGE_SIZE)))

    sessions = [device.open(slot, blocking=blocking) for _ in range(writers + readers)]
    started = time.monotonic()
    try:
        async with asyncio.TaskGroup() as tg:
            for writer in range(writers):
                tg.create_task(produce(sessions[writer], writer))
            for reader in range(readers):
                tg.create_task(consume(sessions[writers + reader], reader))
    finally:
        for session in sessions:
            session.close()
    elapsed = time.monotonic() - started

    expected = Counter(_stress_payload(w, m) for w in range(writers) for m in range(messages))
    delivered = Counter(payload for batch in received for payload in batch)
    ordered = True
    for batch in received:
        last_seen: dict[int, int] = {}
        for payload in batch:
            writer, sequence = _parse_stress_payload(payload)
            if sequence <= last_seen.get(writer, -1):
                ordered = False
            last_seen[writer] = sequence

    summary = StressSummary(
        slot=slot,
        writers=writers,
        readers=readers,
        messages=messages,
        blocking=blocking,
        sent=total,
        delivered=sum(delivered.values()),
        lost=sum((expected - delivered).values()),
        duplicated=sum((delivered - expected).values()),
        ordered=ordered,
        elapsed_seconds=round(elapsed, 6),
    )
    logger.info("Stress run finished.", extra=msgspec.structs.asdict(summary))
    return summary


__all__ = ["StressSummary", "run_selftest", "run_stress"]
