"""Handle table and per-caller sessions.

A :class:`MailslotDevice` maps handle minors onto registry slots and tracks
open sessions. Each :class:`MailslotSession` carries the caller's access mode,
which control commands can flip for subsequent calls on that handle only.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import tenacity

from .const import DEVICE_NAME, FIRST_MINOR, RETRY_DEFAULT_ATTEMPTS, RETRY_MAX_BACKOFF, RETRY_MIN_BACKOFF
from .engine import AccessController, CallerContext, InstanceRegistry
from .errors import NoSuchSlotError, WouldBlockError

logger = logging.getLogger("mailslot.session")

T = TypeVar("T")


def _log_would_block_retry(retry_state: tenacity.RetryCallState) -> None:
    outcome = retry_state.outcome
    exc = outcome.exception() if outcome is not None else None
    logger.debug(
        "Slot busy, retrying (attempt %d).",
        retry_state.attempt_number,
        extra={"slot": getattr(exc, "slot", None)},
    )


async def retry_on_would_block(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = RETRY_DEFAULT_ATTEMPTS,
    min_backoff: float = RETRY_MIN_BACKOFF,
    max_backoff: float = RETRY_MAX_BACKOFF,
) -> T:
    """Re-run a non-blocking *operation* while it fails with WouldBlockError.

    The last WouldBlockError is re-raised once *attempts* are exhausted; any
    other failure propagates immediately.
    """
    retryer = tenacity.AsyncRetrying(
        stop=tenacity.stop_after_attempt(attempts),
        wait=tenacity.wait_exponential(multiplier=min_backoff, max=max_backoff),
        retry=tenacity.retry_if_exception_type(WouldBlockError),
        before_sleep=_log_would_block_retry,
        reraise=True,
    )
    async for attempt in retryer:
        with attempt:
            return await operation()
    raise AssertionError("unreachable: tenacity exhausted without outcome")


class MailslotSession:
    """One caller's open handle on a slot."""

    def __init__(self, device: MailslotDevice, controller: AccessController, context: CallerContext) -> None:
        self._device = device
        self._controller = controller
        self._context = context
        self._closed = False

    def __repr__(self) -> str:
        mode = "blocking" if self._context.blocking else "nonblocking"
        return f"<{DEVICE_NAME}{self._context.slot + FIRST_MINOR} {mode}{' closed' if self._closed else ''}>"

    async def __aenter__(self) -> MailslotSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def slot(self) -> int:
        return self._context.slot

    @property
    def blocking(self) -> bool:
        return self._context.blocking

    @property
    def closed(self) -> bool:
        return self._closed

    def resolve_handle(self) -> tuple[int, bool]:
        self._check_open()
        return self._context.slot, self._context.blocking

    async def read(self, size: int) -> bytes:
        """Return the oldest message; *size* bounds the accepted length."""
        self._check_open()
        buffer = bytearray(max(size, 0))
        count = await self._controller.read(buffer, size, blocking=self._context.blocking)
        return bytes(buffer[:count])

    async def readinto(self, buffer: Any, length: int | None = None) -> int:
        self._check_open()
        if length is None:
            length = len(buffer) if buffer is not None else 0
        return await self._controller.read(buffer, length, blocking=self._context.blocking)

    async def write(self, data: Any, length: int | None = None) -> int:
        self._check_open()
        if length is None:
            length = len(data) if data is not None else 0
        return await self._controller.write(data, length, blocking=self._context.blocking)

    async def ioctl(self, command: int, argument: Any = None) -> int:
        self._check_open()
        return await self._controller.control(command, argument, context=self._context)

    def close(self) -> None:
        if not self._closed:
            self._device.release(self)

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed mailslot session")


class MailslotDevice:
    """Handle table in front of an :class:`InstanceRegistry`."""

    def __init__(self, registry: InstanceRegistry) -> None:
        self._registry = registry
        self._sessions: set[MailslotSession] = set()

    @property
    def registry(self) -> InstanceRegistry:
        return self._registry

    @property
    def open_sessions(self) -> int:
        return len(self._sessions)

    def open(self, minor: int, *, blocking: bool = True) -> MailslotSession:
        if isinstance(minor, bool) or not isinstance(minor, int):
            raise NoSuchSlotError(f"invalid minor {minor!r}")
        slot = minor - FIRST_MINOR
        controller = self._registry.get(slot)
        session = MailslotSession(self, controller, CallerContext(slot=slot, blocking=blocking))
        self._sessions.add(session)
        logger.info("%s%d opened.", DEVICE_NAME, minor, extra={"slot": slot, "blocking": blocking})
        return session

    def release(self, session: MailslotSession) -> None:
        if session.closed:
            return
        session._closed = True
        self._sessions.discard(session)
        logger.info("%s%d released.", DEVICE_NAME, session.slot + FIRST_MINOR, extra={"slot": session.slot})


__all__ = ["MailslotDevice", "MailslotSession", "retry_on_would_block"]
