"""Copies across the caller/engine trust boundary.

The engine never touches caller memory directly: every byte moving in or out
of a slot goes through a :class:`Transfer`. A transfer reports how many bytes
it actually copied and the controller treats anything short of the request as
a fault, leaving the queue untouched.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger("mailslot.transfer")


@runtime_checkable
class Transfer(Protocol):
    """Boundary copy collaborator used by the access controller."""

    async def transfer_in(self, destination: bytearray, source: Any, length: int, *, may_block: bool) -> int:
        """Copy *length* bytes of caller *source* into engine *destination*."""
        ...

    async def transfer_out(self, destination: Any, source: bytes, *, may_block: bool) -> int:
        """Copy engine *source* into caller *destination*."""
        ...


def _readable_view(obj: Any) -> memoryview | None:
    try:
        return memoryview(obj).cast("B")
    except (TypeError, ValueError):
        return None


def _writable_view(obj: Any) -> memoryview | None:
    view = _readable_view(obj)
    if view is None or view.readonly:
        return None
    return view


class BufferTransfer:
    """In-process transfer over the buffer protocol.

    Any bytes-like object is accepted as a source and any writable buffer
    (``bytearray``, ``memoryview``, ``array``) as a destination. Copies never
    suspend, so ``may_block`` only matters to slower implementations.
    """

    async def transfer_in(self, destination: bytearray, source: Any, length: int, *, may_block: bool) -> int:
        src = _readable_view(source)
        dst = _writable_view(destination)
        if src is None or dst is None:
            logger.debug("Inbound copy rejected: unusable buffer.")
            return 0
        count = min(length, len(src), len(dst))
        dst[:count] = src[:count]
        return count

    async def transfer_out(self, destination: Any, source: bytes, *, may_block: bool) -> int:
        dst = _writable_view(destination)
        if dst is None:
            logger.debug("Outbound copy rejected: destination not writable.")
            return 0
        count = min(len(source), len(dst))
        dst[:count] = source[:count]
        return count


__all__ = ["BufferTransfer", "Transfer"]
