"""Bounded FIFO message queue backing one mailslot."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from typing import Annotated

import msgspec

from ..const import DEFAULT_MESSAGE_SIZE, MAILSLOT_STORAGE, MAXIMUM_MESSAGE_SIZE, MINIMUM_MESSAGE_SIZE
from ..protocol.structures import Message

MessageSize = Annotated[int, msgspec.Meta(ge=MINIMUM_MESSAGE_SIZE, le=MAXIMUM_MESSAGE_SIZE)]


def _make_deque() -> deque[Message]:
    """Factory for msgspec default_factory to avoid lambdas."""
    return deque()


class MessageQueue(msgspec.Struct):
    """FIFO of whole messages bounded by a count and a per-message size limit.

    Not safe for concurrent use on its own; every mutation happens under the
    owning controller's lock. Head and tail are derived from the backing deque,
    so they are ``None`` exactly when the queue is empty.
    """

    capacity: Annotated[int, msgspec.Meta(ge=1)] = MAILSLOT_STORAGE
    max_message_size: MessageSize = DEFAULT_MESSAGE_SIZE
    _queue: deque[Message] = msgspec.field(default_factory=_make_deque)
    _bytes: int = 0

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._queue)

    @property
    def count(self) -> int:
        return len(self._queue)

    @property
    def is_full(self) -> bool:
        return len(self._queue) >= self.capacity

    @property
    def bytes_used(self) -> int:
        return self._bytes

    @property
    def head(self) -> Message | None:
        return self._queue[0] if self._queue else None

    @property
    def tail(self) -> Message | None:
        return self._queue[-1] if self._queue else None

    def peek(self) -> Message | None:
        return self.head

    def accepts(self, length: int) -> bool:
        return not self.is_full and 0 < length <= self.max_message_size

    def enqueue(self, payload: bytes) -> bool:
        """Append *payload* as the newest message.

        Returns False without mutating anything when the queue is full or the
        payload breaks the current size limit.
        """
        data = bytes(payload)
        if not self.accepts(len(data)):
            return False
        self._queue.append(Message(payload=data, length=len(data)))
        self._bytes += len(data)
        return True

    def dequeue(self) -> Message:
        """Remove and return the oldest message; raises IndexError when empty."""
        message = self._queue.popleft()
        self._bytes -= message.length
        return message

    def set_max_message_size(self, size: int) -> bool:
        """Apply a new per-message limit; out-of-range values are ignored."""
        try:
            self.max_message_size = msgspec.convert(size, MessageSize)
        except msgspec.ValidationError:
            return False
        return True

    def drain(self) -> int:
        dropped = len(self._queue)
        self._queue.clear()
        self._bytes = 0
        return dropped


__all__ = ["MessageQueue", "MessageSize"]
