"""Fixed table of mailslot instances."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING

from transitions import Machine

from ..const import DEFAULT_MESSAGE_SIZE, INSTANCES, MAXIMUM_MESSAGE_SIZE
from ..errors import NoSuchSlotError
from ..protocol import SlotSnapshot
from ..transfer import Transfer
from .controller import AccessController, valid_message_size

logger = logging.getLogger("mailslot.registry")


class InstanceRegistry:
    """Builds every slot eagerly and hands out lock-free lookups.

    The table is immutable once online; controllers are only created in
    :meth:`start` and only drained in :meth:`shutdown`.
    """

    if TYPE_CHECKING:
        # FSM generated methods and attributes for static analysis
        fsm_state: str
        start: Callable[[], bool]
        shutdown: Callable[[], bool]

    # FSM States
    STATE_INIT = "init"
    STATE_ONLINE = "online"
    STATE_OFFLINE = "offline"

    def __init__(
        self,
        instances: int = INSTANCES,
        default_message_size: int = DEFAULT_MESSAGE_SIZE,
        transfer: Transfer | None = None,
    ) -> None:
        if instances < 1:
            raise ValueError("instances must be positive")
        if not valid_message_size(default_message_size):
            raise ValueError(f"default_message_size must be within [1, {MAXIMUM_MESSAGE_SIZE}]")
        self._instances = instances
        self._default_message_size = default_message_size
        self._transfer = transfer
        self._controllers: tuple[AccessController, ...] = ()

        # FSM Initialization
        self.state_machine = Machine(
            model=self,
            states=[
                self.STATE_INIT,
                {"name": self.STATE_ONLINE, "on_enter": "_on_fsm_online"},
                {"name": self.STATE_OFFLINE, "on_enter": "_on_fsm_offline"},
            ],
            initial=self.STATE_INIT,
            ignore_invalid_triggers=True,
            model_attribute="fsm_state",
        )

        # FSM Transitions
        self.state_machine.add_transition(trigger="start", source=self.STATE_INIT, dest=self.STATE_ONLINE)
        self.state_machine.add_transition(
            trigger="shutdown", source=[self.STATE_INIT, self.STATE_ONLINE], dest=self.STATE_OFFLINE
        )

    def __len__(self) -> int:
        return self._instances

    def __iter__(self) -> Iterator[AccessController]:
        self._require_online()
        return iter(self._controllers)

    @property
    def default_message_size(self) -> int:
        return self._default_message_size

    @property
    def online(self) -> bool:
        return self.fsm_state == self.STATE_ONLINE

    def get(self, slot: int) -> AccessController:
        self._require_online()
        if isinstance(slot, bool) or not isinstance(slot, int) or not 0 <= slot < self._instances:
            raise NoSuchSlotError(f"slot {slot!r} outside [0, {self._instances})", slot=None)
        return self._controllers[slot]

    def snapshot(self) -> tuple[SlotSnapshot, ...]:
        return tuple(controller.snapshot() for controller in self._controllers)

    def _require_online(self) -> None:
        if not self.online:
            raise RuntimeError(f"mailslot registry is {self.fsm_state}")

    def _on_fsm_online(self) -> None:
        self._controllers = tuple(
            AccessController(
                slot,
                self._transfer,
                max_message_size=self._default_message_size,
            )
            for slot in range(self._instances)
        )
        logger.info(
            "Mailslot registry online.",
            extra={"instances": self._instances, "max_message_size": self._default_message_size},
        )

    def _on_fsm_offline(self) -> None:
        discarded = sum(controller.close() for controller in self._controllers)
        logger.info(
            "Mailslot registry offline; discarded %d queued message(s).",
            discarded,
            extra={"instances": len(self._controllers)},
        )


__all__ = ["InstanceRegistry"]
