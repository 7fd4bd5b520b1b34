"""Tests for the instance registry lifecycle."""

from __future__ import annotations

import asyncio
import logging

import pytest

from mailslot.const import DEFAULT_MESSAGE_SIZE, INSTANCES
from mailslot.engine import InstanceRegistry
from mailslot.errors import NoSuchSlotError


def test_registry_starts_offline_and_rejects_lookups() -> None:
    registry = InstanceRegistry()

    assert registry.fsm_state == InstanceRegistry.STATE_INIT
    assert not registry.online
    with pytest.raises(RuntimeError):
        registry.get(0)


def test_start_builds_every_slot_eagerly(registry: InstanceRegistry) -> None:
    assert registry.fsm_state == InstanceRegistry.STATE_ONLINE
    assert len(registry) == INSTANCES
    assert [controller.slot for controller in registry] == list(range(INSTANCES))
    assert registry.get(0) is registry.get(0)
    assert registry.get(INSTANCES - 1).slot == INSTANCES - 1
    assert all(c.queue.max_message_size == DEFAULT_MESSAGE_SIZE for c in registry)


@pytest.mark.parametrize("slot", [-1, INSTANCES, 10_000, "1", True, None])
def test_out_of_range_slots_raise_no_such_slot(registry: InstanceRegistry, slot) -> None:
    with pytest.raises(NoSuchSlotError):
        registry.get(slot)


def test_second_start_is_ignored(registry: InstanceRegistry) -> None:
    controllers = tuple(registry)
    assert registry.start() is False
    assert tuple(registry) == controllers


@pytest.mark.asyncio
async def test_instances_are_independent(registry: InstanceRegistry) -> None:
    await registry.get(1).write(b"one", 3, blocking=True)

    assert registry.get(1).queue.count == 1
    assert registry.get(2).queue.count == 0
    assert registry.get(0).queue.count == 0


@pytest.mark.asyncio
async def test_shutdown_drains_queues_and_logs(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="mailslot.registry")
    registry = InstanceRegistry(instances=4, default_message_size=16)
    registry.start()
    for slot in range(4):
        await registry.get(slot).write(b"x", 1, blocking=True)
    controllers = tuple(registry)

    assert registry.shutdown() is True

    assert registry.fsm_state == InstanceRegistry.STATE_OFFLINE
    assert all(controller.queue.count == 0 for controller in controllers)
    assert any("discarded 4" in record.getMessage() for record in caplog.records)
    with pytest.raises(RuntimeError):
        registry.get(0)
    assert registry.start() is False


def test_snapshot_covers_all_slots() -> None:
    registry = InstanceRegistry(instances=3, default_message_size=32)
    registry.start()

    snapshots = registry.snapshot()
    assert [snapshot.slot for snapshot in snapshots] == [0, 1, 2]
    assert all(snapshot.max_message_size == 32 for snapshot in snapshots)
    assert registry.default_message_size == 32


def test_invalid_sizes_are_rejected() -> None:
    with pytest.raises(ValueError):
        InstanceRegistry(instances=0)
    with pytest.raises(ValueError):
        InstanceRegistry(instances=2, default_message_size=0)


class _HeldTransfer:
    """Copies out only after ``release`` is set."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.entered = asyncio.Event()

    async def transfer_in(self, destination: bytearray, source: bytes, length: int, *, may_block: bool) -> int:
        destination[:length] = bytes(source)[:length]
        return length

    async def transfer_out(self, destination: bytearray, source: bytes, *, may_block: bool) -> int:
        self.entered.set()
        await self.release.wait()
        destination[: len(source)] = source
        return len(source)


@pytest.mark.asyncio
async def test_shutdown_during_in_flight_read_fails_cleanly() -> None:
    transfer = _HeldTransfer()
    registry = InstanceRegistry(instances=1, transfer=transfer)
    registry.start()
    controller = registry.get(0)
    await controller.write(b"hello", 5, blocking=True)

    reader = asyncio.create_task(controller.read(bytearray(8), 8, blocking=True))
    await asyncio.wait_for(transfer.entered.wait(), timeout=1)

    registry.shutdown()
    transfer.release.set()

    with pytest.raises(NoSuchSlotError):
        await asyncio.wait_for(reader, timeout=1)
    assert controller.queue.count == 0
    assert not controller.lock.locked()


@pytest.mark.asyncio
async def test_shutdown_releases_blocked_waiters() -> None:
    registry = InstanceRegistry(instances=2)
    registry.start()
    full, empty = registry.get(0), registry.get(1)
    for _ in range(full.queue.capacity):
        await full.write(b"x", 1, blocking=True)

    writer = asyncio.create_task(full.write(b"y", 1, blocking=True))
    reader = asyncio.create_task(empty.read(bytearray(4), 4, blocking=True))
    for _ in range(10):
        await asyncio.sleep(0)
    assert not writer.done() and not reader.done()

    registry.shutdown()

    with pytest.raises(NoSuchSlotError):
        await asyncio.wait_for(writer, timeout=1)
    with pytest.raises(NoSuchSlotError):
        await asyncio.wait_for(reader, timeout=1)
    assert full.queue.count == 0
    assert full.closed and empty.closed


@pytest.mark.asyncio
async def test_closed_controller_rejects_new_calls() -> None:
    registry = InstanceRegistry(instances=1)
    registry.start()
    controller = registry.get(0)
    registry.shutdown()

    with pytest.raises(NoSuchSlotError):
        await controller.write(b"x", 1, blocking=True)
    with pytest.raises(NoSuchSlotError):
        await controller.read(bytearray(1), 1, blocking=False)
    assert controller.close() == 0
    assert controller.snapshot().failures == {"NO_SUCH_SLOT": 2}
