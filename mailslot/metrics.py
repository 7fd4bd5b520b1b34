"""Prometheus metrics for mailslot queue state."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from prometheus_client import CollectorRegistry, generate_latest, start_http_server
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.registry import Collector

from .engine import InstanceRegistry
from .protocol import SlotSnapshot

if TYPE_CHECKING:
    from wsgiref.simple_server import WSGIServer

logger = logging.getLogger("mailslot.metrics")


class MailslotCollector(Collector):
    """Prometheus collector that projects registry snapshots.

    Slots that were never used and still carry the default size policy are
    skipped, so a 256-slot registry only exports what is in play.
    """

    def __init__(self, registry: InstanceRegistry) -> None:
        self._registry = registry

    def collect(self) -> Iterator[Any]:
        depth = GaugeMetricFamily("mailslot_queue_depth", "Messages queued in the slot.", labels=("slot",))
        queued = GaugeMetricFamily("mailslot_queue_bytes", "Payload bytes queued in the slot.", labels=("slot",))
        limit = GaugeMetricFamily(
            "mailslot_max_message_size", "Current per-message size limit in bytes.", labels=("slot",)
        )
        messages = CounterMetricFamily(
            "mailslot_messages", "Messages moved through the slot.", labels=("slot", "direction")
        )
        transferred = CounterMetricFamily(
            "mailslot_bytes", "Payload bytes moved through the slot.", labels=("slot", "direction")
        )
        failures = CounterMetricFamily("mailslot_failures", "Rejected calls by status.", labels=("slot", "status"))

        for snapshot in self._active_snapshots():
            slot = str(snapshot.slot)
            depth.add_metric((slot,), snapshot.depth)
            queued.add_metric((slot,), snapshot.bytes_queued)
            limit.add_metric((slot,), snapshot.max_message_size)
            messages.add_metric((slot, "in"), snapshot.messages_written)
            messages.add_metric((slot, "out"), snapshot.messages_read)
            transferred.add_metric((slot, "in"), snapshot.bytes_written)
            transferred.add_metric((slot, "out"), snapshot.bytes_read)
            for status, count in sorted(snapshot.failures.items()):
                failures.add_metric((slot, status.lower()), count)

        yield depth
        yield queued
        yield limit
        yield messages
        yield transferred
        yield failures

    def _active_snapshots(self) -> Iterator[SlotSnapshot]:
        default_size = self._registry.default_message_size
        for snapshot in self._registry.snapshot():
            if not snapshot.idle(default_size):
                yield snapshot


class PrometheusExporter:
    """Serve one registry's collector on ``/metrics`` from a daemon thread.

    The collector only takes lock-free snapshots, so scrapes never contend
    with the event loop that owns the slots.
    """

    def __init__(self, registry: InstanceRegistry, host: str, port: int) -> None:
        self._host = host
        self._port = port
        self._collectors = CollectorRegistry()
        self._collectors.register(MailslotCollector(registry))
        self._server: WSGIServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        return self._server.server_port if self._server is not None else self._port

    @property
    def running(self) -> bool:
        return self._server is not None

    def start(self) -> None:
        if self._server is not None:
            return
        self._server, self._thread = start_http_server(self._port, addr=self._host, registry=self._collectors)
        logger.info("Prometheus exporter listening.", extra={"host": self._host, "port": self.port})

    def stop(self) -> None:
        if self._server is None:
            return
        server, thread = self._server, self._thread
        self._server = self._thread = None
        server.shutdown()
        server.server_close()
        if thread is not None:
            thread.join()
        logger.info("Prometheus exporter stopped.")

    def render(self) -> bytes:
        return generate_latest(self._collectors)


__all__ = ["MailslotCollector", "PrometheusExporter"]
