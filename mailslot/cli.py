"""Command-line entry point for mailslot diagnostics."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

import msgspec
import uvloop

from . import __version__
from .config.logging import configure_logging
from .config.model import RuntimeConfig
from .config.settings import load_runtime_config
from .diagnostics import run_selftest, run_stress
from .engine import InstanceRegistry
from .errors import MailslotError
from .metrics import PrometheusExporter
from .session import MailslotDevice

logger = logging.getLogger("mailslot.cli")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mailslot", description="In-process mailslot diagnostics.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", metavar="PATH", help="TOML configuration file")
    parser.add_argument("--metrics", action="store_true", help="serve Prometheus metrics while running")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    selftest = commands.add_parser("selftest", help="exercise one slot through the reference scenario")
    selftest.add_argument("--slot", type=int, default=0)

    stress = commands.add_parser("stress", help="run concurrent producers and consumers on one slot")
    stress.add_argument("--slot", type=int, default=0)
    stress.add_argument("--writers", type=_positive_int, default=4)
    stress.add_argument("--readers", type=_positive_int, default=4)
    stress.add_argument("--messages", type=_positive_int, default=1000)
    stress.add_argument("--nonblocking", action="store_true", help="use non-blocking sessions with retries")
    return parser


async def _run(args: argparse.Namespace, config: RuntimeConfig) -> int:
    registry = InstanceRegistry(config.instances, config.default_message_size)
    registry.start()
    device = MailslotDevice(registry)
    exporter = PrometheusExporter(registry, config.metrics_host, config.metrics_port) if config.metrics_enabled else None
    try:
        if exporter is not None:
            exporter.start()
        if args.command == "selftest":
            ok = await run_selftest(device, args.slot, out=sys.stdout)
            return 0 if ok else 1
        summary = await run_stress(
            device,
            args.slot,
            writers=args.writers,
            readers=args.readers,
            messages=args.messages,
            blocking=not args.nonblocking,
        )
        payload = msgspec.structs.asdict(summary)
        payload["ok"] = summary.ok
        print(msgspec.json.encode(payload).decode("utf-8"))
        return 0 if summary.ok else 1
    finally:
        if exporter is not None:
            exporter.stop()
        registry.shutdown()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_runtime_config(args.config)
    except (OSError, ValueError) as exc:
        print(f"mailslot: {exc}", file=sys.stderr)
        return 2
    if args.debug:
        config.debug_logging = True
    if args.metrics:
        config.metrics_enabled = True
    configure_logging(config)

    try:
        return asyncio.run(_run(args, config), loop_factory=uvloop.new_event_loop)
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        return 130
    except MailslotError as exc:
        logger.error("Aborted: %s", exc.message, extra={"status": exc.status.name})
        print(f"mailslot: {exc.message}", file=sys.stderr)
        return 2
    except ExceptionGroup as exc_group:
        for group_exc in exc_group.exceptions:
            logger.critical("Fatal error in task group: %s", group_exc, exc_info=group_exc)
        return 1


__all__ = ["build_parser", "main"]
