"""Pytest configuration for mailslot tests."""

from __future__ import annotations

import asyncio
import importlib.util
import inspect
import logging
from collections.abc import Iterator

import pytest

from mailslot.engine import AccessController, InstanceRegistry
from mailslot.session import MailslotDevice

_HAS_PYTEST_ASYNCIO = importlib.util.find_spec("pytest_asyncio") is not None


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test to run on asyncio loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Fallback asyncio runner when pytest-asyncio is unavailable."""
    if _HAS_PYTEST_ASYNCIO:
        return None
    if "asyncio" not in pyfuncitem.keywords:
        return None
    test_function = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_function):
        return None

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        kwargs = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
        loop.run_until_complete(test_function(**kwargs))
    finally:
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
        except (RuntimeError, ValueError):
            pass
        loop.close()
        asyncio.set_event_loop(None)
    return True


@pytest.fixture(autouse=True)
def reset_logging_handlers():
    """Close and remove all logging handlers after each test to prevent ResourceWarnings."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        try:
            handler.close()
        except (OSError, RuntimeError):
            pass
        root.removeHandler(handler)


@pytest.fixture
def registry() -> Iterator[InstanceRegistry]:
    instance = InstanceRegistry()
    instance.start()
    yield instance
    instance.shutdown()


@pytest.fixture
def controller(registry: InstanceRegistry) -> AccessController:
    return registry.get(0)


@pytest.fixture
def device(registry: InstanceRegistry) -> MailslotDevice:
    return MailslotDevice(registry)


@pytest.fixture
def session(device: MailslotDevice):
    handle = device.open(0)
    yield handle
    handle.close()
