"""Mailslot engine: queues, per-slot controllers and the instance registry."""

from .controller import AccessController, CallerContext
from .queues import MessageQueue
from .registry import InstanceRegistry

__all__ = ["AccessController", "CallerContext", "InstanceRegistry", "MessageQueue"]
