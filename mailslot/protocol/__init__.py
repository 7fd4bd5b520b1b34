"""Mailslot protocol definitions."""

from .protocol import ControlCommand, Status, decode_command, resolve_command
from .structures import IoctlNumber, Message, SlotSnapshot, SlotStats

__all__ = [
    "ControlCommand",
    "IoctlNumber",
    "Message",
    "SlotSnapshot",
    "SlotStats",
    "Status",
    "decode_command",
    "resolve_command",
]
