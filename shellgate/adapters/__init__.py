"""Adapters between the shell engine and UI frontends: typed events,
the event bus, and the persisted tool allow-list."""
from __future__ import annotations

__all__ = [
    "AllowListStore",
    "EventBus",
    "ShellEvent",
    "dict_to_event",
    "event_to_dict",
]

from shellgate.adapters.event_bus import EventBus
from shellgate.adapters.events import ShellEvent, dict_to_event, event_to_dict
from shellgate.adapters.permission_store import AllowListStore
