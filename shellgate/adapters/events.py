"""Event types emitted by the shell engine.

Each event corresponds to an engine callback dict, parsed into a typed
dataclass for the UI to consume.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any


@dataclass
class ShellEvent:
    """Base event from the shell engine."""
    event_type: str = ""


@dataclass
class ToolCallStarted(ShellEvent):
    event_type: str = "tool_call_started"
    tool_id: str = ""
    tool_name: str = ""
    description: str = ""


@dataclass
class ToolCallCompleted(ShellEvent):
    event_type: str = "tool_call_completed"
    tool_id: str = ""
    tool_name: str = ""
    is_error: bool = False
    background_task_id: str | None = None


@dataclass
class ToolCallDelta(ShellEvent):
    """A chunk of foreground output."""
    event_type: str = "tool_call_delta"
    tool_id: str = ""
    tool_name: str = ""
    delta: str = ""
    stream: str = "stdout"


@dataclass
class BackgroundPromptOffered(ShellEvent):
    """A long-running command may be moved to the background.

    Reply with ShellSession.accept_background_move(correlation_id).
    """
    event_type: str = "bash_prompt_background"
    correlation_id: str = ""
    command: str = ""
    current_output: str = ""
    tool_id: str = ""


@dataclass
class BackgroundMoveAccepted(ShellEvent):
    event_type: str = "bash_background_moved"
    correlation_id: str = ""
    task_id: str = ""
    command: str = ""


@dataclass
class BackgroundPromptDeclined(ShellEvent):
    """The command finished before the offer was accepted."""
    event_type: str = "bash_background_declined"
    correlation_id: str = ""
    command: str = ""


@dataclass
class BackgroundTaskFinished(ShellEvent):
    event_type: str = "bash_background_finished"
    task_id: str = ""
    status: str = ""
    exit_code: int | None = None


_EVENT_MAP: dict[str, type[ShellEvent]] = {
    "tool_call_started": ToolCallStarted,
    "tool_call_completed": ToolCallCompleted,
    "tool_call_delta": ToolCallDelta,
    "bash_prompt_background": BackgroundPromptOffered,
    "bash_background_moved": BackgroundMoveAccepted,
    "bash_background_declined": BackgroundPromptDeclined,
    "bash_background_finished": BackgroundTaskFinished,
}


def event_to_dict(event: ShellEvent) -> dict[str, Any]:
    """Convert a typed event back to the engine's callback dict shape."""
    d: dict[str, Any] = {}
    for f in fields(event):
        val = getattr(event, f.name)
        if val is not None:
            d[f.name] = val
    # Engine callbacks use "event" for the type.
    d["event"] = d.pop("event_type", "")
    return d


def dict_to_event(data: dict[str, Any]) -> ShellEvent:
    """Convert an engine callback dict to a typed event dataclass."""
    event_type = data.get("event", "")
    cls = _EVENT_MAP.get(event_type, ShellEvent)
    valid = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid}
    filtered.setdefault("event_type", event_type)
    return cls(**filtered)
