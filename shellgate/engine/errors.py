"""Exception hierarchy for the shell execution engine.

Routine outcomes (rejected commands, denied approvals, unknown
background tasks) are reported as tool results, not exceptions.
These cover programming and environment faults only.
"""
from __future__ import annotations


class ShellGateError(Exception):
    """Base exception for all shellgate errors."""


class MissingProcessIdError(ShellGateError):
    """A background task was registered without a process id."""
    def __init__(self, command: str):
        self.command = command
        super().__init__(
            f"Cannot register background task without a pid: {command[:80]}"
        )


class ProcessSpawnError(ShellGateError):
    """The host shell could not be started for a command."""
    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to spawn {command[:80]!r}: {reason}")


class InvalidApprovalModeError(ShellGateError, ValueError):
    """An approval mode string did not match any known mode."""
    def __init__(self, value: str):
        self.value = value
        super().__init__(
            f"Unknown approval mode {value!r}. "
            "Expected one of: default, autoEdit, yolo"
        )


class InvalidTaskTransitionError(ShellGateError, ValueError):
    """A background task status change broke the lifecycle rules."""
    def __init__(self, current: str, target: str, allowed: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid status transition: {current} -> {target}. "
            f"Allowed from {current}: {allowed}"
        )
