"""Core data models for the shell execution engine.

All dataclasses and enums live here so the other engine modules can
import them without cycles.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import InvalidApprovalModeError


class TaskStatus(str, Enum):
    """Background task states. See lifecycle.py for transition rules."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    KILLED = "killed"


class ApprovalMode(str, Enum):
    """How eagerly tool calls are approved without asking."""
    DEFAULT = "default"
    AUTO_EDIT = "autoEdit"
    YOLO = "yolo"

    @classmethod
    def parse(cls, value: str | ApprovalMode) -> ApprovalMode:
        if isinstance(value, ApprovalMode):
            return value
        normalized = value.strip()
        for mode in cls:
            if mode.value.lower() == normalized.lower():
                return mode
        raise InvalidApprovalModeError(value)


class ToolCategory(str, Enum):
    """Coarse classification used by the approval cascade."""
    READ = "read"
    WRITE = "write"
    COMMAND = "command"
    ASK = "ask"


def _make_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CommandRequest:
    """One invocation of the bash tool."""
    command: str
    timeout_ms: int | None = None
    run_in_background: bool | None = None
    description: str | None = None

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> CommandRequest:
        timeout = params.get("timeout")
        return cls(
            command=str(params.get("command") or ""),
            timeout_ms=int(timeout) if timeout is not None else None,
            run_in_background=params.get("run_in_background"),
            description=params.get("description"),
        )


@dataclass(frozen=True)
class RiskClassification:
    """Risk facts derived from a command string. Recomputed on every call."""
    root_command: str | None
    has_substitution: bool
    is_banned: bool
    is_high_risk: bool


@dataclass
class BackgroundTask:
    """A command that kept running after its tool call returned."""
    task_id: str
    command: str
    pid: int
    pgid: int | None = None
    created_at: datetime = field(default_factory=_utcnow)
    status: TaskStatus = TaskStatus.RUNNING
    exit_code: int | None = None
    _chunks: list[str] = field(default_factory=list, init=False, repr=False)

    @property
    def output(self) -> str:
        if len(self._chunks) > 1:
            self._chunks[:] = ["".join(self._chunks)]
        return self._chunks[0] if self._chunks else ""

    @output.setter
    def output(self, value: str) -> None:
        self._chunks[:] = [value] if value else []

    def append_output(self, chunk: str) -> None:
        if chunk:
            self._chunks.append(chunk)


@dataclass
class ApprovalDecision:
    approved: bool
    deny_reason: str | None = None
    modified_params: dict[str, Any] | None = None


@dataclass
class ExecutionResult:
    """What the process runner observed for one command."""
    stdout: str = ""
    stderr: str = ""
    # stdout and stderr interleaved in arrival order
    output: str = ""
    exit_code: int | None = None
    signal: str | None = None
    error: str | None = None
    cancelled: bool = False
    pid: int | None = None


@dataclass
class ToolResult:
    """Result handed back to the agent (llm_content) and the user (display)."""
    llm_content: str
    return_display: str
    is_error: bool = False
    background_task_id: str | None = None
