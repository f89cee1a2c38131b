"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via SHELLGATE_* env vars,
or load a YAML file with yaml_config.load_yaml_config().
"""
from __future__ import annotations

import logging
import os
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .models import ApprovalMode

logger = logging.getLogger(__name__)


# Optional async callback for real-time event observation.
# Signature: async def callback(event: dict[str, Any]) -> None
EventCallback = Callable[[dict[str, Any]], Awaitable[None]]

# Optional async callback asked when a tool call needs user approval.
# Signature: async def callback(tool_name, params, reason) -> verdict
# verdict: "allow", "allow_always", "deny", a bool, a mapping with an
# "approved" key, or an ApprovalDecision.
ApprovalCallback = Callable[[str, dict[str, Any], str | None], Awaitable[Any]]


async def fire_event(
    callback: EventCallback | None,
    event: dict[str, Any],
) -> None:
    """Fire an event callback if set. Callback errors are logged, not raised."""
    if callback is None:
        return
    try:
        await callback(event)
    except Exception:
        logger.debug(
            "Event callback failed for %s", event.get("event"), exc_info=True,
        )


def default_shell() -> str:
    """The shell commands are handed to on this host."""
    if sys.platform == "win32":
        return os.environ.get("COMSPEC", "cmd.exe")
    return os.environ.get("SHELL") or "/bin/bash"


@dataclass
class ShellConfig:
    """Shell execution configuration."""

    # Timeouts for the bash tool, in milliseconds as the tool accepts them.
    default_timeout_ms: int = 120_000
    max_timeout_ms: int = 600_000

    # How often a running foreground command is checked for a move to
    # the background.
    background_check_interval_seconds: float = 0.5
    # A command with output that is still running after this long is
    # offered to the user for backgrounding.
    background_prompt_after_seconds: float = 5.0

    # Wait between SIGTERM and SIGKILL when stopping a process group.
    kill_grace_seconds: float = 1.0

    approval_mode: ApprovalMode = ApprovalMode.DEFAULT
    # Tools approved for the whole session without asking.
    allowed_tools: list[str] = field(default_factory=list)

    # None means detect from $SHELL (or COMSPEC on Windows).
    shell: str | None = None
    default_cwd: str = "."

    log_level: str = "INFO"

    # Optional async callback for real-time event observation.
    # Receives dicts like {"event": "tool_call_delta", "tool_id": "...", ...}
    event_callback: EventCallback | None = field(default=None, repr=False)

    # Optional async callback for tool approval requests.
    approval_callback: ApprovalCallback | None = field(
        default=None, repr=False,
    )

    def __post_init__(self) -> None:
        self.approval_mode = ApprovalMode.parse(self.approval_mode)

    @property
    def resolved_shell(self) -> str:
        return self.shell or default_shell()

    def clamp_timeout_ms(self, timeout_ms: int | None) -> int:
        """Apply the default and the ceiling to a requested timeout."""
        if timeout_ms is None or timeout_ms <= 0:
            return min(self.default_timeout_ms, self.max_timeout_ms)
        return min(timeout_ms, self.max_timeout_ms)

    @classmethod
    def from_env(cls) -> ShellConfig:
        """Load configuration from SHELLGATE_* environment variables."""
        env_vars = {
            k: v for k, v in os.environ.items() if k.startswith("SHELLGATE_")
        }
        if env_vars:
            logger.info(
                "ShellConfig.from_env: SHELLGATE_* env overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(env_vars.items())),
            )
        else:
            logger.debug(
                "ShellConfig.from_env: no SHELLGATE_* env vars set, using defaults"
            )

        allowed = os.getenv("SHELLGATE_ALLOWED_TOOLS", "")
        config = cls(
            default_timeout_ms=int(os.getenv(
                "SHELLGATE_DEFAULT_TIMEOUT_MS", str(cls.default_timeout_ms)
            )),
            max_timeout_ms=int(os.getenv(
                "SHELLGATE_MAX_TIMEOUT_MS", str(cls.max_timeout_ms)
            )),
            background_check_interval_seconds=float(os.getenv(
                "SHELLGATE_BACKGROUND_CHECK_INTERVAL",
                str(cls.background_check_interval_seconds),
            )),
            background_prompt_after_seconds=float(os.getenv(
                "SHELLGATE_BACKGROUND_PROMPT_AFTER",
                str(cls.background_prompt_after_seconds),
            )),
            kill_grace_seconds=float(os.getenv(
                "SHELLGATE_KILL_GRACE_SECONDS", str(cls.kill_grace_seconds)
            )),
            approval_mode=ApprovalMode.parse(os.getenv(
                "SHELLGATE_APPROVAL_MODE", cls.approval_mode.value
            )),
            allowed_tools=[t.strip() for t in allowed.split(",") if t.strip()],
            shell=os.getenv("SHELLGATE_SHELL") or None,
            default_cwd=os.getenv("SHELLGATE_CWD", cls.default_cwd),
            log_level=os.getenv("SHELLGATE_LOG_LEVEL", cls.log_level),
        )
        logger.info(
            "ShellConfig.from_env: mode=%s shell=%s cwd=%s timeout_ms=%d",
            config.approval_mode.value, config.resolved_shell,
            config.default_cwd, config.default_timeout_ms,
        )
        return config
