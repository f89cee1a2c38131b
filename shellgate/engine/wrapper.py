"""Shell-specific command wrapping.

On POSIX shells the user command runs inside a group that, after the
command exits, writes every pid still in the process group to a temp
file and then exits with the command's own status. Those pids are the
processes the command left running in the background.

The wrapping strategy is picked once per shell by ``select_wrapper``.
"""
from __future__ import annotations

import logging
import os
import re
import shlex
import sys
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_PID_LINE = re.compile(r"^\d+$")


@dataclass
class WrappedCommand:
    """A command prepared for the host shell, plus its pid capture file."""
    original: str
    wrapped: str
    pid_file: Path | None = None

    def read_background_pids(self, main_pid: int | None) -> list[int]:
        """Pids left in the process group, excluding the shell itself."""
        if self.pid_file is None:
            return []
        try:
            text = self.pid_file.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.warning("Could not read pid file %s: %s", self.pid_file, exc)
            return []
        pids: list[int] = []
        for line in text.splitlines():
            line = line.strip()
            if not _PID_LINE.match(line):
                if line:
                    logger.debug("Ignoring pgrep output line: %s", line)
                continue
            pid = int(line)
            if pid != main_pid:
                pids.append(pid)
        return pids

    def cleanup(self) -> None:
        """Remove the pid capture file. Safe to call more than once."""
        if self.pid_file is None:
            return
        try:
            self.pid_file.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove pid file %s: %s", self.pid_file, exc)


def _new_pid_file() -> Path:
    return Path(tempfile.gettempdir()) / f"shell_pgrep_{uuid.uuid4().hex[:12]}.tmp"


def _terminated(command: str) -> str:
    command = command.strip()
    return command if command.endswith("&") else f"{command};"


class CommandWrapper:
    """Base strategy: hands the command to the shell unchanged."""

    name = "plain"

    def __init__(self, shell: str) -> None:
        self.shell = shell

    def wrap(self, command: str) -> WrappedCommand:
        return WrappedCommand(original=command, wrapped=command)


class WindowsWrapper(CommandWrapper):
    name = "windows"


class PosixWrapper(CommandWrapper):
    name = "posix"

    def wrap(self, command: str) -> WrappedCommand:
        pid_file = _new_pid_file()
        target = shlex.quote(str(pid_file))
        wrapped = (
            f"{{ {_terminated(command)} }}; __code=$?; "
            f"pgrep -g 0 >{target} 2>&1; exit $__code;"
        )
        return WrappedCommand(original=command, wrapped=wrapped, pid_file=pid_file)


class FishWrapper(CommandWrapper):
    name = "fish"

    def wrap(self, command: str) -> WrappedCommand:
        pid_file = _new_pid_file()
        target = shlex.quote(str(pid_file))
        wrapped = (
            f"begin; {_terminated(command)} end; set __code $status; "
            f"pgrep -g 0 >{target} 2>&1; exit $__code"
        )
        return WrappedCommand(original=command, wrapped=wrapped, pid_file=pid_file)


def select_wrapper(shell: str, platform: str | None = None) -> CommandWrapper:
    """Pick the wrapping strategy for a shell on a platform."""
    platform = platform or sys.platform
    if platform == "win32":
        return WindowsWrapper(shell)
    if os.path.basename(shell.rstrip("/\\")) == "fish":
        return FishWrapper(shell)
    return PosixWrapper(shell)
