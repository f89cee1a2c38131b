"""Formatting of command results for the agent and for the user.

``llm_content`` is the full diagnostic block the agent reads;
``return_display`` is the short text shown to the user.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from .models import BackgroundTask, ExecutionResult

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_LIMIT = 30_000
MAX_OUTPUT_LIMIT = 150_000
OUTPUT_LIMIT_ENV = "BASH_MAX_OUTPUT_LENGTH"

CANCELLED_MESSAGE = "Command execution timed out and was cancelled."


@dataclass
class FormattedResult:
    llm_content: str
    return_display: str


def trim_empty_lines(content: str) -> str:
    """Drop leading and trailing whitespace-only lines."""
    lines = content.split("\n")
    start = 0
    end = len(lines) - 1
    while start < len(lines) and not lines[start].strip():
        start += 1
    while end > start and not lines[end].strip():
        end -= 1
    if start >= len(lines):
        return ""
    return "\n".join(lines[start:end + 1])


def get_max_output_limit() -> int:
    """Output limit from BASH_MAX_OUTPUT_LENGTH, capped at MAX_OUTPUT_LIMIT."""
    raw = os.environ.get(OUTPUT_LIMIT_ENV)
    if not raw:
        return DEFAULT_OUTPUT_LIMIT
    try:
        limit = int(raw.strip())
    except ValueError:
        logger.debug("Ignoring non-numeric %s=%r", OUTPUT_LIMIT_ENV, raw)
        return DEFAULT_OUTPUT_LIMIT
    if limit <= 0:
        return DEFAULT_OUTPUT_LIMIT
    return min(limit, MAX_OUTPUT_LIMIT)


def truncate_output(content: str, limit: int | None = None) -> str:
    """Trim blank edges, then cut to ``limit`` characters with a notice.

    The notice counts the lines in the part that was cut off.
    """
    limit = get_max_output_limit() if limit is None else limit
    trimmed = trim_empty_lines(content)
    if len(trimmed) <= limit:
        return trimmed
    kept = trimmed[:limit]
    dropped_lines = len(trimmed[limit:].split("\n"))
    return f"{kept}\n\n... [{dropped_lines} lines truncated] ..."


def format_execution_result(
    result: ExecutionResult,
    command: str,
    wrapped_command: str,
    cwd: str,
    background_pids: list[int],
) -> FormattedResult:
    return FormattedResult(
        llm_content=_llm_content(result, command, wrapped_command, cwd, background_pids),
        return_display=_return_display(result),
    )


def _llm_content(
    result: ExecutionResult,
    command: str,
    wrapped_command: str,
    cwd: str,
    background_pids: list[int],
) -> str:
    if result.cancelled:
        output = truncate_output(result.output)
        if output.strip():
            return (
                f"{CANCELLED_MESSAGE} Below is the output (on stdout and "
                f"stderr) before it was cancelled:\n{output}"
            )
        return f"{CANCELLED_MESSAGE} There was no output before it was cancelled."

    error = "(none)"
    if result.error:
        error = result.error.replace(wrapped_command, command)

    def _or_none(value: object) -> str:
        return "(none)" if value is None else str(value)

    lines = [
        f"Command: {command}",
        f"Directory: {cwd or '(root)'}",
        f"Stdout: {truncate_output(result.stdout) or '(empty)'}",
        f"Stderr: {truncate_output(result.stderr) or '(empty)'}",
        f"Error: {error}",
        f"Exit Code: {_or_none(result.exit_code)}",
        f"Signal: {_or_none(result.signal)}",
        f"Background PIDs: {', '.join(str(p) for p in background_pids) or '(none)'}",
        f"Process Group PGID: {_or_none(result.pid)}",
    ]
    return "\n".join(lines)


def _return_display(result: ExecutionResult) -> str:
    if result.output.strip():
        return truncate_output(result.output)
    if result.cancelled:
        return CANCELLED_MESSAGE
    if result.signal:
        return f"Command execution was terminated by signal {result.signal}."
    if result.error:
        return f"Command failed: {result.error}"
    if result.exit_code is not None and result.exit_code != 0:
        return f"Command exited with code: {result.exit_code}"
    return "Command executed successfully."


def format_background_result(task_id: str, command: str, initial_output: str) -> str:
    return "\n".join([
        "Command has been moved to background execution.",
        f"Task ID: {task_id}",
        f"Command: {command}",
        "",
        "Initial output:",
        truncate_output(initial_output),
        "",
        "Use bash_output tool with task_id to read further output.",
        "Use kill_bash tool with task_id to terminate the task.",
    ])


def format_task_report(task: BackgroundTask) -> str:
    """Status report for bash_output."""
    lines = [
        f"Command: {task.command}",
        f"Status: {task.status.value}",
        f"PID: {task.pid}",
        f"Created: {task.created_at.isoformat()}",
        "",
        "Output:",
        truncate_output(task.output) or "(no output yet)",
    ]
    if task.exit_code is not None:
        lines.extend(["", f"Exit Code: {task.exit_code}"])
    return "\n".join(lines)
