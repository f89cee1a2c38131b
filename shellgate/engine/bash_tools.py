"""The agent-facing shell tools: bash, bash_output and kill_bash.

Each tool carries its JSON-schema definition, a short description for
progress display, the ToolSpec the approval gate needs, and an async
``execute(params)`` returning a ToolResult.
"""
from __future__ import annotations

import logging
from typing import Any

from .approval import ToolSpec
from .background import BackgroundTaskManager
from .config import ShellConfig
from .models import (
    ApprovalMode,
    CommandRequest,
    TaskStatus,
    ToolCategory,
    ToolResult,
    _make_id,
)
from .output import (
    format_background_result,
    format_execution_result,
    format_task_report,
)
from .runner import ProcessRunner, RunningCommand
from .security import (
    BANNED_COMMANDS,
    get_command_root,
    is_banned_command,
    is_high_risk_command,
    validate_command,
)
from .transition import BackgroundTransition, PendingMoveRegistry
from .wrapper import CommandWrapper, select_wrapper

logger = logging.getLogger(__name__)

BASH = "bash"
BASH_OUTPUT = "bash_output"
KILL_BASH = "kill_bash"


def _error(message: str) -> ToolResult:
    return ToolResult(llm_content=message, return_display=message, is_error=True)


def command_risk_reason(params: dict[str, Any]) -> str | None:
    """Why a bash call must always be confirmed, or None."""
    command = str(params.get("command") or "")
    if not command.strip():
        return None
    root = get_command_root(command)
    if root and is_banned_command(root):
        return f"Command '{root}' is banned"
    if is_high_risk_command(command):
        return "Command is classified as high-risk"
    return None


def bash_needs_approval(params: dict[str, Any], mode: ApprovalMode) -> bool:
    command = str(params.get("command") or "")
    if not command.strip():
        return False
    if command_risk_reason(params) is not None:
        return True
    return mode != ApprovalMode.YOLO


class BashTool:
    """Runs a shell command in the foreground, moving it to the background
    when asked to or when the user accepts the offer."""

    name = BASH

    def __init__(
        self,
        config: ShellConfig,
        task_manager: BackgroundTaskManager,
        pending_moves: PendingMoveRegistry,
        *,
        cwd: str | None = None,
        wrapper: CommandWrapper | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self.config = config
        self.cwd = cwd or config.default_cwd
        self.task_manager = task_manager
        self.pending_moves = pending_moves
        shell = config.resolved_shell
        self.wrapper = wrapper or select_wrapper(shell)
        self.runner = runner or ProcessRunner(shell, config.kill_grace_seconds)
        self._foreground: dict[str, RunningCommand] = {}
        self.spec = ToolSpec(
            name=BASH,
            category=ToolCategory.COMMAND,
            needs_approval=bash_needs_approval,
            risk_reason=command_risk_reason,
        )

    @property
    def description(self) -> str:
        return (
            "Run shell commands in the terminal.\n\n"
            "Background execution:\n"
            "- Set run_in_background=true to run the command in the background.\n"
            f"- Background tasks return a task_id for use with {BASH_OUTPUT} "
            f"and {KILL_BASH}.\n"
            "- Long-running commands with output may be moved to the background "
            "if the user accepts.\n\n"
            "Before running a command:\n"
            "- Do not use the banned commands: "
            f"{', '.join(sorted(BANNED_COMMANDS))}.\n"
            "- Command substitution ($(...) and backticks) is rejected.\n"
            "- Quote paths that contain spaces with double quotes.\n\n"
            f"The timeout is in milliseconds, at most {self.config.max_timeout_ms}. "
            f"Without one, commands time out after {self.config.default_timeout_ms}ms."
        )

    def definition(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": {
                "type": "object",
                "properties": {
                    "command": {
                        "type": "string",
                        "description": "The command to execute",
                    },
                    "timeout": {
                        "type": "number",
                        "description": (
                            "Optional timeout in milliseconds "
                            f"(max {self.config.max_timeout_ms})"
                        ),
                    },
                    "run_in_background": {
                        "type": "boolean",
                        "description": (
                            "Set to true to run this command in the background. "
                            f"Use {BASH_OUTPUT} to read output later."
                        ),
                    },
                    "description": {
                        "type": "string",
                        "description": (
                            "What this command does in 5-10 words, "
                            "in active voice"
                        ),
                    },
                },
                "required": ["command"],
            },
        }

    @staticmethod
    def get_description(params: dict[str, Any]) -> str:
        command = params.get("command")
        if not command or not isinstance(command, str):
            return "No command provided"
        command = command.strip()
        return f"{command[:97]}..." if len(command) > 100 else command

    def cancel(self, tool_call_id: str) -> bool:
        """Stop an in-flight foreground command. Its output is still returned."""
        running = self._foreground.get(tool_call_id)
        if running is None or running.done():
            return False
        logger.info("Cancelling foreground command tool_call_id=%s pid=%s",
                    tool_call_id[:12], running.pid)
        running.cancel()
        return True

    async def execute(self, params: dict[str, Any], tool_call_id: str = "") -> ToolResult:
        try:
            request = CommandRequest.from_params(params)
            return await self._execute(request, tool_call_id or _make_id("call"))
        except Exception as exc:
            logger.exception("bash failed for %s", str(params.get("command"))[:80])
            return _error(f"Command execution failed: {exc}")

    async def _execute(self, request: CommandRequest, tool_call_id: str) -> ToolResult:
        rejection = validate_command(request.command)
        if rejection:
            logger.info("Rejected command: %s (%s)", request.command[:80], rejection)
            return _error(rejection)

        timeout_ms = self.config.clamp_timeout_ms(request.timeout_ms)
        wrapped = self.wrapper.wrap(request.command)
        moved = False
        try:
            transition = BackgroundTransition(
                request.command,
                wrapped,
                self.task_manager,
                self.pending_moves,
                run_in_background=request.run_in_background,
                event_callback=self.config.event_callback,
                check_interval_seconds=self.config.background_check_interval_seconds,
                prompt_after_seconds=self.config.background_prompt_after_seconds,
                tool_call_id=tool_call_id,
            )
            running = await self.runner.run(
                wrapped, self.cwd, timeout_ms / 1000, transition.on_output,
            )
            self._foreground[tool_call_id] = running
            try:
                outcome = await transition.supervise(running)
            finally:
                self._foreground.pop(tool_call_id, None)

            if outcome.moved and outcome.task_id is not None:
                moved = True
                text = format_background_result(
                    outcome.task_id, request.command, outcome.initial_output,
                )
                return ToolResult(
                    llm_content=text,
                    return_display=f"Moved to background as task {outcome.task_id}",
                    background_task_id=outcome.task_id,
                )

            result = outcome.result
            if result is None:
                return _error("Command execution failed: no result from the process runner")
            background_pids = wrapped.read_background_pids(result.pid)
            formatted = format_execution_result(
                result, request.command, wrapped.wrapped, self.cwd, background_pids,
            )
            return ToolResult(
                llm_content=formatted.llm_content,
                return_display=formatted.return_display,
            )
        finally:
            if not moved:
                wrapped.cleanup()


class BashOutputTool:
    name = BASH_OUTPUT
    description = (
        "Retrieve output from a background bash task.\n\n"
        "- Accepts a task_id returned when a command moved to the background\n"
        "- Returns the accumulated stdout and stderr output\n"
        "- Shows the task status (running/completed/killed/failed)"
    )

    def __init__(self, task_manager: BackgroundTaskManager) -> None:
        self.task_manager = task_manager
        self.spec = ToolSpec(
            name=BASH_OUTPUT,
            category=ToolCategory.READ,
            needs_approval=lambda params, mode: False,
        )

    def definition(self) -> dict[str, Any]:
        return _task_id_definition(
            self.name, self.description, "The ID of the background task",
        )

    @staticmethod
    def get_description(params: dict[str, Any]) -> str:
        task_id = params.get("task_id")
        if not task_id or not isinstance(task_id, str):
            return "Read background task output"
        return f"Read output from task: {task_id}"

    async def execute(self, params: dict[str, Any], tool_call_id: str = "") -> ToolResult:
        task_id = str(params.get("task_id") or "")
        task = self.task_manager.get_task(task_id)
        if task is None:
            return _error(f"Task {task_id} not found. Use bash tool to see available tasks.")
        report = format_task_report(task)
        return ToolResult(llm_content=report, return_display=report)


class KillBashTool:
    name = KILL_BASH
    description = (
        "Terminate a running background bash task.\n\n"
        "- Accepts the task_id of the task to kill\n"
        "- Sends SIGTERM first, then SIGKILL if needed (Unix-like systems)\n"
        "- Returns success or failure status"
    )

    def __init__(self, task_manager: BackgroundTaskManager) -> None:
        self.task_manager = task_manager
        self.spec = ToolSpec(
            name=KILL_BASH,
            category=ToolCategory.COMMAND,
            needs_approval=lambda params, mode: mode != ApprovalMode.YOLO,
        )

    def definition(self) -> dict[str, Any]:
        return _task_id_definition(
            self.name, self.description,
            "The ID of the background task to terminate",
        )

    @staticmethod
    def get_description(params: dict[str, Any]) -> str:
        task_id = params.get("task_id")
        if not task_id or not isinstance(task_id, str):
            return "Terminate background task"
        return f"Terminate task: {task_id}"

    async def execute(self, params: dict[str, Any], tool_call_id: str = "") -> ToolResult:
        task_id = str(params.get("task_id") or "")
        task = self.task_manager.get_task(task_id)
        if task is None:
            return _error(f"Task {task_id} not found. Use bash tool to see available tasks.")
        if task.status != TaskStatus.RUNNING:
            return _error(
                f"Task {task_id} is not running (status: {task.status.value}). "
                "Cannot terminate."
            )
        if await self.task_manager.kill_task(task_id):
            message = f"Successfully terminated task {task_id} ({task.command})"
            return ToolResult(llm_content=message, return_display=message)
        return _error(f"Failed to terminate task {task_id}. Process may have already exited.")


def _task_id_definition(name: str, description: str, field_help: str) -> dict[str, Any]:
    return {
        "name": name,
        "description": description,
        "input_schema": {
            "type": "object",
            "properties": {
                "task_id": {"type": "string", "description": field_help},
            },
            "required": ["task_id"],
        },
    }
