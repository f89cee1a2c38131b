"""A shell session: the shell tools behind one approval gate.

The session owns the background task registry and the pending
background-move offers, so every command it runs shares them and
``shutdown()`` can stop whatever is still running.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

from .approval import AllowListWriter, ApprovalGate
from .background import BackgroundTaskManager
from .bash_tools import BASH, BASH_OUTPUT, KILL_BASH, BashOutputTool, BashTool, KillBashTool
from .config import ShellConfig, fire_event
from .models import ToolResult, _make_id
from .transition import PendingMoveRegistry

logger = logging.getLogger(__name__)


class PersistentAllowList(AllowListWriter, Protocol):
    def load(self) -> set[str]: ...


class ShellSession:
    """Entry point for the agent loop."""

    def __init__(
        self,
        config: ShellConfig | None = None,
        *,
        cwd: str | None = None,
        store: PersistentAllowList | None = None,
    ) -> None:
        self.config = config or ShellConfig()
        self.task_manager = BackgroundTaskManager(self.config.kill_grace_seconds)
        self.pending_moves = PendingMoveRegistry()
        allowed = set(self.config.allowed_tools)
        if store is not None:
            allowed |= store.load()
        self.approval = ApprovalGate(
            mode=self.config.approval_mode,
            callback=self.config.approval_callback,
            allowed_tools=allowed,
            store=store,
        )
        self.bash = BashTool(
            self.config, self.task_manager, self.pending_moves, cwd=cwd,
        )
        self.tools = {
            BASH: self.bash,
            BASH_OUTPUT: BashOutputTool(self.task_manager),
            KILL_BASH: KillBashTool(self.task_manager),
        }

    def tool_definitions(self) -> list[dict[str, Any]]:
        return [tool.definition() for tool in self.tools.values()]

    async def call_tool(
        self,
        name: str,
        params: dict[str, Any],
        tool_call_id: str | None = None,
    ) -> ToolResult:
        """Approve, then run, one tool call."""
        tool = self.tools.get(name)
        if tool is None:
            return ToolResult(
                llm_content=f"Unknown tool: {name}",
                return_display=f"Unknown tool: {name}",
                is_error=True,
            )
        tool_call_id = tool_call_id or _make_id("call")
        decision = await self.approval.check(tool.spec, params)
        if not decision.approved:
            message = f"Tool call denied: {decision.deny_reason or 'not approved'}"
            logger.warning("Denied %s tool_call_id=%s: %s", name, tool_call_id[:12], message)
            return ToolResult(llm_content=message, return_display=message, is_error=True)
        if decision.modified_params:
            # The bash tool validates the edited command again before running it.
            params = {**params, **decision.modified_params}

        await fire_event(self.config.event_callback, {
            "event": "tool_call_started",
            "tool_id": tool_call_id,
            "tool_name": name,
            "description": tool.get_description(params),
        })
        result = await tool.execute(params, tool_call_id)
        await fire_event(self.config.event_callback, {
            "event": "tool_call_completed",
            "tool_id": tool_call_id,
            "tool_name": name,
            "is_error": result.is_error,
            "background_task_id": result.background_task_id,
        })
        return result

    async def execute(
        self,
        command: str,
        timeout: int | None = None,
        run_in_background: bool | None = None,
        description: str | None = None,
        tool_call_id: str | None = None,
    ) -> ToolResult:
        """Run a shell command. ``timeout`` is in milliseconds."""
        params: dict[str, Any] = {"command": command}
        if timeout is not None:
            params["timeout"] = timeout
        if run_in_background is not None:
            params["run_in_background"] = run_in_background
        if description is not None:
            params["description"] = description
        return await self.call_tool(BASH, params, tool_call_id)

    async def read_background_output(self, task_id: str) -> ToolResult:
        return await self.call_tool(BASH_OUTPUT, {"task_id": task_id})

    async def kill_background_task(self, task_id: str) -> ToolResult:
        return await self.call_tool(KILL_BASH, {"task_id": task_id})

    def accept_background_move(self, correlation_id: str) -> bool:
        """Accept an offer to move a running command to the background."""
        return self.pending_moves.accept(correlation_id)

    def kill_tool_call(self, tool_call_id: str) -> bool:
        """Cancel an in-flight foreground bash call."""
        return self.bash.cancel(tool_call_id)

    async def shutdown(self) -> None:
        self.pending_moves.discard_all()
        await self.task_manager.shutdown()
        logger.info("Shell session shut down")
