"""Foreground to background transition for running commands.

A command starts in the foreground. While it runs, a watcher polls at a
fixed interval and decides whether it should keep running in the
background instead:

    foreground-running ──┬──> background-confirmed   (task registered)
                         │
                         └──> foreground-completed   (result returned)

The watcher and the process completion race; whichever finishes first
decides the outcome and the other is cancelled. Output is routed by a
single flag check per chunk: to the foreground buffer before the move,
to the background task after it, never both.

When the caller did not ask for background execution, a long-running
command with output is offered to the user through the event callback.
The offer carries a correlation id; ``PendingMoveRegistry.accept`` with
that id performs the move.
"""
from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Any

from .background import BackgroundTaskManager
from .config import EventCallback, fire_event
from .lifecycle import status_for_exit
from .models import ExecutionResult, TaskStatus, _make_id
from .runner import OutputChunk, RunningCommand
from .wrapper import WrappedCommand

logger = logging.getLogger(__name__)


def should_run_in_background(
    elapsed_seconds: float,
    has_output: bool,
    completed: bool,
    run_in_background: bool | None,
    prompt_after_seconds: float = 5.0,
) -> bool:
    if completed:
        return False
    if run_in_background is not None:
        return run_in_background
    return has_output and elapsed_seconds >= prompt_after_seconds


class PendingMoveRegistry:
    """Offers to move a command to the background, keyed by correlation id.

    Each offer is a future resolved with True on accept and False when
    the command finished first.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Future[bool]] = {}

    def __contains__(self, correlation_id: object) -> bool:
        return correlation_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def offer(self) -> tuple[str, asyncio.Future[bool]]:
        correlation_id = _make_id("temp")
        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._pending[correlation_id] = future
        return correlation_id, future

    def accept(self, correlation_id: str) -> bool:
        """Resolve an offer. Returns False if it is unknown or already settled."""
        future = self._pending.pop(correlation_id, None)
        if future is None or future.done():
            logger.warning(
                "Background move %s is not pending (already resolved or expired)",
                correlation_id,
            )
            return False
        future.set_result(True)
        logger.info("Background move %s accepted", correlation_id)
        return True

    def discard(self, correlation_id: str) -> None:
        future = self._pending.pop(correlation_id, None)
        if future is not None and not future.done():
            future.set_result(False)

    def discard_all(self) -> None:
        for correlation_id in list(self._pending):
            self.discard(correlation_id)


@dataclass
class TransitionOutcome:
    """How a command left the foreground."""
    result: ExecutionResult | None = None
    task_id: str | None = None
    initial_output: str = ""

    @property
    def moved(self) -> bool:
        return self.task_id is not None


class BackgroundTransition:
    """Races one running command against its move to the background."""

    def __init__(
        self,
        command: str,
        wrapped: WrappedCommand,
        task_manager: BackgroundTaskManager,
        pending_moves: PendingMoveRegistry,
        *,
        run_in_background: bool | None = None,
        event_callback: EventCallback | None = None,
        check_interval_seconds: float = 0.5,
        prompt_after_seconds: float = 5.0,
        tool_call_id: str = "",
    ) -> None:
        self.command = command
        self.wrapped = wrapped
        self._tasks = task_manager
        self._pending = pending_moves
        self._run_in_background = run_in_background
        self._event_callback = event_callback
        self._check_interval = check_interval_seconds
        self._prompt_after = prompt_after_seconds
        self._tool_call_id = tool_call_id
        self._buffer: list[str] = []
        self._task_id: str | None = None
        self._prompt_id: str | None = None
        self._emitting: set[asyncio.Task[None]] = set()

    @property
    def moved(self) -> bool:
        return self._task_id is not None

    @property
    def task_id(self) -> str | None:
        return self._task_id

    @property
    def foreground_output(self) -> str:
        return "".join(self._buffer)

    def on_output(self, chunk: OutputChunk) -> None:
        """Route one output chunk. Passed to the runner as its handler."""
        if self._task_id is not None:
            self._tasks.append_output(self._task_id, chunk.text)
            return
        self._buffer.append(chunk.text)
        self._emit_soon({
            "event": "tool_call_delta",
            "tool_name": "bash",
            "tool_id": self._tool_call_id,
            "delta": chunk.text,
            "stream": chunk.stream,
        })

    async def supervise(self, running: RunningCommand) -> TransitionOutcome:
        """Wait until the command either completes or moves to the background."""
        watcher = asyncio.create_task(self._watch(running))
        try:
            done, _ = await asyncio.wait(
                {watcher, running.completion},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if self.moved or (watcher in done and watcher.result()):
                # A registered task owns the command even if it exited
                # while the watcher was still returning.
                return TransitionOutcome(
                    task_id=self._task_id,
                    initial_output=self.foreground_output,
                )
            result = await running.completion
        except asyncio.CancelledError:
            if not self.moved:
                running.cancel()
            raise
        finally:
            if not watcher.done():
                watcher.cancel()
            if not self.moved:
                await self._settle_prompt()
        return TransitionOutcome(result=result)

    async def _watch(self, running: RunningCommand) -> bool:
        """Poll until a move happens (True) or can no longer happen (False)."""
        while True:
            await asyncio.sleep(self._check_interval)
            if running.done():
                return False
            if not should_run_in_background(
                running.elapsed(),
                running.has_output,
                running.done(),
                self._run_in_background,
                self._prompt_after,
            ):
                if self._run_in_background is False:
                    return False
                continue
            if self._run_in_background is True:
                return self._move_to_background(running)
            if self._event_callback is None:
                # Nobody to ask.
                return False
            return await self._offer_move(running)

    async def _offer_move(self, running: RunningCommand) -> bool:
        self._prompt_id, future = self._pending.offer()
        logger.info(
            "Offering background move %s for pid=%s after %.1fs",
            self._prompt_id, running.pid, running.elapsed(),
        )
        await fire_event(self._event_callback, {
            "event": "bash_prompt_background",
            "correlation_id": self._prompt_id,
            "command": self.command,
            "current_output": self.foreground_output,
            "tool_id": self._tool_call_id,
        })
        if not await future:
            return False
        moved = self._move_to_background(running)
        if moved:
            self._emit_soon({
                "event": "bash_background_moved",
                "correlation_id": self._prompt_id,
                "task_id": self._task_id,
                "command": self.command,
            })
        return moved

    def _move_to_background(self, running: RunningCommand) -> bool:
        # No await between the completion check and the flag flip.
        if running.done() or self.moved:
            return False
        pgid = running.pid if sys.platform != "win32" else None
        self._task_id = self._tasks.create_task(self.command, running.pid, pgid)
        running.completion.add_done_callback(self._on_background_exit)
        logger.info(
            "Moved command to background task=%s pid=%s", self._task_id, running.pid,
        )
        return True

    def _on_background_exit(self, completion: asyncio.Task[ExecutionResult]) -> None:
        task_id = self._task_id
        exit_code: int | None = None
        if completion.cancelled():
            status = TaskStatus.KILLED
        elif completion.exception() is not None:
            logger.error(
                "Background task %s failed: %s", task_id, completion.exception(),
            )
            status = TaskStatus.FAILED
        else:
            result = completion.result()
            exit_code = result.exit_code
            status = status_for_exit(result.exit_code, result.cancelled)
        if task_id is not None:
            self._tasks.update_task_status(task_id, status, exit_code)
            task = self._tasks.get_task(task_id)
            final = task.status.value if task is not None else status.value
            self._emit_soon({
                "event": "bash_background_finished",
                "task_id": task_id,
                "status": final,
                "exit_code": exit_code,
            })
        self.wrapped.cleanup()

    async def _settle_prompt(self) -> None:
        """Withdraw an unanswered offer once the command finished first."""
        if self._prompt_id is None:
            return
        self._pending.discard(self._prompt_id)
        await fire_event(self._event_callback, {
            "event": "bash_background_declined",
            "correlation_id": self._prompt_id,
            "command": self.command,
        })

    def _emit_soon(self, event: dict[str, Any]) -> None:
        if self._event_callback is None:
            return
        task = asyncio.get_running_loop().create_task(
            fire_event(self._event_callback, event)
        )
        self._emitting.add(task)
        task.add_done_callback(self._emitting.discard)
