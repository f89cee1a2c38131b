"""Registry of commands that were moved to the background.

The registry is owned by a session and shared by every command that
session runs. Each mutation is a synchronous check-then-set on one
task, so two completions racing on the event loop cannot both commit a
terminal status. Finished tasks stay queryable until the session ends.
"""
from __future__ import annotations

import logging
import signal
import sys

from .errors import MissingProcessIdError
from .lifecycle import can_transition, is_terminal, validate_transition
from .models import BackgroundTask, TaskStatus, _make_id
from .process_control import escalate_if_alive, signal_process_group

logger = logging.getLogger(__name__)


class BackgroundTaskManager:
    """Tracks background tasks by id."""

    def __init__(self, kill_grace_seconds: float = 1.0) -> None:
        self.kill_grace_seconds = kill_grace_seconds
        self._tasks: dict[str, BackgroundTask] = {}

    def create_task(
        self,
        command: str,
        pid: int | None,
        pgid: int | None = None,
    ) -> str:
        """Register a running process and return its new task id."""
        if not pid:
            raise MissingProcessIdError(command)
        task_id = _make_id("bg")
        self._tasks[task_id] = BackgroundTask(
            task_id=task_id, command=command, pid=pid, pgid=pgid,
        )
        logger.info(
            "Registered background task task=%s pid=%s pgid=%s cmd=%s",
            task_id, pid, pgid, command[:80],
        )
        return task_id

    def get_task(self, task_id: str) -> BackgroundTask | None:
        return self._tasks.get(task_id)

    def list_tasks(self, status: TaskStatus | None = None) -> list[BackgroundTask]:
        tasks = list(self._tasks.values())
        if status is not None:
            tasks = [t for t in tasks if t.status == status]
        return tasks

    def append_output(self, task_id: str, chunk: str) -> None:
        """Append output. Ignored for unknown or finished tasks."""
        task = self._tasks.get(task_id)
        if task is None or is_terminal(task.status):
            return
        task.append_output(chunk)

    def update_task_status(
        self,
        task_id: str,
        status: TaskStatus,
        exit_code: int | None = None,
    ) -> bool:
        """Move a task to ``status``. Only the first terminal update wins."""
        task = self._tasks.get(task_id)
        if task is None:
            logger.warning("Status update for unknown task %s", task_id)
            return False
        if not can_transition(task.status, status):
            logger.debug(
                "Ignoring status update task=%s %s -> %s",
                task_id, task.status.value, status.value,
            )
            return False
        self._commit(task, status, exit_code)
        logger.info(
            "Background task task=%s finished status=%s exit_code=%s",
            task_id, status.value, exit_code,
        )
        return True

    async def kill_task(self, task_id: str) -> bool:
        """Terminate a running task's process group.

        Returns False if the task is unknown, not running, or its
        process was already gone.
        """
        task = self._tasks.get(task_id)
        if task is None or task.status != TaskStatus.RUNNING:
            return False
        target = task.pgid or task.pid
        use_group = task.pgid is not None and sys.platform != "win32"
        logger.info("Killing background task task=%s target=%s", task_id, target)
        if not signal_process_group(target, signal.SIGTERM, group=use_group):
            logger.warning(
                "Background task task=%s: process %s already exited",
                task_id, target,
            )
            return False
        # Committed before the first await so the exit status reported by
        # the dying process cannot overwrite it.
        self._commit(task, TaskStatus.KILLED)
        await escalate_if_alive(target, self.kill_grace_seconds, group=use_group)
        return True

    @staticmethod
    def _commit(
        task: BackgroundTask,
        status: TaskStatus,
        exit_code: int | None = None,
    ) -> None:
        validate_transition(task.status, status)
        task.status = status
        task.exit_code = exit_code

    async def shutdown(self) -> None:
        """Kill every running task. Records remain queryable."""
        running = self.list_tasks(TaskStatus.RUNNING)
        if running:
            logger.info("Shutting down %d background task(s)", len(running))
        for task in running:
            await self.kill_task(task.task_id)
