"""Background task lifecycle.

Defines which status changes are legal. A task is created RUNNING and
moves exactly once into one of the terminal states:

    RUNNING ──┬──> COMPLETED   (exit code 0)
              │
              ├──> FAILED      (non-zero exit)
              │
              └──> KILLED      (kill_bash, timeout, shutdown)

Terminal states have no outgoing transitions.
"""
from __future__ import annotations

from .errors import InvalidTaskTransitionError
from .models import TaskStatus

VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.RUNNING: {
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
        TaskStatus.KILLED,
    },
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
    TaskStatus.KILLED: set(),
}


def is_terminal(status: TaskStatus) -> bool:
    return not VALID_TRANSITIONS.get(status)


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, set())


def validate_transition(current: TaskStatus, target: TaskStatus) -> None:
    """Validate a status change. Raises InvalidTaskTransitionError if illegal."""
    if can_transition(current, target):
        return
    allowed = VALID_TRANSITIONS.get(current, set())
    allowed_str = ", ".join(s.value for s in allowed) or "none (terminal)"
    raise InvalidTaskTransitionError(current.value, target.value, allowed_str)


def status_for_exit(exit_code: int | None, cancelled: bool) -> TaskStatus:
    """Terminal status for a process that finished on its own or was cancelled."""
    if cancelled:
        return TaskStatus.KILLED
    if exit_code == 0:
        return TaskStatus.COMPLETED
    return TaskStatus.FAILED
