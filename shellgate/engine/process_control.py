"""Signalling helpers for command process groups.

Commands are started as session leaders on POSIX, so the leader's pid
is also the process group id and one signal reaches everything the
command spawned. Windows has no process groups; the pid is signalled
directly.
"""
from __future__ import annotations

import asyncio
import logging
import os
import signal

logger = logging.getLogger(__name__)

_HAS_PROCESS_GROUPS = hasattr(os, "killpg")


def signal_process_group(pid: int, sig: int, *, group: bool = True) -> bool:
    """Send ``sig`` to a process group (or single process).

    Returns False if nothing with that id exists any more.
    """
    try:
        if group and _HAS_PROCESS_GROUPS:
            os.killpg(pid, sig)
        else:
            os.kill(pid, sig)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        logger.warning("Not permitted to signal pid=%s sig=%s", pid, sig)
        return False


def process_group_alive(pid: int, *, group: bool = True) -> bool:
    if not _HAS_PROCESS_GROUPS:
        # Signal 0 is not supported for liveness checks on Windows.
        return False
    return signal_process_group(pid, 0, group=group)


def _kill_signal() -> int:
    return getattr(signal, "SIGKILL", signal.SIGTERM)


async def escalate_if_alive(
    pid: int,
    grace_seconds: float,
    *,
    group: bool = True,
    poll_interval: float = 0.05,
) -> None:
    """Wait up to ``grace_seconds`` for the group to exit, then SIGKILL it."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max(grace_seconds, 0.0)
    while loop.time() < deadline:
        if not process_group_alive(pid, group=group):
            return
        await asyncio.sleep(poll_interval)
    if process_group_alive(pid, group=group):
        logger.warning(
            "Process group %s survived SIGTERM for %.2fs; sending SIGKILL",
            pid, grace_seconds,
        )
        signal_process_group(pid, _kill_signal(), group=group)


async def terminate_process_group(
    pid: int,
    grace_seconds: float,
    *,
    group: bool = True,
) -> bool:
    """SIGTERM the group, then SIGKILL whatever is left after the grace.

    Returns True if a signal was delivered, False if the group was
    already gone.
    """
    if not signal_process_group(pid, signal.SIGTERM, group=group):
        return False
    await escalate_if_alive(pid, grace_seconds, group=group)
    return True
