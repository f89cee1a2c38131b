"""Process runner for wrapped shell commands.

Spawns the host shell, streams decoded output chunks to a handler as
they arrive, enforces the timeout, and resolves a completion task with
an ExecutionResult. The returned RunningCommand also carries the
external cancellation signal.
"""
from __future__ import annotations

import asyncio
import codecs
import logging
import signal
import sys
from collections.abc import Callable
from dataclasses import dataclass, field

from .errors import ProcessSpawnError
from .models import ExecutionResult
from .process_control import (
    process_group_alive,
    signal_process_group,
    terminate_process_group,
)
from .wrapper import WrappedCommand

logger = logging.getLogger(__name__)


@dataclass
class OutputChunk:
    stream: str  # "stdout" or "stderr"
    text: str


OutputHandler = Callable[[OutputChunk], None]


@dataclass
class _RunState:
    stdout: list[str] = field(default_factory=list)
    stderr: list[str] = field(default_factory=list)
    output: list[str] = field(default_factory=list)
    cancel_requested: asyncio.Event = field(default_factory=asyncio.Event)


class RunningCommand:
    """Handle to a command the runner has started."""

    def __init__(
        self,
        pid: int | None,
        completion: asyncio.Task[ExecutionResult],
        state: _RunState,
        started_at: float,
    ) -> None:
        self.pid = pid
        self.completion = completion
        self.started_at = started_at
        self._state = state

    @property
    def has_output(self) -> bool:
        return bool(self._state.output)

    @property
    def buffered_output(self) -> str:
        return "".join(self._state.output)

    def elapsed(self) -> float:
        return asyncio.get_running_loop().time() - self.started_at

    def done(self) -> bool:
        return self.completion.done()

    def cancel(self) -> None:
        """Ask the runner to stop the command. Output so far is kept."""
        if not self.completion.done():
            self._state.cancel_requested.set()


class ProcessRunner:
    """Runs wrapped commands through one host shell."""

    def __init__(
        self,
        shell: str,
        kill_grace_seconds: float = 1.0,
        *,
        drain_seconds: float = 0.2,
        platform: str | None = None,
    ) -> None:
        self.shell = shell
        self.kill_grace_seconds = kill_grace_seconds
        # Background children can hold the pipes open after the shell
        # exits; readers get this long to flush before being cancelled.
        self.drain_seconds = drain_seconds
        self._posix = (platform or sys.platform) != "win32"

    async def run(
        self,
        wrapped: WrappedCommand,
        cwd: str,
        timeout_seconds: float | None,
        on_output: OutputHandler | None = None,
    ) -> RunningCommand:
        """Start ``wrapped`` and return immediately with a handle."""
        logger.debug("Spawning shell=%s cwd=%s cmd=%s", self.shell, cwd, wrapped.wrapped)
        kwargs: dict = {}
        if self._posix:
            kwargs["executable"] = self.shell
            kwargs["start_new_session"] = True
        try:
            process = await asyncio.create_subprocess_shell(
                wrapped.wrapped,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                **kwargs,
            )
        except OSError as exc:
            raise ProcessSpawnError(wrapped.original, str(exc)) from exc

        loop = asyncio.get_running_loop()
        state = _RunState()
        completion = asyncio.create_task(
            self._supervise(process, wrapped, timeout_seconds, on_output, state)
        )
        logger.info(
            "Started command pid=%s timeout=%s cmd=%s",
            process.pid, timeout_seconds, wrapped.original[:80],
        )
        return RunningCommand(process.pid, completion, state, loop.time())

    async def _supervise(
        self,
        process: asyncio.subprocess.Process,
        wrapped: WrappedCommand,
        timeout_seconds: float | None,
        on_output: OutputHandler | None,
        state: _RunState,
    ) -> ExecutionResult:
        readers = [
            asyncio.create_task(self._pump(process.stdout, "stdout", state, on_output)),
            asyncio.create_task(self._pump(process.stderr, "stderr", state, on_output)),
        ]
        exited = asyncio.create_task(process.wait())
        cancel_wait = asyncio.create_task(state.cancel_requested.wait())
        cancelled = False
        try:
            done, _ = await asyncio.wait(
                {exited, cancel_wait},
                timeout=timeout_seconds if timeout_seconds and timeout_seconds > 0 else None,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if exited not in done:
                cancelled = True
                reason = "cancel requested" if cancel_wait in done else "timed out"
                logger.warning(
                    "Stopping command pid=%s (%s): %s",
                    process.pid, reason, wrapped.original[:80],
                )
                await self._stop(process)
            await exited
        except asyncio.CancelledError:
            await self._stop(process)
            raise
        finally:
            cancel_wait.cancel()
            _, pending = await asyncio.wait(readers, timeout=self.drain_seconds)
            for reader in pending:
                reader.cancel()

        return self._build_result(process, state, cancelled)

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        name: str,
        state: _RunState,
        on_output: OutputHandler | None,
    ) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await stream.read(4096)
            text = decoder.decode(data, final=not data)
            if text:
                self._record(OutputChunk(name, text), state, on_output)
            if not data:
                return

    @staticmethod
    def _record(
        chunk: OutputChunk,
        state: _RunState,
        on_output: OutputHandler | None,
    ) -> None:
        getattr(state, chunk.stream).append(chunk.text)
        state.output.append(chunk.text)
        if on_output is None:
            return
        try:
            on_output(chunk)
        except Exception:
            logger.exception("Output handler failed for %s chunk", chunk.stream)

    async def _stop(self, process: asyncio.subprocess.Process) -> None:
        """Terminate the command's process group, escalating to SIGKILL."""
        if process.returncode is None:
            if self._posix:
                await terminate_process_group(process.pid, self.kill_grace_seconds)
            else:
                try:
                    process.terminate()
                except ProcessLookupError:
                    return
            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_grace_seconds)
            except asyncio.TimeoutError:
                logger.error("Command pid=%s ignored SIGTERM; killing", process.pid)
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
        # Children may outlive the shell in the same group.
        if self._posix and process_group_alive(process.pid):
            signal_process_group(process.pid, getattr(signal, "SIGKILL", signal.SIGTERM))

    @staticmethod
    def _build_result(
        process: asyncio.subprocess.Process,
        state: _RunState,
        cancelled: bool,
    ) -> ExecutionResult:
        returncode = process.returncode
        exit_code: int | None = returncode
        signal_name: str | None = None
        if returncode is not None and returncode < 0:
            exit_code = None
            try:
                signal_name = signal.Signals(-returncode).name
            except ValueError:
                signal_name = str(-returncode)
        return ExecutionResult(
            stdout="".join(state.stdout),
            stderr="".join(state.stderr),
            output="".join(state.output),
            exit_code=exit_code,
            signal=signal_name,
            error=None,
            cancelled=cancelled,
            pid=process.pid,
        )
