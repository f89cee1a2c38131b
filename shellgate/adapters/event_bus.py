"""Async event bus bridging engine callbacks to UI consumers.

Commands fire events via ShellConfig.event_callback. The EventBus
queues them as typed events for the UI's consumer loop.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from shellgate.adapters.events import ShellEvent, dict_to_event
from shellgate.engine.config import EventCallback

logger = logging.getLogger(__name__)


class EventBus:
    """Async queue of ShellEvents."""

    def __init__(self, maxsize: int = 5000, put_timeout: float = 30.0) -> None:
        self._queue: asyncio.Queue[ShellEvent] = asyncio.Queue(maxsize=maxsize)
        self._put_timeout = put_timeout
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def _callback(self, data: dict[str, Any]) -> None:
        await self.emit(dict_to_event(data))

    def make_callback(self) -> EventCallback:
        """Return the async callback for ShellConfig.event_callback."""
        return self._callback

    async def emit(self, event: ShellEvent) -> None:
        if self._closed:
            return
        try:
            # Backpressure instead of dropping, up to the put timeout.
            await asyncio.wait_for(self._queue.put(event), timeout=self._put_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "EventBus queue blocked for %.0fs, dropping: %s (queue size: %d)",
                self._put_timeout, event.event_type, self._queue.qsize(),
            )

    async def consume(self) -> AsyncIterator[ShellEvent]:
        """Yield events as they arrive. Stops on close()."""
        while not self._closed:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=0.5)
            except asyncio.TimeoutError:
                continue
            yield event

    def close(self) -> None:
        self._closed = True

    def reset(self) -> None:
        """Drain leftover events and re-open the bus."""
        while not self._queue.empty():
            self._queue.get_nowait()
        self._closed = False
