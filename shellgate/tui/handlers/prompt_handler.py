"""Connects a ShellSession to modal prompts in a Textual app.

Approval requests arrive through the session's approval callback and
are answered by ApprovalScreen. Background-move offers arrive as events
from the EventBus; accepting one calls
``ShellSession.accept_background_move`` with the offer's correlation id.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from textual.app import App

from shellgate.adapters.event_bus import EventBus
from shellgate.adapters.events import (
    BackgroundPromptDeclined,
    BackgroundPromptOffered,
    ShellEvent,
)
from shellgate.engine.session import ShellSession
from shellgate.tui.screens.approval import ApprovalScreen
from shellgate.tui.screens.background_prompt import BackgroundPromptScreen

logger = logging.getLogger(__name__)


class PromptHandler:
    """Shows approval and background prompts for one session."""

    def __init__(
        self,
        app: App,
        session: ShellSession,
        bus: EventBus | None = None,
    ) -> None:
        self.app = app
        self.session = session
        self.bus = bus
        self._open_prompts: dict[str, BackgroundPromptScreen] = {}

    def attach(self) -> None:
        """Route the session's approval requests to this handler."""
        self.session.approval.callback = self.request_approval

    async def request_approval(
        self,
        tool_name: str,
        params: dict[str, Any],
        reason: str | None,
    ) -> str:
        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()

        def on_dismiss(result: str | None) -> None:
            if not future.done():
                future.set_result(result or "deny")

        tool = self.session.tools.get(tool_name)
        description = tool.get_description(params) if tool else ""
        self.app.push_screen(
            ApprovalScreen(tool_name, description=description, reason=reason),
            callback=on_dismiss,
        )
        result = await future
        logger.info("User answered %s for %s", result, tool_name)
        return result

    def handle_event(self, event: ShellEvent) -> None:
        if isinstance(event, BackgroundPromptOffered):
            self._show_background_prompt(event)
        elif isinstance(event, BackgroundPromptDeclined):
            self._close_background_prompt(event.correlation_id)

    async def run(self) -> None:
        """Consume events from the bus until it is closed."""
        if self.bus is None:
            return
        async for event in self.bus.consume():
            self.handle_event(event)

    def _show_background_prompt(self, event: BackgroundPromptOffered) -> None:
        correlation_id = event.correlation_id

        def on_dismiss(result: str | None) -> None:
            self._open_prompts.pop(correlation_id, None)
            if result == "background":
                if not self.session.accept_background_move(correlation_id):
                    self.app.notify("Command already finished", severity="warning")

        screen = BackgroundPromptScreen(
            correlation_id, event.command, event.current_output,
        )
        self._open_prompts[correlation_id] = screen
        self.app.push_screen(screen, callback=on_dismiss)

    def _close_background_prompt(self, correlation_id: str) -> None:
        screen = self._open_prompts.pop(correlation_id, None)
        if screen is None:
            return
        if self.app.screen is screen:
            screen.dismiss(None)
        else:
            logger.debug("Background prompt %s is not on top; leaving it", correlation_id)
