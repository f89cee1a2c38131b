import asyncio
from unittest.mock import MagicMock

import pytest
from textual.app import App

from shellgate.adapters.events import BackgroundPromptDeclined, BackgroundPromptOffered
from shellgate.engine.config import ShellConfig
from shellgate.engine.session import ShellSession
from shellgate.tui.handlers.prompt_handler import PromptHandler
from shellgate.tui.screens.approval import ApprovalScreen
from shellgate.tui.screens.background_prompt import BackgroundPromptScreen


class _PromptApp(App):
    def __init__(self) -> None:
        super().__init__()
        self.results: list[str | None] = []

    def record(self, result: str | None) -> None:
        self.results.append(result)


@pytest.mark.asyncio
async def test_approval_screen_allow_key() -> None:
    app = _PromptApp()
    async with app.run_test(size=(120, 40)) as pilot:
        app.push_screen(ApprovalScreen("bash", description="ls -la"), callback=app.record)
        await pilot.pause()
        await pilot.press("a")
        await pilot.pause()
    assert app.results == ["allow"]


@pytest.mark.asyncio
async def test_approval_screen_session_key() -> None:
    app = _PromptApp()
    async with app.run_test(size=(120, 40)) as pilot:
        app.push_screen(ApprovalScreen("bash"), callback=app.record)
        await pilot.pause()
        await pilot.press("s")
        await pilot.pause()
    assert app.results == ["allow_always"]


@pytest.mark.asyncio
async def test_risky_approval_ignores_always() -> None:
    app = _PromptApp()
    async with app.run_test(size=(120, 40)) as pilot:
        screen = ApprovalScreen("bash", description="rm -rf /", reason="Command is classified as high-risk")
        app.push_screen(screen, callback=app.record)
        await pilot.pause()
        assert not screen.query("#btn-session")
        await pilot.press("s")
        await pilot.pause()
        assert app.results == []
        await pilot.press("escape")
        await pilot.pause()
    assert app.results == ["deny"]


@pytest.mark.asyncio
async def test_background_prompt_keys() -> None:
    app = _PromptApp()
    async with app.run_test(size=(120, 40)) as pilot:
        app.push_screen(
            BackgroundPromptScreen("temp_abc", "npm run dev", "line 1\nline 2"),
            callback=app.record,
        )
        await pilot.pause()
        await pilot.press("b")
        await pilot.pause()
        app.push_screen(BackgroundPromptScreen("temp_def", "sleep 60"), callback=app.record)
        await pilot.pause()
        await pilot.press("w")
        await pilot.pause()
    assert app.results == ["background", "wait"]


@pytest.mark.asyncio
async def test_handler_accepts_background_move(tmp_path) -> None:
    app = _PromptApp()
    session = ShellSession(ShellConfig(), cwd=str(tmp_path))
    session.accept_background_move = MagicMock(return_value=True)
    handler = PromptHandler(app, session)
    async with app.run_test(size=(120, 40)) as pilot:
        handler.handle_event(BackgroundPromptOffered(correlation_id="temp_1", command="make watch"))
        await pilot.pause()
        assert isinstance(app.screen, BackgroundPromptScreen)
        await pilot.press("b")
        await pilot.pause()
    session.accept_background_move.assert_called_once_with("temp_1")


@pytest.mark.asyncio
async def test_handler_closes_declined_prompt(tmp_path) -> None:
    app = _PromptApp()
    session = ShellSession(ShellConfig(), cwd=str(tmp_path))
    session.accept_background_move = MagicMock(return_value=True)
    handler = PromptHandler(app, session)
    async with app.run_test(size=(120, 40)) as pilot:
        handler.handle_event(BackgroundPromptOffered(correlation_id="temp_2", command="make watch"))
        await pilot.pause()
        handler.handle_event(BackgroundPromptDeclined(correlation_id="temp_2"))
        await pilot.pause()
        assert not isinstance(app.screen, BackgroundPromptScreen)
    session.accept_background_move.assert_not_called()


@pytest.mark.asyncio
async def test_handler_routes_approval_to_screen(tmp_path) -> None:
    app = _PromptApp()
    session = ShellSession(ShellConfig(), cwd=str(tmp_path))
    handler = PromptHandler(app, session)
    handler.attach()
    assert session.approval.callback == handler.request_approval
    async with app.run_test(size=(120, 40)) as pilot:
        pending = asyncio.ensure_future(
            handler.request_approval("bash", {"command": "ls"}, None),
        )
        await pilot.pause()
        assert isinstance(app.screen, ApprovalScreen)
        await pilot.press("d")
        await pilot.pause()
        assert await pending == "deny"
