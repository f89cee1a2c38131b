"""Offer to move a long-running command to the background."""

from __future__ import annotations

from rich.markup import escape
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Static

# Lines of current output shown under the command.
_PREVIEW_LINES = 12


class BackgroundPromptScreen(ModalScreen[str]):
    """Returns "background" to move the command, "wait" to keep waiting."""

    DEFAULT_CSS = """
    BackgroundPromptScreen {
        align: center middle;
    }
    #bg-dialog {
        width: 80%;
        max-width: 110;
        height: auto;
        border: thick $accent;
        background: $surface;
        padding: 1 2;
    }
    #bg-output {
        margin: 1 0;
        max-height: 14;
        color: $text-muted;
    }
    #bg-buttons {
        height: auto;
        align: center middle;
    }
    #bg-buttons Button {
        margin: 0 1;
    }
    """

    BINDINGS = [
        ("b", "choose('background')", "Move to background"),
        ("w", "choose('wait')", "Keep waiting"),
        ("escape", "choose('wait')", "Keep waiting"),
    ]

    def __init__(
        self,
        correlation_id: str,
        command: str,
        current_output: str = "",
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.correlation_id = correlation_id
        self.command = command
        self.current_output = current_output

    def compose(self) -> ComposeResult:
        preview = "\n".join(self.current_output.splitlines()[-_PREVIEW_LINES:])
        with Vertical(id="bg-dialog"):
            yield Static("[bold $accent]Still running[/bold $accent]")
            yield Static(f"[cyan]{escape(self.command[:300])}[/cyan]")
            if preview:
                yield Static(escape(preview), id="bg-output")
            with Horizontal(id="bg-buttons"):
                yield Button("Move to background", variant="primary", id="btn-background")
                yield Button("Keep waiting", variant="default", id="btn-wait")

    def action_choose(self, result: str) -> None:
        self.dismiss(result)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss("background" if event.button.id == "btn-background" else "wait")
