"""Approval modal: asks the user to allow or deny a tool call."""

from __future__ import annotations

from rich.markup import escape
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Static

_RESULT_MAP = {
    "btn-allow": "allow",
    "btn-session": "allow_always",
    "btn-project": "allow_project",
    "btn-deny": "deny",
}


class ApprovalScreen(ModalScreen[str]):
    """Modal dialog for tool approval requests.

    Returns one of: "allow", "allow_always", "allow_project", "deny".
    Risky calls only offer allow and deny.
    """

    DEFAULT_CSS = """
    ApprovalScreen {
        align: center middle;
    }
    #approval-dialog {
        width: 80%;
        max-width: 110;
        height: auto;
        border: thick $warning;
        background: $surface;
        padding: 1 2;
    }
    #approval-details {
        margin: 1 0;
        color: $text-muted;
    }
    #approval-reason {
        color: $error;
    }
    #approval-buttons {
        height: auto;
        align: center middle;
    }
    #approval-buttons Button {
        margin: 0 1;
    }
    """

    BINDINGS = [
        ("a", "choose('allow')", "Allow"),
        ("s", "choose('allow_always')", "Always this session"),
        ("d", "choose('deny')", "Deny"),
        ("escape", "choose('deny')", "Deny"),
    ]

    def __init__(
        self,
        tool_name: str,
        description: str = "",
        reason: str | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.tool_name = tool_name
        self.description = description
        self.reason = reason

    @property
    def risky(self) -> bool:
        return self.reason is not None

    def compose(self) -> ComposeResult:
        with Vertical(id="approval-dialog"):
            yield Static("[bold $warning]Approval Request[/bold $warning]")
            yield Static(f"Run [cyan]{escape(self.tool_name)}[/cyan]?")
            if self.description:
                yield Static(escape(self.description[:500]), id="approval-details")
            if self.reason:
                yield Static(f"[bold]{escape(self.reason)}[/bold]", id="approval-reason")
            with Horizontal(id="approval-buttons"):
                yield Button("Allow", variant="success", id="btn-allow")
                if not self.risky:
                    yield Button("Always (session)", variant="warning", id="btn-session")
                    yield Button("Always (project)", variant="warning", id="btn-project")
                yield Button("Deny", variant="error", id="btn-deny")

    def action_choose(self, result: str) -> None:
        if self.risky and result not in ("allow", "deny"):
            return
        self.dismiss(result)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(_RESULT_MAP.get(event.button.id or "", "deny"))
