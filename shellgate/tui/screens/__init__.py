from shellgate.tui.screens.approval import ApprovalScreen
from shellgate.tui.screens.background_prompt import BackgroundPromptScreen

__all__ = ["ApprovalScreen", "BackgroundPromptScreen"]
