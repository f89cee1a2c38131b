from shellgate.tui.handlers.prompt_handler import PromptHandler

__all__ = ["PromptHandler"]
