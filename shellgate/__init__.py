"""shellgate: gated shell command execution for autonomous agents."""

__version__ = "0.1.0"
