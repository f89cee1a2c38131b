"""Gated shell execution engine: validation, process control, background
tasks and the approval cascade."""
from .approval import ApprovalGate, ToolSpec
from .background import BackgroundTaskManager
from .bash_tools import BashOutputTool, BashTool, KillBashTool
from .config import ShellConfig
from .errors import (
    InvalidApprovalModeError,
    InvalidTaskTransitionError,
    MissingProcessIdError,
    ProcessSpawnError,
    ShellGateError,
)
from .models import (
    ApprovalDecision,
    ApprovalMode,
    BackgroundTask,
    CommandRequest,
    ExecutionResult,
    RiskClassification,
    TaskStatus,
    ToolCategory,
    ToolResult,
)
from .security import classify, validate_command
from .session import ShellSession
from .yaml_config import load_yaml_config

__all__ = [
    "ApprovalDecision",
    "ApprovalGate",
    "ApprovalMode",
    "BackgroundTask",
    "BackgroundTaskManager",
    "BashOutputTool",
    "BashTool",
    "CommandRequest",
    "ExecutionResult",
    "InvalidApprovalModeError",
    "InvalidTaskTransitionError",
    "KillBashTool",
    "MissingProcessIdError",
    "ProcessSpawnError",
    "RiskClassification",
    "ShellConfig",
    "ShellGateError",
    "ShellSession",
    "TaskStatus",
    "ToolCategory",
    "ToolResult",
    "ToolSpec",
    "classify",
    "load_yaml_config",
    "validate_command",
]
