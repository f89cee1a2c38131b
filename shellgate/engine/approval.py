"""Approval cascade run before any tool call executes.

Policies are checked in order and the first one that decides wins:

1. ``yolo`` mode approves, unless the tool is always-interactive or
   the call is flagged as risky by its tool.
2. Read-only tools are approved.
3. The tool's own predicate says no approval is needed.
4. ``autoEdit`` mode approves write tools.
5. The tool is in the session allow-list (skipped for risky calls).
6. The approval callback decides. Without a callback the call is denied.

A risky call is one whose tool reports a risk reason, e.g. a high-risk
or banned shell command. Only the callback can approve those.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from .config import ApprovalCallback
from .models import ApprovalDecision, ApprovalMode, ToolCategory

logger = logging.getLogger(__name__)


class AllowListWriter(Protocol):
    def add_project(self, tool_name: str) -> None: ...
    def add_global(self, tool_name: str) -> None: ...


@dataclass
class ToolSpec:
    """What the gate needs to know about a tool."""
    name: str
    category: ToolCategory
    # (params, mode) -> whether the user must be asked.
    # None means always ask.
    needs_approval: Callable[[dict[str, Any], ApprovalMode], bool] | None = None
    # params -> reason the call is risky, or None.
    risk_reason: Callable[[dict[str, Any]], str | None] | None = None


class ApprovalGate:
    """Decides whether a tool call may run."""

    def __init__(
        self,
        mode: ApprovalMode = ApprovalMode.DEFAULT,
        callback: ApprovalCallback | None = None,
        allowed_tools: Iterable[str] = (),
        store: AllowListWriter | None = None,
    ) -> None:
        self.mode = ApprovalMode.parse(mode)
        self.callback = callback
        self.session_allowed: set[str] = set(allowed_tools)
        self.store = store

    def allow_for_session(self, tool_name: str) -> None:
        self.session_allowed.add(tool_name)

    async def check(self, tool: ToolSpec, params: dict[str, Any]) -> ApprovalDecision:
        risk = tool.risk_reason(params) if tool.risk_reason else None

        if (
            self.mode == ApprovalMode.YOLO
            and tool.category != ToolCategory.ASK
            and risk is None
        ):
            return ApprovalDecision(approved=True)
        if tool.category == ToolCategory.READ:
            return ApprovalDecision(approved=True)
        if tool.needs_approval is not None and not tool.needs_approval(params, self.mode):
            return ApprovalDecision(approved=True)
        if self.mode == ApprovalMode.AUTO_EDIT and tool.category == ToolCategory.WRITE:
            return ApprovalDecision(approved=True)
        if risk is None and tool.name in self.session_allowed:
            return ApprovalDecision(approved=True)

        if self.callback is None:
            reason = risk or f"Tool {tool.name} requires approval"
            logger.warning("Denied %s without an approval callback: %s", tool.name, reason)
            return ApprovalDecision(approved=False, deny_reason=reason)

        try:
            verdict = await self.callback(tool.name, params, risk)
        except Exception as exc:
            logger.exception("Approval callback failed for %s", tool.name)
            return ApprovalDecision(
                approved=False, deny_reason=f"Approval callback failed: {exc}",
            )
        decision = self._normalize(tool.name, verdict)
        logger.info(
            "Approval for %s: approved=%s reason=%s",
            tool.name, decision.approved, decision.deny_reason,
        )
        return decision

    def _normalize(self, tool_name: str, verdict: Any) -> ApprovalDecision:
        if isinstance(verdict, ApprovalDecision):
            return verdict
        if isinstance(verdict, bool):
            return ApprovalDecision(
                approved=verdict,
                deny_reason=None if verdict else "Denied by user",
            )
        if isinstance(verdict, Mapping):
            approved = bool(verdict.get("approved", False))
            reason = verdict.get("deny_reason", verdict.get("denyReason"))
            modified = verdict.get("modified_params", verdict.get("modifiedParams"))
            if not approved and not reason:
                reason = "Denied by user"
            return ApprovalDecision(
                approved=approved,
                deny_reason=None if approved else reason,
                modified_params=dict(modified) if modified else None,
            )
        if isinstance(verdict, str):
            return self._from_string(tool_name, verdict)
        logger.warning("Unrecognised approval verdict %r; denying", verdict)
        return ApprovalDecision(approved=False, deny_reason="Denied by user")

    def _from_string(self, tool_name: str, verdict: str) -> ApprovalDecision:
        if verdict == "allow":
            return ApprovalDecision(approved=True)
        if verdict == "allow_always":
            self.allow_for_session(tool_name)
            return ApprovalDecision(approved=True)
        if verdict in ("allow_project", "allow_global"):
            self.allow_for_session(tool_name)
            if self.store is not None:
                if verdict == "allow_project":
                    self.store.add_project(tool_name)
                else:
                    self.store.add_global(tool_name)
            return ApprovalDecision(approved=True)
        return ApprovalDecision(approved=False, deny_reason="Denied by user")
