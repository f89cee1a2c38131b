"""Command risk classification.

Best-effort gating of shell command text: root extraction, a quote-aware
scan for command substitution, pipeline splitting, and a fixed set of
dangerous patterns and banned roots. This is a denylist, not a sandbox.

Pattern matching runs on the raw segment text, so a dangerous-looking
substring inside quotes (``echo "rm -rf /"``) still flags its segment.
"""
from __future__ import annotations

import re
from collections.abc import Iterator

from .models import RiskClassification

BANNED_COMMANDS: frozenset[str] = frozenset({
    "alias",
    "aria2c",
    "axel",
    "bash",
    "chrome",
    "curl",
    "curlie",
    "eval",
    "firefox",
    "fish",
    "http-prompt",
    "httpie",
    "links",
    "lynx",
    "nc",
    "rm",
    "safari",
    "sh",
    "source",
    "telnet",
    "w3m",
    "wget",
    "xh",
    "zsh",
})

HIGH_RISK_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"rm\s+.*(-rf|--recursive)", re.IGNORECASE),
    re.compile(r"sudo", re.IGNORECASE),
    re.compile(r"dd\s+if=", re.IGNORECASE),
    re.compile(r"mkfs", re.IGNORECASE),
    re.compile(r"fdisk", re.IGNORECASE),
    re.compile(r"format", re.IGNORECASE),
    re.compile(r"del\s+.*/[qs]", re.IGNORECASE),
)

# Download-and-execute checked against the whole command before any
# segment splitting.
PIPE_TO_SHELL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"curl.*\|.*sh", re.IGNORECASE),
    re.compile(r"wget.*\|.*sh", re.IGNORECASE),
)

_GROUPING_CHARS = re.compile(r"[{}()]")
_TOKEN_SEPARATORS = re.compile(r"[\s;&|]+")
_PATH_SEPARATORS = re.compile(r"[/\\]")


def get_command_root(command: str) -> str | None:
    """Return the program name a command starts with, or None."""
    cleaned = _GROUPING_CHARS.sub("", command.strip())
    first = _TOKEN_SEPARATORS.split(cleaned)[0] if cleaned else ""
    root = _PATH_SEPARATORS.split(first)[-1] if first else ""
    return root or None


def _scan(command: str) -> Iterator[tuple[int, str, bool]]:
    """Yield ``(index, char, in_double_quotes)`` for every character that
    is outside single quotes and not escaped.

    Quote characters themselves are consumed. A backslash escapes the
    character after it.
    """
    in_single = False
    in_double = False
    escaped = False
    for i, ch in enumerate(command):
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            continue
        if ch == "'" and not in_double:
            in_single = not in_single
            continue
        if ch == '"' and not in_single:
            in_double = not in_double
            continue
        if in_single:
            continue
        yield i, ch, in_double


def has_command_substitution(command: str) -> bool:
    """True if the command contains a backtick or ``$(`` outside single
    quotes. Escaped characters never count."""
    for i, ch, _ in _scan(command):
        if ch == "`":
            return True
        if ch == "$" and command[i + 1:i + 2] == "(":
            return True
    return False


def split_pipeline_segments(command: str) -> list[str]:
    """Split on ``|`` that sits outside any quotes.

    Segments are stripped and empty segments dropped, so ``a || b``
    yields two segments.
    """
    segments: list[str] = []
    start = 0
    for i, ch, in_double in _scan(command):
        if ch == "|" and not in_double:
            segments.append(command[start:i])
            start = i + 1
    segments.append(command[start:])
    return [s.strip() for s in segments if s.strip()]


def is_banned_command(root: str | None) -> bool:
    if not root:
        return False
    return root.lower() in BANNED_COMMANDS


def _is_segment_high_risk(segment: str) -> bool:
    if has_command_substitution(segment):
        return True
    root = get_command_root(segment)
    if root is None:
        return True
    if any(p.search(segment) for p in HIGH_RISK_PATTERNS):
        return True
    return is_banned_command(root)


def is_high_risk_command(command: str) -> bool:
    """A pipeline is high-risk if any of its segments is."""
    if any(p.search(command) for p in PIPE_TO_SHELL_PATTERNS):
        return True
    if "|" in command:
        segments = split_pipeline_segments(command)
        if segments:
            return any(_is_segment_high_risk(s) for s in segments)
    return _is_segment_high_risk(command)


def validate_command(command: str) -> str | None:
    """Return a rejection reason, or None if the command may run.

    Runs before any process is spawned, regardless of approval mode.
    """
    if not command.strip():
        return "Command cannot be empty."
    if get_command_root(command) is None:
        return "Could not identify command root."
    if has_command_substitution(command):
        return "Command substitution is not allowed for security reasons."
    return None


def classify(command: str) -> RiskClassification:
    root = get_command_root(command)
    return RiskClassification(
        root_command=root,
        has_substitution=has_command_substitution(command),
        is_banned=is_banned_command(root),
        is_high_risk=is_high_risk_command(command),
    )
