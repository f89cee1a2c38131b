"""YAML configuration loader.

Example YAML:
    shell:
      approval_mode: autoEdit
      default_timeout_ms: 60000
      max_timeout_ms: 300000
      background_prompt_after_seconds: 10
      allowed_tools: [bash_output]
      shell: /bin/zsh
      cwd: /path/to/project

Values not given keep the ShellConfig defaults. Environment variables
are not consulted; use ShellConfig.from_env() for that.
"""
from __future__ import annotations

import logging
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from .config import ShellConfig

logger = logging.getLogger(__name__)

# YAML spellings that differ from the dataclass field names.
_ALIASES = {
    "cwd": "default_cwd",
    "timeout_ms": "default_timeout_ms",
    "mode": "approval_mode",
}

_NOT_CONFIGURABLE = {"event_callback", "approval_callback"}


def _shell_section(raw: Any, path: Path) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    section = raw.get("shell") or {}
    if not isinstance(section, dict):
        raise ValueError(f"{path}: 'shell' must be a mapping")
    return section


def parse_shell_config(section: dict[str, Any]) -> ShellConfig:
    """Build a ShellConfig from the ``shell:`` mapping."""
    known = {f.name for f in fields(ShellConfig)} - _NOT_CONFIGURABLE
    kwargs: dict[str, Any] = {}
    for key, value in section.items():
        name = _ALIASES.get(key, key)
        if name not in known:
            logger.warning("Ignoring unknown shell config key: %s", key)
            continue
        kwargs[name] = value
    if "allowed_tools" in kwargs:
        kwargs["allowed_tools"] = [str(t) for t in kwargs["allowed_tools"] or []]
    for name in ("default_timeout_ms", "max_timeout_ms"):
        if name in kwargs:
            kwargs[name] = int(kwargs[name])
    for name in (
        "background_check_interval_seconds",
        "background_prompt_after_seconds",
        "kill_grace_seconds",
    ):
        if name in kwargs:
            kwargs[name] = float(kwargs[name])
    return ShellConfig(**kwargs)


def load_yaml_config(path: str | Path) -> ShellConfig:
    """Load a ShellConfig from the ``shell:`` section of a YAML file."""
    path = Path(path)
    logger.info("load_yaml_config: loading %s", path)
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error(
            "load_yaml_config: config file not found at %s (absolute path: %s)",
            path, path.absolute(),
        )
        raise
    except yaml.YAMLError as exc:
        logger.error("load_yaml_config: YAML parse error in %s: %s", path, exc)
        raise
    config = parse_shell_config(_shell_section(raw, path))
    logger.info(
        "load_yaml_config: mode=%s shell=%s cwd=%s",
        config.approval_mode.value, config.resolved_shell, config.default_cwd,
    )
    return config
