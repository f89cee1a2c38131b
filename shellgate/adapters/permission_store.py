"""Persistent allow-list of tools that no longer need approval.

Two files, merged on load:
- Global: ~/.shellgate/allowed_tools.json
- Project: <project>/.shellgate/allowed_tools.json

Risky shell calls are confirmed every time regardless of this list.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

GLOBAL_DIR = Path.home() / ".shellgate"
FILENAME = "allowed_tools.json"


class AllowListStore:
    """Load and save tools approved with allow_project / allow_global."""

    def __init__(
        self,
        project_dir: Path | None = None,
        global_dir: Path | None = None,
    ) -> None:
        self._global_path = (global_dir or GLOBAL_DIR) / FILENAME
        self._project_path = (
            project_dir / ".shellgate" / FILENAME if project_dir else None
        )

    @property
    def global_path(self) -> Path:
        return self._global_path

    @property
    def project_path(self) -> Path | None:
        return self._project_path

    def load(self) -> set[str]:
        allowed = self._read(self._global_path)
        if self._project_path:
            allowed |= self._read(self._project_path)
        if allowed:
            logger.info("Loaded %d pre-approved tool(s): %s",
                        len(allowed), ", ".join(sorted(allowed)))
        return allowed

    def add_project(self, tool_name: str) -> None:
        if self._project_path is None:
            # No project context
            self.add_global(tool_name)
            return
        self._add(self._project_path, tool_name)

    def add_global(self, tool_name: str) -> None:
        self._add(self._global_path, tool_name)

    @staticmethod
    def _read(path: Path) -> set[str]:
        if not path.exists():
            return set()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Failed to load %s: %s", path, exc)
            return set()
        if not isinstance(data, list):
            logger.warning("Ignoring %s: expected a JSON list", path)
            return set()
        return {str(name) for name in data}

    @classmethod
    def _add(cls, path: Path, tool_name: str) -> None:
        names = cls._read(path)
        if tool_name in names:
            return
        names.add(tool_name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(sorted(names), indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to write %s: %s", path, exc)
            return
        logger.info("Saved %s to %s", tool_name, path)
