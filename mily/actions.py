"""Policy-gated actions on the local machine.

Every action is checked against the ``PolicyGuard`` first. A denied action
raises ``PolicyViolation`` and is never performed.
"""

from __future__ import annotations

import logging
import subprocess
import webbrowser
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mily.security import PolicyGuard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenUrl:
    url: str


@dataclass(frozen=True)
class LaunchApp:
    app: str
    args: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReadFile:
    path: Path


@dataclass(frozen=True)
class WriteFile:
    path: Path
    content: str


Action = OpenUrl | LaunchApp | ReadFile | WriteFile


class ActionExecutor:
    """Runs actions after the guard approves them."""

    def __init__(self, guard: PolicyGuard) -> None:
        self._guard = guard

    def execute(self, action: Action) -> str:
        """Perform *action* and return a short result (file content for reads)."""
        if isinstance(action, OpenUrl):
            self._guard.require_url(action.url)
            webbrowser.open(action.url)
            logger.info("Opened URL: %s", action.url)
            return f"Opened URL: {action.url}"

        if isinstance(action, LaunchApp):
            self._guard.require_app(action.app)
            subprocess.Popen([action.app, *action.args])  # noqa: S603
            command = " ".join([action.app, *action.args])
            logger.info("Launched: %s", command)
            return f"Launched: {command}"

        if isinstance(action, ReadFile):
            self._guard.require_path(action.path)
            return Path(action.path).read_text(encoding="utf-8")

        if isinstance(action, WriteFile):
            self._guard.require_path(action.path)
            Path(action.path).write_text(action.content, encoding="utf-8")
            logger.info("Wrote: %s", action.path)
            return f"Wrote: {action.path}"

        msg = f"Unknown action: {action!r}"
        raise TypeError(msg)
