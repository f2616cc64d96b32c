"""Capability policy for externally visible actions.

Three checks, each returning a ``PolicyDecision``:

- URLs: deny-list then allow-list of host suffixes. A URL with no
  extractable host is allowed.
- Paths: must sit inside a configured allow directory. No directories
  configured means every path is denied.
- Apps: case-insensitive match against allowed executable names. No list
  configured means every app is denied.

The guard only decides. Callers perform the action themselves, after
``require_*`` has passed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from mily.errors import PolicyViolation

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mily.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of one policy check. ``reason`` is empty when allowed."""

    allowed: bool
    reason: str = ""

    @classmethod
    def allow(cls) -> PolicyDecision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> PolicyDecision:
        return cls(allowed=False, reason=reason)


def _canonical(path: str | Path) -> Path:
    """Resolve symlinks and relative segments; fall back to the absolute path."""
    p = Path(path).expanduser()
    try:
        return p.resolve()
    except (OSError, RuntimeError):
        return p.absolute()


def _host_of(url: str) -> str | None:
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


class PolicyGuard:
    """Allow/deny evaluator for URL, filesystem and process actions.

    ``None`` for a rule set means it is not configured.
    """

    def __init__(
        self,
        allow_domains: Iterable[str] | None = None,
        deny_domains: Iterable[str] | None = None,
        allow_dirs: Iterable[str | Path] | None = None,
        allow_apps: Iterable[str] | None = None,
    ) -> None:
        self.allow_domains = None if allow_domains is None else tuple(allow_domains)
        self.deny_domains = None if deny_domains is None else tuple(deny_domains)
        self.allow_dirs = None if allow_dirs is None else tuple(Path(d) for d in allow_dirs)
        self.allow_apps = None if allow_apps is None else tuple(allow_apps)

    @classmethod
    def from_settings(cls, settings: Settings) -> PolicyGuard:
        return cls(
            allow_domains=settings.get_allow_domains(),
            deny_domains=settings.get_deny_domains(),
            allow_dirs=settings.get_allow_dirs(),
            allow_apps=settings.get_allow_apps(),
        )

    # -- Checks ----------------------------------------------------------------

    def check_url(self, url: str) -> PolicyDecision:
        """Check a URL against the domain rules.

        Matching is a plain ``host.endswith(suffix)``, so ``example.com``
        also matches ``evil-example.com``.
        """
        host = _host_of(url)
        if not host:
            return PolicyDecision.allow()

        if self.deny_domains and any(host.endswith(d) for d in self.deny_domains):
            return self._denied(f"Domain denied: {host}")
        if self.allow_domains and not any(host.endswith(a) for a in self.allow_domains):
            return self._denied(f"Domain not in allowlist: {host}")
        return PolicyDecision.allow()

    def check_path(self, path: str | Path) -> PolicyDecision:
        """Check that *path* resolves inside one of the allowed directories."""
        if self.allow_dirs is None:
            return self._denied("No allow_dirs configured")

        target = _canonical(path)
        for d in self.allow_dirs:
            if target.is_relative_to(_canonical(d)):
                return PolicyDecision.allow()
        return self._denied(f"Path not allowed: {target}")

    def check_app(self, app: str) -> PolicyDecision:
        """Check *app* against the allowed executable names."""
        if self.allow_apps is None:
            return self._denied("No allow_apps configured")

        wanted = app.casefold()
        if any(a.casefold() == wanted for a in self.allow_apps):
            return PolicyDecision.allow()
        return self._denied(f"App not allowed: {app}")

    # -- Enforcement -----------------------------------------------------------

    @staticmethod
    def enforce(decision: PolicyDecision) -> None:
        """Raise ``PolicyViolation`` if *decision* is a denial."""
        if not decision.allowed:
            raise PolicyViolation(decision.reason)

    def require_url(self, url: str) -> None:
        self.enforce(self.check_url(url))

    def require_path(self, path: str | Path) -> None:
        self.enforce(self.check_path(path))

    def require_app(self, app: str) -> None:
        self.enforce(self.check_app(app))

    @staticmethod
    def _denied(reason: str) -> PolicyDecision:
        logger.warning("Policy denied: %s", reason)
        return PolicyDecision.deny(reason)
