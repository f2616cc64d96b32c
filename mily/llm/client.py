"""Provider dispatcher: one uniform ``generate`` over the configured backend."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mily.errors import ProviderError
from mily.llm.models import ProviderKind, select_provider
from mily.llm.providers import build_provider

if TYPE_CHECKING:
    from mily.config import Settings
    from mily.llm.providers import LLMProvider

logger = logging.getLogger(__name__)


class LLMClient:
    """Dispatches prompts to exactly one provider.

    The provider is chosen once from *settings* at construction and kept for
    the client's lifetime. Failures surface as ``ProviderError``; there is no
    retry and no fallback to another backend here.
    """

    def __init__(self, settings: Settings) -> None:
        self._kind = select_provider(settings)
        self._provider: LLMProvider = build_provider(self._kind, settings)
        self.total_calls = 0
        self.failures = 0
        logger.info("LLM provider: %s", self._kind)

    @property
    def kind(self) -> ProviderKind:
        return self._kind

    @property
    def provider(self) -> LLMProvider:
        return self._provider

    async def generate(self, prompt: str) -> str:
        """Turn *prompt* into a reply via the active provider."""
        self.total_calls += 1
        logger.debug("Generating via %s (%d chars)", self._kind, len(prompt))
        try:
            return await self._provider.generate(prompt)
        except ProviderError as exc:
            self.failures += 1
            logger.warning("Provider %s failed: %s", self._kind, exc.reason)
            raise

    def stats(self) -> dict:
        """Dispatcher usage statistics."""
        return {
            "provider": str(self._kind),
            "total_calls": self.total_calls,
            "failures": self.failures,
        }
