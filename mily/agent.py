"""Conversational agent: recall, prompt, generate, record."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mily.errors import ProviderError
from mily.llm.client import LLMClient
from mily.llm.prompt import build_learn_instruction, build_prompt
from mily.memory.store import MemoryStore

if TYPE_CHECKING:
    from mily.config import Settings

logger = logging.getLogger(__name__)

RESPOND_RECALL_PAIRS = 8
LEARN_RECALL_PAIRS = 4

UNAVAILABLE_REPLY = "Maaf, saya sedang tidak bisa menjawab. Coba lagi sebentar lagi."
SUMMARY_UNAVAILABLE = "Ringkasan tidak tersedia saat ini."


@dataclass(frozen=True)
class AgentProfile:
    """Identity of the agent, fixed for its lifetime."""

    name: str
    curiosity: float
    persona: str

    @classmethod
    def from_settings(cls, settings: Settings) -> AgentProfile:
        return cls(
            name=settings.agent_name,
            curiosity=settings.curiosity,
            persona=settings.persona,
        )


class Agent:
    """Single-session conversational agent.

    Owns its memory store and LLM client. Not safe for concurrent
    ``respond``/``learn`` calls on one instance; callers take turns.

    Args:
        settings: Immutable configuration.
        memory: Override the memory store (tests).
        llm: Override the LLM client (tests).
    """

    def __init__(
        self,
        settings: Settings,
        *,
        memory: MemoryStore | None = None,
        llm: LLMClient | None = None,
    ) -> None:
        self._profile = AgentProfile.from_settings(settings)
        self._memory = memory or MemoryStore.from_settings(settings)
        self._llm = llm or LLMClient(settings)
        self.fallback_count = 0

    @property
    def profile(self) -> AgentProfile:
        return self._profile

    @property
    def memory(self) -> MemoryStore:
        return self._memory

    @property
    def llm(self) -> LLMClient:
        return self._llm

    async def _generate_or(self, prompt: str, fallback: str) -> str:
        """Generate a reply, substituting *fallback* if the provider fails."""
        try:
            reply = await self._llm.generate(prompt)
        except ProviderError as exc:
            self.fallback_count += 1
            logger.warning("Provider unavailable, using fallback reply: %s", exc.reason)
            return fallback

        if not reply.strip():
            self.fallback_count += 1
            logger.warning("Provider returned an empty reply, using fallback")
            return fallback
        return reply

    async def respond(self, utterance: str) -> str:
        """Answer *utterance* and record the exchange.

        Provider failures are masked with a fixed reply. Storage failures
        propagate as ``StorageError``.
        """
        context = await asyncio.to_thread(self._memory.recall_recent, RESPOND_RECALL_PAIRS)
        prompt = build_prompt(self._profile, context, utterance)
        reply = await self._generate_or(prompt, UNAVAILABLE_REPLY)
        await asyncio.to_thread(self._memory.append_interaction, utterance, reply)
        return reply

    async def learn(self, source_label: str, text: str) -> str:
        """Summarize *text* fetched from *source_label* and remember it."""
        instruction = build_learn_instruction(source_label, text)
        context = await asyncio.to_thread(self._memory.recall_recent, LEARN_RECALL_PAIRS)
        prompt = build_prompt(self._profile, context, instruction)
        summary = await self._generate_or(prompt, SUMMARY_UNAVAILABLE)
        await asyncio.to_thread(
            self._memory.append_interaction, f"LEARN FROM: {source_label}", summary
        )
        logger.info("Learned from %s (%d chars)", source_label, len(text))
        return summary
