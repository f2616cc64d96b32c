"""Language-model backends.

Every provider exposes ``async generate(prompt) -> str`` and reports
failures as ``ProviderError``. Supported backends:

- GenericEndpoint: any HTTP service speaking ``{"prompt"} -> {"text"}``
- HostedAPI: OpenAI chat completions
- SelfHosted: Ollama ``/api/generate``
- LocalModel: llama.cpp in-process inference
- Offline: fixed reply, no network
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING, Any, Protocol

import httpx
import openai
from pydantic import BaseModel, ValidationError

from mily.errors import ConfigError, ProviderError
from mily.llm.models import ProviderKind

if TYPE_CHECKING:
    from mily.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://127.0.0.1:11434"
LOCAL_MAX_TOKENS = 512

OFFLINE_REPLY = "[offline] Connect a local LLM or set llm_endpoint"

HOSTED_SYSTEM_PROMPT = (
    "You are Mily, a warm, natural, concise Indonesian conversationalist. "
    "Match the user's tone (friendly, caring). "
    "Prefer 1-3 sentences unless asked for detail."
)


class LLMProvider(Protocol):
    """Protocol for language-model backends."""

    name: str

    async def generate(self, prompt: str) -> str: ...


class _EndpointReply(BaseModel):
    text: str


class _OllamaReply(BaseModel):
    response: str


async def _post_json(url: str, payload: dict[str, Any]) -> httpx.Response:
    """POST *payload* and return the response, mapping transport errors."""
    try:
        async with httpx.AsyncClient(timeout=None) as client:
            resp = await client.post(url, json=payload)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise ProviderError(f"Request to {url} failed: {exc}") from exc

    if not resp.is_success:
        raise ProviderError(f"LLM request failed: {resp.status_code}")
    return resp


# =============================================================================
# Generic HTTP endpoint
# =============================================================================


class GenericEndpointProvider:
    """Single POST to a user-supplied URL."""

    name = ProviderKind.GENERIC_ENDPOINT

    def __init__(self, url: str) -> None:
        if not url:
            raise ConfigError("llm_endpoint not configured")
        self.url = url

    async def generate(self, prompt: str) -> str:
        resp = await _post_json(self.url, {"prompt": prompt})
        try:
            return _EndpointReply.model_validate_json(resp.content).text
        except ValidationError as exc:
            raise ProviderError(f"Malformed endpoint response: {exc}") from exc


# =============================================================================
# OpenAI
# =============================================================================


class HostedAPIProvider:
    """OpenAI chat completions with a fixed persona preamble."""

    name = ProviderKind.HOSTED_API

    def __init__(self, api_key: str, model: str, temperature: float) -> None:
        if not api_key:
            raise ConfigError("OPENAI_API_KEY not set")
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self._client = None

    def _get_client(self):
        """Lazily initialize the OpenAI client."""
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def generate(self, prompt: str) -> str:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": HOSTED_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
        except openai.OpenAIError as exc:
            raise ProviderError(f"OpenAI request failed: {exc}") from exc

        if not response.choices:
            raise ProviderError("no choices")
        return response.choices[0].message.content or ""


# =============================================================================
# Ollama
# =============================================================================


class SelfHostedProvider:
    """Non-streaming generate call against an Ollama server."""

    name = ProviderKind.SELF_HOSTED

    def __init__(self, base_url: str, model: str, temperature: float) -> None:
        self.base_url = (base_url or DEFAULT_OLLAMA_URL).rstrip("/")
        self.model = model
        self.temperature = temperature

    async def generate(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "temperature": self.temperature,
        }
        resp = await _post_json(f"{self.base_url}/api/generate", payload)
        try:
            return _OllamaReply.model_validate_json(resp.content).response
        except ValidationError as exc:
            raise ProviderError(f"Malformed Ollama response: {exc}") from exc


# =============================================================================
# llama.cpp
# =============================================================================


class LocalModelProvider:
    """In-process inference with llama-cpp-python.

    The model file is loaded on first use. Loading and inference are
    blocking, so both run in a worker thread.
    """

    name = ProviderKind.LOCAL_MODEL

    def __init__(self, model_path: str, n_threads: int | None, temperature: float) -> None:
        if not model_path:
            raise ConfigError("llama_model_path not configured")
        self.model_path = model_path
        self.n_threads = n_threads or os.cpu_count() or 1
        self.temperature = temperature
        self._llm: Any = None

    def _load(self) -> Any:
        if self._llm is None:
            from llama_cpp import Llama

            self._llm = Llama(
                model_path=self.model_path,
                n_threads=self.n_threads,
                verbose=False,
            )
            logger.info("Loaded local model %s (%d threads)", self.model_path, self.n_threads)
        return self._llm

    def _complete(self, prompt: str) -> str:
        llm = self._load()
        output = ""
        for chunk in llm.create_completion(
            prompt,
            temperature=self.temperature,
            max_tokens=LOCAL_MAX_TOKENS,
            stream=True,
        ):
            output += chunk["choices"][0]["text"]
        return output

    async def generate(self, prompt: str) -> str:
        try:
            return await asyncio.to_thread(self._complete, prompt)
        except Exception as exc:
            raise ProviderError(f"Local model inference failed: {exc}") from exc


# =============================================================================
# Offline
# =============================================================================


class OfflineProvider:
    """Placeholder backend so the agent runs without any model configured."""

    name = ProviderKind.OFFLINE

    async def generate(self, prompt: str) -> str:
        return OFFLINE_REPLY


def build_provider(kind: ProviderKind, settings: Settings) -> LLMProvider:
    """Construct the provider for *kind* from *settings*.

    Raises ``ConfigError`` when the setting the variant needs is missing.
    """
    if kind is ProviderKind.GENERIC_ENDPOINT:
        return GenericEndpointProvider(settings.llm_endpoint)
    if kind is ProviderKind.HOSTED_API:
        return HostedAPIProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            temperature=settings.temperature,
        )
    if kind is ProviderKind.SELF_HOSTED:
        return SelfHostedProvider(
            base_url=settings.ollama_url,
            model=settings.ollama_model,
            temperature=settings.temperature,
        )
    if kind is ProviderKind.LOCAL_MODEL:
        return LocalModelProvider(
            model_path=settings.llama_model_path,
            n_threads=settings.llama_n_threads,
            temperature=settings.temperature,
        )
    return OfflineProvider()
