"""Tests for the individual language-model backends."""

import os
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from mily.config import Settings
from mily.errors import ConfigError, ProviderError
from mily.llm.models import ProviderKind
from mily.llm.providers import (
    HOSTED_SYSTEM_PROMPT,
    OFFLINE_REPLY,
    GenericEndpointProvider,
    HostedAPIProvider,
    LocalModelProvider,
    OfflineProvider,
    SelfHostedProvider,
    build_provider,
)

ENDPOINT = "http://llm.local/generate"


def _mock_httpx_client(mock_client_cls: MagicMock, response: httpx.Response) -> AsyncMock:
    """Wire up an AsyncClient context-manager mock that returns *response*."""
    mock_client = AsyncMock()
    mock_client.post.return_value = response
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


def _json_response(body: dict, status_code: int = 200, url: str = ENDPOINT) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        json=body,
        request=httpx.Request("POST", url),
    )


# ---------------------------------------------------------------------------
# GenericEndpoint
# ---------------------------------------------------------------------------


async def test_endpoint_returns_text() -> None:
    with patch("mily.llm.providers.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(mock_cls, _json_response({"text": "halo juga"}))
        reply = await GenericEndpointProvider(ENDPOINT).generate("halo")

    assert reply == "halo juga"
    args, kwargs = mock_client.post.call_args
    assert args[0] == ENDPOINT
    assert kwargs["json"] == {"prompt": "halo"}


async def test_endpoint_ignores_extra_fields() -> None:
    with patch("mily.llm.providers.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, _json_response({"text": "ok", "tokens": 3}))
        assert await GenericEndpointProvider(ENDPOINT).generate("x") == "ok"


async def test_endpoint_non_2xx_is_error() -> None:
    with patch("mily.llm.providers.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, _json_response({"text": "nope"}, status_code=503))
        with pytest.raises(ProviderError, match="503"):
            await GenericEndpointProvider(ENDPOINT).generate("x")


async def test_endpoint_missing_text_is_error() -> None:
    with patch("mily.llm.providers.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, _json_response({"reply": "wrong key"}))
        with pytest.raises(ProviderError, match="Malformed"):
            await GenericEndpointProvider(ENDPOINT).generate("x")


async def test_endpoint_non_json_is_error() -> None:
    resp = httpx.Response(200, text="<html>oops</html>", request=httpx.Request("POST", ENDPOINT))
    with patch("mily.llm.providers.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, resp)
        with pytest.raises(ProviderError):
            await GenericEndpointProvider(ENDPOINT).generate("x")


async def test_endpoint_transport_error_is_provider_error() -> None:
    with patch("mily.llm.providers.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(mock_cls, _json_response({}))
        mock_client.post.side_effect = httpx.ConnectError("connection refused")
        with pytest.raises(ProviderError, match="connection refused") as excinfo:
            await GenericEndpointProvider(ENDPOINT).generate("x")

    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


async def test_endpoint_malformed_url_is_provider_error() -> None:
    with pytest.raises(ProviderError) as excinfo:
        await GenericEndpointProvider("http://[::1/generate").generate("x")

    assert isinstance(excinfo.value.__cause__, httpx.InvalidURL)


def test_endpoint_requires_url() -> None:
    with pytest.raises(ConfigError):
        GenericEndpointProvider("")


# ---------------------------------------------------------------------------
# SelfHosted (Ollama)
# ---------------------------------------------------------------------------


async def test_ollama_request_shape() -> None:
    url = "http://127.0.0.1:11434/api/generate"
    with patch("mily.llm.providers.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(mock_cls, _json_response({"response": "hi"}, url=url))
        provider = SelfHostedProvider(base_url="", model="llama3.1:8b", temperature=0.6)
        reply = await provider.generate("prompt text")

    assert reply == "hi"
    args, kwargs = mock_client.post.call_args
    assert args[0] == url
    assert kwargs["json"] == {
        "model": "llama3.1:8b",
        "prompt": "prompt text",
        "stream": False,
        "temperature": 0.6,
    }


async def test_ollama_strips_trailing_slash() -> None:
    with patch("mily.llm.providers.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(mock_cls, _json_response({"response": "hi"}))
        await SelfHostedProvider("http://gpu-box:11434/", "phi3", 0.2).generate("x")

    assert mock_client.post.call_args.args[0] == "http://gpu-box:11434/api/generate"


async def test_ollama_missing_response_is_error() -> None:
    with patch("mily.llm.providers.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, _json_response({"error": "model not found"}))
        with pytest.raises(ProviderError):
            await SelfHostedProvider("", "missing", 0.6).generate("x")


async def test_ollama_http_error_status() -> None:
    with patch("mily.llm.providers.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, _json_response({"error": "boom"}, status_code=500))
        with pytest.raises(ProviderError, match="500"):
            await SelfHostedProvider("", "llama3.1:8b", 0.6).generate("x")


# ---------------------------------------------------------------------------
# HostedAPI (OpenAI)
# ---------------------------------------------------------------------------


def _openai_client(response) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


async def test_hosted_api_sends_system_and_user_messages() -> None:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content="Halo!"))]
    client = _openai_client(response)

    provider = HostedAPIProvider(api_key="sk-test", model="gpt-4o-mini", temperature=0.6)
    with patch.object(provider, "_get_client", return_value=client):
        reply = await provider.generate("apa kabar?")

    assert reply == "Halo!"
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["temperature"] == 0.6
    assert kwargs["messages"] == [
        {"role": "system", "content": HOSTED_SYSTEM_PROMPT},
        {"role": "user", "content": "apa kabar?"},
    ]


async def test_hosted_api_no_choices_is_error() -> None:
    response = MagicMock()
    response.choices = []
    provider = HostedAPIProvider(api_key="sk-test", model="gpt-4o-mini", temperature=0.6)
    with patch.object(provider, "_get_client", return_value=_openai_client(response)):
        with pytest.raises(ProviderError, match="no choices"):
            await provider.generate("x")


async def test_hosted_api_null_content_is_empty_string() -> None:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=None))]
    provider = HostedAPIProvider(api_key="sk-test", model="gpt-4o-mini", temperature=0.6)
    with patch.object(provider, "_get_client", return_value=_openai_client(response)):
        assert await provider.generate("x") == ""


async def test_hosted_api_sdk_error_is_provider_error() -> None:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=openai.OpenAIError("rate limited"))
    provider = HostedAPIProvider(api_key="sk-test", model="gpt-4o-mini", temperature=0.6)
    with patch.object(provider, "_get_client", return_value=client):
        with pytest.raises(ProviderError, match="rate limited"):
            await provider.generate("x")


def test_hosted_api_requires_key() -> None:
    with pytest.raises(ConfigError):
        HostedAPIProvider(api_key="", model="gpt-4o-mini", temperature=0.6)


# ---------------------------------------------------------------------------
# LocalModel (llama.cpp)
# ---------------------------------------------------------------------------


def test_local_model_thread_default() -> None:
    provider = LocalModelProvider("/models/m.gguf", None, 0.6)
    assert provider.n_threads == (os.cpu_count() or 1)


def test_local_model_explicit_threads() -> None:
    assert LocalModelProvider("/models/m.gguf", 3, 0.6).n_threads == 3


async def test_local_model_accumulates_streamed_tokens() -> None:
    fake_llm = MagicMock()
    fake_llm.create_completion.return_value = iter(
        [{"choices": [{"text": "Ha"}]}, {"choices": [{"text": "lo"}]}, {"choices": [{"text": "!"}]}]
    )
    provider = LocalModelProvider("/models/m.gguf", 2, 0.3)
    provider._llm = fake_llm

    assert await provider.generate("hai") == "Halo!"
    kwargs = fake_llm.create_completion.call_args.kwargs
    assert kwargs["temperature"] == 0.3
    assert kwargs["stream"] is True


async def test_local_model_inference_failure() -> None:
    fake_llm = MagicMock()
    fake_llm.create_completion.side_effect = RuntimeError("context overflow")
    provider = LocalModelProvider("/models/m.gguf", 2, 0.6)
    provider._llm = fake_llm

    with pytest.raises(ProviderError, match="context overflow"):
        await provider.generate("x")


async def test_local_model_load_failure(monkeypatch) -> None:
    monkeypatch.setitem(sys.modules, "llama_cpp", None)
    provider = LocalModelProvider("/models/missing.gguf", 1, 0.6)

    with pytest.raises(ProviderError):
        await provider.generate("x")


def test_local_model_requires_path() -> None:
    with pytest.raises(ConfigError):
        LocalModelProvider("", None, 0.6)


# ---------------------------------------------------------------------------
# Offline + factory
# ---------------------------------------------------------------------------


async def test_offline_returns_fixed_reply() -> None:
    assert await OfflineProvider().generate("anything") == OFFLINE_REPLY


def test_build_provider_missing_endpoint_is_config_error() -> None:
    with pytest.raises(ConfigError, match="llm_endpoint"):
        build_provider(ProviderKind.GENERIC_ENDPOINT, Settings())


def test_build_provider_self_hosted_uses_default_url() -> None:
    provider = build_provider(ProviderKind.SELF_HOSTED, Settings())
    assert provider.base_url == "http://127.0.0.1:11434"
    assert provider.model == "llama3.1:8b"


def test_build_provider_passes_temperature() -> None:
    provider = build_provider(ProviderKind.HOSTED_API, Settings(openai_api_key="sk", temperature=0.9))
    assert provider.temperature == 0.9
