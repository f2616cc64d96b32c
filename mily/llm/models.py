"""Provider selection from configuration."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mily.config import Settings

logger = logging.getLogger(__name__)


class ProviderKind(StrEnum):
    """The backend variants a client can dispatch to."""

    OFFLINE = "offline"
    HOSTED_API = "hosted_api"
    SELF_HOSTED = "self_hosted"
    GENERIC_ENDPOINT = "generic_endpoint"
    LOCAL_MODEL = "local_model"


def select_provider(settings: Settings) -> ProviderKind:
    """Pick the active provider for *settings*.

    Each configured backend overwrites the previous choice, so the last
    satisfied check wins: local model > generic endpoint > self-hosted >
    hosted API > offline.
    """
    kind = ProviderKind.OFFLINE
    if settings.openai_api_key:
        kind = ProviderKind.HOSTED_API
    if settings.ollama_url:
        kind = ProviderKind.SELF_HOSTED
    if settings.llm_endpoint:
        kind = ProviderKind.GENERIC_ENDPOINT
    if settings.llama_model_path:
        kind = ProviderKind.LOCAL_MODEL
    return kind
