"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


def _split(value: str | None, sep: str) -> list[str] | None:
    """Split a delimited setting, keeping ``None`` for "not configured"."""
    if value is None:
        return None
    return [part.strip() for part in value.split(sep) if part.strip()]


class Settings(BaseSettings):
    """Mily configuration. Values come from ``MILYAI_*`` environment variables.

    Built once at startup and handed to each component; frozen so nothing
    can change it mid-session.
    """

    # Agent profile
    agent_name: str = Field(default="Mily")
    persona: str = Field(default="Ramah, ingin tahu, membantu")
    curiosity: float = Field(default=0.6, ge=0.0, le=1.0)

    # Generic HTTP endpoint
    llm_endpoint: str = Field(default="")

    # Conversation log
    memory_path: Path = Field(default=Path("data/memory.ndjson"))

    # OpenAI (hosted chat API)
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("openai_api_key", "milyai_openai_api_key"),
    )
    openai_model: str = Field(default="gpt-4o-mini")

    # Ollama (self-hosted inference server)
    ollama_url: str = Field(default="")
    ollama_model: str = Field(default="llama3.1:8b")

    # llama.cpp (local in-process model)
    llama_model_path: str = Field(default="")
    llama_n_threads: int | None = Field(default=None, ge=1)

    # Sampling
    temperature: float = Field(default=0.6)

    # Capability policy
    allow_domains: str | None = Field(default=None)
    deny_domains: str | None = Field(default=None)
    allow_dirs: str | None = Field(default=None)
    allow_apps: str | None = Field(default=None)

    # Web fetching
    web_user_agent: str = Field(default="MilyAI/0.1 (+https://example.com)")
    respect_robots: bool = Field(default=True)
    learn_urls: str = Field(default="")
    learn_interval_secs: int = Field(default=3600, ge=1)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="MILYAI_",
        env_file=_env_file(),
        env_file_encoding="utf-8",
        extra="forbid",
        frozen=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def get_allow_domains(self) -> list[str] | None:
        """Parse MILYAI_ALLOW_DOMAINS (comma-separated host suffixes)."""
        return _split(self.allow_domains, ",")

    def get_deny_domains(self) -> list[str] | None:
        """Parse MILYAI_DENY_DOMAINS (comma-separated host suffixes)."""
        return _split(self.deny_domains, ",")

    def get_allow_dirs(self) -> list[Path] | None:
        """Parse MILYAI_ALLOW_DIRS (semicolon-separated directories)."""
        dirs = _split(self.allow_dirs, ";")
        if dirs is None:
            return None
        return [Path(d).expanduser() for d in dirs]

    def get_allow_apps(self) -> list[str] | None:
        """Parse MILYAI_ALLOW_APPS (comma-separated executable names)."""
        return _split(self.allow_apps, ",")

    def get_learn_urls(self) -> list[str]:
        """Parse MILYAI_LEARN_URLS into a list of URLs."""
        return _split(self.learn_urls, ",") or []


settings = Settings()
