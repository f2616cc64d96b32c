"""Tests for Settings configuration model."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from mily.config import Settings


class TestDefaults:
    def test_profile_defaults(self):
        s = Settings()
        assert s.agent_name == "Mily"
        assert s.persona == "Ramah, ingin tahu, membantu"
        assert s.curiosity == 0.6

    def test_provider_defaults(self):
        s = Settings()
        assert s.llm_endpoint == ""
        assert s.openai_api_key == ""
        assert s.openai_model == "gpt-4o-mini"
        assert s.ollama_model == "llama3.1:8b"
        assert s.llama_n_threads is None
        assert s.temperature == 0.6

    def test_default_memory_path(self):
        assert Settings().memory_path == Path("data/memory.ndjson")

    def test_policy_lists_unset_by_default(self):
        s = Settings()
        assert s.get_allow_domains() is None
        assert s.get_deny_domains() is None
        assert s.get_allow_dirs() is None
        assert s.get_allow_apps() is None

    def test_web_defaults(self):
        s = Settings()
        assert s.respect_robots is True
        assert s.learn_interval_secs == 3600
        assert s.get_learn_urls() == []


class TestListParsing:
    def test_domains_comma_separated(self):
        s = Settings(allow_domains=" example.com , wikipedia.org ")
        assert s.get_allow_domains() == ["example.com", "wikipedia.org"]

    def test_empty_string_is_configured_but_empty(self):
        s = Settings(allow_apps="")
        assert s.get_allow_apps() == []

    def test_dirs_semicolon_separated(self):
        s = Settings(allow_dirs="/tmp/a; /tmp/b")
        assert s.get_allow_dirs() == [Path("/tmp/a"), Path("/tmp/b")]

    def test_learn_urls(self):
        s = Settings(learn_urls="https://a.example,https://b.example")
        assert s.get_learn_urls() == ["https://a.example", "https://b.example"]


class TestValidation:
    def test_openai_key_by_field_name(self):
        assert Settings(openai_api_key="sk-test").openai_api_key == "sk-test"

    def test_curiosity_out_of_range(self):
        with pytest.raises(ValidationError):
            Settings(curiosity=1.5)

    def test_frozen(self):
        s = Settings()
        with pytest.raises(ValidationError):
            s.llm_endpoint = "http://changed"

    def test_unknown_field_raises(self):
        with pytest.raises(ValueError, match="extra_forbidden"):
            Settings(**{"nonexistent_field": "value"})
