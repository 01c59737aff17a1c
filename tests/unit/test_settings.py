"""Unit tests for application settings."""

import pytest
from pydantic import ValidationError

from gekko.settings import Settings, get_settings


@pytest.fixture
def clean_env(monkeypatch):
    """Remove settings-related environment variables."""
    for name in (
        "ORCHESTRATOR_URL",
        "GEKKO_API_URL",
        "LLM_API_KEY",
        "OPENROUTER_API_KEY",
        "OPENAI_API_KEY",
        "LLM_MODEL",
        "STREAM_CONCURRENCY",
        "CHAT_CONTEXT_WINDOW",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir("/")


class TestDefaults:
    """Test default values."""

    def test_defaults(self, clean_env):
        settings = Settings(_env_file=None)
        assert settings.orchestrator_url == "http://localhost:8080"
        assert settings.orchestrator_timeout_seconds == 10.0
        assert settings.orchestrator_serialize_commands is False
        assert settings.llm_base_url == "https://openrouter.ai/api/v1"
        assert settings.llm_api_key.get_secret_value() == ""
        assert settings.stream_concurrency == "reject"
        assert settings.chat_context_window == 10


class TestEnvironment:
    """Test loading from environment variables."""

    def test_orchestrator_url_alias(self, clean_env, monkeypatch):
        monkeypatch.setenv("GEKKO_API_URL", "https://trading.example")
        assert Settings(_env_file=None).orchestrator_url == "https://trading.example"

    def test_openrouter_key_alias(self, clean_env, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-123")
        assert Settings(_env_file=None).llm_api_key.get_secret_value() == "sk-or-123"

    def test_api_key_hidden_in_repr(self, clean_env, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "sk-secret")
        assert "sk-secret" not in repr(Settings(_env_file=None))

    def test_concurrency_policy(self, clean_env, monkeypatch):
        monkeypatch.setenv("STREAM_CONCURRENCY", "queue")
        assert Settings(_env_file=None).stream_concurrency == "queue"


class TestValidation:
    """Test field constraints."""

    def test_rejects_unknown_concurrency_policy(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, stream_concurrency="drop")

    def test_rejects_non_positive_timeout(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, orchestrator_timeout_seconds=0)

    def test_rejects_zero_context_window(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, chat_context_window=0)


class TestGetSettings:
    """Test the cached accessor."""

    def test_cached(self, clean_env):
        assert get_settings() is get_settings()

    def test_cache_clear(self, clean_env):
        first = get_settings()
        get_settings.cache_clear()
        assert get_settings() is not first
