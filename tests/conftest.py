"""Shared test fixtures for the Gekko console.

Provides common fixtures used across unit tests.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from pydantic import SecretStr

from gekko.session.store import SessionStore, reset_session_store
from gekko.settings import Settings, get_settings

# =============================================================================
# SETTINGS
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Provide test settings with safe defaults."""
    return Settings(
        environment="testing",
        debug=True,
        orchestrator_url="http://trading.test",
        llm_base_url="http://llm.test/v1",
        llm_api_key=SecretStr("test-api-key"),
        llm_model="test/model",
    )


@pytest.fixture
def mock_settings(test_settings: Settings, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Make get_settings() return the test settings everywhere."""
    import gekko.cli.commands.chat
    import gekko.logging_config
    import gekko.orchestrator.client
    import gekko.session.history
    import gekko.streaming.client
    from gekko import settings

    for module in (
        settings,
        gekko.cli.commands.chat,
        gekko.logging_config,
        gekko.orchestrator.client,
        gekko.session.history,
        gekko.streaming.client,
    ):
        monkeypatch.setattr(module, "get_settings", lambda: test_settings)
    return test_settings


@pytest.fixture(autouse=True)
def _fresh_globals() -> Generator[None, None, None]:
    """Reset process-wide singletons between tests."""
    get_settings.cache_clear()
    reset_session_store()
    yield
    reset_session_store()
    get_settings.cache_clear()


# =============================================================================
# SESSION
# =============================================================================


@pytest.fixture
def store() -> SessionStore:
    """A fresh session store."""
    return SessionStore(selected_model="test/model", max_diagnostics=50)
